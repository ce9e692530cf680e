"""
Global database session and engine management.

This module manages the global AsyncEngine and async_sessionmaker instances
that are used throughout the application for database access.
"""

from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.core.logging_config import get_logger
from portal_apr.server.core.config import settings

from .utils import create_all, create_engine, create_sessionmaker

logger = get_logger(__name__)

engine = create_engine(settings.database_url)
async_session_maker = create_sessionmaker(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency generator for database sessions.

    Yields:
        AsyncSession: An asynchronous SQLAlchemy session.
    """
    async with async_session_maker() as session:
        yield session


async def init_db() -> None:
    """
    Initialize the database.

    Production schemas are managed by Alembic. SQLite databases (local
    development) get their tables created directly from the ORM metadata.
    """
    if engine.dialect.name == "sqlite":
        await create_all(engine)
        logger.info("SQLite schema created from ORM metadata")
    else:
        logger.info("Skipping create_all, schema is managed by Alembic migrations")
