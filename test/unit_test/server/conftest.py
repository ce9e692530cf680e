from typing import AsyncGenerator, Callable, Dict
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.core.database import get_session
from portal_apr.core.database.entities import User
from portal_apr.server.services.realtime import EventHub, get_event_hub
from portal_apr.server.services.security import create_token


@pytest_asyncio.fixture(name="client")
async def client_fixture(session: AsyncSession, hub: EventHub) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with mocked lifespan and overridden dependencies."""
    from portal_apr.server.main import app

    async def get_session_override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_event_hub] = lambda: hub

    # Mock the lifespan to prevent database initialization and workers during tests
    async def mock_lifespan(app):
        yield

    with patch("portal_apr.server.main.lifespan", mock_lifespan):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
            yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    """Bearer header for a user."""

    def build(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_token(user)}"}

    return build
