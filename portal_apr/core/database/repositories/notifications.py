"""
Notification repository.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.notifications import Notification
from .base import BaseRepository, QueryBuilder


class NotificationRepository(BaseRepository[Notification]):
    """Repository for in-app notifications."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Notification)

    async def list_for_user(
        self, user_id: int, unread_only: bool = False, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> List[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.leida == False)  # noqa: E712
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        stmt = QueryBuilder.apply_pagination(stmt, limit, offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: int, unread_only: bool = False) -> int:
        stmt = select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.leida == False)  # noqa: E712
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def mark_all_read(self, user_id: int) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.leida == False)  # noqa: E712
            .values(leida=True)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount or 0
