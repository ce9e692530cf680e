"""
Chat repository.

Conversation and message persistence for the socio/administration chat.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.chat import ChatConversation, ChatMessage
from .base import BaseRepository


class ChatRepository(BaseRepository[ChatConversation]):
    """Repository for chat conversations and their messages."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ChatConversation)

    async def get_by_socio(self, socio_id: int) -> Optional[ChatConversation]:
        result = await self.session.execute(select(ChatConversation).where(ChatConversation.socio_id == socio_id))
        return result.scalar_one_or_none()

    async def list_conversations(self, status: Optional[str] = None) -> List[ChatConversation]:
        stmt = select(ChatConversation)
        if status:
            stmt = stmt.where(ChatConversation.status == status)
        stmt = stmt.order_by(ChatConversation.last_message_time.desc(), ChatConversation.id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_message(self, message_id: int) -> Optional[ChatMessage]:
        result = await self.session.execute(select(ChatMessage).where(ChatMessage.id == message_id))
        return result.scalar_one_or_none()

    async def list_messages(self, conversation_id: int, limit: Optional[int] = None) -> List[ChatMessage]:
        """Messages of a conversation in chronological order."""
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.conversation_id == conversation_id)
            .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(self, conversation_id: int, sender_type: str) -> int:
        """Mark every message sent by ``sender_type`` in a conversation as read; the caller commits."""
        stmt = (
            update(ChatMessage)
            .where(ChatMessage.conversation_id == conversation_id)
            .where(ChatMessage.sender_type == sender_type)
            .where(ChatMessage.read == False)  # noqa: E712
            .values(read=True)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def stats(self) -> Dict[str, int]:
        stmt = select(ChatConversation.status, func.count()).group_by(ChatConversation.status)
        by_status = {status: int(count) for status, count in (await self.session.execute(stmt)).all()}
        unread = await self.session.execute(select(func.coalesce(func.sum(ChatConversation.unread_admin), 0)))
        return {
            "total": sum(by_status.values()),
            "active": by_status.get("active", 0),
            "closed": by_status.get("closed", 0),
            "unread_admin": int(unread.scalar_one()),
        }
