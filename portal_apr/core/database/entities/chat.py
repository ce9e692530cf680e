"""
Chat entity models.

Each socio has at most one conversation with the utility's super admins.
Unread counters are kept per side so both inboxes can show badges without
counting messages.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field

from ..base import Base, utc_now

MAX_MESSAGE_LENGTH = 1000


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class SenderType(str, Enum):
    SOCIO = "socio"
    SUPER_ADMIN = "super_admin"


class MessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"


class ChatConversation(Base, table=True):
    """Conversation between one socio and the administration.

    Table: chat_conversations
    """

    __tablename__ = "chat_conversations"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)

    socio_id: int = Field(foreign_key="users.id", unique=True, index=True)
    socio_name: str = Field(max_length=200)
    admin_id: Optional[int] = Field(default=None, foreign_key="users.id")
    admin_name: Optional[str] = Field(default=None, max_length=200)

    status: str = Field(default=ConversationStatus.ACTIVE.value, max_length=10, index=True)
    last_message: Optional[str] = Field(default=None, max_length=MAX_MESSAGE_LENGTH)
    last_message_time: Optional[datetime] = Field(default=None, index=True)
    unread_socio: int = Field(default=0, ge=0)
    unread_admin: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"ChatConversation(id={self.id}, socio_id={self.socio_id}, status={self.status})"


class ChatMessage(Base, table=True):
    """Individual message within a conversation.

    Table: chat_messages
    """

    __tablename__ = "chat_messages"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)

    conversation_id: int = Field(foreign_key="chat_conversations.id", index=True)
    sender_id: int = Field(foreign_key="users.id", index=True)
    sender_type: str = Field(max_length=20)
    sender_name: str = Field(max_length=200)

    content: str = Field(max_length=MAX_MESSAGE_LENGTH)
    message_type: str = Field(default=MessageType.TEXT.value, max_length=10)
    read: bool = Field(default=False)

    edited: bool = Field(default=False)
    edited_at: Optional[datetime] = Field(default=None)
    reply_to_id: Optional[int] = Field(default=None, foreign_key="chat_messages.id")

    created_at: datetime = Field(default_factory=utc_now, index=True)

    def __repr__(self) -> str:
        return f"ChatMessage(id={self.id}, conversation_id={self.conversation_id}, sender={self.sender_type})"
