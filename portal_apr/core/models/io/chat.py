"""
Chat I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from portal_apr.core.database.entities.chat import MAX_MESSAGE_LENGTH


class ConversationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    socio_id: int
    socio_name: str
    admin_id: Optional[int] = None
    admin_name: Optional[str] = None
    status: str
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_socio: int
    unread_admin: int
    created_at: datetime


class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)
    reply_to_id: Optional[int] = None


class MessageUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)


class MessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: int
    sender_type: str
    sender_name: str
    content: str
    message_type: str
    read: bool
    edited: bool
    edited_at: Optional[datetime] = None
    reply_to_id: Optional[int] = None
    created_at: datetime


class ChatStats(BaseModel):
    total: int
    active: int
    closed: int
    unread_admin: int
