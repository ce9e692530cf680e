"""
Chat Endpoints.

One conversation per socio with the super admins. Socios use
``/conversation``; admins list, read and close conversations.
"""

from typing import List, Optional

from fastapi import APIRouter, status

from portal_apr.core.models.io.chat import (
    ChatStats,
    ConversationRead,
    MessageCreate,
    MessageRead,
    MessageUpdate,
)
from portal_apr.server.services.chat import ChatService
from portal_apr.server.services.deps import CurrentUser, EventHubDep, SessionDep, SocioUser, SuperAdminUser

router = APIRouter()


@router.get("/conversation", response_model=ConversationRead, summary="My Conversation")
async def my_conversation(socio: SocioUser, session: SessionDep):
    """Get the caller's conversation, opening it on first use."""
    return await ChatService(session).get_or_create_conversation(socio)


@router.get("/conversations", response_model=List[ConversationRead], summary="List Conversations")
async def list_conversations(_: SuperAdminUser, session: SessionDep, status: Optional[str] = None):
    return await ChatService(session).list_conversations(status)


@router.get("/stats", response_model=ChatStats, summary="Chat Statistics")
async def chat_stats(_: SuperAdminUser, session: SessionDep):
    return await ChatService(session).chat_stats()


@router.put("/conversations/{conversation_id}/close", response_model=ConversationRead, summary="Close Conversation")
async def close_conversation(conversation_id: int, admin: SuperAdminUser, session: SessionDep):
    return await ChatService(session).close_conversation(conversation_id, admin)


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=List[MessageRead],
    summary="Conversation Messages",
    description="Chronological messages. The other side's messages are marked read.",
)
async def get_messages(conversation_id: int, user: CurrentUser, session: SessionDep):
    service = ChatService(session)
    conversation = await service.get_conversation(conversation_id, user)
    return await service.get_messages(conversation, user)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send Message",
)
async def send_message(
    conversation_id: int, data: MessageCreate, user: CurrentUser, session: SessionDep, hub: EventHubDep
):
    service = ChatService(session, hub)
    conversation = await service.get_conversation(conversation_id, user)
    return await service.send_message(conversation, user, data.content, data.reply_to_id)


@router.put("/messages/{message_id}", response_model=MessageRead, summary="Edit Message")
async def edit_message(message_id: int, data: MessageUpdate, user: CurrentUser, session: SessionDep):
    return await ChatService(session).edit_message(message_id, user, data.content)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Message")
async def delete_message(message_id: int, user: CurrentUser, session: SessionDep) -> None:
    await ChatService(session).delete_message(message_id, user)
