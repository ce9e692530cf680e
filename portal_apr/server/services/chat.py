"""
Chat service.

One conversation per socio with the super admins. Messages from the socio
are pushed to the ``admins`` channel and replies to the socio's own channel.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.core.database.base import utc_now
from portal_apr.core.database.entities.chat import (
    MAX_MESSAGE_LENGTH,
    ChatConversation,
    ChatMessage,
    ConversationStatus,
    MessageType,
    SenderType,
)
from portal_apr.core.database.entities.users import User, UserRole
from portal_apr.core.database.repositories.chat import ChatRepository
from portal_apr.core.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.chat import ChatStats, MessageRead

from .realtime import ADMINS_CHANNEL, EVENT_NUEVO_MENSAJE, EventHub, get_event_hub, user_channel

logger = get_logger(__name__)


def _clean_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationFailedError("El mensaje no puede estar vacío")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationFailedError(f"El mensaje no puede superar los {MAX_MESSAGE_LENGTH} caracteres")
    return content


class ChatService:
    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None) -> None:
        self.session = session
        self.repo = ChatRepository(session)
        self.hub = hub or get_event_hub()

    async def get_or_create_conversation(self, socio: User) -> ChatConversation:
        if not socio.is_socio:
            raise PermissionDeniedError("Solo los socios tienen una conversación propia")
        conversation = await self.repo.get_by_socio(socio.id)
        if conversation is None:
            conversation = await self.repo.create(
                ChatConversation(socio_id=socio.id, socio_name=socio.nombre_completo)
            )
            logger.info(f"Chat conversation {conversation.id} opened for socio {socio.id}")
        return conversation

    @staticmethod
    def _check_access(conversation: ChatConversation, viewer: User) -> None:
        if viewer.role != UserRole.SUPER_ADMIN.value and conversation.socio_id != viewer.id:
            raise PermissionDeniedError("No tiene acceso a esta conversación")

    async def get_conversation(self, conversation_id: int, viewer: User) -> ChatConversation:
        """A conversation the viewer may access: their own, or any for super admins."""
        conversation = await self.repo.get_by_id(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversación no encontrada")
        self._check_access(conversation, viewer)
        return conversation

    async def list_conversations(self, status: Optional[str] = None) -> List[ChatConversation]:
        return await self.repo.list_conversations(status)

    async def chat_stats(self) -> ChatStats:
        return ChatStats(**await self.repo.stats())

    async def close_conversation(self, conversation_id: int, admin: User) -> ChatConversation:
        conversation = await self.get_conversation(conversation_id, admin)
        conversation.status = ConversationStatus.CLOSED.value
        conversation.admin_id = admin.id
        conversation.admin_name = admin.nombre_completo
        return await self.repo.update(conversation)

    async def get_messages(self, conversation: ChatConversation, viewer: User) -> List[ChatMessage]:
        """Chronological messages; the other side's messages become read."""
        self._check_access(conversation, viewer)

        if viewer.role == UserRole.SUPER_ADMIN.value:
            await self.repo.mark_read(conversation.id, SenderType.SOCIO.value)
            conversation.unread_admin = 0
        else:
            await self.repo.mark_read(conversation.id, SenderType.SUPER_ADMIN.value)
            conversation.unread_socio = 0
        await self.repo.update(conversation)
        return await self.repo.list_messages(conversation.id)

    async def send_message(
        self,
        conversation: ChatConversation,
        sender: User,
        content: str,
        reply_to_id: Optional[int] = None,
    ) -> ChatMessage:
        content = _clean_content(content)
        if sender.is_socio and conversation.socio_id != sender.id:
            raise PermissionDeniedError("Solo puede escribir en su propia conversación")
        if not sender.is_socio and sender.role != UserRole.SUPER_ADMIN.value:
            raise PermissionDeniedError("Solo los super administradores pueden responder mensajes")

        if reply_to_id is not None:
            original = await self.repo.get_message(reply_to_id)
            if original is None or original.conversation_id != conversation.id:
                raise ValidationFailedError("El mensaje al que responde no existe en esta conversación")

        sender_type = SenderType.SOCIO if sender.is_socio else SenderType.SUPER_ADMIN
        message = ChatMessage(
            conversation_id=conversation.id,
            sender_id=sender.id,
            sender_type=sender_type.value,
            sender_name=sender.nombre_completo,
            content=content,
            message_type=MessageType.TEXT.value,
            reply_to_id=reply_to_id,
        )
        self.session.add(message)

        conversation.last_message = content
        conversation.last_message_time = utc_now()
        if sender_type == SenderType.SOCIO:
            conversation.unread_admin += 1
            if conversation.status == ConversationStatus.CLOSED.value:
                conversation.status = ConversationStatus.ACTIVE.value
        else:
            conversation.unread_socio += 1
            conversation.admin_id = sender.id
            conversation.admin_name = sender.nombre_completo
        await self.repo.update(conversation)
        await self.session.refresh(message)

        payload = {
            "conversation_id": conversation.id,
            "message": MessageRead.model_validate(message).model_dump(mode="json"),
        }
        channel = ADMINS_CHANNEL if sender_type == SenderType.SOCIO else user_channel(conversation.socio_id)
        self.hub.publish(channel, EVENT_NUEVO_MENSAJE, payload)
        return message

    async def _get_message(self, message_id: int) -> ChatMessage:
        message = await self.repo.get_message(message_id)
        if message is None:
            raise NotFoundError("Mensaje no encontrado")
        return message

    async def edit_message(self, message_id: int, user: User, content: str) -> ChatMessage:
        message = await self._get_message(message_id)
        if message.sender_id != user.id:
            raise PermissionDeniedError("Solo puede editar sus propios mensajes")
        message.content = _clean_content(content)
        message.edited = True
        message.edited_at = utc_now()
        self.session.add(message)
        await self.session.commit()
        await self.session.refresh(message)
        return message

    async def delete_message(self, message_id: int, user: User) -> None:
        message = await self._get_message(message_id)
        if message.sender_id != user.id and user.role != UserRole.SUPER_ADMIN.value:
            raise PermissionDeniedError("No puede eliminar este mensaje")
        # Replies keep their text but lose the link
        await self.session.execute(
            update(ChatMessage).where(ChatMessage.reply_to_id == message.id).values(reply_to_id=None)
        )
        await self.session.delete(message)
        await self.session.commit()
