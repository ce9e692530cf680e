"""
Unit tests for ChatService.

This test suite covers:
- One conversation per socio
- Access rules for socios, admins and super admins
- Sending, reading, editing and deleting messages
- Unread counters and realtime events
"""

import pytest

from portal_apr.core.database.entities import UserRole
from portal_apr.core.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from portal_apr.server.services.chat import ChatService
from portal_apr.server.services.realtime import ADMINS_CHANNEL, user_channel

pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(session, hub) -> ChatService:
    return ChatService(session, hub)


@pytest.fixture
async def conversation(service, socio):
    return await service.get_or_create_conversation(socio)


class TestConversations:
    async def test_one_per_socio(self, service, socio, conversation):
        again = await service.get_or_create_conversation(socio)

        assert again.id == conversation.id
        assert conversation.socio_name == socio.nombre_completo
        assert conversation.status == "active"

    async def test_admins_have_no_conversation(self, service, admin):
        with pytest.raises(PermissionDeniedError):
            await service.get_or_create_conversation(admin)

    async def test_other_socio_cannot_view(self, service, conversation, make_user):
        intruder = await make_user()

        with pytest.raises(PermissionDeniedError):
            await service.get_conversation(conversation.id, intruder)

    async def test_super_admin_can_view(self, service, conversation, super_admin):
        assert (await service.get_conversation(conversation.id, super_admin)).id == conversation.id

    async def test_plain_admin_cannot_view(self, service, conversation, admin):
        with pytest.raises(PermissionDeniedError):
            await service.get_conversation(conversation.id, admin)

    async def test_plain_admin_cannot_read_messages(self, service, socio, admin, conversation):
        await service.send_message(conversation, socio, "Hola")

        with pytest.raises(PermissionDeniedError):
            await service.get_messages(conversation, admin)

        assert conversation.unread_admin == 1

    async def test_missing(self, service, admin):
        with pytest.raises(NotFoundError):
            await service.get_conversation(999, admin)

    async def test_close_and_stats(self, service, conversation, super_admin, make_user):
        other_socio = await make_user()
        other = await service.get_or_create_conversation(other_socio)
        await service.send_message(other, other_socio, "Hola")

        await service.close_conversation(conversation.id, super_admin)
        stats = await service.chat_stats()

        assert conversation.status == "closed"
        assert conversation.admin_id == super_admin.id
        assert stats.total == 2
        assert stats.active == 1
        assert stats.closed == 1
        assert stats.unread_admin == 1

    async def test_list_by_status(self, service, conversation, super_admin):
        await service.close_conversation(conversation.id, super_admin)

        assert await service.list_conversations("active") == []
        assert [c.id for c in await service.list_conversations("closed")] == [conversation.id]


class TestMessages:
    async def test_socio_message_goes_to_admins(self, service, hub, socio, conversation):
        async with hub.subscribe(ADMINS_CHANNEL) as sub:
            message = await service.send_message(conversation, socio, "  Sin agua en mi sector  ")
            event = await sub.get(timeout=0.1)

        assert message.content == "Sin agua en mi sector"
        assert message.sender_type == "socio"
        assert conversation.unread_admin == 1
        assert conversation.last_message == "Sin agua en mi sector"
        assert event.event == "nuevo-mensaje"
        assert event.data["conversation_id"] == conversation.id
        assert event.data["message"]["id"] == message.id

    async def test_super_admin_reply_goes_to_socio(self, service, hub, socio, super_admin, conversation):
        question = await service.send_message(conversation, socio, "¿Cuándo vuelve el agua?")

        async with hub.subscribe(user_channel(socio.id)) as sub:
            reply = await service.send_message(conversation, super_admin, "A las 18:00", reply_to_id=question.id)
            event = await sub.get(timeout=0.1)

        assert reply.reply_to_id == question.id
        assert reply.sender_type == "super_admin"
        assert conversation.unread_socio == 1
        assert conversation.admin_id == super_admin.id
        assert event.data["message"]["content"] == "A las 18:00"

    async def test_plain_admin_cannot_reply(self, service, admin, conversation):
        with pytest.raises(PermissionDeniedError):
            await service.send_message(conversation, admin, "Hola")

    async def test_socio_cannot_write_elsewhere(self, service, conversation, make_user):
        with pytest.raises(PermissionDeniedError):
            await service.send_message(conversation, await make_user(), "Hola")

    @pytest.mark.parametrize("content", ["", "   ", "x" * 1001])
    async def test_content_validation(self, service, socio, conversation, content):
        with pytest.raises(ValidationFailedError):
            await service.send_message(conversation, socio, content)

    async def test_reply_to_message_of_other_conversation(self, service, socio, conversation, make_user):
        other_socio = await make_user()
        other = await service.get_or_create_conversation(other_socio)
        foreign = await service.send_message(other, other_socio, "Hola")

        with pytest.raises(ValidationFailedError):
            await service.send_message(conversation, socio, "Hola", reply_to_id=foreign.id)

    async def test_socio_message_reopens_closed(self, service, socio, super_admin, conversation):
        await service.close_conversation(conversation.id, super_admin)

        await service.send_message(conversation, socio, "Sigo sin agua")

        assert conversation.status == "active"

    async def test_reading_marks_other_side_read(self, service, socio, super_admin, conversation):
        await service.send_message(conversation, socio, "Uno")
        await service.send_message(conversation, super_admin, "Dos")

        messages = await service.get_messages(conversation, super_admin)

        assert [m.content for m in messages] == ["Uno", "Dos"]
        assert messages[0].read is True
        assert messages[1].read is False
        assert conversation.unread_admin == 0
        assert conversation.unread_socio == 1

    async def test_outsider_cannot_read(self, service, conversation, make_user):
        with pytest.raises(PermissionDeniedError):
            await service.get_messages(conversation, await make_user())


class TestEditDelete:
    async def test_edit_own(self, service, socio, conversation):
        message = await service.send_message(conversation, socio, "Hola")

        edited = await service.edit_message(message.id, socio, "Hola, buenas tardes")

        assert edited.content == "Hola, buenas tardes"
        assert edited.edited is True
        assert edited.edited_at is not None

    async def test_edit_someone_elses(self, service, socio, super_admin, conversation):
        message = await service.send_message(conversation, socio, "Hola")

        with pytest.raises(PermissionDeniedError):
            await service.edit_message(message.id, super_admin, "Editado")

    async def test_delete_unlinks_replies(self, service, socio, super_admin, conversation):
        question = await service.send_message(conversation, socio, "Pregunta")
        reply = await service.send_message(conversation, super_admin, "Respuesta", reply_to_id=question.id)

        await service.delete_message(question.id, socio)

        messages = await service.get_messages(conversation, socio)
        assert [m.id for m in messages] == [reply.id]
        assert messages[0].reply_to_id is None

    async def test_super_admin_deletes_any(self, service, socio, super_admin, conversation):
        message = await service.send_message(conversation, socio, "Spam")

        await service.delete_message(message.id, super_admin)

        with pytest.raises(NotFoundError):
            await service.edit_message(message.id, socio, "x")

    async def test_admin_cannot_delete_others(self, service, socio, make_user, conversation):
        message = await service.send_message(conversation, socio, "Hola")
        admin = await make_user(UserRole.ADMIN)

        with pytest.raises(PermissionDeniedError):
            await service.delete_message(message.id, admin)
