"""
Unit tests for the repositories against an in-memory SQLite database.

This test suite covers:
- Base CRUD (staging vs committing writes, pagination, filters)
- User lookups, socio search and codigo_socio allocation
- Boleta queries used by the overdue check and debt reconciliation
- Pago lookups by reference, metadata and inconsistent state
- Single active tariff helpers
- Notification and chat bulk updates
"""

from datetime import timedelta

import pytest
from sqlmodel import select

from portal_apr.core.database import utc_now
from portal_apr.core.database.entities import (
    ChatConversation,
    ChatMessage,
    EstadoBoleta,
    EstadoPago,
    EstadoTarifa,
    MetodoPago,
    Notification,
    SenderType,
    User,
    UserRole,
)
from portal_apr.core.database.repositories.base import QueryBuilder

pytestmark = pytest.mark.asyncio


class TestBaseRepository:
    async def test_add_flushes_without_commit(self, repos, session, socio):
        notification = Notification(user_id=socio.id, titulo="t", mensaje="m")

        await repos.notifications.add(notification)

        notification_id = notification.id
        assert notification_id is not None
        await session.rollback()
        assert await repos.notifications.get_by_id(notification_id) is None

    async def test_create_commits(self, repos, session, socio):
        notification = await repos.notifications.create(Notification(user_id=socio.id, titulo="t", mensaje="m"))
        notification_id = notification.id

        await session.rollback()
        assert await repos.notifications.get_by_id(notification_id) is not None

    async def test_get_many_and_empty_ids(self, repos, make_boleta, socio):
        a = await make_boleta(socio)
        b = await make_boleta(socio)

        found = await repos.boletas.get_many([a.id, b.id, 999])

        assert {x.id for x in found} == {a.id, b.id}
        assert await repos.boletas.get_many([]) == []

    async def test_update_bumps_updated_at(self, repos, socio):
        before = socio.updated_at
        socio.telefono = "+56911111111"

        updated = await repos.users.update(socio)

        assert updated.telefono == "+56911111111"
        assert updated.updated_at >= before

    async def test_delete(self, repos, socio):
        notification = await repos.notifications.create(Notification(user_id=socio.id, titulo="t", mensaje="m"))

        assert await repos.notifications.delete(notification.id) is True
        assert await repos.notifications.delete(notification.id) is False

    async def test_list_pagination_newest_first(self, repos, socio):
        for i in range(5):
            await repos.notifications.create(Notification(user_id=socio.id, titulo=f"n{i}", mensaje="m"))

        page = await repos.notifications.list(limit=2, offset=1)

        assert [n.titulo for n in page] == ["n3", "n2"]
        assert await repos.notifications.count({"user_id": socio.id}) == 5

    async def test_query_builder_ignores_none_and_unknown_fields(self):
        stmt = QueryBuilder.apply_filters(select(User), User, {"rut": None, "nope": 1, "role": "socio"})

        assert "users.role" in str(stmt)
        assert "users.rut" not in str(stmt.whereclause)


class TestUserRepository:
    async def test_get_by_email_is_case_insensitive(self, repos, make_user):
        user = await make_user(email="ana@apr.test")

        assert (await repos.users.get_by_email("  ANA@apr.test ")).id == user.id

    async def test_get_by_rut(self, repos, make_user):
        user = await make_user(rut="12.345.678-5")

        assert (await repos.users.get_by_rut("12.345.678-5")).id == user.id
        assert await repos.users.get_by_rut("7.654.321-6") is None

    async def test_socio_search_and_count(self, repos, make_user):
        await make_user(nombres="Ana", apellidos="Rojas")
        await make_user(nombres="Pedro", apellidos="Soto", activo=False)
        await make_user(UserRole.ADMIN, nombres="Ana", apellidos="Admin")

        assert [u.nombres for u in await repos.users.list_socios(search="ana")] == ["Ana"]
        assert await repos.users.count_socios() == 2
        assert await repos.users.count_socios(activo=False) == 1

    async def test_next_codigo_socio(self, repos, make_user):
        await make_user(codigo_socio="SOC-00007")
        await make_user(codigo_socio="LEGACY-1")

        assert await repos.users.next_codigo_socio() == "SOC-00008"

    async def test_next_codigo_socio_first(self, repos):
        assert await repos.users.next_codigo_socio() == "SOC-00001"

    async def test_list_admins(self, repos, socio, admin, super_admin):
        admins = await repos.users.list_admins()

        assert {u.id for u in admins} == {admin.id, super_admin.id}
        assert [u.id for u in await repos.users.list_admins([UserRole.SUPER_ADMIN.value])] == [super_admin.id]


class TestBoletaRepository:
    async def test_count_with_prefix(self, repos, make_boleta, socio):
        await make_boleta(socio, numero_boleta="202403001")
        await make_boleta(socio, numero_boleta="202403002")
        await make_boleta(socio, numero_boleta="202404001")

        assert await repos.boletas.count_with_prefix("202403") == 2

    async def test_list_filtered_hides_archived(self, repos, make_boleta, socio):
        await make_boleta(socio)
        archivada = await make_boleta(socio, estado=EstadoBoleta.ARCHIVADA)

        assert archivada.id not in {b.id for b in await repos.boletas.list_filtered()}
        assert [b.id for b in await repos.boletas.list_filtered(estado="archivada")] == [archivada.id]
        assert await repos.boletas.count_filtered() == 1

    async def test_list_newly_overdue(self, repos, make_boleta, socio):
        now = utc_now()
        vencida = await make_boleta(socio, fecha_vencimiento=now - timedelta(days=1))
        await make_boleta(socio, fecha_vencimiento=now + timedelta(days=1))
        await make_boleta(socio, fecha_vencimiento=now - timedelta(days=1), estado=EstadoBoleta.PAGADA)

        assert [b.id for b in await repos.boletas.list_newly_overdue(now)] == [vencida.id]

    async def test_overdue_totals_by_socio(self, repos, make_boleta, make_user):
        a = await make_user()
        b = await make_user()
        await make_boleta(a, monto=1000, estado=EstadoBoleta.VENCIDA)
        await make_boleta(a, monto=500, estado=EstadoBoleta.VENCIDA)
        await make_boleta(b, monto=700)

        assert await repos.boletas.overdue_totals_by_socio() == {a.id: 1500.0}

    async def test_totals_by_estado(self, repos, make_boleta, socio):
        await make_boleta(socio, monto=1000)
        await make_boleta(socio, monto=2000, estado=EstadoBoleta.PAGADA)

        totals = await repos.boletas.totals_by_estado()

        assert totals["pendiente"] == (1, 1000.0)
        assert totals["pagada"] == (1, 2000.0)


class TestPagoRepository:
    async def test_list_by_external_reference(self, repos, make_boleta, make_pago, socio):
        b1 = await make_boleta(socio)
        b2 = await make_boleta(socio)
        p1 = await make_pago(b1, external_reference="APR-1")
        await make_pago(b2, external_reference="APR-1", estado=EstadoPago.COMPLETADO)

        assert len(await repos.pagos.list_by_external_reference("APR-1")) == 2
        completed = await repos.pagos.list_by_external_reference("APR-1", EstadoPago.COMPLETADO.value)
        assert p1.id not in {p.id for p in completed}

    async def test_list_by_metadata(self, repos, make_boleta, make_pago, socio):
        boleta = await make_boleta(socio)
        pago = await make_pago(boleta, metodo=MetodoPago.PAYPAL, metadata_json={"paypal_order_id": "ORDER-1"})
        await make_pago(boleta, metodo=MetodoPago.FLOW, metadata_json={"paypal_order_id": "ORDER-1"})

        found = await repos.pagos.list_by_metadata(MetodoPago.PAYPAL, "paypal_order_id", "ORDER-1")

        assert [p.id for p in found] == [pago.id]

    async def test_completed_with_unpaid_boleta(self, repos, make_boleta, make_pago, socio):
        inconsistente = await make_pago(await make_boleta(socio), estado=EstadoPago.COMPLETADO)
        await make_pago(await make_boleta(socio, estado=EstadoBoleta.PAGADA), estado=EstadoPago.COMPLETADO)
        await make_pago(await make_boleta(socio))

        assert [p.id for p in await repos.pagos.list_completed_with_unpaid_boleta()] == [inconsistente.id]

    async def test_has_completed_for_boleta(self, repos, make_boleta, make_pago, socio):
        boleta = await make_boleta(socio)
        await make_pago(boleta, estado=EstadoPago.FALLIDO)
        assert not await repos.pagos.has_completed_for_boleta(boleta.id)

        await make_pago(boleta, estado=EstadoPago.COMPLETADO)
        assert await repos.pagos.has_completed_for_boleta(boleta.id)

    async def test_totals_by(self, repos, make_boleta, make_pago, socio):
        await make_pago(await make_boleta(socio, monto=1000), metodo=MetodoPago.EFECTIVO)
        await make_pago(await make_boleta(socio, monto=3000), metodo=MetodoPago.FLOW)

        totals = await repos.pagos.totals_by("metodo_pago")

        assert totals == {"efectivo": (1, 1000.0), "flow": (1, 3000.0)}


class TestTarifaConfigRepository:
    async def test_list_flagged_active_newest_first(self, repos, make_tarifa):
        vieja = await make_tarifa(nombre="Vieja", fecha_vigencia=utc_now() - timedelta(days=60))
        nueva = await make_tarifa(nombre="Nueva", fecha_vigencia=utc_now() - timedelta(days=1))
        await make_tarifa(nombre="Borrador", activa=False)

        assert [t.id for t in await repos.tarifas.list_flagged_active()] == [nueva.id, vieja.id]

    async def test_pause_others(self, repos, session, make_tarifa):
        a = await make_tarifa(nombre="A")
        b = await make_tarifa(nombre="B")

        paused = await repos.tarifas.pause_others(b.id)
        await session.commit()

        assert paused == 1
        await session.refresh(a)
        assert a.activa is False
        assert a.estado == EstadoTarifa.PAUSADA.value
        assert [t.id for t in await repos.tarifas.list_flagged_active()] == [b.id]


class TestNotificationRepository:
    async def test_unread_filter_and_mark_all_read(self, repos, socio, admin):
        await repos.notifications.create(Notification(user_id=socio.id, titulo="a", mensaje="m"))
        await repos.notifications.create(Notification(user_id=socio.id, titulo="b", mensaje="m", leida=True))
        await repos.notifications.create(Notification(user_id=admin.id, titulo="c", mensaje="m"))

        assert await repos.notifications.count_for_user(socio.id, unread_only=True) == 1
        assert await repos.notifications.mark_all_read(socio.id) == 1
        assert await repos.notifications.count_for_user(socio.id, unread_only=True) == 0
        assert await repos.notifications.count_for_user(admin.id, unread_only=True) == 1


class TestChatRepository:
    async def test_messages_mark_read_and_stats(self, repos, session, socio, super_admin):
        conversation = await repos.chat.create(
            ChatConversation(socio_id=socio.id, socio_name=socio.nombre_completo, unread_admin=2)
        )
        for content in ("hola", "¿hay corte?"):
            session.add(
                ChatMessage(
                    conversation_id=conversation.id,
                    sender_id=socio.id,
                    sender_type=SenderType.SOCIO.value,
                    sender_name=socio.nombre_completo,
                    content=content,
                )
            )
        await session.commit()

        marked = await repos.chat.mark_read(conversation.id, SenderType.SOCIO.value)
        await session.commit()

        assert marked == 2
        messages = await repos.chat.list_messages(conversation.id)
        assert [m.content for m in messages] == ["hola", "¿hay corte?"]
        assert all(m.read for m in messages)
        assert (await repos.chat.get_by_socio(socio.id)).id == conversation.id
        assert await repos.chat.stats() == {"total": 1, "active": 1, "closed": 0, "unread_admin": 2}
