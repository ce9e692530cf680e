import pytest
from httpx import AsyncClient

from portal_apr.server.services.notifications import NotificationService
from portal_apr.server.services.realtime import user_channel

pytestmark = pytest.mark.asyncio

BASE = "/api/v1/notifications"


@pytest.fixture
def notifications(session, hub) -> NotificationService:
    return NotificationService(session, hub)


async def test_list_and_counts(client: AsyncClient, socio, notifications, auth_headers):
    await notifications.notify(socio.id, "Primera", "Mensaje uno")
    await notifications.notify(socio.id, "Segunda", "Mensaje dos")

    listing = await client.get(BASE, headers=auth_headers(socio))
    counts = await client.get(f"{BASE}/counts", headers=auth_headers(socio))

    assert [n["titulo"] for n in listing.json()] == ["Segunda", "Primera"]
    assert counts.json() == {"total": 2, "unread": 2}


async def test_mark_read_and_all(client: AsyncClient, socio, notifications, auth_headers):
    first = await notifications.notify(socio.id, "Primera", "Mensaje uno")
    await notifications.notify(socio.id, "Segunda", "Mensaje dos")

    read = await client.put(f"{BASE}/{first.id}/read", headers=auth_headers(socio))
    unread = await client.get(f"{BASE}/counts", headers=auth_headers(socio))
    await client.put(f"{BASE}/mark-all-read", headers=auth_headers(socio))
    after = await client.get(f"{BASE}/counts", headers=auth_headers(socio))

    assert read.json()["leida"] is True
    assert unread.json()["unread"] == 1
    assert after.json()["unread"] == 0


async def test_cannot_touch_foreign_notification(
    client: AsyncClient, socio, make_user, notifications, auth_headers
):
    other = await make_user()
    notification = await notifications.notify(other.id, "Ajena", "No es suya")

    response = await client.delete(f"{BASE}/{notification.id}", headers=auth_headers(socio))

    assert response.status_code == 404


async def test_delete(client: AsyncClient, socio, notifications, auth_headers):
    notification = await notifications.notify(socio.id, "Borrar", "Mensaje")

    response = await client.delete(f"{BASE}/{notification.id}", headers=auth_headers(socio))
    counts = await client.get(f"{BASE}/counts", headers=auth_headers(socio))

    assert response.status_code == 204
    assert counts.json()["total"] == 0


async def test_admin_send(client: AsyncClient, admin, socio, hub, auth_headers):
    async with hub.subscribe(user_channel(socio.id)) as subscription:
        response = await client.post(
            f"{BASE}/send",
            json={"user_id": socio.id, "titulo": "Corte programado", "mensaje": "Mañana de 9 a 12"},
            headers=auth_headers(admin),
        )
        event = await subscription.get(timeout=0.1)

    assert response.status_code == 201
    assert response.json()["tipo"] == "sistema"
    assert event.event == "nueva-notificacion"


async def test_admin_send_unknown_user(client: AsyncClient, admin, auth_headers):
    response = await client.post(
        f"{BASE}/send", json={"user_id": 9999, "titulo": "x", "mensaje": "y"}, headers=auth_headers(admin)
    )

    assert response.status_code == 404


async def test_socio_cannot_send(client: AsyncClient, socio, auth_headers):
    response = await client.post(
        f"{BASE}/send", json={"user_id": socio.id, "titulo": "x", "mensaje": "y"}, headers=auth_headers(socio)
    )

    assert response.status_code == 403
