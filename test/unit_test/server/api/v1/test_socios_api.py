import pytest
from httpx import AsyncClient

from portal_apr.core.database.entities import EstadoBoleta

pytestmark = pytest.mark.asyncio

BASE = "/api/v1/socios"


async def test_socio_cannot_list(client: AsyncClient, socio, auth_headers):
    response = await client.get(BASE, headers=auth_headers(socio))

    assert response.status_code == 403
    assert response.json()["error_code"] == "permission_denied"


async def test_create_and_list(client: AsyncClient, admin, auth_headers):
    payload = {
        "rut": "7654321-6",
        "nombres": "Pedro",
        "apellidos": "Soto",
        "email": "pedro@apr.test",
        "password": "Agua2024!",
        "medidor": {"numero": "M-001"},
    }

    created = await client.post(BASE, json=payload, headers=auth_headers(admin))
    listing = await client.get(BASE, params={"search": "Soto"}, headers=auth_headers(admin))

    assert created.status_code == 201
    assert created.json()["rut"] == "7.654.321-6"
    assert created.json()["codigo_socio"].startswith("SOC-")
    assert created.json()["medidor"]["numero"] == "M-001"
    assert listing.json()["total"] == 1
    assert listing.json()["items"][0]["email"] == "pedro@apr.test"


async def test_summary(client: AsyncClient, admin, socio, make_boleta, auth_headers):
    await make_boleta(socio, monto=1000)
    await make_boleta(socio, monto=2000, estado=EstadoBoleta.VENCIDA)
    await make_boleta(socio, monto=5000, estado=EstadoBoleta.PAGADA)

    response = await client.get(f"{BASE}/{socio.id}", headers=auth_headers(admin))

    assert response.status_code == 200
    data = response.json()
    assert data["socio"]["id"] == socio.id
    assert data["boletas_pendientes"] == 1
    assert data["boletas_vencidas"] == 1
    assert data["monto_pendiente"] == 3000


async def test_update(client: AsyncClient, admin, socio, auth_headers):
    response = await client.patch(
        f"{BASE}/{socio.id}", json={"categoria_usuario": "comercial", "activo": False}, headers=auth_headers(admin)
    )

    assert response.status_code == 200
    assert response.json()["categoria_usuario"] == "comercial"
    assert response.json()["activo"] is False


async def test_unknown_socio(client: AsyncClient, admin, auth_headers):
    response = await client.get(f"{BASE}/9999", headers=auth_headers(admin))

    assert response.status_code == 404
    assert response.json()["detail"] == "Socio no encontrado"
