import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

BASE = "/api/v1/tarifas"

NEW_TARIFA = {
    "nombre": "Tarifa 2025",
    "cargo_fijo": {"residencial": 2500, "comercial": 5000, "industrial": 8000, "tercera_edad": 1000},
    "escalones": [
        {"desde": 1, "hasta": 10, "tarifa_residencial": 600, "tarifa_comercial": 700},
        {"desde": 11, "hasta": -1, "tarifa_residencial": 900, "tarifa_comercial": 1000},
    ],
}


class TestTarifaLifecycle:
    async def test_create_draft(self, client: AsyncClient, admin, auth_headers):
        response = await client.post(BASE, json=NEW_TARIFA, headers=auth_headers(admin))

        assert response.status_code == 201
        data = response.json()
        assert data["estado"] == "borrador"
        assert data["activa"] is False
        assert data["creado_por"] == admin.id

    async def test_activate_pauses_previous(self, client: AsyncClient, admin, make_tarifa, auth_headers):
        previous = await make_tarifa()
        created = (await client.post(BASE, json=NEW_TARIFA, headers=auth_headers(admin))).json()

        activated = await client.post(f"{BASE}/{created['id']}/activar", headers=auth_headers(admin))
        old = await client.get(f"{BASE}/{previous.id}", headers=auth_headers(admin))
        activa = await client.get(f"{BASE}/activa", headers=auth_headers(admin))

        assert activated.json()["estado"] == "activa"
        assert old.json()["activa"] is False
        assert activa.json()["id"] == created["id"]

    async def test_no_active_tarifa(self, client: AsyncClient, admin, auth_headers):
        response = await client.get(f"{BASE}/activa", headers=auth_headers(admin))

        assert response.status_code == 409
        assert response.json()["error_code"] == "no_active_tarifa"

    async def test_update_active_refused(self, client: AsyncClient, admin, make_tarifa, auth_headers):
        tarifa = await make_tarifa()

        response = await client.patch(f"{BASE}/{tarifa.id}", json={"nombre": "Otra"}, headers=auth_headers(admin))

        assert response.status_code == 409
        assert "pausarla" in response.json()["detail"]

    async def test_pause_then_finalize(self, client: AsyncClient, admin, make_tarifa, auth_headers):
        tarifa = await make_tarifa()

        paused = await client.post(f"{BASE}/{tarifa.id}/pausar", headers=auth_headers(admin))
        finished = await client.post(f"{BASE}/{tarifa.id}/finalizar", headers=auth_headers(admin))

        assert paused.json()["estado"] == "pausada"
        assert finished.json()["estado"] == "finalizada"

    async def test_delete(self, client: AsyncClient, admin, make_tarifa, auth_headers):
        tarifa = await make_tarifa(activa=False)

        response = await client.delete(f"{BASE}/{tarifa.id}", headers=auth_headers(admin))
        missing = await client.get(f"{BASE}/{tarifa.id}", headers=auth_headers(admin))

        assert response.status_code == 204
        assert missing.status_code == 404

    async def test_create_with_utc_offset_dates(self, client: AsyncClient, admin, auth_headers):
        payload = {**NEW_TARIFA, "fecha_vigencia": "2025-01-01T03:00:00Z", "fecha_vencimiento": "2025-12-31T23:00:00-03:00"}

        response = await client.post(BASE, json=payload, headers=auth_headers(admin))

        assert response.status_code == 201
        assert response.json()["fecha_vigencia"].startswith("2025-01-01T03:00:00")
        assert response.json()["fecha_vencimiento"].startswith("2026-01-01T02:00:00")


class TestSimulacion:
    async def test_simulate_active(self, client: AsyncClient, admin, make_tarifa, auth_headers):
        await make_tarifa()

        response = await client.post(f"{BASE}/simular", json={"consumo_m3": 15}, headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["monto_total"] == 11000

    async def test_simulate_comercial(self, client: AsyncClient, admin, make_tarifa, auth_headers):
        await make_tarifa()

        response = await client.post(
            f"{BASE}/simular", json={"consumo_m3": 15, "categoria": "comercial"}, headers=auth_headers(admin)
        )

        assert response.json()["monto_total"] == 17000

    async def test_negative_consumption(self, client: AsyncClient, admin, auth_headers):
        response = await client.post(f"{BASE}/simular", json={"consumo_m3": -1}, headers=auth_headers(admin))

        assert response.status_code == 422
