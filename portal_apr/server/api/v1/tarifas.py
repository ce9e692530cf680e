"""
Tariff Configuration Endpoints.

Admin management of tariff configurations: CRUD, the activate/pause/finalize
lifecycle and calculation simulation.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, status

from portal_apr.billing.models import CalculoTarifa
from portal_apr.core.models.io.tarifas import (
    SimulacionRequest,
    TarifaConfigCreate,
    TarifaConfigRead,
    TarifaConfigUpdate,
)
from portal_apr.server.services.deps import AdminUser, SessionDep
from portal_apr.server.services.tarifas import TarifaService

router = APIRouter()


@router.get("", response_model=List[TarifaConfigRead], summary="List Tariffs")
async def list_tarifas(
    _: AdminUser,
    session: SessionDep,
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    offset: Optional[int] = Query(default=None, ge=0),
):
    return await TarifaService(session).list(limit, offset)


@router.post(
    "",
    response_model=TarifaConfigRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Tariff",
    description="Create a tariff configuration. With `activa=true` every other active tariff is paused.",
)
async def create_tarifa(data: TarifaConfigCreate, user: AdminUser, session: SessionDep):
    return await TarifaService(session).create(data, user)


@router.get("/activa", response_model=TarifaConfigRead, summary="Active Tariff")
async def get_tarifa_activa(_: AdminUser, session: SessionDep):
    return await TarifaService(session).require_active()


@router.post(
    "/simular",
    response_model=CalculoTarifa,
    summary="Simulate Calculation",
    description="Calculate the bill for a category and consumption without issuing anything.",
)
async def simular(request: SimulacionRequest, _: AdminUser, session: SessionDep):
    return await TarifaService(session).simular(request)


@router.get("/{tarifa_id}", response_model=TarifaConfigRead, summary="Get Tariff")
async def get_tarifa(tarifa_id: int, _: AdminUser, session: SessionDep):
    return await TarifaService(session).get(tarifa_id)


@router.patch(
    "/{tarifa_id}",
    response_model=TarifaConfigRead,
    summary="Update Tariff",
    description="Edit a tariff. Refused while it is active or once it is finalized.",
)
async def update_tarifa(tarifa_id: int, changes: TarifaConfigUpdate, user: AdminUser, session: SessionDep):
    return await TarifaService(session).update(tarifa_id, changes, user)


@router.delete("/{tarifa_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Tariff")
async def delete_tarifa(tarifa_id: int, _: AdminUser, session: SessionDep) -> None:
    await TarifaService(session).eliminar(tarifa_id)


@router.post("/{tarifa_id}/activar", response_model=TarifaConfigRead, summary="Activate Tariff")
async def activar(tarifa_id: int, user: AdminUser, session: SessionDep):
    return await TarifaService(session).activar(tarifa_id, user)


@router.post("/{tarifa_id}/pausar", response_model=TarifaConfigRead, summary="Pause Tariff")
async def pausar(tarifa_id: int, user: AdminUser, session: SessionDep):
    return await TarifaService(session).pausar(tarifa_id, user)


@router.post("/{tarifa_id}/finalizar", response_model=TarifaConfigRead, summary="Finalize Tariff")
async def finalizar(tarifa_id: int, user: AdminUser, session: SessionDep):
    return await TarifaService(session).finalizar(tarifa_id, user)
