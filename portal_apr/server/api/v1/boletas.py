"""
Boleta Endpoints.

Socios read their own boletas; admins issue them, change their state and
consult statistics. Paid boletas can only be archived.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, status

from portal_apr.core.models.io.boletas import (
    BoletaCreate,
    BoletaEstadoUpdate,
    BoletaPage,
    BoletaRead,
    BoletaStats,
)
from portal_apr.server.services.boletas import BoletaService
from portal_apr.server.services.deps import AdminUser, CurrentUser, EventHubDep, SessionDep

router = APIRouter()


def _page(items, total: int, limit: int, offset: int) -> BoletaPage:
    return BoletaPage(items=[BoletaRead.model_validate(b) for b in items], total=total, limit=limit, offset=offset)


@router.get("", response_model=List[BoletaRead], summary="My Boletas")
async def list_my_boletas(
    user: CurrentUser,
    session: SessionDep,
    estado: Optional[str] = Query(default=None, description="Filter by state"),
):
    return await BoletaService(session).list_for_socio(user, estado)


@router.post(
    "",
    response_model=BoletaRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue Boleta",
    description=(
        "Issue a boleta from two meter readings. The amount is calculated with the active tariff "
        "unless a legacy `tarifa_m3` is given."
    ),
)
async def create_boleta(data: BoletaCreate, _: AdminUser, session: SessionDep, hub: EventHubDep):
    return await BoletaService(session, hub).crear_boleta(data)


@router.get("/admin/all", response_model=BoletaPage, summary="All Boletas")
async def list_all_boletas(
    _: AdminUser,
    session: SessionDep,
    estado: Optional[str] = None,
    socio_id: Optional[int] = None,
    periodo: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    items, total = await BoletaService(session).list_admin(estado, socio_id, periodo, limit, offset)
    return _page(items, total, limit, offset)


@router.get("/admin/stats", response_model=BoletaStats, summary="Boleta Statistics")
async def boleta_stats(_: AdminUser, session: SessionDep):
    return await BoletaService(session).estadisticas()


@router.get("/admin/archived", response_model=BoletaPage, summary="Archived Boletas")
async def list_archived(
    _: AdminUser,
    session: SessionDep,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    items, total = await BoletaService(session).list_archivadas(limit, offset)
    return _page(items, total, limit, offset)


@router.patch("/admin/{boleta_id}/estado", response_model=BoletaRead, summary="Change Boleta State")
async def change_estado(
    boleta_id: int, data: BoletaEstadoUpdate, _: AdminUser, session: SessionDep, hub: EventHubDep
):
    return await BoletaService(session, hub).actualizar_estado(boleta_id, data.estado)


@router.put("/admin/{boleta_id}/archive", response_model=BoletaRead, summary="Archive Boleta")
async def archive_boleta(boleta_id: int, _: AdminUser, session: SessionDep, hub: EventHubDep):
    return await BoletaService(session, hub).archivar(boleta_id)


@router.delete(
    "/admin/{boleta_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Boleta",
    description="Delete an unpaid boleta with no completed payment.",
)
async def delete_boleta(boleta_id: int, _: AdminUser, session: SessionDep) -> None:
    await BoletaService(session).eliminar(boleta_id)


@router.get("/{boleta_id}", response_model=BoletaRead, summary="Get Boleta")
async def get_boleta(boleta_id: int, user: CurrentUser, session: SessionDep):
    return await BoletaService(session).get_for_user(user, boleta_id)
