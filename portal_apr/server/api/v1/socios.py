"""
Socio Administration Endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Query, status

from portal_apr.core.models.io.users import SocioCreate, SocioPage, SocioSummary, SocioUpdate, UserRead
from portal_apr.server.services.deps import AdminUser, SessionDep
from portal_apr.server.services.socios import SocioService

router = APIRouter()


@router.get("", response_model=SocioPage, summary="List Socios")
async def list_socios(
    _: AdminUser,
    session: SessionDep,
    search: Optional[str] = Query(default=None, description="Matches RUT, name, email or codigo_socio"),
    activo: Optional[bool] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> SocioPage:
    items, total = await SocioService(session).list(search, activo, limit, offset)
    return SocioPage(items=[UserRead.model_validate(u) for u in items], total=total, limit=limit, offset=offset)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED, summary="Create Socio")
async def create_socio(data: SocioCreate, _: AdminUser, session: SessionDep) -> UserRead:
    return UserRead.model_validate(await SocioService(session).create(data))


@router.get("/{socio_id}", response_model=SocioSummary, summary="Get Socio")
async def get_socio(socio_id: int, _: AdminUser, session: SessionDep) -> SocioSummary:
    return await SocioService(session).summary(socio_id)


@router.patch("/{socio_id}", response_model=UserRead, summary="Update Socio")
async def update_socio(socio_id: int, changes: SocioUpdate, _: AdminUser, session: SessionDep) -> UserRead:
    return UserRead.model_validate(await SocioService(session).update(socio_id, changes))
