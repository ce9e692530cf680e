"""
Socio administration service.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.core.database.entities.boletas import EstadoBoleta
from portal_apr.core.database.entities.users import User, UserRole
from portal_apr.core.database.repositories.boletas import BoletaRepository
from portal_apr.core.database.repositories.users import UserRepository
from portal_apr.core.errors import NotFoundError
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.users import SocioCreate, SocioSummary, SocioUpdate, UserRead

from .auth import AuthService

logger = get_logger(__name__)


class SocioService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.users = UserRepository(session)
        self.boletas = BoletaRepository(session)

    async def list(
        self, search: Optional[str] = None, activo: Optional[bool] = None, limit: int = 50, offset: int = 0
    ) -> tuple[List[User], int]:
        items = await self.users.list_socios(search, activo, limit=limit, offset=offset)
        return items, await self.users.count_socios(search, activo)

    async def get(self, socio_id: int) -> User:
        socio = await self.users.get_by_id(socio_id)
        if socio is None or not socio.is_socio:
            raise NotFoundError("Socio no encontrado")
        return socio

    async def summary(self, socio_id: int) -> SocioSummary:
        """The socio plus their outstanding boletas."""
        socio = await self.get(socio_id)
        pendientes = await self.boletas.list_for_socio(socio.id, EstadoBoleta.PENDIENTE.value)
        vencidas = await self.boletas.list_for_socio(socio.id, EstadoBoleta.VENCIDA.value)
        return SocioSummary(
            socio=UserRead.model_validate(socio),
            boletas_pendientes=len(pendientes),
            boletas_vencidas=len(vencidas),
            monto_pendiente=sum(b.monto_total for b in pendientes + vencidas),
        )

    async def create(self, data: SocioCreate) -> User:
        return await AuthService(self.session).create_user(
            rut=data.rut,
            nombres=data.nombres,
            apellidos=data.apellidos,
            email=data.email,
            password=data.password,
            role=UserRole.SOCIO,
            telefono=data.telefono,
            direccion=data.direccion,
            categoria_usuario=data.categoria_usuario.value,
            medidor=data.medidor.model_dump(mode="json") if data.medidor else None,
        )

    async def update(self, socio_id: int, changes: SocioUpdate) -> User:
        socio = await self.get(socio_id)
        data = changes.model_dump(exclude_unset=True, mode="json")
        for key, value in data.items():
            setattr(socio, key, value)
        socio = await self.users.update(socio)
        logger.info(f"Socio {socio.id} updated: {sorted(data)}")
        return socio
