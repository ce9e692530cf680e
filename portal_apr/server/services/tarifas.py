"""
Tariff configuration service.

Owns the tariff lifecycle (borrador -> activa <-> pausada -> finalizada) and
the single-active-tariff rule: activating a configuration pauses every other
active one in the same transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.billing.models import CalculoTarifa, TarifaParametros
from portal_apr.billing.tarifa import calcular_tarifa, seleccionar_tarifa_activa, simular_calculo
from portal_apr.core.database.base import utc_now
from portal_apr.core.database.entities.tarifas import EstadoTarifa, TarifaConfig
from portal_apr.core.database.entities.users import User
from portal_apr.core.database.repositories.tarifas import TarifaConfigRepository
from portal_apr.core.errors import ConflictError, NoActiveTarifaError, NotFoundError
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.tarifas import SimulacionRequest, TarifaConfigCreate, TarifaConfigUpdate

logger = get_logger(__name__)

_JSON_FIELDS = ("cargo_fijo", "escalones", "temporadas", "descuentos", "recargos", "configuracion")


def parametros_de(tarifa: TarifaConfig) -> TarifaParametros:
    """Validate the JSON columns of a stored tariff into calculator parameters."""
    return TarifaParametros.model_validate(tarifa)


class TarifaService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repo = TarifaConfigRepository(session)

    async def get(self, tarifa_id: int) -> TarifaConfig:
        tarifa = await self.repo.get_by_id(tarifa_id)
        if tarifa is None:
            raise NotFoundError("Configuración de tarifa no encontrada")
        return tarifa

    async def list(self, limit: Optional[int] = None, offset: Optional[int] = None) -> List[TarifaConfig]:
        return await self.repo.list(limit=limit, offset=offset)

    async def get_active(self, now: Optional[datetime] = None) -> Optional[TarifaConfig]:
        """The most recent flagged-active tariff that is in force at ``now``."""
        return seleccionar_tarifa_activa(await self.repo.list_flagged_active(), now or utc_now())

    async def require_active(self, now: Optional[datetime] = None) -> TarifaConfig:
        tarifa = await self.get_active(now)
        if tarifa is None:
            raise NoActiveTarifaError()
        return tarifa

    async def _activate(self, tarifa: TarifaConfig) -> None:
        paused = await self.repo.pause_others(tarifa.id)
        if paused:
            logger.info(f"Paused {paused} other active tariff(s) while activating {tarifa.nombre!r}")
        tarifa.activa = True
        tarifa.estado = EstadoTarifa.ACTIVA.value
        tarifa.fecha_pausa = None

    async def create(self, data: TarifaConfigCreate, user: Optional[User] = None) -> TarifaConfig:
        tarifa = TarifaConfig(
            nombre=data.nombre,
            descripcion=data.descripcion,
            activa=False,
            estado=EstadoTarifa.BORRADOR.value,
            fecha_vigencia=data.fecha_vigencia or utc_now(),
            fecha_vencimiento=data.fecha_vencimiento,
            creado_por=user.id if user else None,
            modificado_por=user.id if user else None,
        )
        self._assign_parametros(tarifa, data)
        await self.repo.add(tarifa)
        if data.activa:
            await self._activate(tarifa)
        await self.session.commit()
        await self.session.refresh(tarifa)
        logger.info(f"Tariff created: id={tarifa.id}, nombre={tarifa.nombre!r}, activa={tarifa.activa}")
        return tarifa

    @staticmethod
    def _assign_parametros(tarifa: TarifaConfig, parametros: TarifaParametros | TarifaConfigUpdate) -> None:
        dumped = parametros.model_dump(mode="json", include=set(_JSON_FIELDS))
        for field in _JSON_FIELDS:
            if getattr(parametros, field, None) is not None:
                setattr(tarifa, field, dumped[field])

    async def update(self, tarifa_id: int, changes: TarifaConfigUpdate, user: Optional[User] = None) -> TarifaConfig:
        """
        Edit a tariff that is not in force.

        Raises:
            ConflictError: the tariff is active (pause it first) or finalized
        """
        tarifa = await self.get(tarifa_id)
        if tarifa.activa or tarifa.estado == EstadoTarifa.ACTIVA.value:
            raise ConflictError("No se puede editar una configuración activa. Debe pausarla primero")
        if tarifa.estado == EstadoTarifa.FINALIZADA.value:
            raise ConflictError("No se puede editar una configuración finalizada")

        data = changes.model_dump(exclude_unset=True, exclude=set(_JSON_FIELDS))
        activar = data.pop("activa", None)
        estado = data.pop("estado", None)
        for key, value in data.items():
            setattr(tarifa, key, value)
        self._assign_parametros(tarifa, changes)
        tarifa.modificado_por = user.id if user else tarifa.modificado_por

        if activar or estado == EstadoTarifa.ACTIVA.value:
            await self._activate(tarifa)
        elif estado:
            tarifa.estado = estado
            if estado == EstadoTarifa.FINALIZADA.value:
                tarifa.fecha_vencimiento = utc_now()
        return await self.repo.update(tarifa)

    async def activar(self, tarifa_id: int, user: Optional[User] = None) -> TarifaConfig:
        tarifa = await self.get(tarifa_id)
        if tarifa.estado == EstadoTarifa.FINALIZADA.value:
            raise ConflictError("No se puede activar una configuración finalizada")
        await self._activate(tarifa)
        tarifa.modificado_por = user.id if user else tarifa.modificado_por
        tarifa = await self.repo.update(tarifa)
        logger.info(f"Tariff {tarifa.id} activated")
        return tarifa

    async def pausar(self, tarifa_id: int, user: Optional[User] = None) -> TarifaConfig:
        tarifa = await self.get(tarifa_id)
        if not tarifa.activa:
            raise ConflictError("Solo se puede pausar una configuración activa")
        tarifa.activa = False
        tarifa.estado = EstadoTarifa.PAUSADA.value
        tarifa.fecha_pausa = utc_now()
        tarifa.modificado_por = user.id if user else tarifa.modificado_por
        return await self.repo.update(tarifa)

    async def finalizar(self, tarifa_id: int, user: Optional[User] = None) -> TarifaConfig:
        tarifa = await self.get(tarifa_id)
        if tarifa.estado == EstadoTarifa.FINALIZADA.value:
            raise ConflictError("La configuración ya está finalizada")
        tarifa.activa = False
        tarifa.estado = EstadoTarifa.FINALIZADA.value
        tarifa.fecha_vencimiento = utc_now()
        tarifa.modificado_por = user.id if user else tarifa.modificado_por
        return await self.repo.update(tarifa)

    async def eliminar(self, tarifa_id: int) -> None:
        tarifa = await self.get(tarifa_id)
        if tarifa.activa:
            raise ConflictError("No se puede eliminar una configuración activa. Debe pausarla o finalizarla primero")
        await self.repo.delete(tarifa.id)

    async def enforce_single_active(self) -> Optional[TarifaConfig]:
        """Keep only the most recent active tariff active; returns the survivor."""
        activas = await self.repo.list_flagged_active()
        if not activas:
            return None
        keeper = activas[0]
        if len(activas) > 1:
            paused = await self.repo.pause_others(keeper.id)
            await self.session.commit()
            logger.warning(f"Found {len(activas)} active tariffs, paused {paused} and kept {keeper.nombre!r}")
        return keeper

    async def calcular(
        self,
        categoria: Optional[str],
        consumo_m3: float,
        periodo: datetime,
        dias_vencidos: int = 0,
        pago_anticipado: bool = False,
    ) -> CalculoTarifa:
        """Calculate with the tariff active at ``periodo``'s billing time."""
        tarifa = await self.require_active()
        return calcular_tarifa(parametros_de(tarifa), categoria, consumo_m3, periodo, dias_vencidos, pago_anticipado)

    async def simular(self, request: SimulacionRequest) -> CalculoTarifa:
        tarifa = await self.get(request.tarifa_id) if request.tarifa_id else await self.require_active()
        return simular_calculo(
            parametros_de(tarifa), request.categoria.value, request.consumo_m3, request.pago_anticipado
        )
