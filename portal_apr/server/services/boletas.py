"""
Boleta service.

Issues boletas with the active tariff and owns every state transition. A
boleta's ``pagada`` flag is permanent: once paid the only move left is
archiving it. Socio debt follows the ``vencida`` state, so all transitions go
through :meth:`BoletaService.cambiar_estado`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.billing.tarifa import calcular_tarifa, formato_clp, redondear
from portal_apr.core.database.base import utc_now
from portal_apr.core.database.entities.boletas import Boleta, EstadoBoleta
from portal_apr.core.database.entities.notifications import TipoNotificacion
from portal_apr.core.database.entities.users import User
from portal_apr.core.database.repositories.boletas import BoletaRepository
from portal_apr.core.database.repositories.pagos import PagoRepository
from portal_apr.core.database.repositories.users import UserRepository
from portal_apr.core.errors import (
    ConflictError,
    ImmutableBoletaError,
    NotFoundError,
    ValidationFailedError,
)
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.boletas import BoletaCreate, BoletaRead, BoletaStats, EstadoTotals

from .notifications import NotificationService
from .realtime import ADMINS_CHANNEL, EVENT_BOLETA_ACTUALIZADA, EVENT_NUEVA_BOLETA, EventHub, get_event_hub, user_channel
from .tarifas import TarifaService, parametros_de

logger = get_logger(__name__)

SEQUENCE_DIGITS = 3


class BoletaService:
    """Boleta issuing, state transitions and queries."""

    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None) -> None:
        self.session = session
        self.repo = BoletaRepository(session)
        self.users = UserRepository(session)
        self.pagos = PagoRepository(session)
        self.hub = hub or get_event_hub()
        self.notifications = NotificationService(session, self.hub)
        self.tarifas = TarifaService(session)

    async def generar_numero(self, fecha: datetime) -> str:
        """``YYYYMM`` of ``fecha`` followed by the month's 3-digit sequence."""
        prefix = fecha.strftime("%Y%m")
        secuencia = await self.repo.count_with_prefix(prefix) + 1
        numero = f"{prefix}{secuencia:0{SEQUENCE_DIGITS}d}"
        while await self.repo.get_by_numero(numero) is not None:
            secuencia += 1
            numero = f"{prefix}{secuencia:0{SEQUENCE_DIGITS}d}"
        return numero

    async def _get_socio(self, socio_id: int) -> User:
        socio = await self.users.get_by_id(socio_id)
        if socio is None:
            raise ValidationFailedError("Socio no encontrado", details={"socio_id": socio_id})
        if not socio.is_socio:
            raise ValidationFailedError("El usuario indicado no es un socio", details={"socio_id": socio_id})
        return socio

    async def _calcular_monto(self, socio: User, data: BoletaCreate, consumo: float, now: datetime) -> Dict[str, Any]:
        """Amount and breakdown for a new boleta."""
        if data.tarifa_m3 is not None:
            activa = await self.tarifas.get_active(now)
            cargo_fijo = parametros_de(activa).cargo_fijo.para(socio.categoria_usuario) if activa else 0.0
            costo_consumo = consumo * data.tarifa_m3
            return {
                "cargo_fijo": cargo_fijo,
                "costo_consumo": costo_consumo,
                "tarifa_m3": data.tarifa_m3,
                "subtotal": cargo_fijo + costo_consumo,
                "iva": 0.0,
                "detalle_calculo": None,
                "decimales": 0,
            }

        activa = await self.tarifas.require_active(now)
        parametros = parametros_de(activa)
        calculo = calcular_tarifa(parametros, socio.categoria_usuario, consumo, now)
        return {
            "cargo_fijo": calculo.cargo_fijo,
            "costo_consumo": calculo.costo_consumo,
            "tarifa_id": activa.id,
            "subtotal": calculo.monto_total,
            "descuentos_tarifa": calculo.descuentos,
            "recargos_tarifa": calculo.recargos,
            "iva": calculo.iva,
            "detalle_calculo": calculo.detalle_calculo.model_dump(mode="json"),
            "decimales": parametros.configuracion.redondeo_decimales,
        }

    async def crear_boleta(self, data: BoletaCreate, now: Optional[datetime] = None) -> Boleta:
        """
        Issue a boleta for a socio's reading.

        Raises:
            ValidationFailedError: unknown socio or readings going backwards
            NoActiveTarifaError: no legacy price given and no tariff is active
        """
        now = now or utc_now()
        socio = await self._get_socio(data.socio_id)
        consumo = data.lectura_actual - data.lectura_anterior
        if consumo < 0:
            raise ValidationFailedError("La lectura actual no puede ser menor que la lectura anterior")

        calculo = await self._calcular_monto(socio, data, consumo, now)
        decimales = calculo.pop("decimales")
        monto_total = max(redondear(calculo["subtotal"] + data.otros_cargos - data.descuentos, decimales), 0.0)

        vencida = data.fecha_vencimiento < now
        boleta = Boleta(
            numero_boleta=await self.generar_numero(now),
            socio_id=socio.id,
            fecha_emision=now,
            fecha_vencimiento=data.fecha_vencimiento,
            periodo=data.periodo,
            lectura_anterior=data.lectura_anterior,
            lectura_actual=data.lectura_actual,
            consumo_m3=consumo,
            monto_total=monto_total,
            estado=EstadoBoleta.VENCIDA.value if vencida else EstadoBoleta.PENDIENTE.value,
            detalle={**calculo, "otros_cargos": data.otros_cargos, "descuentos": data.descuentos},
        )
        await self.repo.add(boleta)
        if vencida:
            socio.deuda_total = redondear(socio.deuda_total + monto_total, 2)
            await self.users.add(socio)

        await self.notifications.notify(
            socio.id,
            "Nueva boleta disponible",
            f"Se emitió su boleta #{boleta.numero_boleta} del período {boleta.periodo}. "
            f"Monto: ${formato_clp(boleta.monto_total)}",
            tipo=TipoNotificacion.BOLETA,
            referencia_tipo="boleta",
            referencia_id=boleta.id,
            commit=False,
        )
        try:
            await self.session.commit()
        except Exception:
            self.notifications.discard_events()
            raise
        self.notifications.flush_events()
        await self.session.refresh(boleta)

        payload = BoletaRead.model_validate(boleta).model_dump(mode="json")
        self.hub.publish(user_channel(socio.id), EVENT_NUEVA_BOLETA, payload)
        self.hub.publish(ADMINS_CHANNEL, EVENT_NUEVA_BOLETA, payload)
        logger.info(f"Boleta {boleta.numero_boleta} issued for socio {socio.id}: ${monto_total} ({boleta.estado})")
        return boleta

    async def cambiar_estado(self, boleta: Boleta, nuevo_estado: EstadoBoleta | str) -> Boleta:
        """
        Move a boleta to ``nuevo_estado`` and keep the socio's debt in step.

        Changes are staged; the caller commits.

        Raises:
            ImmutableBoletaError: the boleta is paid and the move is not to ``archivada``
        """
        nuevo = EstadoBoleta(nuevo_estado).value
        anterior = boleta.estado
        if nuevo == anterior:
            return boleta
        if boleta.pagada and not (anterior == EstadoBoleta.PAGADA.value and nuevo == EstadoBoleta.ARCHIVADA.value):
            raise ImmutableBoletaError(
                f"La boleta {boleta.numero_boleta} ya fue pagada y no puede cambiar de estado",
                details={"boleta_id": boleta.id, "estado": anterior, "nuevo_estado": nuevo},
            )

        ajuste = 0.0
        if not boleta.pagada and nuevo == EstadoBoleta.VENCIDA.value:
            ajuste = boleta.monto_total
        elif anterior == EstadoBoleta.VENCIDA.value:
            ajuste = -boleta.monto_total

        boleta.estado = nuevo
        if nuevo == EstadoBoleta.PAGADA.value:
            boleta.pagada = True
            boleta.fecha_pago = utc_now()
        await self.repo.add(boleta)

        if ajuste:
            socio = await self.users.get_by_id(boleta.socio_id)
            if socio is not None:
                socio.deuda_total = max(redondear(socio.deuda_total + ajuste, 2), 0.0)
                await self.users.add(socio)

        logger.debug(f"Boleta {boleta.numero_boleta}: {anterior} -> {nuevo}")
        return boleta

    async def actualizar_estado(self, boleta_id: int, nuevo_estado: str) -> Boleta:
        """Admin state change committed in its own transaction."""
        boleta = await self.get(boleta_id)
        await self.cambiar_estado(boleta, nuevo_estado)
        await self.session.commit()
        await self.session.refresh(boleta)
        self.hub.publish(
            user_channel(boleta.socio_id),
            EVENT_BOLETA_ACTUALIZADA,
            BoletaRead.model_validate(boleta).model_dump(mode="json"),
        )
        return boleta

    async def archivar(self, boleta_id: int) -> Boleta:
        boleta = await self.get(boleta_id)
        if boleta.estado != EstadoBoleta.PAGADA.value or not boleta.pagada:
            raise ConflictError("Solo se pueden archivar boletas pagadas")
        return await self.actualizar_estado(boleta_id, EstadoBoleta.ARCHIVADA.value)

    async def anular(self, boleta_id: int) -> Boleta:
        return await self.actualizar_estado(boleta_id, EstadoBoleta.ANULADA.value)

    async def eliminar(self, boleta_id: int) -> None:
        """Delete a boleta that was never paid."""
        boleta = await self.get(boleta_id)
        if boleta.pagada or await self.pagos.has_completed_for_boleta(boleta.id):
            raise ImmutableBoletaError("No se puede eliminar una boleta con pagos registrados")
        if boleta.estado == EstadoBoleta.VENCIDA.value:
            socio = await self.users.get_by_id(boleta.socio_id)
            if socio is not None:
                socio.deuda_total = max(redondear(socio.deuda_total - boleta.monto_total, 2), 0.0)
                await self.users.add(socio)
        for pago in await self.pagos.list_for_boleta(boleta.id):
            await self.pagos.remove(pago)
        await self.repo.remove(boleta)
        await self.session.commit()
        logger.info(f"Boleta {boleta.numero_boleta} deleted")

    async def get(self, boleta_id: int) -> Boleta:
        boleta = await self.repo.get_by_id(boleta_id)
        if boleta is None:
            raise NotFoundError("Boleta no encontrada")
        return boleta

    async def get_for_user(self, user: User, boleta_id: int) -> Boleta:
        """A boleta visible to ``user``: their own, or any one for admins."""
        boleta = await self.get(boleta_id)
        if not user.is_admin and boleta.socio_id != user.id:
            raise NotFoundError("Boleta no encontrada")
        return boleta

    async def list_for_socio(self, socio: User, estado: Optional[str] = None) -> List[Boleta]:
        return await self.repo.list_for_socio(socio.id, estado)

    async def list_admin(
        self,
        estado: Optional[str] = None,
        socio_id: Optional[int] = None,
        periodo: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[List[Boleta], int]:
        items = await self.repo.list_filtered(estado, socio_id, periodo, limit=limit, offset=offset)
        total = await self.repo.count_filtered(estado, socio_id, periodo)
        return items, total

    async def list_archivadas(self, limit: int = 50, offset: int = 0) -> tuple[List[Boleta], int]:
        return await self.list_admin(estado=EstadoBoleta.ARCHIVADA.value, limit=limit, offset=offset)

    async def estadisticas(self) -> BoletaStats:
        totals = await self.repo.totals_by_estado()
        por_estado = {}
        for estado in EstadoBoleta:
            cantidad, monto = totals.get(estado.value, (0, 0.0))
            por_estado[estado.value] = EstadoTotals(cantidad=cantidad, monto=monto)
        return BoletaStats(
            total=EstadoTotals(
                cantidad=sum(t.cantidad for t in por_estado.values()),
                monto=sum(t.monto for t in por_estado.values()),
            ),
            por_estado=por_estado,
        )
