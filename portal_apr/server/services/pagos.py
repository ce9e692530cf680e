"""
Pago service.

Registers payments against a socio's boletas and drives their lifecycle
(pendiente -> completado | fallido, completado -> reembolsado). Completing a
pago marks its boleta paid through :class:`BoletaService`, which also clears
the socio's debt when the boleta was overdue.
"""

from __future__ import annotations

import secrets
import time
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.billing.tarifa import formato_clp, redondear
from portal_apr.core.database.base import utc_now
from portal_apr.core.database.entities.boletas import Boleta, EstadoBoleta
from portal_apr.core.database.entities.notifications import TipoNotificacion
from portal_apr.core.database.entities.pagos import EstadoPago, MetodoPago, Pago
from portal_apr.core.database.entities.users import User
from portal_apr.core.database.repositories.boletas import BoletaRepository
from portal_apr.core.database.repositories.pagos import PagoRepository
from portal_apr.core.database.repositories.users import UserRepository
from portal_apr.core.errors import ConflictError, NotFoundError, ValidationFailedError
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.pagos import PagoRead, PagoStats

from .boletas import BoletaService
from .notifications import NotificationService
from .realtime import ADMINS_CHANNEL, EVENT_PAGO_COMPLETADO, EventHub, get_event_hub, user_channel

logger = get_logger(__name__)


def generate_external_reference() -> str:
    """``APR-<epoch ms>-<8 hex>`` shared by the pagos of one checkout."""
    return f"APR-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class PagoService:
    """Payment registration, lifecycle and queries."""

    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None) -> None:
        self.session = session
        self.repo = PagoRepository(session)
        self.boletas = BoletaRepository(session)
        self.users = UserRepository(session)
        self.hub = hub or get_event_hub()
        self.boleta_service = BoletaService(session, self.hub)
        self.notifications = NotificationService(session, self.hub)

    async def boletas_pagables(self, socio: User, boleta_ids: Sequence[int]) -> List[Boleta]:
        """
        Load the boletas a socio wants to pay.

        Raises:
            ValidationFailedError: a boleta is missing, belongs to another socio
                or is not ``pendiente``/``vencida``
        """
        ids = list(dict.fromkeys(boleta_ids))
        if not ids:
            raise ValidationFailedError("Debe indicar al menos una boleta")
        boletas = {b.id: b for b in await self.boletas.get_many(ids)}

        invalidas = [
            boleta_id
            for boleta_id in ids
            if boleta_id not in boletas or boletas[boleta_id].socio_id != socio.id or not boletas[boleta_id].is_payable
        ]
        if invalidas:
            raise ValidationFailedError(
                "Algunas boletas no existen, no le pertenecen o no están pendientes de pago",
                details={"boleta_ids": invalidas},
            )
        return [boletas[boleta_id] for boleta_id in ids]

    async def crear_pagos_pendientes(
        self,
        socio: User,
        boletas: Sequence[Boleta],
        metodo_pago: MetodoPago,
        external_reference: Optional[str] = None,
        transaction_id: Optional[str] = None,
        detalles: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        monto: Optional[float] = None,
    ) -> List[Pago]:
        """
        Stage one pending pago per boleta, all sharing ``external_reference``.

        ``monto`` overrides the amount of a single-boleta payment; otherwise
        every pago covers its boleta's full amount.
        """
        external_reference = external_reference or generate_external_reference()
        pagos = []
        for index, boleta in enumerate(boletas):
            if transaction_id:
                tx = transaction_id if len(boletas) == 1 else f"{transaction_id}-{boleta.id}"
            else:
                tx = f"{external_reference}-{index + 1}"
            if await self.repo.get_by_transaction_id(tx) is not None:
                raise ConflictError("Ya existe un pago con este identificador de transacción", details={"transaction_id": tx})

            pago = Pago(
                boleta_id=boleta.id,
                socio_id=socio.id,
                monto=monto if monto is not None and len(boletas) == 1 else boleta.monto_total,
                metodo_pago=metodo_pago.value,
                estado_pago=EstadoPago.PENDIENTE.value,
                transaction_id=tx,
                external_reference=external_reference,
                detalles_pago=dict(detalles or {}),
                metadata_json=dict(metadata or {}),
            )
            pagos.append(await self.repo.add(pago))
        return pagos

    async def registrar_pago(
        self,
        socio: User,
        boleta_ids: Sequence[int],
        metodo_pago: MetodoPago,
        transaction_id: Optional[str] = None,
        detalles: Optional[Dict[str, Any]] = None,
        completar: bool = False,
        monto: Optional[float] = None,
    ) -> List[Pago]:
        """
        Register a payment for one or more of the socio's boletas.

        Args:
            socio: Owner of the boletas
            boleta_ids: Boletas covered by the payment
            metodo_pago: Payment method
            transaction_id: Caller's transaction id, suffixed per boleta when several
            detalles: Free-form payment details
            completar: Complete immediately (offline payments recorded by an admin)
            monto: Amount received, only for single-boleta payments

        Returns:
            The created pagos
        """
        boletas = await self.boletas_pagables(socio, boleta_ids)
        pagos = await self.crear_pagos_pendientes(
            socio, boletas, metodo_pago, transaction_id=transaction_id, detalles=detalles, monto=monto
        )
        await self.session.commit()
        logger.info(
            f"Registered {len(pagos)} pago(s) for socio {socio.id} via {metodo_pago.value}, "
            f"reference={pagos[0].external_reference}"
        )

        if completar:
            for pago in pagos:
                await self.completar_pago(pago)
        return pagos

    async def registrar_pago_manual(
        self,
        socio_id: int,
        boleta_ids: Sequence[int],
        metodo_pago: MetodoPago,
        transaction_id: Optional[str] = None,
        detalles: Optional[Dict[str, Any]] = None,
        monto: Optional[float] = None,
    ) -> List[Pago]:
        """Admin-recorded offline payment, completed on the spot."""
        socio = await self.users.get_by_id(socio_id)
        if socio is None or not socio.is_socio:
            raise ValidationFailedError("Socio no encontrado", details={"socio_id": socio_id})
        if metodo_pago in (MetodoPago.FLOW, MetodoPago.MERCADOPAGO, MetodoPago.PAYPAL):
            raise ValidationFailedError("Los pagos en línea se registran a través de su pasarela")
        return await self.registrar_pago(
            socio, boleta_ids, metodo_pago, transaction_id=transaction_id, detalles=detalles, completar=True, monto=monto
        )

    async def completar_pago(self, pago: Pago, detalles: Optional[Dict[str, Any]] = None) -> Pago:
        """
        Mark a pago completed and its boleta paid.

        Completing an already completed pago does nothing. Any amount above
        the boleta's total is credited to the socio's balance.
        """
        if pago.estado_pago == EstadoPago.COMPLETADO.value:
            return pago
        if pago.estado_pago != EstadoPago.PENDIENTE.value:
            raise ConflictError(f"No se puede completar un pago en estado {pago.estado_pago}")

        pago.estado_pago = EstadoPago.COMPLETADO.value
        pago.fecha_pago = utc_now()
        if detalles:
            pago.detalles_pago = {**(pago.detalles_pago or {}), **detalles}
        await self.repo.add(pago)

        boleta = await self.boletas.get_by_id(pago.boleta_id)
        if boleta is None:
            logger.error(f"Pago {pago.id} references missing boleta {pago.boleta_id}")
        elif not boleta.pagada:
            await self.boleta_service.cambiar_estado(boleta, EstadoBoleta.PAGADA)

        excedente = redondear(pago.monto - boleta.monto_total, 2) if boleta is not None else 0.0
        if excedente > 0:
            socio = await self.users.get_by_id(pago.socio_id)
            if socio is not None:
                socio.saldo_actual = redondear(socio.saldo_actual + excedente, 2)
                await self.users.add(socio)
                logger.info(f"Credited ${excedente} overpayment to socio {socio.id}")

        numero = boleta.numero_boleta if boleta is not None else pago.boleta_id
        await self.notifications.notify(
            pago.socio_id,
            "Pago confirmado",
            f"Se confirmó el pago de ${formato_clp(pago.monto)} de su boleta #{numero}",
            tipo=TipoNotificacion.PAGO,
            referencia_tipo="pago",
            referencia_id=pago.id,
            commit=False,
        )
        try:
            await self.session.commit()
        except Exception:
            self.notifications.discard_events()
            raise
        self.notifications.flush_events()
        await self.session.refresh(pago)

        payload = PagoRead.model_validate(pago).model_dump(mode="json")
        self.hub.publish(user_channel(pago.socio_id), EVENT_PAGO_COMPLETADO, payload)
        self.hub.publish(ADMINS_CHANNEL, EVENT_PAGO_COMPLETADO, payload)
        logger.info(f"Pago {pago.id} completed for boleta {pago.boleta_id} via {pago.metodo_pago}")
        return pago

    async def fallar_pago(self, pago: Pago, motivo: str) -> Pago:
        if pago.estado_pago != EstadoPago.PENDIENTE.value:
            raise ConflictError(f"No se puede marcar como fallido un pago en estado {pago.estado_pago}")
        pago.estado_pago = EstadoPago.FALLIDO.value
        pago.metadata_json = {**(pago.metadata_json or {}), "motivo_fallo": motivo}
        pago = await self.repo.update(pago)
        logger.warning(f"Pago {pago.id} failed: {motivo}")
        return pago

    async def reembolsar_pago(self, pago: Pago, motivo: Optional[str] = None) -> Pago:
        """Refund a completed pago. The boleta stays paid."""
        if pago.estado_pago != EstadoPago.COMPLETADO.value:
            raise ConflictError("Solo se pueden reembolsar pagos completados")
        pago.estado_pago = EstadoPago.REEMBOLSADO.value
        pago.metadata_json = {
            **(pago.metadata_json or {}),
            "reembolsado_en": utc_now().isoformat(),
            "motivo_reembolso": motivo,
        }
        pago = await self.repo.update(pago)
        logger.info(f"Pago {pago.id} refunded")
        return pago

    async def get(self, pago_id: int) -> Pago:
        pago = await self.repo.get_by_id(pago_id)
        if pago is None:
            raise NotFoundError("Pago no encontrado")
        return pago

    async def get_for_socio(self, socio: User, pago_id: int) -> Pago:
        pago = await self.get(pago_id)
        if pago.socio_id != socio.id:
            raise NotFoundError("Pago no encontrado")
        return pago

    async def historial(self, socio: User, limit: int = 50, offset: int = 0) -> List[Pago]:
        return await self.repo.list_for_socio(socio.id, limit=limit, offset=offset)

    async def list_admin(
        self,
        estado_pago: Optional[str] = None,
        metodo_pago: Optional[str] = None,
        socio_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[List[Pago], int]:
        items = await self.repo.list_filtered(estado_pago, metodo_pago, socio_id, limit=limit, offset=offset)
        filters = {"estado_pago": estado_pago, "metodo_pago": metodo_pago, "socio_id": socio_id}
        return items, await self.repo.count(filters)

    async def estadisticas(self) -> PagoStats:
        por_metodo = await self.repo.totals_by("metodo_pago")
        por_estado = await self.repo.totals_by("estado_pago")
        return PagoStats(
            por_metodo={k: {"cantidad": c, "monto": m} for k, (c, m) in por_metodo.items()},
            por_estado={k: {"cantidad": c, "monto": m} for k, (c, m) in por_estado.items()},
            monto_completado=por_estado.get(EstadoPago.COMPLETADO.value, (0, 0.0))[1],
        )
