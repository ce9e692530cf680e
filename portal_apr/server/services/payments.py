"""
Online payment orchestration.

Ties the gateway clients to the pago lifecycle:

1. checkout: validate the socio's boletas, stage one pending pago per boleta
   sharing a reference, ask the gateway for a payment URL. If the gateway
   fails the staged pagos are rolled back.
2. confirmation (Flow/MercadoPago webhooks, PayPal capture): look the pagos up
   by reference, complete or fail them, then reconcile the boletas so a
   partial failure is repaired right away (and otherwise by the auto-sync).
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.core.database.entities.boletas import Boleta
from portal_apr.core.database.entities.pagos import EstadoPago, MetodoPago, Pago
from portal_apr.core.database.entities.users import User
from portal_apr.core.errors import NotFoundError, PaymentGatewayError, ValidationFailedError
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.pagos import CheckoutResponse, FlowPaymentStatusRead, PaymentNotificationResult
from portal_apr.server.core.config import settings

from .gateways.flow import FlowClient, FlowStatus
from .gateways.mercadopago import APPROVED, FAILED_STATUSES, MercadoPagoClient, PreferenceItem
from .gateways.paypal import COMPLETED, PayPalClient
from .pagos import PagoService, generate_external_reference
from .realtime import EventHub
from .reconciliation import ReconciliationService

logger = get_logger(__name__)


def _flow_estado(code: int) -> str:
    try:
        return FlowStatus(code).name.lower()
    except ValueError:
        return "desconocido"


def _total(boletas: Sequence[Boleta]) -> float:
    total = sum(b.monto_total for b in boletas)
    if total <= 0:
        raise ValidationFailedError("El monto total debe ser mayor a cero")
    return total


class PaymentService:
    """Checkout and confirmation flows for Flow, MercadoPago and PayPal."""

    def __init__(
        self,
        session: AsyncSession,
        hub: Optional[EventHub] = None,
        *,
        flow: Optional[FlowClient] = None,
        mercadopago: Optional[MercadoPagoClient] = None,
        paypal: Optional[PayPalClient] = None,
    ) -> None:
        self.session = session
        self.pagos = PagoService(session, hub)
        self.reconciliation = ReconciliationService(session, hub)
        self._flow = flow
        self._mercadopago = mercadopago
        self._paypal = paypal

    @property
    def flow(self) -> FlowClient:
        if self._flow is None:
            self._flow = FlowClient()
        return self._flow

    @property
    def mercadopago(self) -> MercadoPagoClient:
        if self._mercadopago is None:
            self._mercadopago = MercadoPagoClient()
        return self._mercadopago

    @property
    def paypal(self) -> PayPalClient:
        if self._paypal is None:
            self._paypal = PayPalClient()
        return self._paypal

    async def _set_metadata(self, pagos: Sequence[Pago], **values: object) -> None:
        for pago in pagos:
            # Reassign so the JSON column is flagged dirty
            pago.metadata_json = {**(pago.metadata_json or {}), **values}
            self.session.add(pago)
        await self.session.commit()

    async def _confirm(
        self, pagos: Sequence[Pago], aprobado: bool, motivo: str, detalles: Optional[Dict[str, object]] = None
    ) -> int:
        """Complete or fail the pending pagos; returns how many changed."""
        changed = 0
        for pago in pagos:
            if pago.estado_pago != EstadoPago.PENDIENTE.value:
                continue
            if aprobado:
                await self.pagos.completar_pago(pago, detalles)
            else:
                await self.pagos.fallar_pago(pago, motivo)
            changed += 1
        return changed

    # ------------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------------

    async def flow_checkout(self, socio: User, boleta_ids: Sequence[int]) -> CheckoutResponse:
        boletas = await self.pagos.boletas_pagables(socio, boleta_ids)
        total = _total(boletas)
        commerce_order = generate_external_reference()

        pagos = await self.pagos.crear_pagos_pendientes(
            socio,
            boletas,
            MetodoPago.FLOW,
            external_reference=commerce_order,
            metadata={"commerce_order": commerce_order},
        )
        try:
            payment = await self.flow.create_payment(
                commerce_order=commerce_order,
                subject=f"Pago de {len(boletas)} boleta(s) - Portal APR",
                amount=total,
                email=socio.email,
                url_confirmation=f"{settings.backend_url}/api/v1/flow/webhook",
                url_return=f"{settings.frontend_url}/#/payment-success",
                optional={"optional": json.dumps({"rut": socio.rut, "socio_id": socio.id})},
            )
        except PaymentGatewayError:
            await self.session.rollback()
            raise

        await self._set_metadata(pagos, flow_token=payment.token, flow_url=payment.url)
        logger.info(f"Flow checkout {commerce_order}: {len(pagos)} pago(s), ${total}")
        return CheckoutResponse(
            payment_url=payment.url, external_reference=commerce_order, monto=total, provider_id=payment.token
        )

    async def flow_webhook(self, token: str) -> PaymentNotificationResult:
        if not token:
            raise ValidationFailedError("Token de Flow no proporcionado")
        status = await self.flow.get_payment_status(token)
        pagos = await self.pagos.repo.list_by_external_reference(status.commerceOrder)
        if not pagos:
            pagos = await self.pagos.repo.list_by_metadata(MetodoPago.FLOW, "flow_token", token)
        if not pagos:
            logger.warning(f"Flow webhook for unknown order {status.commerceOrder}")
            raise NotFoundError("No se encontraron pagos para esta orden de Flow")

        result = PaymentNotificationResult(
            estado=_flow_estado(status.status), external_reference=status.commerceOrder
        )
        if status.status == FlowStatus.PAGADO:
            result.pagos_actualizados = await self._confirm(
                pagos, True, "", {"flow_order": status.flowOrder, "payer": status.payer}
            )
            result.boletas_sincronizadas = await self.reconciliation.sync_by_external_reference(status.commerceOrder)
        elif status.status in (FlowStatus.RECHAZADO, FlowStatus.ANULADO):
            result.pagos_actualizados = await self._confirm(pagos, False, f"Flow status {status.status}")
        logger.info(f"Flow webhook {status.commerceOrder}: status={status.status}, updated={result.pagos_actualizados}")
        return result

    async def flow_payment_status(self, token: str) -> FlowPaymentStatusRead:
        status = await self.flow.get_payment_status(token)
        return FlowPaymentStatusRead(
            token=token,
            commerce_order=status.commerceOrder,
            status=status.status,
            estado=_flow_estado(status.status),
            amount=status.amount,
        )

    # ------------------------------------------------------------------
    # MercadoPago
    # ------------------------------------------------------------------

    async def mercadopago_checkout(self, socio: User, boleta_ids: Sequence[int]) -> CheckoutResponse:
        # MercadoPago rejects items priced at 0
        boletas = [b for b in await self.pagos.boletas_pagables(socio, boleta_ids) if b.monto_total > 0]
        total = _total(boletas)
        external_reference = generate_external_reference()

        pagos = await self.pagos.crear_pagos_pendientes(
            socio, boletas, MetodoPago.MERCADOPAGO, external_reference=external_reference
        )
        items = [
            PreferenceItem(
                id=f"boleta-{b.id}",
                title=f"Boleta {b.numero_boleta} - {b.periodo}",
                unit_price=int(round(b.monto_total)),
            )
            for b in boletas
        ]
        try:
            preference = await self.mercadopago.create_preference(
                items,
                external_reference=external_reference,
                notification_url=f"{settings.backend_url}/api/v1/mercadopago/webhook",
                back_url=settings.frontend_url,
                payer={"name": socio.nombres, "surname": socio.apellidos, "email": socio.email},
                metadata={"socio_id": socio.id, "boleta_ids": [b.id for b in boletas]},
            )
        except PaymentGatewayError:
            await self.session.rollback()
            raise

        await self._set_metadata(pagos, mercadopago_preference_id=preference.id)
        return CheckoutResponse(
            payment_url=preference.init_point,
            external_reference=external_reference,
            monto=total,
            provider_id=preference.id,
        )

    async def mercadopago_webhook(self, topic: Optional[str], payment_id: Optional[str]) -> PaymentNotificationResult:
        """Handle a ``type=payment`` notification; other topics are acknowledged and ignored."""
        if topic != "payment" or not payment_id:
            return PaymentNotificationResult(estado="ignorado")

        payment = await self.mercadopago.get_payment(str(payment_id))
        result = PaymentNotificationResult(estado=payment.status, external_reference=payment.external_reference)
        if not payment.external_reference:
            logger.warning(f"MercadoPago payment {payment.id} has no external reference")
            return result

        pagos = await self.pagos.repo.list_by_external_reference(payment.external_reference)
        if payment.status == APPROVED:
            result.pagos_actualizados = await self._confirm(
                pagos, True, "", {"mercadopago_payment_id": str(payment.id)}
            )
            result.boletas_sincronizadas = await self.reconciliation.sync_by_external_reference(
                payment.external_reference
            )
        elif payment.status in FAILED_STATUSES:
            result.pagos_actualizados = await self._confirm(
                pagos, False, f"MercadoPago {payment.status}: {payment.status_detail or ''}".strip()
            )
        logger.info(
            f"MercadoPago webhook {payment.external_reference}: status={payment.status}, "
            f"updated={result.pagos_actualizados}"
        )
        return result

    # ------------------------------------------------------------------
    # PayPal
    # ------------------------------------------------------------------

    async def paypal_create_order(self, socio: User, boleta_ids: Sequence[int]) -> CheckoutResponse:
        boletas = await self.pagos.boletas_pagables(socio, boleta_ids)
        total = _total(boletas)
        external_reference = generate_external_reference()

        pagos = await self.pagos.crear_pagos_pendientes(
            socio,
            boletas,
            MetodoPago.PAYPAL,
            external_reference=external_reference,
            metadata={"monto_clp": total},
        )
        try:
            order = await self.paypal.create_order(
                total,
                external_reference=external_reference,
                description=f"Pago de {len(boletas)} boleta(s) - Portal APR",
                return_url=f"{settings.frontend_url}/payment-success?provider=paypal",
                cancel_url=f"{settings.frontend_url}/payment-failure?provider=paypal",
            )
        except PaymentGatewayError:
            await self.session.rollback()
            raise

        await self._set_metadata(pagos, paypal_order_id=order.id)
        return CheckoutResponse(
            payment_url=order.approval_url or "",
            external_reference=external_reference,
            monto=total,
            provider_id=order.id,
        )

    async def paypal_capture(self, socio: User, order_id: str) -> PaymentNotificationResult:
        pagos: List[Pago] = [
            p
            for p in await self.pagos.repo.list_by_metadata(MetodoPago.PAYPAL, "paypal_order_id", order_id)
            if p.socio_id == socio.id
        ]
        if not pagos:
            raise NotFoundError("No se encontraron pagos para esta orden de PayPal")

        order = await self.paypal.capture_order(order_id)
        result = PaymentNotificationResult(estado=order.status, external_reference=pagos[0].external_reference)
        if order.status == COMPLETED:
            result.pagos_actualizados = await self._confirm(pagos, True, "", {"paypal_order_id": order_id})
            result.boletas_sincronizadas = await self.reconciliation.sync_by_paypal_order_id(order_id)
        logger.info(f"PayPal capture {order_id}: status={order.status}, updated={result.pagos_actualizados}")
        return result
