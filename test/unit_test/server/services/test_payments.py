"""
Unit tests for PaymentService.

The gateway clients are replaced with AsyncMocks so the checkout and
confirmation flows can be followed through the database.
"""

from unittest.mock import AsyncMock

import pytest

from portal_apr.core.database.entities import EstadoBoleta, EstadoPago, MetodoPago
from portal_apr.core.database.repositories.pagos import PagoRepository
from portal_apr.core.errors import NotFoundError, PaymentGatewayError, ValidationFailedError
from portal_apr.server.services.gateways.flow import FlowClient, FlowPayment, FlowPaymentStatus
from portal_apr.server.services.gateways.mercadopago import MercadoPagoClient, MercadoPagoPayment, Preference
from portal_apr.server.services.gateways.paypal import PayPalClient, PayPalOrder
from portal_apr.server.services.payments import PaymentService

pytestmark = pytest.mark.asyncio


@pytest.fixture
def flow():
    client = AsyncMock(spec=FlowClient)
    client.create_payment.return_value = FlowPayment(url="https://flow.mock/pay?token=tok-1", token="tok-1")
    return client


@pytest.fixture
def mercadopago():
    client = AsyncMock(spec=MercadoPagoClient)
    client.create_preference.return_value = Preference(id="pref-1", init_point="https://mp.mock/init")
    return client


@pytest.fixture
def paypal():
    client = AsyncMock(spec=PayPalClient)
    client.create_order.return_value = PayPalOrder(
        id="ORDER-1", status="CREATED", links=[{"href": "https://paypal.mock/approve", "rel": "approve"}]
    )
    client.capture_order.return_value = PayPalOrder(id="ORDER-1", status="COMPLETED")
    return client


@pytest.fixture
def service(session, hub, flow, mercadopago, paypal) -> PaymentService:
    return PaymentService(session, hub, flow=flow, mercadopago=mercadopago, paypal=paypal)


@pytest.fixture
async def boletas(socio, make_boleta):
    return [await make_boleta(socio, monto=1000), await make_boleta(socio, monto=2500)]


class TestFlow:
    async def test_checkout(self, service, session, flow, socio, boletas):
        response = await service.flow_checkout(socio, [b.id for b in boletas])

        kwargs = flow.create_payment.call_args.kwargs
        assert kwargs["amount"] == 3500
        assert kwargs["commerce_order"] == response.external_reference
        assert kwargs["url_confirmation"].endswith("/api/v1/flow/webhook")
        assert response.payment_url == "https://flow.mock/pay?token=tok-1"
        assert response.provider_id == "tok-1"
        assert response.monto == 3500

        pagos = await PagoRepository(session).list_by_external_reference(response.external_reference)
        assert len(pagos) == 2
        assert {p.metodo_pago for p in pagos} == {"flow"}
        assert all(p.metadata_json["flow_token"] == "tok-1" for p in pagos)

    async def test_checkout_gateway_error_discards_pagos(self, service, session, flow, socio, boletas):
        boleta_ids = [b.id for b in boletas]
        flow.create_payment.side_effect = PaymentGatewayError("flow", "HTTP 500")

        with pytest.raises(PaymentGatewayError):
            await service.flow_checkout(socio, boleta_ids)

        assert await PagoRepository(session).count() == 0

    async def test_checkout_zero_total(self, service, socio, make_boleta):
        boleta = await make_boleta(socio, monto=0)

        with pytest.raises(ValidationFailedError):
            await service.flow_checkout(socio, [boleta.id])

    async def test_webhook_paid(self, service, flow, socio, boletas):
        checkout = await service.flow_checkout(socio, [b.id for b in boletas])
        flow.get_payment_status.return_value = FlowPaymentStatus(
            commerceOrder=checkout.external_reference, status=2, flowOrder=99, payer="socio@apr.test"
        )

        result = await service.flow_webhook("tok-1")

        assert result.estado == "pagado"
        assert result.pagos_actualizados == 2
        assert all(b.estado == "pagada" for b in boletas)

    async def test_webhook_retry_is_idempotent(self, service, flow, socio, boletas):
        checkout = await service.flow_checkout(socio, [b.id for b in boletas])
        flow.get_payment_status.return_value = FlowPaymentStatus(commerceOrder=checkout.external_reference, status=2)
        await service.flow_webhook("tok-1")

        result = await service.flow_webhook("tok-1")

        assert result.pagos_actualizados == 0

    async def test_webhook_rejected(self, service, session, flow, socio, boletas):
        checkout = await service.flow_checkout(socio, [boletas[0].id])
        flow.get_payment_status.return_value = FlowPaymentStatus(commerceOrder=checkout.external_reference, status=3)

        result = await service.flow_webhook("tok-1")

        pago = (await PagoRepository(session).list_by_external_reference(checkout.external_reference))[0]
        assert result.estado == "rechazado"
        assert pago.estado_pago == "fallido"
        assert boletas[0].estado == "pendiente"

    async def test_webhook_pending_changes_nothing(self, service, flow, socio, boletas):
        checkout = await service.flow_checkout(socio, [boletas[0].id])
        flow.get_payment_status.return_value = FlowPaymentStatus(commerceOrder=checkout.external_reference, status=1)

        result = await service.flow_webhook("tok-1")

        assert result.estado == "pendiente"
        assert result.pagos_actualizados == 0

    async def test_webhook_falls_back_to_token(self, service, flow, socio, boletas):
        await service.flow_checkout(socio, [boletas[0].id])
        flow.get_payment_status.return_value = FlowPaymentStatus(commerceOrder="otra-orden", status=2)

        result = await service.flow_webhook("tok-1")

        assert result.pagos_actualizados == 1

    async def test_webhook_unknown_order(self, service, flow):
        flow.get_payment_status.return_value = FlowPaymentStatus(commerceOrder="APR-X", status=2)

        with pytest.raises(NotFoundError):
            await service.flow_webhook("tok-x")

    async def test_webhook_without_token(self, service):
        with pytest.raises(ValidationFailedError):
            await service.flow_webhook("")

    async def test_payment_status(self, service, flow):
        flow.get_payment_status.return_value = FlowPaymentStatus(commerceOrder="APR-1", status=4, amount=1500)

        status = await service.flow_payment_status("tok-1")

        assert status.estado == "anulado"
        assert status.commerce_order == "APR-1"
        assert status.amount == 1500


class TestMercadoPago:
    async def test_checkout_skips_zero_amount(self, service, session, mercadopago, socio, make_boleta):
        free = await make_boleta(socio, monto=0)
        billed = await make_boleta(socio, monto=4200.4)

        response = await service.mercadopago_checkout(socio, [free.id, billed.id])

        items = mercadopago.create_preference.call_args.args[0]
        assert [item.id for item in items] == [f"boleta-{billed.id}"]
        assert items[0].unit_price == 4200
        assert response.payment_url == "https://mp.mock/init"
        assert response.provider_id == "pref-1"
        pagos = await PagoRepository(session).list_by_external_reference(response.external_reference)
        assert [p.boleta_id for p in pagos] == [billed.id]
        assert pagos[0].metadata_json["mercadopago_preference_id"] == "pref-1"

    async def test_webhook_approved(self, service, mercadopago, socio, boletas):
        checkout = await service.mercadopago_checkout(socio, [b.id for b in boletas])
        mercadopago.get_payment.return_value = MercadoPagoPayment(
            id=555, status="approved", external_reference=checkout.external_reference
        )

        result = await service.mercadopago_webhook("payment", "555")

        mercadopago.get_payment.assert_awaited_once_with("555")
        assert result.pagos_actualizados == 2
        assert all(b.pagada for b in boletas)

    async def test_webhook_rejected(self, service, session, mercadopago, socio, boletas):
        checkout = await service.mercadopago_checkout(socio, [boletas[0].id])
        mercadopago.get_payment.return_value = MercadoPagoPayment(
            id=556, status="rejected", status_detail="cc_rejected_other_reason", external_reference=checkout.external_reference
        )

        result = await service.mercadopago_webhook("payment", "556")

        pago = (await PagoRepository(session).list_by_external_reference(checkout.external_reference))[0]
        assert result.pagos_actualizados == 1
        assert pago.estado_pago == "fallido"
        assert "cc_rejected_other_reason" in pago.metadata_json["motivo_fallo"]

    @pytest.mark.parametrize("topic, payment_id", [("merchant_order", "1"), ("payment", None), (None, "1")])
    async def test_other_topics_ignored(self, service, mercadopago, topic, payment_id):
        result = await service.mercadopago_webhook(topic, payment_id)

        assert result.estado == "ignorado"
        mercadopago.get_payment.assert_not_awaited()

    async def test_payment_without_reference(self, service, mercadopago):
        mercadopago.get_payment.return_value = MercadoPagoPayment(id=1, status="approved")

        result = await service.mercadopago_webhook("payment", "1")

        assert result.estado == "approved"
        assert result.pagos_actualizados == 0


class TestPayPal:
    async def test_create_order(self, service, session, paypal, socio, boletas):
        response = await service.paypal_create_order(socio, [b.id for b in boletas])

        assert paypal.create_order.call_args.args[0] == 3500
        assert response.payment_url == "https://paypal.mock/approve"
        assert response.provider_id == "ORDER-1"
        pagos = await PagoRepository(session).list_by_external_reference(response.external_reference)
        assert all(p.metadata_json == {"monto_clp": 3500, "paypal_order_id": "ORDER-1"} for p in pagos)

    async def test_capture(self, service, paypal, socio, boletas):
        await service.paypal_create_order(socio, [b.id for b in boletas])

        result = await service.paypal_capture(socio, "ORDER-1")

        assert result.estado == "COMPLETED"
        assert result.pagos_actualizados == 2
        assert all(b.estado == "pagada" for b in boletas)

    async def test_capture_not_completed(self, service, paypal, socio, boletas):
        await service.paypal_create_order(socio, [boletas[0].id])
        paypal.capture_order.return_value = PayPalOrder(id="ORDER-1", status="PAYER_ACTION_REQUIRED")

        result = await service.paypal_capture(socio, "ORDER-1")

        assert result.pagos_actualizados == 0
        assert boletas[0].pagada is False

    async def test_capture_other_socios_order(self, service, paypal, socio, boletas, make_user):
        await service.paypal_create_order(socio, [boletas[0].id])

        with pytest.raises(NotFoundError):
            await service.paypal_capture(await make_user(), "ORDER-1")
        paypal.capture_order.assert_not_awaited()


class TestManualAndOnlineMix:
    async def test_paid_boleta_cannot_be_checked_out(self, service, socio, make_boleta, make_pago):
        boleta = await make_boleta(socio, estado=EstadoBoleta.PAGADA)
        await make_pago(boleta, estado=EstadoPago.COMPLETADO, metodo=MetodoPago.EFECTIVO)

        with pytest.raises(ValidationFailedError):
            await service.flow_checkout(socio, [boleta.id])
