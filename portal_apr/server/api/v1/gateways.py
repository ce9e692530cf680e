"""
Payment Gateway Endpoints.

Checkout and confirmation for Flow, MercadoPago and PayPal. Webhooks are
unauthenticated: they only carry an identifier, and the payment state is
always fetched back from the gateway before anything changes.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Form, Request

from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.pagos import (
    CheckoutRequest,
    CheckoutResponse,
    FlowPaymentStatusRead,
    PaymentNotificationResult,
    PayPalCaptureRequest,
)
from portal_apr.server.services.deps import CurrentUser, EventHubDep, SessionDep, SocioUser
from portal_apr.server.services.payments import PaymentService

logger = get_logger(__name__)

flow_router = APIRouter()
mercadopago_router = APIRouter()
paypal_router = APIRouter()


# Flow


@flow_router.post("/create-payment", response_model=CheckoutResponse, summary="Flow Checkout")
async def flow_create_payment(data: CheckoutRequest, socio: SocioUser, session: SessionDep, hub: EventHubDep):
    return await PaymentService(session, hub).flow_checkout(socio, data.boleta_ids)


@flow_router.post(
    "/webhook",
    response_model=PaymentNotificationResult,
    summary="Flow Confirmation",
    description="Called by Flow with the payment `token` as form data.",
)
async def flow_webhook(session: SessionDep, hub: EventHubDep, token: str = Form(default="")):
    logger.info("Flow confirmation received")
    return await PaymentService(session, hub).flow_webhook(token)


@flow_router.get("/payment-status/{token}", response_model=FlowPaymentStatusRead, summary="Flow Payment Status")
async def flow_payment_status(token: str, _: CurrentUser, session: SessionDep):
    return await PaymentService(session).flow_payment_status(token)


# MercadoPago


@mercadopago_router.post("/create-preference", response_model=CheckoutResponse, summary="MercadoPago Checkout")
async def mercadopago_create_preference(
    data: CheckoutRequest, socio: SocioUser, session: SessionDep, hub: EventHubDep
):
    return await PaymentService(session, hub).mercadopago_checkout(socio, data.boleta_ids)


async def _notification_body(request: Request) -> Dict[str, Any]:
    if not await request.body():
        return {}
    try:
        body = await request.json()
    except ValueError:
        logger.warning("MercadoPago notification with a non-JSON body")
        return {}
    return body if isinstance(body, dict) else {}


@mercadopago_router.post(
    "/webhook",
    response_model=PaymentNotificationResult,
    summary="MercadoPago Notification",
    description=(
        "MercadoPago sends `type` and `data.id` either in the query string or in a JSON body. "
        "Only `payment` notifications are processed."
    ),
)
async def mercadopago_webhook(request: Request, session: SessionDep, hub: EventHubDep):
    body = await _notification_body(request)
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    topic: Optional[str] = request.query_params.get("type") or request.query_params.get("topic") or body.get("type")
    payment_id = request.query_params.get("data.id") or request.query_params.get("id") or data.get("id")
    logger.info(f"MercadoPago notification: type={topic}, id={payment_id}")
    return await PaymentService(session, hub).mercadopago_webhook(topic, str(payment_id) if payment_id else None)


# PayPal


@paypal_router.post("/create-order", response_model=CheckoutResponse, summary="PayPal Order")
async def paypal_create_order(data: CheckoutRequest, socio: SocioUser, session: SessionDep, hub: EventHubDep):
    return await PaymentService(session, hub).paypal_create_order(socio, data.boleta_ids)


@paypal_router.post("/capture-order", response_model=PaymentNotificationResult, summary="PayPal Capture")
async def paypal_capture_order(
    data: PayPalCaptureRequest, socio: SocioUser, session: SessionDep, hub: EventHubDep
):
    return await PaymentService(session, hub).paypal_capture(socio, data.order_id)
