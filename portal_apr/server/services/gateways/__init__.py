"""Payment gateway HTTP clients."""

from .base import GatewayClient
from .flow import FlowClient, FlowStatus, sign_params
from .mercadopago import MercadoPagoClient, PreferenceItem
from .paypal import PayPalClient

__all__ = [
    "FlowClient",
    "FlowStatus",
    "GatewayClient",
    "MercadoPagoClient",
    "PayPalClient",
    "PreferenceItem",
    "sign_params",
]
