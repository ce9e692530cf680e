"""
Pago I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from portal_apr.core.database.entities.pagos import MetodoPago


class PagoCreate(BaseModel):
    """A socio registering a payment for one or more of their boletas."""

    boleta_ids: List[int] = Field(min_length=1)
    metodo_pago: MetodoPago
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    detalles_pago: Dict[str, Any] = Field(default_factory=dict)


class PagoManualCreate(PagoCreate):
    """Admin recording an offline payment (cash or transfer) for a socio."""

    socio_id: int
    metodo_pago: MetodoPago = MetodoPago.EFECTIVO
    monto: Optional[float] = Field(default=None, gt=0, description="Amount received; defaults to the boleta amount")


class PagoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    boleta_id: int
    socio_id: int
    monto: float
    fecha_pago: datetime
    metodo_pago: str
    estado_pago: str
    transaction_id: str
    external_reference: Optional[str] = None
    detalles_pago: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    created_at: datetime


class PagoPage(BaseModel):
    items: List[PagoRead]
    total: int
    limit: int
    offset: int


class PagoStats(BaseModel):
    por_metodo: Dict[str, Dict[str, float]]
    por_estado: Dict[str, Dict[str, float]]
    monto_completado: float


class CheckoutRequest(BaseModel):
    """Gateway checkout for a socio's boletas."""

    boleta_ids: List[int] = Field(min_length=1)


class CheckoutResponse(BaseModel):
    payment_url: str
    external_reference: str
    monto: float
    provider_id: Optional[str] = Field(default=None, description="Token, preference id or order id of the gateway")


class PayPalCaptureRequest(BaseModel):
    order_id: str


class PaymentRefundRequest(BaseModel):
    motivo: Optional[str] = None


class PaymentNotificationResult(BaseModel):
    """Outcome of a gateway confirmation (webhook or capture)."""

    estado: str
    external_reference: Optional[str] = None
    pagos_actualizados: int = 0
    boletas_sincronizadas: int = 0


class FlowPaymentStatusRead(BaseModel):
    token: str
    commerce_order: str
    status: int
    estado: str
    amount: float
