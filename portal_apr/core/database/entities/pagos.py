"""
Pago (payment) entity.

Each row pays exactly one boleta. Checkouts covering several boletas create
one pago per boleta sharing an ``external_reference``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, utc_now


class MetodoPago(str, Enum):
    WEBPAY = "webpay"
    FLOW = "flow"
    MERCADOPAGO = "mercadopago"
    PAYPAL = "paypal"
    TRANSFERENCIA = "transferencia"
    EFECTIVO = "efectivo"


class EstadoPago(str, Enum):
    PENDIENTE = "pendiente"
    COMPLETADO = "completado"
    FALLIDO = "fallido"
    REEMBOLSADO = "reembolsado"


class Pago(Base, table=True):
    """Payment attempt against one boleta.

    Table: pagos
    """

    __tablename__ = "pagos"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)

    boleta_id: int = Field(foreign_key="boletas.id", index=True)
    socio_id: int = Field(foreign_key="users.id", index=True)

    monto: float = Field(ge=0)
    fecha_pago: datetime = Field(default_factory=utc_now, index=True)
    metodo_pago: str = Field(max_length=20)
    estado_pago: str = Field(default=EstadoPago.PENDIENTE.value, max_length=20, index=True)

    transaction_id: str = Field(max_length=120, unique=True, index=True)
    external_reference: Optional[str] = Field(default=None, max_length=120, index=True)

    detalles_pago: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    metadata_json: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata_json", JSON, nullable=False)
    )

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"Pago(id={self.id}, boleta_id={self.boleta_id}, estado={self.estado_pago})"
