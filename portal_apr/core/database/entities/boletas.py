"""
Boleta (invoice) entity.

A boleta bills one socio for one period. ``estado`` is the workflow state
while ``pagada`` is a permanent flag: once set the boleta never changes state
again.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, utc_now


class EstadoBoleta(str, Enum):
    PENDIENTE = "pendiente"
    PAGADA = "pagada"
    VENCIDA = "vencida"
    ANULADA = "anulada"
    ARCHIVADA = "archivada"


PAYABLE_ESTADOS = (EstadoBoleta.PENDIENTE.value, EstadoBoleta.VENCIDA.value)


class Boleta(Base, table=True):
    """Invoice for a billing period.

    Table: boletas
    """

    __tablename__ = "boletas"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)

    numero_boleta: str = Field(max_length=20, unique=True, index=True, description="YYYYMM + sequence")
    socio_id: int = Field(foreign_key="users.id", index=True)

    fecha_emision: datetime = Field(default_factory=utc_now, index=True)
    fecha_vencimiento: datetime = Field(index=True)
    periodo: str = Field(max_length=40, description="Billed period label, e.g. 2024-03")

    lectura_anterior: float = Field(ge=0)
    lectura_actual: float = Field(ge=0)
    consumo_m3: float = Field(ge=0)
    monto_total: float = Field(ge=0)

    estado: str = Field(default=EstadoBoleta.PENDIENTE.value, max_length=20, index=True)
    pagada: bool = Field(default=False, description="Permanent paid flag")
    fecha_pago: Optional[datetime] = Field(default=None)

    detalle: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    @property
    def is_payable(self) -> bool:
        return not self.pagada and self.estado in PAYABLE_ESTADOS

    def __repr__(self) -> str:
        return f"Boleta(id={self.id}, numero={self.numero_boleta}, estado={self.estado})"
