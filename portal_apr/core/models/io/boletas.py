"""
Boleta I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from portal_apr.core.database.base import as_naive_utc


class BoletaCreate(BaseModel):
    """Schema for issuing a boleta."""

    socio_id: int
    lectura_anterior: float = Field(ge=0)
    lectura_actual: float = Field(ge=0)
    periodo: str = Field(min_length=1, max_length=40, description="Billed period, e.g. 2024-03")
    fecha_vencimiento: datetime
    tarifa_m3: Optional[float] = Field(default=None, ge=0, description="Flat price per m3 (legacy billing)")
    otros_cargos: float = Field(default=0, ge=0)
    descuentos: float = Field(default=0, ge=0)

    naive_vencimiento = field_validator("fecha_vencimiento")(as_naive_utc)

    @model_validator(mode="after")
    def _check_readings(self) -> "BoletaCreate":
        if self.lectura_actual < self.lectura_anterior:
            raise ValueError("lectura_actual must be greater than or equal to lectura_anterior")
        return self


class BoletaRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    numero_boleta: str
    socio_id: int
    fecha_emision: datetime
    fecha_vencimiento: datetime
    periodo: str
    lectura_anterior: float
    lectura_actual: float
    consumo_m3: float
    monto_total: float
    estado: str
    pagada: bool
    fecha_pago: Optional[datetime] = None
    detalle: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class BoletaEstadoUpdate(BaseModel):
    estado: str = Field(pattern="^(pendiente|pagada|vencida|anulada|archivada)$")


class BoletaPage(BaseModel):
    items: List[BoletaRead]
    total: int
    limit: int
    offset: int


class EstadoTotals(BaseModel):
    cantidad: int = 0
    monto: float = 0


class BoletaStats(BaseModel):
    total: EstadoTotals
    por_estado: Dict[str, EstadoTotals]
