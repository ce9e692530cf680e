"""
Tariff configuration I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal_apr.billing.models import (
    CargoFijo,
    CategoriaUsuario,
    ConfiguracionCalculo,
    Descuento,
    Escalon,
    Recargos,
    TarifaParametros,
    Temporada,
)
from portal_apr.core.database.base import as_naive_utc


class TarifaConfigCreate(TarifaParametros):
    """Schema for creating a tariff configuration."""

    nombre: str = Field(min_length=1, max_length=120)
    descripcion: Optional[str] = None
    activa: bool = False
    fecha_vigencia: Optional[datetime] = None
    fecha_vencimiento: Optional[datetime] = None

    naive_fechas = field_validator("fecha_vigencia", "fecha_vencimiento")(as_naive_utc)


class TarifaConfigUpdate(BaseModel):
    """Partial update of a tariff configuration."""

    nombre: Optional[str] = Field(default=None, min_length=1, max_length=120)
    descripcion: Optional[str] = None
    activa: Optional[bool] = None
    estado: Optional[str] = Field(default=None, pattern="^(activa|pausada|finalizada|borrador)$")
    fecha_vigencia: Optional[datetime] = None
    fecha_vencimiento: Optional[datetime] = None
    cargo_fijo: Optional[CargoFijo] = None
    escalones: Optional[List[Escalon]] = None
    temporadas: Optional[List[Temporada]] = None
    descuentos: Optional[List[Descuento]] = None
    recargos: Optional[Recargos] = None
    configuracion: Optional[ConfiguracionCalculo] = None

    naive_fechas = field_validator("fecha_vigencia", "fecha_vencimiento")(as_naive_utc)


class TarifaConfigRead(TarifaParametros):
    """Schema for reading a tariff configuration."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    nombre: str
    descripcion: Optional[str] = None
    activa: bool
    estado: str
    fecha_vigencia: datetime
    fecha_vencimiento: Optional[datetime] = None
    fecha_pausa: Optional[datetime] = None
    creado_por: Optional[int] = None
    modificado_por: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class SimulacionRequest(BaseModel):
    categoria: CategoriaUsuario = CategoriaUsuario.RESIDENCIAL
    consumo_m3: float = Field(ge=0)
    pago_anticipado: bool = False
    tarifa_id: Optional[int] = Field(default=None, description="Simulate with this tariff instead of the active one")
