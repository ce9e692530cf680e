"""
Tariff configuration entity.

Nested tariff structures (cargo fijo, bands, seasons, discounts, surcharges
and calculation options) are stored as JSON documents whose shape is defined by
:mod:`portal_apr.billing.models`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, utc_now


class EstadoTarifa(str, Enum):
    ACTIVA = "activa"
    PAUSADA = "pausada"
    FINALIZADA = "finalizada"
    BORRADOR = "borrador"


class TarifaConfig(Base, table=True):
    """Tariff configuration.

    At most one row has ``activa = True``; the tariff service keeps that true.

    Table: tarifa_configs
    """

    __tablename__ = "tarifa_configs"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)

    nombre: str = Field(max_length=120)
    descripcion: Optional[str] = Field(default=None)
    activa: bool = Field(default=False, index=True)
    estado: str = Field(default=EstadoTarifa.BORRADOR.value, max_length=20)

    fecha_vigencia: datetime = Field(default_factory=utc_now)
    fecha_vencimiento: Optional[datetime] = Field(default=None)
    fecha_pausa: Optional[datetime] = Field(default=None)

    cargo_fijo: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    escalones: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    temporadas: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    descuentos: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    recargos: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    configuracion: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    creado_por: Optional[int] = Field(default=None, foreign_key="users.id")
    modificado_por: Optional[int] = Field(default=None, foreign_key="users.id")

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"TarifaConfig(id={self.id}, nombre={self.nombre}, activa={self.activa})"
