"""
User and socio I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from portal_apr.billing.models import CategoriaUsuario

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Medidor(BaseModel):
    """Water meter installed at the socio's address."""

    numero: str
    ubicacion: Optional[str] = None
    fecha_instalacion: Optional[datetime] = None
    lectura_inicial: float = Field(default=0, ge=0)
    estado: str = Field(default="activo", pattern="^(activo|inactivo|mantenimiento)$")


class UserRead(BaseModel):
    """Schema for reading a user; never exposes credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    rut: str
    nombres: str
    apellidos: str
    email: str
    telefono: Optional[str] = None
    direccion: Optional[str] = None
    role: str
    activo: bool
    fecha_ingreso: datetime
    codigo_socio: Optional[str] = None
    saldo_actual: float = 0
    deuda_total: float = 0
    categoria_usuario: str = CategoriaUsuario.RESIDENCIAL.value
    medidor: Optional[Dict[str, Any]] = None
    permisos: List[str] = Field(default_factory=list)


class SocioCreate(BaseModel):
    """Admin-side socio registration."""

    rut: str
    nombres: str = Field(min_length=1, max_length=100)
    apellidos: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=72)
    telefono: Optional[str] = Field(default=None, max_length=30)
    direccion: Optional[str] = Field(default=None, max_length=255)
    categoria_usuario: CategoriaUsuario = CategoriaUsuario.RESIDENCIAL
    medidor: Optional[Medidor] = None


class SocioUpdate(BaseModel):
    categoria_usuario: Optional[CategoriaUsuario] = None
    medidor: Optional[Medidor] = None
    telefono: Optional[str] = Field(default=None, max_length=30)
    direccion: Optional[str] = Field(default=None, max_length=255)
    activo: Optional[bool] = None


class SocioSummary(BaseModel):
    """Socio with the figures shown on the administration detail page."""

    socio: UserRead
    boletas_pendientes: int
    boletas_vencidas: int
    monto_pendiente: float


class SocioPage(BaseModel):
    items: List[UserRead]
    total: int
    limit: int
    offset: int
