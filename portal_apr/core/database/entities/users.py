"""
User entity models.

A single ``users`` table holds socios and administrators. Socio-only fields
(codigo_socio, saldo/deuda, categoria, medidor) stay empty for admins, and
admin permissions are stored as a JSON list.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, utc_now


class UserRole(str, Enum):
    """Access role of a portal user."""

    SOCIO = "socio"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


ADMIN_ROLES = (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)


class User(Base, table=True):
    """Portal user (socio or administrator).

    Table: users
    """

    __tablename__ = "users"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)

    # Identity
    rut: str = Field(max_length=12, unique=True, index=True, description="Formatted RUT (XX.XXX.XXX-D)")
    nombres: str = Field(max_length=100)
    apellidos: str = Field(max_length=100)
    email: str = Field(max_length=255, unique=True, index=True, description="Lower-cased email")
    password_hash: str = Field(description="bcrypt hash")
    telefono: Optional[str] = Field(default=None, max_length=30)
    direccion: Optional[str] = Field(default=None, max_length=255)

    # Access
    role: str = Field(default=UserRole.SOCIO.value, max_length=20, index=True)
    activo: bool = Field(default=True)
    fecha_ingreso: datetime = Field(default_factory=utc_now)
    permisos: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))

    # Socio data
    codigo_socio: Optional[str] = Field(default=None, max_length=20, unique=True, index=True)
    saldo_actual: float = Field(default=0, description="Credit balance in CLP")
    deuda_total: float = Field(default=0, description="Sum of overdue boletas in CLP")
    categoria_usuario: str = Field(default="residencial", max_length=20)
    medidor: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Password reset
    password_reset_token_hash: Optional[str] = Field(default=None, max_length=64, index=True)
    password_reset_expires: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, sa_column_kwargs={"onupdate": utc_now})

    @property
    def nombre_completo(self) -> str:
        return f"{self.nombres} {self.apellidos}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_socio(self) -> bool:
        return self.role == UserRole.SOCIO.value

    def __repr__(self) -> str:
        return f"User(id={self.id}, rut={self.rut}, role={self.role})"
