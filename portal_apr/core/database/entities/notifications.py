"""
Notification entity.

In-app notifications shown in the portal bell. Creation also pushes a
realtime event to the user's channel.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, utc_now


class TipoNotificacion(str, Enum):
    BOLETA = "boleta"
    PAGO = "pago"
    MENSAJE = "mensaje"
    SISTEMA = "sistema"


class Notification(Base, table=True):
    """Table: notifications"""

    __tablename__ = "notifications"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="users.id", index=True)
    tipo: str = Field(default=TipoNotificacion.SISTEMA.value, max_length=20)
    titulo: str = Field(max_length=200)
    mensaje: str = Field(max_length=500)
    leida: bool = Field(default=False, index=True)

    referencia_tipo: Optional[str] = Field(default=None, max_length=20)
    referencia_id: Optional[int] = Field(default=None)
    metadatos: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(default_factory=utc_now, index=True)

    def __repr__(self) -> str:
        return f"Notification(id={self.id}, user_id={self.user_id}, tipo={self.tipo})"
