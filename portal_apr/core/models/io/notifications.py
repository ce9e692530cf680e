"""
Notification I/O models for API requests and responses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from portal_apr.core.database.entities.notifications import TipoNotificacion


class NotificationCreate(BaseModel):
    user_id: int
    tipo: TipoNotificacion = TipoNotificacion.SISTEMA
    titulo: str = Field(min_length=1, max_length=200)
    mensaje: str = Field(min_length=1, max_length=500)
    referencia_tipo: Optional[str] = Field(default=None, max_length=20)
    referencia_id: Optional[int] = None
    metadatos: Dict[str, Any] = Field(default_factory=dict)


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    tipo: str
    titulo: str
    mensaje: str
    leida: bool
    referencia_tipo: Optional[str] = None
    referencia_id: Optional[int] = None
    metadatos: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class NotificationCounts(BaseModel):
    total: int
    unread: int
