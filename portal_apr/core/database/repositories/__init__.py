"""
Database repositories.

Data access layer organized by table. Every repository shares the CRUD
contract of :class:`BaseRepository` and adds the domain queries its services
need.
"""

from .base import BaseRepository, QueryBuilder
from .boletas import BoletaRepository
from .chat import ChatRepository
from .notifications import NotificationRepository
from .pagos import PagoRepository
from .tarifas import TarifaConfigRepository
from .users import UserRepository

__all__ = [
    "BaseRepository",
    "BoletaRepository",
    "ChatRepository",
    "NotificationRepository",
    "PagoRepository",
    "QueryBuilder",
    "TarifaConfigRepository",
    "UserRepository",
]
