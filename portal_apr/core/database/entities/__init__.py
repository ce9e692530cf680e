"""
Database entity models.

Modules:
- users: socios and administrators
- tarifas: tariff configurations
- boletas: invoices
- pagos: payments against invoices
- notifications: in-app notifications
- chat: socio/administration conversations and messages
"""

from . import boletas, chat, notifications, pagos, tarifas, users
from .boletas import Boleta, EstadoBoleta
from .chat import ChatConversation, ChatMessage, ConversationStatus, MessageType, SenderType
from .notifications import Notification, TipoNotificacion
from .pagos import EstadoPago, MetodoPago, Pago
from .tarifas import EstadoTarifa, TarifaConfig
from .users import ADMIN_ROLES, User, UserRole

__all__ = [
    "ADMIN_ROLES",
    "Boleta",
    "ChatConversation",
    "ChatMessage",
    "ConversationStatus",
    "EstadoBoleta",
    "EstadoPago",
    "EstadoTarifa",
    "MessageType",
    "MetodoPago",
    "Notification",
    "Pago",
    "SenderType",
    "TarifaConfig",
    "TipoNotificacion",
    "User",
    "UserRole",
    "boletas",
    "chat",
    "notifications",
    "pagos",
    "tarifas",
    "users",
]
