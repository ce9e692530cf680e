"""
Notification service.

Persists in-app notifications and pushes them to the owner's realtime
channel.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.core.database.entities.notifications import Notification, TipoNotificacion
from portal_apr.core.database.entities.users import User
from portal_apr.core.database.repositories.notifications import NotificationRepository
from portal_apr.core.errors import NotFoundError
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.notifications import NotificationCounts, NotificationRead

from .realtime import EVENT_NUEVA_NOTIFICACION, EventHub, get_event_hub, user_channel

logger = get_logger(__name__)


class NotificationService:
    def __init__(self, session: AsyncSession, hub: Optional[EventHub] = None) -> None:
        self.session = session
        self.repo = NotificationRepository(session)
        self.hub = hub or get_event_hub()
        self._pending: List[Tuple[str, Dict[str, Any]]] = []

    async def notify(
        self,
        user_id: int,
        titulo: str,
        mensaje: str,
        tipo: TipoNotificacion = TipoNotificacion.SISTEMA,
        referencia_tipo: Optional[str] = None,
        referencia_id: Optional[int] = None,
        metadatos: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> Notification:
        """
        Create a notification and publish it to ``user_<id>``.

        With ``commit=False`` the row joins the caller's transaction and the
        event is held back until the caller commits and calls
        :meth:`flush_events` (or drops it with :meth:`discard_events`).

        Args:
            commit: Commit immediately; pass False to join the caller's transaction
        """
        notification = Notification(
            user_id=user_id,
            tipo=tipo.value,
            titulo=titulo[:200],
            mensaje=mensaje[:500],
            referencia_tipo=referencia_tipo,
            referencia_id=referencia_id,
            metadatos=metadatos or {},
        )
        if not commit:
            notification = await self.repo.add(notification)
            payload = NotificationRead.model_validate(notification).model_dump(mode="json")
            self._pending.append((user_channel(user_id), payload))
            return notification

        notification = await self.repo.create(notification)
        self.hub.publish(
            user_channel(user_id),
            EVENT_NUEVA_NOTIFICACION,
            NotificationRead.model_validate(notification).model_dump(mode="json"),
        )
        return notification

    def flush_events(self) -> int:
        """Publish the events held back by ``notify(commit=False)``; call after the commit."""
        pending, self._pending = self._pending, []
        for channel, payload in pending:
            self.hub.publish(channel, EVENT_NUEVA_NOTIFICACION, payload)
        return len(pending)

    def discard_events(self) -> None:
        """Drop held-back events after a rollback."""
        self._pending.clear()

    async def list_for_user(
        self, user: User, unread_only: bool = False, limit: int = 50, offset: int = 0
    ) -> List[Notification]:
        return await self.repo.list_for_user(user.id, unread_only=unread_only, limit=limit, offset=offset)

    async def counts(self, user: User) -> NotificationCounts:
        return NotificationCounts(
            total=await self.repo.count_for_user(user.id),
            unread=await self.repo.count_for_user(user.id, unread_only=True),
        )

    async def _get_owned(self, user: User, notification_id: int) -> Notification:
        notification = await self.repo.get_by_id(notification_id)
        if notification is None or notification.user_id != user.id:
            raise NotFoundError("Notificación no encontrada")
        return notification

    async def mark_read(self, user: User, notification_id: int) -> Notification:
        notification = await self._get_owned(user, notification_id)
        if not notification.leida:
            notification.leida = True
            notification = await self.repo.update(notification)
        return notification

    async def mark_all_read(self, user: User) -> int:
        return await self.repo.mark_all_read(user.id)

    async def delete(self, user: User, notification_id: int) -> None:
        notification = await self._get_owned(user, notification_id)
        await self.repo.delete(notification.id)
