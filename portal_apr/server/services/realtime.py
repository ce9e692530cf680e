"""
In-process realtime event hub.

Services publish events (new boleta, completed payment, chat message,
notification) to named channels; the SSE endpoint subscribes a client to its
own ``user_<id>`` channel and, for administrators, to ``admins``.

Each subscriber owns a bounded queue. A slow client never blocks publishers:
when its queue is full the oldest pending event is dropped.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional, Set

from pydantic import BaseModel, Field

from portal_apr.core.database.base import utc_now
from portal_apr.core.logging_config import get_logger

logger = get_logger(__name__)

ADMINS_CHANNEL = "admins"

# Event names shared with the web client
EVENT_NUEVA_BOLETA = "nueva-boleta"
EVENT_PAGO_COMPLETADO = "pago-completado"
EVENT_NUEVA_NOTIFICACION = "nueva-notificacion"
EVENT_NUEVO_MENSAJE = "nuevo-mensaje"
EVENT_BOLETA_ACTUALIZADA = "boleta-actualizada"


def user_channel(user_id: int) -> str:
    return f"user_{user_id}"


class RealtimeEvent(BaseModel):
    """Event delivered to subscribers."""

    channel: str
    event: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class Subscription:
    """Queue-backed stream of events for one client."""

    def __init__(self, channels: tuple[str, ...], max_queue_size: int) -> None:
        self.channels = channels
        self.queue: asyncio.Queue[RealtimeEvent] = asyncio.Queue(maxsize=max_queue_size)
        self.dropped = 0

    def offer(self, event: RealtimeEvent) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> Optional[RealtimeEvent]:
        """Next event, or None when ``timeout`` elapses first."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def __aiter__(self) -> AsyncIterator[RealtimeEvent]:
        return self

    async def __anext__(self) -> RealtimeEvent:
        return await self.queue.get()


class EventHub:
    """Fan-out publish/subscribe over named channels."""

    def __init__(self, max_queue_size: int = 100) -> None:
        self.max_queue_size = max_queue_size
        self._subscribers: Dict[str, Set[Subscription]] = defaultdict(set)

    def publish(self, channel: str, event: str, data: Optional[Dict[str, Any]] = None) -> int:
        """
        Publish an event to every subscriber of ``channel``.

        Args:
            channel: Channel name (``user_<id>`` or ``admins``)
            event: Event name
            data: JSON-serializable payload

        Returns:
            Number of subscribers that received the event
        """
        subscribers = list(self._subscribers.get(channel, ()))
        if not subscribers:
            return 0
        message = RealtimeEvent(channel=channel, event=event, data=data or {})
        for subscription in subscribers:
            subscription.offer(message)
        logger.debug(f"Published {event} to {channel} ({len(subscribers)} subscribers)")
        return len(subscribers)

    @asynccontextmanager
    async def subscribe(self, *channels: str) -> AsyncIterator[Subscription]:
        """Subscribe to one or more channels for the duration of the context."""
        subscription = Subscription(channels, self.max_queue_size)
        for channel in channels:
            self._subscribers[channel].add(subscription)
        try:
            yield subscription
        finally:
            for channel in channels:
                subscribers = self._subscribers.get(channel)
                if subscribers is not None:
                    subscribers.discard(subscription)
                    if not subscribers:
                        del self._subscribers[channel]

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))


_event_hub: Optional[EventHub] = None


def get_event_hub() -> EventHub:
    global _event_hub
    if _event_hub is None:
        _event_hub = EventHub()
    return _event_hub
