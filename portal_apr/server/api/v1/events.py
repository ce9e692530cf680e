"""
Server-Sent Events Endpoint.

Streams the authenticated user's ``user_<id>`` channel, plus the ``admins``
channel for admins, for as long as the client stays connected.
"""

import json

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from portal_apr.core.logging_config import get_logger
from portal_apr.server.services.deps import CurrentUser, EventHubDep
from portal_apr.server.services.realtime import ADMINS_CHANNEL, user_channel

logger = get_logger(__name__)
router = APIRouter()

POLL_SECONDS = 1.0


@router.get(
    "/stream",
    summary="Event Stream",
    description="SSE stream of realtime events: new boletas, confirmed payments, notifications and chat messages.",
)
async def stream_events(request: Request, user: CurrentUser, hub: EventHubDep):
    channels = [user_channel(user.id)]
    if user.is_admin:
        channels.append(ADMINS_CHANNEL)
    logger.info(f"Starting event stream for user {user.id}: {channels}")

    async def event_generator():
        async with hub.subscribe(*channels) as subscription:
            yield {"event": "connected", "data": json.dumps({"channels": channels})}
            while True:
                if await request.is_disconnected():
                    logger.info(f"Client disconnected from event stream: user {user.id}")
                    break
                event = await subscription.get(timeout=POLL_SECONDS)
                if event is None:
                    continue
                yield {
                    "event": event.event,
                    "data": event.model_dump_json(include={"channel", "data", "timestamp"}),
                }

    return EventSourceResponse(event_generator())
