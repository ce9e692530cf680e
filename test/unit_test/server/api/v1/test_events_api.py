"""
The SSE endpoint streams forever, so the generator is driven directly
instead of through the HTTP client.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from portal_apr.server.api.v1.events import stream_events
from portal_apr.server.services.realtime import ADMINS_CHANNEL, user_channel

pytestmark = pytest.mark.asyncio


def _request(disconnected):
    request = MagicMock()
    request.is_disconnected = AsyncMock(side_effect=disconnected)
    return request


async def test_stream_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/events/stream")

    assert response.status_code == 401


async def test_stream_route_registered(client: AsyncClient):
    from portal_apr.server.main import app

    assert "/api/v1/events/stream" in {getattr(route, "path", None) for route in app.routes}


async def test_socio_stream(socio, hub):
    response = await stream_events(_request([False, True]), socio, hub)
    events = response.body_iterator

    connected = await events.__anext__()
    hub.publish(user_channel(socio.id), "nueva-boleta", {"boleta_id": 1})
    delivered = await events.__anext__()

    assert connected["event"] == "connected"
    assert json.loads(connected["data"]) == {"channels": [user_channel(socio.id)]}
    assert delivered["event"] == "nueva-boleta"
    assert json.loads(delivered["data"])["data"] == {"boleta_id": 1}

    with pytest.raises(StopAsyncIteration):
        await events.__anext__()
    assert hub.subscriber_count(user_channel(socio.id)) == 0


async def test_admin_stream_includes_admins_channel(admin, hub):
    response = await stream_events(_request([True]), admin, hub)
    events = response.body_iterator

    connected = await events.__anext__()

    assert json.loads(connected["data"])["channels"] == [user_channel(admin.id), ADMINS_CHANNEL]
    await events.aclose()
