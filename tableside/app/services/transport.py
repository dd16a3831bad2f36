"""Real-time transport over redis pub/sub.

Socket handlers in any process subscribe to the channels below and relay
messages to their connected clients, so an emit from one worker reaches
sockets held by another.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from ..routes_metrics import realtime_events_total

logger = logging.getLogger("tableside.realtime")

BROADCAST_CHANNEL = "rt:broadcast"


def endpoint_channel(endpoint_id: str) -> str:
    return f"rt:endpoint:{endpoint_id}"


def group_channel(group: str) -> str:
    return f"rt:group:{group}"


class RealtimeTransport(Protocol):
    async def emit_to_endpoint(
        self, endpoint_id: str, event: str, payload: dict[str, Any]
    ) -> None: ...

    async def emit_to_group(
        self, group: str, event: str, payload: dict[str, Any]
    ) -> None: ...

    async def emit_to_all(self, event: str, payload: dict[str, Any]) -> None: ...


class RedisPubSubTransport:
    """Publish ``{"event", "data"}`` envelopes on redis channels."""

    def __init__(self, redis) -> None:
        self._redis = redis

    async def _publish(self, channel: str, event: str, payload: dict, scope: str) -> int:
        message = json.dumps({"event": event, "data": payload}, default=str)
        receivers = await self._redis.publish(channel, message)
        realtime_events_total.labels(event=event, scope=scope).inc()
        logger.debug("emitted %s on %s to %s receivers", event, channel, receivers)
        return receivers

    async def emit_to_endpoint(self, endpoint_id: str, event: str, payload: dict) -> None:
        await self._publish(endpoint_channel(endpoint_id), event, payload, "endpoint")

    async def emit_to_group(self, group: str, event: str, payload: dict) -> None:
        await self._publish(group_channel(group), event, payload, "group")

    async def emit_to_all(self, event: str, payload: dict) -> None:
        await self._publish(BROADCAST_CHANNEL, event, payload, "all")


__all__ = [
    "BROADCAST_CHANNEL",
    "RealtimeTransport",
    "RedisPubSubTransport",
    "endpoint_channel",
    "group_channel",
]
