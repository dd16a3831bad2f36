"""Guards for real-time WebSocket connections.

Per-IP connection limits, heartbeat interval and outbound queue bounds for
the kitchen and table sockets. Tunables come from the environment:
- ``MAX_CONN_PER_IP`` (default ``20``)
- ``HEARTBEAT_TIMEOUT_SEC`` (default ``30``)
- ``QUEUE_MAX`` (default ``100``)
"""

from __future__ import annotations

import asyncio
import os
from collections import defaultdict
from typing import Any

from starlette.websockets import WebSocket, WebSocketDisconnect

from ..routes_metrics import realtime_connections

MAX_CONN_PER_IP = int(os.getenv("MAX_CONN_PER_IP", "20"))
HEARTBEAT_TIMEOUT_SEC = int(os.getenv("HEARTBEAT_TIMEOUT_SEC", "30"))
QUEUE_MAX = int(os.getenv("QUEUE_MAX", "100"))

connections: dict[str, int] = defaultdict(int)


class TooManyConnections(Exception):
    """Raised when an IP already holds ``MAX_CONN_PER_IP`` sockets."""


def register(ip: str, role: str) -> None:
    """Count a new ``role`` socket from ``ip`` or raise ``TooManyConnections``."""
    if connections[ip] >= MAX_CONN_PER_IP:
        raise TooManyConnections(ip)
    connections[ip] += 1
    realtime_connections.labels(role=role).inc()


def unregister(ip: str, role: str) -> None:
    if connections[ip] > 0:
        connections[ip] -= 1
    realtime_connections.labels(role=role).dec()


def queue(maxsize: int | None = None) -> asyncio.Queue[Any]:
    """Return an ``asyncio.Queue`` enforcing ``QUEUE_MAX`` by default."""
    return asyncio.Queue(maxsize=maxsize or QUEUE_MAX)


def heartbeat_task(websocket: WebSocket) -> asyncio.Task:
    """Return a task sending periodic pings to ``websocket``.

    The task stops silently when the connection drops; callers cancel it
    on cleanup.
    """

    async def _hb() -> None:  # pragma: no cover - network timing
        try:
            while True:
                await asyncio.sleep(HEARTBEAT_TIMEOUT_SEC)
                await websocket.send_json({"event": "ping", "data": {}})
        except (WebSocketDisconnect, RuntimeError, OSError):
            pass

    return asyncio.create_task(_hb())
