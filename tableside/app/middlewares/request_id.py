"""Request ids for HTTP requests and WebSocket connections.

Written as plain ASGI middleware so a kitchen or table socket carries one id
for its whole life, the same way an HTTP request does. An incoming
``X-Request-ID`` is kept when it looks sane; otherwise a new id is minted.
"""

from __future__ import annotations

import re
import uuid
from contextvars import ContextVar

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

HEADER = "X-Request-ID"
_SAFE = re.compile(r"^[\w.:-]{1,64}$")

# read by the log filter
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def _incoming(value: str | None) -> str | None:
    return value if value and _SAFE.match(value) else None


class RequestIdMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        req_id = _incoming(Headers(scope=scope).get(HEADER)) or uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = req_id

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).setdefault(HEADER, req_id)
            await send(message)

        token = request_id_ctx.set(req_id)
        try:
            await self.app(scope, receive, send_with_id)
        finally:
            request_id_ctx.reset(token)
