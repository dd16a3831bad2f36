"""WebSocket endpoints for the kitchen display and table devices.

Each socket subscribes to its redis channels and relays every published
``{"event", "data"}`` envelope. Replies to inbound events share the same
outbound queue so a single task writes to the socket.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from .deps.services import get_engine, get_notifier
from .errors import DependencyUnavailable, LifecycleError
from .middlewares import realtime_guard
from .models import Table
from .obs.errors import capture_exception
from .routes_metrics import ws_messages_total
from .schemas import table_view
from .services.realtime import table_group
from .services.transport import BROADCAST_CHANNEL, endpoint_channel, group_channel

logger = logging.getLogger("tableside.ws")

router = APIRouter()

Handler = Callable[[str, dict], Awaitable[dict | None]]


def _envelope(event: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"event": event, "data": data}


def _error(exc: LifecycleError) -> dict[str, Any]:
    return _envelope("error", {"message": exc.message, **exc.details})


async def _serve(
    websocket: WebSocket,
    channels: list[str],
    greeting: dict[str, Any],
    handle: Handler | None = None,
) -> None:
    """Relay ``channels`` to the socket until either side goes away."""
    pubsub = websocket.app.state.redis.pubsub()
    await pubsub.subscribe(*channels)
    queue: asyncio.Queue[dict | None] = realtime_guard.queue()
    await queue.put(greeting)

    async def reader() -> None:
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                data = message["data"]
                if isinstance(data, bytes):
                    data = data.decode()
                try:
                    queue.put_nowait(json.loads(data))
                except asyncio.QueueFull:
                    logger.warning("slow socket on %s; disconnecting", channels[0])
                    break
        finally:
            await queue.put(None)

    async def receiver() -> None:
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                    event = message["event"]
                    data = message.get("data") or {}
                except (ValueError, KeyError, TypeError, AttributeError):
                    await queue.put(_envelope("error", {"message": "Malformed message"}))
                    continue
                if handle is None:
                    continue
                reply = await handle(event, data)
                if reply is not None:
                    await queue.put(reply)
        except WebSocketDisconnect:
            pass
        finally:
            await queue.put(None)

    reader_task = asyncio.create_task(reader())
    receiver_task = asyncio.create_task(receiver())
    hb_task = realtime_guard.heartbeat_task(websocket)
    try:
        while True:
            item = await queue.get()
            if item is None:
                break
            await websocket.send_json(item)
            ws_messages_total.inc()
    except WebSocketDisconnect:  # pragma: no cover - network disconnect
        pass
    finally:
        for task in (reader_task, receiver_task, hb_task):
            task.cancel()
        await pubsub.unsubscribe(*channels)
        await pubsub.aclose()


@router.websocket("/ws/kitchen")
async def kitchen_ws(websocket: WebSocket) -> None:
    """Register the connecting display as the one kitchen endpoint."""
    ip = websocket.client.host if websocket.client else "?"
    try:
        realtime_guard.register(ip, "kitchen")
    except realtime_guard.TooManyConnections:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    notifier = get_notifier(websocket)
    endpoint_id = uuid.uuid4().hex
    await websocket.accept()
    try:
        try:
            await notifier.register_kitchen(endpoint_id)
        except DependencyUnavailable as exc:
            await websocket.send_json(_error(exc))
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return
        logger.info("kitchen connected as %s", endpoint_id)
        await _serve(
            websocket,
            [endpoint_channel(endpoint_id), BROADCAST_CHANNEL],
            _envelope("kitchen_registered", {"success": True, "endpointId": endpoint_id}),
        )
    finally:
        await notifier.unregister_kitchen(endpoint_id)
        realtime_guard.unregister(ip, "kitchen")
        logger.info("kitchen %s disconnected", endpoint_id)


@router.websocket("/ws/tables/{table_code}")
async def table_ws(websocket: WebSocket, table_code: str) -> None:
    """Join the table's group; table app and customer devices alike."""
    ip = websocket.client.host if websocket.client else "?"
    try:
        realtime_guard.register(ip, "table")
    except realtime_guard.TooManyConnections:
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    engine = get_engine(websocket)
    try:
        await websocket.accept()
        table = await engine.store.find_one(Table, Table.code == table_code)
        if table is None:
            await websocket.send_json(_envelope("error", {"message": "Table not found"}))
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        async def handle(event: str, data: dict) -> dict | None:
            try:
                if event in ("initiate_session", "scan_qr_code"):
                    user_id = data.get("userId") or data.get("clientId")
                    session = await engine.start_session(
                        data.get("tableId") or table_code, user_id
                    )
                    view = await engine.describe_session(session)
                    return _envelope(
                        "session_created",
                        {
                            "sessionId": view["id"],
                            "tableId": view["tableId"],
                            "startTime": view["startTime"],
                            "status": view["status"],
                        },
                    )
                if event == "end_session":
                    session, bill = await engine.end_table_session(data.get("sessionId"))
                    return _envelope(
                        "session_ended_confirmation",
                        {
                            "sessionId": session.id,
                            "bill": {
                                "id": bill.id,
                                "total": float(bill.total),
                                "paymentStatus": bill.payment_status,
                            },
                        },
                    )
            except LifecycleError as exc:
                logger.info("table %s %s rejected: %s", table_code, event, exc.message)
                return _error(exc)
            except Exception as exc:
                logger.exception("table %s %s failed", table_code, event)
                capture_exception(exc)
                return _envelope("error", {"message": f"Failed to process {event}"})
            return _envelope("error", {"message": f"Unknown event {event!r}"})

        await _serve(
            websocket,
            [group_channel(table_group(table_code)), BROADCAST_CHANNEL],
            _envelope(
                "table_registered",
                {"success": True, "tableData": table_view(table)},
            ),
            handle,
        )
    finally:
        realtime_guard.unregister(ip, "table")
