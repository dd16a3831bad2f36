"""Real-time fan-out to the kitchen display and table devices.

The kitchen is addressed through a single binding kept in redis under
``rt:endpoint:kitchen``: whichever kitchen socket registered last owns it,
in whatever process it lives. Table devices are addressed as the group
``table_{tableId}``. Payloads are built only from the post-commit views a
:class:`~tableside.app.services.transitions.Transition` carries. Delivery is
fire-and-forget: no acknowledgement, no retry.
"""

from __future__ import annotations

import logging
from typing import Any

from redis.exceptions import RedisError, WatchError

from ..domain import KITCHEN_ACTIVE
from ..errors import DependencyUnavailable
from ..routes_metrics import side_effect_failures_total
from . import cache_keys
from .cache import CacheStore
from .transitions import Transition, TransitionKind
from .transport import RealtimeTransport

logger = logging.getLogger("tableside.realtime")

KITCHEN_ROLE = "kitchen"


def table_group(table_code: str) -> str:
    return f"table_{table_code}"


def order_number(order_id: str) -> str:
    return str(order_id)[-6:].upper()


def _decode(value):
    if isinstance(value, bytes):
        return value.decode()
    return value


class EndpointRegistry:
    """At most one current endpoint per logical role, shared via redis."""

    def __init__(self, cache: CacheStore) -> None:
        self._cache = cache

    async def bind(self, role: str, endpoint_id: str) -> str | None:
        """Make ``endpoint_id`` the role's endpoint; returns the one replaced."""
        key = cache_keys.endpoint_binding(role)
        try:
            previous = _decode(await self._cache.redis.get(key))
            await self._cache.redis.set(key, endpoint_id)
        except (RedisError, OSError) as exc:
            logger.error("failed to bind %s endpoint %s: %s", role, endpoint_id, exc)
            raise DependencyUnavailable(f"Failed to register {role}") from exc
        if previous and previous != endpoint_id:
            logger.info("%s endpoint %s superseded by %s", role, previous, endpoint_id)
        return previous

    async def current(self, role: str) -> str | None:
        try:
            return _decode(
                await self._cache.redis.get(cache_keys.endpoint_binding(role))
            )
        except (RedisError, OSError) as exc:
            logger.warning("cannot resolve %s endpoint: %s", role, exc)
            return None

    async def release(self, role: str, endpoint_id: str) -> bool:
        """Clear the binding only if it still names ``endpoint_id``."""
        key = cache_keys.endpoint_binding(role)
        try:
            async with self._cache.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                if _decode(await pipe.get(key)) != endpoint_id:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
        except WatchError:
            # rebound by a newer endpoint while we looked
            return False
        except (RedisError, OSError) as exc:
            logger.warning("failed to release %s endpoint %s: %s", role, endpoint_id, exc)
            return False
        logger.info("released %s endpoint %s", role, endpoint_id)
        return True


# -- payloads -------------------------------------------------------------


def kitchen_order_payload(order: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": order["id"],
        "orderNumber": order_number(order["id"]),
        "items": [
            {
                "name": item["name"],
                "quantity": item["quantity"],
                "specialInstructions": item.get("specialInstructions") or "",
                "category": item.get("category"),
            }
            for item in order.get("items", [])
        ],
        "orderType": order["orderType"],
        "tableId": order.get("tableId") or order.get("deviceId"),
        "status": order["status"],
        "createdAt": order["createdAt"],
    }


def kitchen_status_payload(order: dict[str, Any], previous_status: str | None) -> dict:
    return {
        "id": order["id"],
        "orderNumber": order_number(order["id"]),
        "status": order["status"],
        "previousStatus": previous_status,
        "updatedAt": order["updatedAt"],
    }


def table_order_payload(order: dict[str, Any]) -> dict[str, Any]:
    return {
        "sessionId": order["sessionId"],
        "orderId": order["id"],
        "items": [
            {
                "name": item["name"],
                "quantity": item["quantity"],
                "price": item["price"],
                "total": item["total"],
            }
            for item in order.get("items", [])
        ],
        "total": order["total"],
        "status": order["status"],
    }


def session_started_payload(session: dict, customer_name: str | None = None) -> dict:
    return {
        "sessionId": session["id"],
        "tableId": session["tableId"],
        "clientId": session["clientId"],
        "startTime": session["startTime"],
        "status": session["status"],
        "customerName": customer_name or "Customer",
    }


def session_ended_payload(session: dict, bill: dict | None) -> dict:
    payload: dict[str, Any] = {
        "sessionId": session["id"],
        "status": session["status"],
        "endTime": session.get("endTime"),
        "bill": None,
    }
    if bill is not None:
        payload["bill"] = {
            "id": bill["id"],
            "total": bill["total"],
            "paymentStatus": bill["paymentStatus"],
        }
    return payload


class Notifier:
    """Translate committed transitions into real-time events."""

    def __init__(
        self,
        transport: RealtimeTransport,
        registry: EndpointRegistry,
        cache: CacheStore,
    ) -> None:
        self.transport = transport
        self.registry = registry
        self._cache = cache

    async def register_kitchen(self, endpoint_id: str) -> str | None:
        return await self.registry.bind(KITCHEN_ROLE, endpoint_id)

    async def unregister_kitchen(self, endpoint_id: str) -> bool:
        return await self.registry.release(KITCHEN_ROLE, endpoint_id)

    async def _emit(self, send, *args) -> bool:
        try:
            await send(*args)
        except (RedisError, OSError) as exc:
            side_effect_failures_total.labels(stage="notify").inc()
            logger.error("real-time emit %s failed: %s", args[-2], exc)
            return False
        return True

    async def _to_kitchen(self, event: str, payload: dict) -> bool:
        endpoint = await self.registry.current(KITCHEN_ROLE)
        if not endpoint:
            logger.warning("no kitchen app registered; dropping %s", event)
            return False
        sent = await self._emit(self.transport.emit_to_endpoint, endpoint, event, payload)
        if sent:
            await self._cache.delete(cache_keys.KITCHEN_ACTIVE_ORDERS)
            logger.info("notified kitchen %s: %s %s", endpoint, event, payload["id"])
        return sent

    async def _to_table(self, table_code: str | None, event: str, payload: dict) -> bool:
        if not table_code:
            return False
        return await self._emit(
            self.transport.emit_to_group, table_group(table_code), event, payload
        )

    async def notify_new_order(self, order: dict[str, Any]) -> None:
        if order["status"] in {s.value for s in KITCHEN_ACTIVE}:
            await self._to_kitchen("new_kitchen_order", kitchen_order_payload(order))
        if order.get("sessionId"):
            await self._to_table(
                order.get("tableId"), "new_order", table_order_payload(order)
            )

    async def notify_order_status_changed(
        self, order: dict[str, Any], previous_status: str | None
    ) -> None:
        payload = kitchen_status_payload(order, previous_status)
        await self._to_kitchen("order_status_updated", payload)
        await self._to_table(order.get("tableId"), "order_status_updated", payload)

    async def notify_session_started(
        self, session: dict[str, Any], customer_name: str | None = None
    ) -> None:
        await self._to_table(
            session["tableId"],
            "session_started",
            session_started_payload(session, customer_name),
        )

    async def notify_session_ended(
        self, session: dict[str, Any], bill: dict[str, Any] | None = None
    ) -> None:
        await self._to_table(
            session["tableId"], "session_ended", session_ended_payload(session, bill)
        )

    async def notify_bill_ready(self, bill: dict[str, Any], table_code: str | None) -> None:
        await self._to_table(
            table_code, "bill_ready", {"billId": bill["id"], "sessionId": bill["sessionId"]}
        )

    async def notify_table_status_changed(self, table: dict[str, Any]) -> None:
        await self._to_table(
            table["tableId"],
            "table_status_updated",
            {"tableId": table["tableId"], "status": table["status"]},
        )

    async def notify_reservation_requested(self, reservation: dict[str, Any]) -> None:
        await self._emit(
            self.transport.emit_to_all,
            "new_reservation_request",
            {
                "reservationId": reservation["id"],
                "userId": reservation["userId"],
                "tableId": reservation["tableId"],
                "reservationTime": reservation["reservationTime"],
                "guests": reservation["guests"],
            },
        )

    async def dispatch(self, transition: Transition) -> None:
        """Emit whatever events ``transition`` implies."""
        snap = transition.snapshot
        kind = transition.kind
        if kind is TransitionKind.ORDER_CREATED:
            await self.notify_new_order(snap["order"])
        elif kind is TransitionKind.ORDER_ATTACHED:
            order = snap["order"]
            await self._to_table(
                order.get("tableId"), "new_order", table_order_payload(order)
            )
        elif kind is TransitionKind.ORDER_STATUS_CHANGED:
            await self.notify_order_status_changed(
                snap["order"], transition.previous_status
            )
        elif kind is TransitionKind.SESSION_STARTED:
            await self.notify_session_started(
                snap["session"], snap.get("customer_name")
            )
        elif kind is TransitionKind.SESSION_ENDED:
            await self.notify_session_ended(snap["session"], snap.get("bill"))
        elif kind is TransitionKind.BILL_GENERATED:
            await self.notify_bill_ready(snap["bill"], transition.table_code)
        elif kind is TransitionKind.TABLE_STATUS_CHANGED:
            await self.notify_table_status_changed(snap["table"])
        elif kind is TransitionKind.RESERVATION_CREATED:
            await self.notify_reservation_requested(snap["reservation"])


__all__ = [
    "EndpointRegistry",
    "KITCHEN_ROLE",
    "Notifier",
    "order_number",
    "table_group",
]
