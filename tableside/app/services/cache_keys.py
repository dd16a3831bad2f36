"""Cache key templates shared by the read path and invalidation."""

from __future__ import annotations

from datetime import date

from ..domain import OrderStatus

KITCHEN_ACTIVE_ORDERS = "kitchen:active_orders"
KITCHEN_COMPLETED_ORDERS = "kitchen:completed_orders"


def order_details(order_id: str) -> str:
    return f"order:details:{order_id}"


def user_orders(user_id: str, status: str | None = None) -> str:
    if status:
        return f"order:user:{user_id}:status:{status}"
    return f"order:user:{user_id}"


def user_orders_all(user_id: str) -> list[str]:
    """The unfiltered key plus every per-status variant for ``user_id``."""
    return [user_orders(user_id)] + [user_orders(user_id, s.value) for s in OrderStatus]


def session_orders(session_id: str) -> str:
    return f"order:session:{session_id}"


def ratings(user_id: str) -> str:
    return f"order:ratings:{user_id}"


def user_reservations(user_id: str) -> str:
    return f"reservation:user:{user_id}"


def availability(day: date | str, guests: int) -> str:
    if isinstance(day, date):
        day = day.isoformat()
    return f"reservation:availability:{day}:{guests}"


def endpoint_binding(role: str) -> str:
    return f"rt:endpoint:{role}"
