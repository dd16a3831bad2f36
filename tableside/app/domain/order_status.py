"""Order status enumeration and allowed transitions."""

from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    """Enumerate the lifecycle states for an order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
    OrderStatus.CONFIRMED: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
    OrderStatus.PREPARING: [OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED],
    OrderStatus.READY_FOR_PICKUP: [OrderStatus.DELIVERED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: [],
}

# Kitchen display aggregates: orders still being worked vs. done with.
KITCHEN_ACTIVE = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING}
)
KITCHEN_COMPLETED = frozenset(
    {OrderStatus.READY_FOR_PICKUP, OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""

    return dst in TRANSITIONS.get(src, [])


class TransitionPolicy:
    """Decide whether an order may move between two statuses.

    Moving to the current status is always allowed and is a no-op for the
    caller. In permissive mode every other enumerated status is reachable,
    including backward moves; strict mode only follows :data:`TRANSITIONS`.
    """

    def __init__(self, strict: bool = False, transitions=None) -> None:
        self.strict = strict
        self.transitions = transitions or TRANSITIONS

    @staticmethod
    def is_noop(src: OrderStatus, dst: OrderStatus) -> bool:
        return src == dst

    def allows(self, src: OrderStatus, dst: OrderStatus) -> bool:
        if self.is_noop(src, dst):
            return True
        if not self.strict:
            return True
        return dst in self.transitions.get(src, [])
