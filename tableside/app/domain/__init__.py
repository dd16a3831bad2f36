"""Domain models and helpers."""

from .money import line_total, order_totals, to_money
from .order_status import (
    KITCHEN_ACTIVE,
    KITCHEN_COMPLETED,
    TRANSITIONS,
    OrderStatus,
    TransitionPolicy,
    can_transition,
)
from .states import (
    SESSION_OPEN,
    SESSION_TERMINAL,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    SessionStatus,
    TableStatus,
)

__all__ = [
    "OrderStatus",
    "TRANSITIONS",
    "KITCHEN_ACTIVE",
    "KITCHEN_COMPLETED",
    "TransitionPolicy",
    "can_transition",
    "TableStatus",
    "SessionStatus",
    "SESSION_OPEN",
    "SESSION_TERMINAL",
    "PaymentStatus",
    "PaymentMethod",
    "OrderType",
    "line_total",
    "order_totals",
    "to_money",
]
