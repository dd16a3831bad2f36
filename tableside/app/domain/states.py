"""Enumerations for tables, sessions, payments and order types."""

from __future__ import annotations

from enum import Enum


class TableStatus(str, Enum):
    """Lifecycle states for a dining table."""

    AVAILABLE = "available"
    OCCUPIED = "occupied"
    CLEANING = "cleaning"


class SessionStatus(str, Enum):
    """Lifecycle states for a table session.

    ``CLOSED`` is reached through billing, ``COMPLETED`` when staff force a
    table back to available while a party is still seated.
    """

    ACTIVE = "active"
    PAYMENT_PENDING = "payment_pending"
    CLOSED = "closed"
    COMPLETED = "completed"


SESSION_OPEN = frozenset({SessionStatus.ACTIVE, SessionStatus.PAYMENT_PENDING})
SESSION_TERMINAL = frozenset({SessionStatus.CLOSED, SessionStatus.COMPLETED})


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"
    WALLET = "wallet"


class OrderType(str, Enum):
    TAKE_AWAY = "Take Away"
    DELIVERY = "Delivery"
    DINE_IN = "Dine In"

    @classmethod
    def _missing_(cls, value):
        # accept the compact spellings older kiosk builds send ("DineIn")
        if isinstance(value, str):
            key = value.replace(" ", "").replace("_", "").lower()
            for member in cls:
                if member.value.replace(" ", "").lower() == key:
                    return member
        return None
