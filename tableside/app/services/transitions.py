"""Committed-transition records passed from the engine to side effects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping


class TransitionKind(str, Enum):
    ORDER_CREATED = "order_created"
    ORDER_ATTACHED = "order_attached"
    ORDER_STATUS_CHANGED = "order_status_changed"
    PAYMENT_STATUS_CHANGED = "payment_status_changed"
    RATINGS_SUBMITTED = "ratings_submitted"
    RESERVATION_CREATED = "reservation_created"
    SESSION_STARTED = "session_started"
    SESSION_STATUS_CHANGED = "session_status_changed"
    SESSION_ENDED = "session_ended"
    BILL_GENERATED = "bill_generated"
    BILL_SETTLED = "bill_settled"
    TABLE_STATUS_CHANGED = "table_status_changed"


@dataclass(frozen=True)
class Transition:
    """What changed, identified well enough to find every stale view.

    ``snapshot`` holds the post-commit views (``order``, ``session``,
    ``bill``, ``table``...) the notifier renders events from.
    """

    kind: TransitionKind
    order_id: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    table_code: str | None = None
    status: str | None = None
    previous_status: str | None = None
    reservation_date: date | None = None
    guests: int | None = None
    snapshot: Mapping[str, Any] = field(default_factory=dict)


__all__ = ["Transition", "TransitionKind"]
