"""Map committed transitions to the cache keys they make stale.

The policy is a static table from :class:`TransitionKind` to key templates.
Each template receives the transition (and the number of tracked
reservation guest buckets) and returns the concrete keys, or nothing when
the identifiers it needs are absent. Keys are dropped concurrently and the
whole pass is bounded by a timeout. Deletes are attempted even while the
cache is marked down, since redis may still hold the entries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from ..domain import KITCHEN_ACTIVE, KITCHEN_COMPLETED, OrderStatus
from ..routes_metrics import cache_invalidations_total, side_effect_failures_total
from . import cache_keys as keys
from .cache import CacheStore
from .transitions import Transition, TransitionKind

logger = logging.getLogger("tableside.invalidation")

KeyTemplate = Callable[[Transition, int], Iterable[str]]


def _order_details(t: Transition, _buckets: int) -> Iterable[str]:
    return [keys.order_details(t.order_id)] if t.order_id else []


def _user_orders(t: Transition, _buckets: int) -> Iterable[str]:
    return keys.user_orders_all(t.user_id) if t.user_id else []


def _session_orders(t: Transition, _buckets: int) -> Iterable[str]:
    return [keys.session_orders(t.session_id)] if t.session_id else []


def _kitchen_active(_t: Transition, _buckets: int) -> Iterable[str]:
    return [keys.KITCHEN_ACTIVE_ORDERS]


def _side(status: str | None) -> str | None:
    try:
        value = OrderStatus(status)
    except ValueError:
        return None
    if value in KITCHEN_ACTIVE:
        return "active"
    if value in KITCHEN_COMPLETED:
        return "completed"
    return None


def _kitchen_sides(t: Transition, _buckets: int) -> Iterable[str]:
    """Drop the aggregate of each side the order left or entered."""
    sides = {_side(t.previous_status), _side(t.status)}
    out = []
    if "active" in sides:
        out.append(keys.KITCHEN_ACTIVE_ORDERS)
    if "completed" in sides:
        out.append(keys.KITCHEN_COMPLETED_ORDERS)
    return out


def _ratings(t: Transition, _buckets: int) -> Iterable[str]:
    return [keys.ratings(t.user_id)] if t.user_id else []


def _user_reservations(t: Transition, _buckets: int) -> Iterable[str]:
    return [keys.user_reservations(t.user_id)] if t.user_id else []


def _availability(t: Transition, buckets: int) -> Iterable[str]:
    # a reserved table disappears from every party-size query on that date
    if t.reservation_date is None:
        return []
    out = []
    if t.guests:
        out.append(keys.availability(t.reservation_date, t.guests))
    out.extend(
        keys.availability(t.reservation_date, n)
        for n in range(1, buckets + 1)
        if n != t.guests
    )
    return out


POLICY: dict[TransitionKind, tuple[KeyTemplate, ...]] = {
    TransitionKind.ORDER_CREATED: (_session_orders, _kitchen_active, _user_orders),
    TransitionKind.ORDER_ATTACHED: (_order_details, _user_orders, _session_orders),
    TransitionKind.ORDER_STATUS_CHANGED: (
        _order_details,
        _user_orders,
        _session_orders,
        _kitchen_sides,
    ),
    TransitionKind.PAYMENT_STATUS_CHANGED: (
        _order_details,
        _user_orders,
        _session_orders,
    ),
    TransitionKind.RATINGS_SUBMITTED: (_order_details, _user_orders, _ratings),
    TransitionKind.RESERVATION_CREATED: (_user_reservations, _availability),
    TransitionKind.SESSION_STARTED: (),
    TransitionKind.SESSION_STATUS_CHANGED: (_session_orders,),
    TransitionKind.SESSION_ENDED: (_session_orders,),
    TransitionKind.BILL_GENERATED: (_session_orders,),
    TransitionKind.BILL_SETTLED: (_session_orders,),
    TransitionKind.TABLE_STATUS_CHANGED: (),
}


class InvalidationCoordinator:
    """Drop every cache key a committed transition made stale."""

    def __init__(
        self,
        cache: CacheStore,
        guest_buckets: int = 10,
        timeout: float = 2.0,
        policy: dict[TransitionKind, tuple[KeyTemplate, ...]] | None = None,
    ) -> None:
        self._cache = cache
        self._guest_buckets = guest_buckets
        self._timeout = timeout
        self._policy = policy or POLICY

    def keys_for(self, transition: Transition) -> list[str]:
        """Return the stale keys for ``transition`` in policy order."""
        seen: dict[str, None] = {}
        for template in self._policy.get(transition.kind, ()):
            for key in template(transition, self._guest_buckets):
                seen.setdefault(key, None)
        return list(seen)

    async def invalidate(self, transition: Transition) -> list[str]:
        """Delete the stale keys; returns the keys that were targeted."""
        targets = self.keys_for(transition)
        if not targets:
            return []
        try:
            results = await asyncio.wait_for(
                asyncio.gather(
                    *(self._cache.delete(key) for key in targets),
                    return_exceptions=True,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            side_effect_failures_total.labels(stage="invalidate").inc()
            logger.error(
                "invalidation timed out for %s (%d keys)",
                transition.kind.value,
                len(targets),
            )
            return []
        for key, result in zip(targets, results):
            if isinstance(result, BaseException):
                side_effect_failures_total.labels(stage="invalidate").inc()
                logger.error("failed to drop %s: %s", key, result)
        cache_invalidations_total.inc(len(targets))
        logger.debug("invalidated %s", ", ".join(targets))
        return targets


__all__ = ["InvalidationCoordinator", "POLICY"]
