"""Cached queries over orders, sessions, bills and tables.

Aggregates are cached as one composed object per key because invalidation
works at that granularity. A slow loader racing an invalidation can put the
old value back; such an entry lives at most until its TTL expires.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..config import Settings
from ..domain import KITCHEN_ACTIVE, KITCHEN_COMPLETED, OrderStatus, to_money
from ..errors import InvalidInput, NotFound
from ..models import Bill, Order, Rating, Reservation, Table, TableSession
from ..routes_metrics import cache_requests_total
from ..schemas import bill_view, order_view, reservation_view, table_view
from . import cache_keys as keys
from .cache import CacheStore
from .realtime import kitchen_order_payload

logger = logging.getLogger("tableside.read_path")

Loader = Callable[[], Awaitable[Any]]


class ReadThroughCache:
    """Return cached values, loading and storing them on a miss."""

    def __init__(self, cache: CacheStore) -> None:
        self.cache = cache

    async def get(self, key: str, loader: Loader, ttl: int) -> Any:
        if not self.cache.is_available():
            cache_requests_total.labels(result="bypass").inc()
            return await loader()
        cached = await self.cache.get(key)
        if cached is not None:
            cache_requests_total.labels(result="hit").inc()
            logger.debug("cache hit %s", key)
            return cached
        cache_requests_total.labels(result="miss").inc()
        value = await loader()
        # absent entities are not cached so they show up once created
        if value is not None:
            await self.cache.set(key, value, ttl)
        return value


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def elapsed_time(since: datetime, now: datetime) -> str:
    """``H:MM`` since ``since``, the way the kitchen display shows it."""
    minutes = max(0, int((_aware(now) - _aware(since)).total_seconds() // 60))
    return f"{minutes // 60}:{minutes % 60:02d}"


class ReadPath:
    def __init__(self, store, cache: CacheStore, settings: Settings, clock=None) -> None:
        self.store = store
        self.reads = ReadThroughCache(cache)
        self.settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _table_codes(self, table_ids) -> dict[str, str]:
        ids = {i for i in table_ids if i}
        if not ids:
            return {}
        rows = await self.store.find(Table, Table.id.in_(ids))
        return {t.id: t.code for t in rows}

    # -- orders ----------------------------------------------------------

    async def order_details(self, order_id: str) -> dict[str, Any]:
        async def load():
            order = await self.store.get(Order, order_id)
            return order_view(order) if order else None

        view = await self.reads.get(
            keys.order_details(order_id), load, self.settings.order_details_ttl
        )
        if view is None:
            raise NotFound("Order not found", orderId=order_id)
        return view

    async def user_orders(self, user_id: str, status: str | None = None) -> list[dict]:
        if status is not None:
            try:
                status = OrderStatus(status).value
            except ValueError:
                raise InvalidInput(f"Unknown order status {status!r}") from None

        async def load():
            criteria = [Order.user_id == user_id]
            if status:
                criteria.append(Order.status == status)
            rows = await self.store.find(
                Order, *criteria, order_by=Order.created_at.desc()
            )
            return [order_view(o) for o in rows]

        return await self.reads.get(
            keys.user_orders(user_id, status), load, self.settings.user_orders_ttl
        )

    async def session_orders(self, session_id: str) -> dict[str, Any]:
        """Session fields, its orders in placement order and their sum."""

        async def load():
            session = await self.store.get(TableSession, session_id)
            if session is None:
                return None
            order_ids = await self.store.reconcile_session_orders(session_id)
            orders = await self.store.orders_by_ids(order_ids)
            table = await self.store.get(Table, session.table_id)
            total = to_money(sum((o.total for o in orders), to_money(0)))
            return {
                "sessionId": session.id,
                "tableId": table.code if table else None,
                "status": session.status,
                "startTime": session.start_time.isoformat(),
                "endTime": session.end_time.isoformat() if session.end_time else None,
                "orders": [order_view(o) for o in orders],
                "sessionTotal": float(total),
            }

        view = await self.reads.get(
            keys.session_orders(session_id), load, self.settings.session_orders_ttl
        )
        if view is None:
            raise NotFound("Session not found", sessionId=session_id)
        return view

    async def kitchen_active_orders(self) -> list[dict]:
        async def load():
            rows = await self.store.find(
                Order,
                Order.status.in_([s.value for s in KITCHEN_ACTIVE]),
                order_by=Order.created_at,
            )
            now = self._clock()
            out = []
            for order in rows:
                entry = kitchen_order_payload(order_view(order))
                entry["elapsedTime"] = elapsed_time(order.created_at, now)
                out.append(entry)
            return out

        return await self.reads.get(
            keys.KITCHEN_ACTIVE_ORDERS, load, self.settings.kitchen_active_ttl
        )

    async def kitchen_completed_orders(self, limit: int | None = None) -> list[dict]:
        default = self.settings.kitchen_completed_limit
        limit = default if limit is None else limit
        if limit < 1:
            raise InvalidInput("limit must be positive")

        async def load():
            rows = await self.store.find(
                Order,
                Order.status.in_([s.value for s in KITCHEN_COMPLETED]),
                order_by=Order.updated_at.desc(),
                limit=limit,
            )
            out = []
            for order in rows:
                view = order_view(order)
                entry = kitchen_order_payload(view)
                entry["updatedAt"] = view["updatedAt"]
                out.append(entry)
            return out

        if limit != default:
            # only the default page is cached
            return await load()
        return await self.reads.get(
            keys.KITCHEN_COMPLETED_ORDERS, load, self.settings.kitchen_completed_ttl
        )

    async def user_ratings(self, user_id: str) -> dict[str, int]:
        async def load():
            rows = await self.store.find(Rating, Rating.user_id == user_id)
            return {r.menu_item_id: r.rating for r in rows}

        return await self.reads.get(
            keys.ratings(user_id), load, self.settings.ratings_ttl
        )

    async def user_reservations(self, user_id: str) -> list[dict]:
        async def load():
            rows = await self.store.find(
                Reservation,
                Reservation.user_id == user_id,
                order_by=Reservation.reservation_time,
            )
            codes = await self._table_codes(r.table_id for r in rows)
            return [reservation_view(r, codes.get(r.table_id)) for r in rows]

        return await self.reads.get(
            keys.user_reservations(user_id), load, self.settings.user_reservations_ttl
        )

    # -- uncached --------------------------------------------------------

    async def get_bill(self, bill_id: str) -> dict[str, Any]:
        bill = await self.store.get(Bill, bill_id)
        if bill is None:
            raise NotFound("Bill not found", billId=bill_id)
        return bill_view(bill)

    async def bill_for_session(self, session_id: str) -> dict[str, Any]:
        bill = await self.store.find_one(Bill, Bill.session_id == session_id)
        if bill is None:
            raise NotFound("Bill not found for this session", sessionId=session_id)
        return bill_view(bill)

    async def list_tables(self, include_inactive: bool = False) -> list[dict]:
        criteria = [] if include_inactive else [Table.is_active.is_(True)]
        rows = await self.store.find(Table, *criteria, order_by=Table.code)
        return [table_view(t) for t in rows]

    async def table_details(self, table_code: str) -> dict[str, Any]:
        table = await self.store.find_one(Table, Table.code == table_code)
        if table is None:
            raise NotFound("Table not found", tableId=table_code)
        return table_view(table)


__all__ = ["ReadPath", "ReadThroughCache", "elapsed_time"]
