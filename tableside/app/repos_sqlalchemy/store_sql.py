"""SQLAlchemy-backed entity store.

Every write opens its own ``AsyncSession`` and commits exactly one row (an
order together with its line items counts as one document), which is the
atomicity the lifecycle engine relies on. Conditional updates return
whether a row matched so callers can detect lost races without locks.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import Unexpected
from ..models import Order, OrderItem, Rating, SessionOrder

logger = logging.getLogger("tableside.store")

T = TypeVar("T")


class EntityStoreSQL:
    """Durable records for tables, sessions, orders and bills."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get(self, model: type[T], pk: Any) -> T | None:
        """Return the row of ``model`` with primary key ``pk`` or ``None``."""
        if pk is None:
            return None
        async with self._sessionmaker() as session:
            return await session.get(model, pk)

    async def find(
        self,
        model: type[T],
        *criteria,
        order_by: Sequence[Any] | Any = (),
        limit: int | None = None,
    ) -> list[T]:
        stmt = select(model).where(*criteria)
        if not isinstance(order_by, (list, tuple)):
            order_by = (order_by,)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._sessionmaker() as session:
            result = await session.scalars(stmt)
            return list(result.all())

    async def find_one(self, model: type[T], *criteria, order_by=()) -> T | None:
        rows = await self.find(model, *criteria, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def exists(self, model, *criteria) -> bool:
        stmt = select(func.count()).select_from(model).where(*criteria)
        async with self._sessionmaker() as session:
            return bool(await session.scalar(stmt))

    async def add(self, obj: T) -> T:
        """Insert ``obj`` and return it freshly loaded.

        ``IntegrityError`` propagates so callers can treat a uniqueness
        violation as "someone else got there first".
        """
        async with self._sessionmaker() as session:
            session.add(obj)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("insert into %s failed", type(obj).__tablename__)
                raise Unexpected("store write failed") from exc
            pk = obj.id
        return await self.get(type(obj), pk)

    async def update(self, model, pk: Any, *conditions, **values) -> bool:
        """Update one row, optionally guarded by extra ``conditions``.

        Returns ``False`` when no row matched, either because ``pk`` is
        unknown or because a guard no longer holds.
        """
        stmt = update(model).where(model.id == pk, *conditions).values(**values)
        async with self._sessionmaker() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.exception("update of %s %s failed", model.__tablename__, pk)
                raise Unexpected("store write failed") from exc
            return result.rowcount > 0

    # -- session/order association -------------------------------------

    async def attach_order(self, session_id: str, order_id: str) -> bool:
        """Append ``order_id`` to the session unless it is already there."""
        if await self.exists(
            SessionOrder,
            SessionOrder.session_id == session_id,
            SessionOrder.order_id == order_id,
        ):
            return False
        try:
            await self.add(SessionOrder(session_id=session_id, order_id=order_id))
        except IntegrityError:
            return False
        return True

    async def session_order_ids(self, session_id: str) -> list[str]:
        stmt = (
            select(SessionOrder.order_id)
            .where(SessionOrder.session_id == session_id)
            .order_by(SessionOrder.id)
        )
        async with self._sessionmaker() as session:
            result = await session.scalars(stmt)
            return list(result.all())

    async def reconcile_session_orders(self, session_id: str) -> list[str]:
        """Attach orders that name ``session_id`` but were never linked.

        Placing an order writes the order first and the link second; this
        repairs the gap a crash between the two writes leaves behind.
        """
        linked = await self.session_order_ids(session_id)
        criteria = [Order.session_id == session_id]
        if linked:
            criteria.append(Order.id.not_in(linked))
        stray = await self.find(Order, *criteria, order_by=Order.created_at)
        if not stray:
            return linked
        for order in stray:
            logger.warning("re-attaching order %s to session %s", order.id, session_id)
            await self.attach_order(session_id, order.id)
        return await self.session_order_ids(session_id)

    async def orders_by_ids(self, order_ids: Iterable[str]) -> list[Order]:
        """Return orders for ``order_ids`` preserving the given order."""
        ids = list(order_ids)
        if not ids:
            return []
        rows = {o.id: o for o in await self.find(Order, Order.id.in_(ids))}
        return [rows[i] for i in ids if i in rows]

    async def count_unpaid(self, order_ids: Iterable[str]) -> int:
        ids = list(order_ids)
        if not ids:
            return 0
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(Order.id.in_(ids), Order.payment_status != "paid")
        )
        async with self._sessionmaker() as session:
            return int(await session.scalar(stmt) or 0)

    # -- ratings ---------------------------------------------------------

    async def set_item_ratings(self, order_id: str, ratings: dict[str, int]) -> int:
        """Store per-line ratings on an order; returns lines updated."""
        updated = 0
        async with self._sessionmaker() as session:
            for menu_item_id, value in ratings.items():
                result = await session.execute(
                    update(OrderItem)
                    .where(
                        OrderItem.order_id == order_id,
                        OrderItem.menu_item_id == menu_item_id,
                    )
                    .values(rating=value)
                )
                updated += result.rowcount
            await session.commit()
        return updated

    async def upsert_rating(self, user_id: str, menu_item_id: str, value: int) -> None:
        criteria = (Rating.user_id == user_id, Rating.menu_item_id == menu_item_id)
        existing = await self.find_one(Rating, *criteria)
        if existing is None:
            try:
                await self.add(
                    Rating(user_id=user_id, menu_item_id=menu_item_id, rating=value)
                )
                return
            except IntegrityError:
                existing = await self.find_one(Rating, *criteria)
        await self.update(Rating, existing.id, rating=value)


__all__ = ["EntityStoreSQL"]
