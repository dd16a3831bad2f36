"""Lifecycle engine for tables, sessions, orders and bills.

Each operation validates against current store state, performs its writes
one row at a time through the entity store and then hands a
:class:`~tableside.app.services.transitions.Transition` to the dispatcher.
Validation failures raise before anything is written. Cross-entity
cascades are not atomic; they are recomputed from the store every time so
a crash half-way is repaired by the next trigger.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError

from ..config import Settings, TransitionPolicyMode
from ..domain import (
    SESSION_OPEN,
    SESSION_TERMINAL,
    OrderStatus,
    OrderType,
    PaymentStatus,
    SessionStatus,
    TableStatus,
    TransitionPolicy,
    line_total,
    order_totals,
    to_money,
)
from ..errors import Conflict, InvalidInput, InvalidState, LifecycleError, NotFound, Unexpected
from ..models import (
    Bill,
    Customer,
    MenuItem,
    Order,
    OrderItem,
    SessionOrder,
    Table,
    TableSession,
    new_id,
)
from ..obs.errors import capture_exception
from ..routes_metrics import side_effect_failures_total
from ..schemas import OrderDraft, bill_view, order_view, session_view, table_view
from .transitions import Transition, TransitionKind

logger = logging.getLogger("tableside.lifecycle")

_OPEN = [s.value for s in SESSION_OPEN]


def _parse(enum, value, label: str):
    try:
        return enum(value)
    except ValueError:
        raise InvalidInput(f"Invalid {label}: {value!r}") from None


class LifecycleEngine:
    """Apply state transitions across Table, TableSession, Order and Bill."""

    def __init__(self, store, dispatcher, settings: Settings, clock=None) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.settings = settings
        self.policy = TransitionPolicy(
            strict=settings.order_transition_policy == TransitionPolicyMode.STRICT
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        return self._clock()

    async def _emit(self, kind: TransitionKind, **fields: Any) -> None:
        await self.dispatcher.committed(Transition(kind=kind, **fields))

    async def _require(self, model, pk, message: str, **details):
        if not pk:
            raise InvalidInput(message.replace("not found", "is required"))
        obj = await self.store.get(model, pk)
        if obj is None:
            raise NotFound(message, **details)
        return obj

    async def _table_by_code(self, table_code: str | None) -> Table:
        if not table_code:
            raise InvalidInput("Table ID is required")
        table = await self.store.find_one(Table, Table.code == table_code)
        if table is None:
            raise NotFound("Table not found", tableId=table_code)
        return table

    async def _table_code(self, table_id: str | None) -> str | None:
        table = await self.store.get(Table, table_id)
        return table.code if table else None

    async def describe_session(self, session: TableSession) -> dict[str, Any]:
        return session_view(session, await self._table_code(session.table_id))

    # -- tables ----------------------------------------------------------

    async def register_table(
        self, table_code: str, capacity: int | None = None
    ) -> tuple[Table, bool]:
        """Create the table for a device, or reactivate the existing one."""
        if not table_code:
            raise InvalidInput("Table ID is required")
        table = await self.store.find_one(Table, Table.code == table_code)
        if table is None:
            try:
                table = await self.store.add(
                    Table(
                        code=table_code,
                        capacity=capacity,
                        status=TableStatus.AVAILABLE.value,
                        is_active=True,
                    )
                )
                logger.info("registered table %s", table_code)
                return table, True
            except IntegrityError:
                table = await self.store.find_one(Table, Table.code == table_code)
        values: dict[str, Any] = {"is_active": True}
        if capacity is not None:
            values["capacity"] = capacity
        await self.store.update(Table, table.id, **values)
        return await self.store.get(Table, table.id), False

    async def set_table_active(self, table_code: str, is_active: bool) -> Table:
        """Tables are deactivated, never deleted."""
        table = await self._table_by_code(table_code)
        if is_active:
            await self.store.update(Table, table.id, is_active=True)
        else:
            ok = await self.store.update(
                Table,
                table.id,
                Table.status != TableStatus.OCCUPIED.value,
                is_active=False,
            )
            if not ok:
                raise Conflict("Cannot deactivate an occupied table", tableId=table_code)
        return await self.store.get(Table, table.id)

    async def update_table_status(self, table_code: str, status) -> Table:
        """Move a table between available, occupied and cleaning.

        Leaving ``occupied`` force-completes the attached session first so a
        table never loses its session reference while still pointing at an
        open session.
        """
        new = _parse(TableStatus, status, "table status")
        table = await self._table_by_code(table_code)
        current = TableStatus(table.status)
        if new is current:
            return table
        if new is TableStatus.OCCUPIED:
            raise Conflict(
                "A table becomes occupied only by starting a session",
                tableId=table_code,
            )

        if current is TableStatus.OCCUPIED:
            session = await self.store.get(TableSession, table.current_session_id)
            if session is not None and SessionStatus(session.status) in SESSION_OPEN:
                await self._close_session(
                    session, SessionStatus.COMPLETED, table, table_status=new
                )
            table = await self.store.get(Table, table.id)
            if table.status == TableStatus.OCCUPIED.value:
                # stale or missing session reference
                await self.store.update(
                    Table,
                    table.id,
                    Table.status == TableStatus.OCCUPIED.value,
                    status=new.value,
                    current_session_id=None,
                )
                table = await self.store.get(Table, table.id)
                await self._table_changed(table)
            return table

        ok = await self.store.update(
            Table, table.id, Table.status == current.value, status=new.value
        )
        if not ok:
            raise Conflict("Table status changed concurrently", tableId=table_code)
        table = await self.store.get(Table, table.id)
        await self._table_changed(table)
        return table

    async def _table_changed(self, table: Table) -> None:
        await self._emit(
            TransitionKind.TABLE_STATUS_CHANGED,
            table_code=table.code,
            status=table.status,
            snapshot={"table": table_view(table)},
        )

    async def _release_table(
        self, table: Table | None, session_id: str, status: TableStatus
    ) -> None:
        if table is None:
            return
        released = await self.store.update(
            Table,
            table.id,
            Table.current_session_id == session_id,
            status=status.value,
            current_session_id=None,
        )
        if released:
            await self._table_changed(await self.store.get(Table, table.id))
        else:
            logger.warning(
                "table %s no longer points at session %s; left as is",
                table.code,
                session_id,
            )

    # -- sessions --------------------------------------------------------

    async def start_session(self, table_code: str, client_id: str) -> TableSession:
        """Claim an available table for ``client_id``."""
        if not table_code or not client_id:
            raise InvalidInput("Table ID and User ID are required")
        table = await self._table_by_code(table_code)
        customer = await self.store.get(Customer, client_id)
        if customer is None:
            raise NotFound("User not found", clientId=client_id)
        if not table.is_active:
            raise Conflict("Table is not active", tableId=table_code)
        if table.status != TableStatus.AVAILABLE.value:
            raise Conflict("Table is not available", tableId=table_code)

        existing = await self.store.find_one(
            TableSession,
            TableSession.client_id == client_id,
            TableSession.status == SessionStatus.ACTIVE.value,
        )
        if existing is not None:
            raise Conflict(
                "You already have an active session at another table",
                sessionId=existing.id,
                tableId=await self._table_code(existing.table_id),
            )

        session_id = new_id()
        claimed = await self.store.update(
            Table,
            table.id,
            Table.status == TableStatus.AVAILABLE.value,
            Table.is_active.is_(True),
            status=TableStatus.OCCUPIED.value,
            current_session_id=session_id,
        )
        if not claimed:
            raise Conflict("Table is not available", tableId=table_code)
        try:
            session = await self.store.add(
                TableSession(
                    id=session_id,
                    table_id=table.id,
                    client_id=client_id,
                    status=SessionStatus.ACTIVE.value,
                    start_time=self._now(),
                )
            )
        except (IntegrityError, Unexpected) as exc:
            await self.store.update(
                Table,
                table.id,
                Table.current_session_id == session_id,
                status=TableStatus.AVAILABLE.value,
                current_session_id=None,
            )
            raise Unexpected("Failed to start session") from exc

        logger.info("session %s started at table %s by %s", session.id, table_code, client_id)
        await self._emit(
            TransitionKind.SESSION_STARTED,
            session_id=session.id,
            user_id=client_id,
            table_code=table_code,
            status=session.status,
            snapshot={
                "session": session_view(session, table_code),
                "customer_name": customer.full_name,
            },
        )
        return session

    async def _close_session(
        self,
        session: TableSession,
        status: SessionStatus,
        table: Table | None = None,
        table_status: TableStatus = TableStatus.CLEANING,
        bill: Bill | None = None,
    ) -> bool:
        """Close an open session and release its table; False if already closed."""
        closed = await self.store.update(
            TableSession,
            session.id,
            TableSession.status.in_(_OPEN),
            status=status.value,
            end_time=self._now(),
        )
        if not closed:
            return False
        if table is None:
            table = await self.store.get(Table, session.table_id)
        await self._release_table(table, session.id, table_status)

        session = await self.store.get(TableSession, session.id)
        if bill is None:
            bill = await self.store.find_one(Bill, Bill.session_id == session.id)
        code = table.code if table else None
        logger.info("session %s %s", session.id, status.value)
        await self._emit(
            TransitionKind.SESSION_ENDED,
            session_id=session.id,
            user_id=session.client_id,
            table_code=code,
            status=status.value,
            snapshot={
                "session": session_view(session, code),
                "bill": bill_view(bill) if bill else None,
            },
        )
        return True

    async def _settle_session(self, session_id: str) -> bool:
        """Close the session once it is fully paid.

        Fully paid means the session's bill is paid, or the session awaits
        payment and every attached order is paid. Recomputed from the store
        on every call and a no-op for sessions already closed.
        """
        session = await self.store.get(TableSession, session_id)
        if session is None or SessionStatus(session.status) in SESSION_TERMINAL:
            return False
        bill = await self.store.find_one(Bill, Bill.session_id == session_id)
        if bill is None or bill.payment_status != PaymentStatus.PAID.value:
            if session.status != SessionStatus.PAYMENT_PENDING.value:
                return False
            order_ids = await self.store.reconcile_session_orders(session_id)
            if not order_ids or await self.store.count_unpaid(order_ids):
                return False
        return await self._close_session(session, SessionStatus.CLOSED, bill=bill)

    async def _cascade(self, session_id: str | None) -> bool:
        if not session_id:
            return False
        try:
            return await self._settle_session(session_id)
        except Exception as exc:
            # the primary write stands; the next trigger recomputes
            side_effect_failures_total.labels(stage="cascade").inc()
            logger.exception("settlement cascade failed for session %s", session_id)
            capture_exception(exc)
            return False

    async def end_table_session(self, session_id: str) -> tuple[TableSession, Bill]:
        """End a session directly: bill it, close it, send the table to cleaning."""
        session = await self._require(
            TableSession, session_id, "Session not found", sessionId=session_id
        )
        if SessionStatus(session.status) in SESSION_TERMINAL:
            raise Conflict("Session is already closed", sessionId=session_id)
        bill, _ = await self._ensure_bill(session)
        if not await self._close_session(session, SessionStatus.CLOSED, bill=bill):
            raise Conflict("Session is already closed", sessionId=session_id)
        return await self.store.get(TableSession, session_id), bill

    # -- bills -----------------------------------------------------------

    async def _ensure_bill(self, session: TableSession) -> tuple[Bill, bool]:
        existing = await self.store.find_one(Bill, Bill.session_id == session.id)
        if existing is not None:
            return existing, False
        order_ids = await self.store.reconcile_session_orders(session.id)
        orders = await self.store.orders_by_ids(order_ids)
        total = to_money(sum((o.total for o in orders), Decimal("0")))
        try:
            bill = await self.store.add(
                Bill(
                    session_id=session.id,
                    total=total,
                    payment_status=PaymentStatus.PENDING.value,
                    created_at=self._now(),
                )
            )
        except IntegrityError:
            # a concurrent request created it first
            return await self.store.find_one(Bill, Bill.session_id == session.id), False
        logger.info("bill %s generated for session %s (%s)", bill.id, session.id, total)
        await self._emit(
            TransitionKind.BILL_GENERATED,
            session_id=session.id,
            table_code=await self._table_code(session.table_id),
            status=bill.payment_status,
            snapshot={"bill": bill_view(bill)},
        )
        return bill, True

    async def generate_bill(self, session_id: str) -> tuple[Bill, bool]:
        """Return the session's bill, creating it on first request."""
        session = await self._require(
            TableSession, session_id, "Session not found", sessionId=session_id
        )
        if SessionStatus(session.status) in SESSION_TERMINAL:
            existing = await self.store.find_one(Bill, Bill.session_id == session_id)
            if existing is None:
                raise Conflict("Session is closed and has no bill", sessionId=session_id)
            return existing, False

        bill, created = await self._ensure_bill(session)
        if session.status == SessionStatus.ACTIVE.value:
            moved = await self.store.update(
                TableSession,
                session.id,
                TableSession.status == SessionStatus.ACTIVE.value,
                status=SessionStatus.PAYMENT_PENDING.value,
            )
            if moved:
                await self._emit(
                    TransitionKind.SESSION_STATUS_CHANGED,
                    session_id=session.id,
                    user_id=session.client_id,
                    status=SessionStatus.PAYMENT_PENDING.value,
                    previous_status=SessionStatus.ACTIVE.value,
                )
                # orders paid one by one before the bill was asked for
                await self._cascade(session.id)
        return bill, created

    async def end_session_and_bill(self, session_id: str) -> tuple[TableSession, Bill]:
        """Bill an open session and leave it awaiting payment.

        Unlike :meth:`end_table_session` the table stays occupied until the
        bill, or every order, is paid.
        """
        session = await self._require(
            TableSession, session_id, "Session not found", sessionId=session_id
        )
        if SessionStatus(session.status) in SESSION_TERMINAL:
            raise Conflict("Session is already closed", sessionId=session_id)
        bill, _ = await self.generate_bill(session_id)
        return await self.store.get(TableSession, session_id), bill

    async def settle_bill(
        self,
        bill_id: str,
        payment_status,
        payment_method=None,
        processed_by: str | None = None,
    ) -> tuple[Bill, bool]:
        """Record a bill payment; a paid bill closes its session."""
        status = _parse(PaymentStatus, payment_status, "payment status")
        bill = await self._require(Bill, bill_id, "Bill not found", billId=bill_id)
        values: dict[str, Any] = {
            "payment_status": status.value,
            "updated_at": self._now(),
        }
        if payment_method:
            values["payment_method"] = getattr(payment_method, "value", payment_method)
        if processed_by:
            values["processed_by"] = processed_by
        await self.store.update(Bill, bill.id, **values)
        bill = await self.store.get(Bill, bill.id)

        await self._emit(
            TransitionKind.BILL_SETTLED,
            session_id=bill.session_id,
            status=status.value,
            snapshot={"bill": bill_view(bill)},
        )
        session_updated = False
        if status is PaymentStatus.PAID:
            session_updated = await self._cascade(bill.session_id)
        return bill, session_updated

    # -- orders ----------------------------------------------------------

    async def _order_target(
        self, draft: OrderDraft
    ) -> tuple[TableSession | None, Table | None]:
        session = table = None
        if draft.session_id:
            session = await self._require(
                TableSession, draft.session_id, "Session not found", sessionId=draft.session_id
            )
            if session.status != SessionStatus.ACTIVE.value:
                raise InvalidState("Session is not active", sessionId=session.id)
            table = await self.store.get(Table, session.table_id)
        if draft.table_code:
            named = await self._table_by_code(draft.table_code)
            if session is not None and named.id != session.table_id:
                raise Conflict(
                    "Session does not belong to this table",
                    sessionId=session.id,
                    tableId=draft.table_code,
                )
            table = named
            if session is None and table.current_session_id:
                current = await self.store.get(TableSession, table.current_session_id)
                if current is not None and current.status == SessionStatus.ACTIVE.value:
                    session = current
        return session, table

    async def _build_items(self, draft: OrderDraft) -> list[OrderItem]:
        ids = [line.menu_item_id for line in draft.items]
        menu = {m.id: m for m in await self.store.find(MenuItem, MenuItem.id.in_(ids))}
        items = []
        for position, line in enumerate(draft.items):
            menu_item = menu.get(line.menu_item_id)
            if menu_item is None:
                raise NotFound(
                    f"Menu item with ID {line.menu_item_id} not found",
                    menuItemId=line.menu_item_id,
                )
            if not menu_item.is_available:
                raise InvalidState(
                    f"Menu item {menu_item.name} is not available",
                    menuItemId=menu_item.id,
                )
            items.append(
                OrderItem(
                    position=position,
                    menu_item_id=menu_item.id,
                    category=menu_item.category,
                    name_snapshot=menu_item.name,
                    price_snapshot=to_money(menu_item.price),
                    qty=line.quantity,
                    line_total=line_total(menu_item.price, line.quantity),
                    special_instructions=line.special_instructions or "",
                )
            )
        return items

    async def place_order(self, draft: OrderDraft) -> Order:
        """Persist a new pending order, then link it to its session."""
        order_type = _parse(OrderType, draft.order_type, "order type")
        if not draft.items:
            raise InvalidInput("Items and order type are required")
        if order_type is OrderType.DINE_IN and not (
            draft.table_code or draft.device_id or draft.session_id
        ):
            raise InvalidInput("Table ID or Device ID is required for Dine In orders")
        if draft.user_id and await self.store.get(Customer, draft.user_id) is None:
            raise NotFound("User not found", userId=draft.user_id)

        session, table = await self._order_target(draft)
        items = await self._build_items(draft)
        fee = self.settings.delivery_fee if order_type is OrderType.DELIVERY else 0
        subtotal, fee, total = order_totals((i.line_total for i in items), fee)
        now = self._now()
        address = draft.delivery_address or (
            "Dine-in" if order_type is OrderType.DINE_IN else "Pick up at restaurant"
        )
        order = Order(
            id=new_id(),
            user_id=draft.user_id,
            session_id=session.id if session else None,
            table_id=table.id if table else None,
            table_code=table.code if table else None,
            device_id=draft.device_id,
            order_type=order_type.value,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=getattr(draft.payment_method, "value", draft.payment_method),
            subtotal=subtotal,
            delivery_fee=fee,
            total=total,
            delivery_address=address,
            delivery_instructions=draft.delivery_instructions or "",
            created_at=now,
            updated_at=now,
            items=items,
        )
        try:
            order = await self.store.add(order)
        except IntegrityError as exc:
            raise Unexpected("Failed to create order") from exc
        logger.info("order %s placed (%s, total %s)", order.id, order_type.value, total)

        if session is not None:
            await self._attach(session.id, order.id)
        await self._emit(
            TransitionKind.ORDER_CREATED,
            order_id=order.id,
            user_id=order.user_id,
            session_id=order.session_id,
            table_code=order.table_code,
            status=order.status,
            snapshot={"order": order_view(order)},
        )
        return order

    async def _attach(self, session_id: str, order_id: str) -> bool:
        """Append-if-absent with a few retries; the order stands regardless."""
        retries = max(1, self.settings.attach_retries)
        for attempt in range(1, retries + 1):
            try:
                await self.store.attach_order(session_id, order_id)
                return True
            except LifecycleError as exc:
                logger.warning(
                    "attach %s -> %s failed (attempt %d/%d): %s",
                    order_id,
                    session_id,
                    attempt,
                    retries,
                    exc,
                )
        side_effect_failures_total.labels(stage="attach").inc()
        logger.error("order %s left unattached from session %s", order_id, session_id)
        return False

    async def attach_order(self, order_id: str, session_id: str) -> Order:
        """Idempotently associate an existing order with a session."""
        order = await self._require(Order, order_id, "Order not found", orderId=order_id)
        session = await self._require(
            TableSession, session_id, "Session not found", sessionId=session_id
        )
        if order.session_id and order.session_id != session.id:
            raise Conflict(
                "Order already belongs to another session",
                orderId=order.id,
                sessionId=order.session_id,
            )
        if order.session_id is None:
            if SessionStatus(session.status) in SESSION_TERMINAL:
                raise InvalidState("Session is closed", sessionId=session.id)
            table = await self.store.get(Table, session.table_id)
            ok = await self.store.update(
                Order,
                order.id,
                Order.session_id.is_(None),
                session_id=session.id,
                table_id=session.table_id,
                table_code=table.code if table else order.table_code,
                updated_at=self._now(),
            )
            if not ok:
                raise Conflict("Order already belongs to another session", orderId=order.id)
        added = await self.store.attach_order(session.id, order.id)
        order = await self.store.get(Order, order.id)
        if added:
            await self._emit(
                TransitionKind.ORDER_ATTACHED,
                order_id=order.id,
                user_id=order.user_id,
                session_id=session.id,
                table_code=order.table_code,
                status=order.status,
                snapshot={"order": order_view(order)},
            )
        return order

    async def update_order_status(self, order_id: str, status) -> tuple[Order, bool]:
        """Move an order to ``status``; returns ``(order, changed)``."""
        new = _parse(OrderStatus, status, "order status")
        order = await self._require(Order, order_id, "Order not found", orderId=order_id)
        current = OrderStatus(order.status)
        if self.policy.is_noop(current, new):
            return order, False
        if not self.policy.allows(current, new):
            raise InvalidState(
                f"Cannot move order from {current.value} to {new.value}",
                orderId=order.id,
                status=current.value,
            )
        # concurrent updates are last-write-wins
        if not await self.store.update(
            Order, order.id, status=new.value, updated_at=self._now()
        ):
            raise NotFound("Order not found", orderId=order_id)
        order = await self.store.get(Order, order.id)
        logger.info("order %s %s -> %s", order.id, current.value, new.value)
        await self._emit(
            TransitionKind.ORDER_STATUS_CHANGED,
            order_id=order.id,
            user_id=order.user_id,
            session_id=await self._session_of(order),
            table_code=order.table_code,
            status=new.value,
            previous_status=current.value,
            snapshot={"order": order_view(order)},
        )
        return order, True

    async def _session_of(self, order: Order) -> str | None:
        if order.session_id:
            return order.session_id
        link = await self.store.find_one(SessionOrder, SessionOrder.order_id == order.id)
        return link.session_id if link else None

    async def update_payment_status(
        self, order_id: str, payment_status, payment_id: str | None = None
    ) -> tuple[Order, bool]:
        """Record an order payment; returns ``(order, session_updated)``."""
        status = _parse(PaymentStatus, payment_status, "payment status")
        order = await self._require(Order, order_id, "Order not found", orderId=order_id)
        values: dict[str, Any] = {
            "payment_status": status.value,
            "updated_at": self._now(),
        }
        if payment_id:
            values["payment_id"] = payment_id
        await self.store.update(Order, order.id, **values)
        order = await self.store.get(Order, order.id)

        session_id = await self._session_of(order)
        await self._emit(
            TransitionKind.PAYMENT_STATUS_CHANGED,
            order_id=order.id,
            user_id=order.user_id,
            session_id=session_id,
            table_code=order.table_code,
            status=status.value,
            snapshot={"order": order_view(order)},
        )
        session_updated = False
        if status is PaymentStatus.PAID:
            session_updated = await self._cascade(session_id)
        return order, session_updated

    # -- ratings ---------------------------------------------------------

    async def submit_ratings(
        self, order_id: str, user_id: str | None, item_ratings: Iterable[dict]
    ) -> int:
        """Store 1-5 ratings for items of a delivered order."""
        item_ratings = list(item_ratings or [])
        if not user_id:
            raise InvalidInput("User is required to rate an order")
        if not item_ratings:
            raise InvalidInput("No ratings provided")
        order = await self.store.find_one(
            Order, Order.id == order_id, Order.user_id == user_id
        )
        if order is None:
            raise NotFound("Order not found", orderId=order_id)
        if order.status != OrderStatus.DELIVERED.value:
            raise InvalidState("Only delivered orders can be rated", orderId=order_id)

        valid: dict[str, int] = {}
        for entry in item_ratings:
            menu_item_id = entry.get("menuItemId") or entry.get("menu_item_id")
            value = entry.get("ratingValue", entry.get("rating"))
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            if (
                not menu_item_id
                or isinstance(value, bool)
                or not isinstance(value, int)
                or not 1 <= value <= 5
            ):
                logger.warning("skipping invalid rating %r on order %s", entry, order_id)
                continue
            valid[str(menu_item_id)] = value
        if not valid:
            raise InvalidInput("No valid ratings provided")

        for menu_item_id, value in valid.items():
            await self.store.upsert_rating(user_id, menu_item_id, value)
        updated = await self.store.set_item_ratings(order.id, valid)
        await self._emit(
            TransitionKind.RATINGS_SUBMITTED,
            order_id=order.id,
            user_id=user_id,
            session_id=order.session_id,
        )
        return updated


__all__ = ["LifecycleEngine"]
