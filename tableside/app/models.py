"""Database models for tables, sessions, orders and bills.

Statuses are stored as their string values; :mod:`tableside.app.domain`
holds the enumerations. ``Table.current_session_id`` is deliberately a
plain column rather than a foreign key: the table only points at its
session, it never owns it.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


class Customer(Base):
    """End customers; owned by the accounts service, read here."""

    __tablename__ = "customers"

    id = Column(String(32), primary_key=True, default=new_id)
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)


class MenuItem(Base):
    """Menu catalogue entries referenced by order lines."""

    __tablename__ = "menu_items"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    out_of_stock = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_available(self) -> bool:
        return not self.out_of_stock and self.deleted_at is None


class Table(Base):
    """Dining tables registered by their table device."""

    __tablename__ = "tables"

    id = Column(String(32), primary_key=True, default=new_id)
    code = Column(String, unique=True, nullable=False)
    status = Column(String, nullable=False, default="available")
    is_active = Column(Boolean, nullable=False, default=True)
    capacity = Column(Integer, nullable=True)
    current_session_id = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class TableSession(Base):
    """The period a table is occupied by one party."""

    __tablename__ = "table_sessions"

    id = Column(String(32), primary_key=True, default=new_id)
    table_id = Column(String(32), ForeignKey("tables.id"), nullable=False)
    client_id = Column(String(32), nullable=True)
    status = Column(String, nullable=False, default="active")
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)

    order_links = relationship(
        "SessionOrder",
        order_by="SessionOrder.id",
        lazy="selectin",
        viewonly=True,
    )

    @property
    def order_ids(self) -> list[str]:
        return [link.order_id for link in self.order_links]


class SessionOrder(Base):
    """Append-only association of orders to a session, in placement order."""

    __tablename__ = "table_session_orders"
    __table_args__ = (UniqueConstraint("session_id", "order_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(32), ForeignKey("table_sessions.id"), nullable=False)
    order_id = Column(String(32), ForeignKey("orders.id"), nullable=False)
    attached_at = Column(DateTime(timezone=True), server_default=func.now())


class Order(Base):
    """Orders placed from a table, a kiosk or for takeaway/delivery."""

    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), nullable=True)
    session_id = Column(String(32), nullable=True)
    table_id = Column(String(32), ForeignKey("tables.id"), nullable=True)
    table_code = Column(String, nullable=True)
    device_id = Column(String, nullable=True)
    order_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")
    payment_status = Column(String, nullable=False, default="pending")
    payment_method = Column(String, nullable=False, default="cash")
    payment_id = Column(String, nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    delivery_address = Column(Text, nullable=True)
    delivery_instructions = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    items = relationship(
        "OrderItem",
        order_by="OrderItem.position",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class OrderItem(Base):
    """Line items belonging to an order with name and price snapshots."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(32), ForeignKey("orders.id"), nullable=False)
    position = Column(Integer, nullable=False)
    menu_item_id = Column(String(32), ForeignKey("menu_items.id"), nullable=False)
    category = Column(String, nullable=True)
    name_snapshot = Column(String, nullable=False)
    price_snapshot = Column(Numeric(10, 2), nullable=False)
    qty = Column(Integer, nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)
    special_instructions = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)


class Bill(Base):
    """At most one bill per session; ``total`` is a snapshot."""

    __tablename__ = "bills"

    id = Column(String(32), primary_key=True, default=new_id)
    session_id = Column(
        String(32), ForeignKey("table_sessions.id"), unique=True, nullable=False
    )
    total = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(String, nullable=False, default="pending")
    payment_method = Column(String, nullable=True)
    processed_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class Rating(Base):
    """Latest rating a customer gave a menu item."""

    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("user_id", "menu_item_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), nullable=False)
    menu_item_id = Column(String(32), ForeignKey("menu_items.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    source = Column(String, nullable=False, default="manual_order")
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Reservation(Base):
    """Table reservations for a future time slot."""

    __tablename__ = "reservations"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), nullable=False)
    table_id = Column(String(32), ForeignKey("tables.id"), nullable=False)
    reservation_time = Column(DateTime(timezone=True), nullable=False)
    guests = Column(Integer, nullable=False)
    special_requests = Column(Text, nullable=True)
    payment_method = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


__all__ = [
    "Base",
    "Customer",
    "MenuItem",
    "Table",
    "TableSession",
    "SessionOrder",
    "Order",
    "OrderItem",
    "Bill",
    "Rating",
    "Reservation",
    "new_id",
]
