# schemas.py

"""Pydantic models for API payloads and the JSON views returned by the API.

Request fields use the camelCase names the table, kiosk and kitchen apps
send; snake_case names are accepted too. Views are plain JSON-native dicts
(money as floats, datetimes as ISO strings) so a cached view and a freshly
loaded one are indistinguishable.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .domain import OrderStatus, PaymentMethod, PaymentStatus, TableStatus


class _In(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class TableRegisterIn(_In):
    """Registration sent by a table device on boot."""

    table_code: str = Field(alias="tableId", min_length=1)
    capacity: Optional[int] = Field(default=None, ge=1)


class TableStatusIn(_In):
    status: TableStatus


class TableActiveIn(_In):
    is_active: bool = Field(alias="isActive")


class SessionStartIn(_In):
    client_id: str = Field(alias="clientId", min_length=1)


class OrderLineIn(_In):
    """Single line item of an order draft."""

    menu_item_id: str = Field(alias="menuItemId", min_length=1)
    quantity: int = Field(ge=1)
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")


class OrderDraft(_In):
    """Everything needed to place an order."""

    items: List[OrderLineIn] = Field(min_length=1)
    order_type: str = Field(alias="orderType", min_length=1)
    user_id: Optional[str] = Field(default=None, alias="userId")
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    table_code: Optional[str] = Field(default=None, alias="tableId")
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    payment_method: PaymentMethod = Field(default=PaymentMethod.CASH, alias="paymentMethod")
    delivery_address: Optional[str] = Field(default=None, alias="deliveryAddress")
    delivery_instructions: Optional[str] = Field(
        default=None, alias="deliveryInstructions"
    )


class OrderStatusIn(_In):
    status: OrderStatus


class PaymentStatusIn(_In):
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    payment_id: Optional[str] = Field(default=None, alias="paymentId")


class AttachSessionIn(_In):
    session_id: str = Field(alias="sessionId", min_length=1)


class RatingsIn(_In):
    """Per-item ratings; malformed entries are skipped, not rejected."""

    item_ratings: List[dict[str, Any]] = Field(alias="itemRatings", min_length=1)


class BillPaymentIn(_In):
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    payment_method: Optional[PaymentMethod] = Field(default=None, alias="paymentMethod")


class ReservationIn(_In):
    user_id: str = Field(alias="userId", min_length=1)
    reservation_time: datetime = Field(alias="reservationTime")
    guests: int = Field(ge=1)
    special_requests: Optional[str] = Field(default=None, alias="specialRequests")
    payment_method: Optional[PaymentMethod] = Field(default=None, alias="paymentMethod")


# -- views ---------------------------------------------------------------


def _money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def order_item_view(item) -> dict[str, Any]:
    return {
        "menuItemId": item.menu_item_id,
        "name": item.name_snapshot,
        "category": item.category,
        "price": _money(item.price_snapshot),
        "quantity": item.qty,
        "total": _money(item.line_total),
        "specialInstructions": item.special_instructions or "",
        "rating": item.rating,
    }


def order_view(order) -> dict[str, Any]:
    return {
        "id": order.id,
        "userId": order.user_id,
        "sessionId": order.session_id,
        "tableId": order.table_code,
        "deviceId": order.device_id,
        "orderType": order.order_type,
        "status": order.status,
        "paymentStatus": order.payment_status,
        "paymentMethod": order.payment_method,
        "paymentId": order.payment_id,
        "items": [order_item_view(i) for i in order.items],
        "subtotal": _money(order.subtotal),
        "deliveryFee": _money(order.delivery_fee),
        "total": _money(order.total),
        "deliveryAddress": order.delivery_address,
        "deliveryInstructions": order.delivery_instructions,
        "createdAt": _ts(order.created_at),
        "updatedAt": _ts(order.updated_at),
    }


def session_view(session, table_code: str | None) -> dict[str, Any]:
    return {
        "id": session.id,
        "tableId": table_code,
        "clientId": session.client_id,
        "status": session.status,
        "startTime": _ts(session.start_time),
        "endTime": _ts(session.end_time),
        "orders": session.order_ids,
    }


def bill_view(bill) -> dict[str, Any]:
    return {
        "id": bill.id,
        "sessionId": bill.session_id,
        "total": _money(bill.total),
        "paymentStatus": bill.payment_status,
        "paymentMethod": bill.payment_method,
        "processedBy": bill.processed_by,
        "createdAt": _ts(bill.created_at),
        "updatedAt": _ts(bill.updated_at),
    }


def table_view(table) -> dict[str, Any]:
    return {
        "id": table.id,
        "tableId": table.code,
        "status": table.status,
        "isActive": table.is_active,
        "capacity": table.capacity,
        "currentSessionId": table.current_session_id,
    }


def reservation_view(reservation, table_code: str | None) -> dict[str, Any]:
    return {
        "id": reservation.id,
        "userId": reservation.user_id,
        "tableId": table_code,
        "reservationTime": _ts(reservation.reservation_time),
        "guests": reservation.guests,
        "specialRequests": reservation.special_requests,
        "paymentMethod": reservation.payment_method,
    }
