"""Order pricing helpers.

Prices are snapshotted from the menu when an order is placed; all
arithmetic uses :class:`~decimal.Decimal` rounded to cents.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Return ``value`` as a cent-rounded ``Decimal``."""

    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def line_total(price, quantity: int) -> Decimal:
    return to_money(to_money(price) * quantity)


def order_totals(line_totals: Iterable[Decimal], delivery_fee) -> tuple[Decimal, Decimal, Decimal]:
    """Return ``(subtotal, delivery_fee, total)`` for an order."""

    subtotal = to_money(sum(line_totals, Decimal("0")))
    fee = to_money(delivery_fee)
    return subtotal, fee, subtotal + fee
