"""Table reservations for a future time slot."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, InvalidInput, NotFound, Unexpected
from ..models import Customer, Reservation, Table
from ..schemas import ReservationIn, reservation_view
from .transitions import Transition, TransitionKind

logger = logging.getLogger("tableside.reservations")


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ReservationService:
    def __init__(self, store, dispatcher) -> None:
        self.store = store
        self.dispatcher = dispatcher

    async def create_reservation(
        self, payload: ReservationIn
    ) -> tuple[Reservation, Table]:
        """Reserve the smallest free active table that seats the party."""
        if payload.guests < 1:
            raise InvalidInput("Reservation time and number of guests are required")
        if await self.store.get(Customer, payload.user_id) is None:
            raise NotFound("User not found", userId=payload.user_id)
        when = _utc(payload.reservation_time)

        taken = {
            r.table_id
            for r in await self.store.find(
                Reservation, Reservation.reservation_time == when
            )
        }
        candidates = await self.store.find(
            Table,
            Table.is_active.is_(True),
            Table.capacity >= payload.guests,
            order_by=(Table.capacity, Table.code),
        )
        table = next((t for t in candidates if t.id not in taken), None)
        if table is None:
            raise Conflict(
                "No table is available for this number of guests at that time",
                guests=payload.guests,
            )

        try:
            reservation = await self.store.add(
                Reservation(
                    user_id=payload.user_id,
                    table_id=table.id,
                    reservation_time=when,
                    guests=payload.guests,
                    special_requests=payload.special_requests or "",
                    payment_method=getattr(
                        payload.payment_method, "value", payload.payment_method
                    ),
                )
            )
        except IntegrityError as exc:
            raise Unexpected("Failed to create reservation") from exc
        logger.info(
            "reservation %s: table %s at %s for %d",
            reservation.id,
            table.code,
            when.isoformat(),
            payload.guests,
        )
        await self.dispatcher.committed(
            Transition(
                kind=TransitionKind.RESERVATION_CREATED,
                user_id=payload.user_id,
                table_code=table.code,
                reservation_date=when.date(),
                guests=payload.guests,
                snapshot={"reservation": reservation_view(reservation, table.code)},
            )
        )
        return reservation, table


__all__ = ["ReservationService"]
