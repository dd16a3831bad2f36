from datetime import datetime, timezone

import pytest

from tableside.app.errors import Conflict, NotFound
from tableside.app.schemas import ReservationIn

EVENING = datetime(2024, 5, 1, 19, 0, tzinfo=timezone.utc)


def booking(**fields) -> ReservationIn:
    fields.setdefault("userId", "alice")
    fields.setdefault("reservationTime", EVENING)
    fields.setdefault("guests", 2)
    return ReservationIn(**fields)


@pytest.mark.anyio
async def test_smallest_fitting_table_is_reserved(stack):
    await stack.engine.register_table("BIG", capacity=8)
    await stack.engine.register_table("T2", capacity=2)
    await stack.engine.register_table("T4", capacity=4)

    reservation, table = await stack.reservations.create_reservation(booking(guests=3))
    assert table.code == "T4"
    assert reservation.guests == 3

    _, second = await stack.reservations.create_reservation(booking(userId="bob", guests=3))
    assert second.code == "BIG"
    with pytest.raises(Conflict):
        await stack.reservations.create_reservation(booking(guests=3))

    # another slot is free again
    _, later = await stack.reservations.create_reservation(
        booking(guests=3, reservationTime=datetime(2024, 5, 1, 21, 0, tzinfo=timezone.utc))
    )
    assert later.code == "T4"


@pytest.mark.anyio
async def test_reservation_rejections(stack):
    await stack.engine.register_table("T2", capacity=2)
    with pytest.raises(NotFound):
        await stack.reservations.create_reservation(booking(userId="ghost"))
    with pytest.raises(Conflict):
        await stack.reservations.create_reservation(booking(guests=6))
    await stack.engine.set_table_active("T2", False)
    with pytest.raises(Conflict):
        await stack.reservations.create_reservation(booking())


@pytest.mark.anyio
async def test_reservation_drops_stale_views_and_broadcasts(stack):
    await stack.engine.register_table("T4", capacity=4)
    assert await stack.reads.user_reservations("alice") == []
    await stack.redis.set("reservation:availability:2024-05-01:2", "[]")
    await stack.redis.set("reservation:availability:2024-05-01:7", "[]")

    reservation, _ = await stack.reservations.create_reservation(booking())
    await stack.settle()

    assert await stack.redis.exists("reservation:availability:2024-05-01:2") == 0
    assert await stack.redis.exists("reservation:availability:2024-05-01:7") == 0
    listed = await stack.reads.user_reservations("alice")
    assert [r["id"] for r in listed] == [reservation.id]
    assert listed[0]["tableId"] == "T4"

    request = stack.transport.payloads("new_reservation_request")[0]
    assert request["reservationId"] == reservation.id
    assert request["guests"] == 2
