"""Reservation routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .deps.services import get_read_path, get_reservations
from .schemas import ReservationIn, reservation_view
from .services.read_path import ReadPath
from .services.reservations import ReservationService
from .utils.responses import ok

router = APIRouter(prefix="/api/reservations")


@router.post("", status_code=201)
async def create_reservation(
    payload: ReservationIn, service: ReservationService = Depends(get_reservations)
) -> dict:
    reservation, table = await service.create_reservation(payload)
    return ok(
        "Reservation created", reservation=reservation_view(reservation, table.code)
    )


@router.get("/user/{user_id}")
async def reservations_by_user(
    user_id: str, reads: ReadPath = Depends(get_read_path)
) -> dict:
    return ok("User reservations", reservations=await reads.user_reservations(user_id))
