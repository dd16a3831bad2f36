"""Order placement, kitchen workflow, payment and rating routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from .deps.services import get_actor, get_engine, get_read_path
from .schemas import (
    AttachSessionIn,
    OrderDraft,
    OrderStatusIn,
    PaymentStatusIn,
    RatingsIn,
    order_view,
)
from .services.lifecycle import LifecycleEngine
from .services.read_path import ReadPath
from .utils.responses import ok

router = APIRouter(prefix="/api/orders")


@router.post("", status_code=201)
async def create_order(
    payload: OrderDraft, engine: LifecycleEngine = Depends(get_engine)
) -> dict:
    order = await engine.place_order(payload)
    return ok("Order created successfully", order=order_view(order))


# Fixed paths are declared before ``/{order_id}`` so they are matched first.


@router.get("/kitchen/active")
async def kitchen_active(reads: ReadPath = Depends(get_read_path)) -> dict:
    """Orders the kitchen still has to work on, oldest first."""
    return ok("Active orders", orders=await reads.kitchen_active_orders())


@router.get("/kitchen/completed")
async def kitchen_completed(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    reads: ReadPath = Depends(get_read_path),
) -> dict:
    """Recently finished orders, most recently updated first."""
    return ok("Completed orders", orders=await reads.kitchen_completed_orders(limit))


@router.get("/user/{user_id}")
async def orders_by_user(
    user_id: str,
    status: Optional[str] = None,
    reads: ReadPath = Depends(get_read_path),
) -> dict:
    return ok("User orders", orders=await reads.user_orders(user_id, status))


@router.get("/user/{user_id}/ratings")
async def ratings_by_user(user_id: str, reads: ReadPath = Depends(get_read_path)) -> dict:
    return ok("User ratings", ratings=await reads.user_ratings(user_id))


@router.get("/session/{session_id}")
async def orders_by_session(
    session_id: str, reads: ReadPath = Depends(get_read_path)
) -> dict:
    """Every order of a session in placement order, with the running total."""
    return ok("Session orders", session=await reads.session_orders(session_id))


@router.get("/{order_id}")
async def get_order(order_id: str, reads: ReadPath = Depends(get_read_path)) -> dict:
    return ok("Order retrieved", order=await reads.order_details(order_id))


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: str,
    payload: OrderStatusIn,
    engine: LifecycleEngine = Depends(get_engine),
) -> dict:
    order, changed = await engine.update_order_status(order_id, payload.status)
    if not changed:
        return ok(f"Order status is already {order.status}", order=order_view(order))
    return ok("Order status updated successfully", order=order_view(order))


@router.put("/{order_id}/payment")
async def update_payment_status(
    order_id: str,
    payload: PaymentStatusIn,
    engine: LifecycleEngine = Depends(get_engine),
) -> dict:
    order, session_updated = await engine.update_payment_status(
        order_id, payload.payment_status, payload.payment_id
    )
    return ok(
        "Payment status updated successfully",
        order=order_view(order),
        sessionUpdated=session_updated,
    )


@router.put("/{order_id}/session")
async def attach_to_session(
    order_id: str,
    payload: AttachSessionIn,
    engine: LifecycleEngine = Depends(get_engine),
) -> dict:
    order = await engine.attach_order(order_id, payload.session_id)
    return ok("Order attached to session", order=order_view(order))


@router.post("/{order_id}/rate-items")
async def rate_items(
    order_id: str,
    payload: RatingsIn,
    user: Optional[str] = Depends(get_actor),
    engine: LifecycleEngine = Depends(get_engine),
) -> dict:
    """Rate items of a delivered order; only its owner (``X-User``) may."""
    updated = await engine.submit_ratings(order_id, user, payload.item_ratings)
    return ok("Ratings saved", itemsRated=updated)
