"""Bill generation, lookup and settlement routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from .deps.services import get_actor, get_engine, get_read_path
from .schemas import BillPaymentIn, bill_view
from .services.lifecycle import LifecycleEngine
from .services.read_path import ReadPath
from .utils.responses import ok

router = APIRouter(prefix="/api/bills")


@router.get("/session/{session_id}")
async def bill_for_session(
    session_id: str, reads: ReadPath = Depends(get_read_path)
) -> dict:
    return ok("Bill retrieved", bill=await reads.bill_for_session(session_id))


@router.post("/session/{session_id}")
async def generate_bill(
    session_id: str, engine: LifecycleEngine = Depends(get_engine)
) -> dict:
    """Create the session's bill, or return it if it already exists."""
    bill, created = await engine.generate_bill(session_id)
    message = "Bill generated successfully" if created else "Bill already exists"
    return ok(message, bill=bill_view(bill))


@router.post("/session/{session_id}/end")
async def end_session_with_bill(
    session_id: str, engine: LifecycleEngine = Depends(get_engine)
) -> dict:
    session, bill = await engine.end_session_and_bill(session_id)
    return ok(
        "Session ended and bill generated successfully",
        session=await engine.describe_session(session),
        bill=bill_view(bill),
    )


@router.get("/{bill_id}")
async def get_bill(bill_id: str, reads: ReadPath = Depends(get_read_path)) -> dict:
    return ok("Bill retrieved", bill=await reads.get_bill(bill_id))


@router.put("/{bill_id}/payment")
async def settle_bill(
    bill_id: str,
    payload: BillPaymentIn,
    processed_by: Optional[str] = Depends(get_actor),
    engine: LifecycleEngine = Depends(get_engine),
) -> dict:
    bill, session_updated = await engine.settle_bill(
        bill_id, payload.payment_status, payload.payment_method, processed_by
    )
    return ok(
        "Bill payment updated",
        bill=bill_view(bill),
        sessionUpdated=session_updated,
    )
