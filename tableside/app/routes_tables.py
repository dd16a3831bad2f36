"""Table registration, table status and session start/end routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from .deps.services import get_engine, get_read_path
from .schemas import (
    SessionStartIn,
    TableActiveIn,
    TableRegisterIn,
    TableStatusIn,
    bill_view,
    table_view,
)
from .services.lifecycle import LifecycleEngine
from .services.read_path import ReadPath
from .utils.responses import ok

router = APIRouter(prefix="/api")


@router.post("/tables/register")
async def register_table(
    payload: TableRegisterIn, engine: LifecycleEngine = Depends(get_engine)
) -> dict:
    """Register a table device, reactivating the table if it exists."""
    table, created = await engine.register_table(payload.table_code, payload.capacity)
    message = "Table registered successfully" if created else "Table re-registered"
    return ok(message, table=table_view(table))


@router.get("/tables")
async def list_tables(
    include_inactive: bool = False, reads: ReadPath = Depends(get_read_path)
) -> dict:
    return ok("Tables retrieved", tables=await reads.list_tables(include_inactive))


@router.get("/tables/{table_code}")
async def get_table(table_code: str, reads: ReadPath = Depends(get_read_path)) -> dict:
    return ok("Table retrieved", table=await reads.table_details(table_code))


@router.put("/tables/{table_code}/status")
async def update_table_status(
    table_code: str,
    payload: TableStatusIn,
    engine: LifecycleEngine = Depends(get_engine),
) -> dict:
    table = await engine.update_table_status(table_code, payload.status)
    return ok("Table status updated", table=table_view(table))


@router.put("/tables/{table_code}/active")
async def set_table_active(
    table_code: str,
    payload: TableActiveIn,
    engine: LifecycleEngine = Depends(get_engine),
) -> dict:
    table = await engine.set_table_active(table_code, payload.is_active)
    message = "Table activated" if table.is_active else "Table deactivated"
    return ok(message, table=table_view(table))


@router.post("/tables/{table_code}/sessions", status_code=201)
async def start_session(
    table_code: str,
    payload: SessionStartIn,
    engine: LifecycleEngine = Depends(get_engine),
) -> dict:
    """Claim ``table_code`` for a customer after a QR scan or staff action."""
    session = await engine.start_session(table_code, payload.client_id)
    return ok("Session started", session=await engine.describe_session(session))


@router.post("/sessions/{session_id}/end")
async def end_session(
    session_id: str, engine: LifecycleEngine = Depends(get_engine)
) -> dict:
    """End a session directly; the bill is created if it does not exist."""
    session, bill = await engine.end_table_session(session_id)
    return ok(
        "Session ended",
        session=await engine.describe_session(session),
        bill=bill_view(bill),
    )
