"""Dependency helpers resolving the services wired onto ``app.state``.

``HTTPConnection`` is used rather than ``Request`` so the same helpers
serve WebSocket routes.
"""

from __future__ import annotations

from fastapi import Header
from starlette.requests import HTTPConnection

from ..services.lifecycle import LifecycleEngine
from ..services.read_path import ReadPath
from ..services.realtime import Notifier
from ..services.reservations import ReservationService


def get_engine(conn: HTTPConnection) -> LifecycleEngine:
    return conn.app.state.engine


def get_read_path(conn: HTTPConnection) -> ReadPath:
    return conn.app.state.read_path


def get_reservations(conn: HTTPConnection) -> ReservationService:
    return conn.app.state.reservations


def get_notifier(conn: HTTPConnection) -> Notifier:
    return conn.app.state.notifier


def get_actor(x_user: str | None = Header(default=None)) -> str | None:
    """Return the acting staff member or customer from ``X-User``.

    Authentication happens upstream; the header is trusted as given.
    """
    return x_user or None
