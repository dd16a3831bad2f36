"""Error taxonomy for lifecycle operations.

Each exception carries the HTTP status it maps to at the boundary, so the
engine never imports FastAPI and handlers never guess status codes.
"""

from __future__ import annotations

from typing import Any


class LifecycleError(Exception):
    """Base class for failures raised before or instead of a commit."""

    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInput(LifecycleError):
    """Missing or malformed request fields; nothing was written."""

    status_code = 400


class NotFound(LifecycleError):
    """A referenced entity does not exist."""

    status_code = 404


class Conflict(LifecycleError):
    """The current state forbids the transition; nothing was written."""

    status_code = 409


class InvalidState(Conflict):
    """The entity exists but cannot take part in the operation."""


class DependencyUnavailable(LifecycleError):
    """Cache or real-time transport is unreachable.

    Writes never surface it: their durable commit stands and the failure is
    only logged and counted. Kitchen registration does, since it cannot
    work without the shared binding.
    """

    status_code = 503


class Unexpected(LifecycleError):
    """A store write failed; the mutation is considered not committed."""

    status_code = 500


__all__ = [
    "LifecycleError",
    "InvalidInput",
    "NotFound",
    "Conflict",
    "InvalidState",
    "DependencyUnavailable",
    "Unexpected",
]
