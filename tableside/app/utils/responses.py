from typing import Any, Dict

from fastapi.responses import JSONResponse


def ok(message: str, **entities: Any) -> Dict[str, Any]:
    """Return a success envelope carrying the affected entities."""
    return {"success": True, "message": message, **entities}


def err(message: str, error: Any | None = None, **extra: Any) -> Dict[str, Any]:
    """Return an error envelope."""
    body: Dict[str, Any] = {"message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return body


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    """Return a JSON error response with the standard envelope."""
    return JSONResponse(err(message, **extra), status_code=status_code)
