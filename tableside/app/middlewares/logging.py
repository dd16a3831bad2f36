import logging
import os
import random
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..obs.errors import capture_exception
from ..utils.responses import err
from .request_id import request_id_ctx

LOG_SAMPLE_2XX = float(os.getenv("LOG_SAMPLE_2XX", "0.1"))


logger = logging.getLogger("tableside.http")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Emit one structured outbound log line per request."""

    async def dispatch(self, request: Request, call_next):
        req_id = getattr(request.state, "request_id", None)
        token = None
        if not req_id:
            req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
            request.state.request_id = req_id
            # Fallback for contexts where RequestIdMiddleware is absent
            token = request_id_ctx.set(req_id)

        start = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception as exc:
            error_id = str(uuid.uuid4())
            logger.exception("unhandled_error", extra={"error_id": error_id})
            capture_exception(exc)
            response = JSONResponse(
                err("Internal Server Error", error=error_id), status_code=500
            )
        dur_ms = int((time.perf_counter() - start) * 1000)
        status = response.status_code

        extra = {
            "route": request.url.path,
            "status": status,
            "latency_ms": dur_ms,
            "error_id": error_id,
        }
        if status >= 500:
            logger.error("%s %s", request.method, request.url.path, extra=extra)
        elif status >= 400 or random.random() < LOG_SAMPLE_2XX:
            logger.info("%s %s", request.method, request.url.path, extra=extra)

        response.headers["X-Request-ID"] = req_id
        if token is not None:
            request_id_ctx.reset(token)
        return response
