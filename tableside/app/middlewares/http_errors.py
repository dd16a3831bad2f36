from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..routes_metrics import http_errors_total, http_requests_total


class HttpErrorCounterMiddleware(BaseHTTPMiddleware):
    """Count every response and, separately, HTTP error responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        http_requests_total.labels(
            path=path, method=request.method, status=str(response.status_code)
        ).inc()
        if 400 <= response.status_code < 600:
            http_errors_total.labels(status=str(response.status_code)).inc()
        return response
