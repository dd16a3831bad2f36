# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

# Counters
http_requests_total = Counter(
    "http_requests_total", "Total HTTP requests", ["path", "method", "status"]
)

http_errors_total = Counter("http_errors_total", "Total HTTP errors", ["status"])
http_errors_total.labels(status="0").inc(0)

lifecycle_transitions_total = Counter(
    "lifecycle_transitions_total", "Committed lifecycle transitions", ["kind"]
)

cache_requests_total = Counter(
    "cache_requests_total", "Read path cache lookups", ["result"]
)
for _result in ("hit", "miss", "bypass", "error"):
    cache_requests_total.labels(result=_result).inc(0)

cache_invalidations_total = Counter(
    "cache_invalidations_total", "Cache keys dropped after a committed transition"
)
cache_invalidations_total.inc(0)

side_effect_failures_total = Counter(
    "side_effect_failures_total",
    "Post-commit side effects that failed and were dropped",
    ["stage"],
)
for _stage in ("invalidate", "notify", "cascade", "attach"):
    side_effect_failures_total.labels(stage=_stage).inc(0)

realtime_events_total = Counter(
    "realtime_events_total", "Real-time events emitted", ["event", "scope"]
)

realtime_connections = Gauge(
    "realtime_connections", "Currently connected real-time sockets", ["role"]
)
realtime_connections.labels(role="kitchen").set(0)
realtime_connections.labels(role="table").set(0)

ws_messages_total = Counter("ws_messages_total", "Total WebSocket messages sent")
ws_messages_total.inc(0)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    data = generate_latest()
    return Response(data, media_type=CONTENT_TYPE_LATEST)
