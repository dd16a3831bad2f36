"""JSON log lines for the service.

Every record becomes one JSON object. Besides the HTTP fields set by
:class:`~tableside.app.middlewares.logging.LoggingMiddleware`, records may
carry lifecycle identifiers passed through ``extra`` (``kind``,
``order_id``, ``session_id``, ``table_id``) so one grep follows an order or a
session across HTTP, socket and side-effect logs.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from ..middlewares.request_id import request_id_ctx

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+", re.I)
PHONE_RE = re.compile(r"(?<!\w)\+?\d[\d -]{8,13}\d(?!\w)")

_HTTP_FIELDS = ("route", "status", "latency_ms", "error_id")
_LIFECYCLE_FIELDS = ("kind", "order_id", "session_id", "table_id")


def _redact_pii(text: str) -> str:
    """Mask customer e-mail addresses and phone numbers."""
    return PHONE_RE.sub("***", EMAIL_RE.sub("***", text))


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.req_id = request_id_ctx.get(None)
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "req_id": getattr(record, "req_id", None),
            "msg": _redact_pii(record.getMessage()),
        }
        for name in _HTTP_FIELDS + _LIFECYCLE_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                data[name] = value
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    """Send every logger through a single JSON handler on stderr."""

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
