import json
import logging

import pytest

from tableside.app.obs.logging import JsonFormatter


def _record(msg, **extra):
    record = logging.LogRecord("tableside.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_lines_redact_contact_details():
    line = JsonFormatter().format(
        _record("receipt for jane@example.com at +44 7700 900123", order_id="o1")
    )
    data = json.loads(line)
    assert "example.com" not in data["msg"]
    assert "7700" not in data["msg"]
    assert data["order_id"] == "o1"
    assert "session_id" not in data


@pytest.mark.anyio
async def test_request_id_is_generated_once(client):
    resp = await client.get("/health")
    generated = resp.headers["X-Request-ID"]
    assert generated
    assert resp.headers.get_list("X-Request-ID") == [generated]

    resp = await client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
    assert resp.headers["X-Request-ID"] != "bad id with spaces"
