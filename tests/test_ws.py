import pytest
from starlette.websockets import WebSocketDisconnect


def receive_until(ws, event: str, limit: int = 6) -> dict:
    for _ in range(limit):
        message = ws.receive_json()
        if message["event"] == event:
            return message["data"]
    raise AssertionError(f"{event} not received")


def test_kitchen_receives_new_orders(ws_client):
    with ws_client.websocket_connect("/ws/kitchen") as ws:
        greeting = ws.receive_json()
        assert greeting["event"] == "kitchen_registered"
        assert greeting["data"]["success"] is True

        resp = ws_client.post(
            "/api/orders",
            json={
                "items": [{"menuItemId": "burger", "quantity": 1, "specialInstructions": "rare"}],
                "orderType": "Take Away",
            },
        )
        order = resp.json()["order"]
        pushed = receive_until(ws, "new_kitchen_order")
        assert pushed["id"] == order["id"]
        assert pushed["orderNumber"] == order["id"][-6:].upper()
        assert pushed["items"][0]["specialInstructions"] == "rare"

        ws_client.put(f"/api/orders/{order['id']}/status", json={"status": "preparing"})
        update = receive_until(ws, "order_status_updated")
        assert update["previousStatus"] == "pending"
        assert update["status"] == "preparing"


def test_table_socket_session_flow(ws_client):
    ws_client.post("/api/tables/register", json={"tableId": "T1"})
    with ws_client.websocket_connect("/ws/tables/T1") as ws:
        greeting = ws.receive_json()
        assert greeting["event"] == "table_registered"
        assert greeting["data"]["tableData"]["tableId"] == "T1"

        ws.send_json({"event": "scan_qr_code", "data": {"userId": "alice"}})
        created = receive_until(ws, "session_created")
        assert created["tableId"] == "T1" and created["status"] == "active"
        session_id = created["sessionId"]

        ws.send_json({"event": "initiate_session", "data": {"userId": "bob"}})
        refused = receive_until(ws, "error")
        assert refused["message"] == "Table is not available"

        ws_client.post(
            "/api/orders",
            json={
                "items": [{"menuItemId": "fries", "quantity": 2}],
                "orderType": "Dine In",
                "sessionId": session_id,
            },
        )
        placed = receive_until(ws, "new_order")
        assert placed["sessionId"] == session_id and placed["total"] == 7.0

        ws.send_json({"event": "end_session", "data": {"sessionId": session_id}})
        ended = receive_until(ws, "session_ended_confirmation")
        assert ended["bill"]["total"] == 7.0
        assert ended["bill"]["paymentStatus"] == "pending"

    table = ws_client.get("/api/tables/T1").json()["table"]
    assert table["status"] == "cleaning"


def test_table_socket_rejects_bad_input(ws_client):
    ws_client.post("/api/tables/register", json={"tableId": "T1"})
    with ws_client.websocket_connect("/ws/tables/T1") as ws:
        ws.receive_json()
        ws.send_text("not json")
        assert receive_until(ws, "error")["message"] == "Malformed message"
        ws.send_json({"event": "dance", "data": {}})
        assert "dance" in receive_until(ws, "error")["message"]
        ws.send_json({"event": "end_session", "data": {"sessionId": "missing"}})
        assert receive_until(ws, "error")["message"] == "Session not found"


def test_unknown_table_socket_is_closed(ws_client):
    with ws_client.websocket_connect("/ws/tables/NOPE") as ws:
        assert ws.receive_json() == {"event": "error", "data": {"message": "Table not found"}}
        with pytest.raises(WebSocketDisconnect) as info:
            ws.receive_json()
        assert info.value.code == 1008
