import pytest

pytestmark = pytest.mark.anyio


async def seat(client, code="T1", client_id="alice"):
    resp = await client.post("/api/tables/register", json={"tableId": code, "capacity": 4})
    assert resp.status_code == 200
    resp = await client.post(f"/api/tables/{code}/sessions", json={"clientId": client_id})
    assert resp.status_code == 201
    return resp.json()["session"]


async def test_dine_in_flow_over_http(client, app):
    session = await seat(client)
    assert session["tableId"] == "T1" and session["status"] == "active"

    resp = await client.post(
        "/api/orders",
        json={
            "items": [
                {"menuItemId": "burger", "quantity": 2},
                {"menuItemId": "fries", "quantity": 1},
            ],
            "orderType": "Dine In",
            "sessionId": session["id"],
            "userId": "alice",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Order created successfully"
    order = body["order"]
    assert order["total"] == 13.5 and order["tableId"] == "T1"

    resp = await client.get(f"/api/orders/session/{session['id']}")
    assert resp.json()["session"]["sessionTotal"] == 13.5

    resp = await client.post(f"/api/bills/session/{session['id']}")
    assert resp.json()["message"] == "Bill generated successfully"
    bill = resp.json()["bill"]
    assert bill["total"] == 13.5
    resp = await client.post(f"/api/bills/session/{session['id']}")
    assert resp.json()["message"] == "Bill already exists"
    assert resp.json()["bill"]["id"] == bill["id"]

    resp = await client.put(
        f"/api/bills/{bill['id']}/payment",
        json={"paymentStatus": "paid", "paymentMethod": "card"},
        headers={"X-User": "cashier-1"},
    )
    assert resp.status_code == 200
    assert resp.json()["sessionUpdated"] is True
    assert resp.json()["bill"]["processedBy"] == "cashier-1"

    table = (await client.get("/api/tables/T1")).json()["table"]
    assert table["status"] == "cleaning" and table["currentSessionId"] is None
    view = (await client.get(f"/api/orders/session/{session['id']}")).json()["session"]
    assert view["status"] == "closed" and view["endTime"]
    await app.state.dispatcher.drain()


async def test_error_envelopes(client):
    resp = await client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Not Found"}

    resp = await client.get("/api/orders/missing")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Order not found", "orderId": "missing"}

    resp = await client.post("/api/orders", json={"items": [], "orderType": "Dine In"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid request"

    resp = await client.post(
        "/api/orders",
        json={"items": [{"menuItemId": "burger", "quantity": 1}], "orderType": "Dine In"},
    )
    assert resp.status_code == 400
    assert "Dine In" in resp.json()["message"]

    await seat(client)
    resp = await client.post("/api/tables/T1/sessions", json={"clientId": "bob"})
    assert resp.status_code == 409
    resp = await client.put("/api/tables/T1/status", json={"status": "occupied"})
    assert resp.status_code == 200
    assert resp.json()["table"]["status"] == "occupied"
    await client.post("/api/tables/register", json={"tableId": "T2"})
    resp = await client.put("/api/tables/T2/status", json={"status": "occupied"})
    assert resp.status_code == 409
    assert resp.json()["tableId"] == "T2"
    resp = await client.put("/api/tables/T1/status", json={"status": "dirty"})
    assert resp.status_code == 400


async def test_active_elsewhere_names_existing_session(client):
    session = await seat(client)
    await client.post("/api/tables/register", json={"tableId": "T2"})
    resp = await client.post("/api/tables/T2/sessions", json={"clientId": "alice"})
    assert resp.status_code == 409
    assert resp.json()["sessionId"] == session["id"]
    assert resp.json()["tableId"] == "T1"


async def test_order_status_routes(client):
    resp = await client.post(
        "/api/orders",
        json={
            "items": [{"menuItemId": "fries", "quantity": 1}],
            "orderType": "Take Away",
            "userId": "alice",
        },
    )
    order_id = resp.json()["order"]["id"]

    resp = await client.put(f"/api/orders/{order_id}/status", json={"status": "pending"})
    assert resp.json()["message"] == "Order status is already pending"
    resp = await client.put(f"/api/orders/{order_id}/status", json={"status": "preparing"})
    assert resp.json()["message"] == "Order status updated successfully"

    active = (await client.get("/api/orders/kitchen/active")).json()["orders"]
    assert [o["status"] for o in active] == ["preparing"]
    resp = await client.get("/api/orders/kitchen/completed", params={"limit": 0})
    assert resp.status_code == 400

    resp = await client.put(f"/api/orders/{order_id}/status", json={"status": "delivered"})
    resp = await client.post(
        f"/api/orders/{order_id}/rate-items",
        json={"itemRatings": [{"menuItemId": "fries", "ratingValue": 5}]},
        headers={"X-User": "alice"},
    )
    assert resp.json()["itemsRated"] == 1
    ratings = (await client.get("/api/orders/user/alice/ratings")).json()["ratings"]
    assert ratings == {"fries": 5}

    orders = (await client.get("/api/orders/user/alice", params={"status": "delivered"})).json()
    assert [o["id"] for o in orders["orders"]] == [order_id]
    resp = await client.get("/api/orders/user/alice", params={"status": "lost"})
    assert resp.status_code == 400


async def test_attach_and_payment_routes(client):
    session = await seat(client)
    resp = await client.post(
        "/api/orders",
        json={
            "items": [{"menuItemId": "burger", "quantity": 1}],
            "orderType": "Dine In",
            "deviceId": "kiosk-2",
        },
    )
    order_id = resp.json()["order"]["id"]
    resp = await client.put(f"/api/orders/{order_id}/session", json={"sessionId": session["id"]})
    assert resp.json()["order"]["sessionId"] == session["id"]

    resp = await client.put(f"/api/orders/{order_id}/payment", json={"paymentStatus": "paid"})
    assert resp.json()["sessionUpdated"] is False
    assert resp.json()["order"]["paymentStatus"] == "paid"

    resp = await client.post(f"/api/sessions/{session['id']}/end")
    assert resp.json()["session"]["status"] == "closed"
    assert resp.json()["bill"]["total"] == 5.0
    resp = await client.get(f"/api/bills/session/{session['id']}")
    assert resp.json()["bill"]["total"] == 5.0



async def test_end_and_bill_route_waits_for_payment(client):
    session = await seat(client)
    await client.post(
        "/api/orders",
        json={
            "items": [{"menuItemId": "burger", "quantity": 1}],
            "orderType": "Dine In",
            "sessionId": session["id"],
            "userId": "alice",
        },
    )
    resp = await client.post(f"/api/bills/session/{session['id']}/end")
    assert resp.status_code == 200
    assert resp.json()["session"]["status"] == "payment_pending"
    bill = resp.json()["bill"]
    assert bill["total"] == 5.0 and bill["paymentStatus"] == "pending"
    table = (await client.get("/api/tables/T1")).json()["table"]
    assert table["status"] == "occupied"

    resp = await client.put(f"/api/bills/{bill['id']}/payment", json={"paymentStatus": "paid"})
    assert resp.json()["sessionUpdated"] is True
    resp = await client.post(f"/api/bills/session/{session['id']}/end")
    assert resp.status_code == 409
    assert resp.json()["message"] == "Session is already closed"


async def test_tables_and_reservations(client):
    await client.post("/api/tables/register", json={"tableId": "T1", "capacity": 2})
    await client.post("/api/tables/register", json={"tableId": "T2", "capacity": 6})
    resp = await client.put("/api/tables/T1/active", json={"isActive": False})
    assert resp.json()["message"] == "Table deactivated"

    listed = (await client.get("/api/tables")).json()["tables"]
    assert [t["tableId"] for t in listed] == ["T2"]
    listed = (await client.get("/api/tables", params={"include_inactive": True})).json()
    assert len(listed["tables"]) == 2

    resp = await client.post(
        "/api/reservations",
        json={"userId": "alice", "reservationTime": "2024-05-01T19:00:00Z", "guests": 2},
    )
    assert resp.status_code == 201
    assert resp.json()["reservation"]["tableId"] == "T2"
    mine = (await client.get("/api/reservations/user/alice")).json()["reservations"]
    assert len(mine) == 1


async def test_health_and_metrics(client):
    resp = await client.get("/health", headers={"X-Request-ID": "req-1"})
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Service healthy",
        "status": "ok",
        "cache": "up",
    }
    assert resp.headers["X-Request-ID"] == "req-1"

    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "lifecycle_transitions_total" in resp.text
    assert "cache_requests_total" in resp.text
