import pytest

from tableside.app.errors import Conflict, InvalidInput, InvalidState, NotFound
from tableside.app.models import Order, SessionOrder
from tableside.app.schemas import OrderDraft


def draft(**fields) -> OrderDraft:
    fields.setdefault("items", [{"menuItemId": "burger", "quantity": 2}])
    fields.setdefault("orderType", "Dine In")
    return OrderDraft(**fields)


async def open_session(stack, code="T1", client="alice"):
    await stack.engine.register_table(code)
    return await stack.engine.start_session(code, client)


@pytest.mark.anyio
async def test_dine_in_order_snapshots_prices(stack):
    session = await open_session(stack)
    order = await stack.engine.place_order(
        draft(
            items=[
                {"menuItemId": "burger", "quantity": 2, "specialInstructions": "no onion"},
                {"menuItemId": "fries", "quantity": 1},
            ],
            sessionId=session.id,
            userId="alice",
        )
    )
    assert str(order.subtotal) == "13.50"
    assert str(order.delivery_fee) == "0.00"
    assert str(order.total) == "13.50"
    assert order.status == "pending" and order.payment_status == "pending"
    assert order.table_code == "T1"
    assert order.delivery_address == "Dine-in"
    assert [i.name_snapshot for i in order.items] == ["Burger", "Fries"]
    assert order.items[0].special_instructions == "no onion"
    assert await stack.store.session_order_ids(session.id) == [order.id]


@pytest.mark.anyio
async def test_delivery_order_pays_fee(stack):
    order = await stack.engine.place_order(
        draft(orderType="Delivery", userId="alice", deliveryAddress="1 Main St")
    )
    assert str(order.total) == "12.00"
    assert order.session_id is None

    take_away = await stack.engine.place_order(draft(orderType="Take Away"))
    assert str(take_away.delivery_fee) == "0.00"
    assert take_away.delivery_address == "Pick up at restaurant"


@pytest.mark.anyio
async def test_place_order_rejections(stack):
    session = await open_session(stack)
    with pytest.raises(InvalidInput):
        await stack.engine.place_order(draft(orderType="Drive Thru", deviceId="k1"))
    with pytest.raises(InvalidInput, match="Dine In"):
        await stack.engine.place_order(draft())
    with pytest.raises(NotFound, match="User not found"):
        await stack.engine.place_order(draft(deviceId="k1", userId="ghost"))
    with pytest.raises(NotFound, match="missing"):
        await stack.engine.place_order(
            draft(deviceId="k1", items=[{"menuItemId": "missing", "quantity": 1}])
        )
    with pytest.raises(InvalidState, match="Soup"):
        await stack.engine.place_order(
            draft(deviceId="k1", items=[{"menuItemId": "soup", "quantity": 1}])
        )
    await stack.engine.register_table("T2")
    with pytest.raises(Conflict):
        await stack.engine.place_order(draft(sessionId=session.id, tableId="T2"))
    assert await stack.store.find(Order) == []


@pytest.mark.anyio
async def test_order_for_paying_session_is_refused(stack):
    session = await open_session(stack)
    await stack.engine.generate_bill(session.id)
    with pytest.raises(InvalidState):
        await stack.engine.place_order(draft(sessionId=session.id))


@pytest.mark.anyio
async def test_new_order_reaches_kitchen_and_table(stack):
    await stack.notifier.register_kitchen("k-1")
    session = await open_session(stack)
    order = await stack.engine.place_order(draft(sessionId=session.id))
    await stack.settle()

    kitchen = stack.transport.payloads("new_kitchen_order")[0]
    assert kitchen["id"] == order.id
    assert kitchen["orderNumber"] == order.id[-6:].upper()
    assert kitchen["tableId"] == "T1"
    assert kitchen["items"][0] == {
        "name": "Burger",
        "quantity": 2,
        "specialInstructions": "",
        "category": "Mains",
    }
    assert ("endpoint", "k-1", "new_kitchen_order") in [
        s[:3] for s in stack.transport.sent
    ]
    table = stack.transport.payloads("new_order")[0]
    assert table["sessionId"] == session.id
    assert table["total"] == 10.0


@pytest.mark.anyio
async def test_order_without_kitchen_is_still_placed(stack):
    order = await stack.engine.place_order(draft(deviceId="kiosk-1"))
    await stack.settle()
    assert order.id
    assert stack.transport.events() == []


@pytest.mark.anyio
async def test_status_update_noop_and_change(stack):
    order = await stack.engine.place_order(draft(deviceId="k1", userId="alice"))

    same, changed = await stack.engine.update_order_status(order.id, "pending")
    assert not changed and same.status == "pending"

    moved, changed = await stack.engine.update_order_status(order.id, "delivered")
    assert changed and moved.status == "delivered"
    back, changed = await stack.engine.update_order_status(order.id, "pending")
    assert changed and back.status == "pending"

    with pytest.raises(InvalidInput):
        await stack.engine.update_order_status(order.id, "eaten")
    with pytest.raises(NotFound):
        await stack.engine.update_order_status("nope", "pending")


@pytest.mark.anyio
async def test_strict_policy_rejects_skips(make_stack):
    stack = await make_stack(order_transition_policy="strict")
    order = await stack.engine.place_order(draft(deviceId="k1"))
    with pytest.raises(InvalidState) as info:
        await stack.engine.update_order_status(order.id, "delivered")
    assert info.value.details["status"] == "pending"
    order, changed = await stack.engine.update_order_status(order.id, "confirmed")
    assert changed and order.status == "confirmed"


@pytest.mark.anyio
async def test_status_change_reports_previous_status(stack):
    await stack.notifier.register_kitchen("k-1")
    session = await open_session(stack)
    order = await stack.engine.place_order(draft(sessionId=session.id))
    await stack.engine.update_order_status(order.id, "preparing")
    await stack.settle()

    updates = stack.transport.payloads("order_status_updated")
    assert len(updates) == 2  # kitchen and table
    assert updates[0]["previousStatus"] == "pending"
    assert updates[0]["status"] == "preparing"
    assert "order_status_updated" in stack.transport.events("table_T1")


@pytest.mark.anyio
async def test_attach_order_is_idempotent(stack):
    session = await open_session(stack)
    order = await stack.engine.place_order(draft(deviceId="k1", userId="alice"))
    assert order.session_id is None

    attached = await stack.engine.attach_order(order.id, session.id)
    again = await stack.engine.attach_order(order.id, session.id)
    await stack.settle()

    assert attached.session_id == session.id and attached.table_code == "T1"
    assert again.session_id == session.id
    assert await stack.store.session_order_ids(session.id) == [order.id]
    assert len(stack.transport.payloads("new_order")) == 1


@pytest.mark.anyio
async def test_attach_order_rejections(stack):
    first = await open_session(stack)
    second = await open_session(stack, "T2", "bob")
    order = await stack.engine.place_order(draft(sessionId=first.id))
    with pytest.raises(Conflict):
        await stack.engine.attach_order(order.id, second.id)

    await stack.engine.end_table_session(second.id)
    loose = await stack.engine.place_order(draft(deviceId="k1"))
    with pytest.raises(InvalidState):
        await stack.engine.attach_order(loose.id, second.id)


@pytest.mark.anyio
async def test_missing_link_is_reconciled_on_read(stack):
    session = await open_session(stack)
    order = await stack.engine.place_order(draft(sessionId=session.id))
    # simulate a crash between the order write and the link write
    links = await stack.store.find(SessionOrder, SessionOrder.order_id == order.id)
    async with stack.store._sessionmaker() as db:
        await db.delete(await db.get(SessionOrder, links[0].id))
        await db.commit()
    assert await stack.store.session_order_ids(session.id) == []

    view = await stack.reads.session_orders(session.id)
    assert [o["id"] for o in view["orders"]] == [order.id]
    assert view["sessionTotal"] == 10.0
    assert await stack.store.session_order_ids(session.id) == [order.id]


@pytest.mark.anyio
async def test_ratings_for_delivered_order(stack):
    order = await stack.engine.place_order(
        draft(
            deviceId="k1",
            userId="alice",
            items=[
                {"menuItemId": "burger", "quantity": 1},
                {"menuItemId": "fries", "quantity": 1},
            ],
        )
    )
    with pytest.raises(InvalidState):
        await stack.engine.submit_ratings(order.id, "alice", [{"menuItemId": "burger", "ratingValue": 5}])
    await stack.engine.update_order_status(order.id, "delivered")

    with pytest.raises(NotFound):
        await stack.engine.submit_ratings(order.id, "bob", [{"menuItemId": "burger", "rating": 5}])
    with pytest.raises(InvalidInput):
        await stack.engine.submit_ratings(order.id, "alice", [{"menuItemId": "burger", "rating": 9}])

    assert await stack.reads.user_ratings("alice") == {}
    rated = await stack.engine.submit_ratings(
        order.id,
        "alice",
        [
            {"menuItemId": "burger", "ratingValue": 4},
            {"menu_item_id": "fries", "rating": 5.0},
            {"menuItemId": "fries", "rating": True},
            {"rating": 3},
        ],
    )
    assert rated == 2
    assert await stack.reads.user_ratings("alice") == {"burger": 4, "fries": 5}
    view = await stack.reads.order_details(order.id)
    assert [i["rating"] for i in view["items"]] == [4, 5]

    await stack.engine.submit_ratings(order.id, "alice", [{"menuItemId": "burger", "rating": 2}])
    assert (await stack.reads.user_ratings("alice"))["burger"] == 2
