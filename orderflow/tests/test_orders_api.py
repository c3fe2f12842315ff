import re

from orderflow.app.db.models.core_types import Role
from orderflow.app.db.models.models_v1 import Order, OrderProduct
from orderflow.tests.helpers import order_payload, set_role_tokens


def _create(api, seed, **overrides):
    resp = api.post("/api/orders", json=order_payload(seed.client_id, **overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_order_prices_lines_and_notifies_supervisor(api, seed, push_channel):
    body = _create(api, seed)

    assert body["status"] == "success"
    assert re.fullmatch(r"NPO-\d{4}-00001", body["customId"])
    assert (body["totalPrice"], body["totalVat"], body["totalSubtotal"]) == (200.0, 30.0, 230.0)
    assert push_channel.tokens() == ["token-supervisor"]


def test_get_order_joins_client_and_lines(api, seed):
    order_id = _create(api, seed)["orderId"]

    data = api.get(f"/api/orders/{order_id}").json()

    assert data["client_name"] == "Acme"
    assert data["company_name"] == "Acme Logistics"
    assert [p["subtotal"] for p in data["products"]] == [115.0, 115.0]
    assert data["total_subtotal"] == 230.0
    assert (data["supervisoraccept"], data["storekeeperaccept"], data["manageraccept"]) == ("pending",) * 3
    assert data["status"] == "not Delivered"


def test_missing_order_is_404(api, seed):
    resp = api.get("/api/orders/999")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Order not found"}


def test_create_with_missing_fields_inserts_nothing(api, seed, count_rows):
    payload = order_payload(seed.client_id)
    del payload["delivery_date"]
    payload["products"] = []

    resp = api.post("/api/orders", json=payload)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing required fields: delivery_date, products"
    assert count_rows(Order) == 0


def test_invalid_product_is_rejected(api, seed, count_rows):
    payload = order_payload(seed.client_id)
    payload["products"][1]["price"] = "twelve"

    resp = api.post("/api/orders", json=payload)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid price format"
    assert count_rows(OrderProduct) == 0


def test_unknown_client_is_404(api, seed, count_rows):
    resp = api.post("/api/orders", json=order_payload(seed.client_id + 100))
    assert resp.status_code == 404
    assert resp.json()["error"] == "Client not found"
    assert count_rows(Order) == 0


def test_accept_twice_is_idempotent_and_notifies_each_time(api, seed, push_channel):
    order_id = _create(api, seed)["orderId"]
    push_channel.sent.clear()

    first = api.put(f"/api/acceptSupervisor/{order_id}")
    second = api.put(f"/api/acceptSupervisor/{order_id}")

    assert first.status_code == second.status_code == 200
    assert (first.json()["changed"], second.json()["changed"]) == (True, False)
    assert api.get(f"/api/orders/{order_id}").json()["supervisoraccept"] == "accepted"
    assert push_channel.tokens() == ["token-storekeeper", "token-storekeeper"]


def test_accept_unknown_order_is_404(api, seed, push_channel):
    push_channel.sent.clear()
    resp = api.put("/api/acceptStorekeeper/4242")

    assert resp.status_code == 404
    assert push_channel.sent == []


def test_storekeeper_and_manager_acceptance_routes(api, seed, push_channel):
    order_id = _create(api, seed)["orderId"]
    push_channel.sent.clear()

    api.put(f"/api/acceptStorekeeper/{order_id}")
    api.put(f"/api/acceptManager/{order_id}")

    assert push_channel.tokens() == ["token-driver", "token-salesRep"]
    data = api.get(f"/api/orders/{order_id}").json()
    assert (data["storekeeperaccept"], data["manageraccept"]) == ("accepted", "accepted")


def test_delivery_flow(api, seed, push_channel):
    order_id = _create(api, seed)["orderId"]

    early = api.put(f"/api/delivered/{order_id}")
    assert early.status_code == 409

    api.put(f"/api/acceptSupervisor/{order_id}")
    api.put(f"/api/acceptStorekeeper/{order_id}")
    push_channel.sent.clear()

    first = api.put(f"/api/delivered/{order_id}")
    assert first.status_code == 200
    assert first.json()["status"] == "Delivered"
    assert push_channel.tokens() == ["token-supervisor", "token-storekeeper"]

    again = api.put(f"/api/delivered/{order_id}")
    assert again.json()["changed"] is False
    data = api.get(f"/api/orders/{order_id}").json()
    assert data["status"] == "Delivered"
    assert data["actual_delivery_date"] == first.json()["actual_delivery_date"]


def test_notification_without_recipients_does_not_fail(api, database, seed, push_channel):
    set_role_tokens(database, Role.supervisor, None)

    _create(api, seed)

    assert push_channel.sent == []


def test_push_failure_does_not_roll_back(api, seed, push_channel, count_rows):
    push_channel.fail = True

    _create(api, seed)

    assert count_rows(Order) == 1


def test_update_replaces_lines_and_recomputes(api, seed):
    order_id = _create(api, seed)["orderId"]
    payload = order_payload(
        seed.client_id,
        products=[{"section": "C", "type": "crate", "quantity": 3, "price": 19.99}],
        storekeeper_notes="fragile",
    )

    resp = api.put(f"/api/orders/{order_id}", json=payload)

    assert resp.status_code == 200
    assert (resp.json()["totalPrice"], resp.json()["totalVat"], resp.json()["totalSubtotal"]) == (59.97, 9.0, 68.97)
    data = api.get(f"/api/orders/{order_id}").json()
    assert [(p["section"], p["quantity"]) for p in data["products"]] == [("C", 3)]
    assert data["storekeeper_notes"] == "fragile"


def test_update_keeps_flags_unless_explicitly_reset(api, seed):
    order_id = _create(api, seed)["orderId"]
    api.put(f"/api/acceptSupervisor/{order_id}")

    api.put(f"/api/orders/{order_id}", json=order_payload(seed.client_id))
    assert api.get(f"/api/orders/{order_id}").json()["supervisoraccept"] == "accepted"

    api.put(f"/api/orders/{order_id}", json=order_payload(seed.client_id, supervisoraccept="pending"))
    assert api.get(f"/api/orders/{order_id}").json()["supervisoraccept"] == "pending"


def test_update_status_delivered_stamps_date(api, seed):
    order_id = _create(api, seed)["orderId"]

    api.put(f"/api/orders/{order_id}", json=order_payload(seed.client_id, status="delivered"))

    data = api.get(f"/api/orders/{order_id}").json()
    assert data["status"] == "Delivered"
    assert data["actual_delivery_date"] is not None


def test_update_missing_order_is_404(api, seed):
    assert api.put("/api/orders/999", json=order_payload(seed.client_id)).status_code == 404


def test_delete_removes_lines_then_order(api, seed, count_rows):
    order_id = _create(api, seed)["orderId"]
    _create(api, seed)

    resp = api.delete(f"/api/orders/{order_id}")

    assert resp.status_code == 200
    assert count_rows(Order) == 1
    assert count_rows(OrderProduct) == 2
    assert api.get(f"/api/orders/{order_id}").status_code == 404
    assert api.delete(f"/api/orders/{order_id}").status_code == 404


def test_list_pagination(api, seed):
    for _ in range(3):
        _create(api, seed)

    page1 = api.get("/api/orders", params={"limit": 2}).json()
    page2 = api.get("/api/orders", params={"limit": 2, "page": 2}).json()

    assert (len(page1["orders"]), page1["totalCount"], page1["totalPages"], page1["hasMore"]) == (2, 3, 2, True)
    assert (len(page2["orders"]), page2["currentPage"], page2["hasMore"]) == (1, 2, False)
    assert "products" not in page1["orders"][0]


def test_list_limit_is_clamped(api, seed):
    _create(api, seed)
    body = api.get("/api/orders", params={"limit": 500}).json()
    assert body["totalPages"] == 1
    assert body["hasMore"] is False


def test_list_search_and_status_filter(api, seed):
    first = _create(api, seed)["orderId"]
    _create(api, seed)
    api.put(f"/api/acceptSupervisor/{first}")

    assert api.get("/api/orders", params={"query": "acme log"}).json()["totalCount"] == 2
    assert api.get("/api/orders", params={"query": "nobody"}).json()["totalCount"] == 0
    assert api.get("/api/orders", params={"status": "accepted"}).json()["totalCount"] == 1


def test_role_scoped_lists(api, seed):
    a = _create(api, seed, username="rep-a")["orderId"]
    b = _create(api, seed, username="rep-b")["orderId"]
    api.put(f"/api/acceptSupervisor/{a}")
    api.put(f"/api/acceptSupervisor/{b}")
    api.put(f"/api/acceptStorekeeper/{b}")

    sup = api.get("/api/orders/supervisorAccept").json()
    assert sup["totalCount"] == 2
    assert api.get("/api/orders/supervisorAccept", params={"status": "pending"}).json()["totalCount"] == 1

    store = api.get("/api/orders/storekeeperaccept").json()
    assert [o["id"] for o in store["orders"]] == [b]

    rep = api.get("/api/orders/salesRep", params={"username": "rep-a"}).json()
    assert [o["id"] for o in rep["orders"]] == [a]

    assert api.get("/api/orders/supervisor").json()["totalCount"] == 2
    assert api.get("/api/orders/salesRep").status_code == 400


def test_sub_cent_prices_are_stored_as_priced(api, seed):
    products = [
        {"section": "A", "type": "box", "quantity": 3, "price": 0.333},
        {"section": "B", "type": "box", "quantity": 7, "price": "1.005"},
    ]
    order_id = _create(api, seed, products=products)["orderId"]

    data = api.get(f"/api/orders/{order_id}").json()

    assert [p["price"] for p in data["products"]] == [0.33, 1.01]
    line_sum = sum(p["price"] * p["quantity"] for p in data["products"])
    assert abs(line_sum - data["total_price"]) < 1e-6
    assert abs(data["total_subtotal"] - (data["total_price"] + data["total_vat"])) < 1e-6


def test_unexpected_push_error_does_not_fail_committed_create(api, seed, push_channel, count_rows, monkeypatch):
    def broken(message):
        raise RuntimeError("channel bug")

    monkeypatch.setattr(push_channel, "send", broken)

    resp = api.post("/api/orders", json=order_payload(seed.client_id))

    assert resp.status_code == 201
    assert count_rows(Order) == 1
