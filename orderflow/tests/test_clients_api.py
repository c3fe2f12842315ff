from orderflow.app.db.models.models_v1 import Client
from orderflow.tests.helpers import order_payload


def _client_payload(**overrides):
    payload = {
        "company_name": "Blue Harbor",
        "client_name": "Blue",
        "client_type": "Company",
        "phone_number": "+966511111111",
        "tax_number": "311111111100003",
        "branch_number": "7",
        "location": {"latitude": 21.5, "longitude": 39.2, "street": "Corniche", "city": "Jeddah", "region": "Makkah"},
    }
    payload.update(overrides)
    return payload


def test_create_and_get_client(api, seed):
    resp = api.post("/api/clients", json=_client_payload())

    assert resp.status_code == 201
    created = resp.json()
    assert (created["city"], created["latitude"]) == ("Jeddah", 21.5)
    assert api.get(f"/api/clients/{created['id']}").json() == created


def test_tax_number_is_required_except_for_cash_clients(api, seed, count_rows):
    resp = api.post("/api/clients", json=_client_payload(tax_number=None))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing required field: tax_number"

    cash = api.post("/api/clients", json=_client_payload(tax_number=None, client_type="One-time cash client"))
    assert cash.status_code == 201
    assert cash.json()["tax_number"] is None
    assert count_rows(Client) == 2


def test_missing_location_is_rejected(api, seed):
    resp = api.post("/api/clients", json=_client_payload(location=None, branch_number=""))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing required fields: branch_number, location.latitude, location.longitude"


def test_list_search_and_pagination(api, seed):
    for n in range(3):
        api.post("/api/clients", json=_client_payload(client_name=f"Blue {n}"))

    body = api.get("/api/clients", params={"search": "blue", "limit": 2}).json()

    assert (body["total"], body["totalPages"], body["limit"], body["page"]) == (3, 2, 2, 1)
    assert [c["client_name"] for c in body["clients"]] == ["Blue 0", "Blue 1"]


def test_update_client(api, seed):
    resp = api.put(f"/api/clients/{seed.client_id}", json=_client_payload(client_name="Renamed"))

    assert resp.status_code == 200
    assert api.get(f"/api/clients/{seed.client_id}").json()["client_name"] == "Renamed"
    assert api.put("/api/clients/999", json=_client_payload()).status_code == 404


def test_client_with_orders_cannot_be_deleted(api, seed, count_rows):
    api.post("/api/orders", json=order_payload(seed.client_id))

    resp = api.delete(f"/api/clients/{seed.client_id}")

    assert resp.status_code == 409
    assert count_rows(Client) == 1


def test_delete_client(api, seed):
    client_id = api.post("/api/clients", json=_client_payload()).json()["id"]

    assert api.delete(f"/api/clients/{client_id}").status_code == 200
    assert api.get(f"/api/clients/{client_id}").status_code == 404
