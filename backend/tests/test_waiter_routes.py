"""Tests for waiter table-management routes."""

from fastapi.testclient import TestClient

API = "/api/v1"


def _add(client, headers, table_id, menu_item_id, **body):
    return client.post(
        f"{API}/waiter/tables/{table_id}/items",
        json={"menu_item_id": menu_item_id, **body},
        headers=headers,
    )


class TestWaiterAuth:

    def test_requires_token(self, client: TestClient):
        response = client.get(f"{API}/waiter/tables")
        assert response.status_code == 401

    def test_driver_cannot_use_waiter_view(self, client: TestClient, driver_headers: dict):
        response = client.get(f"{API}/waiter/tables", headers=driver_headers)
        assert response.status_code == 403

    def test_manager_can_use_waiter_view(self, client: TestClient, manager_headers: dict):
        response = client.get(f"{API}/waiter/tables", headers=manager_headers)
        assert response.status_code == 200


class TestFloor:

    def test_empty_floor(self, client: TestClient, waiter_headers: dict):
        response = client.get(f"{API}/waiter/tables?count=4", headers=waiter_headers)
        assert response.status_code == 200
        data = response.json()
        assert [t["table_id"] for t in data["tables"]] == [1, 2, 3, 4]
        assert data["counts"]["free"] == 4
        assert data["notifications"] == []

    def test_table_beyond_count_with_draft_is_listed(self, client: TestClient, waiter_headers: dict, soda):
        _add(client, waiter_headers, 20, soda.id)
        data = client.get(f"{API}/waiter/tables?count=2", headers=waiter_headers).json()
        tables = {t["table_id"]: t for t in data["tables"]}
        assert tables[20]["status"] == "unsent"

    def test_default_table_view(self, client: TestClient, waiter_headers: dict):
        response = client.get(f"{API}/waiter/tables/3", headers=waiter_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["draft"]["seats"] == [{"id": 1, "name": None, "items": []}]
        assert data["summary"]["status"] == "free"
        assert data["orders"] == []

    def test_tables_are_isolated_by_tenant(
        self, client: TestClient, waiter_headers: dict, other_tenant_waiter_headers: dict, soda
    ):
        _add(client, waiter_headers, 1, soda.id)
        data = client.get(f"{API}/waiter/tables/1", headers=other_tenant_waiter_headers).json()
        assert data["summary"]["status"] == "free"


class TestTableFlow:

    def test_add_submit_serve(
        self, client: TestClient, waiter_headers: dict, kitchen_headers: dict, pizza, soda
    ):
        assert _add(client, waiter_headers, 5, pizza.id).status_code == 201
        response = _add(client, waiter_headers, 5, soda.id, quantity=2)
        assert response.json()["summary"]["status"] == "unsent"
        assert response.json()["totals"]["unsent"] == 46.0

        response = client.post(f"{API}/waiter/tables/5/submit", headers=waiter_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["order"]["total_amount"] == 46.0
        assert data["order"]["status"] == "In Progress"
        assert data["table"]["summary"]["status"] == "pending"
        order_id = data["order"]["id"]

        response = client.post(f"{API}/waiter/tables/5/submit", headers=waiter_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "NothingToSubmit"

        response = client.post(f"{API}/kitchen/orders/{order_id}/ready", headers=kitchen_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "Ready to Serve"

        floor = client.get(f"{API}/waiter/tables", headers=waiter_headers).json()
        assert floor["notifications"] == [5]

        response = client.post(f"{API}/waiter/orders/{order_id}/served", headers=waiter_headers)
        assert response.json()["status"] == "Delivered"
        table = client.get(f"{API}/waiter/tables/5", headers=waiter_headers).json()
        assert table["summary"]["status"] == "active"

    def test_seats_and_payment_method(self, client: TestClient, waiter_headers: dict):
        response = client.post(f"{API}/waiter/tables/2/seats", json={"name": "Bruno"}, headers=waiter_headers)
        assert response.status_code == 201
        assert [s["id"] for s in response.json()["draft"]["seats"]] == [1, 2]

        response = client.patch(
            f"{API}/waiter/tables/2/seats/1", json={"name": "Ana"}, headers=waiter_headers
        )
        assert response.json()["draft"]["seats"][0]["name"] == "Ana"

        response = client.put(
            f"{API}/waiter/tables/2/payment-method",
            json={"payment_method": "separated"},
            headers=waiter_headers,
        )
        assert response.json()["draft"]["payment_method"] == "separated"

        response = client.post(f"{API}/waiter/tables/2/reset", headers=waiter_headers)
        draft = response.json()["draft"]
        assert draft["seats"] == [{"id": 1, "name": None, "items": []}]
        assert draft["payment_method"] == "together"

    def test_remove_item(self, client: TestClient, waiter_headers: dict, soda):
        _add(client, waiter_headers, 2, soda.id)
        response = client.delete(f"{API}/waiter/tables/2/seats/1/items/0", headers=waiter_headers)
        assert response.status_code == 200
        assert response.json()["draft"]["seats"][0]["items"] == []

        response = client.delete(f"{API}/waiter/tables/2/seats/1/items/0", headers=waiter_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "ItemNotFound"

    def test_invalid_flavor_split(self, client: TestClient, waiter_headers: dict, pizza):
        response = _add(
            client, waiter_headers, 2, pizza.id,
            flavors=[{"flavor_id": "marg", "percentage": 30}, {"flavor_id": "pep", "percentage": 30}],
        )
        assert response.status_code == 422
        assert response.json()["code"] == "InvalidFlavorSplit"

    def test_unknown_menu_item(self, client: TestClient, waiter_headers: dict):
        response = _add(client, waiter_headers, 2, 12345)
        assert response.status_code == 404
        assert response.json()["code"] == "MenuItemNotFound"

    def test_invalid_table_number(self, client: TestClient, waiter_headers: dict):
        response = client.get(f"{API}/waiter/tables/0", headers=waiter_headers)
        assert response.status_code == 422
