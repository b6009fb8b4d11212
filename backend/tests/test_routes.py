"""
HTTP-level tests.

Verifies:
- Unauthenticated requests return 401
- Staff roles are denied manager operations (403) and never see prices
- Scoped staff cannot reach other departments' items (404)
- Happy paths for delivery, adjust, pour, menu sale, report, shopping list
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import auth_headers
from lucciole.services import inventory_service, reporting_service


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/inventory"),
            ("POST", "/api/inventory"),
            ("GET", "/api/inventory/alerts"),
            ("POST", "/api/inventory/1/adjust"),
            ("DELETE", "/api/inventory/1"),
            ("GET", "/api/menu"),
            ("POST", "/api/menu/1/sell"),
            ("GET", "/api/reports/sales"),
            ("GET", "/api/shopping-list"),
            ("PUT", "/api/shopping-list"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_bogus_token(self, client, db_session):
        resp = client.get("/api/inventory", headers=auth_headers("nope"))
        assert resp.status_code == 401


class TestLogin:

    def test_login_and_me(self, client, users):
        resp = client.post("/api/auth/login", json={"identifier": "manager", "password": "secret1"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["role"] == "manager"
        assert "VIEW_REPORTS" in body["permissions"]

        me = client.get("/api/auth/me", headers=auth_headers(body["token"]))
        assert me.get_json()["user"]["email"] == "manager@lucciole.app"

    def test_login_failure_is_401(self, client, users):
        resp = client.post("/api/auth/login", json={"identifier": "manager", "password": "wrong!!"})
        assert resp.status_code == 401

    def test_login_missing_fields_is_400(self, client, users):
        resp = client.post("/api/auth/login", json={"identifier": "manager"})
        assert resp.status_code == 400

    def test_logout_revokes(self, client, manager_headers):
        assert client.post("/api/auth/logout", headers=manager_headers).status_code == 200
        assert client.get("/api/auth/me", headers=manager_headers).status_code == 401


# =============================================================================
# ROLE CAPABILITIES (403)
# =============================================================================


class TestStaffDenied:

    def test_cannot_view_reports(self, client, bar_headers):
        resp = client.get("/api/reports/sales?start=2024-01-01&end=2024-01-31", headers=bar_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "VIEW_REPORTS"

    def test_cannot_create_menu_items(self, client, kitchen_headers):
        resp = client.post("/api/menu", json={"menu_type": "dish", "name": "Pizza"}, headers=kitchen_headers)
        assert resp.status_code == 403

    def test_cannot_edit_items(self, client, bar_headers):
        resp = client.patch("/api/inventory/1", json={"supplier": "x"}, headers=bar_headers)
        assert resp.status_code == 403

    def test_manager_cannot_delete(self, client, manager_headers):
        assert client.delete("/api/inventory/1", headers=manager_headers).status_code == 403


class TestInventoryRoutes:

    def _deliver(self, client, headers, **fields):
        payload = {"name": "Tonic Water", "category": "Bar", "quantity": 10, "min_threshold": 3}
        payload.update(fields)
        return client.post("/api/inventory", json=payload, headers=headers)

    def test_delivery_then_merge(self, client, manager_headers):
        first = self._deliver(client, manager_headers)
        second = self._deliver(client, manager_headers, quantity=5, min_threshold="")

        assert first.status_code == 201
        assert second.status_code == 200
        body = second.get_json()
        assert body["merged"] is True
        assert body["item"]["quantity"] == 15
        assert body["item"]["min_threshold"] == 3
        assert body["log_entry"]["quantity_change"] == 5

    def test_invalid_delivery_is_400(self, client, manager_headers):
        resp = self._deliver(client, manager_headers, quantity="molti")
        assert resp.status_code == 400

    def test_prices_hidden_from_staff(self, client, manager_headers, bar_headers):
        self._deliver(client, manager_headers, cost_price=1.2, sell_price=3)

        staff_view = client.get("/api/inventory", headers=bar_headers).get_json()
        manager_view = client.get("/api/inventory", headers=manager_headers).get_json()

        assert "cost_price" not in staff_view[0]
        assert manager_view[0]["cost_price"] == 1.2

    def test_staff_price_fields_are_dropped_on_delivery(self, client, manager_headers, bar_headers):
        resp = self._deliver(client, bar_headers, cost_price=99)
        assert resp.status_code == 201

        item_id = resp.get_json()["item"]["id"]
        detail = client.get(f"/api/inventory/{item_id}", headers=manager_headers).get_json()
        assert detail["cost_price"] is None

    def test_scoped_staff_gets_404_for_other_department(self, client, manager_headers, kitchen_headers):
        item_id = self._deliver(client, manager_headers).get_json()["item"]["id"]

        assert client.get(f"/api/inventory/{item_id}", headers=kitchen_headers).status_code == 404
        resp = client.post(f"/api/inventory/{item_id}/adjust", json={"delta": -1}, headers=kitchen_headers)
        assert resp.status_code == 404

    def test_adjust_by_delta_and_direction(self, client, manager_headers, bar_headers):
        item_id = self._deliver(client, manager_headers).get_json()["item"]["id"]

        down = client.post(f"/api/inventory/{item_id}/adjust", json={"delta": -12}, headers=bar_headers)
        assert down.status_code == 200
        assert down.get_json()["item"]["quantity"] == 0
        assert down.get_json()["clamped"] is True
        assert down.get_json()["log_entry"]["quantity_change"] == -12

        up = client.post(f"/api/inventory/{item_id}/adjust", json={"direction": "+"}, headers=bar_headers)
        assert up.get_json()["item"]["quantity"] == 1

    def test_adjust_needs_a_number(self, client, manager_headers):
        item_id = self._deliver(client, manager_headers).get_json()["item"]["id"]
        resp = client.post(f"/api/inventory/{item_id}/adjust", json={"delta": "tanti"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_adjust_with_nan_is_400(self, client, manager_headers):
        item_id = self._deliver(client, manager_headers).get_json()["item"]["id"]

        resp = client.post(
            f"/api/inventory/{item_id}/adjust",
            data='{"delta": NaN}',
            content_type="application/json",
            headers=manager_headers,
        )

        assert resp.status_code == 400
        assert client.get(f"/api/inventory/{item_id}", headers=manager_headers).get_json()["quantity"] == 10

    def test_failed_write_is_500_and_rolled_back(self, client, manager_headers, monkeypatch):
        item_id = self._deliver(client, manager_headers).get_json()["item"]["id"]

        def broken_append(**kwargs):
            raise IntegrityError("INSERT INTO logs", {}, Exception("constraint failed"))

        monkeypatch.setattr(inventory_service, "append_log_entry", broken_append)
        resp = client.post(f"/api/inventory/{item_id}/adjust", json={"delta": -4}, headers=manager_headers)
        monkeypatch.undo()

        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Could not update the quantity"
        item = client.get(f"/api/inventory/{item_id}", headers=manager_headers).get_json()
        assert item["quantity"] == 10

    def test_pour(self, client, manager_headers):
        item_id = self._deliver(
            client, manager_headers, name="Aperol", unit="Lt", quantity=1, capacity=1, dose=0.05
        ).get_json()["item"]["id"]

        resp = client.post(f"/api/inventory/{item_id}/pour", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["item"]["quantity"] == pytest.approx(0.95)

    def test_pour_without_dose_is_409(self, client, manager_headers):
        item_id = self._deliver(client, manager_headers).get_json()["item"]["id"]
        assert client.post(f"/api/inventory/{item_id}/pour", headers=manager_headers).status_code == 409

    def test_archive_restore_delete(self, client, manager_headers, admin_headers):
        item_id = self._deliver(client, manager_headers).get_json()["item"]["id"]

        assert client.post(f"/api/inventory/{item_id}/archive", headers=manager_headers).status_code == 200
        assert client.get("/api/inventory", headers=manager_headers).get_json() == []
        listed = client.get("/api/inventory?include_archived=true", headers=manager_headers).get_json()
        assert listed[0]["is_archived"] is True

        assert client.post(f"/api/inventory/{item_id}/restore", headers=manager_headers).status_code == 200
        assert client.delete(f"/api/inventory/{item_id}", headers=admin_headers).status_code == 204
        assert client.delete(f"/api/inventory/{item_id}", headers=admin_headers).status_code == 404

    def test_item_log_history(self, client, manager_headers):
        item_id = self._deliver(client, manager_headers).get_json()["item"]["id"]
        self._deliver(client, manager_headers, quantity=5)

        logs = client.get(f"/api/inventory/{item_id}/logs", headers=manager_headers).get_json()
        assert [e["quantity_change"] for e in logs] == [5, 10]

    def test_low_stock_mode_and_alerts(self, client, manager_headers):
        self._deliver(client, manager_headers, quantity=2)
        self._deliver(client, manager_headers, name="Ginger Beer", quantity=9)

        low = client.get("/api/inventory?mode=low_stock", headers=manager_headers).get_json()
        assert [i["name"] for i in low] == ["Tonic Water"]
        assert client.get("/api/inventory/alerts", headers=manager_headers).get_json()["low_stock"] == 1

    def test_bad_mode_is_400(self, client, manager_headers):
        assert client.get("/api/inventory?mode=whatever", headers=manager_headers).status_code == 400


class TestMenuRoutes:

    def test_create_and_sell(self, client, manager_headers, bar_headers):
        stock_id = client.post(
            "/api/inventory",
            json={"name": "Coca Cola lattina", "category": "Bar", "quantity": 1},
            headers=manager_headers,
        ).get_json()["item"]["id"]

        created = client.post(
            "/api/menu",
            json={"menu_type": "direct", "name": "Canned Coke", "sell_price": 3.5, "linked_product_id": stock_id},
            headers=manager_headers,
        )
        assert created.status_code == 201
        menu_id = created.get_json()["id"]

        first = client.post(f"/api/menu/{menu_id}/sell", headers=bar_headers).get_json()
        second = client.post(f"/api/menu/{menu_id}/sell", headers=bar_headers).get_json()

        assert first["stock_decremented"] is True
        assert first["warehouse_item"]["quantity"] == 0
        assert second["sale"]["revenue"] == 3.5
        assert second["warehouse_item"]["quantity"] == 0

        menu = client.get("/api/menu", headers=bar_headers).get_json()
        assert [m["name"] for m in menu] == ["Canned Coke"]
        assert "sell_price" not in menu[0]

    def test_bad_menu_type_is_400(self, client, manager_headers):
        resp = client.post("/api/menu", json={"menu_type": "combo", "name": "X"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_sell_unknown_is_404(self, client, bar_headers):
        assert client.post("/api/menu/999/sell", headers=bar_headers).status_code == 404


class TestReportRoutes:

    def test_sales_report(self, client, manager_headers, bar_headers):
        menu_id = client.post(
            "/api/menu", json={"menu_type": "dish", "name": "Lasagna", "sell_price": 14, "cost_price": 4},
            headers=manager_headers,
        ).get_json()["id"]
        client.post(f"/api/menu/{menu_id}/sell", headers=bar_headers)

        today = client.get("/health").get_json()["timestamp"][:10]
        resp = client.get(
            f"/api/reports/sales?start={today}&end={today}&name=lasa&refresh=true",
            headers=manager_headers,
        )

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["granularity"] == "day"
        assert body["rows"] == [
            {"item_name": "Lasagna", "loaded": 0, "sold": 1, "revenue": 14, "cost": 4, "margin": 10}
        ]
        assert body["chart"] == [{"bucket": today, "revenue": 14}]

    @pytest.mark.parametrize(
        "query",
        [
            "",
            "?start=2024-01-01",
            "?start=2024-13-01&end=2024-01-31",
            "?start=2024-02-01&end=2024-01-01",
        ],
    )
    def test_bad_window_is_400(self, client, manager_headers, query):
        assert client.get(f"/api/reports/sales{query}", headers=manager_headers).status_code == 400

    def test_log_read_error_is_500(self, client, manager_headers, monkeypatch):
        def broken_scan():
            raise OperationalError("SELECT * FROM logs", {}, Exception("disk I/O error"))

        monkeypatch.setattr(reporting_service, "fetch_all_entries", broken_scan)

        resp = client.get(
            "/api/reports/sales?start=2024-01-01&end=2024-01-31&refresh=true", headers=manager_headers
        )

        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Could not read the transaction log"


class TestShoppingListRoutes:

    def test_put_and_get(self, client, bar_headers, kitchen_headers):
        resp = client.put(
            "/api/shopping-list",
            json={"departments": {"Bar": "limoni"}},
            headers=bar_headers,
        )
        assert resp.status_code == 200

        client.put(
            "/api/shopping-list",
            json={"departments": {"Ristorante": "basilico"}, "merge": True},
            headers=kitchen_headers,
        )
        data = client.get("/api/shopping-list", headers=bar_headers).get_json()
        assert data["departments"]["Bar"] == "limoni"
        assert data["departments"]["Ristorante"] == "basilico"

    def test_unknown_department_is_400(self, client, bar_headers):
        resp = client.put("/api/shopping-list", json={"departments": {"Spiaggia": "x"}}, headers=bar_headers)
        assert resp.status_code == 400

    def test_array_body_is_400(self, client, bar_headers):
        resp = client.put("/api/shopping-list", json=["limoni"], headers=bar_headers)
        assert resp.status_code == 400

    def test_merge_must_be_a_bool(self, client, bar_headers):
        client.put("/api/shopping-list", json={"departments": {"Bar": "limoni"}}, headers=bar_headers)

        resp = client.put(
            "/api/shopping-list",
            json={"departments": {"Ristorante": "basilico"}, "merge": "false"},
            headers=bar_headers,
        )

        assert resp.status_code == 400
        data = client.get("/api/shopping-list", headers=bar_headers).get_json()
        assert data["departments"]["Bar"] == "limoni"


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"
