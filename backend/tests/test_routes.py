"""
HTTP API tests.

Verifies:
- Every API route requires an acting user (401 / 403)
- Service rejections map to their status codes with an error body
- Amounts travel as decimal strings
"""

from decimal import Decimal

import pytest

from costbook.models.accounts import STATUS_DISABLED


class TestActingUser:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/journal"),
            ("POST", "/api/journal"),
            ("GET", "/api/journal/accounts"),
            ("POST", "/api/inventory/movements"),
            ("GET", "/api/inventory/logs"),
            ("GET", "/api/inventory/stock-levels"),
            ("GET", "/api/sales/performance"),
            ("GET", "/api/sales"),
            ("POST", "/api/purchases"),
            ("POST", "/api/exchanges"),
            ("GET", "/api/reports/trial-balance"),
        ],
    )
    def test_requires_user_header(self, client, books, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_malformed_header(self, client, books):
        resp = client.get("/api/journal", headers={"X-User-Id": "abc"})
        assert resp.status_code == 401

    def test_unknown_user(self, client, books):
        resp = client.get("/api/journal", headers={"X-User-Id": "999999"})
        assert resp.status_code == 403

    def test_disabled_user(self, client, books, user, headers):
        user.status = STATUS_DISABLED
        books.commit()
        resp = client.get("/api/journal", headers=headers)
        assert resp.status_code == 403


class TestJournalRoutes:

    def _post(self, client, headers, usd, credit="100.00"):
        return client.post(
            "/api/journal",
            json={
                "currency_id": usd.id,
                "ref": "JV-1",
                "lines": [
                    {"account_number": "1111020100", "debit": "100.00"},
                    {"account_number": "4011010000", "credit": credit},
                ],
            },
            headers=headers,
        )

    def test_post_and_fetch(self, client, headers, usd):
        resp = self._post(client, headers, usd)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["is_balanced"] is True
        assert Decimal(body["total_debits"]) == Decimal("100")
        assert len(body["posts"]) == 2

        resp = client.get(f"/api/journal/{body['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["ref"] == "JV-1"

    def test_unbalanced_is_400(self, client, headers, usd):
        resp = self._post(client, headers, usd, credit="99.99")
        assert resp.status_code == 400
        body = resp.get_json()
        assert "not balanced" in body["error"]
        assert body["details"]["total_credits"] == "99.99"

    def test_missing_fields_is_400(self, client, headers):
        resp = client.post("/api/journal", json={}, headers=headers)
        assert resp.status_code == 400

    def test_unknown_page_is_404(self, client, headers):
        resp = client.get("/api/journal/424242", headers=headers)
        assert resp.status_code == 404

    def test_void_and_list(self, client, headers, usd):
        page_id = self._post(client, headers, usd).get_json()["id"]

        resp = client.post(f"/api/journal/{page_id}/void", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == STATUS_DISABLED

        listing = client.get("/api/journal?include_disabled=true&page_size=10", headers=headers).get_json()
        assert listing["total"] == 1
        assert listing["page_size"] == 10

    def test_ledger(self, client, headers, usd):
        self._post(client, headers, usd)
        resp = client.get("/api/journal/accounts/1111020100/ledger", headers=headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["closing_balance"] == "100.0000"
        assert body["entries"][0]["date"].endswith("Z")

    def test_create_account(self, client, headers):
        resp = client.post(
            "/api/journal/accounts",
            json={
                "number": "7300010000",
                "name": "Utilities Expense",
                "category": "Expense",
                "normal_balance": "debit",
                "currency_code": "USD",
            },
            headers=headers,
        )
        assert resp.status_code == 201
        accounts = client.get("/api/journal/accounts", headers=headers).get_json()
        assert "7300010000" in [a["number"] for a in accounts["items"]]


class TestDocumentRoutes:

    def test_purchase_then_sale(self, client, headers, catalogue, supplier, location):
        resp = client.post(
            "/api/purchases",
            json={
                "supplier_id": supplier.id,
                "stock_id": location.id,
                "lines": [{"item_code": "WID-PC", "qty": 10, "total_cost": "50"}],
            },
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["code"] == "PUR-00001"

        resp = client.post(
            "/api/sales",
            json={
                "stock_id": location.id,
                "lines": [{"item_code": "WID-PC", "qty": 4, "total_price": "36"}],
            },
            headers=headers,
        )
        assert resp.status_code == 201
        sale = resp.get_json()
        assert Decimal(sale["total_cogs"]) == Decimal("20")
        assert sale["details"][0]["quantity_in_base_units"] == 4

        summary = client.get(f"/api/inventory/{catalogue['widget'].id}/summary", headers=headers).get_json()
        assert summary["quantity_on_hand"] == 6
        assert Decimal(summary["weighted_average_cost"]) == Decimal("5")

        resp = client.post(f"/api/sales/{sale['id']}/void", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == STATUS_DISABLED

    def test_insufficient_stock_is_409(self, client, headers, catalogue, location, receive_stock):
        receive_stock(catalogue["widget"], 2, "5")
        resp = client.post(
            "/api/sales",
            json={
                "stock_id": location.id,
                "lines": [{"item_code": "WID-PC", "qty": 3, "total_price": "30"}],
            },
            headers=headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["details"]["items"][0]["required"] == 3

    def test_undefined_cost_is_409(self, client, headers, catalogue, location):
        resp = client.post(
            "/api/sales",
            json={
                "stock_id": location.id,
                "lines": [{"item_code": "GAD-PC", "qty": 1, "total_price": "3"}],
            },
            headers=headers,
        )
        assert resp.status_code == 409

    def test_record_movement(self, client, headers, catalogue):
        widget = catalogue["widget"]
        resp = client.post(
            "/api/inventory/movements",
            json={
                "item_id": widget.id,
                "transaction_type": "Initial Stock",
                "quantity": 5,
                "unit_id": widget.base_unit_id,
                "cost_per_base_unit": "3.50",
            },
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["signed_quantity"] == 5

        logs = client.get(f"/api/inventory/logs?item_id={widget.id}", headers=headers).get_json()
        assert logs["total"] == 1

    def test_sales_reports_and_stock_levels(self, client, headers, catalogue, location, receive_stock):
        receive_stock(catalogue["widget"], 24, "5")
        resp = client.post(
            "/api/sales",
            json={
                "stock_id": location.id,
                "date": "2026-03-02",
                "lines": [{"item_code": "WID-BX", "qty": 1, "total_price": "90"}],
            },
            headers=headers,
        )
        assert resp.status_code == 201

        body = client.get("/api/sales/performance?start=2026-03-01&end=2026-03-31", headers=headers).get_json()
        row = body["items"][0]
        assert (row["item_code"], row["unit_name"], row["units_sold"]) == ("WID-BX", "Box", 1)
        assert Decimal(row["total_cogs"]) == Decimal("60")
        assert Decimal(row["gross_profit"]) == Decimal("30")

        days = client.get("/api/sales/daily?start=2026-03-01&end=2026-03-31", headers=headers).get_json()["days"]
        assert [(d["date"], d["sales_count"]) for d in days] == [("2026-03-02", 1)]

        resp = client.get("/api/sales/daily?start=2026-03-31&end=2026-03-01", headers=headers)
        assert resp.status_code == 400
        assert client.get("/api/sales/performance", headers=headers).status_code == 400

        levels = client.get("/api/inventory/stock-levels?name=Widget", headers=headers).get_json()
        assert levels["total"] == 1
        units = {u["unit_name"]: u for u in levels["items"][0]["units"]}
        assert levels["items"][0]["quantity_on_hand"] == 12
        assert Decimal(units["Box"]["quantity_in_unit"]) == Decimal("1")
        assert units["Piece"]["conversion_factor"] == 1


class TestExchangeAndReportRoutes:

    def test_exchange_and_trial_balance(self, client, headers):
        resp = client.post(
            "/api/exchanges",
            json={"option": "USDtoKHR", "bank_location": "ABA", "amount": "100", "rate": "4000"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["to_amount"] == "400000.0000"

        resp = client.get("/api/reports/trial-balance?as_of=2099-12-31", headers=headers)
        assert resp.status_code == 400

        resp = client.get("/api/reports/trial-balance?as_of=2099-12-31&exchange_rate=4000", headers=headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["is_balanced"] is True
        assert Decimal(body["total_debits"]) == Decimal("200")

    def test_as_of_is_required(self, client, headers):
        resp = client.get("/api/reports/balance-sheet?exchange_rate=4000", headers=headers)
        assert resp.status_code == 400

    def test_balance_sheet_without_rate_is_400(self, client, headers):
        resp = client.get("/api/reports/balance-sheet?as_of=2026-01-31", headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["details"]["currencies"] == ["KHR"]

    def test_balance_sheet_and_profit_loss(self, client, headers):
        for path in ("balance-sheet", "profit-loss"):
            resp = client.get(f"/api/reports/{path}?as_of=2026-01-31&exchange_rate=4000", headers=headers)
            assert resp.status_code == 200, path


def test_health(client, books):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["chart_of_accounts"]["details"]["base_currency_present"] is True
