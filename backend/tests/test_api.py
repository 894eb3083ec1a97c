"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401, shopkeepers are denied owner routes (403)
- Cost is hidden from shopkeepers
- Billing and payment receipt through the API, including error codes
"""

import pytest

from conftest import TEST_PASSWORD, auth_headers, get_auth_token


# =============================================================================
# AUTHENTICATION: 401 / 403
# =============================================================================


class TestAccessControl:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("GET", "/api/users"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/customers"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("POST", "/api/payments"),
            ("GET", "/api/reports/revenue"),
            ("GET", "/api/reports/dashboard"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/users"),
            ("POST", "/api/users"),
            ("GET", "/api/reports/revenue"),
            ("GET", "/api/reports/consistency"),
        ],
    )
    def test_shopkeeper_denied_owner_routes(self, client, shopkeeper_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=shopkeeper_headers, json={})
        assert resp.status_code == 403

    def test_health_is_public(self, client):
        resp = client.get("/api/system/health")
        assert resp.status_code == 200
        assert resp.json["database"]["status"] == "healthy"

    def test_login_logout(self, client, owner):
        resp = client.post("/api/auth/login", json={"username": "owner", "password": "Wrong123!"})
        assert resp.status_code == 401

        token = get_auth_token(client, "owner")
        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["user"]["role"] == "owner"
        assert "VIEW_COST" in me.json["user"]["permissions"]

        assert client.post("/api/auth/logout", headers=auth_headers(token)).json["revoked"] is True
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProductsApi:

    def test_owner_sees_cost_shopkeeper_does_not(self, client, owner_headers, shopkeeper_headers):
        created = client.post("/api/products", headers=owner_headers, json={
            "name": "LED Bulb 12W",
            "category": "Lighting",
            "unit": "piece",
            "price_per_unit_cents": 35000,
            "cost_per_unit_cents": 26000,
            "stock": 120,
            "watts": "12W",
        })
        assert created.status_code == 201
        product_id = created.json["product"]["id"]
        assert created.json["product"]["cost_per_unit_cents"] == 26000

        seen = client.get(f"/api/products/{product_id}", headers=shopkeeper_headers)
        assert seen.status_code == 200
        assert "cost_per_unit_cents" not in seen.json["product"]

    def test_shopkeeper_cannot_set_cost(self, client, shopkeeper_headers):
        resp = client.post("/api/products", headers=shopkeeper_headers, json={
            "name": "Switch", "price_per_unit_cents": 28000, "cost_per_unit_cents": 1,
        })
        assert resp.status_code == 400
        assert "cost_per_unit_cents" in resp.json["error"]

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "X"},
            {"name": "X", "price_per_unit_cents": -1},
            {"name": "X", "price_per_unit_cents": 12.5},
            {"name": "X", "price_per_unit_cents": 100, "unit": "kg"},
            {"name": "X", "price_per_unit_cents": 100, "stock": -1},
            {"name": "X", "price_per_unit_cents": 100, "sku": "nope"},
        ],
    )
    def test_create_validation(self, client, owner_headers, payload):
        resp = client.post("/api/products", headers=owner_headers, json=payload)
        assert resp.status_code == 400

    def test_stock_adjustment(self, client, owner_headers):
        product_id = client.post("/api/products", headers=owner_headers, json={
            "name": "Switch", "price_per_unit_cents": 28000, "stock": 3,
        }).json["product"]["id"]

        resp = client.post(f"/api/products/{product_id}/stock", headers=owner_headers, json={"delta": -5})
        assert resp.status_code == 400

        resp = client.post(f"/api/products/{product_id}/stock", headers=owner_headers, json={"delta": 7})
        assert resp.status_code == 200
        assert resp.json["stock"] == 10

        low = client.get("/api/products/low-stock?threshold=11", headers=owner_headers)
        assert [p["id"] for p in low.json["products"]] == [product_id]

    def test_unknown_product(self, client, owner_headers):
        assert client.get("/api/products/missing", headers=owner_headers).status_code == 404
        assert client.delete("/api/products/missing", headers=owner_headers).status_code == 404


# =============================================================================
# BILLING + PAYMENTS
# =============================================================================


@pytest.fixture
def catalog(client, owner_headers):
    product = client.post("/api/products", headers=owner_headers, json={
        "name": "LED Bulb", "price_per_unit_cents": 350, "cost_per_unit_cents": 250, "stock": 10,
    }).json["product"]
    customer = client.post("/api/customers", headers=owner_headers, json={
        "name": "Ahmad Ali", "phone": "03001234567", "address": "Lahore",
    }).json["customer"]
    return product, customer


class TestBillingApi:

    def test_bill_then_settle(self, client, shopkeeper_headers, owner_headers, catalog):
        product, customer = catalog

        resp = client.post("/api/invoices", headers=shopkeeper_headers, json={
            "items": [{"product_id": product["id"], "quantity": 2}],
            "customer": {"id": customer["id"]},
            "paid_cents": 300,
            "payment_method": "cash",
        })
        assert resp.status_code == 201
        invoice = resp.json["invoice"]
        assert (invoice["total_cents"], invoice["paid_cents"], invoice["due_cents"]) == (700, 300, 400)
        assert invoice["status"] == "partial"
        assert invoice["created_by"] == "shopkeeper"
        assert "cost_per_unit_cents" not in invoice["items"][0]

        balance = client.get(f"/api/customers/{customer['id']}", headers=shopkeeper_headers)
        assert balance.json["customer"]["total_due_cents"] == 400

        pending = client.get("/api/invoices/pending", headers=shopkeeper_headers)
        assert pending.json["total_due_cents"] == 400

        paid = client.post("/api/payments", headers=shopkeeper_headers, json={
            "invoice_id": invoice["id"], "amount_cents": 400, "method": "easypay",
        })
        assert paid.status_code == 201
        assert paid.json["invoice"]["status"] == "paid"

        balance = client.get(f"/api/customers/{customer['id']}", headers=shopkeeper_headers)
        assert balance.json["customer"]["total_due_cents"] == 0

        history = client.get(f"/api/payments/invoices/{invoice['id']}", headers=shopkeeper_headers)
        assert history.json["total_paid_cents"] == 700

        consistency = client.get("/api/reports/consistency", headers=owner_headers)
        assert consistency.json == {"ok": True, "issues": []}

    def test_insufficient_stock(self, client, shopkeeper_headers, catalog):
        product, _ = catalog
        resp = client.post("/api/invoices", headers=shopkeeper_headers, json={
            "items": [{"product_id": product["id"], "quantity": 20}],
            "paid_cents": 0,
        })
        assert resp.status_code == 400
        assert "Insufficient stock" in resp.json["error"]

        after = client.get(f"/api/products/{product['id']}", headers=shopkeeper_headers)
        assert after.json["product"]["stock"] == 10

    def test_unknown_product_is_404(self, client, shopkeeper_headers, catalog):
        resp = client.post("/api/invoices", headers=shopkeeper_headers, json={
            "items": [{"product_id": "missing", "quantity": 1}],
        })
        assert resp.status_code == 404

    def test_overpayment_and_idempotency(self, client, shopkeeper_headers, catalog):
        product, _ = catalog
        invoice = client.post("/api/invoices", headers=shopkeeper_headers, json={
            "items": [{"product_id": product["id"], "quantity": 1}],
        }).json["invoice"]

        over = client.post("/api/payments", headers=shopkeeper_headers, json={
            "invoice_id": invoice["id"], "amount_cents": 351,
        })
        assert over.status_code == 400

        headers = dict(shopkeeper_headers, **{"Idempotency-Key": "receipt-1"})
        body = {"invoice_id": invoice["id"], "amount_cents": 100, "method": "cash"}
        first = client.post("/api/payments", headers=headers, json=body)
        second = client.post("/api/payments", headers=headers, json=body)
        assert first.status_code == second.status_code == 201
        assert first.json["payment"]["id"] == second.json["payment"]["id"]
        assert second.json["invoice"]["paid_cents"] == 100

        mismatch = client.post("/api/payments", headers=headers, json=dict(body, amount_cents=50))
        assert mismatch.status_code == 409

    def test_owner_sees_item_cost(self, client, owner_headers, catalog):
        product, _ = catalog
        invoice = client.post("/api/invoices", headers=owner_headers, json={
            "items": [{"product_id": product["id"], "quantity": 1}],
            "paid_cents": 350,
        }).json["invoice"]

        fetched = client.get(f"/api/invoices/{invoice['id']}", headers=owner_headers)
        assert fetched.json["invoice"]["items"][0]["cost_per_unit_cents"] == 250

    def test_revenue_report(self, client, owner_headers, catalog):
        product, _ = catalog
        client.post("/api/invoices", headers=owner_headers, json={
            "items": [{"product_id": product["id"], "quantity": 2}],
            "paid_cents": 700,
        })

        report = client.get("/api/reports/revenue?period=all", headers=owner_headers)
        assert report.status_code == 200
        assert (report.json["revenue_cents"], report.json["cost_cents"], report.json["profit_cents"]) == (700, 500, 200)

        bad = client.get("/api/reports/revenue?period=daily", headers=owner_headers)
        assert bad.status_code == 400


# =============================================================================
# USERS
# =============================================================================


class TestUsersApi:

    def test_owner_adds_shopkeeper(self, client, owner_headers):
        resp = client.post("/api/users", headers=owner_headers, json={
            "username": "counter2", "password": TEST_PASSWORD,
        })
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "shopkeeper"

        dup = client.post("/api/users", headers=owner_headers, json={
            "username": "counter2", "password": TEST_PASSWORD,
        })
        assert dup.status_code == 409

    def test_change_own_password(self, client, shopkeeper_headers):
        resp = client.put("/api/users/me/password", headers=shopkeeper_headers, json={
            "current_password": TEST_PASSWORD, "new_password": "N3w!Password",
        })
        assert resp.status_code == 200
        assert get_auth_token(client, "shopkeeper", "N3w!Password") is not None

    def test_rename_self(self, client, shopkeeper_headers):
        resp = client.put("/api/users/me/username", headers=shopkeeper_headers, json={"username": "counter1"})
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=shopkeeper_headers).json["user"]["username"] == "counter1"
