"""Integration tests for the order endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.errors import register_exception_handlers
from ordering.api.routes import order_router, payment_router

USER = {"X-User-Id": "user-api-1"}
OTHER_USER = {"X-User-Id": "user-api-2"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}

ADDRESS = {
    "firstName": "Asha",
    "lastName": "Rao",
    "addressLine1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
    "phone": "9876543210",
}


def _app():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(payment_router)
    register_exception_handlers(app)
    return app


@pytest.fixture()
def client(catalog):
    return TestClient(_app())


def _order_body(**overrides):
    body = {
        "items": [{"product": "prod-shirt", "quantity": 2, "size": "M"}],
        "shippingAddress": ADDRESS,
        "paymentInfo": {"method": "razorpay"},
    }
    body.update(overrides)
    return body


def _create_order(client, headers=USER, **overrides):
    response = client.post("/orders", json=_order_body(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _set_status(client, order_id, status, **extra):
    return client.put(f"/orders/{order_id}/status", json={"status": status, **extra}, headers=ADMIN)


class TestCreateOrder:
    def test_create_returns_order_document(self, client, catalog):
        response = client.post("/orders", json=_order_body(), headers=USER)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Order created successfully"
        order = body["data"]
        assert order["status"] == "pending"
        assert order["user"] == "user-api-1"
        assert order["pricing"] == {
            "subtotal": 2000.0,
            "tax": 360.0,
            "shippingCost": 0.0,
            "discount": 0.0,
            "total": 2360.0,
        }
        assert order["items"][0]["name"] == "Linen Shirt"
        assert order["items"][0]["size"] == "M"
        assert order["billingAddress"]["sameAsShipping"] is True
        assert order["timeline"][0]["message"] == "Order pending"
        assert catalog.stock_of("prod-shirt") == 8

    def test_cod_order_is_confirmed(self, client):
        order = _create_order(client, paymentInfo={"method": "cod"})
        assert order["status"] == "confirmed"

    def test_coupon(self, client):
        order = _create_order(
            client,
            items=[{"product": "prod-mug", "quantity": 1}],
            coupon={"code": "FLAT50", "type": "fixed", "discount": 50},
        )
        assert order["pricing"]["discount"] == 50.0
        assert order["pricing"]["total"] == 640.0
        assert order["coupon"]["code"] == "FLAT50"

    def test_insufficient_stock_is_conflict(self, client, catalog):
        response = client.post(
            "/orders",
            json=_order_body(items=[{"product": "prod-shirt", "quantity": 1}, {"product": "prod-cap", "quantity": 2}]),
            headers=USER,
        )

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Insufficient stock for Cotton Cap. Only 1 items available."
        assert body["available"] == 1
        assert catalog.stock_of("prod-shirt") == 10

    def test_unknown_product_is_not_found(self, client):
        response = client.post("/orders", json=_order_body(items=[{"product": "nope", "quantity": 1}]), headers=USER)
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_schema_errors_are_422(self, client):
        response = client.post(
            "/orders",
            json=_order_body(shippingAddress={**ADDRESS, "pincode": "12"}),
            headers=USER,
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Validation failed"

    def test_empty_items_rejected(self, client):
        response = client.post("/orders", json=_order_body(items=[]), headers=USER)
        assert response.status_code == 422

    def test_missing_identity_is_unauthorized(self, client):
        response = client.post("/orders", json=_order_body())
        assert response.status_code == 401

    def test_unexpected_failure_is_500(self, catalog, cart):
        cart.should_fail = True
        client = TestClient(_app(), raise_server_exceptions=False)

        response = client.post("/orders", json=_order_body(), headers=USER)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Internal server error"}
        assert catalog.stock_of("prod-shirt") == 10


class TestReadOrders:
    def test_get_own_order(self, client):
        order = _create_order(client)
        response = client.get(f"/orders/{order['id']}", headers=USER)
        assert response.status_code == 200
        assert response.json()["data"]["orderNumber"] == order["orderNumber"]

    def test_get_other_users_order_forbidden(self, client):
        order = _create_order(client)
        response = client.get(f"/orders/{order['id']}", headers=OTHER_USER)
        assert response.status_code == 403

    def test_admin_reads_any_order(self, client):
        order = _create_order(client)
        assert client.get(f"/orders/{order['id']}", headers=ADMIN).status_code == 200

    def test_unknown_order(self, client):
        assert client.get("/orders/does-not-exist", headers=USER).status_code == 404

    def test_list_my_orders(self, client):
        headers = {"X-User-Id": "user-api-list"}
        for _ in range(3):
            _create_order(client, headers=headers, items=[{"product": "prod-mug", "quantity": 1}])

        response = client.get("/orders", params={"page": 1, "limit": 2}, headers=headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["orders"]) == 2
        assert data["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalOrders": 3,
            "hasNextPage": True,
            "hasPrevPage": False,
            "limit": 2,
        }

    def test_list_limit_bounded(self, client):
        assert client.get("/orders", params={"limit": 51}, headers=USER).status_code == 400

    def test_admin_list_requires_admin(self, client):
        assert client.get("/orders/admin/all", headers=USER).status_code == 403

    def test_admin_list_by_order_number(self, client):
        order = _create_order(client)
        response = client.get("/orders/admin/all", params={"order_number": order["orderNumber"]}, headers=ADMIN)
        assert response.status_code == 200
        assert order["id"] in [o["id"] for o in response.json()["data"]["orders"]]


class TestCancelOrder:
    def test_cancel_restores_stock(self, client, catalog):
        order = _create_order(client)

        response = client.put(f"/orders/{order['id']}/cancel", json={"reason": "Changed my mind"}, headers=USER)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "cancelled"
        assert data["cancellation"]["reason"] == "Changed my mind"
        assert data["cancellation"]["refundStatus"] == "processed"
        assert catalog.stock_of("prod-shirt") == 10

    def test_cancel_without_body(self, client):
        order = _create_order(client)
        response = client.put(f"/orders/{order['id']}/cancel", headers=USER)
        assert response.status_code == 200
        assert response.json()["data"]["cancellation"]["reason"] == "Cancelled by customer"

    def test_cancel_shipped_order_is_conflict(self, client):
        order = _create_order(client)
        for status in ("confirmed", "processing", "shipped"):
            assert _set_status(client, order["id"], status).status_code == 200

        response = client.put(f"/orders/{order['id']}/cancel", headers=USER)

        assert response.status_code == 409
        assert response.json()["message"] == "Order cannot be cancelled in shipped status"

    def test_cancel_other_users_order_forbidden(self, client):
        order = _create_order(client)
        assert client.put(f"/orders/{order['id']}/cancel", headers=OTHER_USER).status_code == 403


class TestUpdateStatus:
    def test_admin_moves_order_forward(self, client):
        order = _create_order(client)
        _set_status(client, order["id"], "confirmed")
        _set_status(client, order["id"], "processing")

        response = _set_status(client, order["id"], "shipped", trackingNumber="AWB-9", courier="BlueDart")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "shipped"
        assert data["tracking"]["trackingNumber"] == "AWB-9"
        assert [entry["status"] for entry in data["timeline"]] == ["pending", "confirmed", "processing", "shipped"]

    def test_invalid_transition_is_conflict(self, client):
        order = _create_order(client)
        response = _set_status(client, order["id"], "delivered")
        assert response.status_code == 409
        assert response.json()["errors"] == {"status": ["Cannot transition from pending to delivered"]}

    def test_unknown_status_is_422(self, client):
        order = _create_order(client)
        assert _set_status(client, order["id"], "lost").status_code == 422

    def test_requires_admin(self, client):
        order = _create_order(client)
        response = client.put(f"/orders/{order['id']}/status", json={"status": "confirmed"}, headers=USER)
        assert response.status_code == 403

    def test_admin_restock_endpoint(self, client, catalog):
        order = _create_order(client)
        catalog.fail_increments_for.add("prod-shirt")
        client.put(f"/orders/{order['id']}/cancel", headers=USER)
        assert catalog.stock_of("prod-shirt") == 8

        catalog.fail_increments_for.clear()
        response = client.put(f"/orders/{order['id']}/restock", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["message"] == "Stock restored"
        assert catalog.stock_of("prod-shirt") == 10

    def test_refund_without_pending_refund(self, client):
        order = _create_order(client)
        client.put(f"/orders/{order['id']}/cancel", headers=USER)
        response = client.put(f"/orders/{order['id']}/refund", headers=ADMIN)
        assert response.status_code == 400
        assert response.json()["message"] == "No refund is pending for this order"
