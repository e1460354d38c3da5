"""HTTP tests for the checkout API."""

import pytest
from fastapi.testclient import TestClient

from conftest import signed
from storefront.api.deps import get_gateway_client, get_lock_service, get_product_client
from storefront.data.database import get_db
from storefront.main import create_app

ADMIN = {"X-User-Role": "admin"}


@pytest.fixture
def client(db, catalog, gateway, lock_service):
    app = create_app()

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_product_client] = lambda: catalog
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    return TestClient(app)


def checkout(client, user_id=1, product_id=1, quantity=2):
    r = client.post("/carts/me/items", params={"user_id": user_id}, json={"product_id": product_id, "quantity": quantity})
    assert r.status_code == 200, r.text
    r = client.post("/checkout", params={"user_id": user_id}, json={"shipping_address": "Main St 1"})
    assert r.status_code == 201, r.text
    return r.json()


def verify(client, summary, payment="pay_1", signature=None, user_id=1):
    intent = summary["gateway_intent_id"]
    return client.post(
        "/checkout/verify",
        params={"user_id": user_id},
        json={
            "order_id": summary["order_id"],
            "gateway_intent_id": intent,
            "gateway_payment_reference": payment,
            "signature": signature or signed(intent, payment),
        },
    )


class TestCartApi:
    def test_cart_round(self, client):
        r = client.post("/carts/me/items", params={"user_id": 1}, json={"product_id": 2, "quantity": 1})
        assert r.json()["items"] == [{"product_id": 2, "quantity": 1}]

        r = client.put("/carts/me/items/2", params={"user_id": 1}, json={"quantity": 4})
        assert r.json()["items"] == [{"product_id": 2, "quantity": 4}]

        r = client.delete("/carts/me", params={"user_id": 1})
        assert r.json()["items"] == []

    def test_unknown_product_code(self, client):
        r = client.post("/carts/me/items", params={"user_id": 1}, json={"product_id": 404, "quantity": 1})

        assert r.status_code == 404
        assert r.json()["detail"]["code"] == "PRODUCT_UNAVAILABLE"

    def test_zero_quantity_is_rejected_by_schema(self, client):
        r = client.post("/carts/me/items", params={"user_id": 1}, json={"product_id": 1, "quantity": 0})

        assert r.status_code == 422


class TestCheckoutApi:
    def test_checkout_returns_intent(self, client):
        summary = checkout(client)

        assert summary["gateway_intent_id"] == "order_intent_1"
        assert summary["amount"] == "20.00"
        assert summary["currency"] == "INR"

    def test_empty_cart(self, client):
        r = client.post("/checkout", params={"user_id": 1}, json={"shipping_address": "Main St 1"})

        assert r.status_code == 400
        assert r.json()["detail"]["code"] == "EMPTY_CART"

    def test_second_checkout_is_out_of_stock(self, client):
        client.post("/carts/me/items", params={"user_id": 2}, json={"product_id": 1, "quantity": 1})
        checkout(client, user_id=1)

        r = client.post("/checkout", params={"user_id": 2}, json={"shipping_address": "Side St 2"})

        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "INSUFFICIENT_STOCK"

    def test_gateway_down_is_retryable(self, client, gateway):
        gateway.down = True
        client.post("/carts/me/items", params={"user_id": 1}, json={"product_id": 1, "quantity": 1})

        r = client.post("/checkout", params={"user_id": 1}, json={"shipping_address": "Main St 1"})
        assert r.status_code == 503
        order_id = r.json()["detail"]["order_id"]

        gateway.down = False
        r = client.post(f"/checkout/{order_id}/intent", params={"user_id": 1})
        assert r.status_code == 200
        assert r.json()["order_id"] == order_id

    def test_verify_pays_the_order(self, client):
        summary = checkout(client)

        r = verify(client, summary)

        assert r.status_code == 200
        body = r.json()
        assert body["result"] == "authorized"
        assert body["order"]["status"] == "paid"
        assert body["order"]["payment_outcome"] == "authorized"

    def test_forged_signature(self, client):
        summary = checkout(client)

        r = verify(client, summary, signature="0" * 64)

        assert r.status_code == 400
        assert r.json()["detail"] == {"code": "SIGNATURE_INVALID", "message": "Payment verification failed"}
        order = client.get(f"/orders/{summary['order_id']}", params={"user_id": 1}).json()
        assert order["status"] == "awaiting_payment"

    def test_duplicate_callback(self, client):
        summary = checkout(client)
        verify(client, summary)

        r = verify(client, summary)

        assert r.status_code == 200
        assert r.json()["result"] == "already_finalized"

    def test_other_payment_after_paid(self, client):
        summary = checkout(client)
        verify(client, summary)

        r = verify(client, summary, payment="pay_2")

        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "ALREADY_FINALIZED"

    def test_verify_someone_elses_order(self, client):
        summary = checkout(client)

        r = verify(client, summary, user_id=2)

        assert r.status_code == 403


class TestOrdersApi:
    def test_get_order_projection(self, client):
        summary = checkout(client)

        r = client.get(f"/orders/{summary['order_id']}", params={"user_id": 1})

        body = r.json()
        assert body["status"] == "awaiting_payment"
        assert body["total_amount"] == "20.00"
        assert body["lines"] == [
            {"product_id": 1, "product_name": "Product 1", "quantity": 2, "unit_price": "10.00", "subtotal": "20.00"}
        ]
        assert body["payment_outcome"] == "pending"

    def test_list_own_orders(self, client):
        checkout(client, user_id=1, product_id=2, quantity=1)
        checkout(client, user_id=2, product_id=2, quantity=1)

        r = client.get("/orders", params={"user_id": 1})

        assert r.json()["total"] == 1

    def test_owner_cancel(self, client):
        summary = checkout(client)

        r = client.post(f"/orders/{summary['order_id']}/cancel", params={"user_id": 1})

        assert r.status_code == 200
        assert r.json()["status"] == "cancelled"


class TestAdminApi:
    def test_requires_admin_role(self, client):
        assert client.get("/admin/orders").status_code == 403

    def test_fulfillment_and_refund(self, client):
        summary = checkout(client)
        verify(client, summary)
        path = f"/admin/orders/{summary['order_id']}/transition"

        r = client.post(path, json={"trigger": "approve"}, headers=ADMIN)
        assert r.json()["status"] == "approved"

        r = client.post(path, json={"trigger": "refund"}, headers=ADMIN)
        assert r.json()["status"] == "refunded"

    def test_illegal_transition(self, client):
        summary = checkout(client)

        r = client.post(f"/admin/orders/{summary['order_id']}/transition", json={"trigger": "ship"}, headers=ADMIN)

        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "ILLEGAL_TRANSITION"

    def test_payment_trigger_is_not_for_admins(self, client):
        summary = checkout(client)

        r = client.post(
            f"/admin/orders/{summary['order_id']}/transition",
            json={"trigger": "payment_authorized"},
            headers=ADMIN,
        )

        assert r.status_code == 409

    def test_stats(self, client):
        verify(client, checkout(client, user_id=1, product_id=2, quantity=2))
        checkout(client, user_id=2, product_id=2, quantity=1)

        body = client.get("/admin/orders/stats", headers=ADMIN).json()

        assert body["orders_by_status"]["paid"] == 1
        assert body["orders_by_status"]["awaiting_payment"] == 1
        assert body["revenue"] == "9.98"

    def test_restock(self, client):
        checkout(client)

        r = client.put("/admin/stock/1", json={"total_stock": 5}, headers=ADMIN)

        assert r.json() == {"product_id": 1, "total_stock": 5, "held": 2, "committed": 0, "available": 3}
