"""Tests for LockService, ProductClient and GatewayClient."""

import pytest
import requests

from storefront.domain.errors import CatalogUnavailable, GatewayUnavailable, OrderBusy, ProductUnavailable
from storefront.services import gateway_client as gateway_module
from storefront.services import product_client as product_module
from storefront.services.gateway_client import GatewayClient, sign, signature_matches
from storefront.services.product_client import ProductClient


class FakeResponse:
    def __init__(self, status_code: int, payload: dict | None = None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class TestLockService:
    def test_only_the_owner_releases(self, lock_service):
        assert lock_service.acquire_order_lock("o1", "a") is True
        assert lock_service.acquire_order_lock("o1", "b") is False

        assert lock_service.release_order_lock("o1", "b") is False
        assert lock_service.release_order_lock("o1", "a") is True
        assert lock_service.acquire_order_lock("o1", "b") is True

    def test_context_manager_frees_the_key(self, lock_service, redis_client):
        with lock_service.order_lock("o1"):
            assert redis_client.get("order:o1:lock") is not None

        assert redis_client.get("order:o1:lock") is None

    def test_context_manager_gives_up_when_busy(self, lock_service):
        lock_service.acquire_order_lock("o1", "other")

        with pytest.raises(OrderBusy):
            with lock_service.order_lock("o1"):
                pass

    def test_lock_has_a_lease(self, lock_service, redis_client):
        lock_service.acquire_order_lock("o1", "a")

        assert 0 < redis_client.ttl("order:o1:lock") <= 5


class TestSignature:
    def test_digest_depends_on_the_secret(self):
        digest = sign("order_1", "pay_1", "secret")

        assert len(digest) == 64
        assert digest == sign("order_1", "pay_1", "secret")
        assert digest != sign("order_1", "pay_1", "other")

    def test_matches(self):
        sig = sign("order_1", "pay_1", "secret")

        assert signature_matches("order_1", "pay_1", sig, "secret")
        assert not signature_matches("order_1", "pay_2", sig, "secret")
        assert not signature_matches("order_1", "pay_1", sig.upper(), "secret")
        assert not signature_matches("order_1", "pay_1", "", "secret")


class TestProductClient:
    def test_fetch_product(self, monkeypatch):
        monkeypatch.setattr(
            product_module.requests,
            "get",
            lambda url, timeout: FakeResponse(200, {"id": 1, "name": "Keyboard", "price": 199.99, "stock": 3}),
        )

        quote = ProductClient(base_url="http://catalog.test/").fetch_product(1)

        assert quote.name == "Keyboard"
        assert str(quote.price) == "199.99"
        assert quote.stock == 3
        assert quote.active is True

    def test_missing_product(self, monkeypatch):
        monkeypatch.setattr(product_module.requests, "get", lambda url, timeout: FakeResponse(404))

        with pytest.raises(ProductUnavailable):
            ProductClient(base_url="http://catalog.test").fetch_product(9)

    def test_snapshot_skips_missing_products(self, monkeypatch):
        def fake_get(url, timeout):
            if url.endswith("/2"):
                return FakeResponse(404)
            return FakeResponse(200, {"id": 1, "price": "10", "stock": 1})

        monkeypatch.setattr(product_module.requests, "get", fake_get)

        snapshot = ProductClient(base_url="http://catalog.test").price_snapshot([1, 2])

        assert list(snapshot) == [1]

    def test_catalog_down(self, monkeypatch):
        def refuse(url, timeout):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(product_module.requests, "get", refuse)

        with pytest.raises(CatalogUnavailable):
            ProductClient(base_url="http://catalog.test").fetch_product(1)


class TestGatewayClient:
    def test_create_order(self, monkeypatch):
        sent = {}

        def fake_post(url, json, auth, timeout):
            sent.update(url=url, json=json, auth=auth)
            return FakeResponse(200, {"id": "order_abc"})

        monkeypatch.setattr(gateway_module.requests, "post", fake_post)

        client = GatewayClient(base_url="http://gw.test", key_id="k", key_secret="s")
        intent = client.create_order(2000, "INR", "order_1")

        assert intent == "order_abc"
        assert sent["url"] == "http://gw.test/v1/orders"
        assert sent["json"] == {"amount": 2000, "currency": "INR", "receipt": "order_1"}
        assert sent["auth"] == ("k", "s")

    def test_gateway_down(self, monkeypatch):
        calls = []

        def refuse(url, json, auth, timeout):
            calls.append(url)
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(gateway_module.requests, "post", refuse)

        with pytest.raises(GatewayUnavailable):
            GatewayClient(base_url="http://gw.test").create_order(100, "INR", "r")

        assert len(calls) == 3
