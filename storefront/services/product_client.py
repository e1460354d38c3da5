# storefront/services/product_client.py
from dataclasses import dataclass
from decimal import Decimal

import requests
from requests import RequestException

from storefront.domain.errors import ProductUnavailable, CatalogUnavailable
from storefront.utils.money import money
from storefront.utils.retry import http_retry
from storefront.utils.settings import PRODUCT_SERVICE_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PriceQuote:
    """One entry of the price snapshot taken at checkout."""

    product_id: int
    name: str
    price: Decimal
    stock: int
    active: bool = True


class ProductClient:
    def __init__(self, base_url: str | None = None, timeout: int = 2):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        logger.info(f"ProductClient GET {url}")
        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code != 404:
            resp.raise_for_status()
        return resp

    def fetch_product(self, product_id: int) -> PriceQuote:
        url = f"{self.base_url}/products/{product_id}"
        try:
            resp = self._get(url)
        except RequestException as e:
            raise CatalogUnavailable(str(e)) from e

        if resp.status_code == 404:
            raise ProductUnavailable(product_id)

        data = resp.json()
        return PriceQuote(
            product_id=int(data["id"]),
            name=data.get("name", ""),
            price=money(data["price"]),
            stock=int(data.get("stock", 0)),
            active=bool(data.get("active", True)),
        )

    def price_snapshot(self, product_ids) -> dict[int, PriceQuote]:
        snapshot = {}
        for product_id in product_ids:
            try:
                snapshot[product_id] = self.fetch_product(product_id)
            except ProductUnavailable:
                # the materializer reports the missing product in its own order
                continue
        return snapshot
