# storefront/services/gateway_client.py
import hashlib
import hmac

import requests
from requests import RequestException

from storefront.domain.errors import GatewayUnavailable
from storefront.utils.retry import http_retry
from storefront.utils.settings import GATEWAY_URL, GATEWAY_KEY_ID, GATEWAY_KEY_SECRET
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def sign(intent_id: str, payment_reference: str, secret: str) -> str:
    """HMAC-SHA256 hex digest of "<intent_id>|<payment_reference>"."""
    message = f"{intent_id}|{payment_reference}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signature_matches(intent_id: str, payment_reference: str, signature: str, secret: str) -> bool:
    expected = sign(intent_id, payment_reference, secret)
    return hmac.compare_digest(expected, signature or "")


class GatewayClient:
    """HTTP client for the payment gateway's order (intent) API."""

    def __init__(
        self,
        base_url: str | None = None,
        key_id: str | None = None,
        key_secret: str | None = None,
        timeout: int = 5,
    ):
        self.base_url = (base_url or GATEWAY_URL).rstrip("/")
        self.key_id = key_id or GATEWAY_KEY_ID
        self.key_secret = key_secret or GATEWAY_KEY_SECRET
        self.timeout = timeout

    @http_retry()
    def _post(self, url: str, payload: dict) -> dict:
        logger.info(f"GatewayClient POST {url}")
        resp = requests.post(
            url,
            json=payload,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> str:
        """Registers a payable amount and returns the gateway intent id."""
        try:
            data = self._post(
                f"{self.base_url}/v1/orders",
                {"amount": amount_minor, "currency": currency, "receipt": receipt},
            )
        except RequestException as e:
            raise GatewayUnavailable(str(e)) from e
        return data["id"]
