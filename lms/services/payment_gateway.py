"""Razorpay-style payment gateway client.

Built once from settings in the app lifespan; holds its own credentials
and an injected ``httpx.AsyncClient``.  Signature checks are HMAC-SHA256
hex digests compared in constant time.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass

import httpx

from lms.core.config import Settings
from lms.core.errors import GatewayError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.razorpay.com"


@dataclass(frozen=True, slots=True)
class GatewayOrder:
    id: str
    amount: int
    currency: str
    receipt: str


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    def __init__(
        self,
        *,
        key_id: str,
        key_secret: str,
        webhook_secret: str | None,
        http: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self.key_id = key_id
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret
        self._http = http
        self._base_url = base_url.rstrip("/")

    def __repr__(self) -> str:
        return f"RazorpayGateway(key_id={self.key_id!r})"

    async def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> GatewayOrder:
        """POST /v1/orders.  Raises GatewayError on transport or non-2xx."""
        body = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            response = await self._http.post(
                f"{self._base_url}/v1/orders",
                json=body,
                auth=(self.key_id, self._key_secret),
                timeout=10,
            )
        except httpx.HTTPError as exc:
            logger.error("Order request failed: %s", type(exc).__name__)
            raise GatewayError() from exc

        if response.is_error:
            description = _error_description(response)
            logger.error(
                "Gateway rejected order: status=%d description=%s",
                response.status_code,
                description,
            )
            raise GatewayError(description or None, status=response.status_code)

        data = response.json()
        return GatewayOrder(
            id=str(data["id"]),
            amount=int(data["amount"]),
            currency=str(data["currency"]),
            receipt=str(data.get("receipt") or receipt),
        )

    def payment_signature(self, order_id: str, payment_id: str) -> str:
        return _hmac_hex(self._key_secret, f"{order_id}|{payment_id}".encode())

    def verify_payment_signature(
        self, order_id: str, payment_id: str, signature: str
    ) -> bool:
        expected = self.payment_signature(order_id, payment_id)
        return hmac.compare_digest(expected.encode(), signature.encode())

    def verify_webhook_signature(self, raw_body: bytes, signature: str | None) -> bool:
        if not self._webhook_secret or not signature:
            return False
        expected = _hmac_hex(self._webhook_secret, raw_body)
        return hmac.compare_digest(expected.encode(), signature.encode())


def _error_description(response: httpx.Response) -> str:
    try:
        return str(response.json().get("error", {}).get("description", ""))
    except ValueError:
        return ""


def build_payment_gateway(
    settings: Settings, http: httpx.AsyncClient
) -> RazorpayGateway | None:
    """None when key id or secret is missing (payments disabled)."""
    if not settings.payments_enabled:
        return None
    return RazorpayGateway(
        key_id=settings.payment_key_id,
        key_secret=settings.payment_key_secret,
        webhook_secret=settings.payment_webhook_secret,
        http=http,
    )
