"""
Payment Provider Client

Thin async wrapper around the Razorpay Orders REST API.

Created at request time, never at import time, so importing the app
without payment credentials (tests, build tooling) works.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from docai.core.config import settings
from docai.core.exceptions import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

# Provider limit on the receipt field
MAX_RECEIPT_LENGTH = 40


@dataclass
class ProviderOrder:
    id: str
    amount: int
    currency: str
    receipt: str
    status: str
    raw: Dict[str, Any]


class RazorpayClient:
    """Async client for order creation."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "RazorpayClient":
        """
        Build a client from configuration.

        Raises:
            ConfigurationError: If key id or secret is missing
        """
        if settings.BUILD_PHASE:
            raise ConfigurationError("Payment client not available during build")

        if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
            logger.error("Razorpay credentials missing in environment variables")
            raise ConfigurationError("Payment system not configured")

        return cls(
            key_id=settings.RAZORPAY_KEY_ID,
            key_secret=settings.RAZORPAY_KEY_SECRET,
            base_url=settings.RAZORPAY_API_BASE_URL,
            timeout=settings.RAZORPAY_TIMEOUT_SECONDS,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
            transport=self._transport,
        )

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
    ) -> ProviderOrder:
        """
        Create an order.

        Raises:
            UpstreamError: If the provider rejects the request or is unreachable
        """
        body = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt[:MAX_RECEIPT_LENGTH],
            "notes": notes or {},
        }

        try:
            async with self._client() as client:
                response = await client.post("/orders", json=body)
        except httpx.HTTPError as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise UpstreamError("Failed to create payment order", details=str(e))

        if response.status_code >= 400:
            description = _error_description(response)
            logger.error(
                f"Razorpay order creation failed: status={response.status_code} "
                f"description={description}"
            )
            raise UpstreamError("Failed to create payment order", details=description)

        data = response.json()
        return ProviderOrder(
            id=data["id"],
            amount=data.get("amount", amount),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", body["receipt"]),
            status=data.get("status", "created"),
            raw=data,
        )


def _error_description(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return error["description"]
    return f"HTTP {response.status_code}"
