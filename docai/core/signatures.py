"""
Webhook and Payment Signature Verification

Two independent verifiers guard every state mutation triggered from
outside the API:

1. Payment provider (Razorpay): HMAC-SHA256 hex digests
   - checkout signature over "{order_id}|{payment_id}" keyed by the API secret
   - webhook signature over the raw request body keyed by the webhook secret

2. Identity provider (Clerk): Svix signed webhooks, verified with the
   svix library

Payment comparisons use hmac.compare_digest.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from svix.webhooks import Webhook, WebhookVerificationError

logger = logging.getLogger(__name__)


SVIX_ID_HEADER = "svix-id"
SVIX_TIMESTAMP_HEADER = "svix-timestamp"
SVIX_SIGNATURE_HEADER = "svix-signature"
SVIX_HEADERS = (SVIX_ID_HEADER, SVIX_TIMESTAMP_HEADER, SVIX_SIGNATURE_HEADER)

RAZORPAY_SIGNATURE_HEADER = "x-razorpay-signature"


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def _hmac_sha256_hex(secret: str, message: Union[str, bytes]) -> str:
    return hmac.new(
        _to_bytes(secret),
        _to_bytes(message),
        hashlib.sha256
    ).hexdigest()


# ============================================================
# Payment provider (Razorpay)
# ============================================================

def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: str,
    secret: str
) -> bool:
    """
    Verify the signature returned by checkout for a completed payment.

    Args:
        order_id: Provider order id (order_...)
        payment_id: Provider payment id (pay_...)
        signature: Hex signature reported by the client
        secret: API key secret

    Returns:
        True if the signature matches
    """
    if not (order_id and payment_id and signature and secret):
        return False

    expected = _hmac_sha256_hex(secret, f"{order_id}|{payment_id}")
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(
    body: Union[str, bytes],
    signature: str,
    secret: str
) -> bool:
    """
    Verify a payment provider webhook against the raw request body.

    The body must be the exact bytes received; re-serialized JSON
    will not match.
    """
    if not (signature and secret):
        return False

    expected = _hmac_sha256_hex(secret, body)
    return hmac.compare_digest(expected, signature)


@dataclass
class VerifiedPayment:
    """
    Proof that a client-reported payment passed server-side
    signature verification.

    Only produced by PaymentSignatureVerifier.verify_payment and
    consumed by exactly one subscription activation.
    """
    order_id: str
    payment_id: str
    _consumed: bool = field(default=False, repr=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> None:
        """Mark the proof as used. A second use is a programming error."""
        if self._consumed:
            raise RuntimeError(
                f"Payment {self.payment_id} verification already consumed"
            )
        self._consumed = True


class PaymentSignatureVerifier:
    """Verifier bound to the payment provider secrets."""

    def __init__(self, key_secret: Optional[str], webhook_secret: Optional[str] = None):
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret

    def verify_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: str
    ) -> Optional[VerifiedPayment]:
        """
        Re-verify a checkout result.

        Returns:
            VerifiedPayment if authentic, None otherwise
        """
        if not self.key_secret:
            logger.error("Payment signature check requested without RAZORPAY_KEY_SECRET")
            return None

        if not verify_payment_signature(order_id, payment_id, signature, self.key_secret):
            logger.warning(f"Invalid payment signature for order {order_id}")
            return None

        return VerifiedPayment(order_id=order_id, payment_id=payment_id)

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> bool:
        if not self.webhook_secret:
            logger.error("Payment webhook received but RAZORPAY_WEBHOOK_SECRET is not set")
            return False
        return verify_webhook_signature(body, signature or "", self.webhook_secret)


# ============================================================
# Identity provider (Svix)
# ============================================================

class MissingSignatureHeadersError(WebhookVerificationError):
    """Raised when required signature headers are absent."""
    pass


class IdentityWebhookVerifier:
    """
    Verifies account lifecycle webhooks with the Svix library.

    Svix checks the "v1," signature list and rejects timestamps more
    than five minutes away from the local clock.
    """

    def __init__(self, secret: str):
        try:
            self._webhook = Webhook(secret)
        except (RuntimeError, ValueError) as e:
            raise ValueError(f"Identity webhook secret is unusable: {e}")

    @staticmethod
    def extract_headers(headers: Mapping[str, str]) -> Dict[str, str]:
        """
        Pull the three signature headers out of a request.

        Raises:
            MissingSignatureHeadersError: If any header is absent
        """
        values = {name: headers.get(name) for name in SVIX_HEADERS}
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise MissingSignatureHeadersError(
                f"Missing signature headers: {', '.join(missing)}"
            )
        return values

    def verify(self, body: Union[str, bytes], headers: Mapping[str, str]) -> Any:
        """
        Authenticate a webhook payload and return its decoded JSON.

        Raises:
            MissingSignatureHeadersError: If a signature header is absent
            WebhookVerificationError: If timestamp or signature is invalid
            ValueError: If the authenticated body is not JSON
        """
        return self._webhook.verify(body, self.extract_headers(headers))
