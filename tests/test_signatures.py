"""
Tests for payment and identity webhook signature verification.
"""
import base64
import hashlib
import hmac
from datetime import datetime, timedelta, timezone

import pytest
from svix.webhooks import Webhook

from docai.core.signatures import (
    IdentityWebhookVerifier,
    MissingSignatureHeadersError,
    PaymentSignatureVerifier,
    WebhookVerificationError,
    verify_payment_signature,
    verify_webhook_signature,
)

KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"
IDENTITY_SECRET = "whsec_" + base64.b64encode(b"identity-signing-key").decode()


def _hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


# ============================================================================
# Payment provider
# ============================================================================

class TestPaymentSignature:
    def test_valid_checkout_signature(self):
        """Should accept HMAC of 'order|payment' keyed by the key secret."""
        signature = _hex(KEY_SECRET, b"order_1|pay_1")
        assert verify_payment_signature("order_1", "pay_1", signature, KEY_SECRET)

    @pytest.mark.parametrize("order_id,payment_id", [
        ("order_2", "pay_1"),
        ("order_1", "pay_2"),
    ])
    def test_tampered_ids_rejected(self, order_id, payment_id):
        """Should reject a signature reused for different ids."""
        signature = _hex(KEY_SECRET, b"order_1|pay_1")
        assert not verify_payment_signature(order_id, payment_id, signature, KEY_SECRET)

    def test_missing_values_rejected(self):
        assert not verify_payment_signature("order_1", "pay_1", "", KEY_SECRET)
        assert not verify_payment_signature("order_1", "pay_1", "abc", "")


class TestWebhookSignature:
    def test_valid_body_signature(self):
        body = b'{"event":"payment.captured"}'
        assert verify_webhook_signature(body, _hex(WEBHOOK_SECRET, body), WEBHOOK_SECRET)

    def test_single_byte_change_rejected(self):
        """Should reject when any byte of the body changes."""
        body = b'{"event":"payment.captured"}'
        signature = _hex(WEBHOOK_SECRET, body)
        assert not verify_webhook_signature(body + b" ", signature, WEBHOOK_SECRET)


class TestPaymentSignatureVerifier:
    def test_verified_payment_is_single_use(self):
        verifier = PaymentSignatureVerifier(KEY_SECRET)
        verified = verifier.verify_payment("order_1", "pay_1", _hex(KEY_SECRET, b"order_1|pay_1"))

        assert verified is not None
        verified.consume()
        assert verified.consumed
        with pytest.raises(RuntimeError):
            verified.consume()

    def test_invalid_signature_returns_none(self):
        verifier = PaymentSignatureVerifier(KEY_SECRET)
        assert verifier.verify_payment("order_1", "pay_1", "deadbeef") is None

    def test_missing_key_secret_returns_none(self):
        verifier = PaymentSignatureVerifier(None)
        assert verifier.verify_payment("order_1", "pay_1", "deadbeef") is None

    def test_webhook_without_secret_fails_closed(self):
        verifier = PaymentSignatureVerifier(KEY_SECRET, webhook_secret=None)
        assert not verifier.verify_webhook(b"{}", _hex(WEBHOOK_SECRET, b"{}"))


# ============================================================================
# Identity provider (Svix)
# ============================================================================

def _svix_headers(body: bytes, msg_id="msg_1", timestamp=None):
    timestamp = datetime.now(timezone.utc) if timestamp is None else timestamp
    signature = Webhook(IDENTITY_SECRET).sign(msg_id, timestamp, body.decode())
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(int(timestamp.timestamp())),
        "svix-signature": signature,
    }


class TestIdentityWebhookVerifier:
    def test_valid_signature_returns_payload(self):
        verifier = IdentityWebhookVerifier(IDENTITY_SECRET)
        body = b'{"type":"user.created"}'
        assert verifier.verify(body, _svix_headers(body)) == {"type": "user.created"}

    def test_matches_any_listed_signature(self):
        """Should accept when one of several space-separated signatures matches."""
        verifier = IdentityWebhookVerifier(IDENTITY_SECRET)
        body = b'{"type":"user.updated"}'
        headers = _svix_headers(body)
        headers["svix-signature"] = "v1,bm90LWl0 " + headers["svix-signature"]
        verifier.verify(body, headers)

    def test_tampered_body_rejected(self):
        verifier = IdentityWebhookVerifier(IDENTITY_SECRET)
        headers = _svix_headers(b'{"type":"user.created"}')
        with pytest.raises(WebhookVerificationError):
            verifier.verify(b'{"type":"user.deleted"}', headers)

    def test_other_secret_rejected(self):
        other = IdentityWebhookVerifier("whsec_" + base64.b64encode(b"other-key").decode())
        body = b"{}"
        with pytest.raises(WebhookVerificationError):
            other.verify(body, _svix_headers(body))

    def test_old_timestamp_rejected(self):
        verifier = IdentityWebhookVerifier(IDENTITY_SECRET)
        body = b"{}"
        headers = _svix_headers(body, timestamp=datetime.now(timezone.utc) - timedelta(minutes=10))
        with pytest.raises(WebhookVerificationError):
            verifier.verify(body, headers)

    def test_missing_headers(self):
        """Should report missing headers before attempting verification."""
        with pytest.raises(MissingSignatureHeadersError):
            IdentityWebhookVerifier.extract_headers({"svix-id": "msg_1"})

        verifier = IdentityWebhookVerifier(IDENTITY_SECRET)
        with pytest.raises(MissingSignatureHeadersError):
            verifier.verify(b"{}", {"svix-id": "msg_1", "svix-timestamp": "1"})

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            IdentityWebhookVerifier("")
