"""
HTTP-level tests for webhooks and authenticated routes.

Database-backed dependencies are overridden with services built on the
in-memory repositories from conftest.
"""
import asyncio
import base64
import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from svix.webhooks import Webhook

from docai.api.deps import get_current_user_id
from docai.api.v1.endpoints import documents, subscription, webhooks
from docai.api.v1.router import api_router
from docai.core.config import settings
from docai.core.ratelimit import RateLimiter
from docai.main import app
from docai.middleware.build_phase import BuildPhaseMiddleware
from docai.services.credit_service import CreditService
from docai.services.document_service import DocumentService
from docai.services.payment_webhook_service import PaymentWebhookDispatcher
from docai.services.subscription_service import SubscriptionService

IDENTITY_SECRET = "whsec_" + base64.b64encode(b"identity-endpoint-key").decode()
PAYMENT_WEBHOOK_SECRET = "payment_webhook_secret"
PROCESSOR_SECRET = "processor_secret"
USER = "user_endpoint"
PREFIX = settings.API_V1_PREFIX


class RecordingIdentityService:
    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    async def handle(self, event):
        self.events.append(event)
        if self.fail:
            raise RuntimeError("db down")


@pytest.fixture
def identity_service():
    return RecordingIdentityService()


@pytest.fixture
def client(monkeypatch, document_repo, subscription_repo, profile_repo, trigger, identity_service):
    monkeypatch.setattr(settings, "CLERK_WEBHOOK_SECRET", IDENTITY_SECRET)
    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", PAYMENT_WEBHOOK_SECRET)
    monkeypatch.setattr(settings, "N8N_WEBHOOK_SECRET", None)

    credit_service = CreditService(profile_repo=profile_repo)
    document_service = DocumentService(
        document_repo=document_repo,
        credit_service=credit_service,
        trigger=trigger,
    )

    app.dependency_overrides[webhooks.get_identity_webhook_service] = lambda: identity_service
    app.dependency_overrides[webhooks.get_payment_dispatcher] = lambda: PaymentWebhookDispatcher(
        subscription_repo=subscription_repo,
        credit_service=credit_service,
    )
    app.dependency_overrides[webhooks.get_callback_document_service] = lambda: document_service
    app.dependency_overrides[documents.get_document_service] = lambda: document_service
    app.dependency_overrides[subscription.get_subscription_service] = lambda: SubscriptionService(
        subscription_repo=subscription_repo,
        credit_service=credit_service,
    )
    app.dependency_overrides[get_current_user_id] = lambda: USER
    app.state.rate_limiter = RateLimiter()

    yield TestClient(app)

    app.dependency_overrides.clear()


def _identity_headers(body: bytes, msg_id="msg_1", timestamp=None):
    timestamp = datetime.now(timezone.utc) if timestamp is None else timestamp
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(int(timestamp.timestamp())),
        "svix-signature": Webhook(IDENTITY_SECRET).sign(msg_id, timestamp, body.decode()),
        "content-type": "application/json",
    }


def _payment_signature(body: bytes) -> str:
    return hmac.new(PAYMENT_WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()


# ============================================================================
# Identity provider webhook
# ============================================================================

class TestIdentityWebhook:
    URL = f"{PREFIX}/webhooks/identity-provider"
    BODY = json.dumps({"type": "user.created", "data": {"id": "user_1"}}).encode()

    def test_valid_event(self, client, identity_service):
        response = client.post(self.URL, content=self.BODY, headers=_identity_headers(self.BODY))
        assert response.status_code == 200
        assert response.content == b""
        assert identity_service.events[0].type == "user.created"

    def test_missing_headers(self, client, identity_service):
        response = client.post(self.URL, content=self.BODY)
        assert response.status_code == 400
        assert response.text == "Error occured -- no svix headers"
        assert identity_service.events == []

    def test_bad_signature(self, client, identity_service):
        headers = _identity_headers(self.BODY)
        tampered = self.BODY.replace(b"user_1", b"user_2")
        response = client.post(self.URL, content=tampered, headers=headers)
        assert response.status_code == 400
        assert response.text == "Error occured"
        assert identity_service.events == []

    def test_stale_timestamp(self, client):
        headers = _identity_headers(self.BODY, timestamp=datetime.now(timezone.utc) - timedelta(hours=1))
        response = client.post(self.URL, content=self.BODY, headers=headers)
        assert response.status_code == 400

    def test_secret_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CLERK_WEBHOOK_SECRET", None)
        response = client.post(self.URL, content=self.BODY, headers=_identity_headers(self.BODY))
        assert response.status_code == 500
        assert response.text == "Webhook secret missing"

    def test_handler_failure(self, client, identity_service):
        identity_service.fail = True
        response = client.post(self.URL, content=self.BODY, headers=_identity_headers(self.BODY))
        assert response.status_code == 500
        assert response.text == "Error processing webhook"


# ============================================================================
# Payment provider webhook
# ============================================================================

class TestPaymentWebhook:
    URL = f"{PREFIX}/webhooks/payment-provider"

    def _post(self, client, payload, signature=None):
        body = json.dumps(payload).encode()
        headers = {"content-type": "application/json"}
        if signature is not False:
            headers["x-razorpay-signature"] = signature or _payment_signature(body)
        return client.post(self.URL, content=body, headers=headers)

    def test_captured_activates(self, client, subscription_repo):
        row = asyncio.run(subscription_repo.create(
            user_id=USER, plan="pro", status="inactive", razorpay_order_id="order_1",
        ))

        response = self._post(client, {
            "event": "payment.captured",
            "payload": {"payment": {"entity": {"id": "pay_1", "order_id": "order_1"}}},
        })

        assert response.status_code == 200
        assert response.text == "Webhook processed"
        assert row.status == "active"

    def test_missing_signature(self, client):
        response = self._post(client, {"event": "payment.captured"}, signature=False)
        assert response.status_code == 400
        assert response.text == "No signature provided"

    def test_invalid_signature(self, client, subscription_repo):
        response = self._post(client, {"event": "payment.captured"}, signature="0" * 64)
        assert response.status_code == 401
        assert response.text == "Invalid signature"
        assert subscription_repo.apply_calls == []

    def test_unknown_event_acknowledged(self, client):
        response = self._post(client, {"event": "refund.created", "payload": {}})
        assert response.status_code == 200

    def test_malformed_body(self, client):
        body = b"not json"
        response = client.post(
            self.URL, content=body, headers={"x-razorpay-signature": _payment_signature(body)}
        )
        assert response.status_code == 500
        assert response.text == "Webhook error"


# ============================================================================
# External processor callback
# ============================================================================

class TestProcessorCallback:
    URL = f"{PREFIX}/webhooks/external-processor"

    def test_completed(self, client, document_repo):
        doc = document_repo.add(status="processing")
        response = client.post(self.URL, json={
            "documentId": str(doc.id),
            "status": "completed",
            "processed_output": {"summary": "done"},
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "completed"
        assert body["message"] == "Document status updated to completed"
        assert doc.processed_output == {"summary": "done"}

    def test_missing_fields(self, client):
        response = client.post(self.URL, json={"status": "completed"})
        assert response.status_code == 400

    def test_invalid_status(self, client, document_repo):
        doc = document_repo.add()
        response = client.post(self.URL, json={"documentId": str(doc.id), "status": "queued"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid status. Must be: processing, completed, or failed"

    def test_unknown_document(self, client):
        response = client.post(self.URL, json={
            "documentId": "00000000-0000-0000-0000-000000000000",
            "status": "failed",
        })
        assert response.status_code == 404

    def test_invalid_json(self, client):
        response = client.post(self.URL, content=b"{oops", headers={"content-type": "application/json"})
        assert response.status_code == 400

    def test_shared_secret_enforced(self, client, document_repo, monkeypatch):
        monkeypatch.setattr(settings, "N8N_WEBHOOK_SECRET", PROCESSOR_SECRET)
        doc = document_repo.add()
        payload = {"documentId": str(doc.id), "status": "processing"}

        assert client.post(self.URL, json=payload).status_code == 401
        assert client.post(
            self.URL, json=payload, headers={"x-webhook-secret": "wrong"}
        ).status_code == 401
        assert client.post(
            self.URL, json=payload, headers={"x-webhook-secret": PROCESSOR_SECRET}
        ).status_code == 200
        assert doc.status == "processing"

    def test_readiness(self, client):
        response = client.get(self.URL)
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


# ============================================================================
# Authenticated routes
# ============================================================================

class TestAuthenticatedRoutes:
    def test_unauthenticated_request_rejected(self, client):
        app.dependency_overrides.pop(get_current_user_id)
        response = client.get(f"{PREFIX}/documents/list")
        assert response.status_code == 401

    def test_upload_then_list(self, client, trigger):
        response = client.post(f"{PREFIX}/documents/upload", json={
            "file_name": "notes.pdf",
            "file_size": 2048,
            "file_type": "application/pdf",
            "file_path": "uploads/notes.pdf",
        })
        assert response.status_code == 201
        assert response.json()["document"]["status"] == "queued"
        assert len(trigger.triggered) == 1

        listed = client.get(f"{PREFIX}/documents/list").json()
        assert listed["total"] == 1

    def test_upload_rejects_unsupported_type(self, client):
        response = client.post(f"{PREFIX}/documents/upload", json={
            "file_name": "tool.exe",
            "file_size": 2048,
            "file_type": "application/x-msdownload",
            "file_path": "uploads/tool.exe",
        })
        assert response.status_code == 400

    def test_retry_rate_limited(self, client):
        statuses = [
            client.post(f"{PREFIX}/documents/retry", json={}).status_code
            for _ in range(21)
        ]
        assert statuses[:20] == [400] * 20
        assert statuses[20] == 429

    def test_retry_missing_id(self, client):
        response = client.post(f"{PREFIX}/documents/retry", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == "Document ID required"

    def test_export_unprocessed(self, client, document_repo):
        doc = document_repo.add(user_id=USER)
        response = client.post(f"{PREFIX}/documents/export", json={"documentId": str(doc.id)})
        assert response.status_code == 400

    def test_other_users_document_is_hidden(self, client, document_repo):
        doc = document_repo.add(user_id="someone_else")
        response = client.get(f"{PREFIX}/documents/{doc.id}")
        assert response.status_code == 404

    def test_create_order_invalid_plan(self, client):
        response = client.post(f"{PREFIX}/subscription/create-order", json={"plan": "gold"})
        assert response.status_code == 400

    def test_subscription_status_inactive(self, client):
        response = client.get(f"{PREFIX}/subscription/status")
        assert response.status_code == 200
        assert response.json()["isActive"] is False

    def test_rename(self, client, document_repo):
        doc = document_repo.add(user_id=USER, file_name="old.pdf")
        response = client.post(
            f"{PREFIX}/documents/rename",
            json={"documentId": str(doc.id), "newName": "new.pdf"},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Document renamed"}
        assert doc.file_name == "new.pdf"

    def test_rename_blank_name(self, client, document_repo):
        doc = document_repo.add(user_id=USER, file_name="old.pdf")
        response = client.post(
            f"{PREFIX}/documents/rename",
            json={"documentId": str(doc.id), "newName": "   "},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Name cannot be empty"

    def test_verify_payment_for_cancelled_subscription(self, client, subscription_repo, monkeypatch):
        monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", "key_secret")
        asyncio.run(subscription_repo.create(
            user_id=USER, plan="pro", status="cancelled", razorpay_order_id="order_1",
        ))
        signature = hmac.new(b"key_secret", b"order_1|pay_1", hashlib.sha256).hexdigest()

        response = client.post(f"{PREFIX}/subscription/verify-payment", json={
            "razorpay_order_id": "order_1",
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": signature,
        })

        assert response.status_code == 400


# ============================================================================
# Unhandled errors
# ============================================================================

class TestUnhandledErrors:
    def test_generic_500_body(self, client):
        class BrokenService:
            async def list_documents(self, **kwargs):
                raise RuntimeError("connection reset by peer")

        app.dependency_overrides[documents.get_document_service] = lambda: BrokenService()
        response = TestClient(app, raise_server_exceptions=False).get(f"{PREFIX}/documents/list")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert "connection reset" not in response.text


# ============================================================================
# Build phase
# ============================================================================

class TestBuildPhase:
    @pytest.fixture
    def build_client(self, identity_service):
        calls = []

        class RecordingDocumentService:
            async def retry(self, *args, **kwargs):
                calls.append("retry")

        build_app = FastAPI()
        build_app.include_router(api_router, prefix=PREFIX)
        build_app.add_middleware(BuildPhaseMiddleware, enabled=True)

        @build_app.get("/ping")
        async def ping():
            return {"pong": True}

        build_app.dependency_overrides[documents.get_document_service] = RecordingDocumentService
        build_app.dependency_overrides[webhooks.get_identity_webhook_service] = lambda: identity_service

        client = TestClient(build_app)
        client.calls = calls
        return client

    @pytest.mark.parametrize("path", [
        "/documents/retry",
        "/webhooks/identity-provider",
        "/webhooks/payment-provider",
        "/webhooks/external-processor",
    ])
    def test_api_routes_short_circuit(self, build_client, identity_service, path):
        response = build_client.post(f"{PREFIX}{path}", json={"documentId": "doc-1"})

        assert response.status_code == 200
        assert response.json() == {"message": "Skip during build"}
        assert build_client.calls == []
        assert identity_service.events == []

    def test_non_api_routes_pass_through(self, build_client):
        assert build_client.get("/ping").json() == {"pong": True}
