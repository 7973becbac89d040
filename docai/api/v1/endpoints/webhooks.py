"""
Webhook Endpoints

Inbound calls from the identity provider, the payment provider and the
external processor.

Every handler authenticates the raw request body before parsing it or
touching state. Once authenticated and parsed, a webhook returns 2xx
even when the event changes nothing, so providers do not retry it.
"""

import hmac
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from docai.db.database import get_db
from docai.api.deps import to_http_exception
from docai.core.config import settings
from docai.core.exceptions import DocAIError
from docai.core.signatures import (
    RAZORPAY_SIGNATURE_HEADER,
    IdentityWebhookVerifier,
    MissingSignatureHeadersError,
    PaymentSignatureVerifier,
    WebhookVerificationError,
)
from docai.schemas.document import ProcessorCallback, ProcessorCallbackResponse
from docai.schemas.webhooks import IdentityWebhookEvent, PaymentWebhookEvent
from docai.services.document_service import DocumentService
from docai.services.identity_webhook_service import IdentityWebhookService
from docai.services.payment_webhook_service import PaymentWebhookDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


# ============================================================
# Dependencies
# ============================================================

def get_identity_verifier() -> Optional[IdentityWebhookVerifier]:
    """None when the signing secret is not configured."""
    if not settings.CLERK_WEBHOOK_SECRET:
        return None
    try:
        return IdentityWebhookVerifier(settings.CLERK_WEBHOOK_SECRET)
    except ValueError as e:
        logger.error(f"CLERK_WEBHOOK_SECRET is unusable: {e}")
        return None


def get_identity_webhook_service(db: AsyncSession = Depends(get_db)) -> IdentityWebhookService:
    return IdentityWebhookService(db)


def get_payment_verifier() -> PaymentSignatureVerifier:
    return PaymentSignatureVerifier(
        key_secret=settings.RAZORPAY_KEY_SECRET,
        webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
    )


def get_payment_dispatcher(db: AsyncSession = Depends(get_db)) -> PaymentWebhookDispatcher:
    return PaymentWebhookDispatcher(db)


def get_callback_document_service(db: AsyncSession = Depends(get_db)) -> DocumentService:
    return DocumentService(db)


# ============================================================
# IDENTITY PROVIDER
# ============================================================

@router.post(
    "/identity-provider",
    summary="Account lifecycle webhook",
    responses={
        400: {"description": "Missing or invalid signature headers"},
        500: {"description": "Secret not configured, or handling failed"},
    },
)
async def identity_provider_webhook(
    request: Request,
    verifier: Optional[IdentityWebhookVerifier] = Depends(get_identity_verifier),
    service: IdentityWebhookService = Depends(get_identity_webhook_service),
):
    if verifier is None:
        logger.error("CLERK_WEBHOOK_SECRET not configured")
        return PlainTextResponse("Webhook secret missing", status_code=500)

    try:
        IdentityWebhookVerifier.extract_headers(request.headers)
    except MissingSignatureHeadersError as e:
        logger.warning(f"Identity webhook rejected: {e}")
        return PlainTextResponse("Error occured -- no svix headers", status_code=400)

    body = await request.body()

    try:
        payload = verifier.verify(body, request.headers)
    except (WebhookVerificationError, ValueError) as e:
        # ValueError covers malformed signature entries and non-JSON bodies
        logger.warning(f"Error verifying identity webhook: {e}")
        return PlainTextResponse("Error occured", status_code=400)

    try:
        event = IdentityWebhookEvent.model_validate(payload)
    except PydanticValidationError as e:
        logger.warning(f"Malformed identity webhook payload: {e}")
        return PlainTextResponse("Invalid payload", status_code=400)

    try:
        await service.handle(event)
    except Exception as e:
        logger.error(f"Error handling identity event {event.type}: {e}")
        return PlainTextResponse("Error processing webhook", status_code=500)

    return Response(content=b"", status_code=200)


# ============================================================
# PAYMENT PROVIDER
# ============================================================

@router.post(
    "/payment-provider",
    summary="Payment events webhook",
    responses={
        400: {"description": "No signature provided"},
        401: {"description": "Invalid signature"},
        500: {"description": "Webhook error"},
    },
)
async def payment_provider_webhook(
    request: Request,
    verifier: PaymentSignatureVerifier = Depends(get_payment_verifier),
    dispatcher: PaymentWebhookDispatcher = Depends(get_payment_dispatcher),
):
    body = await request.body()
    signature = request.headers.get(RAZORPAY_SIGNATURE_HEADER)

    if not signature:
        return PlainTextResponse("No signature provided", status_code=400)

    if not verifier.verify_webhook(body, signature):
        logger.warning("Payment webhook with invalid signature")
        return PlainTextResponse("Invalid signature", status_code=401)

    try:
        event = PaymentWebhookEvent.model_validate_json(body)
        await dispatcher.dispatch(event)
    except Exception as e:
        logger.error(f"Payment webhook error: {e}")
        return PlainTextResponse("Webhook error", status_code=500)

    return PlainTextResponse("Webhook processed", status_code=200)


# ============================================================
# EXTERNAL PROCESSOR
# ============================================================

@router.post(
    "/external-processor",
    response_model=ProcessorCallbackResponse,
    summary="Processing status callback",
    responses={
        400: {"description": "Missing or invalid fields"},
        401: {"description": "Invalid webhook secret"},
        404: {"description": "Document not found"},
    },
)
async def external_processor_webhook(
    request: Request,
    service: DocumentService = Depends(get_callback_document_service),
):
    if settings.N8N_WEBHOOK_SECRET:
        provided = request.headers.get("x-webhook-secret") or ""
        if not hmac.compare_digest(provided.encode(), settings.N8N_WEBHOOK_SECRET.encode()):
            logger.error("Invalid processor webhook secret")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook secret"
            )

    try:
        payload = json.loads(await request.body())
        callback = ProcessorCallback.model_validate(payload)
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"Malformed processor callback: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    try:
        document = await service.apply_callback(
            callback.documentId,
            callback.status,
            output=callback.processed_output,
            error=callback.error,
        )
    except DocAIError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Processor callback failed for {callback.documentId}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update document"
        )

    return ProcessorCallbackResponse(
        documentId=str(document.id),
        status=document.status,
        message=f"Document status updated to {callback.status}",
    )


@router.get("/external-processor", summary="Processor webhook readiness")
async def external_processor_ready():
    return {
        "status": "ok",
        "message": "Processor webhook endpoint ready",
    }
