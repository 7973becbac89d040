"""
External Processor Trigger

Starts document processing in the external workflow engine (n8n) by
posting the document's details to its webhook. The workflow reports
back through POST /webhooks/external-processor.

The trigger is fire-and-forget for the request that caused it: the
document row is already committed as "queued", so a failed delivery is
logged and can be retried by the user without losing anything.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from docai.core.config import settings
from docai.db.redis import get_arq_pool
from docai.models.document import Document

logger = logging.getLogger(__name__)

WEBHOOK_SOURCE = "docai-upload"


@dataclass
class TriggerResult:
    success: bool
    attempts: int
    error: Optional[str] = None
    response: Any = None


def build_processor_payload(document: Document) -> Dict[str, Any]:
    """Body sent to the processor webhook."""
    return {
        "documentId": str(document.id),
        "fileUrl": document.file_url or document.file_path,
        "userId": document.user_id,
        "fileName": document.file_name,
        "fileType": document.file_type,
        "callbackUrl": settings.PROCESSOR_CALLBACK_URL,
    }


async def post_to_processor(
    payload: Dict[str, Any],
    webhook_url: Optional[str] = None,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TriggerResult:
    """
    Post a processing request with exponential backoff.

    Delays between attempts are base_delay * 2 ** (attempt - 1).
    An unset webhook URL is not an error: processing is simply skipped.
    """
    webhook_url = webhook_url or settings.N8N_WEBHOOK_URL
    max_retries = max_retries or settings.N8N_MAX_RETRIES
    base_delay = settings.N8N_BASE_DELAY_SECONDS if base_delay is None else base_delay

    if not webhook_url:
        logger.warning("N8N_WEBHOOK_URL not configured, skipping processing trigger")
        return TriggerResult(success=True, attempts=0, error="N8N_WEBHOOK_URL not configured")

    document_id = payload.get("documentId")
    last_error: Optional[str] = None

    async with httpx.AsyncClient(timeout=settings.N8N_TIMEOUT_SECONDS, transport=transport) as client:
        for attempt in range(1, max_retries + 1):
            try:
                response = await client.post(
                    webhook_url,
                    json=payload,
                    headers={"X-Webhook-Source": WEBHOOK_SOURCE},
                )
                if response.is_success:
                    try:
                        body = response.json()
                    except ValueError:
                        body = response.text
                    logger.info(f"Processor accepted document {document_id} (attempt {attempt})")
                    return TriggerResult(success=True, attempts=attempt, response=body)

                last_error = f"Processor webhook returned {response.status_code}: {response.text[:100]}"
                logger.error(f"Processor trigger for {document_id} failed: {last_error}")

            except httpx.HTTPError as e:
                last_error = str(e) or e.__class__.__name__
                logger.error(f"Processor trigger for {document_id} failed: {last_error}")

            if attempt < max_retries:
                await asyncio.sleep(base_delay * (2 ** (attempt - 1)))

    logger.error(f"Processor trigger for {document_id} failed after {max_retries} attempts")
    return TriggerResult(
        success=False,
        attempts=max_retries,
        error=last_error or "Processor webhook failed after retries",
    )


class ProcessingTrigger:
    """
    Hands documents to the processor without holding up the request.

    Each trigger runs as a background task that tries ARQ (Redis worker)
    first. If Redis is unavailable it posts to the processor in-process,
    so documents still get processed without a separate worker service.
    """

    def __init__(self):
        self._pending: set = set()

    async def trigger(self, document: Document) -> None:
        payload = build_processor_payload(document)
        task = asyncio.create_task(self._dispatch(payload))
        # Keep a reference until done so the task is not garbage collected
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _dispatch(self, payload: Dict[str, Any]) -> None:
        document_id = payload["documentId"]
        try:
            pool = await get_arq_pool()
            await pool.enqueue_job("trigger_processing", payload=payload)
            logger.info(f"Document {document_id} queued for processing (ARQ)")
            return
        except Exception as e:
            logger.warning(
                f"ARQ queue unavailable ({e}), "
                f"falling back to in-process trigger for {document_id}"
            )

        try:
            result = await post_to_processor(payload)
            if not result.success:
                logger.error(f"Inline trigger for {document_id} failed: {result.error}")
        except Exception as exc:
            logger.error(f"Inline trigger for {document_id} crashed: {exc}")


_trigger: Optional[ProcessingTrigger] = None


def get_processing_trigger() -> ProcessingTrigger:
    global _trigger
    if _trigger is None:
        _trigger = ProcessingTrigger()
    return _trigger
