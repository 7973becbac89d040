"""
Processing Trigger Tasks

Background task that hands a document to the external processor.
"""

import logging
from typing import Any, Dict

from docai.services.processing_trigger import post_to_processor

logger = logging.getLogger(__name__)


# ============================================================
# TRIGGER TASK
# ============================================================

async def trigger_processing(
    ctx: Dict[str, Any],
    payload: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Post a document to the processor webhook.

    The payload is built when the job is enqueued, so the worker does not
    need a database session. Delivery retries happen inside
    post_to_processor; the job itself is not retried by ARQ.

    Args:
        ctx: ARQ context (job_id, job_try, redis)
        payload: Body for the processor webhook

    Returns:
        Dict with the delivery result
    """
    job_id = ctx.get('job_id', 'unknown')
    document_id = payload.get("documentId")

    logger.info(f"Triggering processing for document {document_id} (job: {job_id})")

    result = await post_to_processor(payload)

    if not result.success:
        logger.error(f"Document {document_id}: processor trigger failed - {result.error}")

    return {
        "success": result.success,
        "document_id": document_id,
        "attempts": result.attempts,
        "error": result.error,
    }
