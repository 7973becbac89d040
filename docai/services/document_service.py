"""
Document Service

Business logic for document operations: registering uploads, owner
retries, processor callbacks and report export.

Status changes are computed by docai.services.state_machine; this
service only resolves the row, authorizes the caller and writes the
returned changes.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from docai.core.exceptions import (
    NotFoundError,
    QuotaExceededError,
    StateConflictError,
    ValidationError,
)
from docai.models.document import Document
from docai.repositories.document_repo import DocumentRepository
from docai.schemas.document import (
    ALLOWED_MIME_TYPES,
    CALLBACK_STATUSES,
    MAX_FILE_NAME_LENGTH,
    MAX_FILE_SIZE,
    DocumentListResponse,
    DocumentReport,
    DocumentResponse,
    DocumentStatus,
    DocumentUploadResponse,
    FileMeta,
)
from docai.services import state_machine
from docai.services.credit_service import CreditService
from docai.services.processing_trigger import ProcessingTrigger, get_processing_trigger

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_document_id(document_id: Optional[str]) -> UUID:
    """
    Validate a document id taken from a request body.

    Raises:
        ValidationError: If the id is missing
        NotFoundError: If the id is not a UUID (no row can match it)
    """
    if not document_id:
        raise ValidationError("Document ID required")
    try:
        return UUID(str(document_id))
    except ValueError:
        raise NotFoundError("Document not found")


class DocumentService:
    """
    Service class for document operations.
    """

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        document_repo: Optional[DocumentRepository] = None,
        credit_service: Optional[CreditService] = None,
        trigger: Optional[ProcessingTrigger] = None,
    ):
        """
        Args:
            db: Async database session
            document_repo: Overrides the repository built from db
            credit_service: Overrides the credit service built from db
            trigger: Overrides the shared processing trigger
        """
        self.document_repo = document_repo or DocumentRepository(db)
        self.credit_service = credit_service or CreditService(db)
        self.trigger = trigger or get_processing_trigger()

    # ============================================================
    # HELPER METHODS
    # ============================================================

    async def _get_owned(self, document_id: Optional[str], owner_id: str) -> Document:
        doc_uuid = parse_document_id(document_id)
        document = await self.document_repo.get_owned(doc_uuid, owner_id)
        if document is None:
            # Foreign documents look exactly like missing ones
            raise NotFoundError("Document not found")
        return document

    async def _trigger(self, document: Document) -> None:
        try:
            await self.trigger.trigger(document)
        except Exception as e:
            logger.error(f"Failed to trigger processing for {document.id}: {e}")

    # ============================================================
    # CREATE
    # ============================================================

    async def create(self, owner_id: str, file_meta: FileMeta) -> Document:
        """Insert a document with status queued."""
        document = await self.document_repo.create_queued(owner_id, file_meta)
        logger.info(f"Document record created: {document.id} ({file_meta.file_name})")
        return document

    async def upload(self, owner_id: str, file_meta: FileMeta) -> DocumentUploadResponse:
        """
        Register a file already placed in storage and queue it.

        Steps:
        1. Credit check (403 when the free quota is used up)
        2. File validation (size, MIME type)
        3. Insert the queued row
        4. Count the upload against the quota (best-effort)
        5. Trigger the external processor (fire-and-forget)
        """
        try:
            credit_check = await self.credit_service.check_user_credits(owner_id)
        except Exception as e:
            # A broken credit lookup must not block uploads
            logger.error(f"Credit check failed for {owner_id}, allowing upload: {e}")
            credit_check = None

        if credit_check is not None and not credit_check.allowed:
            logger.info(f"Credit limit reached for {owner_id}")
            raise QuotaExceededError(credit_check.reason or "Credit limit reached")

        if file_meta.file_size > MAX_FILE_SIZE:
            raise ValidationError(
                f"File size exceeds {MAX_FILE_SIZE // (1024 * 1024)}MB limit"
            )

        if file_meta.file_type not in ALLOWED_MIME_TYPES:
            logger.warning(f"Unsupported file type: {file_meta.file_type}")
            raise ValidationError(
                "File type not supported",
                details="PDF, DOC, DOCX, TXT, CSV, RTF, Images",
            )

        document = await self.create(owner_id, file_meta)

        credits_remaining = None
        try:
            credits_remaining = await self.credit_service.increment_credit_usage(owner_id)
        except Exception as e:
            logger.error(f"Failed to increment credit usage for {owner_id}: {e}")

        if credits_remaining is None and credit_check is not None:
            credits_remaining = credit_check.creditsRemaining

        await self._trigger(document)

        return DocumentUploadResponse(
            document=DocumentResponse.model_validate(document),
            creditsRemaining=credits_remaining,
        )

    # ============================================================
    # READ OPERATIONS
    # ============================================================

    async def get_document(self, document_id: str, owner_id: str) -> DocumentResponse:
        document = await self._get_owned(document_id, owner_id)
        return DocumentResponse.model_validate(document)

    async def list_documents(
        self,
        owner_id: str,
        status: Optional[DocumentStatus] = None,
        limit: int = 50,
        offset: int = 0
    ) -> DocumentListResponse:
        """List the owner's documents, newest first."""
        documents = await self.document_repo.get_by_user(
            user_id=owner_id,
            status=status,
            skip=offset,
            limit=limit
        )
        total = await self.document_repo.count_by_user(owner_id, status=status)

        return DocumentListResponse(
            documents=[DocumentResponse.model_validate(doc) for doc in documents],
            total=total
        )

    # ============================================================
    # STATUS OPERATIONS
    # ============================================================

    async def reset_for_retry(self, document_id: Optional[str], owner_id: str) -> Document:
        """
        Put an owned document back to queued with output and error cleared.

        Idempotent: retrying a queued document leaves it queued.

        Raises:
            ValidationError: If document_id is missing
            NotFoundError: If no document matches both id and owner
        """
        document = await self._get_owned(document_id, owner_id)
        document = await self.document_repo.apply(
            document, state_machine.queued_for_retry(_utcnow())
        )
        logger.info(f"Document {document.id} reset to queued by owner")
        return document

    async def retry(self, document_id: Optional[str], owner_id: str) -> Document:
        """Reset for retry, then trigger the processor again."""
        document = await self.reset_for_retry(document_id, owner_id)
        await self._trigger(document)
        return document

    async def rename(
        self,
        document_id: Optional[str],
        owner_id: str,
        new_name: Optional[str],
    ) -> Document:
        """
        Change the display name of an owned document.

        Raises:
            ValidationError: Missing id or name, or a blank name
            NotFoundError: If no document matches both id and owner
        """
        if not document_id or not new_name:
            raise ValidationError("Document ID and new name required")

        name = new_name.strip()
        if not name:
            raise ValidationError("Name cannot be empty")
        if len(name) > MAX_FILE_NAME_LENGTH:
            raise ValidationError(f"Name must be at most {MAX_FILE_NAME_LENGTH} characters")

        document = await self._get_owned(document_id, owner_id)
        document = await self.document_repo.apply(document, {
            "file_name": name,
            "updated_at": _utcnow(),
        })
        logger.info(f"Document {document.id} renamed to {name}")
        return document

    async def apply_callback(
        self,
        document_id: Optional[str],
        status: Optional[str],
        output: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Document:
        """
        Apply a status report from the external processor.

        No ownership check: the caller is the processor webhook.

        Raises:
            ValidationError: Missing id or status, or a status the
                processor may not report
            NotFoundError: If the document id is unknown
        """
        if not document_id or not status:
            raise ValidationError("Missing required fields: documentId, status")

        try:
            new_status = DocumentStatus(status)
        except ValueError:
            new_status = None
        if new_status not in CALLBACK_STATUSES:
            raise ValidationError(
                "Invalid status. Must be: processing, completed, or failed"
            )

        doc_uuid = parse_document_id(document_id)
        document = await self.document_repo.get_by_id(doc_uuid)
        if document is None:
            raise NotFoundError("Document not found")

        changes = state_machine.processor_callback(
            document.status, new_status, _utcnow(), output=output, error=error
        )
        if changes is None:
            logger.info(
                f"Ignoring stale '{new_status.value}' callback for document "
                f"{document.id} in status '{document.status}'"
            )
            return document

        document = await self.document_repo.apply(document, changes)
        logger.info(f"Document {document.id} updated to {new_status.value}")
        return document

    # ============================================================
    # EXPORT
    # ============================================================

    async def export_report(self, document_id: Optional[str], owner_id: str) -> DocumentReport:
        """
        Build a flat report from the stored output.

        Raises:
            ValidationError: If document_id is missing
            NotFoundError: If the document is not owned by owner_id
            StateConflictError: If the document has no processed output
        """
        document = await self._get_owned(document_id, owner_id)

        output = document.processed_output
        if output is None:
            raise StateConflictError("Document not yet processed")

        return DocumentReport(
            documentId=document.id,
            fileName=document.file_name,
            fileType=document.file_type,
            fileSize=document.file_size,
            processedAt=document.processed_at,
            summary=output.get("summary") or "",
            keyPoints=output.get("keyPoints") or [],
            keywords=output.get("keywords") or [],
            sentiment=output.get("sentiment") or "N/A",
            category=output.get("category") or "N/A",
            wordCount=output.get("wordCount") or 0,
            charCount=output.get("charCount") or 0,
            extractedText=output.get("extracted_text") or "",
            generatedAt=_utcnow(),
        )
