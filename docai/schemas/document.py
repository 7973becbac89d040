"""
Document Schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ============================================================
# ENUMS - Typed Constants
# ============================================================
class DocumentStatus(str, Enum):
    """
    Document processing status.
    """
    QUEUED = "queued"          # Uploaded or reset for retry, waiting for processor
    PROCESSING = "processing"  # Processor reported it started
    COMPLETED = "completed"    # processed_output attached
    FAILED = "failed"          # error attached

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.FAILED)


# Statuses the external processor may report through its callback
CALLBACK_STATUSES = frozenset({
    DocumentStatus.PROCESSING,
    DocumentStatus.COMPLETED,
    DocumentStatus.FAILED,
})

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "text/csv",
    "application/rtf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
})

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_FILE_NAME_LENGTH = 255

DEFAULT_FAILURE_MESSAGE = "Processing failed"


# ============================================================
# INTERNAL SCHEMAS - Used by Service Layer
# ============================================================

class FileMeta(BaseModel):
    """
    Metadata of a file already placed in object storage.

    The file itself is uploaded to storage by the client; this API only
    records it and queues it for the external processor.
    """
    file_name: str = Field(..., min_length=1, max_length=MAX_FILE_NAME_LENGTH)
    file_size: int = Field(..., gt=0, description="File size in bytes")
    file_type: str = Field(..., max_length=255, description="MIME type")
    file_path: str = Field(..., min_length=1, max_length=500)
    file_url: Optional[str] = Field(None, max_length=1000)


# ============================================================
# REQUEST SCHEMAS
# ============================================================
# Required fields are validated by the service so that missing
# values produce 400 responses with a readable message.

class DocumentIdRequest(BaseModel):
    """Body of POST /documents/retry and POST /documents/export."""
    documentId: Optional[str] = None


class RenameRequest(BaseModel):
    """Body of POST /documents/rename."""
    documentId: Optional[str] = None
    newName: Optional[str] = None


class ProcessorCallback(BaseModel):
    """Body sent by the external processor when it reports progress."""
    model_config = ConfigDict(extra="ignore")

    documentId: Optional[str] = None
    status: Optional[str] = None
    processed_output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


# ============================================================
# RESPONSE SCHEMAS - What API Returns to Clients
# ============================================================

class DocumentResponse(BaseModel):
    """
    Document data returned to API clients.
    """
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    file_name: str
    file_path: str
    file_url: Optional[str] = None
    file_size: int
    file_type: str
    status: DocumentStatus
    processed_output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    processed_at: Optional[datetime] = None

    @computed_field
    @property
    def is_ready(self) -> bool:
        """Whether the processed output can be viewed or exported."""
        return self.status == DocumentStatus.COMPLETED


class DocumentListResponse(BaseModel):
    """
    Response for listing documents with pagination metadata.
    """
    documents: List[DocumentResponse]
    total: int = Field(..., ge=0)

    @computed_field
    @property
    def has_more(self) -> bool:
        """Whether there are more documents beyond this page."""
        return len(self.documents) < self.total


class DocumentUploadResponse(BaseModel):
    document: DocumentResponse
    creditsRemaining: Optional[int] = None
    message: str = "Document uploaded successfully. Processing queued."


class RetryResponse(BaseModel):
    success: bool = True
    message: str = "Document queued for reprocessing"


class RenameResponse(BaseModel):
    success: bool = True
    message: str = "Document renamed"


class DocumentReport(BaseModel):
    """
    Flat export of a completed document.

    Every field is present; values missing from the stored output are
    replaced by defaults.
    """
    documentId: UUID
    fileName: str
    fileType: str
    fileSize: int
    processedAt: Optional[datetime] = None
    summary: str = ""
    keyPoints: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    sentiment: str = "N/A"
    category: str = "N/A"
    wordCount: int = 0
    charCount: int = 0
    extractedText: str = ""
    generatedAt: datetime


class ProcessorCallbackResponse(BaseModel):
    success: bool = True
    documentId: str
    status: DocumentStatus
    message: str
