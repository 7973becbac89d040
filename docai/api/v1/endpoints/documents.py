"""
Document Endpoints

HTTP API for document management (registering uploads, listing,
retrying and exporting).
"""

import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    status,
    Query,
)
from sqlalchemy.ext.asyncio import AsyncSession

from docai.db.database import get_db
from docai.api.deps import get_current_user_id, rate_limit, to_http_exception
from docai.core.exceptions import DocAIError
from docai.schemas.document import (
    DocumentIdRequest,
    DocumentListResponse,
    DocumentReport,
    DocumentResponse,
    DocumentStatus,
    DocumentUploadResponse,
    FileMeta,
    RenameRequest,
    RenameResponse,
    RetryResponse,
)
from docai.services.document_service import DocumentService

logger = logging.getLogger(__name__)

# ============================================================
# Router Setup
# ============================================================

router = APIRouter(tags=["Documents"])


def get_document_service(db: AsyncSession = Depends(get_db)) -> DocumentService:
    """
    Dependency that provides a DocumentService for the request's
    database session.
    """
    return DocumentService(db)


# ============================================================
# UPLOAD ENDPOINT
# ============================================================

@router.post(
    "/upload",
    response_model=DocumentUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an uploaded document",
    description="""
    Record a file already placed in storage and queue it for processing.

    Free accounts are limited to a fixed number of uploads; paid plans
    are unlimited.
    """,
    responses={
        400: {"description": "Invalid file (wrong type, too large)"},
        401: {"description": "Not authenticated"},
        403: {"description": "Free credits used up"},
        429: {"description": "Too many uploads"},
    },
    dependencies=[Depends(rate_limit("upload"))],
)
async def upload_document(
    file_meta: FileMeta,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    try:
        return await service.upload(user_id, file_meta)
    except DocAIError as e:
        raise to_http_exception(e)


# ============================================================
# LIST ENDPOINT
# ============================================================

@router.get(
    "/list",
    response_model=DocumentListResponse,
    summary="List my documents",
)
async def list_documents(
    status_filter: Optional[DocumentStatus] = Query(
        None,
        alias="status",
        description="Filter by processing status"
    ),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    return await service.list_documents(
        owner_id=user_id,
        status=status_filter,
        limit=limit,
        offset=offset
    )


# ============================================================
# RETRY / EXPORT
# ============================================================

@router.post(
    "/retry",
    response_model=RetryResponse,
    summary="Retry processing a document",
    description="""
    Reset a document to `queued`, clearing any previous output or error,
    and hand it to the processor again.
    """,
    responses={
        400: {"description": "Document ID required"},
        401: {"description": "Not authenticated"},
        404: {"description": "Document not found"},
    },
    dependencies=[Depends(rate_limit("process"))],
)
async def retry_document(
    body: DocumentIdRequest,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    try:
        await service.retry(body.documentId, user_id)
        return RetryResponse()
    except DocAIError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Retry failed for {body.documentId}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retry processing"
        )


@router.post(
    "/export",
    response_model=DocumentReport,
    summary="Export a processed document as a report",
    responses={
        400: {"description": "Document ID required, or not yet processed"},
        401: {"description": "Not authenticated"},
        404: {"description": "Document not found"},
    },
)
async def export_document(
    body: DocumentIdRequest,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    try:
        return await service.export_report(body.documentId, user_id)
    except DocAIError as e:
        raise to_http_exception(e)


# ============================================================
# RENAME
# ============================================================

@router.post(
    "/rename",
    response_model=RenameResponse,
    summary="Rename a document",
    responses={
        400: {"description": "Document ID and new name required, or blank name"},
        401: {"description": "Not authenticated"},
        404: {"description": "Document not found"},
    },
)
async def rename_document(
    body: RenameRequest,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    try:
        await service.rename(body.documentId, user_id, body.newName)
        return RenameResponse()
    except DocAIError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Rename failed for {body.documentId}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to rename document"
        )


# ============================================================
# GET SINGLE DOCUMENT
# ============================================================

@router.get(
    "/{document_id}",
    response_model=DocumentResponse,
    summary="Get document details",
    responses={404: {"description": "Document not found"}},
)
async def get_document(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    try:
        return await service.get_document(document_id, user_id)
    except DocAIError as e:
        raise to_http_exception(e)
