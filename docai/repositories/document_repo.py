"""
Document Repository

Data access layer for Document model.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from docai.repositories.base import BaseRepository
from docai.models.document import Document
from docai.schemas.document import DocumentStatus, FileMeta


class DocumentRepository(BaseRepository[Document]):
    """
    Repository for Document model.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Document, db)

    # ============================================================
    # QUERY METHODS - Reading Data
    # ============================================================

    async def get_owned(self, document_id: UUID, user_id: str) -> Optional[Document]:
        """
        Get a document only if it belongs to user_id.

        Every user-initiated mutation goes through this lookup, so a
        foreign document looks exactly like a missing one.
        """
        stmt = select(self.model).where(
            self.model.id == document_id,
            self.model.user_id == user_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_user(
        self,
        user_id: str,
        status: Optional[DocumentStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Document]:
        """
        Get a user's documents, newest first, with optional status filter.
        """
        stmt = select(self.model).where(self.model.user_id == user_id)

        if status is not None:
            stmt = stmt.where(self.model.status == status.value)

        stmt = stmt.order_by(self.model.created_at.desc()).offset(skip).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_by_user(
        self,
        user_id: str,
        status: Optional[DocumentStatus] = None
    ) -> int:
        stmt = select(func.count(self.model.id)).where(self.model.user_id == user_id)

        if status is not None:
            stmt = stmt.where(self.model.status == status.value)

        result = await self.db.execute(stmt)
        return result.scalar() or 0

    # ============================================================
    # CREATE
    # ============================================================

    async def create_queued(self, user_id: str, file_meta: FileMeta) -> Document:
        """Insert a freshly uploaded document with status queued."""
        return await self.create(
            user_id=user_id,
            status=DocumentStatus.QUEUED.value,
            **file_meta.model_dump(),
        )
