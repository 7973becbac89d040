"""
User Profile Repository

Data access layer for UserProfile model.
"""

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docai.repositories.base import BaseRepository
from docai.models.user_profile import UserProfile


class UserProfileRepository(BaseRepository[UserProfile]):
    """Repository for UserProfile model."""

    def __init__(self, db: AsyncSession):
        super().__init__(UserProfile, db)

    # =================
    # Get by identity provider id
    # =================
    async def get_by_clerk_id(self, clerk_user_id: str) -> Optional[UserProfile]:
        result = await self.db.execute(
            select(UserProfile).where(UserProfile.clerk_user_id == clerk_user_id)
        )
        return result.scalar_one_or_none()

    # =================
    # Create profile
    # =================
    async def create_profile(
        self,
        clerk_user_id: str,
        email: str = "",
        full_name: Optional[str] = None,
    ) -> UserProfile:
        """
        Create a profile with default entitlements.

        A concurrent insert for the same user (duplicate key) returns the
        existing row instead of failing.
        """
        try:
            return await self.create(
                clerk_user_id=clerk_user_id,
                email=email or "",
                full_name=full_name,
                free_credits_used=0,
                plan="free",
                subscription_status="inactive",
            )
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_by_clerk_id(clerk_user_id)
            if existing is None:
                raise
            return existing

    # =================
    # Update profile
    # =================
    async def update_by_clerk_id(
        self,
        clerk_user_id: str,
        changes: Dict[str, Any]
    ) -> Optional[UserProfile]:
        profile = await self.get_by_clerk_id(clerk_user_id)
        if profile is None:
            return None
        return await self.apply(profile, changes)

    # =================
    # Delete profile
    # =================
    async def delete_by_clerk_id(self, clerk_user_id: str) -> bool:
        """Delete a profile. Dependent rows cascade at the database level."""
        profile = await self.get_by_clerk_id(clerk_user_id)
        if profile is None:
            return False
        await self.delete(profile)
        return True
