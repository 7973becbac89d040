"""
User Service

Profile reads and the user-editable profile fields.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from docai.core.exceptions import NotFoundError
from docai.repositories.subscription_repo import SubscriptionRepository
from docai.repositories.user_profile_repo import UserProfileRepository
from docai.schemas.subscription import SubscriptionResponse
from docai.schemas.user import UserProfileEnvelope, UserProfileResponse, UserProfileUpdate

logger = logging.getLogger(__name__)


class UserService:
    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        profile_repo: Optional[UserProfileRepository] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
    ):
        self.profile_repo = profile_repo or UserProfileRepository(db)
        self.subscription_repo = subscription_repo or SubscriptionRepository(db)

    async def get_profile(self, user_id: str) -> UserProfileEnvelope:
        """
        Raises:
            NotFoundError: If the account webhook has not created a profile yet
        """
        profile = await self.profile_repo.get_by_clerk_id(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")

        subscription = await self.subscription_repo.get_active_by_user(user_id)
        return UserProfileEnvelope(
            profile=UserProfileResponse.model_validate(profile),
            subscription=(
                SubscriptionResponse.model_validate(subscription).model_dump(mode="json")
                if subscription is not None else None
            ),
        )

    async def update_profile(self, user_id: str, update: UserProfileUpdate) -> UserProfileResponse:
        changes = update.model_dump(exclude_unset=True)
        changes["updated_at"] = datetime.now(timezone.utc)

        profile = await self.profile_repo.update_by_clerk_id(user_id, changes)
        if profile is None:
            raise NotFoundError("Profile not found")

        logger.info(f"Profile updated for {user_id}")
        return UserProfileResponse.model_validate(profile)
