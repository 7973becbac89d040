"""
Identity Webhook Service

Keeps user profiles in sync with the identity provider's account
lifecycle events (user.created, user.updated, user.deleted).

Signature verification happens in the endpoint before this service is
called; everything here assumes an authenticated event.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from docai.repositories.subscription_repo import SubscriptionRepository
from docai.repositories.user_profile_repo import UserProfileRepository
from docai.schemas.subscription import Plan, SubscriptionStatus
from docai.schemas.webhooks import IdentityUserData, IdentityWebhookEvent

logger = logging.getLogger(__name__)


class IdentityWebhookService:
    """Service class for account lifecycle events."""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        profile_repo: Optional[UserProfileRepository] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
    ):
        self.profile_repo = profile_repo or UserProfileRepository(db)
        self.subscription_repo = subscription_repo or SubscriptionRepository(db)

    async def handle(self, event: Union[IdentityWebhookEvent, Dict[str, Any]]) -> None:
        if not isinstance(event, IdentityWebhookEvent):
            event = IdentityWebhookEvent.model_validate(event)

        if event.type == "user.created":
            await self._user_created(IdentityUserData.model_validate(event.data))
        elif event.type == "user.updated":
            await self._user_updated(IdentityUserData.model_validate(event.data))
        elif event.type == "user.deleted":
            await self._user_deleted(event.data.get("id"))
        else:
            logger.info(f"Unhandled identity event type: {event.type}")

    # ============================================================
    # HANDLERS
    # ============================================================

    async def _user_created(self, user: IdentityUserData) -> None:
        """Create the profile and a default free subscription."""
        profile = await self.profile_repo.create_profile(
            clerk_user_id=user.id,
            email=user.primary_email,
            full_name=user.full_name,
        )
        logger.info(f"User profile created for {profile.clerk_user_id}")

        existing = await self.subscription_repo.get_by_user(user.id)
        if existing is None:
            await self.subscription_repo.create(
                user_id=user.id,
                plan=Plan.FREE.value,
                status=SubscriptionStatus.ACTIVE.value,
            )

    async def _user_updated(self, user: IdentityUserData) -> None:
        profile = await self.profile_repo.update_by_clerk_id(user.id, {
            "email": user.primary_email,
            "full_name": user.full_name,
            "updated_at": datetime.now(timezone.utc),
        })
        if profile is None:
            logger.info(f"user.updated for unknown user {user.id}, creating profile")
            await self.profile_repo.create_profile(
                clerk_user_id=user.id,
                email=user.primary_email,
                full_name=user.full_name,
            )

    async def _user_deleted(self, user_id: Optional[str]) -> None:
        if not user_id:
            logger.warning("user.deleted without user id, ignoring")
            return
        # Documents and subscriptions cascade through their foreign keys
        deleted = await self.profile_repo.delete_by_clerk_id(user_id)
        if deleted:
            logger.info(f"User profile deleted for {user_id}")
