"""
Credit Service

Free-tier quota and entitlement flags stored on the user profile.

Rules:
- Active paid subscription: always allowed, unlimited
- Free plan with credits used < limit: allowed
- Otherwise: blocked, must subscribe

Entitlement flags (plan, subscription_status) are written by payment
reconciliation so that quota checks never have to read the
subscriptions table.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from docai.core.config import settings
from docai.models.user_profile import UserProfile
from docai.repositories.user_profile_repo import UserProfileRepository
from docai.schemas.subscription import Plan, SubscriptionStatus
from docai.schemas.user import CreditCheckResult, CreditStatusResponse

logger = logging.getLogger(__name__)

UNLIMITED = -1


def has_unlimited_access(profile: UserProfile) -> bool:
    return (
        profile.subscription_status == SubscriptionStatus.ACTIVE.value
        and profile.plan != Plan.FREE.value
    )


class CreditService:
    """Service class for credit checks and entitlement updates."""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        profile_repo: Optional[UserProfileRepository] = None,
        free_credit_limit: Optional[int] = None,
    ):
        self.profile_repo = profile_repo or UserProfileRepository(db)
        self.free_credit_limit = (
            settings.FREE_CREDIT_LIMIT if free_credit_limit is None else free_credit_limit
        )

    # ============================================================
    # QUOTA
    # ============================================================

    async def check_user_credits(self, user_id: str) -> CreditCheckResult:
        """
        Server-side credit check for a new upload.

        A user without a profile (account webhook not delivered yet)
        gets one created with default credits.
        """
        profile = await self.profile_repo.get_by_clerk_id(user_id)

        if profile is None:
            logger.info(f"No profile for {user_id}, creating one with default credits")
            await self.profile_repo.create_profile(user_id)
            return CreditCheckResult(
                allowed=True,
                creditsRemaining=self.free_credit_limit,
            )

        if has_unlimited_access(profile):
            return CreditCheckResult(allowed=True, creditsRemaining=UNLIMITED)

        if profile.free_credits_used < self.free_credit_limit:
            return CreditCheckResult(
                allowed=True,
                creditsRemaining=self.free_credit_limit - profile.free_credits_used,
            )

        return CreditCheckResult(
            allowed=False,
            reason=(
                f"You have used your {self.free_credit_limit} free credits. "
                "Please subscribe to continue."
            ),
            creditsRemaining=0,
            requiresSubscription=True,
        )

    async def increment_credit_usage(self, user_id: str) -> Optional[int]:
        """
        Count one upload against the free quota.

        Paid users are not counted.

        Returns:
            Credits remaining after the increment, or None if not counted
        """
        profile = await self.profile_repo.get_by_clerk_id(user_id)
        if profile is None:
            logger.warning(f"Cannot increment credits: no profile for {user_id}")
            return None

        if has_unlimited_access(profile):
            return None

        used = profile.free_credits_used + 1
        await self.profile_repo.apply(profile, {
            "free_credits_used": used,
            "updated_at": datetime.now(timezone.utc),
        })
        return max(0, self.free_credit_limit - used)

    async def get_credit_status(self, user_id: str) -> CreditStatusResponse:
        profile = await self.profile_repo.get_by_clerk_id(user_id)

        if profile is None:
            return CreditStatusResponse(
                creditsUsed=0,
                creditsRemaining=self.free_credit_limit,
                plan=Plan.FREE.value,
                hasUnlimitedAccess=False,
            )

        unlimited = has_unlimited_access(profile)
        return CreditStatusResponse(
            creditsUsed=profile.free_credits_used,
            creditsRemaining=(
                UNLIMITED if unlimited
                else max(0, self.free_credit_limit - profile.free_credits_used)
            ),
            plan=profile.plan,
            hasUnlimitedAccess=unlimited,
        )

    # ============================================================
    # ENTITLEMENTS
    # ============================================================

    async def activate_subscription(self, user_id: str, plan: str) -> bool:
        """
        Grant a paid plan on the profile.

        Returns:
            False if the user has no profile
        """
        profile = await self.profile_repo.update_by_clerk_id(user_id, {
            "plan": plan,
            "subscription_status": SubscriptionStatus.ACTIVE.value,
            "updated_at": datetime.now(timezone.utc),
        })
        if profile is None:
            logger.warning(f"Cannot activate {plan} entitlements: no profile for {user_id}")
            return False
        logger.info(f"Subscription activated for user {user_id} ({plan}), unlimited access granted")
        return True

    async def deactivate_subscription(
        self,
        user_id: str,
        status: SubscriptionStatus = SubscriptionStatus.CANCELLED
    ) -> bool:
        """Revert the profile to the free plan."""
        profile = await self.profile_repo.update_by_clerk_id(user_id, {
            "plan": Plan.FREE.value,
            "subscription_status": status.value,
            "updated_at": datetime.now(timezone.utc),
        })
        if profile is None:
            logger.warning(f"Cannot revert entitlements: no profile for {user_id}")
            return False
        logger.info(f"Subscription {status.value} for user {user_id}, reverted to free plan")
        return True
