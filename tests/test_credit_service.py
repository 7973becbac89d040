"""
Tests for free-tier credits, entitlement flags and profile reads.
"""
import pytest

from docai.core.exceptions import NotFoundError
from docai.schemas.subscription import SubscriptionStatus
from docai.schemas.user import UserProfileUpdate
from docai.services.credit_service import UNLIMITED, CreditService
from docai.services.user_service import UserService

USER = "user_credits"


@pytest.fixture
def credit_service(profile_repo):
    return CreditService(profile_repo=profile_repo, free_credit_limit=3)


class TestCheckUserCredits:
    async def test_missing_profile_is_created(self, credit_service, profile_repo):
        """Should allow and create a profile when the account webhook has not arrived."""
        result = await credit_service.check_user_credits(USER)
        assert result.allowed
        assert result.creditsRemaining == 3
        assert await profile_repo.get_by_clerk_id(USER) is not None

    async def test_counts_down_to_zero(self, credit_service, profile_repo):
        await profile_repo.create_profile(USER)

        remaining = [await credit_service.increment_credit_usage(USER) for _ in range(3)]
        assert remaining == [2, 1, 0]

        result = await credit_service.check_user_credits(USER)
        assert not result.allowed
        assert result.requiresSubscription
        assert result.creditsRemaining == 0

    async def test_paid_plan_is_unlimited(self, credit_service, profile_repo):
        profile = await profile_repo.create_profile(USER)
        profile.free_credits_used = 10
        await credit_service.activate_subscription(USER, "premium")

        result = await credit_service.check_user_credits(USER)
        assert result.allowed
        assert result.creditsRemaining == UNLIMITED
        assert await credit_service.increment_credit_usage(USER) is None
        assert profile.free_credits_used == 10


class TestEntitlements:
    async def test_activate_then_deactivate(self, credit_service, profile_repo):
        await profile_repo.create_profile(USER)

        assert await credit_service.activate_subscription(USER, "pro")
        status = await credit_service.get_credit_status(USER)
        assert status.hasUnlimitedAccess
        assert status.plan == "pro"

        assert await credit_service.deactivate_subscription(USER, SubscriptionStatus.EXPIRED)
        profile = await profile_repo.get_by_clerk_id(USER)
        assert profile.plan == "free"
        assert profile.subscription_status == "expired"

    async def test_missing_profile(self, credit_service):
        assert not await credit_service.activate_subscription(USER, "pro")
        status = await credit_service.get_credit_status(USER)
        assert status.creditsRemaining == 3
        assert not status.hasUnlimitedAccess


class TestUserService:
    @pytest.fixture
    def service(self, profile_repo, subscription_repo):
        return UserService(profile_repo=profile_repo, subscription_repo=subscription_repo)

    async def test_profile_with_active_subscription(self, service, profile_repo, subscription_repo):
        await profile_repo.create_profile(USER, email="c@example.com")
        await subscription_repo.create(user_id=USER, plan="pro", status="active")

        envelope = await service.get_profile(USER)
        assert envelope.profile.email == "c@example.com"
        assert envelope.subscription["plan"] == "pro"

    async def test_profile_without_subscription(self, service, profile_repo):
        await profile_repo.create_profile(USER)
        envelope = await service.get_profile(USER)
        assert envelope.subscription is None

    async def test_missing_profile(self, service):
        with pytest.raises(NotFoundError):
            await service.get_profile(USER)

    async def test_update_full_name(self, service, profile_repo):
        await profile_repo.create_profile(USER)
        updated = await service.update_profile(USER, UserProfileUpdate(full_name="New Name"))
        assert updated.full_name == "New Name"
