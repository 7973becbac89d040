"""
Subscription Repository

Data access layer for Subscription model.

Lookups by provider ids take the most recently updated row, so a
duplicated row (the one-row-per-user rule is not a DB constraint)
never makes a webhook fail.
"""

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docai.repositories.base import BaseRepository
from docai.models.subscription import Subscription
from docai.schemas.subscription import SubscriptionStatus


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for Subscription model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Subscription, db)

    async def _first(self, stmt) -> Optional[Subscription]:
        stmt = stmt.order_by(self.model.updated_at.desc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_by_user(self, user_id: str) -> Optional[Subscription]:
        return await self._first(
            select(self.model).where(self.model.user_id == user_id)
        )

    async def get_active_by_user(self, user_id: str) -> Optional[Subscription]:
        return await self._first(
            select(self.model).where(
                self.model.user_id == user_id,
                self.model.status == SubscriptionStatus.ACTIVE.value,
            )
        )

    async def get_by_order_id(self, order_id: str) -> Optional[Subscription]:
        return await self._first(
            select(self.model).where(self.model.razorpay_order_id == order_id)
        )

    async def get_by_provider_subscription_id(self, subscription_id: str) -> Optional[Subscription]:
        return await self._first(
            select(self.model).where(self.model.razorpay_subscription_id == subscription_id)
        )

    async def upsert_for_user(self, user_id: str, changes: Dict[str, Any]) -> Subscription:
        """
        Update the user's subscription row, or insert one if none exists.
        """
        existing = await self.get_by_user(user_id)
        if existing is not None:
            return await self.apply(existing, changes)
        return await self.create(user_id=user_id, **changes)
