"""
User Profile and Credit Schemas
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clerk_user_id: str
    email: str
    full_name: Optional[str] = None
    free_credits_used: int = 0
    plan: str = "free"
    subscription_status: str = "inactive"
    created_at: datetime
    updated_at: datetime


class UserProfileUpdate(BaseModel):
    """Only the display name is user-editable."""
    full_name: Optional[str] = Field(None, max_length=255)


class CreditCheckResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    creditsRemaining: Optional[int] = None  # -1 means unlimited
    requiresSubscription: bool = False


class CreditStatusResponse(BaseModel):
    creditsUsed: int
    creditsRemaining: int  # -1 means unlimited
    plan: str
    hasUnlimitedAccess: bool


class UserProfileEnvelope(BaseModel):
    """GET /user/profile: the profile plus the active subscription, if any."""
    profile: UserProfileResponse
    subscription: Optional[Dict[str, Any]] = None
