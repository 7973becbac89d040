"""
Subscription Schemas
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID
from enum import Enum

from pydantic import BaseModel, ConfigDict


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"      # Order created, payment pending (or failed)
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED)


# ============================================================
# PLAN TABLE
# ============================================================
# Amounts are in the smallest currency unit (paise).
# The client only ever sends a plan name; the amount comes from here.

@dataclass(frozen=True)
class PlanConfig:
    plan: Plan
    amount: int
    name: str
    description: str


PLAN_CURRENCY = "INR"

PLAN_CONFIGS: Dict[Plan, PlanConfig] = {
    Plan.PRO: PlanConfig(
        plan=Plan.PRO,
        amount=49900,  # ₹499
        name="Pro Plan",
        description="Unlimited uploads, Advanced AI processing, Priority support",
    ),
    Plan.PREMIUM: PlanConfig(
        plan=Plan.PREMIUM,
        amount=99900,  # ₹999
        name="Premium Plan",
        description="Everything in Pro + Batch processing, API access, Premium support",
    ),
}

PLAN_HIERARCHY: Dict[Plan, int] = {
    Plan.FREE: 0,
    Plan.PRO: 1,
    Plan.PREMIUM: 2,
}


def get_plan_config(plan: Optional[str]) -> Optional[PlanConfig]:
    """Look up a purchasable plan by name. Returns None for anything else."""
    if not isinstance(plan, str):
        return None
    try:
        return PLAN_CONFIGS.get(Plan(plan))
    except ValueError:
        return None


# ============================================================
# REQUEST SCHEMAS
# ============================================================

class CreateOrderRequest(BaseModel):
    plan: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


# ============================================================
# RESPONSE SCHEMAS
# ============================================================

class CreateOrderResponse(BaseModel):
    orderId: str
    amount: int
    currency: str
    keyId: str


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str = "Payment verified successfully"


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    plan: Plan
    status: SubscriptionStatus
    razorpay_order_id: Optional[str] = None
    razorpay_subscription_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SubscriptionStatusResponse(BaseModel):
    isActive: bool
    plan: Plan
    subscription: Optional[SubscriptionResponse] = None
