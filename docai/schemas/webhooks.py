"""
Webhook Payload Schemas

Payment provider events arrive as:
{
    "event": "payment.captured",
    "payload": {
        "payment": {"entity": {"id": "pay_...", "order_id": "order_...", ...}},
        "subscription": {"entity": {"id": "sub_...", "status": "...", ...}}
    }
}

Identity provider events arrive as:
{
    "type": "user.created",
    "data": {"id": "user_...", "email_addresses": [...], ...}
}

Both are parsed leniently: providers add fields over time.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================
# PAYMENT PROVIDER
# ============================================================

class PaymentEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    order_id: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[int] = None


class SubscriptionEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    status: Optional[str] = None
    plan_id: Optional[str] = None


class _PaymentWrapper(BaseModel):
    model_config = ConfigDict(extra="allow")
    entity: Optional[PaymentEntity] = None


class _SubscriptionWrapper(BaseModel):
    model_config = ConfigDict(extra="allow")
    entity: Optional[SubscriptionEntity] = None


class PaymentEventPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment: Optional[_PaymentWrapper] = None
    subscription: Optional[_SubscriptionWrapper] = None


class PaymentWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: str
    payload: PaymentEventPayload = Field(default_factory=PaymentEventPayload)

    @property
    def payment(self) -> Optional[PaymentEntity]:
        wrapper = self.payload.payment
        return wrapper.entity if wrapper else None

    @property
    def subscription(self) -> Optional[SubscriptionEntity]:
        wrapper = self.payload.subscription
        return wrapper.entity if wrapper else None


# ============================================================
# IDENTITY PROVIDER
# ============================================================

class EmailAddress(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    email_address: str


class IdentityUserData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    email_addresses: List[EmailAddress] = Field(default_factory=list)
    primary_email_address_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def primary_email(self) -> str:
        """Primary address if flagged, else the first one, else empty."""
        for address in self.email_addresses:
            if address.id and address.id == self.primary_email_address_id:
                return address.email_address
        return self.email_addresses[0].email_address if self.email_addresses else ""

    @property
    def full_name(self) -> Optional[str]:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or None


class IdentityWebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    data: Dict[str, Any] = Field(default_factory=dict)
