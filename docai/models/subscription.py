from sqlalchemy import Column, String, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from .base import BaseModel

class Subscription(BaseModel):
    __tablename__ = "subscriptions"

    # One authoritative row per user, kept by upsert-by-user-id
    user_id = Column(
        String(255),
        ForeignKey("user_profiles.clerk_user_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    plan = Column(String(20), default="free", nullable=False)  # free, pro, premium
    status = Column(String(20), default="active", nullable=False)  # active, inactive, cancelled, expired
    razorpay_order_id = Column(String(255), nullable=True, index=True)
    razorpay_subscription_id = Column(String(255), nullable=True, index=True)
    start_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("UserProfile", back_populates="subscriptions")
