from sqlalchemy import Column, String, Integer
from sqlalchemy.orm import relationship
from .base import BaseModel

class UserProfile(BaseModel):
    __tablename__ = "user_profiles"

    clerk_user_id = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False, default="")
    full_name = Column(String(255), nullable=True)
    free_credits_used = Column(Integer, default=0, nullable=False)

    # Entitlement flags, written by payment reconciliation
    plan = Column(String(20), default="free", nullable=False)  # free, pro, premium
    subscription_status = Column(String(20), default="inactive", nullable=False)  # inactive, active, cancelled, expired

    # Relationships - deleting a profile removes the user's rows
    documents = relationship("Document", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)
    subscriptions = relationship("Subscription", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)
