from sqlalchemy import Column, String, BigInteger, ForeignKey, Text, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from .base import BaseModel

class Document(BaseModel):
    __tablename__ = "documents"

    # Owner: identity provider user id
    user_id = Column(
        String(255),
        ForeignKey("user_profiles.clerk_user_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)  # Storage path
    file_url = Column(String(1000), nullable=True)  # URL the processor downloads from
    file_size = Column(BigInteger, nullable=False)  # Size in bytes
    file_type = Column(String(255), nullable=False)  # MIME type
    status = Column(String(20), default="queued", nullable=False, index=True)  # queued, processing, completed, failed
    processed_output = Column(JSONB, nullable=True)  # Only set when completed
    error = Column(Text, nullable=True)  # Only set when failed
    processed_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("UserProfile", back_populates="documents")
