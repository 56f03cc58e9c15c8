"""Auth activity audit model."""
import uuid

from sqlalchemy import Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from crm_auth.database import Base, utcnow_iso


class ActivityLog(Base):
    """Append-only record of sign-ins, sign-outs and account changes."""

    __tablename__ = "auth_activity"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), index=True)
    action = Column(String(50), nullable=False)
    detail = Column(Text)
    ip_address = Column(String(45))
    created_at = Column(String(32), default=utcnow_iso)

    user = relationship("User", back_populates="activity")
