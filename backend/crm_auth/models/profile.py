"""User profile model."""
import uuid

from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.orm import relationship

from crm_auth.database import Base, utcnow_iso


class UserProfile(Base):
    """Contact details provisioned alongside an account by an admin."""

    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    contact_number = Column(String(32))
    department = Column(String(100))
    designation = Column(String(100))
    created_at = Column(String(32), default=utcnow_iso)

    user = relationship("User", back_populates="profile")
