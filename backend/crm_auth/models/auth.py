"""Authentication/session models."""
import enum
import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from crm_auth.database import Base, utcnow_iso


class AuthSession(Base):
    """Audit record of one issued access token."""

    __tablename__ = "auth_sessions"
    __table_args__ = (
        Index("ix_auth_sessions_user_active", "user_id", "is_active"),
        Index("ix_auth_sessions_expires_at", "expires_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, index=True)
    ip_address = Column(String(45))
    user_agent = Column(String(255))
    expires_at = Column(String(32), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    revoked_at = Column(String(32))
    created_at = Column(String(32), default=utcnow_iso)

    user = relationship("User", back_populates="sessions")


class TokenPurpose(str, enum.Enum):
    VERIFY_EMAIL = "verify-email"
    RESET_PASSWORD = "reset-password"


class ActionToken(Base):
    """Single-use email verification or password reset token."""

    __tablename__ = "auth_action_tokens"
    __table_args__ = (
        Index("ix_auth_action_tokens_user_purpose", "user_id", "purpose"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    purpose = Column(String(20), nullable=False)
    expires_at = Column(String(32), nullable=False)
    consumed_at = Column(String(32))
    created_at = Column(String(32), default=utcnow_iso)

    user = relationship("User", back_populates="action_tokens")
