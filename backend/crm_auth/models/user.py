"""User identity model."""
import enum
import uuid

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from crm_auth.database import Base, utcnow_iso


class Role(str, enum.Enum):
    """Closed set of roles; parsed once at the HTTP boundary."""

    ADMIN = "ADMIN"
    USER = "USER"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValueError("Invalid role. Must be admin or user")


class User(Base):
    """Authenticable account."""

    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(100), nullable=False)
    role = Column(String(16), nullable=False, default=Role.USER.value)
    email_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(String(32), default=utcnow_iso)
    updated_at = Column(String(32), default=utcnow_iso, onupdate=utcnow_iso)
    last_login = Column(String(32))

    # Relationships
    profile = relationship("UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")
    action_tokens = relationship("ActionToken", back_populates="user", cascade="all, delete-orphan")
    activity = relationship("ActivityLog", back_populates="user", cascade="all, delete-orphan")
