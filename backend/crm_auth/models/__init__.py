"""SQLAlchemy models package."""
from crm_auth.models.user import Role, User
from crm_auth.models.profile import UserProfile
from crm_auth.models.auth import ActionToken, AuthSession, TokenPurpose
from crm_auth.models.activity import ActivityLog

__all__ = [
    "Role",
    "User",
    "UserProfile",
    "AuthSession",
    "ActionToken",
    "TokenPurpose",
    "ActivityLog",
]
