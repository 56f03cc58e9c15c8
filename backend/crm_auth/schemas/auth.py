"""Authentication schemas."""
from pydantic import EmailStr, Field, field_validator

from crm_auth.models.user import Role
from crm_auth.schemas.common import CamelModel


class UserSignUp(CamelModel):
    """Self-service registration request."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1, max_length=100)


class UserSignIn(CamelModel):
    """Sign-in request."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TokenBody(CamelModel):
    token: str = Field(..., min_length=1)


class PasswordResetRequest(CamelModel):
    email: EmailStr


class PasswordReset(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class ProfileResponse(CamelModel):
    contact_number: str | None = None
    department: str | None = None
    designation: str | None = None


class UserResponse(CamelModel):
    """User info response; never carries the password hash."""

    id: str
    email: str
    display_name: str
    role: Role
    email_verified: bool
    created_at: str
    last_login: str | None = None
    profile: ProfileResponse | None = None

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, value):
        return Role.parse(value)


class AuthPayload(CamelModel):
    user: UserResponse
    token: str
    message: str


class UserPayload(CamelModel):
    user: UserResponse


class TokenValidation(CamelModel):
    user: UserResponse
    valid: bool = True


class SessionResponse(CamelModel):
    id: str
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: str
    expires_at: str
    is_active: bool


class SessionList(CamelModel):
    sessions: list[SessionResponse]


class SignOutResponse(CamelModel):
    message: str
    sessions_deactivated: int


class CleanupResponse(CamelModel):
    expired_removed: int
    stale_removed: int
