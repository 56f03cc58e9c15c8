"""Admin provisioning schemas."""
from pydantic import EmailStr, Field, field_validator

from crm_auth.models.user import Role
from crm_auth.schemas.auth import UserResponse
from crm_auth.schemas.common import CamelModel


class RoleField(CamelModel):
    role: Role

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        # "admin", "Admin" and "ADMIN" are the same role
        return Role.parse(value)


class UserCreate(RoleField):
    """Admin-initiated account creation."""

    email: EmailStr
    display_name: str = Field(..., min_length=1, max_length=100)
    password: str | None = None
    contact_number: str | None = Field(None, max_length=32)
    department: str | None = Field(None, max_length=100)
    designation: str | None = Field(None, max_length=100)


class RoleUpdate(RoleField):
    pass


class UserList(CamelModel):
    users: list[UserResponse]


class CreatedUser(CamelModel):
    user: UserResponse
    temporary_password: str | None = None
    message: str


class UserStatisticsResponse(CamelModel):
    total_users: int
    admins: int
    users: int
    verified_users: int
    active_sessions: int


class SendTestEmailRequest(CamelModel):
    recipient_email: EmailStr


class DeliveryResponse(CamelModel):
    delivered: bool
