"""Admin API endpoints. Every route requires an ADMIN bearer token."""
from fastapi import APIRouter, Depends, status

from crm_auth.api.auth import user_response
from crm_auth.api.deps import get_admin_provisioning
from crm_auth.schemas.admin import (
    CreatedUser,
    DeliveryResponse,
    RoleUpdate,
    SendTestEmailRequest,
    UserCreate,
    UserList,
    UserStatisticsResponse,
)
from crm_auth.schemas.auth import UserPayload
from crm_auth.schemas.common import Envelope, MessageResponse
from crm_auth.services.admin import AdminProvisioning

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=Envelope[UserList])
def list_users(admin: AdminProvisioning = Depends(get_admin_provisioning)):
    """All users, newest first."""
    users = admin.list_users()
    return Envelope[UserList](data=UserList(users=[user_response(u) for u in users]))


@router.post("/create-user", response_model=Envelope[CreatedUser], status_code=status.HTTP_201_CREATED)
def create_user(body: UserCreate, admin: AdminProvisioning = Depends(get_admin_provisioning)):
    """Provision an account and its profile; a password is generated if omitted."""
    provisioned = admin.create_user(
        email=body.email,
        display_name=body.display_name,
        role=body.role,
        password=body.password,
        contact_number=body.contact_number,
        department=body.department,
        designation=body.designation,
    )
    return Envelope[CreatedUser](data=CreatedUser(
        user=user_response(provisioned.user),
        temporary_password=provisioned.temporary_password,
        message="User created successfully.",
    ))


@router.delete("/users/{user_id}", response_model=Envelope[MessageResponse])
def delete_user(user_id: str, admin: AdminProvisioning = Depends(get_admin_provisioning)):
    """Delete a user and everything they own."""
    admin.delete_user(user_id)
    return Envelope[MessageResponse](data=MessageResponse(message="User deleted successfully"))


@router.put("/users/{user_id}/role", response_model=Envelope[UserPayload])
def update_role(user_id: str, body: RoleUpdate, admin: AdminProvisioning = Depends(get_admin_provisioning)):
    """Change a user's role."""
    user = admin.update_role(user_id, body.role)
    return Envelope[UserPayload](data=UserPayload(user=user_response(user)))


@router.post("/users/{user_id}/resend-verification", response_model=Envelope[DeliveryResponse])
def resend_verification(user_id: str, admin: AdminProvisioning = Depends(get_admin_provisioning)):
    """Email a fresh verification link."""
    delivered = admin.resend_verification(user_id)
    return Envelope[DeliveryResponse](data=DeliveryResponse(delivered=delivered))


@router.get("/statistics", response_model=Envelope[UserStatisticsResponse])
def statistics(admin: AdminProvisioning = Depends(get_admin_provisioning)):
    """User and session counts."""
    stats = admin.statistics()
    return Envelope[UserStatisticsResponse](data=UserStatisticsResponse(
        total_users=stats.total_users,
        admins=stats.admins,
        users=stats.users,
        verified_users=stats.verified_users,
        active_sessions=stats.active_sessions,
    ))


@router.post("/send-test-email", response_model=Envelope[DeliveryResponse])
def send_test_email(body: SendTestEmailRequest, admin: AdminProvisioning = Depends(get_admin_provisioning)):
    """Check the SMTP configuration."""
    delivered = admin.send_test_email(body.recipient_email)
    return Envelope[DeliveryResponse](data=DeliveryResponse(delivered=delivered))
