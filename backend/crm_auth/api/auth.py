"""Authentication API endpoints."""
from fastapi import APIRouter, Depends, status

from crm_auth.api.deps import get_auth_workflow, get_client_info, get_current_claims
from crm_auth.models.user import User
from crm_auth.schemas.auth import (
    AuthPayload,
    CleanupResponse,
    PasswordChange,
    PasswordReset,
    PasswordResetRequest,
    SessionList,
    SessionResponse,
    SignOutResponse,
    TokenBody,
    TokenValidation,
    UserPayload,
    UserResponse,
    UserSignIn,
    UserSignUp,
)
from crm_auth.schemas.common import Envelope, MessageResponse
from crm_auth.services.auth_workflow import AuthWorkflow, ClientInfo
from crm_auth.services.tokens import TokenClaims

router = APIRouter(prefix="/auth", tags=["auth"])


def user_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


@router.post("/signup", response_model=Envelope[AuthPayload], status_code=status.HTTP_201_CREATED)
def signup(
    body: UserSignUp,
    workflow: AuthWorkflow = Depends(get_auth_workflow),
    client: ClientInfo = Depends(get_client_info),
):
    """Register a new user; the caller is signed in immediately."""
    result = workflow.sign_up(body.email, body.password, body.display_name, client)
    return Envelope[AuthPayload](data=AuthPayload(
        user=user_response(result.user),
        token=result.token,
        message="Account created successfully. Please check your email to verify your account.",
    ))


@router.post("/signin", response_model=Envelope[AuthPayload])
def signin(
    body: UserSignIn,
    workflow: AuthWorkflow = Depends(get_auth_workflow),
    client: ClientInfo = Depends(get_client_info),
):
    """Sign in and get a bearer token."""
    result = workflow.sign_in(body.email, body.password, client)
    return Envelope[AuthPayload](data=AuthPayload(
        user=user_response(result.user),
        token=result.token,
        message="Signed in successfully",
    ))


@router.post("/signout", response_model=Envelope[SignOutResponse])
@router.post("/logout", response_model=Envelope[SignOutResponse])
def signout(
    claims: TokenClaims = Depends(get_current_claims),
    workflow: AuthWorkflow = Depends(get_auth_workflow),
    client: ClientInfo = Depends(get_client_info),
):
    """Deactivate every session of the current user."""
    deactivated = workflow.sign_out(claims, client)
    return Envelope[SignOutResponse](data=SignOutResponse(
        message="Signed out successfully",
        sessions_deactivated=deactivated,
    ))


@router.post("/verify-email", response_model=Envelope[UserPayload])
def verify_email(body: TokenBody, workflow: AuthWorkflow = Depends(get_auth_workflow)):
    """Consume an email verification token."""
    user = workflow.verify_email(body.token)
    return Envelope[UserPayload](data=UserPayload(user=user_response(user)))


@router.post("/request-password-reset", response_model=Envelope[MessageResponse])
def request_password_reset(body: PasswordResetRequest, workflow: AuthWorkflow = Depends(get_auth_workflow)):
    """Same response whether or not the address is registered."""
    workflow.request_password_reset(body.email)
    return Envelope[MessageResponse](data=MessageResponse(
        message="If an account exists for that email, a password reset link has been sent.",
    ))


@router.post("/reset-password", response_model=Envelope[MessageResponse])
def reset_password(body: PasswordReset, workflow: AuthWorkflow = Depends(get_auth_workflow)):
    """Set a new password using a reset token."""
    workflow.reset_password(body.token, body.new_password)
    return Envelope[MessageResponse](data=MessageResponse(message="Password has been reset"))


@router.post("/change-password", response_model=Envelope[MessageResponse])
def change_password(
    body: PasswordChange,
    claims: TokenClaims = Depends(get_current_claims),
    workflow: AuthWorkflow = Depends(get_auth_workflow),
    client: ClientInfo = Depends(get_client_info),
):
    """Change the current user's password."""
    workflow.change_password(claims, body.current_password, body.new_password, client)
    return Envelope[MessageResponse](data=MessageResponse(message="Password changed successfully"))


@router.post("/validate-token", response_model=Envelope[TokenValidation])
def validate_token(body: TokenBody, workflow: AuthWorkflow = Depends(get_auth_workflow)):
    """Used by clients on startup to check a stored token."""
    user = workflow.validate_token(body.token)
    return Envelope[TokenValidation](data=TokenValidation(user=user_response(user)))


@router.get("/me", response_model=Envelope[UserPayload])
@router.get("/profile", response_model=Envelope[UserPayload])
def get_me(
    claims: TokenClaims = Depends(get_current_claims),
    workflow: AuthWorkflow = Depends(get_auth_workflow),
):
    """Current user with profile."""
    user = workflow.profile(claims)
    return Envelope[UserPayload](data=UserPayload(user=user_response(user)))


@router.get("/sessions", response_model=Envelope[SessionList])
def list_sessions(
    claims: TokenClaims = Depends(get_current_claims),
    workflow: AuthWorkflow = Depends(get_auth_workflow),
):
    """Active sessions of the current user."""
    sessions = workflow.list_sessions(claims)
    return Envelope[SessionList](data=SessionList(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
    ))


@router.post("/cleanup-sessions", response_model=Envelope[CleanupResponse])
def cleanup_sessions(
    claims: TokenClaims = Depends(get_current_claims),
    workflow: AuthWorkflow = Depends(get_auth_workflow),
):
    """Purge expired and long-inactive sessions (admin only)."""
    counts = workflow.cleanup_sessions(claims)
    return Envelope[CleanupResponse](data=CleanupResponse(
        expired_removed=counts.expired_removed,
        stale_removed=counts.stale_removed,
    ))
