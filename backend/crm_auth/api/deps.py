"""FastAPI dependencies."""
from collections.abc import Generator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from crm_auth.config import Settings
from crm_auth.errors import Forbidden, InvalidOrExpiredToken, Unauthorized
from crm_auth.services.admin import AdminProvisioning
from crm_auth.services.auth_workflow import AuthWorkflow, ClientInfo
from crm_auth.services.notifications import Notifier
from crm_auth.services.tokens import TokenClaims, TokenService

bearer_scheme = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency that provides a database session."""
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_request_ip(request: Request) -> str | None:
    """Extract best-effort client IP for session metadata."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=get_request_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthorized()
    return credentials.credentials


def get_current_claims(
    token: str = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    return tokens.verify(token)


def get_admin_claims(
    token: str = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    try:
        claims = tokens.verify(token)
    except InvalidOrExpiredToken as exc:
        raise Forbidden("Invalid or expired token") from exc
    if not claims.is_admin:
        raise Forbidden()
    return claims


def get_auth_workflow(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenService = Depends(get_token_service),
    notifier: Notifier = Depends(get_notifier),
) -> AuthWorkflow:
    return AuthWorkflow(db, settings, tokens, notifier)


def get_admin_provisioning(
    claims: TokenClaims = Depends(get_admin_claims),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    notifier: Notifier = Depends(get_notifier),
) -> AdminProvisioning:
    return AdminProvisioning(claims, db, settings, notifier)
