"""Sign-up, sign-in and password lifecycle.

Identity changes are committed before any side effect runs. Session ledger
writes, activity records and notification emails are best-effort: a failure
is logged and the primary operation still succeeds. The one exception is the
password reset request, where the email is the whole point of the call.
"""
from dataclasses import dataclass
from datetime import timedelta
import logging

from sqlalchemy.orm import Session

from crm_auth.config import Settings
from crm_auth.database import utcnow
from crm_auth.errors import (
    InvalidCredentials,
    InvalidInput,
    NotFound,
    Unauthorized,
)
from crm_auth.logging_config import redact_email
from crm_auth.models.auth import AuthSession, TokenPurpose
from crm_auth.models.user import Role, User
from crm_auth.services.action_tokens import ActionTokenStore
from crm_auth.services.activity import ActivityRecorder
from crm_auth.services.credentials import (
    CredentialStore,
    normalize_email,
    validate_email,
    validate_password,
)
from crm_auth.services.notifications import Notifier
from crm_auth.services.outcome import best_effort
from crm_auth.services.sessions import CleanupCounts, SessionLedger
from crm_auth.services.tokens import TokenClaims, TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


class AuthWorkflow:
    """Coordinates the credential store, tokens, session ledger and mail."""

    def __init__(self, db: Session, settings: Settings, tokens: TokenService, notifier: Notifier):
        self.db = db
        self.settings = settings
        self.tokens = tokens
        self.notifier = notifier
        self.store = CredentialStore(
            db,
            bcrypt_rounds=settings.bcrypt_rounds,
            system_admin_email=settings.system_admin_email,
        )
        self.ledger = SessionLedger(db, retention_days=settings.session_retention_days)
        self.activity = ActivityRecorder(db)
        self.action_tokens = ActionTokenStore(db)

    def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
        client: ClientInfo = ClientInfo(),
    ) -> AuthResult:
        email = validate_email(email)
        validate_password(password)
        display_name = (display_name or "").strip()
        if not display_name:
            raise InvalidInput("Display name is required")

        user = self.store.create_identity(email, password, display_name, Role.USER, verified=False)
        verification_token = self.action_tokens.issue(
            user,
            TokenPurpose.VERIFY_EMAIL,
            timedelta(hours=self.settings.verification_token_expire_hours),
        )
        self.db.commit()

        token = self.tokens.issue(user)
        best_effort(
            "Welcome email",
            self.notifier.send_welcome,
            user.email,
            user.display_name,
            verification_token,
        )
        self.activity.record("signup", user.id, ip_address=client.ip_address)
        return AuthResult(user=user, token=token)

    def sign_in(self, email: str, password: str, client: ClientInfo = ClientInfo()) -> AuthResult:
        user = self.store.find_by_email(normalize_email(email or ""))
        if user is None or not self.store.verify_password(user, password or ""):
            logger.info("Failed sign-in for %s", redact_email(email or ""))
            raise InvalidCredentials()

        self.store.stamp_login(user)
        self.db.commit()

        issued = self.tokens.mint(user)
        self.ledger.record(user.id, issued.token, client.ip_address, client.user_agent, issued.expires_at)
        best_effort(
            "Login notification",
            self.notifier.send_login_alert,
            user.email,
            user.display_name,
            client.ip_address,
            client.user_agent,
            utcnow(),
        )
        self.activity.record("signin", user.id, ip_address=client.ip_address)
        return AuthResult(user=user, token=issued.token)

    def sign_out(self, claims: TokenClaims, client: ClientInfo = ClientInfo()) -> int:
        """Deactivate every session of the bearer; safe to repeat."""
        deactivated = self.ledger.deactivate_all(claims.user_id).value_or(0)
        self.activity.record("signout", claims.user_id, ip_address=client.ip_address)
        logger.info("User %s signed out, %d sessions deactivated", claims.user_id, deactivated)
        return deactivated

    def verify_email(self, token: str) -> User:
        user_id = self.action_tokens.consume(token, TokenPurpose.VERIFY_EMAIL)
        user = self.store.mark_verified(user_id)
        self.db.commit()
        self.activity.record("verify-email", user_id)
        return user

    def request_password_reset(self, email: str) -> None:
        """Send a reset link if the address is registered; silent otherwise."""
        email = validate_email(email)
        user = self.store.find_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown address %s", redact_email(email))
            return

        reset_token = self.action_tokens.issue(
            user,
            TokenPurpose.RESET_PASSWORD,
            timedelta(hours=self.settings.reset_token_expire_hours),
        )
        self.db.commit()
        self.notifier.send_password_reset(user.email, user.display_name, reset_token)

    def reset_password(self, token: str, new_password: str) -> None:
        validate_password(new_password)
        user_id = self.action_tokens.consume(token, TokenPurpose.RESET_PASSWORD)
        self.store.set_password(user_id, new_password)
        self.db.commit()

        self.ledger.deactivate_all(user_id)
        self.activity.record("reset-password", user_id)

    def change_password(
        self,
        claims: TokenClaims | None,
        current_password: str,
        new_password: str,
        client: ClientInfo = ClientInfo(),
    ) -> None:
        if claims is None:
            raise Unauthorized()
        validate_password(new_password, "New password")

        user = self.store.find_by_id(claims.user_id)
        if user is None:
            raise NotFound()
        if not self.store.verify_password(user, current_password or ""):
            raise InvalidCredentials("Current password is incorrect")

        self.store.set_password(user.id, new_password)
        self.db.commit()
        self.activity.record("change-password", user.id, ip_address=client.ip_address)

    def validate_token(self, token: str) -> User:
        claims = self.tokens.verify(token)
        return self.profile(claims)

    def profile(self, claims: TokenClaims) -> User:
        user = self.store.find_by_id(claims.user_id)
        if user is None:
            raise NotFound()
        return user

    def list_sessions(self, claims: TokenClaims) -> list[AuthSession]:
        return self.ledger.list_active(claims.user_id).value_or([])

    def cleanup_sessions(self, claims: TokenClaims) -> CleanupCounts:
        outcome = self.ledger.cleanup(claims.role)
        return outcome.value_or(CleanupCounts(expired_removed=0, stale_removed=0))
