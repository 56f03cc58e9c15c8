"""Role-gated user provisioning."""
from dataclasses import dataclass
from datetime import timedelta
import logging
import secrets
import string

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm_auth.config import Settings
from crm_auth.errors import DuplicateEmail, Forbidden, InvalidInput
from crm_auth.logging_config import redact_email
from crm_auth.models.auth import TokenPurpose
from crm_auth.models.profile import UserProfile
from crm_auth.models.user import Role, User
from crm_auth.services.action_tokens import ActionTokenStore
from crm_auth.services.activity import ActivityRecorder
from crm_auth.services.credentials import CredentialStore, validate_email, validate_password
from crm_auth.services.notifications import Notifier
from crm_auth.services.outcome import best_effort
from crm_auth.services.sessions import SessionLedger
from crm_auth.services.tokens import TokenClaims

logger = logging.getLogger(__name__)

PASSWORD_SYMBOLS = "!@#$%^&*"
PASSWORD_CLASSES = (
    string.ascii_uppercase,
    string.ascii_lowercase,
    string.digits,
    PASSWORD_SYMBOLS,
)


def generate_password(length: int = 12) -> str:
    """Random password containing at least one character of every class."""
    rng = secrets.SystemRandom()
    alphabet = "".join(PASSWORD_CLASSES)
    chars = [secrets.choice(group) for group in PASSWORD_CLASSES]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    rng.shuffle(chars)
    return "".join(chars)


@dataclass(frozen=True)
class ProvisionedUser:
    user: User
    # Only set when the password was generated here; never persisted
    temporary_password: str | None


@dataclass(frozen=True)
class UserStatistics:
    total_users: int
    admins: int
    users: int
    verified_users: int
    active_sessions: int


class AdminProvisioning:
    """User lifecycle operations available to administrators only.

    The role check happens once, at construction, so no operation can be
    reached with a non-admin token.
    """

    def __init__(self, actor: TokenClaims | None, db: Session, settings: Settings, notifier: Notifier):
        if actor is None or actor.role is not Role.ADMIN:
            raise Forbidden()
        self.actor = actor
        self.db = db
        self.settings = settings
        self.notifier = notifier
        self.store = CredentialStore(
            db,
            bcrypt_rounds=settings.bcrypt_rounds,
            system_admin_email=settings.system_admin_email,
        )
        self.ledger = SessionLedger(db, retention_days=settings.session_retention_days)
        self.activity = ActivityRecorder(db)

    def list_users(self) -> list[User]:
        return self.db.query(User).order_by(User.created_at.desc()).all()

    def create_user(
        self,
        email: str,
        display_name: str,
        role: Role,
        password: str | None = None,
        contact_number: str | None = None,
        department: str | None = None,
        designation: str | None = None,
    ) -> ProvisionedUser:
        email = validate_email(email)
        display_name = (display_name or "").strip()
        if not display_name:
            raise InvalidInput("Email, display name, and role are required")
        if password:
            validate_password(password)
        generated = None if password else generate_password()
        user_password = password or generated

        if self.store.email_taken(email):
            raise DuplicateEmail()

        first_name, _, last_name = display_name.partition(" ")
        try:
            user = self.store.create_identity(email, user_password, display_name, role, verified=True)
            self.db.add(UserProfile(
                user_id=user.id,
                email=email,
                first_name=first_name,
                last_name=last_name.strip(),
                contact_number=contact_number,
                department=department,
                designation=designation,
            ))
            self.db.flush()
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateEmail() from exc

        logger.info("Admin %s provisioned %s", self.actor.user_id, redact_email(email))
        best_effort(
            "Employee welcome email",
            self.notifier.send_employee_welcome,
            user.email,
            user.display_name,
            user_password,
            user.role,
        )
        self.activity.record("admin-create-user", self.actor.user_id, detail=user.id)
        return ProvisionedUser(user=user, temporary_password=generated)

    def delete_user(self, user_id: str) -> None:
        self.store.delete(user_id)
        self.db.commit()
        self.activity.record("admin-delete-user", self.actor.user_id, detail=user_id)

    def update_role(self, user_id: str, role: Role) -> User:
        user = self.store.get(user_id)
        if self.store.is_system_admin(user) and role is not Role.ADMIN:
            raise Forbidden("Cannot change the system administrator's role")
        user = self.store.update_role(user_id, role)
        self.db.commit()
        self.activity.record("admin-update-role", self.actor.user_id, detail=f"{user_id}:{role.value}")
        return user

    def resend_verification(self, user_id: str) -> bool:
        user = self.store.get(user_id)
        if user.email_verified:
            raise InvalidInput("Email is already verified")
        token = ActionTokenStore(self.db).issue(
            user,
            TokenPurpose.VERIFY_EMAIL,
            timedelta(hours=self.settings.verification_token_expire_hours),
        )
        self.db.commit()
        return self.notifier.send_welcome(user.email, user.display_name, token)

    def statistics(self) -> UserStatistics:
        total = self.db.query(User).count()
        admins = self.db.query(User).filter(User.role == Role.ADMIN.value).count()
        verified = self.db.query(User).filter(User.email_verified.is_(True)).count()
        return UserStatistics(
            total_users=total,
            admins=admins,
            users=total - admins,
            verified_users=verified,
            active_sessions=self.ledger.count_active().value_or(0),
        )

    def send_test_email(self, recipient: str) -> bool:
        return self.notifier.send_test_email(validate_email(recipient))


def ensure_system_admin(db: Session, settings: Settings) -> User | None:
    """Create the distinguished administrator if a bootstrap password is configured."""
    if not settings.bootstrap_admin_password:
        return None

    store = CredentialStore(
        db,
        bcrypt_rounds=settings.bcrypt_rounds,
        system_admin_email=settings.system_admin_email,
    )
    existing = store.find_by_email(settings.system_admin_email)
    if existing is not None:
        return existing

    validate_password(settings.bootstrap_admin_password, "Bootstrap admin password")

    user = store.create_identity(
        settings.system_admin_email,
        settings.bootstrap_admin_password,
        settings.system_admin_name,
        Role.ADMIN,
        verified=True,
    )
    db.commit()
    logger.info("Bootstrapped system administrator %s", redact_email(settings.system_admin_email))
    return user
