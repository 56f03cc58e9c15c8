"""Credential store: identity records and password hashing."""
import logging
import re

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm_auth.database import utcnow_iso
from crm_auth.errors import DuplicateEmail, Forbidden, InvalidInput, NotFound
from crm_auth.logging_config import redact_email
from crm_auth.models.profile import UserProfile
from crm_auth.models.user import Role, User

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email(email: str) -> str:
    """Return the normalized address or raise InvalidInput."""
    if not email or not EMAIL_PATTERN.match(email.strip()):
        raise InvalidInput("Invalid email format")
    return normalize_email(email)


def validate_password(password: str, field: str = "Password") -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"{field} must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidInput(f"{field} must be at most {MAX_PASSWORD_BYTES} bytes long")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        # Oversized candidate or corrupt stored hash
        return False


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Hash a password."""
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


class CredentialStore:
    """Reads and writes identity records.

    The store flushes but never commits; the calling workflow owns the
    transaction boundary.
    """

    def __init__(self, db: Session, *, bcrypt_rounds: int = 12, system_admin_email: str | None = None):
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds
        self.system_admin_email = normalize_email(system_admin_email) if system_admin_email else None

    def hash_password(self, password: str) -> str:
        return get_password_hash(password, rounds=self.bcrypt_rounds)

    def email_taken(self, email: str) -> bool:
        """True if the address belongs to an identity or a profile record."""
        if self.find_by_email(email) is not None:
            return True
        return self.db.query(UserProfile.id).filter(UserProfile.email == email).first() is not None

    def create_identity(
        self,
        email: str,
        password: str,
        display_name: str,
        role: Role = Role.USER,
        verified: bool = False,
    ) -> User:
        if self.find_by_email(email) is not None:
            raise DuplicateEmail()

        user = User(
            email=email,
            password_hash=self.hash_password(password),
            display_name=display_name,
            role=role.value,
            email_verified=verified,
        )
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateEmail() from exc

        logger.info("Created %s identity %s", role.value, redact_email(email))
        return user

    def find_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def find_by_id(self, user_id: str) -> User | None:
        return self.db.query(User).filter(User.id == user_id).first()

    def get(self, user_id: str) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFound()
        return user

    def verify_password(self, user: User, candidate: str) -> bool:
        return verify_password(candidate, user.password_hash)

    def is_system_admin(self, user: User) -> bool:
        return self.system_admin_email is not None and user.email == self.system_admin_email

    def update_password_hash(self, user_id: str, new_hash: str) -> User:
        user = self.get(user_id)
        user.password_hash = new_hash
        self.db.flush()
        return user

    def set_password(self, user_id: str, new_password: str) -> User:
        return self.update_password_hash(user_id, self.hash_password(new_password))

    def update_role(self, user_id: str, role: Role) -> User:
        user = self.get(user_id)
        user.role = role.value
        self.db.flush()
        return user

    def mark_verified(self, user_id: str) -> User:
        user = self.get(user_id)
        user.email_verified = True
        self.db.flush()
        return user

    def stamp_login(self, user: User) -> None:
        user.last_login = utcnow_iso()
        self.db.flush()

    def delete(self, user_id: str) -> None:
        user = self.get(user_id)
        if self.is_system_admin(user):
            raise Forbidden("Cannot delete system administrator")
        self.db.delete(user)
        self.db.flush()
        logger.info("Deleted identity %s", user_id)
