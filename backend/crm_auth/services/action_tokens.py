"""Single-use email verification and password reset tokens."""
from datetime import timedelta
import logging
import secrets

from sqlalchemy.orm import Session

from crm_auth.database import to_iso, utcnow, utcnow_iso
from crm_auth.errors import InvalidOrExpiredToken
from crm_auth.models.auth import ActionToken, TokenPurpose
from crm_auth.models.user import User
from crm_auth.services.tokens import hash_token

logger = logging.getLogger(__name__)


class ActionTokenStore:
    """Issues and consumes purpose-bound tokens; only hashes are stored."""

    def __init__(self, db: Session):
        self.db = db

    def issue(self, user: User, purpose: TokenPurpose, ttl: timedelta) -> str:
        now = utcnow_iso()
        # One outstanding token per purpose
        self.db.query(ActionToken).filter(
            ActionToken.user_id == user.id,
            ActionToken.purpose == purpose.value,
            ActionToken.consumed_at.is_(None),
        ).update({"consumed_at": now}, synchronize_session=False)

        raw_token = secrets.token_urlsafe(32)
        self.db.add(ActionToken(
            user_id=user.id,
            token_hash=hash_token(raw_token),
            purpose=purpose.value,
            expires_at=to_iso(utcnow() + ttl),
        ))
        self.db.flush()
        return raw_token

    def consume(self, raw_token: str, purpose: TokenPurpose) -> str:
        """Mark the token used and return the owning user id."""
        if not raw_token:
            raise InvalidOrExpiredToken()

        record = self.db.query(ActionToken).filter(
            ActionToken.token_hash == hash_token(raw_token),
        ).first()

        if record is None or record.purpose != purpose.value or record.consumed_at:
            raise InvalidOrExpiredToken()
        if record.expires_at <= utcnow_iso():
            logger.info("Rejected expired %s token for user %s", purpose.value, record.user_id)
            raise InvalidOrExpiredToken()

        record.consumed_at = utcnow_iso()
        self.db.flush()
        return record.user_id
