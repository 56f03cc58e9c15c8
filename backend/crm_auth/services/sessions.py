"""Session ledger: audit trail and coarse revocation of issued tokens.

The ledger is advisory. Token verification never depends on it, so every
method here reports storage failures through an ``Outcome`` instead of
raising into the caller.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm_auth.database import to_iso, utcnow, utcnow_iso
from crm_auth.errors import Forbidden
from crm_auth.models.auth import AuthSession
from crm_auth.models.user import Role
from crm_auth.services.outcome import Outcome
from crm_auth.services.tokens import hash_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanupCounts:
    expired_removed: int
    stale_removed: int


class SessionLedger:
    def __init__(self, db: Session, *, retention_days: int = 30):
        self.db = db
        self.retention = timedelta(days=retention_days)

    def _fail(self, action: str, exc: SQLAlchemyError) -> Outcome:
        self.db.rollback()
        logger.warning("Session ledger %s failed: %s", action, exc)
        return Outcome.failure(exc)

    def record(
        self,
        user_id: str,
        token: str,
        ip_address: str | None,
        user_agent: str | None,
        expires_at: datetime,
    ) -> Outcome[AuthSession]:
        try:
            session = AuthSession(
                user_id=user_id,
                token_hash=hash_token(token),
                ip_address=ip_address,
                user_agent=(user_agent or "")[:255] or None,
                expires_at=to_iso(expires_at),
                is_active=True,
            )
            self.db.add(session)
            self.db.commit()
        except SQLAlchemyError as exc:
            return self._fail("record", exc)
        return Outcome.success(session)

    def deactivate_all(self, user_id: str) -> Outcome[int]:
        """Revoke all active sessions for a user."""
        now = utcnow_iso()
        try:
            count = self.db.query(AuthSession).filter(
                AuthSession.user_id == user_id,
                AuthSession.is_active.is_(True),
            ).update(
                {"is_active": False, "revoked_at": now},
                synchronize_session=False,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            return self._fail("deactivate", exc)
        return Outcome.success(count)

    def list_active(self, user_id: str) -> Outcome[list[AuthSession]]:
        try:
            sessions = self.db.query(AuthSession).filter(
                AuthSession.user_id == user_id,
                AuthSession.is_active.is_(True),
                AuthSession.expires_at > utcnow_iso(),
            ).order_by(AuthSession.created_at.desc()).all()
        except SQLAlchemyError as exc:
            return self._fail("list", exc)
        return Outcome.success(sessions)

    def count_active(self) -> Outcome[int]:
        try:
            count = self.db.query(AuthSession).filter(
                AuthSession.is_active.is_(True),
                AuthSession.expires_at > utcnow_iso(),
            ).count()
        except SQLAlchemyError as exc:
            return self._fail("count", exc)
        return Outcome.success(count)

    def cleanup(self, actor_role: Role) -> Outcome[CleanupCounts]:
        """Delete expired sessions and inactive ones past the retention window."""
        if actor_role is not Role.ADMIN:
            raise Forbidden()

        now = utcnow()
        stale_cutoff = to_iso(now - self.retention)
        try:
            expired_removed = self.db.query(AuthSession).filter(
                AuthSession.expires_at < to_iso(now),
            ).delete(synchronize_session=False)
            stale_removed = self.db.query(AuthSession).filter(
                AuthSession.is_active.is_(False),
                AuthSession.created_at < stale_cutoff,
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as exc:
            return self._fail("cleanup", exc)

        logger.info("Session cleanup removed %d expired and %d stale sessions", expired_removed, stale_removed)
        return Outcome.success(CleanupCounts(expired_removed=expired_removed, stale_removed=stale_removed))
