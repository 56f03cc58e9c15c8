"""Best-effort audit log of auth events."""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm_auth.models.activity import ActivityLog
from crm_auth.services.outcome import Outcome

logger = logging.getLogger(__name__)


class ActivityRecorder:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        user_id: str | None = None,
        detail: str | None = None,
        ip_address: str | None = None,
    ) -> Outcome[ActivityLog]:
        try:
            entry = ActivityLog(user_id=user_id, action=action, detail=detail, ip_address=ip_address)
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Activity log write for %s failed: %s", action, exc)
            return Outcome.failure(exc)
        return Outcome.success(entry)
