import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from .config import ANNOUNCEMENT_TTL_HOURS
from .constants import RequestStatus, REJECTED_RETENTION_MONTHS
from .database import SessionLocal
from .models import Announcement, DocumentRequest, Notification
from .notifier import LifecycleNotifier
from .request_lifecycle import RequestLifecycleEngine
from .store import RequestStore
from .utils import local_now

logger = logging.getLogger(__name__)


@dataclass
class HousekeepingResult:
    expired_count: int = 0
    archived_count: int = 0
    failed_count: int = 0
    rejected_purged: int = 0
    announcements_purged: int = 0

    def as_dict(self):
        return asdict(self)


def purge_expired_announcements(db: Session, now: datetime, ttl_hours: int = ANNOUNCEMENT_TTL_HOURS) -> int:
    """
    Delete announcements older than the announcement lifetime.

    Args:
        db (Session): The database session.
        now (datetime): Current local time.
        ttl_hours (int): Announcement lifetime in hours.

    Returns:
        int: Number of announcements deleted.
    """
    cutoff = now - timedelta(hours=ttl_hours)
    deleted = (
        db.query(Announcement)
        .filter(Announcement.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info(f"Purged {deleted} announcements posted before {cutoff.isoformat()}")
    return deleted


def purge_stale_rejected_requests(db: Session, now: datetime, months: int = REJECTED_RETENTION_MONTHS) -> int:
    """
    Delete Rejected requests that have not been touched for the retention period.

    Pickup slots and automation notes go with the request; notifications are kept
    and lose their link to it.

    Returns:
        int: Number of requests deleted.
    """
    cutoff = now - relativedelta(months=months)
    stale = (
        db.query(DocumentRequest)
        .filter(DocumentRequest.status == RequestStatus.REJECTED)
        .filter(DocumentRequest.updated_at < cutoff)
        .all()
    )
    if not stale:
        return 0
    ids = [request.id for request in stale]
    db.query(Notification).filter(Notification.request_id.in_(ids)).update(
        {"request_id": None}, synchronize_session=False
    )
    for request in stale:
        db.delete(request)
    db.commit()
    logger.info(f"Purged {len(ids)} rejected requests last updated before {cutoff.isoformat()}")
    return len(ids)


def run_housekeeping(now: Optional[datetime] = None, session_factory=SessionLocal) -> HousekeepingResult:
    """
    Run every time-driven job once: the document request sweep, the purge of
    old rejected requests, then the announcement purge. A failing purge does not
    undo the sweep or stop the other purge.

    Args:
        now (datetime, optional): Time to evaluate rules at; defaults to local now.
        session_factory (callable): Factory for the database session.

    Returns:
        HousekeepingResult: Counts from both jobs.
    """
    now = now or local_now()
    db = session_factory()
    try:
        engine = RequestLifecycleEngine(RequestStore(db), emitter=LifecycleNotifier(db))
        sweep = engine.sweep(now)
        result = HousekeepingResult(
            expired_count=sweep.expired_count,
            archived_count=sweep.archived_count,
            failed_count=sweep.failed_count,
        )
        try:
            result.rejected_purged = purge_stale_rejected_requests(db, now)
        except Exception:
            db.rollback()
            logger.exception("Rejected request purge failed")
        try:
            result.announcements_purged = purge_expired_announcements(db, now)
        except Exception:
            db.rollback()
            logger.exception("Announcement purge failed")
        return result
    finally:
        db.close()
