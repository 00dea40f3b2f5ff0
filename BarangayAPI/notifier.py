import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .event_broadcast import Broadcaster, broadcaster as default_broadcaster
from .models import Notification
from .utils import local_now

logger = logging.getLogger(__name__)

REQUEST_EXPIRED = "request.expired"
REQUEST_ARCHIVED = "request.archived"
MEETING_RECORDED = "blotter.meeting_recorded"
CFA_ISSUED = "blotter.cfa_issued"
CASE_ESCALATED = "blotter.escalated"
CASE_RESOLVED = "blotter.resolved"

EVENT_TITLES = {
    REQUEST_EXPIRED: "Document request expired",
    REQUEST_ARCHIVED: "Document request archived",
    MEETING_RECORDED: "Mediation meeting recorded",
    CFA_ISSUED: "Certification to File Action issued",
    CASE_ESCALATED: "Case escalated to PNP",
    CASE_RESOLVED: "Blotter case closed",
}


class LifecycleNotifier:
    """
    Fans lifecycle events out to residents.

    Each event is stored as a `Notification` for the affected user (when the
    payload names one) and published to live SSE subscribers. Emission is
    fire-and-forget: failures are logged and never undo the transition that
    produced the event.
    """

    def __init__(self, db: Session, broadcaster: Optional[Broadcaster] = None):
        self.db = db
        self.broadcaster = broadcaster or default_broadcaster

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            user_id = payload.get("user_id")
            if user_id is not None:
                now = local_now()
                self.db.add(Notification(
                    user_id=user_id,
                    event=event,
                    title=EVENT_TITLES.get(event, event),
                    body=payload.get("message"),
                    request_id=payload.get("request_id"),
                    blotter_case_id=payload.get("blotter_case_id"),
                    created_at=now,
                    updated_at=now,
                ))
                self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("Failed to store notification for %s", event)

        try:
            self.broadcaster.publish_nowait({"event": event, **payload})
        except Exception:
            logger.exception("Failed to publish %s", event)
