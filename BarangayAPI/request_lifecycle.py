"""
Document request lifecycle.

Holds the rules that decide what state a document request is in: the values
derived once at submission (priority score, estimated completion, auto-archive
date), the staff/resident status transitions, pickup slot generation and the
time-driven sweep that expires lapsed pickups and archives old expirations.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional

from .constants import (
    RequestStatus,
    ProcessingStage,
    DOCUMENT_TYPES,
    DOCUMENT_PRIORITY_WEIGHTS,
    DEFAULT_PRIORITY_WEIGHT,
    URGENCY_KEYWORDS,
    URGENCY_BONUS,
    MAX_STATUS_AGE_BONUS,
    DOCUMENT_PROCESSING_DAYS,
    DEFAULT_PROCESSING_DAYS,
    MIN_PROCESSING_DAYS,
    PICKUP_TIME_SLOTS,
    AUTO_ARCHIVE_DAYS,
    ARCHIVE_AFTER_EXPIRY_DAYS,
    TERMINAL_REQUEST_STATUSES,
)
from .errors import NotFoundError, PersistenceError, StateConflictError, ValidationError
from .models import DocumentRequest, PickupSlot, RequestAutomationNote
from .notifier import REQUEST_ARCHIVED, REQUEST_EXPIRED
from .store import RequestStore
from .utils import local_now, next_weekday, weekdays_between, end_of_day, parse_slot_time, days_between

logger = logging.getLogger(__name__)

# Staff and resident transitions. Expired and Archived are only reached by the sweep.
REQUEST_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED},
    RequestStatus.APPROVED: {RequestStatus.PROCESSING, RequestStatus.REJECTED},
    RequestStatus.PROCESSING: {
        RequestStatus.READY_TO_CLAIM,
        RequestStatus.SCHEDULED_FOR_PICKUP,
        RequestStatus.REJECTED,
    },
    RequestStatus.READY_TO_CLAIM: {RequestStatus.SCHEDULED_FOR_PICKUP, RequestStatus.CLAIMED},
    RequestStatus.SCHEDULED_FOR_PICKUP: {RequestStatus.CLAIMED},
    RequestStatus.CLAIMED: set(),
    RequestStatus.REJECTED: set(),
    RequestStatus.EXPIRED: set(),
    RequestStatus.ARCHIVED: set(),
}

STAGE_FOR_STATUS = {
    RequestStatus.PENDING: ProcessingStage.SUBMITTED,
    RequestStatus.APPROVED: ProcessingStage.SUBMITTED,
    RequestStatus.PROCESSING: ProcessingStage.PROCESSING,
    RequestStatus.READY_TO_CLAIM: ProcessingStage.READY,
    RequestStatus.SCHEDULED_FOR_PICKUP: ProcessingStage.READY,
    RequestStatus.CLAIMED: ProcessingStage.READY,
}

EXPIRABLE_STATUSES = (RequestStatus.SCHEDULED_FOR_PICKUP, RequestStatus.READY_TO_CLAIM)


def days_in_current_status(request: DocumentRequest, now: datetime) -> int:
    since = request.status_changed_at or request.created_at or now
    return days_between(since, now)


def compute_priority_score(request: DocumentRequest, now: datetime) -> int:
    """
    Score how urgently a request should be handled.

    Args:
        request (DocumentRequest): The request being scored.
        now (datetime): Current local time.

    Returns:
        int: Sum of the per-document weights, plus a bonus when the purpose
        mentions an urgency keyword, plus one point per day spent in the current
        status (capped).
    """
    score = sum(DOCUMENT_PRIORITY_WEIGHTS.get(kind, DEFAULT_PRIORITY_WEIGHT) for kind in request.document_types or [])
    purpose = request.purpose or ""
    if any(keyword in purpose for keyword in URGENCY_KEYWORDS):
        score += URGENCY_BONUS
    score += min(days_in_current_status(request, now), MAX_STATUS_AGE_BONUS)
    return score


def estimate_completion(request: DocumentRequest) -> date:
    """
    Estimate the day a request's documents will be ready.

    The slowest requested document decides the number of processing days, which
    are added to the submission date; a result falling on a weekend moves to the
    following Monday.

    Args:
        request (DocumentRequest): The request; `created_at` must be set.

    Returns:
        date: The estimated completion date.
    """
    processing_days = max(
        (DOCUMENT_PROCESSING_DAYS.get(kind, DEFAULT_PROCESSING_DAYS) for kind in request.document_types or []),
        default=MIN_PROCESSING_DAYS,
    )
    processing_days = max(processing_days, MIN_PROCESSING_DAYS)
    return next_weekday(request.created_at.date() + timedelta(days=processing_days))


def compute_auto_archive_date(now: datetime) -> datetime:
    return now + timedelta(days=AUTO_ARCHIVE_DAYS)


def generate_time_slots(start_date: date, end_date: date) -> List[Dict]:
    """
    Build the bookable pickup slots for a pickup period.

    Args:
        start_date (date): First day of the period.
        end_date (date): Last day of the period (inclusive).

    Returns:
        list[dict]: One `{"date", "time", "is_available"}` entry per weekday and
        office hour, ordered by date then time.
    """
    return [
        {"date": day, "time": slot_time, "is_available": True}
        for day in weekdays_between(start_date, end_date)
        for slot_time in PICKUP_TIME_SLOTS
    ]


def should_be_expired(request: DocumentRequest, now: datetime) -> bool:
    """
    Decide whether a request's pickup window has lapsed.

    Scheduled pickups lapse once the chosen claim date and time have passed.
    Requests that are ready but unscheduled lapse after the last day of the
    staff pickup period.

    Args:
        request (DocumentRequest): The request to check.
        now (datetime): Current local time.

    Returns:
        bool: True if the request should be expired.
    """
    if request.status == RequestStatus.SCHEDULED_FOR_PICKUP:
        if request.scheduled_claim_date is None:
            return False
        try:
            claim_time = parse_slot_time(request.scheduled_claim_time)
        except ValueError:
            logger.warning(
                "Request #%s has an unreadable claim time %r; using midnight",
                request.id, request.scheduled_claim_time,
            )
            claim_time = time(0, 0)
        return now > datetime.combine(request.scheduled_claim_date, claim_time)
    if request.status == RequestStatus.READY_TO_CLAIM:
        if request.pickup_end_date is None:
            return False
        return now > end_of_day(request.pickup_end_date)
    return False


@dataclass
class SweepResult:
    expired_count: int = 0
    archived_count: int = 0
    failed_count: int = 0


class RequestLifecycleEngine:
    """
    Applies document request transitions against a `RequestStore`.

    Every mutation is a conditional update matched on the status the engine
    read, so a concurrent sweep or staff action can never apply the same
    transition twice.
    """

    def __init__(self, store: RequestStore, emitter=None, clock: Callable[[], datetime] = local_now):
        self.store = store
        self.emitter = emitter
        self.clock = clock

    @staticmethod
    def _note(request_id: Optional[int], text: str, now: datetime) -> RequestAutomationNote:
        return RequestAutomationNote(request_id=request_id, note=text, created_at=now)

    def _emit(self, event: str, payload: Dict) -> None:
        if self.emitter is None:
            return
        try:
            self.emitter.emit(event, payload)
        except Exception:
            logger.exception("Event %s could not be emitted", event)

    def get_request(self, request_id: int) -> DocumentRequest:
        request = self.store.find_by_id(request_id)
        if request is None:
            raise NotFoundError(f"Document request #{request_id} not found")
        return request

    def create_request(self, resident_id: int, document_types: List[str], purpose: str) -> DocumentRequest:
        """
        Submit a new document request.

        Priority score, estimated completion and auto-archive date are computed
        here and never recomputed afterwards.

        Args:
            resident_id (int): Requesting resident.
            document_types (list[str]): Requested document kinds.
            purpose (str): Why the documents are needed.

        Returns:
            DocumentRequest: The stored request.

        Raises:
            ValidationError: If no document type, an unknown one, or no purpose is given.
        """
        kinds = list(dict.fromkeys(document_types or []))
        if not kinds:
            raise ValidationError("At least one document type is required")
        unknown = [kind for kind in kinds if kind not in DOCUMENT_TYPES]
        if unknown:
            raise ValidationError(f"Invalid document type: {', '.join(unknown)}")
        if not purpose or not purpose.strip():
            raise ValidationError("Purpose is required")

        now = self.clock()
        request = DocumentRequest(
            resident_id=resident_id,
            document_types=kinds,
            purpose=purpose.strip(),
            status=RequestStatus.PENDING,
            processing_stage=ProcessingStage.SUBMITTED,
            is_expired=False,
            created_at=now,
            updated_at=now,
            status_changed_at=now,
        )
        request.priority_score = compute_priority_score(request, now)
        request.estimated_completion_date = estimate_completion(request)
        request.auto_archive_date = compute_auto_archive_date(now)
        request.last_automated_update = now
        request.automation_notes = [
            self._note(None, f"Priority score set to {request.priority_score}", now),
            self._note(None, f"Estimated completion on {request.estimated_completion_date:%Y-%m-%d}", now),
            self._note(None, f"Auto-archive scheduled for {request.auto_archive_date:%Y-%m-%d}", now),
        ]
        self.store.insert_one(request)
        logger.info("Document request #%s submitted by resident %s", request.id, resident_id)
        return request

    def _status_patch(self, request: DocumentRequest, new_status: RequestStatus, now: datetime, **fields):
        patch = {"status": new_status, "updated_at": now, "status_changed_at": now}
        if new_status != RequestStatus.REJECTED:
            patch["rejection_reason"] = None
        stage = STAGE_FOR_STATUS.get(new_status)
        if stage is not None:
            patch["processing_stage"] = stage
        patch.update(fields)
        notes = []
        if request.last_automated_update is not None:
            notes.append(self._note(request.id, f"Status changed to {new_status.value}", now))
        return patch, notes

    def _conflict(self, request_id: int) -> StateConflictError:
        return StateConflictError(f"Document request #{request_id} was changed by another action; reload and retry")

    def change_status(
        self,
        request_id: int,
        new_status,
        rejection_reason: Optional[str] = None,
    ) -> DocumentRequest:
        """
        Move a request to a new status on behalf of staff or the resident.

        Args:
            request_id (int): The request.
            new_status (RequestStatus | str): Target status.
            rejection_reason (str, optional): Required when rejecting.

        Returns:
            DocumentRequest: The updated request.

        Raises:
            NotFoundError: If the request does not exist.
            ValidationError: If the status is unknown or a rejection has no reason.
            StateConflictError: If the transition is not allowed from the current status.
        """
        try:
            new_status = RequestStatus(new_status)
        except ValueError:
            raise ValidationError(f"Invalid status: {new_status}")

        request = self.get_request(request_id)
        if new_status not in REQUEST_TRANSITIONS[request.status]:
            raise StateConflictError(
                f"Cannot change document request #{request_id} from {request.status.value} to {new_status.value}"
            )

        now = self.clock()
        fields = {}
        if new_status == RequestStatus.REJECTED:
            if not rejection_reason or not rejection_reason.strip():
                raise ValidationError("A rejection reason is required")
            fields["rejection_reason"] = rejection_reason.strip()
        if new_status == RequestStatus.CLAIMED:
            fields["claimed_at"] = now

        patch, notes = self._status_patch(request, new_status, now, **fields)
        if not self.store.update_one(request_id, {"status": request.status}, patch, extra=notes):
            raise self._conflict(request_id)
        logger.info("Document request #%s moved to %s", request_id, new_status.value)
        return self.get_request(request_id)

    def mark_claimed(self, request_id: int) -> DocumentRequest:
        return self.change_status(request_id, RequestStatus.CLAIMED)

    def set_pickup_period(
        self,
        request_id: int,
        start_date: date,
        end_date: date,
        notes: Optional[str] = None,
    ) -> DocumentRequest:
        """
        Set (or reset) the staff pickup period and regenerate its time slots.

        Raises:
            ValidationError: If the dates are missing, reversed, or cover no weekday.
            StateConflictError: If the request is already closed.
        """
        if start_date is None or end_date is None:
            raise ValidationError("Pickup period needs a start and an end date")
        if end_date < start_date:
            raise ValidationError("Pickup period cannot end before it starts")

        request = self.get_request(request_id)
        if request.status in TERMINAL_REQUEST_STATUSES or request.is_expired:
            raise StateConflictError(
                f"Cannot set a pickup period on a {request.status.value} document request"
            )

        slots = [
            PickupSlot(request_id=request_id, **slot)
            for slot in generate_time_slots(start_date, end_date)
        ]
        if not slots:
            raise ValidationError("Pickup period does not include any weekday")

        now = self.clock()
        patch = {
            "pickup_start_date": start_date,
            "pickup_end_date": end_date,
            "pickup_notes": notes,
            "updated_at": now,
        }
        applied = self.store.replace_pickup_slots(
            request_id,
            {"status": request.status, "is_expired": False},
            patch,
            slots,
            extra=[self._note(request_id, f"Pickup period set to {start_date:%Y-%m-%d} - {end_date:%Y-%m-%d} ({len(slots)} slots)", now)],
        )
        if not applied:
            raise self._conflict(request_id)
        return self.get_request(request_id)

    def schedule_pickup(self, request_id: int, claim_date: date, claim_time: str) -> DocumentRequest:
        """
        Book one of the generated pickup slots for a ready request.

        Raises:
            ValidationError: If the slot does not exist or is already booked.
            StateConflictError: If the request is not Ready to Claim.
        """
        request = self.get_request(request_id)
        if request.status != RequestStatus.READY_TO_CLAIM:
            raise StateConflictError(
                f"Only requests that are {RequestStatus.READY_TO_CLAIM.value} can be scheduled for pickup"
            )
        try:
            slot_time = parse_slot_time(claim_time).strftime("%H:%M")
        except ValueError:
            raise ValidationError(f"Invalid pickup time: {claim_time}")

        slot = next(
            (s for s in request.pickup_slots if s.date == claim_date and s.time == slot_time),
            None,
        )
        if slot is None:
            raise ValidationError(f"{claim_date:%Y-%m-%d} {slot_time} is not an offered pickup slot")
        if not slot.is_available:
            raise ValidationError(f"{claim_date:%Y-%m-%d} {slot_time} is already booked")

        now = self.clock()
        patch, notes = self._status_patch(
            request,
            RequestStatus.SCHEDULED_FOR_PICKUP,
            now,
            scheduled_claim_date=claim_date,
            scheduled_claim_time=slot_time,
        )
        applied = self.store.book_pickup_slot(
            request_id,
            claim_date,
            slot_time,
            {"status": RequestStatus.READY_TO_CLAIM},
            patch,
            extra=notes,
        )
        if not applied:
            raise self._conflict(request_id)
        return self.get_request(request_id)

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Expire lapsed pickups and archive requests that expired a week ago.

        Failures on one request are logged and do not stop the others.

        Args:
            now (datetime, optional): Sweep time; defaults to the engine clock.

        Returns:
            SweepResult: Counts of transitions this sweep applied.

        Raises:
            PersistenceError: If the candidate requests cannot be listed.
        """
        now = now or self.clock()
        result = SweepResult()

        expirable = [r.id for r in self.store.find_many(statuses=EXPIRABLE_STATUSES, is_expired=False)]
        for request_id in expirable:
            self._expire_one(request_id, now, result)

        archivable = [r.id for r in self.store.find_many(statuses=[RequestStatus.EXPIRED], is_expired=True)]
        for request_id in archivable:
            self._archive_one(request_id, now, result)

        logger.info(
            "Request sweep at %s: %d expired, %d archived, %d failed",
            now.isoformat(), result.expired_count, result.archived_count, result.failed_count,
        )
        return result

    def _expire_one(self, request_id: int, now: datetime, result: SweepResult) -> None:
        try:
            request = self.store.find_by_id(request_id)
            # Gone or already handled since the listing.
            if request is None or request.is_expired or request.status not in EXPIRABLE_STATUSES:
                return
            if not should_be_expired(request, now):
                return
            previous = request.status
            resident_id = request.resident_id
            patch = {
                "status": RequestStatus.EXPIRED,
                "is_expired": True,
                "expiration_date": now,
                "rejection_reason": None,
                "updated_at": now,
                "status_changed_at": now,
                "last_automated_update": now,
            }
            note = self._note(request_id, f"Automatically expired: pickup window lapsed while {previous.value}", now)
            applied = self.store.update_one(
                request_id, {"status": previous, "is_expired": False}, patch, extra=[note]
            )
        except PersistenceError:
            result.failed_count += 1
            logger.exception("Could not expire document request #%s", request_id)
            return

        if applied:
            result.expired_count += 1
            self._emit(REQUEST_EXPIRED, {
                "request_id": request_id,
                "user_id": resident_id,
                "status": RequestStatus.EXPIRED.value,
                "message": f"Your document request #{request_id} expired because it was not claimed in time.",
            })

    def _archive_one(self, request_id: int, now: datetime, result: SweepResult) -> None:
        try:
            request = self.store.find_by_id(request_id)
            if request is None or not request.is_expired or request.status != RequestStatus.EXPIRED:
                return
            expired_at = request.expiration_date or request.updated_at
            if expired_at is None or now - expired_at < timedelta(days=ARCHIVE_AFTER_EXPIRY_DAYS):
                return
            resident_id = request.resident_id
            patch = {
                "status": RequestStatus.ARCHIVED,
                "updated_at": now,
                "status_changed_at": now,
                "last_automated_update": now,
            }
            note = self._note(request_id, f"Automatically archived {ARCHIVE_AFTER_EXPIRY_DAYS} days after expiring", now)
            applied = self.store.update_one(
                request_id, {"status": RequestStatus.EXPIRED, "is_expired": True}, patch, extra=[note]
            )
        except PersistenceError:
            result.failed_count += 1
            logger.exception("Could not archive document request #%s", request_id)
            return

        if applied:
            result.archived_count += 1
            self._emit(REQUEST_ARCHIVED, {
                "request_id": request_id,
                "user_id": resident_id,
                "status": RequestStatus.ARCHIVED.value,
                "message": f"Your expired document request #{request_id} has been archived.",
            })
