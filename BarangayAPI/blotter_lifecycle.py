"""
Blotter case lifecycle.

Gates the mediation workflow of a blotter case: up to three meetings while the
case is under investigation, then either a Certification to File Action (CFA),
escalation to the PNP, or a resolution/dismissal.
"""

import logging
import math
from datetime import datetime
from typing import Callable, Dict, Optional

from .constants import (
    BlotterStatus,
    MeetingStatus,
    CaseDocumentType,
    MAX_MEETINGS,
    OVERDUE_AFTER_DAYS,
    FAILED_CONTACT_THRESHOLD,
    TERMINAL_BLOTTER_STATUSES,
)
from .errors import NotFoundError, StateConflictError, ValidationError
from .models import BlotterCase, BlotterMeeting, ContactAttempt, CaseDocument
from .notifier import MEETING_RECORDED, CFA_ISSUED, CASE_ESCALATED, CASE_RESOLVED
from .store import BlotterStore
from .utils import local_now

logger = logging.getLogger(__name__)

BLOTTER_TRANSITIONS = {
    BlotterStatus.PENDING: {
        BlotterStatus.UNDER_INVESTIGATION,
        BlotterStatus.DISMISSED,
        BlotterStatus.ESCALATED_TO_PNP,
    },
    BlotterStatus.UNDER_INVESTIGATION: {
        BlotterStatus.RESOLVED,
        BlotterStatus.DISMISSED,
        BlotterStatus.ESCALATED_TO_PNP,
    },
    # Never assigned by this engine; rows carrying it behave like an open investigation.
    BlotterStatus.CFA_ISSUED: {
        BlotterStatus.RESOLVED,
        BlotterStatus.DISMISSED,
        BlotterStatus.ESCALATED_TO_PNP,
    },
    **{status: set() for status in TERMINAL_BLOTTER_STATUSES},
}

OPEN_STATUSES = (BlotterStatus.PENDING, BlotterStatus.UNDER_INVESTIGATION)
SECONDS_PER_DAY = 24 * 60 * 60


def can_schedule_next_meeting(case: BlotterCase) -> bool:
    return case.current_meeting < MAX_MEETINGS and case.status == BlotterStatus.UNDER_INVESTIGATION


def is_ready_for_cfa(case: BlotterCase) -> bool:
    return (
        case.current_meeting >= MAX_MEETINGS
        and case.status == BlotterStatus.UNDER_INVESTIGATION
        and not case.cfa_issued
    )


def case_age_in_days(case: BlotterCase, now: datetime) -> int:
    """Days since the case was reported, rounded up (any started day counts)."""
    return math.ceil(abs((now - case.date_reported).total_seconds()) / SECONDS_PER_DAY)


def is_overdue(case: BlotterCase, now: datetime) -> bool:
    return case_age_in_days(case, now) > OVERDUE_AFTER_DAYS and case.status in OPEN_STATUSES


def consecutive_failed_attempts(case: BlotterCase) -> int:
    """Number of failed contact attempts since the last successful one."""
    count = 0
    for attempt in reversed(case.contact_history):
        if attempt.successful:
            break
        count += 1
    return count


def cfa_reason_for(case: BlotterCase) -> str:
    """Default reason printed on a CFA when staff do not supply one."""
    if consecutive_failed_attempts(case) >= FAILED_CONTACT_THRESHOLD:
        return f"Failure to respond after {FAILED_CONTACT_THRESHOLD}+ failed attempts"
    if case.status == BlotterStatus.ESCALATED_TO_PNP:
        return "Case requires police intervention"
    return "Failure to settle amicably during mediation"


class BlotterLifecycleEngine:
    """Applies blotter case transitions against a `BlotterStore`."""

    def __init__(self, store: BlotterStore, emitter=None, clock: Callable[[], datetime] = local_now):
        self.store = store
        self.emitter = emitter
        self.clock = clock

    def _emit(self, event: str, case: BlotterCase, message: str) -> None:
        if self.emitter is None:
            return
        payload = {
            "blotter_case_id": case.id,
            "case_number": case.case_number,
            "user_id": case.complainant_id,
            "status": case.status.value,
            "message": message,
        }
        try:
            self.emitter.emit(event, payload)
        except Exception:
            logger.exception("Event %s could not be emitted", event)

    def _conflict(self, case_id: int) -> StateConflictError:
        return StateConflictError(f"Blotter case #{case_id} was changed by another action; reload and retry")

    def get_case(self, case_id: int) -> BlotterCase:
        case = self.store.find_by_id(case_id)
        if case is None:
            raise NotFoundError(f"Blotter case #{case_id} not found")
        return case

    def file_case(self, complainant_id: int, data: Dict) -> BlotterCase:
        """
        File a new blotter case in Pending status.

        Args:
            complainant_id (int): The resident filing the complaint.
            data (dict): Accused details, incident date, location, complaint type and details.

        Returns:
            BlotterCase: The stored case.

        Raises:
            ValidationError: If the accused name, incident date or complaint type is missing.
        """
        for field in ("accused_name", "incident_date", "complaint_type"):
            if not data.get(field):
                raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required")

        now = self.clock()
        case = BlotterCase(
            complainant_id=complainant_id,
            accused_name=data["accused_name"],
            accused_address=data.get("accused_address"),
            accused_contact=data.get("accused_contact"),
            accused_resident_id=data.get("accused_resident_id"),
            incident_date=data["incident_date"],
            date_reported=data.get("date_reported") or now,
            location=data.get("location"),
            complaint_type=data["complaint_type"],
            complaint_details=data.get("complaint_details"),
            status=BlotterStatus.PENDING,
            current_meeting=0,
            cfa_issued=False,
            created_at=now,
            updated_at=now,
        )
        self.store.insert_one(case)
        logger.info("Blotter case %s filed by resident %s", case.case_number, complainant_id)
        return case

    def _transition(self, case: BlotterCase, new_status: BlotterStatus, now: datetime, extra=(), **fields) -> BlotterCase:
        if new_status not in BLOTTER_TRANSITIONS[case.status]:
            raise StateConflictError(
                f"Cannot move blotter case {case.case_number} from {case.status.value} to {new_status.value}"
            )
        patch = {"status": new_status, "updated_at": now}
        patch.update(fields)
        if not self.store.update_one(case.id, {"status": case.status}, patch, extra=extra):
            raise self._conflict(case.id)
        logger.info("Blotter case %s moved to %s", case.case_number, new_status.value)
        return self.get_case(case.id)

    def start_investigation(self, case_id: int) -> BlotterCase:
        case = self.get_case(case_id)
        now = self.clock()
        summons = CaseDocument(case_id=case_id, document_type=CaseDocumentType.SUMMONS, generated_at=now)
        return self._transition(case, BlotterStatus.UNDER_INVESTIGATION, now, extra=[summons])

    def record_meeting(self, case_id: int, meeting_data: Dict) -> BlotterCase:
        """
        Record the next mediation meeting of a case under investigation.

        Args:
            case_id (int): The case.
            meeting_data (dict): meeting_number (optional, must be the next one),
                date, location, attendees, discussion, agreements, next_steps, status.

        Returns:
            BlotterCase: The updated case.

        Raises:
            StateConflictError: If the case is not under investigation.
            ValidationError: If the meeting number is out of sequence or beyond the
                third meeting, or the date/status is missing or invalid.
        """
        case = self.get_case(case_id)
        if case.status != BlotterStatus.UNDER_INVESTIGATION:
            raise StateConflictError(
                f"Meetings can only be recorded while a case is {BlotterStatus.UNDER_INVESTIGATION.value}"
            )
        expected = case.current_meeting + 1
        number = meeting_data.get("meeting_number")
        if number is None:
            number = expected
        if not can_schedule_next_meeting(case) or number > MAX_MEETINGS:
            raise ValidationError(f"A case can have at most {MAX_MEETINGS} mediation meetings")
        if number != expected:
            raise ValidationError(f"Next meeting must be meeting {expected}, not {number}")
        if not meeting_data.get("date"):
            raise ValidationError("Meeting date is required")
        try:
            meeting_status = MeetingStatus(meeting_data.get("status") or MeetingStatus.SCHEDULED)
        except ValueError:
            raise ValidationError(f"Invalid meeting status: {meeting_data.get('status')}")

        now = self.clock()
        meeting = BlotterMeeting(
            case_id=case_id,
            meeting_number=number,
            date=meeting_data["date"],
            location=meeting_data.get("location"),
            attendees=list(meeting_data.get("attendees") or []),
            discussion=meeting_data.get("discussion"),
            agreements=meeting_data.get("agreements"),
            next_steps=meeting_data.get("next_steps"),
            status=meeting_status,
            created_at=now,
        )
        notice = CaseDocument(
            case_id=case_id,
            document_type=CaseDocumentType.MEDIATION,
            generated_at=now,
            notes=f"Meeting {number}",
        )
        applied = self.store.update_one(
            case_id,
            {"status": BlotterStatus.UNDER_INVESTIGATION, "current_meeting": case.current_meeting},
            {"current_meeting": number, "updated_at": now},
            extra=[meeting, notice],
        )
        if not applied:
            raise self._conflict(case_id)
        case = self.get_case(case_id)
        self._emit(MEETING_RECORDED, case, f"Mediation meeting {number} for case {case.case_number} has been recorded.")
        return case

    def record_contact_attempt(
        self,
        case_id: int,
        method: str,
        successful: bool,
        notes: Optional[str] = None,
    ) -> BlotterCase:
        """
        Log an attempt to reach the respondent. The number of attempts is not capped here.
        """
        if not method or not method.strip():
            raise ValidationError("Contact method is required")
        case = self.get_case(case_id)
        now = self.clock()
        attempt = ContactAttempt(case_id=case_id, date=now, method=method.strip(), notes=notes, successful=bool(successful))
        if not self.store.update_one(case.id, {}, {"updated_at": now}, extra=[attempt]):
            raise NotFoundError(f"Blotter case #{case_id} not found")
        return self.get_case(case_id)

    def issue_cfa(self, case_id: int, reason: Optional[str] = None) -> BlotterCase:
        """
        Issue a Certification to File Action after mediation is exhausted.

        The case status is left as is; only the CFA fields are set.

        Raises:
            StateConflictError: If the case is not ready for a CFA (fewer than three
                meetings, not under investigation, or a CFA was already issued).
        """
        case = self.get_case(case_id)
        if not is_ready_for_cfa(case):
            if case.cfa_issued:
                detail = "a CFA has already been issued"
            elif case.status != BlotterStatus.UNDER_INVESTIGATION:
                detail = f"the case is {case.status.value}"
            else:
                detail = f"only {case.current_meeting} of {MAX_MEETINGS} meetings have been held"
            raise StateConflictError(f"Cannot issue a CFA for case {case.case_number}: {detail}")

        now = self.clock()
        cfa_reason = (reason or "").strip() or cfa_reason_for(case)
        record = CaseDocument(case_id=case_id, document_type=CaseDocumentType.CFA, generated_at=now, notes=cfa_reason)
        applied = self.store.update_one(
            case_id,
            {
                "status": BlotterStatus.UNDER_INVESTIGATION,
                "cfa_issued": False,
                "current_meeting": case.current_meeting,
            },
            {"cfa_issued": True, "cfa_issue_date": now, "cfa_reason": cfa_reason, "updated_at": now},
            extra=[record],
        )
        if not applied:
            raise self._conflict(case_id)
        case = self.get_case(case_id)
        logger.info("CFA issued for blotter case %s", case.case_number)
        self._emit(CFA_ISSUED, case, f"A Certification to File Action was issued for case {case.case_number}.")
        return case

    def escalate(self, case_id: int, resolution_details: str) -> BlotterCase:
        if not resolution_details or not resolution_details.strip():
            raise ValidationError("Resolution details are required")
        case = self.get_case(case_id)
        now = self.clock()
        case = self._transition(
            case,
            BlotterStatus.ESCALATED_TO_PNP,
            now,
            resolution_details=resolution_details.strip(),
            resolved_date=now,
        )
        self._emit(CASE_ESCALATED, case, f"Case {case.case_number} has been escalated to the PNP.")
        return case

    def resolve(self, case_id: int, outcome, resolution_details: str) -> BlotterCase:
        """
        Close a case as Resolved or Dismissed.

        Raises:
            ValidationError: If the outcome is not Resolved/Dismissed or details are missing.
            StateConflictError: If the state machine does not allow the outcome.
        """
        try:
            outcome = BlotterStatus(outcome)
        except ValueError:
            raise ValidationError(f"Invalid outcome: {outcome}")
        if outcome not in (BlotterStatus.RESOLVED, BlotterStatus.DISMISSED):
            raise ValidationError("Outcome must be Resolved or Dismissed")
        if not resolution_details or not resolution_details.strip():
            raise ValidationError("Resolution details are required")

        case = self.get_case(case_id)
        now = self.clock()
        details = resolution_details.strip()
        extra = []
        if outcome == BlotterStatus.RESOLVED and "amicably" in details:
            extra.append(CaseDocument(case_id=case_id, document_type=CaseDocumentType.SETTLEMENT, generated_at=now))
        case = self._transition(case, outcome, now, extra=extra, resolution_details=details, resolved_date=now)
        self._emit(CASE_RESOLVED, case, f"Case {case.case_number} has been {outcome.value.lower()}.")
        return case
