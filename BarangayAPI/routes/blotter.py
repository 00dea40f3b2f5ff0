from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import schemas
from ..auth import get_current_user, require_staff, ensure_owner_or_staff
from ..blotter_lifecycle import (
    BlotterLifecycleEngine,
    can_schedule_next_meeting,
    is_ready_for_cfa,
    is_overdue,
    consecutive_failed_attempts,
)
from ..constants import BlotterStatus
from ..database import get_db
from ..models import BlotterCase, User
from ..notifier import LifecycleNotifier
from ..store import BlotterStore
from ..utils import local_now

router = APIRouter()


def get_blotter_engine(db: Session = Depends(get_db)) -> BlotterLifecycleEngine:
    return BlotterLifecycleEngine(BlotterStore(db), emitter=LifecycleNotifier(db))


def _case_response(case: BlotterCase, now=None) -> schemas.BlotterCaseResponse:
    """Serialize a case together with the predicates staff use to decide the next step."""
    now = now or local_now()
    response = schemas.BlotterCaseResponse.model_validate(case)
    response.can_schedule_next_meeting = can_schedule_next_meeting(case)
    response.is_ready_for_cfa = is_ready_for_cfa(case)
    response.is_overdue = is_overdue(case, now)
    response.consecutive_failed_attempts = consecutive_failed_attempts(case)
    return response


@router.post("/blotter/", response_model=schemas.BlotterCaseResponse, status_code=status.HTTP_201_CREATED)
def file_case(
    payload: schemas.BlotterCaseCreate,
    engine: BlotterLifecycleEngine = Depends(get_blotter_engine),
    user: User = Depends(get_current_user),
):
    """
    File a blotter case with the current user as complainant.

    Args:
        payload (BlotterCaseCreate): Respondent and incident details.
        engine (BlotterLifecycleEngine): The blotter engine.
        user (User): The authenticated complainant.

    Returns:
        BlotterCaseResponse: The new Pending case.
    """
    case = engine.file_case(user.id, payload.model_dump())
    return _case_response(case)


@router.get("/blotter/", response_model=List[schemas.BlotterCaseResponse])
def list_cases(
    status_filter: Optional[BlotterStatus] = Query(None, alias="status"),
    overdue: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    List blotter cases, newest first. Residents only see cases they filed.

    `overdue=true` keeps only open cases reported more than a week ago.
    """
    q = db.query(BlotterCase)
    if not user.is_staff:
        q = q.filter(BlotterCase.complainant_id == user.id)
    if status_filter is not None:
        q = q.filter(BlotterCase.status == status_filter)
    cases = q.order_by(BlotterCase.date_reported.desc()).all()
    now = local_now()
    if overdue:
        cases = [case for case in cases if is_overdue(case, now)]
    return [_case_response(case, now) for case in cases[skip:skip + limit]]


@router.get("/blotter/{case_id}", response_model=schemas.BlotterCaseResponse)
def read_case(
    case_id: int,
    engine: BlotterLifecycleEngine = Depends(get_blotter_engine),
    user: User = Depends(get_current_user),
):
    case = engine.get_case(case_id)
    ensure_owner_or_staff(user, case.complainant_id)
    return _case_response(case)


@router.post("/blotter/{case_id}/investigate", response_model=schemas.BlotterCaseResponse)
def start_investigation(
    case_id: int,
    engine: BlotterLifecycleEngine = Depends(get_blotter_engine),
    user: User = Depends(require_staff),
):
    """Open the investigation of a Pending case and record the summons."""
    return _case_response(engine.start_investigation(case_id))


@router.post("/blotter/{case_id}/meetings", response_model=schemas.BlotterCaseResponse)
def record_meeting(
    case_id: int,
    payload: schemas.MeetingCreate,
    engine: BlotterLifecycleEngine = Depends(get_blotter_engine),
    user: User = Depends(require_staff),
):
    """
    Record the next mediation meeting.

    Raises:
        HTTPException: 409 if the case is not under investigation, 400 if the
        meeting is out of sequence or a fourth meeting is attempted.
    """
    return _case_response(engine.record_meeting(case_id, payload.model_dump()))


@router.post("/blotter/{case_id}/contact-attempts", response_model=schemas.BlotterCaseResponse)
def record_contact_attempt(
    case_id: int,
    payload: schemas.ContactAttemptCreate,
    engine: BlotterLifecycleEngine = Depends(get_blotter_engine),
    user: User = Depends(require_staff),
):
    case = engine.record_contact_attempt(case_id, payload.method, payload.successful, payload.notes)
    return _case_response(case)


@router.post("/blotter/{case_id}/cfa", response_model=schemas.BlotterCaseResponse)
def issue_cfa(
    case_id: int,
    payload: schemas.CfaIssueRequest,
    engine: BlotterLifecycleEngine = Depends(get_blotter_engine),
    user: User = Depends(require_staff),
):
    """Issue a Certification to File Action once all three meetings have been held."""
    return _case_response(engine.issue_cfa(case_id, payload.reason))


@router.post("/blotter/{case_id}/escalate", response_model=schemas.BlotterCaseResponse)
def escalate_case(
    case_id: int,
    payload: schemas.CaseEscalateRequest,
    engine: BlotterLifecycleEngine = Depends(get_blotter_engine),
    user: User = Depends(require_staff),
):
    return _case_response(engine.escalate(case_id, payload.resolution_details))


@router.post("/blotter/{case_id}/resolve", response_model=schemas.BlotterCaseResponse)
def resolve_case(
    case_id: int,
    payload: schemas.CaseResolveRequest,
    engine: BlotterLifecycleEngine = Depends(get_blotter_engine),
    user: User = Depends(require_staff),
):
    """Close a case as Resolved or Dismissed."""
    return _case_response(engine.resolve(case_id, payload.outcome, payload.resolution_details))
