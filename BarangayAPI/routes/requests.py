from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import schemas
from ..auth import get_current_user, require_staff, ensure_owner_or_staff
from ..constants import RequestStatus
from ..database import get_db
from ..models import DocumentRequest, User
from ..notifier import LifecycleNotifier
from ..request_lifecycle import RequestLifecycleEngine
from ..scheduler import scheduler
from ..store import RequestStore

router = APIRouter()


def get_request_engine(db: Session = Depends(get_db)) -> RequestLifecycleEngine:
    return RequestLifecycleEngine(RequestStore(db), emitter=LifecycleNotifier(db))


@router.post("/requests/", response_model=schemas.DocumentRequestResponse, status_code=status.HTTP_201_CREATED)
def create_request(
    payload: schemas.DocumentRequestCreate,
    engine: RequestLifecycleEngine = Depends(get_request_engine),
    user: User = Depends(get_current_user),
):
    """
    Submit a document request for the current resident.

    Args:
        payload (DocumentRequestCreate): Requested documents and purpose.
        engine (RequestLifecycleEngine): The request engine.
        user (User): The authenticated resident.

    Returns:
        DocumentRequestResponse: The created request with its computed priority and dates.
    """
    return engine.create_request(user.id, payload.document_types, payload.purpose)


@router.get("/requests/", response_model=List[schemas.DocumentRequestResponse])
def list_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    List document requests. Staff see every request, residents only their own.
    Results are ordered by priority score, highest first.
    """
    q = db.query(DocumentRequest)
    if not user.is_staff:
        q = q.filter(DocumentRequest.resident_id == user.id)
    if status_filter is not None:
        q = q.filter(DocumentRequest.status == status_filter)
    return (
        q.order_by(DocumentRequest.priority_score.desc(), DocumentRequest.created_at)
        .offset(skip)
        .limit(limit)
        .all()
    )


@router.post("/requests/sweep", response_model=schemas.HousekeepingResponse)
def run_sweep(user: User = Depends(require_staff)):
    """Run the expiry/archival sweep now instead of waiting for the hourly run."""
    return scheduler.run_now().as_dict()


@router.get("/requests/{request_id}", response_model=schemas.DocumentRequestResponse)
def read_request(
    request_id: int,
    engine: RequestLifecycleEngine = Depends(get_request_engine),
    user: User = Depends(get_current_user),
):
    request = engine.get_request(request_id)
    ensure_owner_or_staff(user, request.resident_id)
    return request


@router.put("/requests/{request_id}/status", response_model=schemas.DocumentRequestResponse)
def update_request_status(
    request_id: int,
    payload: schemas.RequestStatusUpdate,
    engine: RequestLifecycleEngine = Depends(get_request_engine),
    user: User = Depends(require_staff),
):
    """
    Move a request along its lifecycle (approve, process, ready, reject...).

    Raises:
        HTTPException: 400 for a missing rejection reason, 409 for a transition
        the current status does not allow.
    """
    return engine.change_status(request_id, payload.status, payload.rejection_reason)


@router.put("/requests/{request_id}/pickup-period", response_model=schemas.DocumentRequestResponse)
def set_pickup_period(
    request_id: int,
    payload: schemas.PickupPeriodUpdate,
    engine: RequestLifecycleEngine = Depends(get_request_engine),
    user: User = Depends(require_staff),
):
    return engine.set_pickup_period(request_id, payload.start_date, payload.end_date, payload.notes)


@router.get("/requests/{request_id}/slots", response_model=List[schemas.PickupSlotResponse])
def list_pickup_slots(
    request_id: int,
    available_only: bool = False,
    engine: RequestLifecycleEngine = Depends(get_request_engine),
    user: User = Depends(get_current_user),
):
    request = engine.get_request(request_id)
    ensure_owner_or_staff(user, request.resident_id)
    slots = request.pickup_slots
    if available_only:
        slots = [slot for slot in slots if slot.is_available]
    return slots


@router.post("/requests/{request_id}/schedule", response_model=schemas.DocumentRequestResponse)
def schedule_pickup(
    request_id: int,
    payload: schemas.PickupScheduleRequest,
    engine: RequestLifecycleEngine = Depends(get_request_engine),
    user: User = Depends(get_current_user),
):
    """Book one of the offered pickup slots for a ready request."""
    request = engine.get_request(request_id)
    ensure_owner_or_staff(user, request.resident_id)
    return engine.schedule_pickup(request_id, payload.claim_date, payload.claim_time)


@router.post("/requests/{request_id}/claim", response_model=schemas.DocumentRequestResponse)
def claim_request(
    request_id: int,
    engine: RequestLifecycleEngine = Depends(get_request_engine),
    user: User = Depends(get_current_user),
):
    request = engine.get_request(request_id)
    ensure_owner_or_staff(user, request.resident_id)
    return engine.mark_claimed(request_id)
