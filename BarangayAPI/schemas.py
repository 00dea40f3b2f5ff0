from pydantic import BaseModel, validator, Field
from typing import Optional, List
from datetime import datetime, date

from .constants import (
    DOCUMENT_TYPES,
    RequestStatus,
    ProcessingStage,
    BlotterStatus,
    MeetingStatus,
    CaseDocumentType,
)


# Document requests
class DocumentRequestCreate(BaseModel):
    document_types: List[str]
    purpose: str

    @validator('document_types')
    def validate_document_types(cls, value):
        if not value:
            raise ValueError("At least one document type is required")
        for kind in value:
            if kind not in DOCUMENT_TYPES:
                raise ValueError(f"Invalid document type: {kind}")
        return value


class RequestStatusUpdate(BaseModel):
    status: RequestStatus
    rejection_reason: Optional[str] = None


class PickupPeriodUpdate(BaseModel):
    start_date: date
    end_date: date
    notes: Optional[str] = None


class PickupScheduleRequest(BaseModel):
    claim_date: date
    claim_time: str


class PickupSlotResponse(BaseModel):
    date: date
    time: str
    is_available: bool

    class Config:
        from_attributes = True


class AutomationNoteResponse(BaseModel):
    note: str
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentRequestResponse(BaseModel):
    id: int
    resident_id: int
    document_types: List[str]
    purpose: str
    status: RequestStatus
    rejection_reason: Optional[str] = None
    processing_stage: ProcessingStage
    pickup_start_date: Optional[date] = None
    pickup_end_date: Optional[date] = None
    pickup_notes: Optional[str] = None
    scheduled_claim_date: Optional[date] = None
    scheduled_claim_time: Optional[str] = None
    priority_score: int
    estimated_completion_date: Optional[date] = None
    auto_archive_date: Optional[datetime] = None
    is_expired: bool
    expiration_date: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    pickup_slots: List[PickupSlotResponse] = Field(default_factory=list)
    automation_notes: List[AutomationNoteResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class HousekeepingResponse(BaseModel):
    expired_count: int
    archived_count: int
    failed_count: int
    rejected_purged: int
    announcements_purged: int


# Blotter cases
class BlotterCaseCreate(BaseModel):
    accused_name: str
    accused_address: Optional[str] = None
    accused_contact: Optional[str] = None
    accused_resident_id: Optional[int] = None
    incident_date: datetime
    date_reported: Optional[datetime] = None
    location: Optional[str] = None
    complaint_type: str
    complaint_details: Optional[str] = None


class MeetingCreate(BaseModel):
    meeting_number: Optional[int] = None
    date: datetime
    location: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    discussion: Optional[str] = None
    agreements: Optional[str] = None
    next_steps: Optional[str] = None
    status: MeetingStatus = MeetingStatus.SCHEDULED


class MeetingResponse(MeetingCreate):
    id: int
    meeting_number: int

    class Config:
        from_attributes = True


class ContactAttemptCreate(BaseModel):
    method: str
    successful: bool = False
    notes: Optional[str] = None


class ContactAttemptResponse(ContactAttemptCreate):
    id: int
    date: datetime

    class Config:
        from_attributes = True


class CaseDocumentResponse(BaseModel):
    document_type: CaseDocumentType
    generated_at: datetime
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class CfaIssueRequest(BaseModel):
    reason: Optional[str] = None


class CaseEscalateRequest(BaseModel):
    resolution_details: str


class CaseResolveRequest(BaseModel):
    outcome: BlotterStatus
    resolution_details: str


class BlotterCaseResponse(BaseModel):
    id: int
    case_number: str
    complainant_id: int
    accused_name: str
    accused_address: Optional[str] = None
    accused_contact: Optional[str] = None
    accused_resident_id: Optional[int] = None
    incident_date: datetime
    date_reported: datetime
    location: Optional[str] = None
    complaint_type: str
    complaint_details: Optional[str] = None
    status: BlotterStatus
    current_meeting: int
    cfa_issued: bool
    cfa_issue_date: Optional[datetime] = None
    cfa_reason: Optional[str] = None
    resolution_details: Optional[str] = None
    resolved_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    meetings: List[MeetingResponse] = Field(default_factory=list)
    contact_history: List[ContactAttemptResponse] = Field(default_factory=list)
    document_history: List[CaseDocumentResponse] = Field(default_factory=list)
    # Derived at read time
    can_schedule_next_meeting: bool = False
    is_ready_for_cfa: bool = False
    is_overdue: bool = False
    consecutive_failed_attempts: int = 0

    class Config:
        from_attributes = True


# Announcements
class AnnouncementCreate(BaseModel):
    title: str
    content: str
    image_url: Optional[str] = None


class AnnouncementResponse(AnnouncementCreate):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True


# Notifications
class NotificationResponse(BaseModel):
    id: int
    user_id: int
    event: str
    title: Optional[str] = None
    body: Optional[str] = None
    request_id: Optional[int] = None
    blotter_case_id: Optional[int] = None
    read: bool = False
    created_at: datetime

    class Config:
        from_attributes = True
