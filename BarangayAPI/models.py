from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey, Text, BigInteger, JSON, Enum, UniqueConstraint, func
from sqlalchemy.orm import relationship
from sqlalchemy.ext.declarative import declarative_base

from .constants import (
    RequestStatus,
    ProcessingStage,
    BlotterStatus,
    MeetingStatus,
    CaseDocumentType,
)


Base = declarative_base()

# SQLite only auto-increments INTEGER primary keys.
IdType = BigInteger().with_variant(Integer, "sqlite")


def _enum_column(enum_cls, **kwargs):
    """Persist a closed status enum by its human-readable value."""
    return Column(
        Enum(
            enum_cls,
            native_enum=False,
            length=32,
            validate_strings=True,
            values_callable=lambda members: [m.value for m in members],
        ),
        **kwargs,
    )


# Users (residents and barangay staff)
class User(Base):
    """
    Represents a resident or a member of the barangay staff.

    Attributes:
        id (int): Primary key.
        full_name (str): Resident's full name.
        email (str): Email address.
        address (str): Home address within the barangay.
        role (int): 0 for residents, 3 for staff/administrators.
        approved (bool): Whether the resident's registration has been approved.
        created_at (datetime): Creation timestamp.
        updated_at (datetime): Update timestamp.
    """
    __tablename__ = "users"

    id = Column(IdType, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    address = Column(String)
    role = Column(Integer, default=0, nullable=False)
    approved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_staff(self) -> bool:
        return (self.role or 0) >= 3


# Document requests
class DocumentRequest(Base):
    """
    Represents a resident's request for barangay documents.

    Attributes:
        id (int): Primary key.
        resident_id (int): Foreign key to the User table (requesting resident).
        document_types (list[str]): Requested document kinds.
        purpose (str): Free-text purpose, inspected for urgency keywords.
        status (RequestStatus): Lifecycle status.
        rejection_reason (str): Reason given while the request is Rejected.
        processing_stage (ProcessingStage): Submitted, Processing or Ready.
        pickup_start_date (date): First day of the staff pickup period.
        pickup_end_date (date): Last day of the staff pickup period.
        pickup_notes (str): Staff notes for the pickup period.
        scheduled_claim_date (date): Day chosen by the resident.
        scheduled_claim_time (str): Time slot ("HH:MM") chosen by the resident.
        priority_score (int): Urgency score computed at creation.
        estimated_completion_date (date): Expected ready date computed at creation.
        auto_archive_date (datetime): Archive date computed at creation.
        is_expired (bool): Set when the pickup window lapses.
        expiration_date (datetime): When the request expired.
        last_automated_update (datetime): Last time automation touched the request.
        status_changed_at (datetime): When the current status was entered.
        claimed_at (datetime): When the documents were claimed.
        created_at (datetime): Creation timestamp.
        updated_at (datetime): Update timestamp.
    """
    __tablename__ = "document_requests"

    id = Column(IdType, primary_key=True, index=True)
    resident_id = Column(IdType, ForeignKey('users.id'), nullable=False, index=True)
    document_types = Column(JSON, nullable=False)
    purpose = Column(Text, nullable=False)
    status = _enum_column(RequestStatus, default=RequestStatus.PENDING, nullable=False, index=True)
    rejection_reason = Column(Text)
    processing_stage = _enum_column(ProcessingStage, default=ProcessingStage.SUBMITTED, nullable=False)

    pickup_start_date = Column(Date)
    pickup_end_date = Column(Date)
    pickup_notes = Column(Text)

    scheduled_claim_date = Column(Date)
    scheduled_claim_time = Column(String(5))

    priority_score = Column(Integer, default=0, nullable=False)
    estimated_completion_date = Column(Date)
    auto_archive_date = Column(DateTime)
    is_expired = Column(Boolean, default=False, nullable=False, index=True)
    expiration_date = Column(DateTime)
    last_automated_update = Column(DateTime)
    status_changed_at = Column(DateTime)
    claimed_at = Column(DateTime)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    resident = relationship("User", backref="document_requests")
    pickup_slots = relationship(
        "PickupSlot",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="PickupSlot.id",
    )
    automation_notes = relationship(
        "RequestAutomationNote",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="RequestAutomationNote.id",
    )


class PickupSlot(Base):
    """
    A bookable pickup time slot generated from a request's pickup period.

    Attributes:
        id (int): Primary key.
        request_id (int): Foreign key to the DocumentRequest table.
        date (date): Slot day.
        time (str): Slot time ("HH:MM").
        is_available (bool): False once a resident has booked it.
    """
    __tablename__ = "pickup_slots"

    id = Column(IdType, primary_key=True, index=True)
    request_id = Column(IdType, ForeignKey('document_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    request = relationship("DocumentRequest", back_populates="pickup_slots")
    __table_args__ = (
        UniqueConstraint('request_id', 'date', 'time', name='uq_pickup_slots_request_date_time'),
    )


class RequestAutomationNote(Base):
    """Append-only audit line written whenever automation or a status change touches a request."""
    __tablename__ = "request_automation_notes"

    id = Column(IdType, primary_key=True, index=True)
    request_id = Column(IdType, ForeignKey('document_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    note = Column(Text, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    request = relationship("DocumentRequest", back_populates="automation_notes")


# Blotter cases
class BlotterCase(Base):
    """
    Represents a filed dispute subject to barangay mediation.

    Attributes:
        id (int): Primary key.
        complainant_id (int): Foreign key to the User table.
        accused_name (str): Name of the respondent.
        accused_address (str): Respondent's address.
        accused_contact (str): Respondent's contact number.
        accused_resident_id (int): Respondent's user record, when registered.
        incident_date (datetime): When the incident happened.
        date_reported (datetime): When the case was filed.
        location (str): Incident location.
        complaint_type (str): Category of complaint.
        complaint_details (str): Narrative of the complaint.
        status (BlotterStatus): Lifecycle status.
        current_meeting (int): Number of mediation meetings recorded (0-3).
        cfa_issued (bool): Whether a Certification to File Action was issued.
        cfa_issue_date (datetime): When the CFA was issued.
        cfa_reason (str): Reason printed on the CFA.
        resolution_details (str): Outcome narrative.
        resolved_date (datetime): When the case reached a terminal status.
        meetings (list[BlotterMeeting]): Mediation meetings.
        contact_history (list[ContactAttempt]): Attempts to reach the respondent.
        document_history (list[CaseDocument]): Documents generated for the case.
    """
    __tablename__ = "blotter_cases"

    id = Column(IdType, primary_key=True, index=True)
    complainant_id = Column(IdType, ForeignKey('users.id'), nullable=False, index=True)
    accused_name = Column(String, nullable=False)
    accused_address = Column(String)
    accused_contact = Column(String)
    accused_resident_id = Column(IdType, ForeignKey('users.id'))
    incident_date = Column(DateTime, nullable=False)
    date_reported = Column(DateTime, default=func.now(), nullable=False)
    location = Column(String)
    complaint_type = Column(String, nullable=False)
    complaint_details = Column(Text)
    status = _enum_column(BlotterStatus, default=BlotterStatus.PENDING, nullable=False, index=True)
    current_meeting = Column(Integer, default=0, nullable=False)
    cfa_issued = Column(Boolean, default=False, nullable=False)
    cfa_issue_date = Column(DateTime)
    cfa_reason = Column(Text)
    resolution_details = Column(Text)
    resolved_date = Column(DateTime)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    complainant = relationship("User", foreign_keys=[complainant_id])
    accused_resident = relationship("User", foreign_keys=[accused_resident_id])
    meetings = relationship(
        "BlotterMeeting",
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="BlotterMeeting.meeting_number",
    )
    contact_history = relationship(
        "ContactAttempt",
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="ContactAttempt.id",
    )
    document_history = relationship(
        "CaseDocument",
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="CaseDocument.id",
    )

    @property
    def case_number(self) -> str:
        return f"BB-{self.id:06d}" if self.id is not None else None


class BlotterMeeting(Base):
    """
    A mediation meeting held for a blotter case.

    Attributes:
        id (int): Primary key.
        case_id (int): Foreign key to the BlotterCase table.
        meeting_number (int): 1, 2 or 3.
        date (datetime): Meeting date and time.
        location (str): Venue.
        attendees (list[str]): Names of those present.
        discussion (str): Summary of the discussion.
        agreements (str): Agreements reached.
        next_steps (str): Follow-up actions.
        status (MeetingStatus): scheduled, completed or cancelled.
    """
    __tablename__ = "blotter_meetings"

    id = Column(IdType, primary_key=True, index=True)
    case_id = Column(IdType, ForeignKey('blotter_cases.id', ondelete='CASCADE'), nullable=False, index=True)
    meeting_number = Column(Integer, nullable=False)
    date = Column(DateTime, nullable=False)
    location = Column(String)
    attendees = Column(JSON, default=list, nullable=False)
    discussion = Column(Text)
    agreements = Column(Text)
    next_steps = Column(Text)
    status = _enum_column(MeetingStatus, default=MeetingStatus.SCHEDULED, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    case = relationship("BlotterCase", back_populates="meetings")
    __table_args__ = (
        UniqueConstraint('case_id', 'meeting_number', name='uq_blotter_meetings_case_number'),
    )


class ContactAttempt(Base):
    """An attempt to reach the respondent of a blotter case."""
    __tablename__ = "contact_attempts"

    id = Column(IdType, primary_key=True, index=True)
    case_id = Column(IdType, ForeignKey('blotter_cases.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(DateTime, nullable=False)
    method = Column(String, nullable=False)
    notes = Column(Text)
    successful = Column(Boolean, default=False, nullable=False)

    case = relationship("BlotterCase", back_populates="contact_history")


class CaseDocument(Base):
    """Record of a document generated for a blotter case (summons, mediation notice, CFA, settlement)."""
    __tablename__ = "case_documents"

    id = Column(IdType, primary_key=True, index=True)
    case_id = Column(IdType, ForeignKey('blotter_cases.id', ondelete='CASCADE'), nullable=False, index=True)
    document_type = _enum_column(CaseDocumentType, nullable=False)
    generated_at = Column(DateTime, nullable=False)
    notes = Column(Text)

    case = relationship("BlotterCase", back_populates="document_history")


# Announcements
class Announcement(Base):
    """
    A barangay announcement. Announcements are short-lived and purged by housekeeping.

    Attributes:
        id (int): Primary key.
        title (str): Headline.
        content (str): Body text.
        image_url (str): Optional image path.
        created_at (datetime): Creation timestamp.
    """
    __tablename__ = "announcements"

    id = Column(IdType, primary_key=True, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String)
    created_at = Column(DateTime, default=func.now(), nullable=False, index=True)


# Notifications
class Notification(Base):
    """
    Represents a resident notification produced by a lifecycle event.

    Attributes:
        id (int): Primary key.
        user_id (int): Foreign key to the User table (recipient).
        event (str): Lifecycle event name, e.g. "request.expired".
        title (str): Notification title.
        body (str): Notification body/content.
        request_id (int): Related document request (optional).
        blotter_case_id (int): Related blotter case (optional).
        read (bool): Read status.
        created_at (datetime): Creation timestamp.
        updated_at (datetime): Update timestamp.
    """
    __tablename__ = "notifications"

    id = Column(IdType, primary_key=True, index=True)
    user_id = Column(IdType, ForeignKey('users.id'), nullable=False, index=True)
    event = Column(String, nullable=False)
    title = Column(String)
    body = Column(Text)
    request_id = Column(IdType, ForeignKey('document_requests.id', ondelete='SET NULL'), nullable=True)
    blotter_case_id = Column(IdType, ForeignKey('blotter_cases.id', ondelete='SET NULL'), nullable=True)
    read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
