"""
Global constants for the BarangayAPI.

This module contains the closed status types for document requests and blotter
cases, together with the fixed business rules the lifecycle engines apply
(document weights, processing days, office pickup hours, retention periods).
"""

import enum


class RequestStatus(str, enum.Enum):
    """Status of a document request."""

    PENDING = "Pending"
    APPROVED = "Approved"
    PROCESSING = "Processing"
    READY_TO_CLAIM = "Ready to Claim"
    SCHEDULED_FOR_PICKUP = "Scheduled for Pickup"
    CLAIMED = "Claimed"
    ARCHIVED = "Archived"
    EXPIRED = "Expired"
    REJECTED = "Rejected"


class ProcessingStage(str, enum.Enum):
    SUBMITTED = "Submitted"
    PROCESSING = "Processing"
    READY = "Ready"


class BlotterStatus(str, enum.Enum):
    """Status of a blotter (dispute) case."""

    PENDING = "Pending"
    UNDER_INVESTIGATION = "Under Investigation"
    RESOLVED = "Resolved"
    DISMISSED = "Dismissed"
    ESCALATED_TO_PNP = "Escalated to PNP"
    # Kept for stored data; CFA issuance only flips BlotterCase.cfa_issued.
    CFA_ISSUED = "CFA Issued"


class MeetingStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CaseDocumentType(str, enum.Enum):
    SUMMONS = "summons"
    MEDIATION = "mediation"
    CFA = "cfa"
    SETTLEMENT = "settlement"


DOCUMENT_TYPES = [
    "Barangay Clearance",
    "Certificate of Residency",
    "Certificate of Indigency",
    "Business Permit",
    "Barangay ID",
    "Other",
]
"""list[str]: Document kinds a resident may request."""

# Lower weight means more urgent; unknown kinds fall back to the default.
DOCUMENT_PRIORITY_WEIGHTS = {
    "Barangay Clearance": 1,
    "Certificate of Residency": 2,
    "Certificate of Indigency": 3,
    "Business Permit": 4,
}
DEFAULT_PRIORITY_WEIGHT = 2

URGENCY_KEYWORDS = ("Emergency", "Medical", "Urgent")
URGENCY_BONUS = 5
MAX_STATUS_AGE_BONUS = 10

DOCUMENT_PROCESSING_DAYS = {
    "Barangay Clearance": 1,
    "Certificate of Residency": 1,
    "Certificate of Indigency": 2,
    "Business Permit": 3,
}
DEFAULT_PROCESSING_DAYS = 2
MIN_PROCESSING_DAYS = 1

PICKUP_TIME_SLOTS = ["08:00", "09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00"]
"""list[str]: Office hours offered for document pickup (noon is skipped)."""

AUTO_ARCHIVE_DAYS = 30
ARCHIVE_AFTER_EXPIRY_DAYS = 7
REJECTED_RETENTION_MONTHS = 1
"""int: Months a Rejected request is kept after its last update before housekeeping deletes it."""

MAX_MEETINGS = 3
OVERDUE_AFTER_DAYS = 7
FAILED_CONTACT_THRESHOLD = 3

# Statuses from which no further user-driven transition is possible.
TERMINAL_REQUEST_STATUSES = {
    RequestStatus.CLAIMED,
    RequestStatus.REJECTED,
    RequestStatus.ARCHIVED,
    RequestStatus.EXPIRED,
}

TERMINAL_BLOTTER_STATUSES = {
    BlotterStatus.RESOLVED,
    BlotterStatus.DISMISSED,
    BlotterStatus.ESCALATED_TO_PNP,
}
