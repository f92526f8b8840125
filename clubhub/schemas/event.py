"""
Event and roster Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from clubhub.utils.timeutil import ensure_utc

class EventStatus(str, Enum):
    draft = "draft"
    published = "published"
    upcoming = "upcoming"
    ongoing = "ongoing"
    completed = "completed"
    cancelled = "cancelled"

class RegistrationStatus(str, Enum):
    registered = "registered"
    attended = "attended"
    cancelled = "cancelled"

class AssignedStatus(str, Enum):
    """Outcome of a registration request"""
    registered = "registered"
    waitlisted = "waitlisted"

class AttendanceType(str, Enum):
    full = "full"
    partial = "partial"
    late = "late"

class CoOrganizerRole(str, Enum):
    coordinator = "coordinator"
    volunteer = "volunteer"
    speaker = "speaker"

class CoOrganizer(BaseModel):
    user_id: str
    role: CoOrganizerRole = CoOrganizerRole.coordinator

class RosterEntry(BaseModel):
    """One row of the ``registered`` sequence"""
    participant_id: str
    registered_at: datetime
    status: RegistrationStatus = RegistrationStatus.registered

class WaitlistEntry(BaseModel):
    participant_id: str
    enqueued_at: datetime

class AttendanceRecord(BaseModel):
    participant_id: str
    marked_by: str
    marked_at: datetime
    attendance_type: AttendanceType = AttendanceType.full
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    notes: Optional[str] = None

class EventStatistics(BaseModel):
    """Derived counters; always recomputed from the roster, never edited"""
    total_registrations: int = 0
    total_attendance: int = 0
    attendance_rate: float = 0.0
    views: int = 0

class EventDocument(BaseModel):
    """Storage-independent view of one event record"""
    id: str
    club_id: str
    organizer_id: str
    title: str
    status: EventStatus = EventStatus.draft
    capacity: Optional[int] = None
    registration_deadline: datetime
    event_date: datetime
    co_organizers: List[CoOrganizer] = []
    registered: List[RosterEntry] = []
    waitlist: List[WaitlistEntry] = []
    attendance: List[AttendanceRecord] = []
    statistics: EventStatistics = EventStatistics()
    version: int = 1
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# -------- Requests --------

class EventCreate(BaseModel):
    """Schema for creating an event"""
    club_id: str
    title: str = Field(..., min_length=3, max_length=200)
    capacity: Optional[int] = Field(None, ge=0)
    registration_deadline: datetime
    event_date: datetime
    co_organizers: List[CoOrganizer] = []

    @field_validator("registration_deadline", "event_date")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def deadline_before_event(self):
        if self.registration_deadline > self.event_date:
            raise ValueError("Registration deadline must be before event date")
        return self

class StatusUpdate(BaseModel):
    status: EventStatus

class CapacityUpdate(BaseModel):
    capacity: Optional[int] = Field(None, ge=0)

class AttendanceMarkRequest(BaseModel):
    participants: List[str]
    attendance_type: AttendanceType = AttendanceType.full
    notes: Optional[str] = Field(None, max_length=500)

class AttendanceUpdate(BaseModel):
    attendance_type: Optional[AttendanceType] = None
    notes: Optional[str] = Field(None, max_length=500)
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None

# -------- Responses --------

class RegistrationResult(BaseModel):
    event_id: str
    participant_id: str
    assigned_status: AssignedStatus
    waitlist_position: Optional[int] = None

class UnregistrationResult(BaseModel):
    event_id: str
    participant_id: str
    removed: bool
    promoted: Optional[str] = None

class AttendanceResult(BaseModel):
    event_id: str
    attended_count: int
    total_registered: int
    attendance_rate: float
    attended: List[str]
