# booking/schemas.py

from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RoleSlug(str, Enum):
    administrator = "administrator"
    provider = "provider"
    secretary = "secretary"
    customer = "customer"


class AppointmentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    not_applicable = "not_applicable"  # unavailability records

    @property
    def is_active(self) -> bool:
        return self in (AppointmentStatus.pending, AppointmentStatus.confirmed)


class AvailabilitiesType(str, Enum):
    flexible = "flexible"
    fixed = "fixed"


# --- Appointments ---

class AppointmentCreate(BaseModel):
    start: datetime
    end: Optional[datetime] = None  # derived from the service duration when omitted
    provider_id: int
    customer_id: Optional[int] = None
    service_id: Optional[int] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    color: Optional[str] = Field(default=None, max_length=256)
    is_unavailability: bool = False
    google_calendar_id: Optional[str] = None
    caldav_calendar_id: Optional[str] = None


class AppointmentUpdate(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    provider_id: Optional[int] = None
    customer_id: Optional[int] = None
    service_id: Optional[int] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    color: Optional[str] = Field(default=None, max_length=256)
    google_calendar_id: Optional[str] = None
    caldav_calendar_id: Optional[str] = None


class AppointmentPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    book_time: datetime
    start: datetime
    end: datetime
    location: Optional[str] = None
    notes: Optional[str] = None
    color: str
    status: AppointmentStatus
    is_unavailability: bool
    provider_id: int
    customer_id: Optional[int] = None
    service_id: Optional[int] = None
    google_calendar_id: Optional[str] = None
    caldav_calendar_id: Optional[str] = None


class AvailabilityCheck(BaseModel):
    provider_id: int
    service_id: int
    start: datetime
    end: datetime
    exclude_appointment_id: Optional[int] = None  # when editing an existing appointment


class ConflictsQuery(BaseModel):
    provider_id: int
    start: datetime
    end: datetime
    exclude_appointment_id: Optional[int] = None


class ConflictCounts(BaseModel):
    same_service: int
    other_services: int
    total: int


class ServiceRef(BaseModel):
    id: Optional[int] = None
    name: str = "N/A"


class CustomerRef(BaseModel):
    id: Optional[int] = None
    name: str = "N/A"


class ConflictPublic(BaseModel):
    id: int
    start: datetime
    end: datetime
    time_range: str
    status: AppointmentStatus
    is_unavailability: bool
    service: ServiceRef
    customer: CustomerRef


class ConflictsResponse(BaseModel):
    conflict_count: int
    has_conflicts: bool
    conflicts: List[ConflictPublic]


# --- Blocked periods ---

class BlockedPeriodCreate(BaseModel):
    name: str = Field(max_length=256)
    start: datetime
    end: datetime
    notes: Optional[str] = None


class BlockedPeriodUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=256)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    notes: Optional[str] = None


class BlockedPeriodPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    start: datetime
    end: datetime
    notes: Optional[str] = None


class AvailabilityResponse(BaseModel):
    available: bool
    conflicts: ConflictCounts
    attendants_number: Optional[int] = None
    blocking_periods: List[BlockedPeriodPublic]


class OverlapCheck(BaseModel):
    start: datetime
    end: datetime
    exclude_id: Optional[int] = None


class OverlapResponse(BaseModel):
    has_overlaps: bool
    count: int
    overlapping_periods: List[BlockedPeriodPublic]


class DateBlocksResponse(BaseModel):
    date: date
    count: int
    is_blocked: bool
    is_entirely_blocked: bool
    blocked_periods: List[BlockedPeriodPublic]


class DateBlockedCheck(BaseModel):
    date: date
    check_type: str  # "entire_day" or "any_period"
    is_blocked: bool
    is_entirely_blocked: bool
    has_any_blocks: bool


class PeriodBlocksResponse(BaseModel):
    start_date: date
    end_date: date
    count: int
    blocked_periods: List[BlockedPeriodPublic]


class WorkingHoursResponse(BaseModel):
    date: date
    work_start: time
    work_end: time
    is_blocked: bool
    blocking_periods: List[BlockedPeriodPublic]
