# booking/models.py

from typing import Optional
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import SQLModel, Field

from booking.core import Interval, utcnow
from booking.schemas import AppointmentStatus, AvailabilitiesType


class Role(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    slug: str = Field(index=True, unique=True)  # administrator, provider, secretary or customer


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str = Field(index=True, unique=True)
    phone: Optional[str] = None
    role_id: int = Field(foreign_key="role.id", index=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Service(SQLModel, table=True):
    __table_args__ = (
        CheckConstraint("attendants_number >= 1", name="ck_service_attendants_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    duration: int  # minutes
    price: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    currency: Optional[str] = None
    description: Optional[str] = None
    color: str = "#7cbae8"
    location: Optional[str] = None
    availabilities_type: AvailabilitiesType = AvailabilitiesType.flexible
    attendants_number: int = 1  # max simultaneous bookings for one slot
    is_private: bool = False

    def calculate_end(self, start: datetime) -> datetime:
        return start + timedelta(minutes=self.duration)


class Appointment(SQLModel, table=True):
    __table_args__ = (
        CheckConstraint('"end" > start', name="ck_appointment_interval"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    # timestamps are naive UTC (booking.core.utcnow); the column type keeps them that way
    book_time: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=False))
    start: datetime = Field(index=True, sa_type=DateTime(timezone=False))
    end: datetime = Field(index=True, sa_type=DateTime(timezone=False))
    location: Optional[str] = None
    notes: Optional[str] = None
    hash: str = Field(index=True, unique=True)
    color: str = "#7cbae8"
    status: AppointmentStatus = AppointmentStatus.pending
    is_unavailability: bool = False

    provider_id: int = Field(foreign_key="user.id", index=True)
    customer_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    service_id: Optional[int] = Field(default=None, foreign_key="service.id", index=True)

    google_calendar_id: Optional[str] = None
    caldav_calendar_id: Optional[str] = None

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    def is_past(self, now: datetime) -> bool:
        return self.end <= now

    @property
    def time_range(self) -> str:
        fmt = "%I:%M %p"
        return f"{self.start.strftime(fmt).lstrip('0')} - {self.end.strftime(fmt).lstrip('0')}"


class BlockedPeriod(SQLModel, table=True):
    __table_args__ = (
        CheckConstraint('"end" > start', name="ck_blockedperiod_interval"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    start: datetime = Field(index=True, sa_type=DateTime(timezone=False))
    end: datetime = Field(index=True, sa_type=DateTime(timezone=False))
    notes: Optional[str] = None

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)
