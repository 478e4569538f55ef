# booking/core.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import and_

from booking.errors import ValidationError


def utcnow() -> datetime:
    # stored timestamps are naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class Interval:
    """Half-open time range ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", as_naive_utc(self.start))
        object.__setattr__(self, "end", as_naive_utc(self.end))
        if self.end <= self.start:
            raise ValidationError("The end time must be after the start time.")

    @classmethod
    def for_day(cls, day: date) -> "Interval":
        start = datetime.combine(day, time.min)
        return cls(start, start + timedelta(days=1))

    @classmethod
    def on_day(cls, day: date, start_time: time, end_time: time) -> "Interval":
        return cls(datetime.combine(day, start_time), datetime.combine(day, end_time))

    @property
    def minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self, other)

    def covers(self, other: "Interval") -> bool:
        return self.start <= other.start and self.end >= other.end


def overlaps(a: Interval, b: Interval) -> bool:
    # touching intervals (a.end == b.start) do not overlap
    return a.start < b.end and a.end > b.start


def overlap_clause(start_column, end_column, interval: Interval):
    """The ``overlaps`` predicate as a SQL expression over two columns."""
    return and_(start_column < interval.end, end_column > interval.start)
