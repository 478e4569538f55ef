# booking/blocked_periods.py

from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional

from booking.core import Interval
from booking.errors import BlockedPeriodOverlapError, BookingError, NotFoundError, ValidationError
from booking.locking import WriteLocks
from booking.log import get_logger
from booking.models import BlockedPeriod
from booking.repositories import BlockedPeriodStore
from booking.schemas import BlockedPeriodCreate, BlockedPeriodUpdate

logger = get_logger(__name__)

END_OF_DAY = time(23, 59, 59)


class BlockedPeriodIndex:
    """Read-only questions about administrative blocked periods."""

    def __init__(self, store: BlockedPeriodStore):
        self.store = store

    def blocking_periods_for(self, interval: Interval) -> List[BlockedPeriod]:
        return self.store.overlapping(interval)

    def is_date_touched(self, day: date) -> bool:
        return bool(self.store.overlapping(Interval.for_day(day)))

    def is_date_fully_blocked(self, day: date) -> bool:
        # start <= 00:00:00 and end >= 23:59:59 of the same day
        return bool(self.store.covering(Interval.on_day(day, time.min, END_OF_DAY)))

    def overlapping(self, interval: Interval, exclude_id: Optional[int] = None) -> List[BlockedPeriod]:
        return self.store.overlapping(interval, exclude_id=exclude_id)

    def overlaps_existing(self, interval: Interval, exclude_id: Optional[int] = None) -> bool:
        return bool(self.overlapping(interval, exclude_id=exclude_id))

    def periods_for_date(self, day: date) -> List[BlockedPeriod]:
        return self.store.overlapping(Interval.for_day(day))

    def periods_for_range(self, start_day: date, end_day: date) -> List[BlockedPeriod]:
        """Periods touching any day from ``start_day`` to ``end_day`` inclusive."""
        if end_day < start_day:
            raise ValidationError("The end date must not be before the start date.")
        window = Interval(
            datetime.combine(start_day, time.min),
            datetime.combine(end_day, time.min) + timedelta(days=1),
        )
        return self.store.overlapping(window)

    def blocking_working_hours(self, day: date, work_start: time, work_end: time) -> List[BlockedPeriod]:
        return self.store.overlapping(Interval.on_day(day, work_start, work_end))


class BlockedPeriodManager:
    """Write path for blocked periods; keeps them pairwise non-overlapping."""

    def __init__(self, store: BlockedPeriodStore, locks: WriteLocks):
        self.store = store
        self.index = BlockedPeriodIndex(store)
        self.locks = locks

    def get(self, blocked_period_id: int) -> BlockedPeriod:
        blocked_period = self.store.get(blocked_period_id)
        if blocked_period is None:
            raise NotFoundError(f"Blocked period not found: {blocked_period_id}")
        return blocked_period

    def list(self, limit: int = 100, offset: int = 0) -> List[BlockedPeriod]:
        return self.store.list(limit=limit, offset=offset)

    def create(self, data: BlockedPeriodCreate) -> BlockedPeriod:
        interval = self._validate(data.name, data.start, data.end)

        with self._writing():
            self._reject_overlaps(interval)
            blocked_period = self.store.save(
                BlockedPeriod(name=data.name, start=interval.start, end=interval.end, notes=data.notes)
            )

        logger.info(
            "blocked_period_created",
            blocked_period_id=blocked_period.id,
            start=blocked_period.start.isoformat(),
            end=blocked_period.end.isoformat(),
        )
        return blocked_period

    def update(self, blocked_period_id: int, changes: BlockedPeriodUpdate) -> BlockedPeriod:
        with self._writing():
            blocked_period = self.get(blocked_period_id)
            fields = changes.model_dump(exclude_unset=True)

            name = fields.get("name", blocked_period.name)
            interval = self._validate(
                name,
                fields.get("start", blocked_period.start),
                fields.get("end", blocked_period.end),
            )
            self._reject_overlaps(interval, exclude_id=blocked_period.id)

            blocked_period.name = name
            blocked_period.start = interval.start
            blocked_period.end = interval.end
            if "notes" in fields:
                blocked_period.notes = fields["notes"]
            blocked_period = self.store.save(blocked_period)

        logger.info("blocked_period_updated", blocked_period_id=blocked_period.id)
        return blocked_period

    def delete(self, blocked_period_id: int) -> None:
        with self._writing():
            self.store.delete(self.get(blocked_period_id))
        logger.info("blocked_period_deleted", blocked_period_id=blocked_period_id)

    @contextmanager
    def _writing(self) -> Iterator[None]:
        """Serialize a blocked-period write in this process and in the database."""
        with self.locks.blocked_periods():
            self.store.lock_for_write()
            try:
                yield
            except BookingError:
                self.store.rollback()
                raise

    def _validate(self, name: Optional[str], start: Optional[datetime], end: Optional[datetime]) -> Interval:
        if not name or not name.strip():
            raise ValidationError("The blocked period name is required.")
        if start is None:
            raise ValidationError("The start date time is required.")
        if end is None:
            raise ValidationError("The end date time is required.")
        return Interval(start, end)

    def _reject_overlaps(self, interval: Interval, exclude_id: Optional[int] = None) -> None:
        overlapping = self.index.overlapping(interval, exclude_id=exclude_id)
        if overlapping:
            names = ", ".join(p.name for p in overlapping)
            logger.info("blocked_period_overlap", overlapping_ids=[p.id for p in overlapping])
            raise BlockedPeriodOverlapError(
                f"This blocked period overlaps with existing blocked period(s): {names}",
                overlapping=overlapping,
            )
