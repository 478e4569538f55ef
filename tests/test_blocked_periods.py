from datetime import time, timedelta
from unittest.mock import Mock

import pytest

from booking.blocked_periods import BlockedPeriodManager
from booking.core import Interval
from booking.errors import BlockedPeriodOverlapError, NotFoundError, ValidationError
from booking.locking import WriteLocks
from booking.models import BlockedPeriod
from booking.repositories import SqlBlockedPeriodStore
from booking.schemas import BlockedPeriodCreate, BlockedPeriodUpdate

from conftest import DAY, add_blocked_period, at


class TestBlockedPeriodManager:
    def test_create(self, blocked_manager):
        """A valid period is stored with its bounds."""
        period = blocked_manager.create(BlockedPeriodCreate(name="Holiday", start=at(10), end=at(12)))

        assert period.id is not None
        assert period.start == at(10)
        assert period.end == at(12)

    def test_overlapping_create_is_rejected(self, blocked_manager):
        """[10:00, 12:00) exists, so [11:00, 13:00) is refused and names the offender."""
        blocked_manager.create(BlockedPeriodCreate(name="Maintenance", start=at(10), end=at(12)))

        with pytest.raises(BlockedPeriodOverlapError) as exc_info:
            blocked_manager.create(BlockedPeriodCreate(name="Training", start=at(11), end=at(13)))

        assert "Maintenance" in exc_info.value.message
        assert [p.name for p in exc_info.value.overlapping] == ["Maintenance"]
        assert len(blocked_manager.list()) == 1

    def test_touching_create_is_allowed(self, blocked_manager):
        blocked_manager.create(BlockedPeriodCreate(name="Morning", start=at(10), end=at(12)))
        blocked_manager.create(BlockedPeriodCreate(name="Afternoon", start=at(12), end=at(14)))

        assert len(blocked_manager.list()) == 2

    def test_invalid_interval(self, blocked_manager):
        with pytest.raises(ValidationError):
            blocked_manager.create(BlockedPeriodCreate(name="Backwards", start=at(12), end=at(10)))

    def test_blank_name(self, blocked_manager):
        with pytest.raises(ValidationError):
            blocked_manager.create(BlockedPeriodCreate(name="  ", start=at(10), end=at(12)))

    def test_update_does_not_conflict_with_itself(self, blocked_manager):
        """Moving a period within its own old range is fine."""
        period = blocked_manager.create(BlockedPeriodCreate(name="Holiday", start=at(10), end=at(12)))

        updated = blocked_manager.update(period.id, BlockedPeriodUpdate(start=at(11), end=at(13)))

        assert updated.start == at(11)
        assert updated.end == at(13)
        assert updated.name == "Holiday"

    def test_update_into_another_period_is_rejected(self, blocked_manager):
        blocked_manager.create(BlockedPeriodCreate(name="First", start=at(8), end=at(9)))
        second = blocked_manager.create(BlockedPeriodCreate(name="Second", start=at(10), end=at(11)))

        with pytest.raises(BlockedPeriodOverlapError):
            blocked_manager.update(second.id, BlockedPeriodUpdate(start=at(8, 30)))

    def test_update_partial_end_only(self, blocked_manager):
        period = blocked_manager.create(BlockedPeriodCreate(name="Holiday", start=at(10), end=at(12)))

        with pytest.raises(ValidationError):
            blocked_manager.update(period.id, BlockedPeriodUpdate(end=at(9)))

    def test_get_missing(self, blocked_manager):
        with pytest.raises(NotFoundError):
            blocked_manager.get(404)

    def test_delete(self, blocked_manager):
        period = blocked_manager.create(BlockedPeriodCreate(name="Holiday", start=at(10), end=at(12)))

        blocked_manager.delete(period.id)

        with pytest.raises(NotFoundError):
            blocked_manager.get(period.id)


class TestBlockedPeriodIndex:
    def test_whole_day_block(self, session, blocked_index):
        """A period covering the full day blocks it entirely."""
        add_blocked_period(session, "Closed", at(0), at(0, day=DAY + timedelta(days=1)))

        assert blocked_index.is_date_fully_blocked(DAY)
        assert blocked_index.is_date_touched(DAY)

    def test_partial_day_touches_but_does_not_block(self, session, blocked_index):
        add_blocked_period(session, "Lunch", at(12), at(13))

        assert blocked_index.is_date_touched(DAY)
        assert not blocked_index.is_date_fully_blocked(DAY)

    def test_period_ending_at_midnight_does_not_touch_next_day(self, session, blocked_index):
        add_blocked_period(session, "Evening", at(20), at(0, day=DAY + timedelta(days=1)))

        assert not blocked_index.is_date_touched(DAY + timedelta(days=1))

    def test_multi_day_block_covers_middle_day(self, session, blocked_index):
        add_blocked_period(session, "Vacation", at(12, day=DAY - timedelta(days=1)), at(12, day=DAY + timedelta(days=1)))

        assert blocked_index.is_date_fully_blocked(DAY)

    def test_periods_for_date(self, session, blocked_index):
        add_blocked_period(session, "Lunch", at(12), at(13))
        add_blocked_period(session, "Tomorrow", at(12, day=DAY + timedelta(days=1)), at(13, day=DAY + timedelta(days=1)))

        assert [p.name for p in blocked_index.periods_for_date(DAY)] == ["Lunch"]

    def test_periods_for_range_is_inclusive(self, session, blocked_index):
        later = DAY + timedelta(days=2)
        add_blocked_period(session, "Lunch", at(12), at(13))
        add_blocked_period(session, "Later", at(12, day=later), at(13, day=later))
        add_blocked_period(session, "Outside", at(12, day=later + timedelta(days=1)), at(13, day=later + timedelta(days=1)))

        names = [p.name for p in blocked_index.periods_for_range(DAY, later)]

        assert names == ["Lunch", "Later"]

    def test_periods_for_range_rejects_reversed_dates(self, blocked_index):
        with pytest.raises(ValidationError):
            blocked_index.periods_for_range(DAY, DAY - timedelta(days=1))

    def test_working_hours(self, session, blocked_index):
        add_blocked_period(session, "Early", at(6), at(8))
        add_blocked_period(session, "Lunch", at(12), at(13))

        blocking = blocked_index.blocking_working_hours(DAY, time(9), time(17))

        assert [p.name for p in blocking] == ["Lunch"]

    def test_overlaps_existing_with_exclusion(self, session, blocked_index):
        period = add_blocked_period(session, "Lunch", at(12), at(13))

        assert blocked_index.overlaps_existing(Interval(at(12, 30), at(14)))
        assert not blocked_index.overlaps_existing(Interval(at(12, 30), at(14)), exclude_id=period.id)


class TestBlockedPeriodWriteLock:
    """Writes take the database-level lock before reading for overlaps."""

    def manager(self, overlapping=()):
        store = Mock()
        store.overlapping.return_value = list(overlapping)
        store.get.return_value = BlockedPeriod(id=1, name="Holiday", start=at(10), end=at(12))
        store.save.side_effect = lambda period: period
        return store, BlockedPeriodManager(store, WriteLocks())

    def test_create_locks_before_overlap_check(self):
        store, manager = self.manager()

        manager.create(BlockedPeriodCreate(name="Training", start=at(13), end=at(14)))

        assert [c[0] for c in store.method_calls] == ["lock_for_write", "overlapping", "save"]

    def test_update_locks_before_reading(self):
        store, manager = self.manager()

        manager.update(1, BlockedPeriodUpdate(end=at(13)))

        assert [c[0] for c in store.method_calls] == ["lock_for_write", "get", "overlapping", "save"]

    def test_rejected_write_rolls_back(self):
        """A refused overlap releases the lock by ending the transaction."""
        existing = BlockedPeriod(id=2, name="Maintenance", start=at(10), end=at(12))
        store, manager = self.manager(overlapping=[existing])

        with pytest.raises(BlockedPeriodOverlapError):
            manager.create(BlockedPeriodCreate(name="Training", start=at(11), end=at(13)))

        store.rollback.assert_called_once_with()
        store.save.assert_not_called()

    def test_postgresql_locks_the_table(self):
        session = Mock()
        session.get_bind.return_value.dialect.name = "postgresql"

        SqlBlockedPeriodStore(session).lock_for_write()

        statement = str(session.connection.return_value.execute.call_args[0][0])
        assert statement == f"LOCK TABLE {BlockedPeriod.__tablename__} IN SHARE ROW EXCLUSIVE MODE"

    def test_sqlite_does_not_lock(self):
        session = Mock()
        session.get_bind.return_value.dialect.name = "sqlite"

        SqlBlockedPeriodStore(session).lock_for_write()

        session.connection.assert_not_called()
