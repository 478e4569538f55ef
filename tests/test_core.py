from datetime import datetime, timedelta, timezone

import pytest

from booking.core import Interval, as_naive_utc, overlaps
from booking.errors import ValidationError

from conftest import DAY, at


class TestInterval:
    def test_rejects_end_before_start(self):
        """An interval whose end precedes its start is invalid."""
        with pytest.raises(ValidationError):
            Interval(at(10), at(9))

    def test_rejects_empty_interval(self):
        """start == end is not a valid interval."""
        with pytest.raises(ValidationError):
            Interval(at(10), at(10))

    def test_aware_datetimes_become_naive_utc(self):
        """Timezone-aware bounds are converted to naive UTC."""
        plus_two = timezone(timedelta(hours=2))
        interval = Interval(
            datetime(2030, 6, 3, 11, 0, tzinfo=plus_two),
            datetime(2030, 6, 3, 12, 0, tzinfo=plus_two),
        )
        assert interval.start == at(9)
        assert interval.end == at(10)
        assert interval.start.tzinfo is None

    def test_for_day_spans_midnight_to_midnight(self):
        interval = Interval.for_day(DAY)
        assert interval.start == at(0)
        assert interval.end == at(0, day=DAY + timedelta(days=1))

    def test_minutes(self):
        assert Interval(at(9), at(10, 30)).minutes == 90

    def test_covers(self):
        outer = Interval(at(8), at(12))
        assert outer.covers(Interval(at(9), at(10)))
        assert outer.covers(outer)
        assert not outer.covers(Interval(at(11), at(13)))


class TestOverlaps:
    def test_overlap_is_symmetric(self):
        """overlaps(a, b) == overlaps(b, a)."""
        a = Interval(at(9), at(10))
        b = Interval(at(9, 30), at(10, 30))
        assert overlaps(a, b) and overlaps(b, a)

    def test_interval_overlaps_itself(self):
        a = Interval(at(9), at(10))
        assert overlaps(a, a)

    def test_touching_intervals_do_not_overlap(self):
        """[09:00, 10:00) and [10:00, 11:00) share only a boundary."""
        a = Interval(at(9), at(10))
        b = Interval(at(10), at(11))
        assert not overlaps(a, b)
        assert not overlaps(b, a)

    def test_containment_overlaps(self):
        assert Interval(at(8), at(12)).overlaps(Interval(at(9), at(10)))

    def test_disjoint(self):
        assert not overlaps(Interval(at(8), at(9)), Interval(at(11), at(12)))


def test_as_naive_utc_keeps_naive_values():
    value = at(9)
    assert as_naive_utc(value) is value
