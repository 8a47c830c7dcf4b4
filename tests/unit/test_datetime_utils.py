"""
Unit tests for datetime helpers.
"""

from datetime import datetime

from parley.utils.datetime_utils import UTC, MonotonicClock, ensure_utc


def test_monotonic_clock_never_repeats():
    """Test monotonic clock never repeats."""
    clock = MonotonicClock()
    stamps = [clock.now() for _ in range(1_000)]

    assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))
    assert all(stamp.tzinfo is UTC for stamp in stamps)


def test_ensure_utc_attaches_timezone_to_naive_values():
    """Test ensure utc attaches timezone to naive values."""
    naive = datetime(2024, 5, 1, 12, 0, 0)

    assert ensure_utc(naive) == datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
