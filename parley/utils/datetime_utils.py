"""
Timezone-aware datetime utilities.
"""

import threading
from datetime import datetime, timedelta, timezone

# UTC timezone constant
UTC = timezone.utc

_RESOLUTION = timedelta(microseconds=1)


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Replaces datetime.utcnow() which is deprecated in Python 3.12+.
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class MonotonicClock:
    """
    Wall-clock timestamps that never go backwards within the process.

    Two calls in the same microsecond (or a clock step backwards) yield
    successive microseconds, so creation order survives a sort by timestamp.
    """

    def __init__(self) -> None:
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        current = now_utc()
        with self._lock:
            if self._last is not None and current <= self._last:
                current = self._last + _RESOLUTION
            self._last = current
        return current


_clock = MonotonicClock()


def monotonic_now() -> datetime:
    """Process-wide monotonic UTC timestamp."""
    return _clock.now()
