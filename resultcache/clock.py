"""Injectable time sources.

Both the index and the reaper read "now" from a ``Clock`` so expiry
boundaries can be tested without sleeping.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Settable clock for tests and the ``clock_override`` setting."""

    def __init__(self, start: datetime | None = None):
        self._now = _as_utc(start or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, when: datetime):
        with self._lock:
            self._now = _as_utc(when)

    def advance(self, *, milliseconds: float = 0, seconds: float = 0) -> datetime:
        """Move the clock forward and return the new time."""
        with self._lock:
            self._now += timedelta(milliseconds=milliseconds, seconds=seconds)
            return self._now


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clock_from_settings(settings) -> Clock:
    if settings.clock_override is not None:
        return FixedClock(settings.clock_override)
    return SystemClock()
