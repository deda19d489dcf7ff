"""
Time provider abstraction for deterministic testing

Timespans and revocations are expressed in milliseconds since the Unix
epoch, while events carry timezone-aware datetimes. The provider supplies
both views of "now" and can be frozen or advanced in tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


def to_ms(dt: datetime) -> int:
    """Convert an aware datetime to milliseconds since the Unix epoch"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def from_ms(ms: int) -> datetime:
    """Convert milliseconds since the Unix epoch to an aware UTC datetime"""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class TimeProvider(Protocol):
    """Protocol for time providers - allows deterministic testing"""

    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...

    def now_ms(self) -> int:
        """Return current time in milliseconds since the epoch"""
        ...


class RealTimeProvider:
    """Production time provider using system clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def now_ms(self) -> int:
        return to_ms(self.now())


class TestTimeProvider:
    """
    Controllable time provider for deterministic tests

    Allows tests to freeze time and advance it, so timespan expiry can
    be exercised without sleeping.
    """

    def __init__(self, initial_time: datetime | None = None) -> None:
        """
        Initialize with optional fixed time

        Args:
            initial_time: Starting time (defaults to Unix epoch)
        """
        self._current_time = initial_time or datetime(1970, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current_time

    def now_ms(self) -> int:
        return to_ms(self._current_time)

    def set_time(self, dt: datetime) -> None:
        """Set current time to specific value"""
        self._current_time = dt

    def advance_ms(self, ms: int) -> None:
        """Advance time by specified milliseconds"""
        self._current_time += timedelta(milliseconds=ms)

    def advance_seconds(self, seconds: int) -> None:
        """Advance time by specified seconds"""
        self._current_time += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        """Advance time by specified days"""
        self._current_time += timedelta(days=days)


default_time_provider: TimeProvider = RealTimeProvider()
