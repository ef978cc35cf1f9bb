"""
Clock -- injectable source of "now".

Responsibility:
    Domain, service and sweep code never call ``datetime.now()`` directly.
    They receive a Clock so that a sweep can resolve "now" exactly once
    and tests can pin it to a known instant.

Failure modes:
    - DeterministicClock rejects naive datetimes (ValueError); every
      instant in the engine is timezone-aware.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current instant."""
        ...


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``,
    ``advance_days()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        fixed_time = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._fixed_time = self._require_aware(fixed_time)
        self._offset = timedelta(0)

    @staticmethod
    def _require_aware(value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware datetime")
        return value.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific instant."""
        self._fixed_time = self._require_aware(time)
        self._offset = timedelta(0)

    def advance(self, seconds: float = 1) -> datetime:
        """Advance the clock by the given number of seconds."""
        self._offset += timedelta(seconds=seconds)
        return self.now()

    def advance_days(self, days: int) -> datetime:
        """Advance the clock by whole days."""
        self._offset += timedelta(days=days)
        return self.now()
