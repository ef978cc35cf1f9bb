"""
Calendar -- timezone-local day arithmetic.

Responsibility:
    Converts a configured IANA timezone and absolute instants into local
    calendar dates and local day boundaries.  Every "before / within /
    after" question asked by the generator, the classifier and the
    reconciler goes through this module.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  The timezone name is
    read from settings once per operation by the caller and handed in
    via ``CalendarContext``.

Invariants enforced:
    - UTC is an ordinary ``ZoneInfo("UTC")``; there is no separate UTC
      code path, so UTC output is produced by the same arithmetic as any
      other zone.
    - A ``CalendarContext`` pins both the zone and "now" so that a sweep
      never sees two different current times.

Failure modes:
    - InvalidTimezoneError for names that are not IANA zones.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from budget_kernel.domain.clock import Clock
from budget_kernel.exceptions import InvalidTimezoneError

DEFAULT_TIMEZONE = "UTC"

_END_OF_DAY = time(23, 59, 59, 999000)

WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

# (value, label) pairs offered to users choosing a timezone
COMMON_TIMEZONES: tuple[tuple[str, str], ...] = (
    ("UTC", "UTC"),
    ("America/New_York", "Eastern Time (US)"),
    ("America/Chicago", "Central Time (US)"),
    ("America/Denver", "Mountain Time (US)"),
    ("America/Los_Angeles", "Pacific Time (US)"),
    ("America/Anchorage", "Alaska Time (US)"),
    ("Pacific/Honolulu", "Hawaii Time (US)"),
    ("Europe/London", "London (GMT/BST)"),
    ("Europe/Paris", "Paris (CET/CEST)"),
    ("Europe/Berlin", "Berlin (CET/CEST)"),
    ("Asia/Tokyo", "Tokyo (JST)"),
    ("Australia/Sydney", "Sydney (AEDT/AEST)"),
    ("Asia/Kolkata", "Mumbai (IST)"),
    ("Asia/Dubai", "Dubai (GST)"),
    ("Asia/Singapore", "Singapore (SGT)"),
    ("Asia/Hong_Kong", "Hong Kong (HKT)"),
    ("America/Toronto", "Toronto (EST/EDT)"),
    ("America/Vancouver", "Vancouver (PST/PDT)"),
    ("America/Mexico_City", "Mexico City (CST/CDT)"),
    ("America/Sao_Paulo", "São Paulo (BRT)"),
)


def resolve_timezone(name: str) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name.

    Raises:
        InvalidTimezoneError: empty, malformed or unknown name.
    """
    if not name or not isinstance(name, str):
        raise InvalidTimezoneError(str(name))
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise InvalidTimezoneError(name) from exc


def is_valid_timezone(name: str) -> bool:
    try:
        resolve_timezone(name)
    except InvalidTimezoneError:
        return False
    return True


def _require_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        raise ValueError(f"Instant must be timezone-aware: {instant!r}")
    return instant


def current_instant(clock: Clock, tz: ZoneInfo) -> datetime:
    """Current instant from the clock, expressed in ``tz``."""
    return _require_aware(clock.now()).astimezone(tz)


def local_date(instant: datetime, tz: ZoneInfo) -> date:
    """Calendar date of ``instant`` as observed in ``tz``."""
    return _require_aware(instant).astimezone(tz).date()


def start_of_day(day: date, tz: ZoneInfo) -> datetime:
    """00:00:00.000 local on ``day``, as an absolute UTC instant."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def end_of_day(day: date, tz: ZoneInfo) -> datetime:
    """23:59:59.999 local on ``day``, as an absolute UTC instant."""
    return datetime.combine(day, _END_OF_DAY, tzinfo=tz).astimezone(timezone.utc)


def format_date(instant: datetime, tz: ZoneInfo) -> str:
    """YYYY-MM-DD of ``instant`` in ``tz``."""
    return local_date(instant, tz).isoformat()


def sunday_weekday(day: date) -> int:
    """Weekday index with Sunday=0 ... Saturday=6."""
    return (day.weekday() + 1) % 7


def weekday_name(index: int) -> str:
    if not 0 <= index <= 6:
        raise ValueError(f"Weekday index must be 0-6, got {index}")
    return WEEKDAY_NAMES[index]


@dataclass(frozen=True)
class CalendarContext:
    """Timezone and "now" pinned for one logical operation.

    Build one per sweep or request with :meth:`resolve` and pass it down;
    nothing below the caller reads the timezone setting or the clock again.
    """

    timezone_name: str
    now: datetime

    def __post_init__(self) -> None:
        resolve_timezone(self.timezone_name)
        _require_aware(self.now)

    @classmethod
    def resolve(cls, timezone_name: str, clock: Clock) -> CalendarContext:
        tz = resolve_timezone(timezone_name)
        return cls(timezone_name=timezone_name, now=current_instant(clock, tz))

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone_name)

    @property
    def today(self) -> date:
        return local_date(self.now, self.tz)

    def local_date(self, instant: datetime) -> date:
        return local_date(instant, self.tz)

    def start_of_day(self, day: date) -> datetime:
        return start_of_day(day, self.tz)

    def end_of_day(self, day: date) -> datetime:
        return end_of_day(day, self.tz)

    def format_date(self, instant: datetime) -> str:
        return format_date(instant, self.tz)

    def contains(self, start: date, end: date, instant: datetime) -> bool:
        """True when ``instant`` falls on a local date within [start, end]."""
        return start <= self.local_date(instant) <= end
