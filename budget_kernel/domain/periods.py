"""
Period generator -- pure date arithmetic for recurring budget cycles.

Responsibility:
    Computes period boundaries from a budget's cycle definition
    (start weekday + duration), emits forward sequences, builds the single
    retroactive period covering a past instant, and rolls a cycle forward
    from its last period without consulting the weekday rule again.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Returns frozen
    ``PeriodDraft`` values; persistence is PeriodService's job.

Invariants enforced:
    - ``end_date == start_date + duration_days - 1`` for every draft.
    - Drafts emitted by one call never overlap each other.
    - Continuation keeps cycle phase: its start is always the previous
      start plus a whole number of durations.

Failure modes:
    - ValidationError from ``validate_cycle`` (collects every bad field).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Protocol
from zoneinfo import ZoneInfo

from budget_kernel.domain.calendar import CalendarContext, local_date, sunday_weekday
from budget_kernel.domain.lifecycle import PeriodStatus, classify
from budget_kernel.exceptions import ValidationError

MIN_DURATION_DAYS = 7
MAX_DURATION_DAYS = 28


@dataclass(frozen=True)
class CycleDefinition:
    """The recurring part of a budget."""

    start_weekday: int  # Sunday=0 ... Saturday=6
    duration_days: int
    amount: Decimal


@dataclass(frozen=True)
class PeriodDraft:
    """A computed, not yet persisted, budget period."""

    start_date: date
    end_date: date
    target_amount: Decimal
    status: PeriodStatus

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class DatedRange(Protocol):
    start_date: date
    end_date: date


# =============================================================================
# Validation
# =============================================================================


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_cycle(
    name: Any,
    amount: Any,
    start_weekday: Any,
    duration_days: Any,
) -> Decimal:
    """Validate budget cycle parameters and return the amount as Decimal.

    Raises:
        ValidationError: with one entry per offending field.
    """
    errors: dict[str, str] = {}

    if not isinstance(name, str) or not name.strip():
        errors["name"] = "Budget name is required"

    if not _is_int(start_weekday) or not 0 <= start_weekday <= 6:
        errors["start_weekday"] = "Start weekday must be between 0 (Sunday) and 6 (Saturday)"

    if not _is_int(duration_days) or not (
        MIN_DURATION_DAYS <= duration_days <= MAX_DURATION_DAYS
    ):
        errors["duration_days"] = (
            f"Duration must be between {MIN_DURATION_DAYS} and {MAX_DURATION_DAYS} days"
        )

    try:
        parsed_amount = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        errors["amount"] = "Budget amount must be a number"
        raise ValidationError(errors) from None
    if not parsed_amount.is_finite() or parsed_amount <= 0:
        errors["amount"] = "Budget amount must be greater than 0"

    if errors:
        raise ValidationError(errors)
    return parsed_amount


# =============================================================================
# Boundaries
# =============================================================================


def period_start_on_or_before(target_weekday: int, day: date) -> date:
    """Most recent ``target_weekday`` on or before ``day`` (``day`` itself if it matches)."""
    days_back = (sunday_weekday(day) - target_weekday + 7) % 7
    return day - timedelta(days=days_back)


def compute_period_start(
    target_weekday: int,
    duration_days: int,
    from_instant: datetime,
    tz: ZoneInfo,
) -> date:
    """Start date of the cycle anchored on ``from_instant``'s local date.

    ``duration_days`` does not affect the anchor; it is accepted so that
    call sites read the same as the other boundary helpers.
    """
    return period_start_on_or_before(target_weekday, local_date(from_instant, tz))


def compute_period_end(start_date: date, duration_days: int) -> date:
    return start_date + timedelta(days=duration_days - 1)


def next_period_start(period_start: date, duration_days: int) -> date:
    return period_start + timedelta(days=duration_days)


# =============================================================================
# Generation
# =============================================================================


def generate_sequence(
    cycle: CycleDefinition,
    first_start: date,
    count: int,
) -> tuple[PeriodDraft, ...]:
    """``count`` back-to-back drafts starting at ``first_start``.

    The first draft is ACTIVE, the rest UPCOMING.
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    drafts = []
    start = first_start
    for i in range(count):
        drafts.append(
            PeriodDraft(
                start_date=start,
                end_date=compute_period_end(start, cycle.duration_days),
                target_amount=cycle.amount,
                status=PeriodStatus.ACTIVE if i == 0 else PeriodStatus.UPCOMING,
            )
        )
        start = next_period_start(start, cycle.duration_days)
    return tuple(drafts)


def generate_forward(
    cycle: CycleDefinition,
    from_instant: datetime,
    tz: ZoneInfo,
    count: int = 1,
) -> tuple[PeriodDraft, ...]:
    """Drafts whose first element contains, or starts after, ``from_instant``."""
    from_day = local_date(from_instant, tz)
    start = compute_period_start(cycle.start_weekday, cycle.duration_days, from_instant, tz)
    if from_day > compute_period_end(start, cycle.duration_days):
        start = next_period_start(start, cycle.duration_days)
    return generate_sequence(cycle, start, count)


def generate_retroactive(
    cycle: CycleDefinition,
    target_instant: datetime,
    calendar: CalendarContext,
) -> PeriodDraft:
    """The single period anchored at ``target_instant``.

    Boundaries come from ``target_instant``; status comes from the
    calendar's "now".  Cycles between that period and today are not
    generated here; continuation fast-forwards over them later.
    """
    start = compute_period_start(
        cycle.start_weekday, cycle.duration_days, target_instant, calendar.tz
    )
    end = compute_period_end(start, cycle.duration_days)
    return PeriodDraft(
        start_date=start,
        end_date=end,
        target_amount=cycle.amount,
        status=classify(start, end, calendar.today),
    )


def continuation_draft(
    cycle: CycleDefinition,
    last_start: date,
    today: date,
) -> PeriodDraft:
    """Next period after the one starting at ``last_start``.

    Steps forward by whole durations until the period ends on or after
    ``today``, so a missed sweep (or long downtime) yields the one period
    covering today instead of a backlog of completed ones.  Without
    downtime this is simply the day after the previous end.
    """
    start = next_period_start(last_start, cycle.duration_days)
    end = compute_period_end(start, cycle.duration_days)
    if end < today:
        skipped = (today - start).days // cycle.duration_days
        start = start + timedelta(days=skipped * cycle.duration_days)
        end = compute_period_end(start, cycle.duration_days)
    return PeriodDraft(
        start_date=start,
        end_date=end,
        target_amount=cycle.amount,
        status=classify(start, end, today),
    )


# =============================================================================
# Overlap
# =============================================================================


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a <= end_b and end_a >= start_b


def find_overlap(
    start_date: date,
    end_date: date,
    existing: Iterable[DatedRange],
) -> DatedRange | None:
    """First existing range overlapping [start_date, end_date], or None."""
    for period in existing:
        if ranges_overlap(start_date, end_date, period.start_date, period.end_date):
            return period
    return None


def has_overlap(draft: DatedRange, existing: Iterable[DatedRange]) -> bool:
    return find_overlap(draft.start_date, draft.end_date, existing) is not None
