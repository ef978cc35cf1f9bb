"""
Progress -- spending progress and performance bands for a period.

Pure functions over ``BudgetPeriodInfo`` and a ``CalendarContext``.
Day counts use the period's local day boundaries, so a period viewed
from a different timezone reports different elapsed/remaining days but
the same total.
"""

from __future__ import annotations

import math
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.dtos import BudgetPeriodInfo, PeriodPerformance, PeriodProgress

_CENT = Decimal("0.01")
_DAY_SECONDS = timedelta(days=1).total_seconds()

WARNING_THRESHOLD = Decimal("80")

PERFORMANCE_OVER = "over"
PERFORMANCE_WARNING = "warning"
PERFORMANCE_GOOD = "good"


def _q(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def days_in_period(period: BudgetPeriodInfo) -> int:
    return period.duration_days


def days_elapsed(period: BudgetPeriodInfo, calendar: CalendarContext) -> int:
    """Days passed since the period started, counting a started day as 1."""
    start = calendar.start_of_day(period.start_date)
    if calendar.now < start:
        return 0
    cutoff = min(calendar.now, calendar.end_of_day(period.end_date))
    passed = math.ceil((cutoff - start).total_seconds() / _DAY_SECONDS)
    return max(1, passed)


def days_remaining(period: BudgetPeriodInfo, calendar: CalendarContext) -> int:
    end = calendar.end_of_day(period.end_date)
    left = math.ceil((end - calendar.now).total_seconds() / _DAY_SECONDS)
    return max(0, left)


def spending_percentage(spent: Decimal, target: Decimal) -> Decimal:
    if not target:
        return Decimal("0.00")
    return _q(spent / target * 100)


def performance_band(spent: Decimal, target: Decimal) -> str:
    """``over`` above target, ``warning`` above 80% of it, else ``good``."""
    if spent > target:
        return PERFORMANCE_OVER
    if spending_percentage(spent, target) > WARNING_THRESHOLD:
        return PERFORMANCE_WARNING
    return PERFORMANCE_GOOD


def compute_progress(period: BudgetPeriodInfo, calendar: CalendarContext) -> PeriodProgress:
    spent = period.actual_spent
    target = period.target_amount
    total = days_in_period(period)
    elapsed = days_elapsed(period, calendar)

    if spent and elapsed:
        daily_average = spent / elapsed
    else:
        daily_average = Decimal("0")

    if elapsed >= total:
        projected = spent
    else:
        projected = daily_average * total

    return PeriodProgress(
        period=period,
        days_total=total,
        days_elapsed=elapsed,
        days_remaining=days_remaining(period, calendar),
        spent=spent,
        remaining=target - spent,
        percent_spent=spending_percentage(spent, target),
        over_budget=spent > target,
        daily_average=_q(daily_average),
        projected_total=_q(projected),
        performance=performance_band(spent, target),
    )


def summarize_performance(period: BudgetPeriodInfo) -> PeriodPerformance:
    return PeriodPerformance(
        period_id=period.id,
        budget_id=period.budget_id,
        budget_name=period.budget_name,
        start_date=period.start_date,
        end_date=period.end_date,
        target_amount=period.target_amount,
        actual_spent=period.actual_spent,
        percent_spent=spending_percentage(period.actual_spent, period.target_amount),
        performance=performance_band(period.actual_spent, period.target_amount),
    )
