"""Tests for budget_kernel.domain.progress."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.dtos import BudgetPeriodInfo
from budget_kernel.domain.lifecycle import PeriodStatus
from budget_kernel.domain.progress import (
    PERFORMANCE_GOOD,
    PERFORMANCE_OVER,
    PERFORMANCE_WARNING,
    compute_progress,
    days_elapsed,
    days_remaining,
    performance_band,
    spending_percentage,
    summarize_performance,
)


def _period(spent: str = "0", target: str = "400", status=PeriodStatus.ACTIVE) -> BudgetPeriodInfo:
    return BudgetPeriodInfo(
        id=uuid4(),
        budget_id=uuid4(),
        start_date=date(2024, 3, 11),
        end_date=date(2024, 3, 24),
        target_amount=Decimal(target),
        status=status,
        actual_spent=Decimal(spent),
        budget_name="Groceries",
    )


def _at(*args, tz: str = "UTC") -> CalendarContext:
    return CalendarContext(timezone_name=tz, now=datetime(*args, tzinfo=timezone.utc))


class TestDayCounts:

    def test_before_start(self):
        cal = _at(2024, 3, 10, 12)
        assert days_elapsed(_period(), cal) == 0
        assert days_remaining(_period(), cal) == 15

    def test_first_moments_count_as_day_one(self):
        cal = _at(2024, 3, 11, 0, 0, 1)
        assert days_elapsed(_period(), cal) == 1

    def test_midway(self):
        # 2.5 days in -> 3 started days; 11.5 days left -> 12
        cal = _at(2024, 3, 13, 12)
        assert days_elapsed(_period(), cal) == 3
        assert days_remaining(_period(), cal) == 12

    def test_after_end(self):
        cal = _at(2024, 4, 1, 12)
        assert days_elapsed(_period(), cal) == 14
        assert days_remaining(_period(), cal) == 0

    def test_local_boundaries(self):
        # 03:00 UTC on the 11th is still the 10th in New York
        cal = _at(2024, 3, 11, 3, tz="America/New_York")
        assert days_elapsed(_period(), cal) == 0


class TestBands:

    def test_percentage(self):
        assert spending_percentage(Decimal("100"), Decimal("400")) == Decimal("25.00")
        assert spending_percentage(Decimal("1"), Decimal("3")) == Decimal("33.33")
        assert spending_percentage(Decimal("5"), Decimal("0")) == Decimal("0.00")

    def test_bands(self):
        assert performance_band(Decimal("401"), Decimal("400")) == PERFORMANCE_OVER
        assert performance_band(Decimal("400"), Decimal("400")) == PERFORMANCE_WARNING
        assert performance_band(Decimal("321"), Decimal("400")) == PERFORMANCE_WARNING
        assert performance_band(Decimal("320"), Decimal("400")) == PERFORMANCE_GOOD


class TestComputeProgress:

    def test_midway_projection(self):
        progress = compute_progress(_period(spent="90"), _at(2024, 3, 13, 12))
        assert progress.days_total == 14
        assert progress.days_elapsed == 3
        assert progress.daily_average == Decimal("30.00")
        assert progress.projected_total == Decimal("420.00")
        assert progress.remaining == Decimal("310")
        assert progress.percent_spent == Decimal("22.50")
        assert not progress.over_budget
        assert progress.performance == PERFORMANCE_GOOD

    def test_nothing_spent(self):
        progress = compute_progress(_period(), _at(2024, 3, 13, 12))
        assert progress.daily_average == Decimal("0")
        assert progress.projected_total == Decimal("0")

    def test_finished_period_projects_actual(self):
        progress = compute_progress(_period(spent="450"), _at(2024, 3, 30))
        assert progress.projected_total == Decimal("450.00")
        assert progress.over_budget
        assert progress.performance == PERFORMANCE_OVER

    def test_summarize_performance(self):
        perf = summarize_performance(_period(spent="350", status=PeriodStatus.COMPLETED))
        assert perf.percent_spent == Decimal("87.50")
        assert perf.performance == PERFORMANCE_WARNING
        assert perf.budget_name == "Groceries"
