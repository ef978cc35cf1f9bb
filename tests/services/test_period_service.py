"""
Tests for PeriodService -- overlap guard, continuation, next period,
live-period recovery and reclassification.
"""

from datetime import date, datetime, timezone

import pytest

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.clock import DeterministicClock
from budget_kernel.domain.lifecycle import BudgetRole, PeriodStatus
from budget_kernel.domain.periods import PeriodDraft
from budget_kernel.exceptions import NoActivePeriodError, PeriodOverlapError
from budget_kernel.services.period_service import PeriodService


@pytest.fixture
def service(db_session, clock):
    return PeriodService(db_session, clock)


def _calendar_at(*args, tz: str = "UTC") -> CalendarContext:
    return CalendarContext.resolve(tz, DeterministicClock(datetime(*args, tzinfo=timezone.utc)))


class TestCreatePeriod:

    def test_overlap_rejected_and_logged(self, service, make_budget, make_period, captured_logs):
        budget = make_budget()
        existing = make_period(budget, date(2024, 3, 11), date(2024, 3, 24))
        draft = PeriodDraft(date(2024, 3, 24), date(2024, 4, 6), budget.amount, PeriodStatus.UPCOMING)

        with pytest.raises(PeriodOverlapError) as exc_info:
            service.create_period(budget.id, draft)

        assert exc_info.value.existing_period_id == existing.id
        assert any(r["message"] == "period_overlap_rejected" for r in captured_logs())

    def test_other_budgets_do_not_clash(self, service, make_budget, make_period):
        a = make_budget(name="A")
        b = make_budget(name="B")
        make_period(a, date(2024, 3, 11), date(2024, 3, 24))
        draft = PeriodDraft(date(2024, 3, 11), date(2024, 3, 24), b.amount, PeriodStatus.ACTIVE)
        info = service.create_period(b.id, draft)
        assert info.budget_id == b.id


class TestContinueBudget:

    def test_rolls_forward_from_last_period(self, service, make_budget, make_period):
        budget = make_budget(role=BudgetRole.ACTIVE)
        make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.COMPLETED)

        info = service.continue_budget(budget.id, _calendar_at(2024, 3, 11, 0, 30))

        assert (info.start_date, info.end_date) == (date(2024, 3, 11), date(2024, 3, 24))
        assert info.status is PeriodStatus.ACTIVE

    def test_downtime_creates_one_period_covering_today(self, service, make_budget, make_period):
        budget = make_budget(role=BudgetRole.ACTIVE)
        make_period(budget, date(2024, 1, 1), date(2024, 1, 14), status=PeriodStatus.COMPLETED)

        info = service.continue_budget(budget.id, _calendar_at(2024, 3, 13, 12))

        assert (info.start_date, info.end_date) == (date(2024, 3, 11), date(2024, 3, 24))
        assert len(service._periods_of(budget.id)) == 2

    def test_no_period_to_continue_from(self, service, make_budget, calendar):
        with pytest.raises(NoActivePeriodError):
            service.continue_budget(make_budget().id, calendar)

    def test_uses_current_budget_amount(self, service, make_budget, make_period, calendar):
        budget = make_budget(role=BudgetRole.ACTIVE, amount="300")
        make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.COMPLETED, target="250")
        assert service.continue_budget(budget.id, calendar).target_amount == 300


class TestCreateNextPeriod:

    def test_pre_creates_following_period(self, service, make_budget, make_period, calendar):
        budget = make_budget(role=BudgetRole.ACTIVE)
        make_period(budget, date(2024, 3, 11), date(2024, 3, 24))

        info = service.create_next_period(budget.id, calendar)

        assert (info.start_date, info.end_date) == (date(2024, 3, 25), date(2024, 4, 7))
        assert info.status is PeriodStatus.UPCOMING
        with pytest.raises(PeriodOverlapError):
            service.create_next_period(budget.id, calendar)

    def test_requires_active_period(self, service, make_budget, make_period, calendar):
        budget = make_budget(role=BudgetRole.ACTIVE)
        make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.COMPLETED)
        with pytest.raises(NoActivePeriodError):
            service.create_next_period(budget.id, calendar)


class TestEnsureLivePeriod:

    def test_noop_when_live_period_exists(self, service, make_budget, make_period, calendar):
        budget = make_budget(role=BudgetRole.ACTIVE)
        make_period(budget, date(2024, 3, 11), date(2024, 3, 24))
        assert service.ensure_live_period(budget.id, calendar) is None

    def test_weekday_rule_for_fresh_budget(self, service, make_budget, calendar):
        budget = make_budget(role=BudgetRole.ACTIVE, start_weekday=0, duration_days=7)
        info = service.ensure_live_period(budget.id, calendar)
        assert (info.start_date, info.end_date) == (date(2024, 3, 10), date(2024, 3, 16))

    def test_falls_back_to_continuation_on_phase_drift(self, service, make_budget, make_period):
        # Weekly Monday budget whose cycle drifted onto Thursdays
        budget = make_budget(role=BudgetRole.ACTIVE, duration_days=7)
        make_period(budget, date(2024, 3, 7), date(2024, 3, 13), status=PeriodStatus.COMPLETED)

        info = service.ensure_live_period(budget.id, _calendar_at(2024, 3, 14, 9))

        assert (info.start_date, info.end_date) == (date(2024, 3, 14), date(2024, 3, 20))

    def test_stale_stored_status_does_not_count_as_live(self, service, make_budget, make_period, calendar):
        # Stored ACTIVE but over by the calendar: not live
        budget = make_budget(role=BudgetRole.ACTIVE)
        make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.ACTIVE)
        assert not service.has_live_period(budget.id, calendar)


class TestReclassifyAll:

    def test_forward_changes_written(self, service, make_budget, make_period, calendar):
        budget = make_budget(role=BudgetRole.ACTIVE)
        old = make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.ACTIVE)
        current = make_period(budget, date(2024, 3, 11), date(2024, 3, 24), status=PeriodStatus.UPCOMING)
        future = make_period(budget, date(2024, 3, 25), date(2024, 4, 7), status=PeriodStatus.UPCOMING)

        changes = service.reclassify_all(calendar)

        assert {(c.period_id, c.old_status, c.new_status) for c in changes} == {
            (old.id, PeriodStatus.ACTIVE, PeriodStatus.COMPLETED),
            (current.id, PeriodStatus.UPCOMING, PeriodStatus.ACTIVE),
        }
        assert [c.completed for c in changes if c.period_id == old.id] == [True]
        assert future.current_status is PeriodStatus.UPCOMING

    def test_second_pass_is_noop(self, service, make_budget, make_period, calendar):
        budget = make_budget(role=BudgetRole.ACTIVE)
        make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.ACTIVE)
        assert len(service.reclassify_all(calendar)) == 1
        assert service.reclassify_all(calendar) == []

    def test_backward_observation_ignored(self, service, make_budget, make_period, captured_logs):
        # Period went active on the 11th in UTC; viewed from Honolulu at 05:00 UTC
        # on the 11th it is still the 10th, so it would look upcoming.
        budget = make_budget(role=BudgetRole.ACTIVE)
        period = make_period(budget, date(2024, 3, 11), date(2024, 3, 24), status=PeriodStatus.ACTIVE)

        changes = service.reclassify_all(_calendar_at(2024, 3, 11, 5, tz="Pacific/Honolulu"))

        assert changes == []
        assert period.current_status is PeriodStatus.ACTIVE
        assert any(r["message"] == "period_status_regression_ignored" for r in captured_logs())

    def test_completed_periods_not_touched(self, service, make_budget, make_period, calendar):
        budget = make_budget()
        make_period(budget, date(2024, 1, 1), date(2024, 1, 14), status=PeriodStatus.COMPLETED)
        assert service.reclassify_all(calendar) == []
