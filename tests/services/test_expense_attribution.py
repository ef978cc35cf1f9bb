"""
Tests for ExpenseService (write-time attribution) and ReconciliationService
(orphan association).
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.lifecycle import BudgetRole, PeriodStatus
from budget_kernel.exceptions import (
    BudgetPeriodNotFoundError,
    ExpenseNotFoundError,
    ValidationError,
)
from budget_kernel.models import Expense
from budget_kernel.services.expense_service import ExpenseService
from budget_kernel.services.reconciliation_service import ReconciliationService


@pytest.fixture
def expenses(db_session, clock):
    return ExpenseService(db_session, clock)


@pytest.fixture
def reconciler(db_session):
    return ReconciliationService(db_session)


@pytest.fixture
def active_setup(make_budget, make_period):
    budget = make_budget(role=BudgetRole.ACTIVE)
    period = make_period(budget, date(2024, 3, 11), date(2024, 3, 24))
    return budget, period


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestRecordExpense:

    def test_stamped_to_current_period(self, expenses, calendar, active_setup, captured_logs):
        _, period = active_setup
        info = expenses.record_expense("12.40", _utc(2024, 3, 13, 9), calendar, description="Milk")

        assert info.budget_period_id == period.id
        assert info.amount == Decimal("12.40")
        record = next(r for r in captured_logs() if r["message"] == "expense_recorded")
        assert record["attribution"] == "current_period"

    def test_outside_current_period_left_orphan(self, expenses, calendar, active_setup):
        info = expenses.record_expense("5", _utc(2024, 3, 1, 9), calendar)
        assert info.is_orphan

    def test_vacation_mode_left_orphan(self, expenses, calendar, active_setup):
        budget, _ = active_setup
        budget.vacation_mode = True
        info = expenses.record_expense("5", _utc(2024, 3, 13, 9), calendar)
        assert info.is_orphan

    def test_no_current_period(self, expenses, calendar):
        assert expenses.record_expense("5", _utc(2024, 3, 13, 9), calendar).is_orphan

    def test_inactive_budget_period_not_current(self, expenses, calendar, make_budget, make_period):
        make_period(make_budget(), date(2024, 3, 11), date(2024, 3, 24))
        assert expenses.record_expense("5", _utc(2024, 3, 13, 9), calendar).is_orphan

    def test_local_date_decides(self, expenses, active_setup, clock):
        # 02:00 UTC on the 11th is the 10th in New York: before the period
        cal = CalendarContext.resolve("America/New_York", clock)
        assert expenses.record_expense("5", _utc(2024, 3, 11, 2), cal).is_orphan

    @pytest.mark.parametrize("amount", ["0", "-3", "abc", None])
    def test_invalid_amount(self, expenses, calendar, amount):
        with pytest.raises(ValidationError):
            expenses.record_expense(amount, _utc(2024, 3, 13), calendar)

    def test_naive_timestamp_rejected(self, expenses, calendar):
        with pytest.raises(ValidationError):
            expenses.record_expense("5", datetime(2024, 3, 13, 9), calendar)


class TestExpenseEdits:

    def test_associate(self, expenses, calendar, active_setup):
        _, period = active_setup
        orphan = expenses.record_expense("5", _utc(2024, 3, 1), calendar)
        assert expenses.associate_expense_with_period(orphan.id, period.id).budget_period_id == period.id

    def test_associate_unknown_period(self, expenses, calendar):
        orphan = expenses.record_expense("5", _utc(2024, 3, 1), calendar)
        with pytest.raises(BudgetPeriodNotFoundError):
            expenses.associate_expense_with_period(orphan.id, uuid4())

    def test_update_keeps_attribution(self, expenses, calendar, active_setup):
        _, period = active_setup
        info = expenses.record_expense("5", _utc(2024, 3, 13), calendar)
        updated = expenses.update_expense(info.id, amount="7.5", category="food")
        assert updated.amount == Decimal("7.5")
        assert updated.category == "food"
        assert updated.budget_period_id == period.id

    def test_delete(self, expenses, db_session, calendar):
        info = expenses.record_expense("5", _utc(2024, 3, 13), calendar)
        expenses.delete_expense(info.id)
        db_session.flush()
        assert db_session.get(Expense, info.id) is None
        with pytest.raises(ExpenseNotFoundError):
            expenses.delete_expense(info.id)


class TestReconcileOrphans:

    def test_orphan_attached_to_containing_period(self, reconciler, calendar, active_setup, make_expense):
        _, period = active_setup
        orphan = make_expense("9", _utc(2024, 3, 12, 8))

        result = reconciler.reconcile_orphans(calendar)

        assert (result.examined, result.associated) == (1, 1)
        assert orphan.budget_period_id == period.id

    def test_completed_period_of_inactive_budget_matches(
        self, reconciler, calendar, make_budget, make_period, make_expense
    ):
        old = make_period(make_budget(), date(2024, 1, 1), date(2024, 1, 14), status=PeriodStatus.COMPLETED)
        orphan = make_expense("9", _utc(2024, 1, 5))
        reconciler.reconcile_orphans(calendar)
        assert orphan.budget_period_id == old.id

    def test_active_budget_wins_when_periods_overlap(
        self, reconciler, calendar, active_setup, make_budget, make_period, make_expense
    ):
        _, active_period = active_setup
        make_period(make_budget(name="Other"), date(2024, 3, 4), date(2024, 3, 17))
        orphan = make_expense("9", _utc(2024, 3, 12))
        reconciler.reconcile_orphans(calendar)
        assert orphan.budget_period_id == active_period.id

    def test_vacation_budget_skipped(self, reconciler, calendar, active_setup, make_expense):
        budget, _ = active_setup
        budget.vacation_mode = True
        orphan = make_expense("9", _utc(2024, 3, 12))

        result = reconciler.reconcile_orphans(calendar)

        assert result.skipped_vacation == 1
        assert orphan.is_orphan

    def test_unmatched_counted(self, reconciler, calendar, make_expense):
        make_expense("9", _utc(2023, 6, 1))
        result = reconciler.reconcile_orphans(calendar)
        assert (result.examined, result.unmatched, result.associated) == (1, 1, 0)

    def test_timezone_moves_expense_across_boundary(
        self, reconciler, clock, make_budget, make_period, make_expense
    ):
        budget = make_budget(role=BudgetRole.ACTIVE, duration_days=7)
        before = make_period(budget, date(2024, 3, 4), date(2024, 3, 10), status=PeriodStatus.COMPLETED)
        make_period(budget, date(2024, 3, 11), date(2024, 3, 17))
        orphan = make_expense("9", _utc(2024, 3, 11, 2))

        reconciler.reconcile_orphans(CalendarContext.resolve("America/New_York", clock))

        assert orphan.budget_period_id == before.id

    def test_attributed_expenses_not_reexamined(self, reconciler, calendar, active_setup, make_expense):
        _, period = active_setup
        make_expense("9", _utc(2024, 3, 12), period)
        assert reconciler.reconcile_orphans(calendar).examined == 0
