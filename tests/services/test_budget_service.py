"""
Tests for BudgetService -- creation, role swaps, edits and deletion.

Clock: Wednesday 2024-03-13 12:00 UTC.  Default cycle: Monday, 14 days.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from budget_kernel.domain.lifecycle import BudgetRole, PeriodStatus
from budget_kernel.exceptions import (
    ActiveBudgetDeletionError,
    BudgetNotFoundError,
    IllegalTransitionError,
    RetroactiveCreationError,
    ValidationError,
)
from budget_kernel.models import Budget, BudgetPeriod, Expense
from budget_kernel.services.budget_service import BudgetService


@pytest.fixture
def service(db_session, clock):
    return BudgetService(db_session, clock)


def _periods(session, budget_id):
    return list(
        session.execute(
            select(BudgetPeriod)
            .where(BudgetPeriod.budget_id == budget_id)
            .order_by(BudgetPeriod.start_date)
        ).scalars()
    )


class TestCreateBudget:

    def test_first_budget_becomes_active_with_period(self, service, calendar):
        created = service.create_budget("Groceries", "400", 1, 14, calendar)

        assert created.budget.role is BudgetRole.ACTIVE
        assert created.budget.has_history
        period = created.initial_period
        assert (period.start_date, period.end_date) == (date(2024, 3, 11), date(2024, 3, 24))
        assert period.status is PeriodStatus.ACTIVE
        assert period.target_amount == Decimal("400")

    def test_second_budget_created_inactive(self, service, calendar):
        service.create_budget("Groceries", "400", 1, 14, calendar)
        created = service.create_budget("Holiday", "900", 6, 28, calendar)

        assert created.budget.role is BudgetRole.INACTIVE
        assert created.initial_period is None
        assert not created.budget.has_history

    def test_invalid_input_creates_nothing(self, service, db_session, calendar):
        with pytest.raises(ValidationError) as exc_info:
            service.create_budget("", "-1", 9, 3, calendar)
        assert len(exc_info.value.field_errors) == 4
        assert db_session.execute(select(Budget)).first() is None

    def test_name_is_trimmed(self, service, calendar):
        created = service.create_budget("  Food  ", "10", 1, 7, calendar)
        assert created.budget.name == "Food"

    def test_created_event_logged(self, service, calendar, captured_logs):
        service.create_budget("Groceries", "400", 1, 14, calendar)
        events = [r["message"] for r in captured_logs()]
        assert "period_generated" in events
        assert "budget_created" in events


class TestRetroactiveCreation:

    def test_single_period_containing_target(self, service, calendar, make_expense):
        inside = make_expense("20", datetime(2024, 2, 5, 9, tzinfo=timezone.utc))
        outside = make_expense("30", datetime(2024, 2, 20, 9, tzinfo=timezone.utc))

        created = service.create_budget(
            "Groceries", "400", 1, 14, calendar,
            retroactive=True,
            target_instant=datetime(2024, 2, 1, 10, tzinfo=timezone.utc),
        )

        period = created.initial_period
        assert (period.start_date, period.end_date) == (date(2024, 1, 29), date(2024, 2, 11))
        assert period.status is PeriodStatus.COMPLETED
        assert created.backfilled_expenses == 1
        assert inside.budget_period_id == period.id
        assert outside.budget_period_id is None

    def test_no_backfill_in_vacation_mode(self, service, calendar, make_expense):
        expense = make_expense("20", datetime(2024, 2, 5, 9, tzinfo=timezone.utc))
        created = service.create_budget(
            "Groceries", "400", 1, 14, calendar,
            vacation_mode=True,
            retroactive=True,
            target_instant=datetime(2024, 2, 1, 10, tzinfo=timezone.utc),
        )
        assert created.backfilled_expenses == 0
        assert expense.budget_period_id is None

    def test_rejected_while_budget_active(self, service, calendar):
        active = service.create_budget("Groceries", "400", 1, 14, calendar)
        with pytest.raises(RetroactiveCreationError) as exc_info:
            service.create_budget(
                "Old", "100", 1, 7, calendar,
                retroactive=True,
                target_instant=datetime(2024, 1, 3, tzinfo=timezone.utc),
            )
        assert exc_info.value.active_budget_id == active.budget.id

    def test_naive_target_rejected(self, service, calendar):
        with pytest.raises(ValidationError):
            service.create_budget(
                "Old", "100", 1, 7, calendar,
                retroactive=True,
                target_instant=datetime(2024, 1, 3),
            )


class TestRoleSwaps:

    def test_activate_swaps_atomically(self, service, db_session, calendar):
        first = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        second = service.create_budget("Lean", "250", 3, 7, calendar).budget

        info = service.activate_budget(second.id, calendar)

        assert info.is_active
        assert db_session.get(Budget, first.id).current_role is BudgetRole.INACTIVE
        periods = _periods(db_session, second.id)
        assert [(p.start_date, p.end_date) for p in periods] == [
            (date(2024, 3, 13), date(2024, 3, 19))
        ]
        # The old budget keeps its history
        assert len(_periods(db_session, first.id)) == 1

    def test_activate_active_budget_is_noop(self, service, db_session, calendar):
        budget = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        service.activate_budget(budget.id, calendar)
        assert len(_periods(db_session, budget.id)) == 1

    def test_activate_unknown_budget(self, service, calendar):
        with pytest.raises(BudgetNotFoundError):
            service.activate_budget(uuid4(), calendar)

    def test_schedule_replaces_previous_upcoming(self, service, db_session, calendar):
        service.create_budget("Groceries", "400", 1, 14, calendar)
        a = service.create_budget("A", "100", 1, 7, calendar).budget
        b = service.create_budget("B", "200", 1, 7, calendar).budget

        service.schedule_upcoming_budget(a.id)
        info = service.schedule_upcoming_budget(b.id)

        assert info.is_upcoming
        assert db_session.get(Budget, a.id).current_role is BudgetRole.INACTIVE

    def test_schedule_active_budget_rejected(self, service, calendar):
        active = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        with pytest.raises(IllegalTransitionError):
            service.schedule_upcoming_budget(active.id)

    def test_cancel_upcoming(self, service, calendar):
        service.create_budget("Groceries", "400", 1, 14, calendar)
        b = service.create_budget("B", "200", 1, 7, calendar).budget
        service.schedule_upcoming_budget(b.id)
        assert service.cancel_upcoming_budget(b.id).role is BudgetRole.INACTIVE
        with pytest.raises(IllegalTransitionError):
            service.cancel_upcoming_budget(b.id)

    def test_transition_to_upcoming(self, service, db_session, calendar):
        current = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        nxt = service.create_budget("Next", "300", 3, 7, calendar).budget
        service.schedule_upcoming_budget(nxt.id)

        info = service.transition_to_upcoming(current.id, nxt.id, calendar)

        assert info.is_active and not info.is_upcoming
        assert db_session.get(Budget, current.id).current_role is BudgetRole.INACTIVE
        assert len(_periods(db_session, nxt.id)) == 1


class TestEdits:

    def test_toggle_vacation_mode(self, service, calendar):
        budget = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        assert service.toggle_vacation_mode(budget.id).vacation_mode
        assert not service.toggle_vacation_mode(budget.id).vacation_mode

    def test_amount_propagates_to_active_period(self, service, db_session, calendar):
        budget = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        info = service.update_budget(budget.id, calendar, amount="450")
        assert info.amount == Decimal("450")
        (period,) = _periods(db_session, budget.id)
        assert period.target_amount == Decimal("450")

    def test_amount_not_propagated_for_inactive_budget(
        self, service, db_session, calendar, make_budget, make_period
    ):
        budget = make_budget()
        period = make_period(budget, date(2024, 3, 11), date(2024, 3, 24))
        service.update_budget(budget.id, calendar, amount="999")
        assert period.target_amount == Decimal("400")

    def test_completed_periods_keep_snapshot(
        self, service, db_session, calendar, make_budget, make_period
    ):
        budget = make_budget(role=BudgetRole.ACTIVE)
        old = make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.COMPLETED)
        make_period(budget, date(2024, 3, 11), date(2024, 3, 24))
        service.update_budget(budget.id, calendar, amount="500")
        assert old.target_amount == Decimal("400")

    def test_propagation_follows_calendar_not_stale_status(
        self, service, db_session, calendar, make_budget, make_period
    ):
        # Sweep has not run since 2024-03-10 ended
        budget = make_budget(role=BudgetRole.ACTIVE)
        ended = make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.ACTIVE)
        current = make_period(budget, date(2024, 3, 11), date(2024, 3, 24), status=PeriodStatus.UPCOMING)

        service.update_budget(budget.id, calendar, amount="500")

        assert ended.target_amount == Decimal("400")
        assert current.target_amount == Decimal("500")

    def test_rename_only(self, service, calendar):
        budget = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        assert service.update_budget(budget.id, calendar, name="Food").name == "Food"

    def test_invalid_amount(self, service, calendar):
        budget = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        with pytest.raises(ValidationError):
            service.update_budget(budget.id, calendar, amount="0")


class TestDeleteBudget:

    def test_active_budget_cannot_be_deleted(self, service, calendar):
        budget = service.create_budget("Groceries", "400", 1, 14, calendar).budget
        with pytest.raises(ActiveBudgetDeletionError):
            service.delete_budget(budget.id)

    def test_delete_detaches_expenses(
        self, service, db_session, make_budget, make_period, make_expense, captured_logs
    ):
        budget = make_budget()
        period = make_period(budget, date(2024, 2, 26), date(2024, 3, 10), status=PeriodStatus.COMPLETED)
        expense = make_expense("15", datetime(2024, 3, 1, tzinfo=timezone.utc), period)

        service.delete_budget(budget.id)

        db_session.expire_all()
        assert db_session.get(Budget, budget.id) is None
        assert db_session.get(Expense, expense.id).budget_period_id is None
        deleted = [r for r in captured_logs() if r["message"] == "budget_deleted"]
        assert deleted[0]["periods_removed"] == 1
        assert deleted[0]["expenses_detached"] == 1
