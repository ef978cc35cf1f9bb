"""
ReconciliationService -- attaching orphan expenses to the period they fall in.

Responsibility:
    For every expense without a period, find the period (any budget) whose
    local date range contains the expense's local date and attach it,
    unless that period's budget is in vacation mode.  Vacation-mode and
    unmatched expenses stay orphaned and are looked at again on the next
    pass, so ending vacation mode heals them automatically.

Invariants enforced:
    - Only orphans are touched; an attributed expense is never moved.
    - Containment uses CalendarContext local dates.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.dtos import ReconciliationResult
from budget_kernel.exceptions import BudgetPeriodNotFoundError
from budget_kernel.logging_config import get_logger
from budget_kernel.models.budget import Budget
from budget_kernel.models.budget_period import BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.selectors.period_selector import PeriodSelector
from budget_kernel.services.base import BaseService

logger = get_logger("services.reconciliation")


class ReconciliationService(BaseService[Expense]):

    def __init__(self, session: Session):
        super().__init__(session)
        self._periods = PeriodSelector(session)

    def _orphans(self) -> list[Expense]:
        return list(
            self.session.execute(
                select(Expense)
                .where(Expense.budget_period_id.is_(None))
                .order_by(Expense.occurred_at)
            ).scalars()
        )

    def reconcile_orphans(self, calendar: CalendarContext) -> ReconciliationResult:
        examined = associated = skipped_vacation = unmatched = 0
        vacation_by_budget: dict[UUID, bool] = {}

        for expense in self._orphans():
            examined += 1
            period = self._periods.find_period_for_expense(expense.occurred_at, calendar)
            if period is None:
                unmatched += 1
                continue

            if period.budget_id not in vacation_by_budget:
                budget = self.session.get(Budget, period.budget_id)
                vacation_by_budget[period.budget_id] = bool(budget and budget.vacation_mode)
            if vacation_by_budget[period.budget_id]:
                skipped_vacation += 1
                continue

            expense.budget_period_id = period.id
            associated += 1
            logger.info(
                "orphan_expense_associated",
                extra={"expense_id": str(expense.id), "period_id": str(period.id)},
            )

        if associated:
            self.session.flush()

        result = ReconciliationResult(
            examined=examined,
            associated=associated,
            skipped_vacation=skipped_vacation,
            unmatched=unmatched,
        )
        logger.info(
            "orphan_reconciliation_completed",
            extra={
                "examined": examined,
                "associated": associated,
                "skipped_vacation": skipped_vacation,
                "unmatched": unmatched,
            },
        )
        return result

    def backfill_period(self, period_id: UUID, calendar: CalendarContext) -> int:
        """Attach orphans falling inside one period (used after retroactive creation).

        Returns the number attached; zero while the budget is in vacation mode.
        """
        period = self.session.get(BudgetPeriod, period_id)
        if period is None:
            raise BudgetPeriodNotFoundError(period_id)
        budget = self.session.get(Budget, period.budget_id)
        if budget is not None and budget.vacation_mode:
            return 0

        count = 0
        for expense in self._orphans():
            if period.contains_date(calendar.local_date(expense.occurred_at)):
                expense.budget_period_id = period.id
                count += 1
        if count:
            self.session.flush()
        logger.info(
            "retroactive_backfill_completed",
            extra={"period_id": str(period_id), "associated": count},
        )
        return count
