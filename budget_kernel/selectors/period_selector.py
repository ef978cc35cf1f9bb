"""
PeriodSelector -- read access to budget periods and their spending.

Responsibility:
    Every period handed out carries ``actual_spent``, the sum of the
    expenses attributed to it, computed at read time.  Also answers the
    two containment questions the engine depends on: "which period is
    current?" and "which period contains this instant?".

Invariants enforced:
    - Containment is decided on the instant's LOCAL calendar date in the
      governing timezone (CalendarContext), never on raw UTC strings.
    - When periods of different budgets both contain a date, the active
      budget's period wins, then the most recently started one.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import case, func, select

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.dtos import BudgetPeriodInfo, ExpenseInfo, PeriodPerformance
from budget_kernel.domain.lifecycle import BudgetRole, PeriodStatus
from budget_kernel.domain.progress import summarize_performance
from budget_kernel.models.budget import Budget
from budget_kernel.models.budget_period import BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.selectors.base import BaseSelector


class PeriodSelector(BaseSelector[BudgetPeriod]):

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _spent_by_period(self, period_ids: Iterable[UUID]) -> dict[UUID, Decimal]:
        ids = list(period_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Expense.budget_period_id, func.sum(Expense.amount))
            .where(Expense.budget_period_id.in_(ids))
            .group_by(Expense.budget_period_id)
        ).all()
        return {period_id: Decimal(str(total or 0)) for period_id, total in rows}

    def _to_infos(self, rows: list[tuple[BudgetPeriod, str]]) -> list[BudgetPeriodInfo]:
        spent = self._spent_by_period(p.id for p, _ in rows)
        return [
            BudgetPeriodInfo.from_model(p, spent.get(p.id, Decimal("0")), name)
            for p, name in rows
        ]

    def _base_query(self):
        return select(BudgetPeriod, Budget.name).join(
            Budget, Budget.id == BudgetPeriod.budget_id
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def get_period_by_id(self, period_id: UUID) -> BudgetPeriodInfo | None:
        rows = self.session.execute(
            self._base_query().where(BudgetPeriod.id == period_id)
        ).all()
        infos = self._to_infos([tuple(r) for r in rows])
        return infos[0] if infos else None

    def get_budget_periods(self, budget_id: UUID | None = None) -> list[BudgetPeriodInfo]:
        """Periods (optionally of one budget), most recent start first."""
        query = self._base_query()
        if budget_id is not None:
            query = query.where(BudgetPeriod.budget_id == budget_id)
        query = query.order_by(BudgetPeriod.start_date.desc(), BudgetPeriod.created_at.desc())
        return self._to_infos([tuple(r) for r in self.session.execute(query).all()])

    def get_current_period(self) -> BudgetPeriodInfo | None:
        """The active period of the active budget, if any."""
        rows = self.session.execute(
            self._base_query()
            .where(
                BudgetPeriod.status == PeriodStatus.ACTIVE.value,
                Budget.role == BudgetRole.ACTIVE.value,
            )
            .order_by(BudgetPeriod.start_date.desc())
            .limit(1)
        ).all()
        infos = self._to_infos([tuple(r) for r in rows])
        return infos[0] if infos else None

    def get_current_period_for_budget(self, budget_id: UUID) -> BudgetPeriodInfo | None:
        rows = self.session.execute(
            self._base_query()
            .where(
                BudgetPeriod.budget_id == budget_id,
                BudgetPeriod.status == PeriodStatus.ACTIVE.value,
            )
            .order_by(BudgetPeriod.start_date.desc())
            .limit(1)
        ).all()
        infos = self._to_infos([tuple(r) for r in rows])
        return infos[0] if infos else None

    def find_period_for_expense(
        self,
        instant: datetime,
        calendar: CalendarContext,
    ) -> BudgetPeriodInfo | None:
        """Period whose [start_date, end_date] contains the instant's local date."""
        day = calendar.local_date(instant)
        active_first = case((Budget.role == BudgetRole.ACTIVE.value, 0), else_=1)
        rows = self.session.execute(
            self._base_query()
            .where(BudgetPeriod.start_date <= day, BudgetPeriod.end_date >= day)
            .order_by(active_first, BudgetPeriod.start_date.desc())
            .limit(1)
        ).all()
        infos = self._to_infos([tuple(r) for r in rows])
        return infos[0] if infos else None

    def get_orphan_expenses(self) -> list[ExpenseInfo]:
        expenses = self.session.execute(
            select(Expense)
            .where(Expense.budget_period_id.is_(None))
            .order_by(Expense.occurred_at)
        ).scalars()
        return [ExpenseInfo.from_model(e) for e in expenses]

    def get_period_expenses(self, period_id: UUID) -> list[ExpenseInfo]:
        expenses = self.session.execute(
            select(Expense)
            .where(Expense.budget_period_id == period_id)
            .order_by(Expense.occurred_at)
        ).scalars()
        return [ExpenseInfo.from_model(e) for e in expenses]

    def get_budget_history(self, budget_id: UUID, limit: int = 10) -> list[PeriodPerformance]:
        """Completed periods of one budget, most recently ended first."""
        rows = self.session.execute(
            self._base_query()
            .where(
                BudgetPeriod.budget_id == budget_id,
                BudgetPeriod.status == PeriodStatus.COMPLETED.value,
            )
            .order_by(BudgetPeriod.end_date.desc())
            .limit(limit)
        ).all()
        return [summarize_performance(p) for p in self._to_infos([tuple(r) for r in rows])]

    def get_budget_trends(self) -> list[PeriodPerformance]:
        """Every completed period across budgets, oldest first."""
        rows = self.session.execute(
            self._base_query()
            .where(BudgetPeriod.status == PeriodStatus.COMPLETED.value)
            .order_by(BudgetPeriod.start_date)
        ).all()
        return [summarize_performance(p) for p in self._to_infos([tuple(r) for r in rows])]
