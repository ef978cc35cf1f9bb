"""
BudgetSelector -- read access to budgets.

Answers "which budget is active / upcoming" and lists budgets with their
``has_history`` flag (a budget with at least one period).
"""

from uuid import UUID

from sqlalchemy import exists, select

from budget_kernel.domain.dtos import BudgetInfo
from budget_kernel.domain.lifecycle import BudgetRole
from budget_kernel.models.budget import Budget
from budget_kernel.models.budget_period import BudgetPeriod
from budget_kernel.selectors.base import BaseSelector


class BudgetSelector(BaseSelector[Budget]):

    def _has_history(self, budget_id: UUID) -> bool:
        return bool(
            self.session.scalar(
                select(exists().where(BudgetPeriod.budget_id == budget_id))
            )
        )

    def _by_role(self, role: BudgetRole) -> BudgetInfo | None:
        budget = self.session.execute(
            select(Budget).where(Budget.role == role.value)
        ).scalar_one_or_none()
        if budget is None:
            return None
        return BudgetInfo.from_model(budget, self._has_history(budget.id))

    def get_active_budget(self) -> BudgetInfo | None:
        return self._by_role(BudgetRole.ACTIVE)

    def get_upcoming_budget(self) -> BudgetInfo | None:
        return self._by_role(BudgetRole.UPCOMING)

    def get_budget_by_id(self, budget_id: UUID) -> BudgetInfo | None:
        budget = self.session.get(Budget, budget_id)
        if budget is None:
            return None
        return BudgetInfo.from_model(budget, self._has_history(budget.id))

    def list_budgets(self) -> list[BudgetInfo]:
        """All budgets, newest first."""
        with_history = set(
            self.session.execute(select(BudgetPeriod.budget_id).distinct()).scalars()
        )
        budgets = self.session.execute(
            select(Budget).order_by(Budget.created_at.desc(), Budget.name)
        ).scalars()
        return [BudgetInfo.from_model(b, b.id in with_history) for b in budgets]
