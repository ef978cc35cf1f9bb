"""
ExpenseService -- recording expenses and stamping their period.

Responsibility:
    At write time an expense is attributed to the current active period
    only when that period contains the expense's local date and its budget
    is not in vacation mode.  Anything else is left orphaned for the
    reconciler; an orphan is always preferable to a wrong attribution.

Failure modes:
    - ValidationError: non-positive amount or naive timestamp.
    - ExpenseNotFoundError / BudgetPeriodNotFoundError on bad ids.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import ExpenseInfo
from budget_kernel.exceptions import (
    BudgetPeriodNotFoundError,
    ExpenseNotFoundError,
    ValidationError,
)
from budget_kernel.logging_config import get_logger
from budget_kernel.models.budget import Budget
from budget_kernel.models.budget_period import BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.selectors.period_selector import PeriodSelector
from budget_kernel.services.base import BaseService

logger = get_logger("services.expense")


def _parse_amount(amount: Any) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({"amount": "Expense amount must be a number"}) from None
    if not value.is_finite() or value <= 0:
        raise ValidationError({"amount": "Expense amount must be greater than 0"})
    return value


class ExpenseService(BaseService[Expense]):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _get_expense(self, expense_id: UUID) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    def record_expense(
        self,
        amount: Any,
        occurred_at: datetime,
        calendar: CalendarContext,
        description: str | None = None,
        category: str | None = None,
    ) -> ExpenseInfo:
        """Store an expense, stamping the current period when it clearly applies."""
        value = _parse_amount(amount)
        if occurred_at.tzinfo is None:
            raise ValidationError({"occurred_at": "Expense timestamp must be timezone-aware"})

        period_id: UUID | None = None
        reason = "no_current_period"
        current = PeriodSelector(self.session).get_current_period()
        if current is not None:
            budget = self.session.get(Budget, current.budget_id)
            if not current.contains_date(calendar.local_date(occurred_at)):
                reason = "outside_current_period"
            elif budget is not None and budget.vacation_mode:
                reason = "vacation_mode"
            else:
                period_id = current.id
                reason = "current_period"

        expense = Expense(
            amount=value,
            occurred_at=occurred_at,
            description=description,
            category=category,
            budget_period_id=period_id,
        )
        self.session.add(expense)
        self.session.flush()

        logger.info(
            "expense_recorded",
            extra={
                "expense_id": str(expense.id),
                "period_id": str(period_id) if period_id else None,
                "attribution": reason,
            },
        )
        return ExpenseInfo.from_model(expense)

    def associate_expense_with_period(self, expense_id: UUID, period_id: UUID) -> ExpenseInfo:
        expense = self._get_expense(expense_id)
        if self.session.get(BudgetPeriod, period_id) is None:
            raise BudgetPeriodNotFoundError(period_id)
        expense.budget_period_id = period_id
        self.session.flush()
        logger.info(
            "expense_associated",
            extra={"expense_id": str(expense_id), "period_id": str(period_id)},
        )
        return ExpenseInfo.from_model(expense)

    def update_expense(
        self,
        expense_id: UUID,
        amount: Any = None,
        description: str | None = None,
        category: str | None = None,
    ) -> ExpenseInfo:
        """Edit the amount or labels.  Attribution is left untouched."""
        expense = self._get_expense(expense_id)
        if amount is not None:
            expense.amount = _parse_amount(amount)
        if description is not None:
            expense.description = description
        if category is not None:
            expense.category = category
        self.session.flush()
        return ExpenseInfo.from_model(expense)

    def delete_expense(self, expense_id: UUID) -> None:
        expense = self._get_expense(expense_id)
        self.session.delete(expense)
        self.session.flush()
        logger.info("expense_deleted", extra={"expense_id": str(expense_id)})
