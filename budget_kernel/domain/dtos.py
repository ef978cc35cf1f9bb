"""
DTOs -- immutable snapshots handed out by selectors and services.

Responsibility:
    Callers above the kernel (batch sweep, facade, CLI) never hold ORM
    instances.  Every read and every mutating service call returns one of
    these frozen dataclasses.

Architecture position:
    Kernel > Domain -- no ORM imports at runtime.  ``from_model()`` class
    methods are boundary converters invoked only from services/selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from budget_kernel.domain.lifecycle import BudgetRole, PeriodStatus
from budget_kernel.domain.periods import CycleDefinition

if TYPE_CHECKING:
    from budget_kernel.models.budget import Budget as BudgetModel
    from budget_kernel.models.budget_period import BudgetPeriod as BudgetPeriodModel
    from budget_kernel.models.expense import Expense as ExpenseModel


@dataclass(frozen=True)
class BudgetInfo:
    """Snapshot of a budget definition and its current role."""

    id: UUID
    name: str
    amount: Decimal
    start_weekday: int
    duration_days: int
    role: BudgetRole
    vacation_mode: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    has_history: bool = False

    @property
    def is_active(self) -> bool:
        return self.role is BudgetRole.ACTIVE

    @property
    def is_upcoming(self) -> bool:
        return self.role is BudgetRole.UPCOMING

    @property
    def cycle(self) -> CycleDefinition:
        return CycleDefinition(
            start_weekday=self.start_weekday,
            duration_days=self.duration_days,
            amount=self.amount,
        )

    @classmethod
    def from_model(cls, model: BudgetModel, has_history: bool = False) -> BudgetInfo:
        return cls(
            id=model.id,
            name=model.name,
            amount=model.amount,
            start_weekday=model.start_weekday,
            duration_days=model.duration_days,
            role=BudgetRole(model.role),
            vacation_mode=model.vacation_mode,
            created_at=model.created_at,
            updated_at=model.updated_at,
            has_history=has_history,
        )


@dataclass(frozen=True)
class BudgetPeriodInfo:
    """
    Snapshot of one budget period.

    ``actual_spent`` is computed from attributed expenses at read time;
    it is never stored on the period row.
    """

    id: UUID
    budget_id: UUID
    start_date: date
    end_date: date
    target_amount: Decimal
    status: PeriodStatus
    actual_spent: Decimal = Decimal("0")
    created_at: datetime | None = None
    budget_name: str | None = None

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    @classmethod
    def from_model(
        cls,
        model: BudgetPeriodModel,
        actual_spent: Decimal | None = None,
        budget_name: str | None = None,
    ) -> BudgetPeriodInfo:
        return cls(
            id=model.id,
            budget_id=model.budget_id,
            start_date=model.start_date,
            end_date=model.end_date,
            target_amount=model.target_amount,
            status=PeriodStatus(model.status),
            actual_spent=actual_spent if actual_spent is not None else Decimal("0"),
            created_at=model.created_at,
            budget_name=budget_name,
        )


@dataclass(frozen=True)
class ExpenseInfo:
    id: UUID
    amount: Decimal
    occurred_at: datetime
    budget_period_id: UUID | None
    description: str | None = None
    category: str | None = None

    @property
    def is_orphan(self) -> bool:
        return self.budget_period_id is None

    @classmethod
    def from_model(cls, model: ExpenseModel) -> ExpenseInfo:
        return cls(
            id=model.id,
            amount=model.amount,
            occurred_at=model.occurred_at,
            budget_period_id=model.budget_period_id,
            description=model.description,
            category=model.category,
        )


@dataclass(frozen=True)
class StatusChange:
    """One persisted period status transition from a reclassification pass."""

    period_id: UUID
    budget_id: UUID
    old_status: PeriodStatus
    new_status: PeriodStatus

    @property
    def completed(self) -> bool:
        return self.new_status is PeriodStatus.COMPLETED


@dataclass(frozen=True)
class ReconciliationResult:
    """Counts from one orphan-expense reconciliation pass."""

    examined: int = 0
    associated: int = 0
    skipped_vacation: int = 0
    unmatched: int = 0


@dataclass(frozen=True)
class PeriodProgress:
    """Spending progress of a period relative to "now"."""

    period: BudgetPeriodInfo
    days_total: int
    days_elapsed: int
    days_remaining: int
    spent: Decimal
    remaining: Decimal
    percent_spent: Decimal
    over_budget: bool
    daily_average: Decimal
    projected_total: Decimal
    performance: str


@dataclass(frozen=True)
class PeriodPerformance:
    """A completed period's outcome, used for history and trends."""

    period_id: UUID
    budget_id: UUID
    budget_name: str | None
    start_date: date
    end_date: date
    target_amount: Decimal
    actual_spent: Decimal
    percent_spent: Decimal
    performance: str


@dataclass(frozen=True)
class TimezoneOption:
    value: str
    label: str


@dataclass(frozen=True)
class CreatedBudget:
    """Result of creating a budget: the budget and its initial period, if any."""

    budget: BudgetInfo
    initial_period: BudgetPeriodInfo | None = None
    backfilled_expenses: int = 0
