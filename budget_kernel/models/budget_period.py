"""
Module: budget_kernel.models.budget_period
Responsibility: ORM persistence for concrete occurrences of a budget cycle.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - (budget_id, start_date, end_date) is unique.
    - end_date >= start_date (CHECK); the exact duration is enforced by
      the generator.
    - status in upcoming/active/completed (CHECK) and only moves forward
      (apply_status; the ORM listener in db/immutability.py backs this up).
    - target_amount is a snapshot of the budget amount at generation time.

Failure modes:
    - IntegrityError on duplicate range.
    - PeriodImmutableError / IllegalTransitionError from the before_update
      listener when a completed period is rewritten.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import Base
from budget_kernel.db.types import UTCDateTime, UUIDString
from budget_kernel.domain.lifecycle import PeriodStatus, advance_status


class BudgetPeriod(Base):
    """One dated occurrence of a budget's cycle."""

    __tablename__ = "budget_periods"

    __table_args__ = (
        UniqueConstraint("budget_id", "start_date", "end_date", name="uq_budget_period_range"),
        CheckConstraint("end_date >= start_date", name="ck_budget_period_dates"),
        CheckConstraint(
            "status IN ('upcoming', 'active', 'completed')",
            name="ck_budget_period_status",
        ),
        Index("idx_budget_period_budget", "budget_id"),
        Index("idx_budget_period_dates", "start_date", "end_date"),
        Index("idx_budget_period_status", "status"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("budgets.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Local calendar dates in the governing timezone, inclusive
    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    target_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=PeriodStatus.UPCOMING.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<BudgetPeriod {self.start_date}..{self.end_date}: {self.status}>"

    @property
    def current_status(self) -> PeriodStatus:
        return PeriodStatus(self.status)

    @property
    def is_completed(self) -> bool:
        return self.current_status is PeriodStatus.COMPLETED

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    def apply_status(self, observed: PeriodStatus) -> PeriodStatus | None:
        """Move to ``observed`` if that is a forward step.

        Returns the previous status when a change was made, else None.
        """
        new_status = advance_status(self.current_status, observed)
        if new_status is None:
            return None
        previous = self.current_status
        self.status = new_status.value
        return previous
