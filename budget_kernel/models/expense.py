"""
Module: budget_kernel.models.expense
Responsibility: The expense record, as far as period attribution needs it.

An expense with ``budget_period_id`` NULL is an orphan.  Deleting a
period (only done when its budget is deleted) detaches its expenses
via ON DELETE SET NULL; expenses themselves are never deleted by the
period engine.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import Base
from budget_kernel.db.types import UTCDateTime, UUIDString


class Expense(Base):
    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expense_period", "budget_period_id"),
        Index("idx_expense_occurred_at", "occurred_at"),
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    budget_period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("budget_periods.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Expense {self.amount} at {self.occurred_at.isoformat()}>"

    @property
    def is_orphan(self) -> bool:
        return self.budget_period_id is None
