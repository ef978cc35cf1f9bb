"""
Module: budget_kernel.models.budget
Responsibility: ORM persistence for recurring budget definitions.
Architecture position: Kernel > Models.  May import from db/ and domain/lifecycle.

Invariants enforced:
    - start_weekday in 0..6 (Sunday=0) and duration_days in 7..28 (CHECK).
    - amount > 0 (CHECK).
    - At most one row with role='active' and at most one with
      role='upcoming' (partial unique indexes).  Two budgets can never be
      active at once even if a caller bypasses BudgetService.
    - role changes only through activate()/deactivate()/schedule()/unschedule(),
      which validate the move against the lifecycle graph.

Failure modes:
    - IntegrityError if the partial unique indexes are violated.
    - IllegalTransitionError on an invalid role change.
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TrackedBase
from budget_kernel.domain.lifecycle import BudgetRole, transition_role
from budget_kernel.domain.periods import CycleDefinition


class Budget(TrackedBase):
    """A named recurring spending cycle."""

    __tablename__ = "budgets"

    __table_args__ = (
        CheckConstraint("start_weekday >= 0 AND start_weekday <= 6", name="ck_budget_weekday"),
        CheckConstraint("duration_days >= 7 AND duration_days <= 28", name="ck_budget_duration"),
        CheckConstraint("amount > 0", name="ck_budget_amount"),
        CheckConstraint(
            "role IN ('inactive', 'active', 'upcoming')",
            name="ck_budget_role",
        ),
        Index(
            "uq_budget_single_active",
            "role",
            unique=True,
            sqlite_where=text("role = 'active'"),
            postgresql_where=text("role = 'active'"),
        ),
        Index(
            "uq_budget_single_upcoming",
            "role",
            unique=True,
            sqlite_where=text("role = 'upcoming'"),
            postgresql_where=text("role = 'upcoming'"),
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    start_weekday: Mapped[int] = mapped_column(Integer, nullable=False)

    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)

    role: Mapped[str] = mapped_column(
        String(20),
        default=BudgetRole.INACTIVE.value,
        nullable=False,
    )

    # Suppresses expense association; periods keep being generated
    vacation_mode: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Budget {self.name!r}: {self.current_role.value}>"

    @property
    def current_role(self) -> BudgetRole:
        return BudgetRole(self.role)

    @property
    def is_active(self) -> bool:
        return self.current_role is BudgetRole.ACTIVE

    @property
    def is_upcoming(self) -> bool:
        return self.current_role is BudgetRole.UPCOMING

    @property
    def cycle(self) -> CycleDefinition:
        return CycleDefinition(
            start_weekday=self.start_weekday,
            duration_days=self.duration_days,
            amount=self.amount,
        )

    def _move_to(self, target: BudgetRole) -> None:
        self.role = transition_role(self.current_role, target, self.id).value

    def activate(self) -> None:
        self._move_to(BudgetRole.ACTIVE)

    def deactivate(self) -> None:
        self._move_to(BudgetRole.INACTIVE)

    def schedule(self) -> None:
        self._move_to(BudgetRole.UPCOMING)

    def unschedule(self) -> None:
        self._move_to(BudgetRole.INACTIVE)
