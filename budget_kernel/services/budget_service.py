"""
BudgetService -- budget definitions and the active/upcoming role swaps.

Responsibility:
    Creates budgets (forward or retroactive initial period), moves budgets
    between the inactive / active / upcoming roles, edits them, toggles
    vacation mode and deletes them.

Architecture position:
    Kernel > Services -- imperative shell.  Composes PeriodService for the
    period generated alongside a role change so both land in the caller's
    single transaction.

Invariants enforced:
    - At most one active and one upcoming budget.  A swap demotes the
      previous holder and flushes before promoting the new one, so the
      partial unique indexes never see two holders.
    - Amount edits reach the active period of an active budget only;
      completed periods keep their snapshot.
    - Validation runs before anything is added to the session.

Failure modes:
    - ValidationError, BudgetNotFoundError, ActiveBudgetDeletionError,
      RetroactiveCreationError, IllegalTransitionError, PeriodOverlapError.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import BudgetInfo, CreatedBudget
from budget_kernel.domain.lifecycle import BudgetRole, PeriodStatus, classify
from budget_kernel.domain.periods import validate_cycle
from budget_kernel.exceptions import (
    ActiveBudgetDeletionError,
    BudgetNotFoundError,
    RetroactiveCreationError,
    ValidationError,
)
from budget_kernel.logging_config import get_logger
from budget_kernel.models.budget import Budget
from budget_kernel.models.budget_period import BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.services.base import BaseService
from budget_kernel.services.period_service import PeriodService
from budget_kernel.services.reconciliation_service import ReconciliationService

logger = get_logger("services.budget")


class BudgetService(BaseService[Budget]):
    """
    Service for budget definitions and role transitions.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT reclassify periods; the sweep does.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._periods = PeriodService(session, self._clock)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _get(self, budget_id: UUID) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if budget is None:
            raise BudgetNotFoundError(budget_id)
        return budget

    def _holder(self, role: BudgetRole) -> Budget | None:
        return self.session.execute(
            select(Budget).where(Budget.role == role.value)
        ).scalar_one_or_none()

    def _info(self, budget: Budget) -> BudgetInfo:
        has_history = self.session.scalar(
            select(BudgetPeriod.id).where(BudgetPeriod.budget_id == budget.id).limit(1)
        ) is not None
        return BudgetInfo.from_model(budget, has_history)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_budget(
        self,
        name: str,
        amount: Any,
        start_weekday: int,
        duration_days: int,
        calendar: CalendarContext,
        vacation_mode: bool = False,
        retroactive: bool = False,
        target_instant: datetime | None = None,
    ) -> CreatedBudget:
        """
        Create a budget.

        - No active budget: the new budget becomes active and gets its first
          period (weekday rule from now, or the retroactive period containing
          ``target_instant``; retroactive creation also attaches orphan
          expenses inside that period).
        - Otherwise the budget is created inactive with no periods, ready to
          be activated or scheduled as upcoming.

        Raises:
            ValidationError: bad cycle parameters.
            RetroactiveCreationError: ``retroactive`` while a budget is active.
        """
        parsed_amount = validate_cycle(name, amount, start_weekday, duration_days)
        if target_instant is not None and target_instant.tzinfo is None:
            raise ValidationError({"target_date": "Target instant must be timezone-aware"})

        active = self._holder(BudgetRole.ACTIVE)
        if retroactive and active is not None:
            raise RetroactiveCreationError(active.id)

        budget = Budget(
            name=name.strip(),
            amount=parsed_amount,
            start_weekday=start_weekday,
            duration_days=duration_days,
            role=BudgetRole.INACTIVE.value,
            vacation_mode=vacation_mode,
        )
        self.session.add(budget)
        self.session.flush()

        initial = None
        backfilled = 0
        if active is None:
            budget.activate()
            self.session.flush()
            if retroactive:
                initial = self._periods.create_retroactive_period(
                    budget.id, target_instant or calendar.now, calendar
                )
                backfilled = ReconciliationService(self.session).backfill_period(
                    initial.id, calendar
                )
            else:
                initial = self._periods.generate_forward_for(budget.id, calendar)[0]

        logger.info(
            "budget_created",
            extra={
                "budget_id": str(budget.id),
                "role": budget.role,
                "retroactive": retroactive,
                "start_weekday": start_weekday,
                "duration_days": duration_days,
                "initial_period_id": str(initial.id) if initial else None,
                "backfilled_expenses": backfilled,
            },
        )
        return CreatedBudget(
            budget=self._info(budget),
            initial_period=initial,
            backfilled_expenses=backfilled,
        )

    # -------------------------------------------------------------------------
    # Role swaps
    # -------------------------------------------------------------------------

    def activate_budget(self, budget_id: UUID, calendar: CalendarContext) -> BudgetInfo:
        """Make ``budget_id`` the active budget (atomic swap).

        The previous active budget becomes inactive.  If the newly active
        budget has no active or upcoming period, one is generated from now.
        Activating the already-active budget is a no-op.
        """
        budget = self._get(budget_id)
        if budget.is_active:
            return self._info(budget)

        previous = self._holder(BudgetRole.ACTIVE)
        if previous is not None:
            previous.deactivate()
            self.session.flush()

        budget.activate()
        self.session.flush()
        self._periods.ensure_live_period(budget.id, calendar)

        logger.info(
            "budget_activated",
            extra={
                "budget_id": str(budget.id),
                "previous_budget_id": str(previous.id) if previous else None,
            },
        )
        return self._info(budget)

    def transition_to_upcoming(
        self,
        current_id: UUID,
        upcoming_id: UUID,
        calendar: CalendarContext,
    ) -> BudgetInfo:
        """Hand over from the active budget to the scheduled upcoming one.

        Deactivates ``current_id``, promotes ``upcoming_id`` (clearing its
        upcoming role) and generates its first period from today.
        """
        current = self._get(current_id)
        upcoming = self._get(upcoming_id)

        current.deactivate()
        self.session.flush()
        upcoming.activate()
        self.session.flush()
        period = self._periods.ensure_live_period(upcoming.id, calendar)

        logger.info(
            "budget_transitioned",
            extra={
                "from_budget_id": str(current.id),
                "to_budget_id": str(upcoming.id),
                "period_id": str(period.id) if period else None,
            },
        )
        return self._info(upcoming)

    def schedule_upcoming_budget(self, budget_id: UUID) -> BudgetInfo:
        """Mark ``budget_id`` as the upcoming budget, replacing any other.

        Raises:
            IllegalTransitionError: the budget is currently active.
        """
        budget = self._get(budget_id)
        if budget.is_upcoming:
            return self._info(budget)
        if budget.is_active:
            # Let the state machine produce the error
            budget.schedule()

        previous = self._holder(BudgetRole.UPCOMING)
        if previous is not None:
            previous.unschedule()
            self.session.flush()

        budget.schedule()
        self.session.flush()
        logger.info(
            "budget_scheduled",
            extra={
                "budget_id": str(budget.id),
                "replaced_budget_id": str(previous.id) if previous else None,
            },
        )
        return self._info(budget)

    def cancel_upcoming_budget(self, budget_id: UUID) -> BudgetInfo:
        budget = self._get(budget_id)
        budget.unschedule()
        self.session.flush()
        logger.info("budget_unscheduled", extra={"budget_id": str(budget.id)})
        return self._info(budget)

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def set_vacation_mode(self, budget_id: UUID, enabled: bool) -> BudgetInfo:
        budget = self._get(budget_id)
        if budget.vacation_mode != enabled:
            budget.vacation_mode = enabled
            self.session.flush()
            logger.info(
                "vacation_mode_changed",
                extra={"budget_id": str(budget.id), "vacation_mode": enabled},
            )
        return self._info(budget)

    def toggle_vacation_mode(self, budget_id: UUID) -> BudgetInfo:
        budget = self._get(budget_id)
        return self.set_vacation_mode(budget_id, not budget.vacation_mode)

    def update_budget(
        self,
        budget_id: UUID,
        calendar: CalendarContext,
        name: str | None = None,
        amount: Any = None,
    ) -> BudgetInfo:
        """Edit name and/or amount.

        A new amount is copied to the period that contains today when the
        budget is active; completed and upcoming periods keep their target.
        The period is found by date, so a stored status the sweep has not
        refreshed yet does not matter; a stored completion is final.
        """
        budget = self._get(budget_id)
        parsed_amount = validate_cycle(
            budget.name if name is None else name,
            budget.amount if amount is None else amount,
            budget.start_weekday,
            budget.duration_days,
        )

        if name is not None:
            budget.name = name.strip()

        propagated = False
        if amount is not None and parsed_amount != budget.amount:
            budget.amount = parsed_amount
            if budget.is_active:
                current = next(
                    (
                        p for p in self.session.execute(
                            select(BudgetPeriod).where(
                                BudgetPeriod.budget_id == budget.id,
                                BudgetPeriod.status != PeriodStatus.COMPLETED.value,
                            )
                        ).scalars()
                        if classify(p.start_date, p.end_date, calendar.today)
                        is PeriodStatus.ACTIVE
                    ),
                    None,
                )
                if current is not None:
                    current.target_amount = parsed_amount
                    propagated = True

        self.session.flush()
        logger.info(
            "budget_updated",
            extra={
                "budget_id": str(budget.id),
                "amount_propagated": propagated,
            },
        )
        return self._info(budget)

    def delete_budget(self, budget_id: UUID) -> None:
        """Delete an inactive or upcoming budget and its periods.

        Expenses attributed to those periods are detached, not deleted.

        Raises:
            ActiveBudgetDeletionError: the budget is active.
        """
        budget = self._get(budget_id)
        if budget.is_active:
            raise ActiveBudgetDeletionError(budget.id)

        period_ids = list(
            self.session.scalars(
                select(BudgetPeriod.id).where(BudgetPeriod.budget_id == budget.id)
            )
        )
        detached = removed = 0
        if period_ids:
            detached = self.session.execute(
                update(Expense)
                .where(Expense.budget_period_id.in_(period_ids))
                .values(budget_period_id=None)
                .execution_options(synchronize_session="fetch")
            ).rowcount
            removed = self.session.execute(
                delete(BudgetPeriod)
                .where(BudgetPeriod.id.in_(period_ids))
                .execution_options(synchronize_session="fetch")
            ).rowcount
        self.session.delete(budget)
        self.session.flush()

        logger.info(
            "budget_deleted",
            extra={
                "budget_id": str(budget_id),
                "periods_removed": removed,
                "expenses_detached": detached,
            },
        )
