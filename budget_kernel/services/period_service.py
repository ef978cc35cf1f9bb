"""
PeriodService -- persisting generated periods and advancing their status.

Responsibility:
    Turns ``PeriodDraft`` values from the pure generator into rows, guards
    them with the overlap check, rolls a budget's cycle forward, and runs
    the reclassification pass that moves statuses forward.

Architecture position:
    Kernel > Services -- imperative shell around domain/periods.py and
    domain/lifecycle.py.

Invariants enforced:
    - No two periods of one budget overlap: every insert goes through
      ``create_period`` which consults ``find_overlap`` first.
    - Status only moves forward; a backward observation is logged and
      left alone.
    - Reclassification writes only rows whose status actually changes, so
      two passes at the same instant produce no second round of writes.
    - Flush-only: never commits or rolls back.

Failure modes:
    - PeriodOverlapError: generated range collides with an existing period.
    - NoActivePeriodError: nothing to continue from.
    - BudgetNotFoundError: unknown budget id.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import BudgetPeriodInfo, StatusChange
from budget_kernel.domain.lifecycle import PeriodStatus, classify, is_backward
from budget_kernel.domain.periods import (
    PeriodDraft,
    compute_period_end,
    continuation_draft,
    find_overlap,
    generate_forward,
    generate_retroactive,
    next_period_start,
)
from budget_kernel.exceptions import (
    BudgetNotFoundError,
    NoActivePeriodError,
    PeriodOverlapError,
)
from budget_kernel.logging_config import get_logger
from budget_kernel.models.budget import Budget
from budget_kernel.models.budget_period import BudgetPeriod
from budget_kernel.services.base import BaseService

logger = get_logger("services.period")


class PeriodService(BaseService[BudgetPeriod]):
    """
    Service for the budget period lifecycle.

    Guarantees:
        - Returned values are frozen ``BudgetPeriodInfo`` / ``StatusChange``.
        - Every created period has ``end_date = start_date + duration - 1``
          and ``target_amount`` equal to the budget amount at that moment.

    Non-goals:
        - Does NOT decide whether a budget should continue or hand over to
          an upcoming budget; that is the sweep's decision table.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _get_budget(self, budget_id: UUID) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if budget is None:
            raise BudgetNotFoundError(budget_id)
        return budget

    def _periods_of(self, budget_id: UUID) -> list[BudgetPeriod]:
        return list(
            self.session.execute(
                select(BudgetPeriod)
                .where(BudgetPeriod.budget_id == budget_id)
                .order_by(BudgetPeriod.start_date)
            ).scalars()
        )

    def has_live_period(self, budget_id: UUID, calendar: CalendarContext) -> bool:
        """True if any period of the budget is active or upcoming as of now.

        Evaluated against the calendar rather than stored status so that it
        is correct even when a reclassification pass has not run yet.
        """
        today = calendar.today
        return any(
            classify(p.start_date, p.end_date, today) is not PeriodStatus.COMPLETED
            for p in self._periods_of(budget_id)
        )

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_period(self, budget_id: UUID, draft: PeriodDraft) -> BudgetPeriodInfo:
        """Persist ``draft`` for the budget after checking for overlap.

        Raises:
            PeriodOverlapError: if the draft collides with an existing period.
        """
        clash = find_overlap(draft.start_date, draft.end_date, self._periods_of(budget_id))
        if clash is not None:
            logger.warning(
                "period_overlap_rejected",
                extra={
                    "budget_id": str(budget_id),
                    "start_date": draft.start_date,
                    "end_date": draft.end_date,
                    "existing_period_id": str(clash.id),
                },
            )
            raise PeriodOverlapError(
                budget_id,
                draft.start_date.isoformat(),
                draft.end_date.isoformat(),
                clash.id,
            )

        period = BudgetPeriod(
            budget_id=budget_id,
            start_date=draft.start_date,
            end_date=draft.end_date,
            target_amount=draft.target_amount,
            status=draft.status.value,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_generated",
            extra={
                "budget_id": str(budget_id),
                "period_id": str(period.id),
                "start_date": draft.start_date,
                "end_date": draft.end_date,
                "status": draft.status.value,
                "target_amount": draft.target_amount,
            },
        )
        return BudgetPeriodInfo.from_model(period)

    def generate_forward_for(
        self,
        budget_id: UUID,
        calendar: CalendarContext,
        count: int = 1,
        from_instant: datetime | None = None,
    ) -> list[BudgetPeriodInfo]:
        """Generate ``count`` periods by the weekday rule from ``from_instant`` (default now)."""
        budget = self._get_budget(budget_id)
        drafts = generate_forward(
            budget.cycle, from_instant or calendar.now, calendar.tz, count
        )
        return [self.create_period(budget_id, d) for d in drafts]

    def create_retroactive_period(
        self,
        budget_id: UUID,
        target_instant: datetime,
        calendar: CalendarContext,
    ) -> BudgetPeriodInfo:
        """The single period containing ``target_instant``, status as of now."""
        budget = self._get_budget(budget_id)
        draft = generate_retroactive(budget.cycle, target_instant, calendar)
        logger.info(
            "retroactive_period_computed",
            extra={
                "budget_id": str(budget_id),
                "target_date": calendar.local_date(target_instant),
                "start_date": draft.start_date,
                "status": draft.status.value,
            },
        )
        return self.create_period(budget_id, draft)

    def continue_budget(self, budget_id: UUID, calendar: CalendarContext) -> BudgetPeriodInfo:
        """Roll the cycle forward from the budget's latest period.

        Strictly advances by ``duration_days`` from the last start; the
        weekday rule is not consulted, so the cycle phase survives timezone
        changes.  After downtime it jumps straight to the cycle covering
        today (one new period, no backlog).

        Raises:
            NoActivePeriodError: the budget has no period at all.
        """
        budget = self._get_budget(budget_id)
        periods = self._periods_of(budget_id)
        if not periods:
            raise NoActivePeriodError(budget_id)
        last = periods[-1]
        draft = continuation_draft(budget.cycle, last.start_date, calendar.today)
        info = self.create_period(budget_id, draft)
        logger.info(
            "budget_continued",
            extra={
                "budget_id": str(budget_id),
                "previous_period_id": str(last.id),
                "period_id": str(info.id),
                "vacation_mode": budget.vacation_mode,
            },
        )
        return info

    def create_next_period(self, budget_id: UUID, calendar: CalendarContext) -> BudgetPeriodInfo:
        """Pre-create the period after the budget's currently active one.

        Raises:
            NoActivePeriodError: the budget has no active period.
            PeriodOverlapError: the next period already exists.
        """
        budget = self._get_budget(budget_id)
        current = next(
            (p for p in self._periods_of(budget_id) if p.current_status is PeriodStatus.ACTIVE),
            None,
        )
        if current is None:
            raise NoActivePeriodError(budget_id)
        start = next_period_start(current.start_date, budget.duration_days)
        end = compute_period_end(start, budget.duration_days)
        draft = PeriodDraft(
            start_date=start,
            end_date=end,
            target_amount=budget.amount,
            status=classify(start, end, calendar.today),
        )
        return self.create_period(budget_id, draft)

    def ensure_live_period(
        self,
        budget_id: UUID,
        calendar: CalendarContext,
    ) -> BudgetPeriodInfo | None:
        """Give the budget an active or upcoming period if it has none.

        Uses the weekday rule anchored at now.  If that would overlap an
        existing period (cycle phase drifted from the weekday anchor), falls
        back to phase-preserving continuation.  Returns the new period, or
        None when one already existed.
        """
        if self.has_live_period(budget_id, calendar):
            return None
        budget = self._get_budget(budget_id)
        periods = self._periods_of(budget_id)
        draft = generate_forward(budget.cycle, calendar.now, calendar.tz, 1)[0]
        if periods and find_overlap(draft.start_date, draft.end_date, periods) is not None:
            return self.continue_budget(budget_id, calendar)
        return self.create_period(budget_id, draft)

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def reclassify_all(self, calendar: CalendarContext) -> list[StatusChange]:
        """Re-derive every period's status from one pinned "now".

        Only forward changes are written.  Returns the changes made.
        """
        today = calendar.today
        changes: list[StatusChange] = []
        periods = self.session.execute(
            select(BudgetPeriod).where(
                BudgetPeriod.status != PeriodStatus.COMPLETED.value
            )
        ).scalars().all()

        for period in periods:
            observed = classify(period.start_date, period.end_date, today)
            if is_backward(period.current_status, observed):
                logger.warning(
                    "period_status_regression_ignored",
                    extra={
                        "period_id": str(period.id),
                        "current": period.current_status.value,
                        "observed": observed.value,
                        "timezone": calendar.timezone_name,
                    },
                )
                continue
            previous = period.apply_status(observed)
            if previous is None:
                continue
            changes.append(
                StatusChange(
                    period_id=period.id,
                    budget_id=period.budget_id,
                    old_status=previous,
                    new_status=observed,
                )
            )
            logger.info(
                "period_status_changed",
                extra={
                    "period_id": str(period.id),
                    "budget_id": str(period.budget_id),
                    "from_status": previous.value,
                    "to_status": observed.value,
                },
            )

        if changes:
            self.session.flush()
        return changes
