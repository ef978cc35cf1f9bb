"""
ContinuationEngine -- one sweep of the budget cycle, step by step.

Contract:
    ``run_sweep()`` resolves the timezone and "now" once, then runs the
    four steps in order, each in its own transaction.  A step that raises
    is logged and recorded in the SweepReport; the following steps still
    run.  ``run_sweep()`` itself never raises.

Architecture: budget_batch/services.  Uses budget_kernel services for all
    writes and budget_kernel.domain.lifecycle for the completion decision.

Invariants enforced:
    - One CalendarContext per sweep: every step sees the same zone and
      the same instant.
    - Every generation path is guarded by the overlap check or the
      "no active/upcoming period" test, so a re-run after a partial
      failure creates nothing twice.
    - A role hand-over (deactivate + activate + generate) commits as one
      unit or not at all.
    - Sweeps and manual triggers never overlap: one that finds another in
      progress is skipped, logged as ``sweep_skipped_reentrant``, and
      returns None.
"""

from __future__ import annotations

import threading
from typing import Callable, TypeVar
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_kernel.db.engine import session_scope
from budget_kernel.domain.calendar import DEFAULT_TIMEZONE, CalendarContext
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import StatusChange
from budget_kernel.domain.lifecycle import (
    CompletionAction,
    decide_completion_action,
    derive_cycle_state,
)
from budget_kernel.exceptions import TransientStoreError
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.models.budget import Budget
from budget_kernel.selectors.budget_selector import BudgetSelector
from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.period_service import PeriodService
from budget_kernel.services.reconciliation_service import ReconciliationService
from budget_kernel.services.settings_service import SettingsService

from budget_batch.domain.types import StepOutcome, SweepReport, SweepStep

logger = get_logger("batch.continuation")

T = TypeVar("T")


class ContinuationEngine:
    """Runs sweeps and the manual per-step triggers.

    Non-goals:
        - NOT a scheduler; SweepScheduler decides when to call it.
        - Guards overlap within one process only; two processes sharing a
          store are not coordinated.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        default_timezone: str = DEFAULT_TIMEZONE,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._default_timezone = default_timezone
        self._sweep_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def resolve_calendar(self) -> CalendarContext:
        """Read the timezone setting once and pin "now".

        A store failure here falls back to the default zone rather than
        aborting the sweep.
        """
        try:
            with session_scope(self._session_factory) as session:
                tz_name = SettingsService(session, self._default_timezone).get_timezone()
        except SQLAlchemyError:
            logger.exception("timezone_lookup_failed", extra={"fallback": self._default_timezone})
            tz_name = self._default_timezone
        return CalendarContext.resolve(tz_name, self._clock)

    @property
    def sweep_in_progress(self) -> bool:
        return self._sweep_lock.locked()

    def run_sweep(self) -> SweepReport | None:
        """Steps 1-4 in order.  None when another sweep or trigger holds the lock."""
        return self._exclusive("sweep", self._sweep)

    def force_reclassify(self) -> SweepReport | None:
        """Step 1, plus step 2 for whatever completed during it."""
        return self._exclusive(
            "reclassify",
            lambda: self._manual("reclassify", self._reclassify_and_handle),
        )

    def force_auto_continue(self) -> SweepReport | None:
        """Step 3 only."""
        return self._exclusive(
            "auto_continue",
            lambda: self._manual("auto_continue", lambda cal: [self._auto_continue(cal)]),
        )

    def force_orphan_reconciliation(self) -> SweepReport | None:
        """Step 4 only."""
        return self._exclusive(
            "reconcile",
            lambda: self._manual("reconcile", lambda cal: [self._reconcile(cal)]),
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _exclusive(self, trigger: str, run: Callable[[], SweepReport]) -> SweepReport | None:
        """Scheduled sweeps and manual triggers never overlap; losers are skipped."""
        if not self._sweep_lock.acquire(blocking=False):
            logger.warning("sweep_skipped_reentrant", extra={"trigger": trigger})
            return None
        try:
            return run()
        finally:
            self._sweep_lock.release()

    def _sweep(self) -> SweepReport:
        sweep_id = uuid4()
        with LogContext.bind(sweep_id=sweep_id):
            calendar = self.resolve_calendar()
            logger.info(
                "sweep_started",
                extra={"timezone": calendar.timezone_name, "now": calendar.now},
            )

            changes, reclassify = self._reclassify(calendar)
            outcomes = [reclassify]
            outcomes.append(self._handle_completions(changes, calendar))
            outcomes.append(self._auto_continue(calendar))
            outcomes.append(self._reconcile(calendar))

            report = SweepReport(
                sweep_id=sweep_id,
                started_at=calendar.now,
                timezone_name=calendar.timezone_name,
                outcomes=tuple(outcomes),
            )
            logger.info(
                "sweep_completed",
                extra={
                    "succeeded": report.succeeded,
                    "failed_steps": [s.value for s in report.failed_steps],
                },
            )
            return report

    def _manual(
        self,
        trigger: str,
        body: Callable[[CalendarContext], list[StepOutcome]],
    ) -> SweepReport:
        sweep_id = uuid4()
        with LogContext.bind(sweep_id=sweep_id):
            calendar = self.resolve_calendar()
            logger.info("manual_trigger", extra={"trigger": trigger})
            return SweepReport(
                sweep_id=sweep_id,
                started_at=calendar.now,
                timezone_name=calendar.timezone_name,
                outcomes=tuple(body(calendar)),
            )

    def _reclassify_and_handle(self, calendar: CalendarContext) -> list[StepOutcome]:
        changes, outcome = self._reclassify(calendar)
        return [outcome, self._handle_completions(changes, calendar)]

    def _in_transaction(
        self,
        step: SweepStep,
        work: Callable[[Session], T],
    ) -> tuple[T | None, str | None]:
        """Run ``work`` in its own transaction.

        Returns ``(result, None)`` on success or ``(None, error_code)`` after
        logging the failure.  Store errors are reported as TransientStoreError.
        """
        try:
            with session_scope(self._session_factory) as session:
                return work(session), None
        except Exception as exc:
            error = TransientStoreError(step.value, exc) if isinstance(exc, SQLAlchemyError) else exc
            code = getattr(error, "code", type(exc).__name__)
            logger.exception("sweep_step_failed", extra={"error_code": code})
            return None, code

    def _reclassify(
        self, calendar: CalendarContext
    ) -> tuple[list[StatusChange], StepOutcome]:
        step = SweepStep.RECLASSIFY
        with LogContext.bind(step=step.value):
            changes, error = self._in_transaction(
                step,
                lambda s: PeriodService(s, self._clock).reclassify_all(calendar),
            )
        if error is not None:
            return [], StepOutcome(step, succeeded=False, error_code=error)
        changes = changes or []
        return changes, StepOutcome(
            step,
            succeeded=True,
            counts={
                "status_changes": len(changes),
                "completed": sum(1 for c in changes if c.completed),
            },
        )

    def _handle_completions(
        self,
        changes: list[StatusChange],
        calendar: CalendarContext,
    ) -> StepOutcome:
        """One transaction per completed period; failures don't stop the rest."""
        step = SweepStep.HANDLE_COMPLETIONS
        counts = {"transitioned": 0, "continued": 0, "no_action": 0, "failed": 0}
        first_error: str | None = None

        with LogContext.bind(step=step.value):
            for change in (c for c in changes if c.completed):
                with LogContext.bind(period_id=change.period_id, budget_id=change.budget_id):
                    action, error = self._in_transaction(
                        step,
                        lambda s, change=change: self._complete_period(s, change, calendar),
                    )
                if error is not None:
                    counts["failed"] += 1
                    first_error = first_error or error
                elif action is CompletionAction.TRANSITION:
                    counts["transitioned"] += 1
                elif action is CompletionAction.CONTINUE:
                    counts["continued"] += 1
                else:
                    counts["no_action"] += 1

        return StepOutcome(
            step,
            succeeded=counts["failed"] == 0,
            counts=counts,
            error_code=first_error,
        )

    def _complete_period(
        self,
        session: Session,
        change: StatusChange,
        calendar: CalendarContext,
    ) -> CompletionAction:
        budget = session.get(Budget, change.budget_id)
        if budget is None:
            logger.warning("completed_period_budget_missing")
            return CompletionAction.NONE

        periods = PeriodService(session, self._clock)
        upcoming = BudgetSelector(session).get_upcoming_budget()
        has_live = periods.has_live_period(budget.id, calendar)
        action = decide_completion_action(
            budget.current_role, has_live, upcoming is not None
        )
        # The completed period itself counts as history
        state = derive_cycle_state(
            budget.current_role, True, has_live, upcoming is not None
        )
        logger.info(
            "period_completion_decided",
            extra={"cycle_state": state.value, "action": action.value},
        )

        if action is CompletionAction.TRANSITION:
            BudgetService(session, self._clock).transition_to_upcoming(
                budget.id, upcoming.id, calendar
            )
        elif action is CompletionAction.CONTINUE:
            periods.continue_budget(budget.id, calendar)
        else:
            logger.info(
                "period_completion_no_action",
                extra={"role": budget.role},
            )
        return action

    def _auto_continue(self, calendar: CalendarContext) -> StepOutcome:
        """Recovery: the active budget must always have a live period."""
        step = SweepStep.AUTO_CONTINUE
        with LogContext.bind(step=step.value):
            created, error = self._in_transaction(
                step, lambda s: self._ensure_active_cycle(s, calendar)
            )
        if error is not None:
            return StepOutcome(step, succeeded=False, error_code=error)
        return StepOutcome(step, succeeded=True, counts={"periods_created": created or 0})

    def _ensure_active_cycle(self, session: Session, calendar: CalendarContext) -> int:
        selector = BudgetSelector(session)
        active = selector.get_active_budget()
        if active is None:
            return 0

        periods = PeriodService(session, self._clock)
        if periods.has_live_period(active.id, calendar):
            return 0

        # A hand-over missed by step 2 (e.g. it failed last sweep)
        upcoming = selector.get_upcoming_budget()
        if upcoming is not None:
            BudgetService(session, self._clock).transition_to_upcoming(
                active.id, upcoming.id, calendar
            )
            return 1

        created = periods.ensure_live_period(active.id, calendar)
        if created is not None:
            logger.info(
                "active_budget_recovered",
                extra={
                    "budget_id": str(active.id),
                    "period_id": str(created.id),
                    "vacation_mode": active.vacation_mode,
                },
            )
            return 1
        return 0

    def _reconcile(self, calendar: CalendarContext) -> StepOutcome:
        step = SweepStep.RECONCILE
        with LogContext.bind(step=step.value):
            result, error = self._in_transaction(
                step, lambda s: ReconciliationService(s).reconcile_orphans(calendar)
            )
        if error is not None:
            return StepOutcome(step, succeeded=False, error_code=error)
        return StepOutcome(
            step,
            succeeded=True,
            counts={
                "examined": result.examined,
                "associated": result.associated,
                "skipped_vacation": result.skipped_vacation,
                "unmatched": result.unmatched,
            },
        )
