"""
BudgetCycleFacade -- the upward-facing API for request handlers.

Responsibility:
    One method per user-facing operation.  Each method opens its own
    transaction, resolves the timezone setting and "now" once, calls the
    kernel services/selectors and returns frozen DTOs.

Architecture position:
    Services layer -- above ``budget_kernel`` and ``budget_batch``.  The
    manual sweep triggers delegate to the shared ContinuationEngine.

Invariants enforced:
    - One transaction per operation: commit on success, rollback on any
      error (``session_scope``).
    - Store failures surface as ``TransientStoreError``; domain errors
      (validation, conflict, not found) propagate unchanged.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_batch.domain.types import SweepReport
from budget_batch.services.continuation import ContinuationEngine
from budget_kernel.db.engine import session_scope
from budget_kernel.domain.calendar import COMMON_TIMEZONES, DEFAULT_TIMEZONE, CalendarContext
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import (
    BudgetInfo,
    BudgetPeriodInfo,
    CreatedBudget,
    ExpenseInfo,
    PeriodPerformance,
    PeriodProgress,
    TimezoneOption,
)
from budget_kernel.domain.progress import compute_progress
from budget_kernel.exceptions import NoActivePeriodError, TransientStoreError
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.selectors.budget_selector import BudgetSelector
from budget_kernel.selectors.period_selector import PeriodSelector
from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.expense_service import ExpenseService
from budget_kernel.services.period_service import PeriodService
from budget_kernel.services.settings_service import SettingsService

logger = get_logger("services.facade")

T = TypeVar("T")


class BudgetCycleFacade:
    """
    Request-level entry points.

    Non-goals:
        - No authentication or multi-user scoping.
        - Does NOT run the periodic sweep; SweepScheduler does.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        default_timezone: str = DEFAULT_TIMEZONE,
        continuation: ContinuationEngine | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._default_timezone = default_timezone
        self._continuation = continuation or ContinuationEngine(
            session_factory, clock=self._clock, default_timezone=default_timezone
        )

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _calendar(self, session: Session) -> CalendarContext:
        tz_name = SettingsService(session, self._default_timezone).get_timezone()
        return CalendarContext.resolve(tz_name, self._clock)

    def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        with LogContext.bind(request_id=uuid4()):
            try:
                with session_scope(self._session_factory) as session:
                    return work(session)
            except SQLAlchemyError as exc:
                logger.error(
                    "request_store_failure",
                    extra={"operation": operation, "cause_type": type(exc).__name__},
                )
                raise TransientStoreError(operation, exc) from exc

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def create_budget(
        self,
        name: str,
        amount: Any,
        start_weekday: int,
        duration_days: int,
        vacation_mode: bool = False,
        retroactive: bool = False,
        target_date: date | datetime | None = None,
    ) -> CreatedBudget:
        """Create a budget; see BudgetService.create_budget.

        ``target_date`` may be a local calendar date (interpreted in the
        configured timezone) or an aware instant.
        """

        def work(session: Session) -> CreatedBudget:
            calendar = self._calendar(session)
            target_instant = None
            if isinstance(target_date, datetime):
                target_instant = target_date
            elif isinstance(target_date, date):
                target_instant = calendar.start_of_day(target_date)
            return BudgetService(session, self._clock).create_budget(
                name,
                amount,
                start_weekday,
                duration_days,
                calendar,
                vacation_mode=vacation_mode,
                retroactive=retroactive,
                target_instant=target_instant,
            )

        return self._run("create_budget", work)

    def activate_budget(self, budget_id: UUID) -> BudgetInfo:
        return self._run(
            "activate_budget",
            lambda s: BudgetService(s, self._clock).activate_budget(budget_id, self._calendar(s)),
        )

    def schedule_upcoming_budget(self, budget_id: UUID) -> BudgetInfo:
        return self._run(
            "schedule_upcoming_budget",
            lambda s: BudgetService(s, self._clock).schedule_upcoming_budget(budget_id),
        )

    def cancel_upcoming_budget(self, budget_id: UUID) -> BudgetInfo:
        return self._run(
            "cancel_upcoming_budget",
            lambda s: BudgetService(s, self._clock).cancel_upcoming_budget(budget_id),
        )

    def toggle_vacation_mode(self, budget_id: UUID) -> BudgetInfo:
        return self._run(
            "toggle_vacation_mode",
            lambda s: BudgetService(s, self._clock).toggle_vacation_mode(budget_id),
        )

    def update_budget(
        self,
        budget_id: UUID,
        name: str | None = None,
        amount: Any = None,
    ) -> BudgetInfo:
        return self._run(
            "update_budget",
            lambda s: BudgetService(s, self._clock).update_budget(
                budget_id, self._calendar(s), name=name, amount=amount
            ),
        )

    def delete_budget(self, budget_id: UUID) -> None:
        self._run(
            "delete_budget",
            lambda s: BudgetService(s, self._clock).delete_budget(budget_id),
        )

    def list_budgets(self) -> list[BudgetInfo]:
        return self._run("list_budgets", lambda s: BudgetSelector(s).list_budgets())

    def get_active_budget(self) -> BudgetInfo | None:
        return self._run("get_active_budget", lambda s: BudgetSelector(s).get_active_budget())

    def get_upcoming_budget(self) -> BudgetInfo | None:
        return self._run("get_upcoming_budget", lambda s: BudgetSelector(s).get_upcoming_budget())

    # -------------------------------------------------------------------------
    # Periods
    # -------------------------------------------------------------------------

    def list_periods(self, budget_id: UUID | None = None) -> list[BudgetPeriodInfo]:
        return self._run(
            "list_periods", lambda s: PeriodSelector(s).get_budget_periods(budget_id)
        )

    def get_current_period_with_progress(self) -> PeriodProgress | None:
        """The active budget's active period with spend progress as of now."""

        def work(session: Session) -> PeriodProgress | None:
            period = PeriodSelector(session).get_current_period()
            if period is None:
                return None
            return compute_progress(period, self._calendar(session))

        return self._run("get_current_period_with_progress", work)

    def get_budget_history(self, budget_id: UUID, limit: int = 10) -> list[PeriodPerformance]:
        return self._run(
            "get_budget_history",
            lambda s: PeriodSelector(s).get_budget_history(budget_id, limit=limit),
        )

    def get_budget_trends(self) -> list[PeriodPerformance]:
        return self._run("get_budget_trends", lambda s: PeriodSelector(s).get_budget_trends())

    def create_next_period(self, budget_id: UUID | None = None) -> BudgetPeriodInfo:
        """Pre-create the period following the active one (active budget by default).

        Raises:
            NoActivePeriodError: no active budget, or it has no active period.
        """

        def work(session: Session) -> BudgetPeriodInfo:
            target = budget_id
            if target is None:
                active = BudgetSelector(session).get_active_budget()
                if active is None:
                    raise NoActivePeriodError(None)
                target = active.id
            return PeriodService(session, self._clock).create_next_period(
                target, self._calendar(session)
            )

        return self._run("create_next_period", work)

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def record_expense(
        self,
        amount: Any,
        occurred_at: datetime | None = None,
        description: str | None = None,
        category: str | None = None,
    ) -> ExpenseInfo:
        """Record an expense; ``occurred_at`` defaults to now."""

        def work(session: Session) -> ExpenseInfo:
            calendar = self._calendar(session)
            return ExpenseService(session, self._clock).record_expense(
                amount,
                occurred_at or calendar.now,
                calendar,
                description=description,
                category=category,
            )

        return self._run("record_expense", work)

    def list_orphan_expenses(self) -> list[ExpenseInfo]:
        return self._run("list_orphan_expenses", lambda s: PeriodSelector(s).get_orphan_expenses())

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def get_timezone(self) -> str:
        return self._run(
            "get_timezone",
            lambda s: SettingsService(s, self._default_timezone).get_timezone(),
        )

    def set_timezone(self, timezone_name: str) -> str:
        return self._run(
            "set_timezone",
            lambda s: SettingsService(s, self._default_timezone).set_timezone(timezone_name),
        )

    @staticmethod
    def common_timezones() -> list[TimezoneOption]:
        return [TimezoneOption(value=v, label=label) for v, label in COMMON_TIMEZONES]

    # -------------------------------------------------------------------------
    # Manual sweep triggers
    # -------------------------------------------------------------------------

    def force_reclassify(self) -> SweepReport | None:
        return self._continuation.force_reclassify()

    def force_auto_continue(self) -> SweepReport | None:
        return self._continuation.force_auto_continue()

    def force_orphan_reconciliation(self) -> SweepReport | None:
        return self._continuation.force_orphan_reconciliation()
