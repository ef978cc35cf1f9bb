"""
BudgetCycleOrchestrator -- DI container for the budget cycle runtime.

Contract:
    Turns a ``BudgetCycleConfig`` into a wired runtime: logging, the
    database engine and session factory, the immutability listeners, the
    continuation engine and (on request) the sweep scheduler.  Single
    place where these dependencies are composed.

Architecture: budget_batch (top-level).  The CLI and any request layer
    start here.

Invariants enforced:
    - Clock injection: engine, scheduler and every facade built from the
      orchestrator share one Clock.
    - The ORM immutability listeners are registered before any session
      is handed out.
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from budget_config import BudgetCycleConfig
from budget_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from budget_kernel.db.immutability import register_immutability_listeners
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.logging_config import configure_logging, get_logger

from budget_batch.services.continuation import ContinuationEngine
from budget_batch.services.scheduler import SweepScheduler

logger = get_logger("batch.orchestrator")


class BudgetCycleOrchestrator:
    """DI container for the sweep and its collaborators.

    Contract:
        - ``from_config()`` initializes logging and the database engine.
        - ``continuation_engine`` runs sweeps and manual triggers.
        - ``create_scheduler()`` returns a SweepScheduler (not started).
        - ``shutdown()`` stops the scheduler and disposes the engine.

    Non-goals:
        - Does NOT start the scheduler automatically; the caller decides.
        - Does NOT create tables unless asked (``create_schema=True``).
    """

    def __init__(
        self,
        config: BudgetCycleConfig,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        engine: Engine | None = None,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._engine = engine
        self._continuation = ContinuationEngine(
            session_factory,
            clock=self._clock,
            default_timezone=config.default_timezone,
        )
        self._scheduler: SweepScheduler | None = None
        register_immutability_listeners()

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: BudgetCycleConfig,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> BudgetCycleOrchestrator:
        """Create a fully wired orchestrator from resolved configuration.

        Args:
            config: Output of ``budget_config.get_active_config()``.
            clock: Optional clock for deterministic runs.
            create_schema: Create missing tables on the engine.
        """
        configure_logging(level=config.log_level)
        engine = init_engine_from_url(config.database_url, echo=config.echo_sql)
        if create_schema:
            create_tables(engine)
        logger.info(
            "orchestrator_initialized",
            extra={
                "dialect": engine.dialect.name,
                "default_timezone": config.default_timezone,
                "sweep_interval_seconds": config.sweep_interval_seconds,
            },
        )
        return cls(
            config=config,
            session_factory=get_session_factory(),
            clock=clock,
            engine=engine,
        )

    # -------------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------------

    def create_scheduler(self) -> SweepScheduler:
        """Create the SweepScheduler using the configured interval."""
        self._scheduler = SweepScheduler(
            self._continuation,
            interval_seconds=self._config.sweep_interval_seconds,
            run_on_start=self._config.run_sweep_on_start,
        )
        return self._scheduler

    def shutdown(self, timeout: float = 30.0) -> None:
        if self._scheduler is not None and self._scheduler.is_running:
            self._scheduler.stop(timeout=timeout)
        if self._engine is not None:
            reset_engine()
            self._engine = None
        logger.info("orchestrator_shutdown")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> BudgetCycleConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def session_factory(self) -> Callable[[], Session]:
        return self._session_factory

    @property
    def continuation_engine(self) -> ContinuationEngine:
        return self._continuation
