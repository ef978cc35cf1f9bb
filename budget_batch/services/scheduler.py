"""
SweepScheduler -- in-process periodic trigger for the continuation sweep.

Contract:
    Runs ``ContinuationEngine.run_sweep()`` every ``interval_seconds`` in a
    background thread, optionally once immediately on start.

Architecture: budget_batch/services.

Invariants enforced:
    - Sweeps never overlap: the engine skips a tick that finds a sweep or
      manual trigger still running, logs it, and does not queue it.
    - Graceful shutdown: ``stop()`` signals the loop and lets the current
      sweep finish.
"""

from __future__ import annotations

import threading

from budget_kernel.logging_config import get_logger

from budget_batch.domain.types import SweepReport
from budget_batch.services.continuation import ContinuationEngine

logger = get_logger("batch.scheduler")


class SweepScheduler:
    """Periodic sweep trigger.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
        - No catch-up: missed intervals collapse into the next sweep.
    """

    def __init__(
        self,
        engine: ContinuationEngine,
        interval_seconds: float = 3600,
        run_on_start: bool = True,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._engine = engine
        self._interval = interval_seconds
        self._run_on_start = run_on_start
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> SweepReport | None:
        """Run one sweep (public for testing).

        Returns the report, or None when the engine skipped it because a
        sweep or manual trigger was already in progress.
        """
        return self._engine.run_sweep()

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="budget-sweep",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={"interval_seconds": self._interval, "run_on_start": self._run_on_start},
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the loop to exit."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def sweep_in_progress(self) -> bool:
        return self._engine.sweep_in_progress

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background loop.  Exits when stop_event is set."""
        if not self._run_on_start:
            self._stop_event.wait(timeout=self._interval)
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._interval)
