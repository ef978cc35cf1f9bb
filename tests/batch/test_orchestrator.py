"""Tests for BudgetCycleOrchestrator wiring."""

from budget_batch.orchestrator import BudgetCycleOrchestrator
from budget_batch.domain.types import SweepStep
from budget_config import BudgetCycleConfig
from budget_kernel.db.engine import get_session_factory, reset_engine


class TestOrchestrator:

    def test_shares_clock_and_timezone(self, session_factory, clock):
        config = BudgetCycleConfig(default_timezone="America/Denver", sweep_interval_seconds=900)
        orchestrator = BudgetCycleOrchestrator(config, session_factory, clock=clock)

        report = orchestrator.continuation_engine.run_sweep()

        assert orchestrator.clock is clock
        assert report.started_at == clock.now()
        assert report.timezone_name == "America/Denver"

    def test_create_scheduler_uses_config(self, session_factory, clock):
        config = BudgetCycleConfig(sweep_interval_seconds=900, run_sweep_on_start=False)
        orchestrator = BudgetCycleOrchestrator(config, session_factory, clock=clock)

        scheduler = orchestrator.create_scheduler()

        assert scheduler._interval == 900
        assert scheduler._run_on_start is False
        assert not scheduler.is_running
        orchestrator.shutdown()

    def test_from_config_builds_schema(self, clock, captured_logs):
        config = BudgetCycleConfig(database_url="sqlite://")
        try:
            orchestrator = BudgetCycleOrchestrator.from_config(config, clock=clock, create_schema=True)
            assert orchestrator.session_factory is get_session_factory()

            report = orchestrator.continuation_engine.run_sweep()
            assert report.succeeded
            assert report.outcome(SweepStep.RECONCILE).counts["examined"] == 0

            orchestrator.shutdown()
        finally:
            reset_engine()

        messages = [r["message"] for r in captured_logs()]
        assert "orchestrator_initialized" in messages
        assert "orchestrator_shutdown" in messages
