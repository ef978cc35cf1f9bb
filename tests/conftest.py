"""
Pytest fixtures for the budget cycle test suite.

Provides:
- In-memory SQLite engine per test (foreign keys on, all tables created)
- Session factory / session fixtures
- DeterministicClock pinned to Wednesday 2024-03-13 12:00 UTC
- Budget/period/expense builders that bypass the services
- Captured JSON log records
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from budget_kernel.db.base import Base
from budget_kernel.db.engine import build_engine, create_tables
from budget_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from budget_kernel.domain.calendar import CalendarContext
from budget_kernel.domain.clock import DeterministicClock
from budget_kernel.domain.lifecycle import BudgetRole, PeriodStatus
from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from budget_kernel.models import Budget, BudgetPeriod, Expense

# Wednesday
DEFAULT_NOW = datetime(2024, 3, 13, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture budget_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            assert any(r["message"] == "period_generated" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("budget_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    create_tables(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Clock / calendar
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(DEFAULT_NOW)


@pytest.fixture
def calendar(clock):
    return CalendarContext.resolve("UTC", clock)


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_budget(db_session):
    """Insert a budget row directly, in the given role."""

    def _make(
        name: str = "Groceries",
        amount: str = "400",
        start_weekday: int = 1,
        duration_days: int = 14,
        role: BudgetRole = BudgetRole.INACTIVE,
        vacation_mode: bool = False,
    ) -> Budget:
        budget = Budget(
            name=name,
            amount=Decimal(amount),
            start_weekday=start_weekday,
            duration_days=duration_days,
            role=role.value,
            vacation_mode=vacation_mode,
        )
        db_session.add(budget)
        db_session.flush()
        return budget

    return _make


@pytest.fixture
def make_period(db_session):
    """Insert a period row directly (no overlap check)."""

    def _make(
        budget: Budget,
        start: date,
        end: date,
        status: PeriodStatus = PeriodStatus.ACTIVE,
        target: str | None = None,
    ) -> BudgetPeriod:
        period = BudgetPeriod(
            budget_id=budget.id,
            start_date=start,
            end_date=end,
            target_amount=Decimal(target) if target is not None else budget.amount,
            status=status.value,
        )
        db_session.add(period)
        db_session.flush()
        return period

    return _make


@pytest.fixture
def make_expense(db_session):
    """Insert an expense row directly."""

    def _make(
        amount: str,
        occurred_at: datetime,
        period: BudgetPeriod | None = None,
        description: str | None = None,
    ) -> Expense:
        expense = Expense(
            amount=Decimal(amount),
            occurred_at=occurred_at,
            description=description,
            budget_period_id=period.id if period is not None else None,
        )
        db_session.add(expense)
        db_session.flush()
        return expense

    return _make
