"""
Pytest fixtures for the budget engine test suite.

Provides:
- A file-backed SQLite database per test (threads share it safely)
- Session factory / session fixtures
- A deterministic clock pinned to Tuesday 2025-07-22 12:00 UTC
- Row factories for budgets, periods and expenses
- Captured structured logs
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.orm import sessionmaker

from budget_kernel.db.engine import build_engine, create_tables
from budget_kernel.domain.clock import DeterministicClock
from budget_kernel.domain.dtos import PeriodStatus
from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from budget_kernel.models import Budget, BudgetPeriod, Expense

UTC = ZoneInfo("UTC")

# Tuesday
DEFAULT_NOW = datetime(2025, 7, 22, 12, 0, 0, tzinfo=timezone.utc)


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

        def test_something(captured_logs, scheduler):
            scheduler.tick()
            logs = captured_logs()
            assert any(r["message"] == "tick_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("budget_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'budget.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return DeterministicClock(fixed_time=DEFAULT_NOW)


@pytest.fixture
def utc():
    return UTC


# =============================================================================
# Row factories
# =============================================================================


@pytest.fixture
def make_budget(session_factory):
    """Insert a budget directly and return its id."""

    def _make(
        name: str = "Weekly",
        amount: str = "500",
        start_weekday: int = 1,
        duration_days: int = 7,
        is_active: bool = False,
        is_upcoming: bool = False,
        vacation_mode: bool = False,
    ):
        with session_factory() as session:
            budget = Budget(
                name=name,
                amount=Decimal(amount),
                start_weekday=start_weekday,
                duration_days=duration_days,
                is_active=is_active,
                is_upcoming=is_upcoming,
                vacation_mode=vacation_mode,
            )
            session.add(budget)
            session.commit()
            return budget.id

    return _make


@pytest.fixture
def make_period(session_factory):
    """Insert a period directly (bypassing the overlap check) and return its id."""

    def _make(
        budget_id,
        start: date,
        end: date,
        status: PeriodStatus = PeriodStatus.ACTIVE,
        target_amount: str = "500",
    ):
        with session_factory() as session:
            period = BudgetPeriod(
                budget_id=budget_id,
                start_date=start,
                end_date=end,
                target_amount=Decimal(target_amount),
                status=status.value,
            )
            session.add(period)
            session.commit()
            return period.id

    return _make


@pytest.fixture
def make_expense(session_factory):
    """Insert an expense (UTC timestamp) and return its id."""

    def _make(amount: str, timestamp: datetime, budget_period_id=None, description=None):
        with session_factory() as session:
            expense = Expense(
                amount=Decimal(amount),
                timestamp=timestamp,
                description=description,
                budget_period_id=budget_period_id,
            )
            session.add(expense)
            session.commit()
            return expense.id

    return _make


@pytest.fixture
def fetch(session_factory):
    """Load a row by model and id in a fresh session."""

    def _fetch(model, row_id):
        with session_factory() as session:
            return session.get(model, row_id)

    return _fetch
