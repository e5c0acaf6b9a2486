"""
TransitionOrchestrator: continuation, handoff, vacation suppression,
gap healing and failure isolation.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from budget_kernel.db.engine import session_scope
from budget_kernel.domain.dtos import PeriodStatus
from budget_kernel.domain.transitions import TransitionKind
from budget_kernel.exceptions import PeriodOverlapError
from budget_kernel.models import Budget, Expense
from budget_kernel.services.period_service import PeriodService
from budget_kernel.services.transition_orchestrator import TransitionOrchestrator

UTC = ZoneInfo("UTC")
ROLLOVER = datetime(2025, 7, 28, 0, 5, tzinfo=timezone.utc)


def _reconcile(session_factory, now):
    with session_scope(session_factory) as session:
        return PeriodService(session).reconcile_statuses(now, UTC)


def _periods(session_factory, budget_id):
    with session_factory() as session:
        return PeriodService(session).list_periods(budget_id)


@pytest.fixture
def orchestrator(session_factory, clock):
    return TransitionOrchestrator(session_factory, clock)


class TestAutoContinue:
    def test_rollover_creates_contiguous_period(
        self, orchestrator, session_factory, make_budget, make_period, captured_logs
    ):
        budget_id = make_budget(is_active=True)
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))

        changes = _reconcile(session_factory, ROLLOVER)
        outcome = orchestrator.run(ROLLOVER, UTC, just_completed=changes)

        assert outcome.kind is TransitionKind.AUTO_CONTINUE
        assert outcome.applied
        created = outcome.created_period
        assert (created.start_date, created.end_date) == (date(2025, 7, 28), date(2025, 8, 3))
        assert created.status == PeriodStatus.ACTIVE
        assert len(_periods(session_factory, budget_id)) == 2
        assert any(r["message"] == "budget_auto_continue" for r in captured_logs())

    def test_second_pass_is_a_no_op(self, orchestrator, session_factory, make_budget, make_period):
        budget_id = make_budget(is_active=True)
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        changes = _reconcile(session_factory, ROLLOVER)
        orchestrator.run(ROLLOVER, UTC, just_completed=changes)

        outcome = orchestrator.run(ROLLOVER, UTC)

        assert outcome.kind is TransitionKind.NONE
        assert len(_periods(session_factory, budget_id)) == 2

    def test_new_amount_used_for_next_target(self, orchestrator, session_factory, make_budget, make_period):
        budget_id = make_budget(is_active=True, amount="650")
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27), target_amount="500")
        changes = _reconcile(session_factory, ROLLOVER)

        outcome = orchestrator.run(ROLLOVER, UTC, just_completed=changes)

        assert outcome.created_period.target_amount == Decimal("650")


class TestHandoff:
    def test_upcoming_budget_takes_over(self, orchestrator, session_factory, make_budget, make_period, fetch):
        old = make_budget(is_active=True)
        make_period(old, date(2025, 7, 21), date(2025, 7, 27))
        new = make_budget(name="Biweekly", is_upcoming=True, duration_days=14)

        changes = _reconcile(session_factory, ROLLOVER)
        outcome = orchestrator.run(ROLLOVER, UTC, just_completed=changes)

        assert outcome.kind is TransitionKind.HANDOFF
        assert outcome.decision.predecessor_id == old
        created = outcome.created_period
        assert created.budget_id == new
        assert (created.start_date, created.end_date) == (date(2025, 7, 28), date(2025, 8, 10))

        assert not fetch(Budget, old).is_active
        successor = fetch(Budget, new)
        assert successor.is_active
        assert not successor.is_upcoming

    def test_takes_over_from_pregenerated_periods(
        self, orchestrator, session_factory, make_budget, make_period, make_expense, fetch
    ):
        old = make_budget(is_active=True)
        make_period(old, date(2025, 7, 21), date(2025, 7, 27))
        next_week = make_period(old, date(2025, 7, 28), date(2025, 8, 3), PeriodStatus.UPCOMING)
        make_period(old, date(2025, 8, 4), date(2025, 8, 10), PeriodStatus.UPCOMING)
        spent = make_expense("7", ROLLOVER, budget_period_id=next_week)
        new = make_budget(name="Next", is_upcoming=True)

        changes = _reconcile(session_factory, ROLLOVER)
        outcome = orchestrator.run(ROLLOVER, UTC, just_completed=changes)

        assert outcome.kind is TransitionKind.HANDOFF
        assert outcome.applied
        assert len(outcome.retired_period_ids) == 2
        assert [(p.start_date, p.status) for p in _periods(session_factory, old)] == [
            (date(2025, 7, 21), PeriodStatus.COMPLETED),
        ]
        created = outcome.created_period
        assert created.budget_id == new
        assert (created.start_date, created.end_date) == (date(2025, 7, 28), date(2025, 8, 3))
        assert fetch(Budget, new).is_active
        assert not fetch(Budget, old).is_active
        assert fetch(Expense, spent).budget_period_id is None

    def test_failed_insert_rolls_back_flags(
        self, orchestrator, session_factory, make_budget, make_period, fetch, monkeypatch, captured_logs
    ):
        old = make_budget(is_active=True)
        make_period(old, date(2025, 7, 21), date(2025, 7, 27))
        new = make_budget(name="Next", is_upcoming=True)
        changes = _reconcile(session_factory, ROLLOVER)

        def _conflict(self, candidate):
            raise PeriodOverlapError(str(candidate.budget_id), "a..b", "a..b")

        monkeypatch.setattr(PeriodService, "create_period", _conflict)
        outcome = orchestrator.run(ROLLOVER, UTC, just_completed=changes)

        assert outcome.kind is TransitionKind.HANDOFF
        assert not outcome.applied
        assert outcome.error is not None
        assert fetch(Budget, old).is_active
        assert fetch(Budget, new).is_upcoming
        assert not fetch(Budget, new).is_active
        assert any(r["message"] == "transition_overlap_conflict" for r in captured_logs())

        # The condition persists, so the next pass retries and succeeds
        monkeypatch.undo()
        retry = orchestrator.run(ROLLOVER, UTC)
        assert retry.kind is TransitionKind.HANDOFF
        assert retry.applied


class TestVacation:
    def test_vacation_suppresses_then_resume_heals_gap(
        self, orchestrator, session_factory, make_budget, make_period, captured_logs
    ):
        budget_id = make_budget(is_active=True, vacation_mode=True)
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        changes = _reconcile(session_factory, ROLLOVER)

        outcome = orchestrator.run(ROLLOVER, UTC, just_completed=changes)

        assert outcome.kind is TransitionKind.VACATION
        assert outcome.created_period is None
        assert len(_periods(session_factory, budget_id)) == 1
        assert any(r["message"] == "transition_suppressed_vacation" for r in captured_logs())

        with session_scope(session_factory) as session:
            session.get(Budget, budget_id).vacation_mode = False

        resumed_at = datetime(2025, 8, 13, 9, 0, tzinfo=timezone.utc)
        _reconcile(session_factory, resumed_at)
        resumed = orchestrator.run(resumed_at, UTC)

        assert resumed.kind is TransitionKind.GAP_HEAL
        assert resumed.created_period.contains_date(date(2025, 8, 13))
        assert resumed.created_period.start_date == date(2025, 8, 11)


class TestGapHeal:
    def test_long_downtime_jumps_to_current_window(
        self, orchestrator, session_factory, make_budget, make_period, clock
    ):
        budget_id = make_budget(is_active=True)
        make_period(budget_id, date(2025, 6, 2), date(2025, 6, 8))

        changes = _reconcile(session_factory, clock.now())
        outcome = orchestrator.run(None, UTC, just_completed=changes)

        assert outcome.applied
        assert (outcome.created_period.start_date, outcome.created_period.end_date) == (
            date(2025, 7, 21),
            date(2025, 7, 27),
        )
        assert len(_periods(session_factory, budget_id)) == 2

    def test_active_budget_without_periods(self, orchestrator, session_factory, make_budget):
        budget_id = make_budget(is_active=True)
        outcome = orchestrator.run(None, UTC)

        assert outcome.kind is TransitionKind.GAP_HEAL
        assert outcome.created_period.budget_id == budget_id


class TestInvariantViolation:
    def test_two_active_budgets_logged_critical_and_untouched(
        self, orchestrator, session_factory, make_budget, captured_logs
    ):
        first = make_budget(is_active=True)
        second = make_budget(name="Second", is_active=True)

        outcome = orchestrator.run(None, UTC)

        assert outcome.invariant_violations == ("SINGLE_ACTIVE_BUDGET",)
        assert outcome.decision is None
        assert _periods(session_factory, first) == []
        assert _periods(session_factory, second) == []
        critical = [r for r in captured_logs() if r["level"] == "CRITICAL"]
        assert critical[0]["message"] == "invariant_violation"
        assert critical[0]["invariant"] == "SINGLE_ACTIVE_BUDGET"

    def test_no_active_budget_does_nothing(self, orchestrator, make_budget):
        make_budget(is_upcoming=True)
        outcome = orchestrator.run(None, UTC)
        assert outcome.kind is TransitionKind.NONE
        assert outcome.error is None
