"""
OrphanReconciler: attaching unassigned expenses to the containing period.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from budget_kernel.db.engine import session_scope
from budget_kernel.domain.dtos import PeriodStatus
from budget_kernel.models import Expense
from budget_kernel.services.orphan_reconciler import OrphanReconciler
from budget_kernel.services.period_service import PeriodService

UTC = ZoneInfo("UTC")


def _ts(day, hour=12):
    return datetime(2025, 7, day, hour, 0, tzinfo=timezone.utc)


class TestRun:
    def test_attaches_inside_and_leaves_outside(
        self, session_factory, make_budget, make_period, make_expense, fetch
    ):
        budget_id = make_budget(is_active=True)
        period = make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        inside = make_expense("12.50", _ts(22))
        outside = make_expense("3.00", _ts(2))

        with session_scope(session_factory) as session:
            matches = OrphanReconciler(session).run(UTC)

        assert [(m.expense_id, m.period_id) for m in matches] == [(inside, period)]
        assert fetch(Expense, inside).budget_period_id == period
        assert fetch(Expense, outside).budget_period_id is None

    def test_rerun_attaches_nothing_twice(self, session_factory, make_budget, make_period, make_expense):
        budget_id = make_budget(is_active=True)
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        make_expense("12.50", _ts(22))

        with session_scope(session_factory) as session:
            assert len(OrphanReconciler(session).run(UTC)) == 1
        with session_scope(session_factory) as session:
            assert OrphanReconciler(session).run(UTC) == ()

    def test_periods_of_inactive_budgets_match(
        self, session_factory, make_budget, make_period, make_expense, fetch
    ):
        old = make_budget()
        period = make_period(old, date(2025, 7, 7), date(2025, 7, 13), PeriodStatus.COMPLETED)
        expense = make_expense("8", _ts(9))

        with session_scope(session_factory) as session:
            OrphanReconciler(session).run(UTC)

        assert fetch(Expense, expense).budget_period_id == period

    def test_active_budget_preferred_on_tie(
        self, session_factory, make_budget, make_period, make_expense, fetch
    ):
        other = make_budget(name="Other")
        active = make_budget(name="Active", is_active=True)
        make_period(other, date(2025, 7, 21), date(2025, 7, 27))
        mine = make_period(active, date(2025, 7, 21), date(2025, 7, 27))
        expense = make_expense("8", _ts(23))

        with session_scope(session_factory) as session:
            OrphanReconciler(session).run(UTC)

        assert fetch(Expense, expense).budget_period_id == mine

    def test_vacation_budgets_can_be_skipped(
        self, session_factory, make_budget, make_period, make_expense, fetch
    ):
        budget_id = make_budget(is_active=True, vacation_mode=True)
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        expense = make_expense("8", _ts(23))

        with session_scope(session_factory) as session:
            assert OrphanReconciler(session).run(UTC, skip_vacation_budgets=True) == ()
        assert fetch(Expense, expense).budget_period_id is None

        with session_scope(session_factory) as session:
            assert len(OrphanReconciler(session).run(UTC)) == 1

    def test_offset_timestamps_match_on_local_date(
        self, session_factory, make_budget, make_period, make_expense, fetch
    ):
        chicago = ZoneInfo("America/Chicago")
        budget_id = make_budget(is_active=True)
        period = make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        # Just after local midnight on the first day, and just before it on
        # the last day (already 2025-07-28 in UTC)
        first = datetime(2025, 7, 21, 0, 30, tzinfo=chicago)
        last = datetime(2025, 7, 27, 23, 30, tzinfo=chicago)
        early = make_expense("10", first)
        late = make_expense("20", last)
        outside = make_expense("5", datetime(2025, 7, 20, 23, 30, tzinfo=chicago))

        with session_scope(session_factory) as session:
            OrphanReconciler(session).run(chicago)

        assert fetch(Expense, early).budget_period_id == period
        assert fetch(Expense, late).budget_period_id == period
        assert fetch(Expense, outside).budget_period_id is None

        stored = fetch(Expense, early).timestamp
        assert stored == first
        assert stored.utcoffset() == timedelta(0)

    def test_no_orphans(self, db_session, captured_logs):
        assert OrphanReconciler(db_session).run(UTC) == ()
        assert not any(r["message"] == "orphans_reconciled" for r in captured_logs())


class TestAttachInRange:
    def test_only_target_period_considered(
        self, session_factory, make_budget, make_period, make_expense, fetch
    ):
        budget_id = make_budget()
        other = make_budget(name="Other")
        make_period(other, date(2025, 7, 7), date(2025, 7, 13), PeriodStatus.COMPLETED)
        target = make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        inside = make_expense("1", _ts(21, 0))
        elsewhere = make_expense("2", _ts(10))

        with session_scope(session_factory) as session:
            period = PeriodService(session).get_period(target)
            matches = OrphanReconciler(session).attach_expenses_in_range(period, UTC)

        assert [m.expense_id for m in matches] == [inside]
        assert fetch(Expense, elsewhere).budget_period_id is None
