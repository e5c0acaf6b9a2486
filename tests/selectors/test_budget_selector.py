"""
BudgetSelector read models with derived spend.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from budget_kernel.domain.dtos import PeriodStatus, SpendPerformance
from budget_kernel.selectors.budget_selector import BudgetSelector, performance_for


class TestPerformance:
    @pytest.mark.parametrize(
        "spent, expected",
        [
            ("120", SpendPerformance.OVER),
            ("100", SpendPerformance.WARNING),
            ("80.01", SpendPerformance.WARNING),
            ("80", SpendPerformance.GOOD),
            ("0", SpendPerformance.GOOD),
        ],
    )
    def test_labels(self, spent, expected):
        assert performance_for(Decimal(spent), Decimal("100")) is expected


class TestCurrentPeriod:
    def test_actual_spent_derived_from_attached_expenses(
        self, db_session, make_budget, make_period, make_expense
    ):
        budget_id = make_budget(name="Budget A", is_active=True)
        period = make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        make_expense("45.50", datetime(2025, 7, 22, 9, tzinfo=timezone.utc), period)
        make_expense("32.75", datetime(2025, 7, 24, 18, tzinfo=timezone.utc), period)
        # Orphans never count towards a period
        make_expense("99.99", datetime(2025, 7, 23, 9, tzinfo=timezone.utc))

        summary = BudgetSelector(db_session).current_period()

        assert summary.id == period
        assert summary.budget_name == "Budget A"
        assert summary.actual_spent == Decimal("78.25")
        assert summary.expense_count == 2
        assert summary.remaining == Decimal("421.75")
        assert summary.percentage_used == Decimal("15.65")

    def test_period_without_expenses_spends_zero(self, db_session, make_budget, make_period):
        budget_id = make_budget(is_active=True)
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))

        summary = BudgetSelector(db_session).current_period()

        assert summary.actual_spent == Decimal("0")
        assert summary.expense_count == 0

    def test_none_without_active_budget(self, db_session, make_budget, make_period):
        budget_id = make_budget()
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27))
        assert BudgetSelector(db_session).current_period() is None


class TestHistoryAndTrends:
    @pytest.fixture
    def history(self, make_budget, make_period, make_expense):
        budget_id = make_budget(is_active=True, amount="100")
        spends = {
            date(2025, 6, 30): "130",
            date(2025, 7, 7): "90",
            date(2025, 7, 14): "40",
        }
        for start, spent in spends.items():
            period = make_period(
                budget_id,
                start,
                start + timedelta(days=6),
                PeriodStatus.COMPLETED,
                target_amount="100",
            )
            noon = datetime.combine(start, datetime.min.time(), tzinfo=timezone.utc) + timedelta(hours=12)
            make_expense(spent, noon, period)
        make_period(budget_id, date(2025, 7, 21), date(2025, 7, 27), target_amount="100")
        make_period(budget_id, date(2025, 7, 28), date(2025, 8, 3), PeriodStatus.UPCOMING, "100")
        return budget_id

    def test_history_is_completed_newest_first(self, db_session, history):
        rows = BudgetSelector(db_session).budget_history()
        assert [r.start_date for r in rows] == [
            date(2025, 7, 14),
            date(2025, 7, 7),
            date(2025, 6, 30),
        ]
        assert all(r.status == PeriodStatus.COMPLETED for r in rows)

    def test_history_limit(self, db_session, history):
        assert len(BudgetSelector(db_session).budget_history(limit=2)) == 2

    def test_trends_label_performance(self, db_session, history):
        trends = BudgetSelector(db_session).budget_trends()

        assert [t.period.start_date for t in trends] == [
            date(2025, 7, 21),
            date(2025, 7, 14),
            date(2025, 7, 7),
            date(2025, 6, 30),
        ]
        assert [t.performance for t in trends] == [
            SpendPerformance.GOOD,
            SpendPerformance.GOOD,
            SpendPerformance.WARNING,
            SpendPerformance.OVER,
        ]
        assert trends[-1].percentage_used == Decimal("130.00")

    def test_periods_for_budget_newest_first(self, db_session, history):
        rows = BudgetSelector(db_session).periods_for_budget(history)
        assert rows[0].start_date == date(2025, 7, 28)
        assert len(rows) == 5
