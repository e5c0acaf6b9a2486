"""
Period generation: forward runs, retroactive periods, continuations and
successor planning.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from budget_kernel.domain.calendar import to_sunday_weekday
from budget_kernel.domain.dtos import BudgetInfo, BudgetPeriodInfo, PeriodStatus
from budget_kernel.domain.generator import (
    calculate_next_period_start,
    generate_continuation,
    generate_forward,
    generate_retroactive,
    plan_successor_period,
)
from budget_kernel.domain.validation import ranges_intersect

UTC = ZoneInfo("UTC")
NOW = datetime(2025, 7, 22, 12, 0, tzinfo=timezone.utc)


def _budget(weekday=1, duration=7, amount="500"):
    return BudgetInfo(
        id=uuid4(),
        name="Weekly",
        amount=Decimal(amount),
        start_weekday=weekday,
        duration_days=duration,
        is_active=True,
    )


def _period(budget, start, end, status=PeriodStatus.COMPLETED):
    return BudgetPeriodInfo(
        id=uuid4(),
        budget_id=budget.id,
        start_date=start,
        end_date=end,
        target_amount=budget.amount,
        status=status,
    )


class TestGenerateForward:
    def test_weekly_monday_budget_on_tuesday(self):
        budget = _budget()
        (period,) = generate_forward(budget, NOW, 1, UTC)

        assert period.start_date == date(2025, 7, 21)
        assert period.end_date == date(2025, 7, 27)
        assert period.status == PeriodStatus.ACTIVE
        assert period.target_amount == Decimal("500")
        assert period.budget_id == budget.id

    def test_following_periods_are_contiguous_and_upcoming(self):
        periods = generate_forward(_budget(duration=14), NOW, 3, UTC)

        assert [p.start_date for p in periods] == [
            date(2025, 7, 21),
            date(2025, 8, 4),
            date(2025, 8, 18),
        ]
        assert [p.status for p in periods] == [
            PeriodStatus.ACTIVE,
            PeriodStatus.UPCOMING,
            PeriodStatus.UPCOMING,
        ]
        for prev, nxt in zip(periods, periods[1:]):
            assert nxt.start_date == prev.end_date + timedelta(days=1)

    def test_count_below_one_rejected(self):
        with pytest.raises(ValueError, match="count"):
            generate_forward(_budget(), NOW, 0, UTC)

    @given(
        weekday=st.integers(min_value=0, max_value=6),
        duration=st.integers(min_value=7, max_value=28),
        count=st.integers(min_value=1, max_value=12),
    )
    @settings(max_examples=100)
    def test_forward_periods_never_overlap(self, weekday, duration, count):
        periods = generate_forward(_budget(weekday, duration), NOW, count, UTC)

        assert len(periods) == count
        assert to_sunday_weekday(periods[0].start_date) == weekday
        for i, a in enumerate(periods):
            assert a.duration_days == duration
            for b in periods[i + 1:]:
                assert not ranges_intersect(a, b)


class TestGenerateRetroactive:
    def test_period_contains_target_instant(self):
        target = datetime(2025, 7, 10, 9, 0, tzinfo=timezone.utc)
        period = generate_retroactive(_budget(), target, UTC, as_of=NOW)

        assert period.start_date == date(2025, 7, 7)
        assert period.end_date == date(2025, 7, 13)
        assert period.contains_date(date(2025, 7, 10))
        assert period.status == PeriodStatus.COMPLETED

    def test_status_defaults_to_target_instant(self):
        period = generate_retroactive(_budget(), NOW, UTC)
        assert period.status == PeriodStatus.ACTIVE

    @given(
        weekday=st.integers(min_value=0, max_value=6),
        duration=st.integers(min_value=7, max_value=28),
        offset_hours=st.integers(min_value=-24 * 400, max_value=24 * 400),
    )
    def test_always_contains_target(self, weekday, duration, offset_hours):
        target = NOW + timedelta(hours=offset_hours)
        period = generate_retroactive(_budget(weekday, duration), target, UTC)
        assert period.contains_date(target.date())


class TestContinuation:
    def test_next_start_is_day_after_end(self):
        budget = _budget()
        previous = _period(budget, date(2025, 7, 21), date(2025, 7, 27))
        assert calculate_next_period_start(previous) == date(2025, 7, 28)

    def test_continuation_on_rollover_day(self):
        budget = _budget()
        previous = _period(budget, date(2025, 7, 21), date(2025, 7, 27))
        rollover = datetime(2025, 7, 28, 0, 5, tzinfo=timezone.utc)

        nxt = generate_continuation(budget, previous, rollover, UTC)

        assert nxt.start_date == date(2025, 7, 28)
        assert nxt.end_date == date(2025, 8, 3)
        assert nxt.status == PeriodStatus.ACTIVE

    def test_continuation_uses_current_duration(self):
        budget = _budget(duration=14)
        previous = _period(budget, date(2025, 7, 21), date(2025, 7, 27))
        nxt = generate_continuation(budget, previous, NOW, UTC)
        assert nxt.end_date == date(2025, 8, 10)


class TestPlanSuccessorPeriod:
    def test_budget_without_periods_gets_anchored_period(self):
        budget = _budget()
        candidate = plan_successor_period(budget, [], NOW, UTC)
        assert (candidate.start_date, candidate.end_date) == (
            date(2025, 7, 21),
            date(2025, 7, 27),
        )

    def test_nothing_when_latest_period_reaches_today(self):
        budget = _budget()
        existing = [_period(budget, date(2025, 7, 21), date(2025, 7, 27), PeriodStatus.ACTIVE)]
        assert plan_successor_period(budget, existing, NOW, UTC) is None

    def test_contiguous_continuation_after_rollover(self):
        budget = _budget()
        existing = [_period(budget, date(2025, 7, 21), date(2025, 7, 27))]
        candidate = plan_successor_period(
            budget, existing, datetime(2025, 7, 28, 0, 5, tzinfo=timezone.utc), UTC
        )
        assert candidate.start_date == date(2025, 7, 28)

    def test_long_gap_falls_back_to_anchor(self):
        budget = _budget()
        existing = [_period(budget, date(2025, 6, 2), date(2025, 6, 8))]
        candidate = plan_successor_period(budget, existing, NOW, UTC)
        assert candidate.start_date == date(2025, 7, 21)
        assert candidate.contains_date(NOW.date())

    def test_recurrence_change_continues_contiguously(self):
        # Budget moved from Monday to Thursday starts; the gap-free
        # continuation still covers today.
        budget = _budget(weekday=4)
        existing = [_period(budget, date(2025, 7, 14), date(2025, 7, 20))]
        candidate = plan_successor_period(budget, existing, NOW, UTC)
        assert candidate.start_date == date(2025, 7, 21)
        assert candidate.end_date == date(2025, 7, 27)

    def test_anchored_preferred_without_contiguous(self):
        budget = _budget(weekday=4)
        existing = [_period(budget, date(2025, 7, 1), date(2025, 7, 7))]
        candidate = plan_successor_period(budget, existing, NOW, UTC, contiguous=False)
        # Thursday on or before Tue 2025-07-22
        assert candidate.start_date == date(2025, 7, 17)

    def test_anchored_overlap_falls_back_to_continuation(self):
        budget = _budget(weekday=4)
        existing = [_period(budget, date(2025, 7, 14), date(2025, 7, 20))]
        candidate = plan_successor_period(budget, existing, NOW, UTC, contiguous=False)
        assert candidate.start_date == date(2025, 7, 21)

    def test_other_budgets_periods_ignored(self):
        budget = _budget()
        other = _budget()
        existing = [_period(other, date(2025, 7, 21), date(2025, 7, 27), PeriodStatus.ACTIVE)]
        candidate = plan_successor_period(budget, existing, NOW, UTC)
        assert candidate is not None
        assert candidate.budget_id == budget.id
