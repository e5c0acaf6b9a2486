"""
Generator -- builds budget period candidates from a recurrence rule.

Responsibility:
    Turns a budget's recurrence rule into concrete, not-yet-persisted
    periods: a forward run of sequential periods, a single retroactive
    period containing a given instant, the contiguous continuation of an
    existing period, and the successor a budget needs when it has no
    current window.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Candidates must
    pass the overlap check (PeriodService) before persistence.

Invariants enforced:
    - Forward periods are contiguous: each starts the day after the
      previous end_date, so they never overlap each other.
    - A retroactive period always contains its target instant (look-back
      is at most 6 days and durations are at least 7).
    - target_amount is copied from the budget at generation time.
    - plan_successor_period() never returns a candidate that overlaps the
      budget's existing periods.

Failure modes:
    - ValueError from generate_forward() when count < 1.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from typing import Sequence

from budget_kernel.domain.calendar import local_date, period_end_date, period_start_date
from budget_kernel.domain.dtos import (
    BudgetInfo,
    BudgetPeriodInfo,
    PeriodCandidate,
    PeriodStatus,
)
from budget_kernel.domain.status import status_for
from budget_kernel.domain.validation import would_overlap


def _candidate(
    budget: BudgetInfo,
    start: date,
    status: PeriodStatus | None,
    as_of: datetime | date,
    tz: tzinfo,
) -> PeriodCandidate:
    end = period_end_date(start, budget.duration_days)
    return PeriodCandidate(
        budget_id=budget.id,
        start_date=start,
        end_date=end,
        target_amount=budget.amount,
        status=status or status_for(start, end, as_of, tz),
    )


def generate_forward(
    budget: BudgetInfo,
    from_instant: datetime | date,
    count: int,
    tz: tzinfo,
) -> tuple[PeriodCandidate, ...]:
    """
    ``count`` sequential periods beginning with the one containing ``from_instant``.

    The first period's status is computed against ``from_instant``; the
    rest start as upcoming.
    """
    if count < 1:
        raise ValueError(f"count must be at least 1, got {count}")

    start = period_start_date(budget.start_weekday, from_instant, tz)
    first = _candidate(budget, start, None, from_instant, tz)
    periods = [first]
    for _ in range(count - 1):
        start = periods[-1].end_date + timedelta(days=1)
        periods.append(_candidate(budget, start, PeriodStatus.UPCOMING, from_instant, tz))
    return tuple(periods)


def generate_retroactive(
    budget: BudgetInfo,
    target_instant: datetime | date,
    tz: tzinfo,
    as_of: datetime | date | None = None,
) -> PeriodCandidate:
    """
    The single period that contains ``target_instant``.

    Status is computed against ``as_of`` (defaults to ``target_instant``),
    so backfilling a past instant yields a completed period.
    """
    start = period_start_date(budget.start_weekday, target_instant, tz)
    return _candidate(
        budget,
        start,
        None,
        as_of if as_of is not None else target_instant,
        tz,
    )


def calculate_next_period_start(period: BudgetPeriodInfo | PeriodCandidate) -> date:
    return period.end_date + timedelta(days=1)


def generate_continuation(
    budget: BudgetInfo,
    previous: BudgetPeriodInfo | PeriodCandidate,
    as_of: datetime | date,
    tz: tzinfo,
) -> PeriodCandidate:
    """Next contiguous period after ``previous`` using the budget's current duration."""
    return _candidate(budget, calculate_next_period_start(previous), None, as_of, tz)


def plan_successor_period(
    budget: BudgetInfo,
    existing: Sequence[BudgetPeriodInfo],
    as_of: datetime | date,
    tz: tzinfo,
    *,
    contiguous: bool = True,
) -> PeriodCandidate | None:
    """
    Choose the period to create for a budget that needs a current window.

    Returns None when an existing period already reaches today.  Otherwise,
    with ``contiguous`` set, the continuation of the latest period is used
    if it still reaches today, falling back to the period anchored at
    ``as_of``.  Without ``contiguous`` the anchored period is preferred and
    the continuation is the fallback when the anchor would overlap.
    """
    today = local_date(as_of, tz)
    own = [p for p in existing if p.budget_id == budget.id]
    anchored = generate_retroactive(budget, as_of, tz)

    if not own:
        return anchored

    latest = max(own, key=lambda p: p.end_date)
    if latest.end_date >= today:
        return None

    continuation = generate_continuation(budget, latest, as_of, tz)
    if contiguous:
        if continuation.end_date >= today:
            return continuation
        return anchored

    if would_overlap(anchored, own):
        return continuation
    return anchored
