"""
Orphans -- matching unattached expenses to periods.

Responsibility:
    Finds the period whose date range contains an expense's local date.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Applied by
    services.orphan_reconciler.OrphanReconciler.

Invariants enforced:
    - Matching is date-only on the expense's local date in the configured
      timezone, inclusive at both ends.
    - Periods of every budget are candidates, not only the active one.
    - When periods of different budgets contain the date, the preferred
      budget's period wins, then the one starting latest.  Ties never
      leave an expense unattached.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Iterable
from uuid import UUID

from budget_kernel.domain.calendar import local_date
from budget_kernel.domain.dtos import BudgetPeriodInfo


@dataclass(frozen=True)
class OrphanMatch:
    expense_id: UUID
    period_id: UUID


def match_period(
    timestamp: datetime,
    periods: Iterable[BudgetPeriodInfo],
    tz: tzinfo,
    prefer_budget_id: UUID | None = None,
) -> BudgetPeriodInfo | None:
    expense_date = local_date(timestamp, tz)
    matches = [p for p in periods if p.contains_date(expense_date)]
    if not matches:
        return None
    return max(
        matches,
        key=lambda p: (p.budget_id == prefer_budget_id, p.start_date, str(p.id)),
    )


def match_orphans(
    orphans: Iterable[tuple[UUID, datetime]],
    periods: Iterable[BudgetPeriodInfo],
    tz: tzinfo,
    prefer_budget_id: UUID | None = None,
) -> tuple[OrphanMatch, ...]:
    """
    Match (expense_id, timestamp) pairs against ``periods``.

    Expenses with no containing period are left out of the result.
    """
    periods = list(periods)
    result = []
    for expense_id, timestamp in orphans:
        period = match_period(timestamp, periods, tz, prefer_budget_id)
        if period is not None:
            result.append(OrphanMatch(expense_id=expense_id, period_id=period.id))
    return tuple(result)
