"""
Status -- pure period status reconciliation.

Responsibility:
    Computes a period's lifecycle status from its dates and "now", and
    reports which persisted statuses disagree with that computation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  PeriodService
    persists the diff returned by reconcile_all().

Invariants enforced:
    - status is a pure function of (start_date, end_date, now, tz):
      today < start -> upcoming; start <= today <= end -> active;
      today > end -> completed, where today is the local date of now.
    - reconcile_all() never mutates its input and is idempotent: applying
      its diff and calling it again with the same now yields no changes.
"""

from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Iterable

from budget_kernel.domain.calendar import local_date
from budget_kernel.domain.dtos import BudgetPeriodInfo, PeriodStatus, StatusChange


def status_for(
    start_date: date,
    end_date: date,
    now: datetime | date,
    tz: tzinfo,
) -> PeriodStatus:
    today = local_date(now, tz)
    if today < start_date:
        return PeriodStatus.UPCOMING
    if today > end_date:
        return PeriodStatus.COMPLETED
    return PeriodStatus.ACTIVE


def reconcile_all(
    periods: Iterable[BudgetPeriodInfo],
    now: datetime | date,
    tz: tzinfo,
) -> tuple[StatusChange, ...]:
    """
    Diff persisted statuses against computed ones.

    Returns:
        One StatusChange per period whose status must change, in input order.
    """
    changes = []
    for period in periods:
        computed = status_for(period.start_date, period.end_date, now, tz)
        if computed != period.status:
            changes.append(
                StatusChange(
                    period_id=period.id,
                    budget_id=period.budget_id,
                    old=period.status,
                    new=computed,
                )
            )
    return tuple(changes)
