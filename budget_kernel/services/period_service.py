"""
PeriodService -- budget period persistence and status reconciliation.

Responsibility:
    Inserts generated period candidates after the overlap check, persists
    the status diff computed by domain.status, and keeps the active
    period's target in step with its budget when the user edits the amount.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the TransitionOrchestrator (successor periods), the engine
    facade (activation, retroactive creation) and the scheduler (status
    reconciliation).

Invariants enforced:
    - No two periods of a budget overlap: an explicit date-range check
      before insertion, and the uq_budget_period_range constraint as the
      last-resort guard when a concurrent writer wins the race.
    - Persisted status matches domain.status.status_for() after
      reconcile_statuses().
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - ValueError: candidate start_date after end_date.
    - PeriodOverlapError: candidate intersects an existing period of the
      same budget, or the unique constraint rejected the insert.  After a
      constraint failure the session must be rolled back by the caller.
    - PeriodNotFoundError: unknown period id.
"""

from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import (
    BudgetPeriodInfo,
    PeriodCandidate,
    PeriodStatus,
    StatusChange,
)
from budget_kernel.domain.status import reconcile_all
from budget_kernel.exceptions import PeriodNotFoundError, PeriodOverlapError
from budget_kernel.logging_config import get_logger
from budget_kernel.models.budget import BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.services.base import BaseService

logger = get_logger("services.period")


def _range(start: date, end: date) -> str:
    return f"{start.isoformat()}..{end.isoformat()}"


class PeriodService(BaseService[BudgetPeriod]):
    """
    Service for persisting budget periods.

    Contract:
        Accepts PeriodCandidate DTOs from the generator and returns frozen
        BudgetPeriodInfo DTOs.  Mutations flush within the caller's
        transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _to_dto(self, period: BudgetPeriod) -> BudgetPeriodInfo:
        return BudgetPeriodInfo.from_model(period)

    def list_periods(self, budget_id: UUID | None = None) -> list[BudgetPeriodInfo]:
        """All periods, optionally of one budget, oldest first."""
        stmt = select(BudgetPeriod).order_by(BudgetPeriod.start_date, BudgetPeriod.id)
        if budget_id is not None:
            stmt = stmt.where(BudgetPeriod.budget_id == budget_id)
        return [self._to_dto(p) for p in self.session.execute(stmt).scalars()]

    def get_period(self, period_id: UUID) -> BudgetPeriodInfo:
        period = self.session.get(BudgetPeriod, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return self._to_dto(period)

    def create_period(self, candidate: PeriodCandidate) -> BudgetPeriodInfo:
        """
        Persist a generated period.

        Raises:
            ValueError: If start_date > end_date.
            PeriodOverlapError: If the date range intersects an existing
                period of the same budget.
        """
        if candidate.start_date > candidate.end_date:
            raise ValueError(
                f"start_date ({candidate.start_date}) cannot be after "
                f"end_date ({candidate.end_date})"
            )

        self._validate_no_overlap(candidate)

        period = BudgetPeriod(
            budget_id=candidate.budget_id,
            start_date=candidate.start_date,
            end_date=candidate.end_date,
            target_amount=candidate.target_amount,
            status=PeriodStatus(candidate.status).value,
        )
        self.session.add(period)

        try:
            self.session.flush()
        except IntegrityError as exc:
            # A concurrent writer inserted the same range after our check
            logger.warning(
                "period_insert_conflict",
                extra={
                    "budget_id": str(candidate.budget_id),
                    "start_date": str(candidate.start_date),
                    "end_date": str(candidate.end_date),
                },
            )
            raise PeriodOverlapError(
                budget_id=str(candidate.budget_id),
                candidate_range=_range(candidate.start_date, candidate.end_date),
                existing_range=_range(candidate.start_date, candidate.end_date),
            ) from exc

        logger.info(
            "period_created",
            extra={
                "budget_id": str(candidate.budget_id),
                "period_id": str(period.id),
                "start_date": str(candidate.start_date),
                "end_date": str(candidate.end_date),
                "status": period.status,
                "target_amount": str(candidate.target_amount),
            },
        )
        return self._to_dto(period)

    def _validate_no_overlap(self, candidate: PeriodCandidate) -> None:
        """
        Two ranges overlap if: start1 <= end2 AND start2 <= end1

        Raises:
            PeriodOverlapError: If overlap is detected.
        """
        overlapping = self.session.execute(
            select(BudgetPeriod)
            .where(
                BudgetPeriod.budget_id == candidate.budget_id,
                BudgetPeriod.start_date <= candidate.end_date,
                BudgetPeriod.end_date >= candidate.start_date,
            )
            .limit(1)
        ).scalar_one_or_none()

        if overlapping is not None:
            logger.warning(
                "period_overlap_rejected",
                extra={
                    "budget_id": str(candidate.budget_id),
                    "candidate": _range(candidate.start_date, candidate.end_date),
                    "existing": _range(overlapping.start_date, overlapping.end_date),
                },
            )
            raise PeriodOverlapError(
                budget_id=str(candidate.budget_id),
                candidate_range=_range(candidate.start_date, candidate.end_date),
                existing_range=_range(overlapping.start_date, overlapping.end_date),
            )

    def retire_open_periods(self, budget_id: UUID) -> tuple[UUID, ...]:
        """
        Delete a budget's active and upcoming periods.

        Used when another budget takes over while pre-generated periods of
        the outgoing budget remain.  Their expenses are detached so the
        orphan reconciler can reattach them to the new budget's period.

        Returns:
            Ids of the deleted periods.
        """
        periods = list(
            self.session.execute(
                select(BudgetPeriod).where(
                    BudgetPeriod.budget_id == budget_id,
                    BudgetPeriod.status.in_(
                        (PeriodStatus.ACTIVE.value, PeriodStatus.UPCOMING.value)
                    ),
                )
            ).scalars()
        )
        if not periods:
            return ()

        period_ids = tuple(p.id for p in periods)
        detached = self.session.execute(
            update(Expense)
            .where(Expense.budget_period_id.in_(period_ids))
            .values(budget_period_id=None)
            .execution_options(synchronize_session=False)
        ).rowcount
        for period in periods:
            self.session.delete(period)
        self.session.flush()

        logger.info(
            "open_periods_retired",
            extra={
                "budget_id": str(budget_id),
                "period_count": len(period_ids),
                "detached_expenses": detached,
            },
        )
        return period_ids

    def reconcile_statuses(
        self,
        now: datetime | None,
        tz: tzinfo,
    ) -> tuple[StatusChange, ...]:
        """
        Make every persisted status match its computed status.

        Idempotent: a second call with the same ``now`` returns no changes.

        Returns:
            The changes that were applied.
        """
        now = now or self._clock.now()
        rows = list(self.session.execute(select(BudgetPeriod)).scalars())
        changes = reconcile_all((self._to_dto(p) for p in rows), now, tz)
        if not changes:
            return changes

        by_id = {p.id: p for p in rows}
        for change in changes:
            by_id[change.period_id].status = change.new.value
            logger.info(
                "period_status_changed",
                extra={
                    "period_id": str(change.period_id),
                    "budget_id": str(change.budget_id),
                    "old_status": change.old.value,
                    "new_status": change.new.value,
                },
            )
        self.session.flush()
        return changes

    def sync_active_target(self, budget_id: UUID, amount: Decimal) -> Sequence[UUID]:
        """
        Copy a new budget amount onto the budget's active period(s).

        Completed and upcoming periods keep their historical target.
        """
        periods = list(
            self.session.execute(
                select(BudgetPeriod).where(
                    BudgetPeriod.budget_id == budget_id,
                    BudgetPeriod.status == PeriodStatus.ACTIVE.value,
                )
            ).scalars()
        )
        for period in periods:
            period.target_amount = amount
        if periods:
            self.session.flush()
            logger.info(
                "active_period_target_synced",
                extra={
                    "budget_id": str(budget_id),
                    "target_amount": str(amount),
                    "period_count": len(periods),
                },
            )
        return [p.id for p in periods]
