"""
OrphanReconciler -- attaches unassigned expenses to their periods.

Responsibility:
    Finds expenses with no budget_period_id and attaches each to the
    period (of any budget) whose date range contains the expense's local
    date.  Expenses outside every period stay orphaned without error.

Architecture position:
    Kernel > Services -- imperative shell.  Matching is delegated to
    domain.orphans.  Called as the last step of every scheduler tick and
    by retroactive budget creation.

Invariants enforced:
    - The only write to an expense is its budget_period_id.
    - Re-running is safe: attached expenses are excluded by the orphan
      query itself, so nothing is attached twice.
    - Flush-only: never commits or rolls back the session.
"""

from datetime import tzinfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_kernel.domain.dtos import BudgetPeriodInfo
from budget_kernel.domain.orphans import OrphanMatch, match_orphans
from budget_kernel.logging_config import get_logger
from budget_kernel.models.budget import Budget, BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.services.base import BaseService

logger = get_logger("services.orphan_reconciler")


class OrphanReconciler(BaseService[Expense]):
    def __init__(self, session: Session):
        super().__init__(session)

    def find_orphans(self) -> list[Expense]:
        return list(
            self.session.execute(
                select(Expense)
                .where(Expense.budget_period_id.is_(None))
                .order_by(Expense.timestamp)
            ).scalars()
        )

    def run(
        self,
        tz: tzinfo,
        skip_vacation_budgets: bool = False,
    ) -> tuple[OrphanMatch, ...]:
        """
        Attach every orphan that falls inside some period.

        Args:
            tz: Timezone whose calendar date is matched against periods.
            skip_vacation_budgets: Ignore periods of budgets in vacation mode.

        Returns:
            The attachments made.
        """
        orphans = self.find_orphans()
        if not orphans:
            return ()

        stmt = select(BudgetPeriod).join(Budget, Budget.id == BudgetPeriod.budget_id)
        if skip_vacation_budgets:
            stmt = stmt.where(Budget.vacation_mode.is_(False))
        periods = [BudgetPeriodInfo.from_model(p) for p in self.session.execute(stmt).scalars()]

        active_id = self.session.execute(
            select(Budget.id).where(Budget.is_active.is_(True)).limit(1)
        ).scalar_one_or_none()

        matches = match_orphans(
            ((e.id, e.timestamp) for e in orphans),
            periods,
            tz,
            prefer_budget_id=active_id,
        )
        self._apply(orphans, matches)

        logger.info(
            "orphans_reconciled",
            extra={
                "orphan_count": len(orphans),
                "attached_count": len(matches),
                "remaining_orphans": len(orphans) - len(matches),
            },
        )
        return matches

    def attach_expenses_in_range(
        self,
        period: BudgetPeriodInfo,
        tz: tzinfo,
    ) -> tuple[OrphanMatch, ...]:
        """Attach the orphans whose local date lies inside ``period``."""
        orphans = self.find_orphans()
        matches = match_orphans(((e.id, e.timestamp) for e in orphans), [period], tz)
        self._apply(orphans, matches)
        if matches:
            logger.info(
                "expenses_attached_to_period",
                extra={"period_id": str(period.id), "attached_count": len(matches)},
            )
        return matches

    def _apply(self, orphans: list[Expense], matches: tuple[OrphanMatch, ...]) -> None:
        by_id = {e.id: e for e in orphans}
        for match in matches:
            by_id[match.expense_id].budget_period_id = match.period_id
        if matches:
            self.session.flush()
