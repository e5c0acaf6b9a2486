"""
Module: budget_kernel.selectors.budget_selector
Responsibility: Read models for the HTTP layer: the current period, the
    periods of a budget, completed-period history and spend trends, each
    with its derived ``actual_spent`` and ``expense_count``.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - actual_spent = COALESCE(SUM(expenses.amount), 0) over the expenses
      attached to the period, computed at read time.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, func, select

from budget_kernel.db.types import round_money
from budget_kernel.domain.dtos import (
    BudgetTrend,
    PeriodStatus,
    PeriodSummary,
    SpendPerformance,
)
from budget_kernel.models.budget import Budget, BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.selectors.base import BaseSelector

WARNING_RATIO = Decimal("0.8")


def performance_for(actual_spent: Decimal, target: Decimal) -> SpendPerformance:
    if actual_spent > target:
        return SpendPerformance.OVER
    if actual_spent > target * WARNING_RATIO:
        return SpendPerformance.WARNING
    return SpendPerformance.GOOD


class BudgetSelector(BaseSelector[BudgetPeriod]):
    def _summary_query(self) -> Select:
        return (
            select(
                BudgetPeriod,
                Budget.name,
                func.coalesce(func.sum(Expense.amount), 0).label("actual_spent"),
                func.count(Expense.id).label("expense_count"),
            )
            .join(Budget, Budget.id == BudgetPeriod.budget_id)
            .outerjoin(Expense, Expense.budget_period_id == BudgetPeriod.id)
            .group_by(BudgetPeriod.id, Budget.name)
        )

    def _summaries(self, stmt: Select) -> list[PeriodSummary]:
        result = []
        for period, budget_name, spent, count in self.session.execute(stmt).all():
            result.append(
                PeriodSummary(
                    id=period.id,
                    budget_id=period.budget_id,
                    budget_name=budget_name,
                    start_date=period.start_date,
                    end_date=period.end_date,
                    target_amount=period.target_amount,
                    status=PeriodStatus(period.status),
                    # SQLite sums NUMERIC as float
                    actual_spent=round_money(Decimal(str(spent))),
                    expense_count=int(count),
                )
            )
        return result

    def current_period(self) -> PeriodSummary | None:
        """The active period of the active budget, if one exists."""
        stmt = (
            self._summary_query()
            .where(
                Budget.is_active.is_(True),
                BudgetPeriod.status == PeriodStatus.ACTIVE.value,
            )
            .order_by(BudgetPeriod.start_date.desc())
            .limit(1)
        )
        rows = self._summaries(stmt)
        return rows[0] if rows else None

    def periods_for_budget(self, budget_id: UUID | None = None) -> list[PeriodSummary]:
        """Periods of one budget (or of all budgets), newest first."""
        stmt = self._summary_query().order_by(BudgetPeriod.start_date.desc())
        if budget_id is not None:
            stmt = stmt.where(BudgetPeriod.budget_id == budget_id)
        return self._summaries(stmt)

    def period_summary(self, period_id: UUID) -> PeriodSummary | None:
        rows = self._summaries(self._summary_query().where(BudgetPeriod.id == period_id))
        return rows[0] if rows else None

    def budget_history(self, limit: int = 10) -> list[PeriodSummary]:
        """Completed periods of every budget, most recently ended first."""
        stmt = (
            self._summary_query()
            .where(BudgetPeriod.status == PeriodStatus.COMPLETED.value)
            .order_by(BudgetPeriod.end_date.desc())
            .limit(limit)
        )
        return self._summaries(stmt)

    def budget_trends(self, limit: int = 12) -> list[BudgetTrend]:
        """Active and completed periods labelled over / warning / good."""
        stmt = (
            self._summary_query()
            .where(
                BudgetPeriod.status.in_(
                    (PeriodStatus.ACTIVE.value, PeriodStatus.COMPLETED.value)
                )
            )
            .order_by(BudgetPeriod.start_date.desc())
            .limit(limit)
        )
        return [
            BudgetTrend(
                period=summary,
                percentage_used=summary.percentage_used,
                performance=performance_for(summary.actual_spent, summary.target_amount),
            )
            for summary in self._summaries(stmt)
        ]
