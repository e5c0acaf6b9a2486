"""
BudgetService -- budget CRUD and the active / upcoming / vacation flags.

Responsibility:
    Creates, edits and deletes budgets after rule validation, and performs
    every flag flip the engine needs (activate, schedule as upcoming,
    vacation mode) so the single-active / single-upcoming invariants are
    maintained in exactly one place.

Architecture position:
    Kernel > Services -- imperative shell.
    Used by the engine facade for user actions and by the
    TransitionOrchestrator for handoffs.

Invariants enforced:
    - At most one budget has is_active; at most one has is_upcoming.
      activate() and schedule_as_upcoming() clear the flag on every other
      budget in the same flush.
    - Deleting a budget detaches (never deletes) the expenses of its
      periods, then cascades to the periods.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - BudgetNotFoundError: unknown budget id.
    - BudgetValidationError: one or more rule violations, all reported.
    - ActiveBudgetDeletionError: deleting the active budget.
    - InvariantViolationError: the store already holds two active or two
      upcoming budgets (never auto-corrected).
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from budget_kernel.domain.dtos import BudgetInfo
from budget_kernel.domain.transitions import (
    SINGLE_ACTIVE_BUDGET,
    SINGLE_UPCOMING_BUDGET,
    check_flag_invariants,
)
from budget_kernel.domain.validation import normalize_budget_fields, validate_budget
from budget_kernel.exceptions import (
    ActiveBudgetDeletionError,
    BudgetNotFoundError,
    BudgetValidationError,
    InvariantViolationError,
)
from budget_kernel.logging_config import get_logger
from budget_kernel.models.budget import Budget, BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.services.base import BaseService
from budget_kernel.services.period_service import PeriodService

logger = get_logger("services.budget")

EDITABLE_FIELDS = ("name", "amount", "start_weekday", "duration_days")


class BudgetService(BaseService[Budget]):
    """
    Service for budget lifecycle and flags.

    Contract:
        Returns frozen BudgetInfo DTOs.  Every mutation flushes within the
        caller's transaction.
    """

    def __init__(self, session: Session, periods: PeriodService | None = None):
        super().__init__(session)
        self._periods = periods or PeriodService(session)

    def _get_orm(self, budget_id: UUID) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if budget is None:
            raise BudgetNotFoundError(str(budget_id))
        return budget

    def get_budget(self, budget_id: UUID) -> BudgetInfo:
        return BudgetInfo.from_model(self._get_orm(budget_id))

    def list_budgets(self) -> list[BudgetInfo]:
        rows = self.session.execute(
            select(Budget).order_by(Budget.created_at, Budget.name)
        ).scalars()
        return [BudgetInfo.from_model(b) for b in rows]

    def assert_flag_invariants(self) -> None:
        """
        Raises:
            InvariantViolationError: If more than one budget is active or
                more than one is upcoming.
        """
        budgets = self.list_budgets()
        violations = check_flag_invariants(budgets)
        if not violations:
            return
        active = [str(b.id) for b in budgets if b.is_active]
        upcoming = [str(b.id) for b in budgets if b.is_upcoming]
        details = []
        if SINGLE_ACTIVE_BUDGET in violations:
            details.append(f"active budgets: {', '.join(active)}")
        if SINGLE_UPCOMING_BUDGET in violations:
            details.append(f"upcoming budgets: {', '.join(upcoming)}")
        raise InvariantViolationError(",".join(violations), "; ".join(details))

    def get_active_budget(self) -> BudgetInfo | None:
        rows = list(
            self.session.execute(select(Budget).where(Budget.is_active.is_(True))).scalars()
        )
        if len(rows) > 1:
            raise InvariantViolationError(
                SINGLE_ACTIVE_BUDGET,
                f"active budgets: {', '.join(str(b.id) for b in rows)}",
            )
        return BudgetInfo.from_model(rows[0]) if rows else None

    def get_upcoming_budget(self) -> BudgetInfo | None:
        rows = list(
            self.session.execute(select(Budget).where(Budget.is_upcoming.is_(True))).scalars()
        )
        if len(rows) > 1:
            raise InvariantViolationError(
                SINGLE_UPCOMING_BUDGET,
                f"upcoming budgets: {', '.join(str(b.id) for b in rows)}",
            )
        return BudgetInfo.from_model(rows[0]) if rows else None

    def create_budget(self, data: Mapping[str, Any]) -> BudgetInfo:
        """
        Create an inactive budget.

        Raises:
            BudgetValidationError: With every violated rule.
        """
        result = validate_budget(data)
        if not result:
            logger.warning(
                "budget_validation_failed",
                extra={"violations": [e.code for e in result.errors]},
            )
            raise BudgetValidationError(result.errors)

        fields = normalize_budget_fields({k: data[k] for k in EDITABLE_FIELDS})
        budget = Budget(**fields, is_active=False, is_upcoming=False, vacation_mode=False)
        self.session.add(budget)
        self.session.flush()

        logger.info(
            "budget_created",
            extra={
                "budget_id": str(budget.id),
                "amount": str(budget.amount),
                "start_weekday": budget.start_weekday,
                "duration_days": budget.duration_days,
            },
        )
        return BudgetInfo.from_model(budget)

    def update_budget(self, budget_id: UUID, changes: Mapping[str, Any]) -> BudgetInfo:
        """
        Edit name, amount or recurrence fields.

        The merged result is revalidated.  When the amount of the active
        budget changes, its active period's target follows; historical
        periods keep theirs.  Recurrence edits apply to periods generated
        afterwards.

        Raises:
            BudgetNotFoundError, BudgetValidationError
        """
        budget = self._get_orm(budget_id)
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        merged = {name: getattr(budget, name) for name in EDITABLE_FIELDS}
        merged.update(changes)
        result = validate_budget(merged)
        if not result:
            logger.warning(
                "budget_validation_failed",
                extra={
                    "budget_id": str(budget_id),
                    "violations": [e.code for e in result.errors],
                },
            )
            raise BudgetValidationError(result.errors)

        fields = normalize_budget_fields(dict(changes))
        amount_changed = "amount" in fields and fields["amount"] != budget.amount
        for name, value in fields.items():
            setattr(budget, name, value)
        self.session.flush()

        if amount_changed and budget.is_active:
            self._periods.sync_active_target(budget.id, budget.amount)

        logger.info(
            "budget_updated",
            extra={"budget_id": str(budget_id), "fields": sorted(fields)},
        )
        return BudgetInfo.from_model(budget)

    def delete_budget(self, budget_id: UUID) -> int:
        """
        Delete an inactive budget and its periods.

        Returns:
            Number of expenses detached from the deleted periods.

        Raises:
            BudgetNotFoundError, ActiveBudgetDeletionError
        """
        budget = self._get_orm(budget_id)
        if budget.is_active:
            raise ActiveBudgetDeletionError(str(budget_id))

        period_ids = select(BudgetPeriod.id).where(BudgetPeriod.budget_id == budget_id)
        detached = self.session.execute(
            update(Expense)
            .where(Expense.budget_period_id.in_(period_ids))
            .values(budget_period_id=None)
            .execution_options(synchronize_session=False)
        ).rowcount

        self.session.delete(budget)
        self.session.flush()

        logger.info(
            "budget_deleted",
            extra={"budget_id": str(budget_id), "detached_expenses": detached},
        )
        return detached

    def set_flags(
        self,
        budget_id: UUID,
        *,
        is_active: bool | None = None,
        is_upcoming: bool | None = None,
        vacation_mode: bool | None = None,
    ) -> BudgetInfo:
        """Low-level flag write.  Callers keep the single-flag invariants."""
        budget = self._get_orm(budget_id)
        if is_active is not None:
            budget.is_active = is_active
        if is_upcoming is not None:
            budget.is_upcoming = is_upcoming
        if vacation_mode is not None:
            budget.vacation_mode = vacation_mode
        self.session.flush()
        return BudgetInfo.from_model(budget)

    def activate(self, budget_id: UUID) -> list[UUID]:
        """
        Make ``budget_id`` the only active budget and clear its upcoming flag.

        Returns:
            Ids of the budgets that were deactivated.
        """
        budget = self._get_orm(budget_id)
        previous = list(
            self.session.execute(
                select(Budget.id).where(Budget.is_active.is_(True), Budget.id != budget_id)
            ).scalars()
        )
        self.session.execute(
            update(Budget)
            .where(Budget.id.in_(previous))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        budget.is_active = True
        budget.is_upcoming = False
        self.session.flush()

        logger.info(
            "budget_activated",
            extra={
                "budget_id": str(budget_id),
                "deactivated": [str(i) for i in previous],
            },
        )
        return previous

    def schedule_as_upcoming(self, budget_id: UUID) -> list[UUID]:
        """
        Queue ``budget_id`` to take over when the active period completes.

        Returns:
            Ids of the budgets whose upcoming flag was cleared.
        """
        budget = self._get_orm(budget_id)
        previous = list(
            self.session.execute(
                select(Budget.id).where(Budget.is_upcoming.is_(True), Budget.id != budget_id)
            ).scalars()
        )
        self.session.execute(
            update(Budget)
            .where(Budget.id.in_(previous))
            .values(is_upcoming=False)
            .execution_options(synchronize_session="fetch")
        )
        budget.is_upcoming = True
        self.session.flush()

        logger.info(
            "budget_scheduled_upcoming",
            extra={
                "budget_id": str(budget_id),
                "replaced": [str(i) for i in previous],
            },
        )
        return previous

    def set_vacation_mode(self, budget_id: UUID, on: bool) -> BudgetInfo:
        info = self.set_flags(budget_id, vacation_mode=on)
        logger.info(
            "vacation_mode_changed",
            extra={"budget_id": str(budget_id), "vacation_mode": on},
        )
        return info
