"""
Transitions -- the budget lineage state machine as a pure decision.

Responsibility:
    Derives the lineage state from the current budget flags and decides,
    fresh on every pass, which transition (if any) the orchestrator must
    apply.  No state is persisted: everything is re-derived from Budget
    and BudgetPeriod rows.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Applied by
    services.transition_orchestrator.TransitionOrchestrator.

Decision rules, in order:
    1. active budget in vacation mode      -> VACATION (create nothing)
    2. a different budget is upcoming      -> HANDOFF to that budget, when a
       period of the active budget completed during this pass or the
       active budget has no period whose status is active or upcoming
    3. active budget has such a period     -> NONE
    4. otherwise                           -> AUTO_CONTINUE when one of the
       budget's periods completed during this pass, else GAP_HEAL

Rule 1 yields NONE instead of VACATION while a current period remains.

Invariants enforced:
    - At most one budget is active and at most one is upcoming.  A store
      breaking this is reported by check_flag_invariants() and never
      transitioned.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence
from uuid import UUID

from budget_kernel.domain.dtos import (
    BudgetInfo,
    BudgetPeriodInfo,
    PeriodStatus,
    StatusChange,
)

SINGLE_ACTIVE_BUDGET = "SINGLE_ACTIVE_BUDGET"
SINGLE_UPCOMING_BUDGET = "SINGLE_UPCOMING_BUDGET"


class LineageState(str, Enum):
    NO_ACTIVE_BUDGET = "no_active_budget"
    ACTIVE_NO_SUCCESSOR = "active_no_successor"
    ACTIVE_WITH_SUCCESSOR = "active_with_successor"
    VACATION = "vacation"


class TransitionKind(str, Enum):
    NONE = "none"
    VACATION = "vacation"
    HANDOFF = "handoff"
    AUTO_CONTINUE = "auto_continue"
    GAP_HEAL = "gap_heal"

    @property
    def creates_period(self) -> bool:
        return self in (
            TransitionKind.HANDOFF,
            TransitionKind.AUTO_CONTINUE,
            TransitionKind.GAP_HEAL,
        )


@dataclass(frozen=True)
class TransitionDecision:
    """
    What the orchestrator must do this pass.

    ``budget_id`` is the budget that receives the new period (the successor
    on a handoff); ``predecessor_id`` is set only for handoffs.
    """

    kind: TransitionKind
    state: LineageState
    reason: str
    budget_id: UUID | None = None
    predecessor_id: UUID | None = None


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of one orchestrator pass."""

    decision: TransitionDecision | None
    created_period: BudgetPeriodInfo | None = None
    retired_period_ids: tuple[UUID, ...] = ()
    invariant_violations: tuple[str, ...] = ()
    error: str | None = None

    @property
    def kind(self) -> TransitionKind:
        if self.decision is None:
            return TransitionKind.NONE
        return self.decision.kind

    @property
    def applied(self) -> bool:
        return self.error is None and self.kind.creates_period


_CURRENT_STATUSES = (PeriodStatus.ACTIVE, PeriodStatus.UPCOMING)


def check_flag_invariants(budgets: Iterable[BudgetInfo]) -> tuple[str, ...]:
    """Names of the flag invariants the given budgets violate."""
    budgets = list(budgets)
    violations = []
    if sum(1 for b in budgets if b.is_active) > 1:
        violations.append(SINGLE_ACTIVE_BUDGET)
    if sum(1 for b in budgets if b.is_upcoming) > 1:
        violations.append(SINGLE_UPCOMING_BUDGET)
    return tuple(violations)


def derive_lineage_state(
    active: BudgetInfo | None,
    upcoming: BudgetInfo | None,
) -> LineageState:
    if active is None:
        return LineageState.NO_ACTIVE_BUDGET
    if active.vacation_mode:
        return LineageState.VACATION
    if upcoming is not None and upcoming.id != active.id:
        return LineageState.ACTIVE_WITH_SUCCESSOR
    return LineageState.ACTIVE_NO_SUCCESSOR


def has_current_period(budget_id: UUID, periods: Iterable[BudgetPeriodInfo]) -> bool:
    return any(
        p.budget_id == budget_id and p.status in _CURRENT_STATUSES for p in periods
    )


def decide_transition(
    active: BudgetInfo | None,
    upcoming: BudgetInfo | None,
    active_periods: Sequence[BudgetPeriodInfo],
    just_completed: Iterable[StatusChange] = (),
) -> TransitionDecision:
    """
    Decide the transition for the active budget's lineage.

    Args:
        active: The budget flagged active, if any.
        upcoming: The budget flagged upcoming, if any.
        active_periods: All periods of the active budget, statuses already
            reconciled against "now".
        just_completed: Status changes applied earlier in this pass.
    """
    state = derive_lineage_state(active, upcoming)

    if active is None:
        return TransitionDecision(
            kind=TransitionKind.NONE,
            state=state,
            reason="no active budget",
        )

    has_current = has_current_period(active.id, active_periods)
    completed_now = any(
        change.budget_id == active.id and change.became_completed
        for change in just_completed
    )

    if state is LineageState.VACATION:
        if has_current:
            return _nothing_due(active, state)
        return TransitionDecision(
            kind=TransitionKind.VACATION,
            state=state,
            reason="active budget is in vacation mode",
            budget_id=active.id,
        )

    # A waiting successor takes over at the first completion, even when the
    # outgoing budget still holds pre-generated periods.
    if state is LineageState.ACTIVE_WITH_SUCCESSOR and (completed_now or not has_current):
        return TransitionDecision(
            kind=TransitionKind.HANDOFF,
            state=state,
            reason="upcoming budget takes over",
            budget_id=upcoming.id,
            predecessor_id=active.id,
        )

    if has_current:
        return _nothing_due(active, state)

    if completed_now:
        return TransitionDecision(
            kind=TransitionKind.AUTO_CONTINUE,
            state=state,
            reason="period completed with no successor waiting",
            budget_id=active.id,
        )
    return TransitionDecision(
        kind=TransitionKind.GAP_HEAL,
        state=state,
        reason="active budget has no current or upcoming period",
        budget_id=active.id,
    )


def _nothing_due(active: BudgetInfo, state: LineageState) -> TransitionDecision:
    return TransitionDecision(
        kind=TransitionKind.NONE,
        state=state,
        reason="active budget has a current period",
        budget_id=active.id,
    )
