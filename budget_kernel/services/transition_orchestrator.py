"""
TransitionOrchestrator -- applies the budget lineage state machine.

Responsibility:
    On every pass, re-derives the lineage state from budget flags and
    period statuses, asks domain.transitions for a decision, and applies
    it: hand control to the upcoming budget, continue the active budget,
    heal a gap, or do nothing (vacation / nothing due).

Architecture position:
    Kernel > Services -- imperative shell.  Owns its transaction: each
    pass opens one ``session_scope`` so that the flag flips and the period
    insert of a handoff or continuation commit or roll back together.
    Called by BudgetScheduler.tick() after status reconciliation and by
    the engine facade.

Invariants enforced:
    - Never leaves two budgets active, and never hands off without the
      successor receiving a period: both writes share one transaction.
    - On a handoff the outgoing budget's remaining active and upcoming
      periods are deleted in the same transaction.
    - Never corrects a store that already violates the single-active /
      single-upcoming invariants; it logs CRITICAL and does nothing.
    - A failed pass changes nothing and the condition is retried on the
      next pass (it persists until resolved).

Failure modes:
    None propagate.  PeriodOverlapError, other BudgetKernelErrors and
    SQLAlchemyError are logged and reported on the TransitionOutcome.
"""

from datetime import datetime, tzinfo
from typing import Callable, Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_kernel.db.engine import session_scope
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import StatusChange
from budget_kernel.domain.generator import plan_successor_period
from budget_kernel.domain.transitions import (
    TransitionKind,
    TransitionOutcome,
    decide_transition,
)
from budget_kernel.exceptions import (
    BudgetKernelError,
    InvariantViolationError,
    PeriodOverlapError,
)
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.period_service import PeriodService

logger = get_logger("services.transition_orchestrator")


class TransitionOrchestrator:
    """
    Applies one transition decision per pass.

    Contract:
        ``run()`` never raises for store or domain failures; it returns a
        TransitionOutcome whose ``error`` is set instead.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def run(
        self,
        now: datetime | None,
        tz: tzinfo,
        just_completed: Iterable[StatusChange] = (),
    ) -> TransitionOutcome:
        """
        Evaluate and apply the transition for the active budget.

        Args:
            now: Reference instant; defaults to the injected clock.
            tz: Timezone for new period boundaries.
            just_completed: Status changes applied earlier in this pass;
                distinguishes AUTO_CONTINUE from GAP_HEAL.
        """
        now = now or self._clock.now()
        just_completed = tuple(just_completed)
        decision = None
        try:
            with session_scope(self._session_factory) as session:
                periods = PeriodService(session, self._clock)
                budgets = BudgetService(session, periods)

                budgets.assert_flag_invariants()
                active = budgets.get_active_budget()
                upcoming = budgets.get_upcoming_budget()
                active_periods = periods.list_periods(active.id) if active else []

                decision = decide_transition(active, upcoming, active_periods, just_completed)
                if not decision.kind.creates_period:
                    self._log_no_action(decision)
                    return TransitionOutcome(decision=decision)

                retired: tuple[UUID, ...] = ()
                with LogContext.bind(budget_id=decision.budget_id):
                    if decision.kind is TransitionKind.HANDOFF:
                        retired = periods.retire_open_periods(decision.predecessor_id)
                        budgets.activate(decision.budget_id)
                        successor = budgets.get_budget(decision.budget_id)
                        candidate = plan_successor_period(
                            successor,
                            periods.list_periods(successor.id),
                            now,
                            tz,
                            contiguous=False,
                        )
                    else:
                        candidate = plan_successor_period(active, active_periods, now, tz)

                    created = periods.create_period(candidate) if candidate else None
                    logger.info(
                        f"budget_{decision.kind.value}",
                        extra={
                            "transition": decision.kind.value,
                            "lineage_state": decision.state.value,
                            "predecessor_id": (
                                str(decision.predecessor_id)
                                if decision.predecessor_id
                                else None
                            ),
                            "created_period_id": str(created.id) if created else None,
                            "retired_period_count": len(retired),
                            "reason": decision.reason,
                        },
                    )
                return TransitionOutcome(
                    decision=decision,
                    created_period=created,
                    retired_period_ids=retired,
                )

        except InvariantViolationError as exc:
            logger.critical(
                "invariant_violation",
                exc_info=True,
                extra={"invariant": exc.invariant, "detail": exc.detail},
            )
            return TransitionOutcome(
                decision=None,
                invariant_violations=tuple(exc.invariant.split(",")),
                error=str(exc),
            )
        except PeriodOverlapError as exc:
            logger.warning(
                "transition_overlap_conflict",
                extra={
                    "transition": decision.kind.value if decision else None,
                    "candidate": exc.candidate_range,
                    "existing": exc.existing_range,
                },
            )
            return TransitionOutcome(decision=decision, error=str(exc))
        except (BudgetKernelError, SQLAlchemyError) as exc:
            logger.exception(
                "transition_failed",
                extra={"transition": decision.kind.value if decision else None},
            )
            return TransitionOutcome(decision=decision, error=str(exc))

    def _log_no_action(self, decision) -> None:
        if decision.kind is TransitionKind.VACATION:
            logger.info(
                "transition_suppressed_vacation",
                extra={"budget_id": str(decision.budget_id)},
            )
        else:
            logger.debug(
                "transition_not_needed",
                extra={
                    "lineage_state": decision.state.value,
                    "reason": decision.reason,
                },
            )
