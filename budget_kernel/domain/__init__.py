"""
Pure domain layer.

Calendar math, period generation, validation, status reconciliation,
the transition decision and orphan matching, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (instants and timezones are always passed in)

All domain objects are immutable and deterministic.
"""

from budget_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from budget_kernel.domain.dtos import (
    BudgetInfo,
    BudgetPeriodInfo,
    BudgetTrend,
    PeriodCandidate,
    PeriodStatus,
    PeriodSummary,
    SpendPerformance,
    StatusChange,
    ValidationError,
    ValidationResult,
)
from budget_kernel.domain.transitions import (
    LineageState,
    TransitionDecision,
    TransitionKind,
    TransitionOutcome,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "BudgetInfo",
    "BudgetPeriodInfo",
    "BudgetTrend",
    "PeriodCandidate",
    "PeriodStatus",
    "PeriodSummary",
    "SpendPerformance",
    "StatusChange",
    "ValidationError",
    "ValidationResult",
    "LineageState",
    "TransitionDecision",
    "TransitionKind",
    "TransitionOutcome",
]
