"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow between the store and
    the pure budget engine: budget and period snapshots, generated period
    candidates, validation results, status diffs, and the read models
    returned to the HTTP layer.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers (never from domain logic).

Invariants enforced:
    - Domain logic accepts and returns these DTOs, never ORM entities.
    - Money fields are Decimal, never float.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from budget_kernel.models.budget import Budget as BudgetModel
    from budget_kernel.models.budget import BudgetPeriod as BudgetPeriodModel


class PeriodStatus(str, Enum):
    """
    Lifecycle status of a budget period.

    Contract:
        Lifecycle: UPCOMING -> ACTIVE -> COMPLETED, monotonic over time.
        The value is a pure function of the period's dates and "now".
    """

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class BudgetInfo:
    """
    Pure domain representation of a recurring budget.

    Contract:
        Immutable snapshot of the budget row at read time.  The generator,
        transition decision and validation operate on this, not on the ORM.
    """

    id: UUID
    name: str
    amount: Decimal
    start_weekday: int
    duration_days: int
    is_active: bool = False
    is_upcoming: bool = False
    vacation_mode: bool = False

    @classmethod
    def from_model(cls, model: BudgetModel) -> BudgetInfo:
        return cls(
            id=model.id,
            name=model.name,
            amount=model.amount,
            start_weekday=model.start_weekday,
            duration_days=model.duration_days,
            is_active=model.is_active,
            is_upcoming=model.is_upcoming,
            vacation_mode=model.vacation_mode,
        )


@dataclass(frozen=True)
class BudgetPeriodInfo:
    """
    Pure domain representation of a persisted budget period.

    Guarantees:
        - Immutable (frozen dataclass)
        - start_date <= end_date, both inclusive calendar dates
    """

    id: UUID
    budget_id: UUID
    start_date: date
    end_date: date
    target_amount: Decimal
    status: PeriodStatus

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this period."""
        return self.start_date <= check_date <= self.end_date

    @classmethod
    def from_model(cls, model: BudgetPeriodModel) -> BudgetPeriodInfo:
        return cls(
            id=model.id,
            budget_id=model.budget_id,
            start_date=model.start_date,
            end_date=model.end_date,
            target_amount=model.target_amount,
            status=PeriodStatus(model.status),
        )


@dataclass(frozen=True)
class PeriodCandidate:
    """
    A period produced by the generator that has not been persisted yet.

    Contract:
        Candidates must pass the overlap check before insertion.  The
        status is what the status reconciler would assign at generation time.
    """

    budget_id: UUID
    start_date: date
    end_date: date
    target_amount: Decimal
    status: PeriodStatus

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, optional
        field name, and optional details dict.

    Non-goals:
        - Does NOT raise exceptions -- it IS the error representation.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Guarantees:
        - errors is always a tuple (never None)
        - bool(result) == result.is_valid for convenience
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        """Create a successful validation result."""
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        """Create a failed validation result."""
        return cls(is_valid=False, errors=tuple(errors))

    def __bool__(self) -> bool:
        return self.is_valid

    @property
    def messages(self) -> list[str]:
        return [e.message for e in self.errors]


@dataclass(frozen=True)
class StatusChange:
    """One period whose persisted status disagrees with its computed status."""

    period_id: UUID
    budget_id: UUID
    old: PeriodStatus
    new: PeriodStatus

    @property
    def became_completed(self) -> bool:
        return self.new == PeriodStatus.COMPLETED and self.old != PeriodStatus.COMPLETED


@dataclass(frozen=True)
class PeriodSummary:
    """
    Read model for a period with its derived spend.

    ``actual_spent`` is computed from the attached expenses at read time and
    is never stored.
    """

    id: UUID
    budget_id: UUID
    budget_name: str
    start_date: date
    end_date: date
    target_amount: Decimal
    status: PeriodStatus
    actual_spent: Decimal
    expense_count: int

    @property
    def remaining(self) -> Decimal:
        return self.target_amount - self.actual_spent

    @property
    def percentage_used(self) -> Decimal:
        if self.target_amount <= 0:
            return Decimal("0")
        return (self.actual_spent / self.target_amount * 100).quantize(Decimal("0.01"))


class SpendPerformance(str, Enum):
    """Label for how a completed period's spend compared to its target."""

    OVER = "over"
    WARNING = "warning"
    GOOD = "good"


@dataclass(frozen=True)
class BudgetTrend:
    """A completed period with its spend performance label."""

    period: PeriodSummary
    percentage_used: Decimal
    performance: SpendPerformance
