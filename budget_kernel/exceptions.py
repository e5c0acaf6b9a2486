"""
Typed exception hierarchy for the budget kernel.

Every error carries a machine-readable ``code`` class attribute and stores
its context as attributes, so callers (the HTTP layer, the scheduler, log
formatters) catch by type and read structured data instead of parsing
messages.

    BudgetKernelError (base)
    |
    +-- BudgetError
    |   +-- BudgetNotFoundError
    |   +-- BudgetValidationError
    |   +-- ActiveBudgetDeletionError
    |
    +-- PeriodError
    |   +-- PeriodOverlapError
    |   +-- PeriodNotFoundError
    |
    +-- SettingsError
    |   +-- InvalidTimezoneError
    |
    +-- InvariantViolationError

Category        | Code                        | When Raised
----------------|-----------------------------|------------------------------------------
Budget          | BUDGET_NOT_FOUND            | Budget ID doesn't exist
                | BUDGET_VALIDATION_FAILED    | Recurrence fields violate structural rules
                | ACTIVE_BUDGET_DELETION      | Deleting the currently active budget
----------------|-----------------------------|------------------------------------------
Period          | PERIOD_OVERLAP              | Candidate intersects an existing period
                | PERIOD_NOT_FOUND            | No period for the requested lookup
----------------|-----------------------------|------------------------------------------
Settings        | INVALID_TIMEZONE            | Not a resolvable IANA zone name
----------------|-----------------------------|------------------------------------------
Invariant       | INVARIANT_VIOLATION         | Store state breaks a global invariant
                |                             | (e.g. two budgets flagged active)

Validation failures inside the pure domain are *returned* as a
``ValidationResult``; ``BudgetValidationError`` exists only so the service
layer can refuse a write with every violation attached.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from budget_kernel.domain.dtos import ValidationError


class BudgetKernelError(Exception):
    """Base exception for all budget kernel errors."""

    code: str = "BUDGET_KERNEL_ERROR"


# Budget-related exceptions


class BudgetError(BudgetKernelError):
    """Base exception for budget errors."""

    code: str = "BUDGET_ERROR"


class BudgetNotFoundError(BudgetError):
    """Budget with given ID was not found."""

    code: str = "BUDGET_NOT_FOUND"

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(f"Budget not found: {budget_id}")


class BudgetValidationError(BudgetError):
    """Budget fields violate one or more structural rules."""

    code: str = "BUDGET_VALIDATION_FAILED"

    def __init__(self, errors: tuple[ValidationError, ...]):
        self.errors = errors
        self.violation_codes = [e.code for e in errors]
        super().__init__(
            "Invalid budget: " + ", ".join(e.message for e in errors)
        )


class ActiveBudgetDeletionError(BudgetError):
    """The active budget cannot be deleted until it is superseded."""

    code: str = "ACTIVE_BUDGET_DELETION"

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(
            f"Cannot delete active budget {budget_id}. Deactivate it first."
        )


# Period-related exceptions


class PeriodError(BudgetKernelError):
    """Base exception for period errors."""

    code: str = "PERIOD_ERROR"


class PeriodOverlapError(PeriodError):
    """Candidate period date range intersects an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        budget_id: str,
        candidate_range: str,
        existing_range: str,
    ):
        self.budget_id = budget_id
        self.candidate_range = candidate_range
        self.existing_range = existing_range
        super().__init__(
            f"Period {candidate_range} overlaps existing period "
            f"{existing_range} for budget {budget_id}"
        )


class PeriodNotFoundError(PeriodError):
    """No period matched the lookup."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, lookup: str):
        self.lookup = lookup
        super().__init__(f"No budget period found for: {lookup}")


# Settings exceptions


class SettingsError(BudgetKernelError):
    """Base exception for settings errors."""

    code: str = "SETTINGS_ERROR"


class InvalidTimezoneError(SettingsError):
    """Timezone name is not a valid IANA zone."""

    code: str = "INVALID_TIMEZONE"

    def __init__(self, timezone_name: str):
        self.timezone_name = timezone_name
        super().__init__(f"Invalid timezone: {timezone_name!r}")


# Invariant violations


class InvariantViolationError(BudgetKernelError):
    """
    Store state breaks a system-wide invariant.

    Never auto-corrected: it indicates a write that bypassed the engine's
    transactional paths and needs operator attention.
    """

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, detail: str):
        self.invariant = invariant
        self.detail = detail
        super().__init__(f"Invariant {invariant} violated: {detail}")
