"""
Validation -- overlap guard and budget rule checks.

Responsibility:
    Rejects period candidates whose date range intersects an existing
    period of the same budget, and validates a budget's recurrence fields.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Overlap is date-only and inclusive: two ranges touch if
      a.start <= b.end and a.end >= b.start.
    - Periods of different budgets never conflict.
    - validate_budget() reports every violated rule in one pass and never
      raises, even for non-numeric input.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Protocol
from uuid import UUID

from budget_kernel.domain.dtos import ValidationError, ValidationResult

MIN_DURATION_DAYS = 7
MAX_DURATION_DAYS = 28
MIN_WEEKDAY = 0
MAX_WEEKDAY = 6


class DatedPeriod(Protocol):
    budget_id: UUID

    @property
    def start_date(self): ...

    @property
    def end_date(self): ...


def ranges_intersect(a: DatedPeriod, b: DatedPeriod) -> bool:
    return a.start_date <= b.end_date and a.end_date >= b.start_date


def find_overlap(
    candidate: DatedPeriod,
    existing: Iterable[DatedPeriod],
) -> DatedPeriod | None:
    """First period of the candidate's budget whose range intersects it."""
    for period in existing:
        if period.budget_id != candidate.budget_id:
            continue
        if ranges_intersect(candidate, period):
            return period
    return None


def would_overlap(candidate: DatedPeriod, existing: Iterable[DatedPeriod]) -> bool:
    return find_overlap(candidate, existing) is not None


def _field(data: Mapping[str, Any] | Any, name: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def _as_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    number = _as_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def validate_budget(data: Mapping[str, Any] | Any) -> ValidationResult:
    """
    Check a budget's name, amount and recurrence fields.

    Accepts either a mapping (request payload) or an object exposing the
    same attributes (a BudgetInfo or ORM row).
    """
    errors: list[ValidationError] = []

    name = _field(data, "name")
    if not isinstance(name, str) or not name.strip():
        errors.append(
            ValidationError(
                code="NAME_REQUIRED",
                message="Budget name is required",
                field="name",
            )
        )

    amount = _as_decimal(_field(data, "amount"))
    if amount is None or amount <= 0:
        errors.append(
            ValidationError(
                code="AMOUNT_NOT_POSITIVE",
                message="Budget amount must be greater than 0",
                field="amount",
                details={"value": _field(data, "amount")},
            )
        )

    weekday = _as_int(_field(data, "start_weekday"))
    if weekday is None or not MIN_WEEKDAY <= weekday <= MAX_WEEKDAY:
        errors.append(
            ValidationError(
                code="WEEKDAY_OUT_OF_RANGE",
                message="Start weekday must be between 0 (Sunday) and 6 (Saturday)",
                field="start_weekday",
                details={"value": _field(data, "start_weekday")},
            )
        )

    duration = _as_int(_field(data, "duration_days"))
    if duration is None or not MIN_DURATION_DAYS <= duration <= MAX_DURATION_DAYS:
        errors.append(
            ValidationError(
                code="DURATION_OUT_OF_RANGE",
                message=(
                    f"Duration must be between {MIN_DURATION_DAYS} "
                    f"and {MAX_DURATION_DAYS} days"
                ),
                field="duration_days",
                details={"value": _field(data, "duration_days")},
            )
        )

    if errors:
        return ValidationResult.failure(*errors)
    return ValidationResult.success()


def normalize_budget_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Coerce the fields of an already-validated payload to storage types.

    Only keys present in ``data`` are returned.
    """
    result: dict[str, Any] = {}
    if "name" in data:
        result["name"] = data["name"].strip()
    if "amount" in data:
        result["amount"] = _as_decimal(data["amount"])
    if "start_weekday" in data:
        result["start_weekday"] = _as_int(data["start_weekday"])
    if "duration_days" in data:
        result["duration_days"] = _as_int(data["duration_days"])
    return result
