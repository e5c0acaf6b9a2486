"""Pure scheduler-loop types."""

from budget_batch.domain.types import TickResult, TickStep

__all__ = ["TickResult", "TickStep"]
