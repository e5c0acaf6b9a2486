"""
budget_batch.domain.types -- Pure frozen dataclasses for the scheduler loop.

ZERO I/O.  Follows the kernel pattern: frozen dataclasses with enum
status fields and tuples for immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from budget_kernel.domain.dtos import StatusChange
from budget_kernel.domain.orphans import OrphanMatch
from budget_kernel.domain.transitions import TransitionOutcome


class TickStep(str, Enum):
    """The three steps of a reconciliation pass, in execution order."""

    STATUS = "status"
    TRANSITIONS = "transitions"
    ORPHANS = "orphans"


@dataclass(frozen=True)
class TickResult:
    """
    Outcome of one scheduler tick.

    A skipped tick (another tick was still running) carries no step
    results.  ``failed_steps`` lists steps whose work was rolled back.
    """

    tick_id: str
    started_at: datetime
    skipped: bool = False
    timezone: str | None = None
    status_changes: tuple[StatusChange, ...] = ()
    transition: TransitionOutcome | None = None
    orphan_matches: tuple[OrphanMatch, ...] = ()
    failed_steps: tuple[TickStep, ...] = ()

    @property
    def succeeded(self) -> bool:
        return not self.skipped and not self.failed_steps

    @property
    def completed_periods(self) -> tuple[StatusChange, ...]:
        return tuple(c for c in self.status_changes if c.became_completed)
