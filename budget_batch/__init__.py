"""
budget_batch -- the scheduler loop and the engine facade.

Drives the budget kernel on a fixed interval (status reconciliation,
transitions, orphan reconciliation, strictly in that order) and exposes
the operations the HTTP layer calls.

Architecture:
    budget_batch/ is a top-level package.  Nothing in budget_kernel/
    imports from budget_batch.
"""

from budget_batch.domain.types import TickResult, TickStep
from budget_batch.engine import BudgetEngine
from budget_batch.services.scheduler import BudgetScheduler

__all__ = ["BudgetEngine", "BudgetScheduler", "TickResult", "TickStep"]
