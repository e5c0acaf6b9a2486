"""Scheduler loop service."""

from budget_batch.services.scheduler import BudgetScheduler

__all__ = ["BudgetScheduler"]
