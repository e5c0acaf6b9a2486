"""Kernel services: flush-only writers plus the transition orchestrator."""

from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.orphan_reconciler import OrphanReconciler
from budget_kernel.services.period_service import PeriodService
from budget_kernel.services.settings_service import SettingsService
from budget_kernel.services.transition_orchestrator import TransitionOrchestrator

__all__ = [
    "BudgetService",
    "OrphanReconciler",
    "PeriodService",
    "SettingsService",
    "TransitionOrchestrator",
]
