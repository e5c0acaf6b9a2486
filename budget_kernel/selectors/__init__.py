"""Read-only selectors returning DTOs with derived spend totals."""

from budget_kernel.selectors.budget_selector import BudgetSelector, performance_for

__all__ = ["BudgetSelector", "performance_for"]
