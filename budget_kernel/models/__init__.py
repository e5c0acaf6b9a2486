"""ORM models for the budget kernel."""

from budget_kernel.models.budget import Budget, BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.models.setting import TIMEZONE_KEY, UserSetting

__all__ = [
    "Budget",
    "BudgetPeriod",
    "Expense",
    "UserSetting",
    "TIMEZONE_KEY",
]
