"""Read-only selectors returning frozen DTOs."""

from budget_kernel.selectors.budget_selector import BudgetSelector
from budget_kernel.selectors.period_selector import PeriodSelector

__all__ = ["BudgetSelector", "PeriodSelector"]
