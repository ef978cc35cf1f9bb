"""ORM models.  Importing this package registers every table on Base.metadata."""

from budget_kernel.models.budget import Budget
from budget_kernel.models.budget_period import BudgetPeriod
from budget_kernel.models.expense import Expense
from budget_kernel.models.user_setting import TIMEZONE_KEY, UserSetting

__all__ = [
    "Budget",
    "BudgetPeriod",
    "Expense",
    "UserSetting",
    "TIMEZONE_KEY",
]
