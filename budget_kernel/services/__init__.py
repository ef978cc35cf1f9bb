"""Flush-only kernel services.  The caller owns the transaction."""

from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.expense_service import ExpenseService
from budget_kernel.services.period_service import PeriodService
from budget_kernel.services.reconciliation_service import ReconciliationService
from budget_kernel.services.settings_service import SettingsService

__all__ = [
    "BudgetService",
    "ExpenseService",
    "PeriodService",
    "ReconciliationService",
    "SettingsService",
]
