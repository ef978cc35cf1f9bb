"""
budget_services -- request-facing operations over the budget cycle kernel.
"""

from budget_services.facade import BudgetCycleFacade

__all__ = ["BudgetCycleFacade"]
