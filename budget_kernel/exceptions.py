"""
Typed Exception Hierarchy for the budget cycle engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (request handlers, the CLI, the sweep) must react to failures
without parsing message strings. Every exception therefore has:

  1. A TYPED class (catch by type, not message)
  2. A CODE attribute (machine-readable, safe to return to a client)
  3. Structured DATA attributes (budget_id, period dates, field errors)

Example:
    try:
        facade.delete_budget(budget_id)
    except ActiveBudgetDeletionError as e:
        respond(status=409, code=e.code, budget_id=str(e.budget_id))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BudgetCycleError:

    BudgetCycleError (base)
    |
    +-- ValidationError
    |   +-- InvalidTimezoneError
    |
    +-- ConflictError
    |   +-- ActiveBudgetDeletionError
    |   +-- PeriodOverlapError
    |   +-- RetroactiveCreationError
    |   +-- NoActivePeriodError
    |   +-- IllegalTransitionError
    |   +-- PeriodImmutableError
    |
    +-- NotFoundError
    |   +-- BudgetNotFoundError
    |   +-- BudgetPeriodNotFoundError
    |   +-- ExpenseNotFoundError
    |
    +-- TransientStoreError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                      | When Raised
------------|---------------------------|------------------------------------------
Validation  | VALIDATION_ERROR          | Bad name/amount/weekday/duration
            | INVALID_TIMEZONE          | Unknown IANA timezone name
------------|---------------------------|------------------------------------------
Conflict    | ACTIVE_BUDGET_DELETION    | Deleting the active budget
            | PERIOD_OVERLAP            | Generated period collides with another
            | RETROACTIVE_NOT_ALLOWED   | Retroactive create with an active budget
            | NO_ACTIVE_PERIOD          | Nothing to continue from
            | ILLEGAL_TRANSITION        | Role/status move not in the state machine
            | PERIOD_IMMUTABLE          | Rewriting a completed period
------------|---------------------------|------------------------------------------
Not found   | BUDGET_NOT_FOUND          | Budget id does not exist
            | BUDGET_PERIOD_NOT_FOUND   | Period id does not exist
            | EXPENSE_NOT_FOUND         | Expense id does not exist
------------|---------------------------|------------------------------------------
Store       | TRANSIENT_STORE_ERROR     | Persistence failure; safe to retry

Validation and conflict errors are raised before anything is flushed, so a
rejected operation never leaves partial state behind. TransientStoreError
is the only one the sweep swallows (after logging); the next sweep retries.
"""

from typing import Any


class BudgetCycleError(Exception):
    """Base exception for all budget cycle errors."""

    code: str = "BUDGET_CYCLE_ERROR"


# Validation


class ValidationError(BudgetCycleError):
    """One or more input fields failed validation.

    ``field_errors`` maps field name to a human-readable reason so that
    every problem is reported at once rather than one per round trip.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = dict(field_errors)
        details = "; ".join(f"{k}: {v}" for k, v in self.field_errors.items())
        super().__init__(f"Validation failed: {details}")


class InvalidTimezoneError(ValidationError):
    """Timezone name is not a known IANA zone."""

    code: str = "INVALID_TIMEZONE"

    def __init__(self, timezone_name: str):
        self.timezone_name = timezone_name
        super().__init__({"timezone": f"Unknown timezone {timezone_name!r}"})


# Conflicts


class ConflictError(BudgetCycleError):
    """Operation conflicts with current state; nothing was changed."""

    code: str = "CONFLICT"


class ActiveBudgetDeletionError(ConflictError):
    """The active budget cannot be deleted."""

    code: str = "ACTIVE_BUDGET_DELETION"

    def __init__(self, budget_id: Any):
        self.budget_id = budget_id
        super().__init__(
            f"Budget {budget_id} is active; activate another budget before deleting it"
        )


class PeriodOverlapError(ConflictError):
    """A generated period overlaps an existing period of the same budget."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        budget_id: Any,
        start_date: str,
        end_date: str,
        existing_period_id: Any,
    ):
        self.budget_id = budget_id
        self.start_date = start_date
        self.end_date = end_date
        self.existing_period_id = existing_period_id
        super().__init__(
            f"Period {start_date}..{end_date} for budget {budget_id} "
            f"overlaps existing period {existing_period_id}"
        )


class RetroactiveCreationError(ConflictError):
    """Retroactive periods are only created when no budget is active."""

    code: str = "RETROACTIVE_NOT_ALLOWED"

    def __init__(self, active_budget_id: Any):
        self.active_budget_id = active_budget_id
        super().__init__(
            f"Cannot create a retroactive period while budget "
            f"{active_budget_id} is active"
        )


class NoActivePeriodError(ConflictError):
    """There is no active period to continue from."""

    code: str = "NO_ACTIVE_PERIOD"

    def __init__(self, budget_id: Any):
        self.budget_id = budget_id
        super().__init__(f"No active period found to continue from for budget {budget_id}")


class IllegalTransitionError(ConflictError):
    """A budget role or period status change outside the state machine."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, entity: str, entity_id: Any, from_state: str, to_state: str):
        self.entity = entity
        self.entity_id = entity_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal {entity} transition {from_state} -> {to_state} for {entity_id}"
        )


class PeriodImmutableError(ConflictError):
    """Completed periods cannot be modified."""

    code: str = "PERIOD_IMMUTABLE"

    def __init__(self, period_id: Any, field: str):
        self.period_id = period_id
        self.field = field
        super().__init__(
            f"Cannot modify field '{field}' on completed period {period_id}"
        )


# Not found


class NotFoundError(BudgetCycleError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class BudgetNotFoundError(NotFoundError):
    code: str = "BUDGET_NOT_FOUND"

    def __init__(self, budget_id: Any):
        self.budget_id = budget_id
        super().__init__(f"Budget not found: {budget_id}")


class BudgetPeriodNotFoundError(NotFoundError):
    code: str = "BUDGET_PERIOD_NOT_FOUND"

    def __init__(self, period_id: Any):
        self.period_id = period_id
        super().__init__(f"Budget period not found: {period_id}")


class ExpenseNotFoundError(NotFoundError):
    code: str = "EXPENSE_NOT_FOUND"

    def __init__(self, expense_id: Any):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


# Store


class TransientStoreError(BudgetCycleError):
    """Persistence layer failure. The operation may be retried."""

    code: str = "TRANSIENT_STORE_ERROR"

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause_type = type(cause).__name__ if cause is not None else None
        super().__init__(f"Store failure during {operation}: {cause}")
