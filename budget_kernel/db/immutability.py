"""
ORM-level enforcement of completed-period immutability.

===============================================================================
WHAT IT PROTECTS
===============================================================================

Entity        | When Immutable            | What is blocked
--------------|---------------------------|--------------------------------------
BudgetPeriod  | After status = completed  | Any column change (dates, target,
              |                           | status, owning budget)
BudgetPeriod  | Always                    | Status moving backwards
              |                           | (completed -> active, active -> upcoming)

A completed period's ``actual_spent`` is derived from expenses and is not a
column, so attributing an orphan expense to it is still allowed.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update event] --> _check_budget_period_update()
         |                         |
         |                         +--> PeriodImmutableError
         |                         +--> IllegalTransitionError
         v
    SQL sent to database (only if checks pass)

Register once at startup (BudgetCycleOrchestrator does this):

    from budget_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from budget_kernel.domain.lifecycle import PeriodStatus, is_backward
from budget_kernel.exceptions import IllegalTransitionError, PeriodImmutableError
from budget_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_budget_period_update(mapper, connection, target):
    """Reject rewrites of completed periods and backward status moves."""
    status_history = get_history(target, "status")

    if status_history.deleted:
        previous = PeriodStatus(status_history.deleted[0])
    else:
        previous = PeriodStatus(target.status)

    if status_history.added and status_history.deleted:
        observed = PeriodStatus(status_history.added[0])
        if is_backward(previous, observed):
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "BudgetPeriod",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": "status",
                    "from_status": previous.value,
                    "to_status": observed.value,
                },
            )
            raise IllegalTransitionError(
                "period", target.id, previous.value, observed.value
            )

    if previous is not PeriodStatus.COMPLETED:
        return

    for attr in inspect(target).attrs:
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "BudgetPeriod",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise PeriodImmutableError(target.id, attr.key)


def register_immutability_listeners() -> None:
    """Install the listeners (idempotent)."""
    from budget_kernel.models.budget_period import BudgetPeriod

    if not event.contains(BudgetPeriod, "before_update", _check_budget_period_update):
        event.listen(BudgetPeriod, "before_update", _check_budget_period_update)


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  TESTS ONLY."""
    from budget_kernel.models.budget_period import BudgetPeriod

    if event.contains(BudgetPeriod, "before_update", _check_budget_period_update):
        event.remove(BudgetPeriod, "before_update", _check_budget_period_update)
