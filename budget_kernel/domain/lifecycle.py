"""
Lifecycle -- explicit state machines for budgets and periods.

Responsibility:
    Replaces ad hoc ``is_active`` / ``is_upcoming`` flags and free-form
    status strings with enums whose transition functions are the only
    way to move between states.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A budget role moves only along the edges in ``_ROLE_TRANSITIONS``.
    - A period status only moves forward (upcoming -> active -> completed).
      ``advance_status`` never returns an earlier status.

Failure modes:
    - IllegalTransitionError for any role move outside the table.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from budget_kernel.exceptions import IllegalTransitionError


class BudgetRole(str, Enum):
    """Which slot a budget occupies.

    At most one budget is ACTIVE and at most one is UPCOMING at a time.
    """

    INACTIVE = "inactive"
    ACTIVE = "active"
    UPCOMING = "upcoming"


class PeriodStatus(str, Enum):
    """Lifecycle status of a budget period (forward-only)."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    PeriodStatus.UPCOMING: 0,
    PeriodStatus.ACTIVE: 1,
    PeriodStatus.COMPLETED: 2,
}


class CycleState(str, Enum):
    """Derived per-budget cycle state (never stored)."""

    DRAFT = "draft"  # No periods yet
    ACTIVE = "active"  # Has an active or upcoming period
    TRANSITIONING = "transitioning"  # Period over, replacement budget scheduled
    CONTINUING = "continuing"  # Period over, same budget rolls forward
    IDLE = "idle"  # Inactive budget with history


class CompletionAction(str, Enum):
    """What the sweep does when a budget's period completes."""

    NONE = "none"
    TRANSITION = "transition"
    CONTINUE = "continue"


# =============================================================================
# Budget roles
# =============================================================================

_ROLE_TRANSITIONS: frozenset[tuple[BudgetRole, BudgetRole]] = frozenset(
    {
        (BudgetRole.INACTIVE, BudgetRole.ACTIVE),
        (BudgetRole.UPCOMING, BudgetRole.ACTIVE),
        (BudgetRole.ACTIVE, BudgetRole.INACTIVE),
        (BudgetRole.INACTIVE, BudgetRole.UPCOMING),
        (BudgetRole.UPCOMING, BudgetRole.INACTIVE),
    }
)


def transition_role(
    current: BudgetRole | str,
    target: BudgetRole | str,
    budget_id: Any = None,
) -> BudgetRole:
    """Validate a role change and return the new role.

    Raises:
        IllegalTransitionError: if the move is not an edge of the role graph
            (this includes ACTIVE -> UPCOMING and no-op moves).
    """
    current = BudgetRole(current)
    target = BudgetRole(target)
    if (current, target) not in _ROLE_TRANSITIONS:
        raise IllegalTransitionError("budget", budget_id, current.value, target.value)
    return target


# =============================================================================
# Period status
# =============================================================================


def classify(start_date: date, end_date: date, today: date) -> PeriodStatus:
    """Status of a period whose local boundaries are [start_date, end_date].

    ``today`` is the local calendar date of "now" in the governing timezone.
    """
    if today < start_date:
        return PeriodStatus.UPCOMING
    if today <= end_date:
        return PeriodStatus.ACTIVE
    return PeriodStatus.COMPLETED


def advance_status(
    current: PeriodStatus | str,
    observed: PeriodStatus | str,
) -> PeriodStatus | None:
    """Return ``observed`` if it is a forward move from ``current``, else None.

    Backward observations (possible after a timezone change) are not
    applied; callers compare with :func:`is_backward` to log them.
    """
    current = PeriodStatus(current)
    observed = PeriodStatus(observed)
    if observed.rank > current.rank:
        return observed
    return None


def is_backward(current: PeriodStatus | str, observed: PeriodStatus | str) -> bool:
    return PeriodStatus(observed).rank < PeriodStatus(current).rank


# =============================================================================
# Cycle state
# =============================================================================


def derive_cycle_state(
    role: BudgetRole | str,
    has_any_period: bool,
    has_live_period: bool,
    upcoming_budget_exists: bool,
) -> CycleState:
    """Derive where a budget sits in its recurring cycle.

    A "live" period is one whose status is active or upcoming.
    """
    role = BudgetRole(role)
    if not has_any_period:
        return CycleState.DRAFT
    if role is not BudgetRole.ACTIVE:
        return CycleState.IDLE
    if has_live_period:
        return CycleState.ACTIVE
    if upcoming_budget_exists:
        return CycleState.TRANSITIONING
    return CycleState.CONTINUING


def decide_completion_action(
    role: BudgetRole | str,
    has_live_period: bool,
    upcoming_budget_exists: bool,
) -> CompletionAction:
    """Decide what happens after one of the budget's periods completes.

    - Inactive or upcoming budgets never continue.
    - A scheduled upcoming budget always takes over.
    - Otherwise roll forward only if nothing active or upcoming remains.
    Vacation mode plays no part: the cycle keeps ticking while paused.
    """
    if BudgetRole(role) is not BudgetRole.ACTIVE:
        return CompletionAction.NONE
    if upcoming_budget_exists:
        return CompletionAction.TRANSITION
    if has_live_period:
        return CompletionAction.NONE
    return CompletionAction.CONTINUE
