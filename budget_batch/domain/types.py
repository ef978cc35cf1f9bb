"""
budget_batch.domain.types -- frozen results of a sweep.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class SweepStep(str, Enum):
    RECLASSIFY = "reclassify"
    HANDLE_COMPLETIONS = "handle_completions"
    AUTO_CONTINUE = "auto_continue"
    RECONCILE = "reconcile"


@dataclass(frozen=True)
class StepOutcome:
    """How one sweep step went.

    ``counts`` holds step-specific numbers (status changes, periods
    created, expenses associated, ...).
    """

    step: SweepStep
    succeeded: bool
    counts: dict[str, int] = field(default_factory=dict)
    error_code: str | None = None


@dataclass(frozen=True)
class SweepReport:
    """Everything one sweep did, step by step."""

    sweep_id: UUID
    started_at: datetime
    timezone_name: str
    outcomes: tuple[StepOutcome, ...] = ()

    @property
    def succeeded(self) -> bool:
        return all(o.succeeded for o in self.outcomes)

    @property
    def failed_steps(self) -> tuple[SweepStep, ...]:
        return tuple(o.step for o in self.outcomes if not o.succeeded)

    def outcome(self, step: SweepStep) -> StepOutcome | None:
        for o in self.outcomes:
            if o.step is step:
                return o
        return None
