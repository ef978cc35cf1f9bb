"""Sweep engine and its periodic scheduler."""

from budget_batch.services.continuation import ContinuationEngine
from budget_batch.services.scheduler import SweepScheduler

__all__ = ["ContinuationEngine", "SweepScheduler"]
