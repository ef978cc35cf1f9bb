"""
BudgetCycleConfig schema.

The runtime settings of the budget cycle service.  YAML files and
environment overrides are parsed into this one frozen type by the
loader; nothing else in the system reads configuration sources.
"""

from __future__ import annotations

from dataclasses import dataclass, fields

DEFAULT_DATABASE_URL = "sqlite:///budget_cycle.db"


@dataclass(frozen=True)
class BudgetCycleConfig:
    """Resolved runtime configuration."""

    database_url: str = DEFAULT_DATABASE_URL
    sweep_interval_seconds: int = 3600
    default_timezone: str = "UTC"
    log_level: str = "INFO"
    run_sweep_on_start: bool = True
    echo_sql: bool = False

    @classmethod
    def field_types(cls) -> dict[str, type]:
        """Field name -> expected Python type, for loader validation."""
        mapping = {"str": str, "int": int, "bool": bool}
        return {f.name: mapping[f.type] if isinstance(f.type, str) else f.type for f in fields(cls)}
