"""
budget_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits beside ``budget_kernel`` and below
    ``budget_batch`` / ``budget_services``.  The kernel never imports from
    ``budget_config``; the orchestrator passes resolved values down.

Resolution order (later wins):
    1. Packaged ``defaults.yaml``.
    2. ``config_path`` argument, else the file named by ``BUDGET_CYCLE_CONFIG``.
    3. ``BUDGET_CYCLE_DATABASE_URL`` and ``BUDGET_CYCLE_TIMEZONE``.

Failure modes:
    - ``FileNotFoundError`` -- an explicitly named file does not exist.
    - ``ValueError`` -- unknown keys, wrong types or invalid values.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from budget_config.loader import load_config_file, merge_config, validate_config
from budget_config.schema import BudgetCycleConfig
from budget_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "BUDGET_CYCLE_CONFIG"
DATABASE_URL_ENV = "BUDGET_CYCLE_DATABASE_URL"
TIMEZONE_ENV = "BUDGET_CYCLE_TIMEZONE"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> BudgetCycleConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Optional user YAML file.  Overrides BUDGET_CYCLE_CONFIG.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        A validated, frozen BudgetCycleConfig.
    """
    env = os.environ if environ is None else environ

    config = load_config_file(_DEFAULTS_FILE)
    sources = [str(_DEFAULTS_FILE)]

    user_file = config_path or env.get(CONFIG_PATH_ENV)
    if user_file:
        config = load_config_file(Path(user_file), base=config)
        sources.append(str(user_file))

    env_overrides: dict[str, str] = {}
    if env.get(DATABASE_URL_ENV):
        env_overrides["database_url"] = env[DATABASE_URL_ENV]
    if env.get(TIMEZONE_ENV):
        env_overrides["default_timezone"] = env[TIMEZONE_ENV]
    if env_overrides:
        config = merge_config(config, env_overrides, "environment")
        sources.append("environment")

    config = validate_config(config)

    _logger.info(
        "budget_config_loaded",
        extra={
            "sources": sources,
            "default_timezone": config.default_timezone,
            "sweep_interval_seconds": config.sweep_interval_seconds,
            "dialect": config.database_url.split(":", 1)[0],
        },
    )
    return config


__all__ = ["BudgetCycleConfig", "get_active_config", "load_config_file"]
