"""
Configuration Loader (``budget_config.loader``).

Responsibility
--------------
Reads YAML configuration files and merges them into a
``BudgetCycleConfig``.  Internal tooling for ``get_active_config()``;
services never call it directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, wrong type or invalid value  -> ``ValueError``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from budget_config.schema import BudgetCycleConfig
from budget_kernel.domain.calendar import is_valid_timezone

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its mapping.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def _check_types(data: Mapping[str, Any], source: str) -> None:
    expected = BudgetCycleConfig.field_types()
    unknown = sorted(set(data) - set(expected))
    if unknown:
        raise ValueError(f"{source}: unknown configuration keys: {', '.join(unknown)}")
    for key, value in data.items():
        want = expected[key]
        # bool is an int subclass; keep them apart
        if want is int and isinstance(value, bool):
            raise ValueError(f"{source}: {key} must be an integer, got bool")
        if not isinstance(value, want):
            raise ValueError(
                f"{source}: {key} must be {want.__name__}, got {type(value).__name__}"
            )


def merge_config(
    base: BudgetCycleConfig,
    overrides: Mapping[str, Any],
    source: str = "<overrides>",
) -> BudgetCycleConfig:
    """Apply ``overrides`` on top of ``base`` after type checking them."""
    _check_types(overrides, source)
    return replace(base, **dict(overrides))


def load_config_file(path: Path, base: BudgetCycleConfig | None = None) -> BudgetCycleConfig:
    """Parse one YAML file into a config, layered on ``base`` (defaults if None)."""
    return merge_config(base or BudgetCycleConfig(), load_yaml_file(Path(path)), str(path))


def validate_config(config: BudgetCycleConfig) -> BudgetCycleConfig:
    """
    Check values that a type check cannot.

    Returns the config with ``log_level`` upper-cased.

    Raises:
        ValueError: listing every invalid field.
    """
    errors: list[str] = []
    if not config.database_url.strip():
        errors.append("database_url must not be empty")
    if config.sweep_interval_seconds <= 0:
        errors.append("sweep_interval_seconds must be positive")
    if not is_valid_timezone(config.default_timezone):
        errors.append(f"default_timezone {config.default_timezone!r} is not an IANA zone")
    level = config.log_level.upper()
    if level not in _LOG_LEVELS or not isinstance(logging.getLevelName(level), int):
        errors.append(f"log_level {config.log_level!r} is not a logging level")
    if errors:
        raise ValueError(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )
    return replace(config, log_level=level)
