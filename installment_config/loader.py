"""
YAML loader for engine settings.

Parses a settings file into the frozen dataclasses in schema.py.  Every
malformed value is reported as a ConfigurationError naming the offending
key, never as a bare KeyError or decimal.InvalidOperation.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from installment_config.schema import (
    DatabaseSettings,
    EngineSettings,
    LoggingSettings,
    ReconciliationSettings,
)
from installment_kernel.exceptions import ConfigurationError

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is missing or is not valid YAML.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Settings file not found: {path}", str(path)) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}", str(path)) from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings root must be a mapping: {path}", str(path))
    return data


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a decimal from a YAML string or int.  Floats are refused."""
    if isinstance(value, float) or isinstance(value, bool):
        raise ConfigurationError(f"{key} must be quoted or an integer, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(f"{key} is not a decimal: {value!r}") from exc


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationSettings:
    defaults = ReconciliationSettings()
    tolerance = parse_decimal(data.get("tolerance", defaults.tolerance), "tolerance")
    ratio = parse_decimal(
        data.get("max_monthly_change_ratio", defaults.max_monthly_change_ratio),
        "max_monthly_change_ratio",
    )
    max_single = parse_decimal(
        data.get("max_single_payment", defaults.max_single_payment),
        "max_single_payment",
    )
    timeout = data.get("pending_timeout_hours", defaults.pending_timeout_hours)
    if not isinstance(timeout, int) or isinstance(timeout, bool) or timeout <= 0:
        raise ConfigurationError(
            f"pending_timeout_hours must be a positive integer, got {timeout!r}"
        )
    if tolerance < 0:
        raise ConfigurationError(f"tolerance must be non-negative, got {tolerance}")
    if ratio <= 0:
        raise ConfigurationError(f"max_monthly_change_ratio must be positive, got {ratio}")
    if max_single <= 0:
        raise ConfigurationError(f"max_single_payment must be positive, got {max_single}")
    try:
        actor = UUID(str(data.get("system_actor_id", defaults.system_actor_id)))
    except ValueError as exc:
        raise ConfigurationError("system_actor_id is not a UUID") from exc
    return ReconciliationSettings(
        tolerance=tolerance,
        max_monthly_change_ratio=ratio,
        pending_timeout_hours=timeout,
        max_single_payment=max_single,
        system_actor_id=actor,
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=str(data.get("url", defaults.url)),
        echo=bool(data.get("echo", defaults.echo)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level: {level}")
    return LoggingSettings(level=level)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """Parse a full settings mapping into EngineSettings."""
    if "settings_id" not in data:
        raise ConfigurationError("settings_id is required")
    return EngineSettings(
        settings_id=str(data["settings_id"]),
        version=int(data.get("version", 1)),
        reconciliation=parse_reconciliation(data.get("reconciliation") or {}),
        database=parse_database(data.get("database") or {}),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> EngineSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path))
