"""
EngineSettings schema.

The human-authored settings artifact.  YAML files are parsed into these
frozen types by the loader; bridges.py turns them into the kernel's
ReconciliationPolicy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class ReconciliationSettings:
    """Money and timeout constants for the reconciliation engine."""

    tolerance: Decimal = Decimal("0.01")
    max_monthly_change_ratio: Decimal = Decimal("0.5")
    pending_timeout_hours: int = 24
    max_single_payment: Decimal = Decimal("100000")
    system_actor_id: UUID = UUID("00000000-0000-0000-0000-000000000000")


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection parameters passed to init_engine_from_url()."""

    url: str = "sqlite:///installments.db"
    echo: bool = False
    pool_size: int = 20


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class EngineSettings:
    """Root settings artifact.  checksum is computed over the parsed YAML."""

    settings_id: str
    version: int
    reconciliation: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
