"""
installment_config -- single public entrypoint for engine settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.

Architecture position:
    Configuration.  This package sits above ``installment_kernel``.  The
    kernel MUST NEVER import from ``installment_config``; ``bridges``
    translates settings into the kernel's ``ReconciliationPolicy``.

Failure modes:
    - ``ConfigurationError`` -- missing file, invalid YAML, or a malformed
      value.

Audit relevance:
    Every successful ``get_active_settings()`` call emits an
    ``installment_settings_loaded`` log entry with the settings id, version
    and checksum, tying engine behaviour to the exact settings in force.
"""

from __future__ import annotations

import os
from pathlib import Path

from installment_config.bridges import build_policy
from installment_config.loader import load_settings
from installment_config.schema import EngineSettings
from installment_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"

ENV_VAR = "INSTALLMENT_CONFIG"


def get_active_settings(path: Path | str | None = None) -> EngineSettings:
    """The ONLY public settings entrypoint.

    Resolution order: explicit ``path``, then the ``INSTALLMENT_CONFIG``
    environment variable, then the packaged ``sets/default.yaml``.
    """
    if path is None:
        path = os.environ.get(ENV_VAR) or _DEFAULT_SETTINGS_PATH
    settings = load_settings(Path(path))
    _logger.info(
        "installment_settings_loaded",
        extra={
            "settings_id": settings.settings_id,
            "settings_version": settings.version,
            "checksum": settings.checksum,
            "source": str(path),
        },
    )
    return settings


__all__ = ["EngineSettings", "build_policy", "get_active_settings"]
