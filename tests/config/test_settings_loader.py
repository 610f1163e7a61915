"""Tests for loading engine settings and bridging them into a policy."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from uuid import UUID

import pytest

from installment_config import ENV_VAR, build_policy, get_active_settings
from installment_config.loader import compute_checksum, load_settings, parse_settings
from installment_kernel.domain.policy import DEFAULT_POLICY, ReconciliationPolicy
from installment_kernel.exceptions import ConfigurationError

CUSTOM = """\
settings_id: strict
version: 3
reconciliation:
  tolerance: "0.001"
  max_monthly_change_ratio: "0.25"
  pending_timeout_hours: 48
  max_single_payment: 5000
database:
  url: "sqlite:///strict.db"
logging:
  level: debug
"""


def _write(tmp_path: Path, text: str, name: str = "settings.yaml") -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


class TestDefaultSettings:

    def test_packaged_defaults_match_policy_defaults(self, monkeypatch):
        monkeypatch.delenv(ENV_VAR, raising=False)

        settings = get_active_settings()

        assert settings.settings_id == "default"
        assert build_policy(settings) == DEFAULT_POLICY
        assert len(settings.checksum) == 64

    def test_settings_loaded_is_logged(self, monkeypatch, captured_logs):
        monkeypatch.delenv(ENV_VAR, raising=False)

        settings = get_active_settings()

        (record,) = [
            r for r in captured_logs() if r["message"] == "installment_settings_loaded"
        ]
        assert record["checksum"] == settings.checksum


class TestCustomSettings:

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_VAR, str(_write(tmp_path, CUSTOM)))

        settings = get_active_settings()

        assert settings.settings_id == "strict"
        assert settings.version == 3
        assert settings.database.url == "sqlite:///strict.db"
        assert settings.logging.level == "DEBUG"

    def test_build_policy(self, tmp_path):
        policy = build_policy(load_settings(_write(tmp_path, CUSTOM)))

        assert policy == ReconciliationPolicy(
            tolerance=Decimal("0.001"),
            max_monthly_change_ratio=Decimal("0.25"),
            pending_timeout_hours=48,
            max_single_payment=Decimal("5000"),
            system_actor_id=UUID(int=0),
        )

    def test_checksum_is_stable(self):
        data = {"settings_id": "a", "reconciliation": {"tolerance": "0.01"}}

        assert compute_checksum(data) == compute_checksum(dict(reversed(list(data.items()))))
        assert parse_settings(data).checksum != parse_settings({"settings_id": "b"}).checksum


class TestInvalidSettings:

    @pytest.mark.parametrize(
        "body",
        [
            "reconciliation:\n  tolerance: 0.01\n",
            "reconciliation:\n  tolerance: \"-1\"\n",
            "reconciliation:\n  pending_timeout_hours: 0\n",
            "reconciliation:\n  max_monthly_change_ratio: \"abc\"\n",
            "reconciliation:\n  system_actor_id: nobody\n",
            "logging:\n  level: LOUD\n",
        ],
        ids=["float", "negative-tolerance", "zero-timeout", "not-decimal", "bad-actor", "bad-level"],
    )
    def test_rejected(self, tmp_path, body):
        path = _write(tmp_path, "settings_id: broken\n" + body)

        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_missing_settings_id(self):
        with pytest.raises(ConfigurationError):
            parse_settings({"version": 1})

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(tmp_path / "absent.yaml")
        assert exc_info.value.code == "CONFIGURATION_ERROR"

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(_write(tmp_path, "settings_id: [unclosed\n"))
