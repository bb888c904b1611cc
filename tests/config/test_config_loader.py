"""Tests for YAML protocol config loader and runtime settings."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from vstrc.config.config_loader import ProtocolConfig, load_config
from vstrc.config.settings import VaultSettings, clear_settings_cache, get_settings
from vstrc.models.strategy import AllocationSplit
from vstrc.models.vault import DepositLimits, RateParameters

EXAMPLE_CONFIG = Path(__file__).parents[2] / "config" / "protocol-example.yaml"


@pytest.fixture()
def minimal_yaml(tmp_path: Path) -> Path:
    """최소 설정 YAML 파일."""
    path = tmp_path / "minimal.yaml"
    path.write_text(yaml.dump({"vault": {"liquidity_buffer_bps": 250}}), encoding="utf-8")
    return path


class TestLoadConfig:
    def test_minimal_uses_defaults(self, minimal_yaml: Path) -> None:
        config = load_config(minimal_yaml)
        assert config.vault.liquidity_buffer_bps == 250
        assert config.vault.rates == RateParameters()
        assert config.strategy.allocation.volatile_bps == 8000
        assert {a.asset_id for a in config.oracle} == {"WBTC", "USDC", "vSTRC"}

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == ProtocolConfig()

    def test_example_file(self) -> None:
        config = load_config(EXAMPLE_CONFIG)
        assert config.vault.symbol == "vSTRC"
        assert config.vault.epoch_duration == 604_800
        assert config.strategy.circuit_breaker.threshold_bps == 2000

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_frozen(self) -> None:
        config = ProtocolConfig()
        with pytest.raises(ValidationError):
            config.vault = config.vault  # type: ignore[misc]


class TestProtocolConfigValidation:
    def test_asset_mismatch(self) -> None:
        with pytest.raises(ValidationError, match="must match strategy stable asset"):
            ProtocolConfig.model_validate({"vault": {"asset_id": "DAI"}})

    def test_missing_oracle_asset(self) -> None:
        with pytest.raises(ValidationError, match="Missing oracle configuration"):
            ProtocolConfig.model_validate(
                {"oracle": [{"asset_id": "WBTC", "max_staleness": 3600}]}
            )

    def test_rate_bounds(self) -> None:
        with pytest.raises(ValidationError):
            RateParameters(base_rate=50, min_rate=100)
        with pytest.raises(ValidationError):
            RateParameters(max_rate=10_001)

    def test_allocation_sum(self) -> None:
        with pytest.raises(ValidationError):
            AllocationSplit(volatile_bps=8000, cash_bps=1000)

    def test_deposit_limit_ordering(self) -> None:
        with pytest.raises(ValidationError):
            DepositLimits(min_deposit=10, max_single_deposit=5, max_total_deposits=100)


class TestVaultSettings:
    def test_env_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("VSTRC_DB_PATH", str(tmp_path / "state.db"))
        clear_settings_cache()
        try:
            settings = get_settings()
            assert settings.db_path == tmp_path / "state.db"
            assert get_settings() is settings
        finally:
            clear_settings_cache()

    def test_ensure_directories(self, tmp_path: Path) -> None:
        settings = VaultSettings(
            db_path=tmp_path / "db" / "state.db",
            audit_log_path=tmp_path / "audit" / "audit.jsonl",
            output_dir=tmp_path / "out",
            log_dir=str(tmp_path / "logs"),
        )
        settings.ensure_directories()
        assert (tmp_path / "db").is_dir()
        assert (tmp_path / "audit").is_dir()
        assert (tmp_path / "out").is_dir()
        assert settings.log_dir == tmp_path / "logs"
