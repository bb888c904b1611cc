"""YAML 프로토콜 설정 로더.

YAML 파일에서 ProtocolConfig(vault, strategy, oracle)를 로드합니다.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, model validators
    - #10 Python Standards: Modern typing, Path
"""

from __future__ import annotations

from pathlib import Path
from typing import Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from vstrc.models.oracle import OracleAssetConfig
from vstrc.models.strategy import StrategyConfig
from vstrc.models.types import SHARE_ASSET, STABLE_ASSET, VOLATILE_ASSET
from vstrc.models.vault import VaultConfig


def _default_oracle_assets() -> list[OracleAssetConfig]:
    return [
        OracleAssetConfig.volatile(VOLATILE_ASSET),
        OracleAssetConfig.stable(STABLE_ASSET),
        OracleAssetConfig.stable(SHARE_ASSET),
    ]


class ProtocolConfig(BaseModel):
    """YAML 최상위 모델: vault/strategy/oracle 설정 통합."""

    model_config = ConfigDict(frozen=True)

    vault: VaultConfig = Field(default_factory=VaultConfig)
    strategy: StrategyConfig = Field(default_factory=StrategyConfig)
    oracle: list[OracleAssetConfig] = Field(default_factory=_default_oracle_assets)

    @model_validator(mode="after")
    def validate_assets(self) -> Self:
        """vault/strategy 자산이 일관되고 필요한 오라클 설정이 모두 있는지 검증."""
        if self.vault.asset_id != self.strategy.stable_asset:
            msg = (
                f"Vault asset ({self.vault.asset_id}) must match strategy stable asset "
                f"({self.strategy.stable_asset})"
            )
            raise ValueError(msg)
        configured = {a.asset_id for a in self.oracle}
        required = {self.strategy.volatile_asset, self.strategy.stable_asset, self.vault.symbol}
        missing = required - configured
        if missing:
            msg = f"Missing oracle configuration for: {sorted(missing)}"
            raise ValueError(msg)
        return self


def load_config(path: str | Path) -> ProtocolConfig:
    """YAML → ProtocolConfig (Pydantic 검증 포함).

    Args:
        path: YAML 설정 파일 경로

    Returns:
        검증된 ProtocolConfig 인스턴스

    Raises:
        FileNotFoundError: 파일이 존재하지 않을 경우
        yaml.YAMLError: YAML 파싱 실패
        pydantic.ValidationError: 검증 실패
    """
    file_path = Path(path)
    if not file_path.exists():
        msg = f"Config file not found: {file_path}"
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    return ProtocolConfig.model_validate(raw or {})
