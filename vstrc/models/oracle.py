"""Oracle data models.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from vstrc.models.types import SECONDS_PER_DAY, SECONDS_PER_HOUR


class PriceQuote(BaseModel):
    """오라클 원시 응답.

    price는 부호 있는 int 그대로 보관합니다. 음수/0 가격의 거부는
    OracleReader의 책임입니다 (unsigned 재해석 금지).

    Attributes:
        price: 가격 (decimals 스케일, 부호 있음)
        decimals: 가격 소수 자릿수
        updated_at: 마지막 갱신 시각 (unix seconds)
    """

    model_config = ConfigDict(frozen=True)

    price: int
    decimals: int = Field(ge=0, le=36)
    updated_at: int = Field(ge=0)


class ValidatedPrice(BaseModel):
    """검증을 통과한 가격 (항상 양수, fresh)."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    price: int = Field(gt=0)
    decimals: int = Field(ge=0, le=36)
    updated_at: int = Field(ge=0)


class OracleAssetConfig(BaseModel):
    """자산별 staleness 설정.

    Attributes:
        asset_id: 오라클 자산 ID
        max_staleness: 허용 최대 경과 시간 (초)
    """

    model_config = ConfigDict(frozen=True)

    asset_id: str = Field(min_length=1)
    max_staleness: int = Field(gt=0)

    @classmethod
    def volatile(cls, asset_id: str) -> OracleAssetConfig:
        """변동성 자산 기본값 (1시간)."""
        return cls(asset_id=asset_id, max_staleness=SECONDS_PER_HOUR)

    @classmethod
    def stable(cls, asset_id: str) -> OracleAssetConfig:
        """스테이블 자산 기본값 (24시간)."""
        return cls(asset_id=asset_id, max_staleness=SECONDS_PER_DAY)
