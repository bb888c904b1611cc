"""Validating oracle reader.

모든 가격 읽기는 다음을 검증합니다:
    (a) 가격이 0보다 큼: 음수/0 가격은 unsigned로 재해석하지 않고 즉시 실패
    (b) updated_at이 미래가 아님
    (c) now - updated_at <= 자산별 max_staleness

실패 시 호출 작업 전체가 원자적으로 중단됩니다 (OracleError 전파).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from vstrc.core.exceptions import InvalidPriceError, StalePriceError, UnknownAssetError
from vstrc.engine.fixed_point import rescale
from vstrc.models.oracle import OracleAssetConfig, ValidatedPrice

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vstrc.core.clock import Clock
    from vstrc.oracle.ports import PriceOracle


class OracleReader:
    """PriceOracle 위의 검증 계층.

    Args:
        oracle: 원시 가격 제공자
        clock: 현재 시각
        assets: 자산별 staleness 설정
    """

    def __init__(
        self,
        oracle: PriceOracle,
        clock: Clock,
        assets: Iterable[OracleAssetConfig],
    ) -> None:
        self._oracle = oracle
        self._clock = clock
        self._assets: dict[str, OracleAssetConfig] = {a.asset_id: a for a in assets}

    @property
    def oracle(self) -> PriceOracle:
        return self._oracle

    def configure(self, config: OracleAssetConfig) -> None:
        """자산 staleness 설정 추가/변경."""
        self._assets[config.asset_id] = config

    def max_staleness(self, asset_id: str) -> int:
        """자산의 허용 staleness (초).

        Raises:
            UnknownAssetError: 설정되지 않은 자산
        """
        config = self._assets.get(asset_id)
        if config is None:
            msg = "No oracle configuration for asset"
            raise UnknownAssetError(msg, context={"asset": asset_id})
        return config.max_staleness

    async def read(self, asset_id: str) -> ValidatedPrice:
        """검증된 가격 읽기.

        Raises:
            UnknownAssetError: 설정되지 않은 자산
            InvalidPriceError: 0 이하 가격 또는 미래 timestamp
            StalePriceError: staleness 초과
        """
        max_staleness = self.max_staleness(asset_id)
        quote = await self._oracle.latest_price(asset_id)
        now = self._clock.now()

        if quote.price <= 0:
            msg = "Oracle returned non-positive price"
            raise InvalidPriceError(msg, context={"asset": asset_id, "price": quote.price})
        if quote.updated_at > now:
            msg = "Oracle timestamp is in the future"
            raise InvalidPriceError(
                msg, context={"asset": asset_id, "updated_at": quote.updated_at, "now": now}
            )
        age = now - quote.updated_at
        if age > max_staleness:
            logger.warning(
                "Stale price for {}: age={}s > max={}s", asset_id, age, max_staleness
            )
            msg = "Oracle price is stale"
            raise StalePriceError(
                msg,
                context={"asset": asset_id, "age": age, "max_staleness": max_staleness},
            )

        return ValidatedPrice(
            asset_id=asset_id,
            price=quote.price,
            decimals=quote.decimals,
            updated_at=quote.updated_at,
        )

    async def read_scaled(self, asset_id: str, decimals: int) -> int:
        """검증된 가격을 지정 decimals로 변환해 반환 (floor)."""
        validated = await self.read(asset_id)
        return rescale(validated.price, validated.decimals, decimals)
