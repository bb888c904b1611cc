"""Simulated price feeds.

테스트/시뮬레이션용 in-process 오라클입니다. 가격과 갱신 시각을 직접 설정합니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from vstrc.core.exceptions import UnknownAssetError
from vstrc.models.oracle import PriceQuote

if TYPE_CHECKING:
    from vstrc.core.clock import Clock


class SimulatedPriceOracle:
    """설정 가능한 가격 feed 집합.

    Args:
        clock: set_price 시 기본 updated_at 제공

    Example:
        >>> oracle = SimulatedPriceOracle(clock)
        >>> oracle.set_price("WBTC", 97_000 * 10**8, decimals=8)
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._quotes: dict[str, PriceQuote] = {}

    def set_price(
        self,
        asset_id: str,
        price: int,
        *,
        decimals: int | None = None,
        updated_at: int | None = None,
    ) -> PriceQuote:
        """가격 설정 (decimals 생략 시 기존 값 유지).

        음수 가격도 그대로 저장합니다 (검증은 OracleReader 책임).
        """
        existing = self._quotes.get(asset_id)
        if decimals is None:
            if existing is None:
                msg = "decimals required for a new feed"
                raise ValueError(msg)
            decimals = existing.decimals
        quote = PriceQuote(
            price=price,
            decimals=decimals,
            updated_at=self._clock.now() if updated_at is None else updated_at,
        )
        self._quotes[asset_id] = quote
        logger.debug("Feed {} set to {} (decimals={})", asset_id, price, decimals)
        return quote

    def touch(self, asset_id: str) -> None:
        """가격은 유지한 채 updated_at만 현재 시각으로 갱신."""
        quote = self._quotes.get(asset_id)
        if quote is None:
            msg = "Unknown feed"
            raise UnknownAssetError(msg, context={"asset": asset_id})
        self._quotes[asset_id] = quote.model_copy(update={"updated_at": self._clock.now()})

    def touch_all(self) -> None:
        for asset_id in list(self._quotes):
            self.touch(asset_id)

    async def latest_price(self, asset_id: str) -> PriceQuote:
        quote = self._quotes.get(asset_id)
        if quote is None:
            msg = "Unknown feed"
            raise UnknownAssetError(msg, context={"asset": asset_id})
        return quote
