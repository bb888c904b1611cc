"""PriceOracle Port Protocol.

Pull 기반 오라클 인터페이스입니다. push 기반 freshness를 가정하지 않고,
소비자(OracleReader)가 매 읽기마다 timestamp를 검증합니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from vstrc.models.oracle import PriceQuote


@runtime_checkable
class PriceOracle(Protocol):
    """타임스탬프 가격 제공자.

    Chainlink 스타일 feed, 시뮬레이션 feed 등이 구현합니다.
    """

    async def latest_price(self, asset_id: str) -> PriceQuote:
        """자산의 최신 가격.

        Args:
            asset_id: 자산 ID (e.g., "WBTC", "USDC", "vSTRC")

        Returns:
            원시 가격 응답 (검증 전)
        """
        ...
