"""Venue Port Protocols.

ReserveStrategy/Vault가 소비하는 외부 collaborator의 명시적 인터페이스입니다.
structural subtyping으로 시뮬레이션 구현체와 실제 클라이언트가 모두 만족합니다.

Ports:
    - TokenPort: 토큰 잔고/전송 (ERC-20 스타일)
    - DexPort: 스왑 venue (exact input / exact output, deadline 포함)
    - LendingPort: 이자 발생 lending venue (supply / withdraw / balance)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenPort(Protocol):
    """토큰 잔고 인터페이스."""

    def decimals(self, asset: str) -> int:
        """자산 소수 자릿수."""
        ...

    async def balance_of(self, asset: str, holder: str) -> int:
        """holder의 자산 잔고."""
        ...

    async def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """sender → recipient 전송. 잔고 부족 시 VenueError."""
        ...


@runtime_checkable
class DexPort(Protocol):
    """스왑 venue 인터페이스.

    deadline 이후 실행은 DeadlineExpiredError, 출력 부족은 SlippageExceededError로
    실패해야 하며 실패 시 어떤 잔고도 이동하지 않아야 합니다.
    """

    async def swap_exact_input(
        self,
        caller: str,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int,
        deadline: int,
    ) -> int:
        """amount_in 전량을 팔아 asset_out 수령. 수령량 반환."""
        ...

    async def swap_exact_output(
        self,
        caller: str,
        asset_in: str,
        asset_out: str,
        amount_out: int,
        max_amount_in: int,
        deadline: int,
    ) -> int:
        """정확히 amount_out을 받기 위해 asset_in 지불. 지불량 반환."""
        ...


@runtime_checkable
class LendingPort(Protocol):
    """Lending venue 인터페이스. 이자는 beneficiary 잔고에 자동 누적됩니다."""

    async def supply(self, asset: str, amount: int, beneficiary: str) -> None:
        """beneficiary의 토큰을 예치."""
        ...

    async def withdraw(self, asset: str, amount: int, holder: str, recipient: str) -> int:
        """holder 예치금에서 최대 amount를 recipient로 인출. 실제 인출량 반환."""
        ...

    async def balance_of(self, asset: str, holder: str) -> int:
        """이자를 포함한 예치 잔고."""
        ...
