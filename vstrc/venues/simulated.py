"""Simulated in-process venues.

테스트와 시뮬레이션 CLI에서 사용하는 결정적 venue 구현입니다.
실제 venue와 같이 각 호출은 자체적으로 원자적입니다: 모든 검증을 통과한 뒤에만
잔고가 이동합니다.

Venues:
    - SimulatedTokenLedger: 자산별 잔고 원장 (+ 수신 hook, ERC-777 스타일)
    - SimulatedDex: 오라클 feed 가격 기반 스왑 (수수료, 실행 할인, 반환값 왜곡 옵션)
    - SimulatedLendingPool: 예치/인출 + 이자 누적
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeAlias

from loguru import logger

from vstrc.core.exceptions import (
    DeadlineExpiredError,
    SlippageExceededError,
    VenueError,
    ZeroAmountError,
)
from vstrc.engine.fixed_point import mul_div
from vstrc.models.types import BASIS_POINTS, SECONDS_PER_YEAR, Rounding

if TYPE_CHECKING:
    from vstrc.core.clock import Clock
    from vstrc.oracle.ports import PriceOracle

TransferHook: TypeAlias = Callable[[str, str, str, int], Awaitable[None]]


# =============================================================================
# Token Ledger
# =============================================================================


class SimulatedTokenLedger:
    """자산별 잔고 원장.

    Args:
        decimals: 자산 ID → 소수 자릿수
        state_key: 영속화 key
    """

    def __init__(self, decimals: dict[str, int], *, state_key: str = "venue:tokens") -> None:
        self._decimals = dict(decimals)
        self._balances: dict[str, dict[str, int]] = defaultdict(dict)
        self._hooks: list[TransferHook] = []
        self._state_key = state_key

    @property
    def state_key(self) -> str:
        return self._state_key

    def decimals(self, asset: str) -> int:
        try:
            return self._decimals[asset]
        except KeyError:
            msg = "Unknown token"
            raise VenueError(msg, context={"asset": asset}) from None

    def add_transfer_hook(self, hook: TransferHook) -> None:
        """전송 완료 후 호출되는 hook 등록 (수신자 콜백 시뮬레이션)."""
        self._hooks.append(hook)

    def clear_transfer_hooks(self) -> None:
        self._hooks.clear()

    def mint(self, asset: str, to: str, amount: int) -> None:
        """토큰 발행 (시뮬레이션 자금 공급)."""
        self.decimals(asset)
        if amount < 0:
            msg = "Mint amount must be non-negative"
            raise VenueError(msg, context={"asset": asset, "amount": amount})
        book = self._balances[asset]
        book[to] = book.get(to, 0) + amount

    def balance(self, asset: str, holder: str) -> int:
        """동기 잔고 조회 (테스트/리포트용)."""
        return self._balances.get(asset, {}).get(holder, 0)

    async def balance_of(self, asset: str, holder: str) -> int:
        return self.balance(asset, holder)

    async def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        self.decimals(asset)
        if amount < 0:
            msg = "Transfer amount must be non-negative"
            raise VenueError(msg, context={"asset": asset, "amount": amount})
        if amount == 0:
            return
        book = self._balances[asset]
        available = book.get(sender, 0)
        if available < amount:
            msg = "Insufficient token balance"
            raise VenueError(
                msg,
                context={"asset": asset, "holder": sender, "balance": available, "amount": amount},
            )
        remaining = available - amount
        if remaining:
            book[sender] = remaining
        else:
            book.pop(sender, None)
        book[recipient] = book.get(recipient, 0) + amount

        for hook in list(self._hooks):
            await hook(asset, sender, recipient, amount)

    # ── Transactional ─────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        return self.to_dict()

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.restore_from_dict(snapshot)

    def to_dict(self) -> dict[str, Any]:
        return {
            "balances": {asset: dict(book) for asset, book in self._balances.items() if book},
        }

    def restore_from_dict(self, state: dict[str, Any]) -> None:
        self._balances = defaultdict(dict)
        for asset, book in state.get("balances", {}).items():
            self._balances[asset] = {holder: int(v) for holder, v in book.items()}


# =============================================================================
# DEX
# =============================================================================


class SimulatedDex:
    """오라클 feed 가격으로 체결하는 스왑 venue.

    Args:
        tokens: 토큰 원장
        feeds: 가격 제공자 (USD 기준 feed)
        clock: deadline 판단용 시각
        account_id: DEX 유동성 계정
        fee_bps: 스왑 수수료
        execution_discount_bps: 추가 불리한 체결 (슬리피지 시뮬레이션)
        return_skew_bps: 반환값을 실제 체결량보다 부풀림 (비정상 venue 시뮬레이션)
    """

    def __init__(
        self,
        tokens: SimulatedTokenLedger,
        feeds: PriceOracle,
        clock: Clock,
        *,
        account_id: str = "venue:dex",
        fee_bps: int = 30,
        execution_discount_bps: int = 0,
        return_skew_bps: int = 0,
    ) -> None:
        self._tokens = tokens
        self._feeds = feeds
        self._clock = clock
        self.account_id = account_id
        self.fee_bps = fee_bps
        self.execution_discount_bps = execution_discount_bps
        self.return_skew_bps = return_skew_bps

    async def quote_exact_input(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        """수수료/할인 반영 예상 출력량."""
        num, den = await self._rate(asset_in, asset_out)
        gross = mul_div(amount_in, num, den)
        return mul_div(gross, self._net_bps(), BASIS_POINTS)

    async def quote_exact_output(self, asset_in: str, asset_out: str, amount_out: int) -> int:
        """amount_out 수령에 필요한 입력량 (올림)."""
        num, den = await self._rate(asset_in, asset_out)
        gross_in = mul_div(amount_out, den, num, Rounding.UP)
        return mul_div(gross_in, BASIS_POINTS, self._net_bps(), Rounding.UP)

    async def swap_exact_input(
        self,
        caller: str,
        asset_in: str,
        asset_out: str,
        amount_in: int,
        min_amount_out: int,
        deadline: int,
    ) -> int:
        self._check_deadline(deadline)
        if amount_in <= 0:
            msg = "Swap input must be positive"
            raise ZeroAmountError(msg, context={"amount_in": amount_in})
        amount_out = await self.quote_exact_input(asset_in, asset_out, amount_in)
        if amount_out < min_amount_out:
            msg = "Swap output below minimum"
            raise SlippageExceededError(
                msg, context={"amount_out": amount_out, "min_amount_out": min_amount_out}
            )
        await self._settle(caller, asset_in, asset_out, amount_in, amount_out)
        return self._reported(amount_out)

    async def swap_exact_output(
        self,
        caller: str,
        asset_in: str,
        asset_out: str,
        amount_out: int,
        max_amount_in: int,
        deadline: int,
    ) -> int:
        self._check_deadline(deadline)
        if amount_out <= 0:
            msg = "Swap output must be positive"
            raise ZeroAmountError(msg, context={"amount_out": amount_out})
        amount_in = await self.quote_exact_output(asset_in, asset_out, amount_out)
        if amount_in > max_amount_in:
            msg = "Swap input above maximum"
            raise SlippageExceededError(
                msg, context={"amount_in": amount_in, "max_amount_in": max_amount_in}
            )
        await self._settle(caller, asset_in, asset_out, amount_in, amount_out)
        return amount_in

    # ── Internal helpers ──────────────────────────────────────────

    def _net_bps(self) -> int:
        return BASIS_POINTS - self.fee_bps - self.execution_discount_bps

    def _reported(self, amount_out: int) -> int:
        if self.return_skew_bps:
            return mul_div(amount_out, BASIS_POINTS + self.return_skew_bps, BASIS_POINTS)
        return amount_out

    def _check_deadline(self, deadline: int) -> None:
        now = self._clock.now()
        if now > deadline:
            msg = "Swap deadline expired"
            raise DeadlineExpiredError(msg, context={"deadline": deadline, "now": now})

    async def _rate(self, asset_in: str, asset_out: str) -> tuple[int, int]:
        """amount_out = amount_in * num / den 의 (num, den)."""
        quote_in = await self._feeds.latest_price(asset_in)
        quote_out = await self._feeds.latest_price(asset_out)
        if quote_in.price <= 0 or quote_out.price <= 0:
            msg = "DEX pricing unavailable"
            raise VenueError(msg, context={"asset_in": asset_in, "asset_out": asset_out})
        dec_in = self._tokens.decimals(asset_in)
        dec_out = self._tokens.decimals(asset_out)
        num = quote_in.price * 10 ** (dec_out + quote_out.decimals)
        den = quote_out.price * 10 ** (dec_in + quote_in.decimals)
        return num, den

    async def _settle(
        self, caller: str, asset_in: str, asset_out: str, amount_in: int, amount_out: int
    ) -> None:
        caller_balance = await self._tokens.balance_of(asset_in, caller)
        if caller_balance < amount_in:
            msg = "Caller balance below swap input"
            raise VenueError(msg, context={"balance": caller_balance, "amount_in": amount_in})
        liquidity = await self._tokens.balance_of(asset_out, self.account_id)
        if liquidity < amount_out:
            msg = "Insufficient DEX liquidity"
            raise VenueError(msg, context={"liquidity": liquidity, "amount_out": amount_out})
        await self._tokens.transfer(asset_in, caller, self.account_id, amount_in)
        await self._tokens.transfer(asset_out, self.account_id, caller, amount_out)
        logger.debug(
            "DEX swap {} {} -> {} {} for {}", amount_in, asset_in, amount_out, asset_out, caller
        )


# =============================================================================
# Lending Pool
# =============================================================================


class SimulatedLendingPool:
    """예치/인출 + 이자 누적 lending venue.

    Args:
        tokens: 토큰 원장
        account_id: 풀 유동성 계정
        state_key: 영속화 key
    """

    def __init__(
        self,
        tokens: SimulatedTokenLedger,
        *,
        account_id: str = "venue:lending",
        state_key: str = "venue:lending",
    ) -> None:
        self._tokens = tokens
        self.account_id = account_id
        self._state_key = state_key
        self._deposits: dict[str, dict[str, int]] = defaultdict(dict)

    @property
    def state_key(self) -> str:
        return self._state_key

    async def supply(self, asset: str, amount: int, beneficiary: str) -> None:
        if amount <= 0:
            msg = "Supply amount must be positive"
            raise ZeroAmountError(msg, context={"amount": amount})
        await self._tokens.transfer(asset, beneficiary, self.account_id, amount)
        book = self._deposits[asset]
        book[beneficiary] = book.get(beneficiary, 0) + amount

    async def withdraw(self, asset: str, amount: int, holder: str, recipient: str) -> int:
        if amount <= 0:
            return 0
        book = self._deposits[asset]
        actual = min(amount, book.get(holder, 0))
        if actual == 0:
            return 0
        await self._tokens.transfer(asset, self.account_id, recipient, actual)
        remaining = book[holder] - actual
        if remaining:
            book[holder] = remaining
        else:
            book.pop(holder, None)
        return actual

    async def balance_of(self, asset: str, holder: str) -> int:
        return self._deposits.get(asset, {}).get(holder, 0)

    def accrue_interest(self, asset: str, holder: str, amount: int) -> None:
        """holder 예치금에 이자 직접 적립 (풀에 토큰 발행)."""
        if amount <= 0:
            return
        self._tokens.mint(asset, self.account_id, amount)
        book = self._deposits[asset]
        book[holder] = book.get(holder, 0) + amount

    def accrue_rate(self, asset: str, rate_bps: int, seconds: int) -> int:
        """모든 예치자에 연이율 rate_bps로 seconds 동안의 단리 이자 적립.

        Returns:
            적립된 총 이자
        """
        total = 0
        for holder, balance in list(self._deposits.get(asset, {}).items()):
            interest = balance * rate_bps * seconds // (BASIS_POINTS * SECONDS_PER_YEAR)
            self.accrue_interest(asset, holder, interest)
            total += interest
        return total

    # ── Transactional ─────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        return self.to_dict()

    def restore(self, snapshot: dict[str, Any]) -> None:
        self.restore_from_dict(snapshot)

    def to_dict(self) -> dict[str, Any]:
        return {"deposits": {asset: dict(book) for asset, book in self._deposits.items() if book}}

    def restore_from_dict(self, state: dict[str, Any]) -> None:
        self._deposits = defaultdict(dict)
        for asset, book in state.get("deposits", {}).items():
            self._deposits[asset] = {holder: int(v) for holder, v in book.items()}
