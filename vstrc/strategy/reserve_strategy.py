"""ReserveStrategy - volatile reserve + yield-bearing cash reserve.

Vault(orchestrator)로부터 받은 stable 자본을 배분 비율대로 변동성 자산(DEX 스왑)과
현금 준비금(lending venue)에 투입하고, 요청 시 회수합니다.

Flow:
    deploy   → breaker 확인 → orchestrator에서 인출 → 배분 → 스왑/예치
    withdraw → breaker 확인 → idle → lending → 변동성 자산 청산 순으로 조달 → 전달
    rebalance→ 변동성 자산 ↔ 현금 준비금 이동
    harvest  → lending 실잔고 - 원금 차액만 전달

모든 스왑은 오라클 기대값 기반 slippage 하한과 deadline을 가지며, 보유량은 venue
반환값이 아닌 잔고 변화량으로 갱신합니다.

Rules Applied:
    - EDA RiskManager 패턴 (circuit breaker, 상태 복구)
    - #23 Exception Handling: 실패 시 트랜잭션 롤백
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from vstrc.core.access import CallContext, Capability
from vstrc.core.audit import (
    CapitalDeployedEvent,
    CapitalWithdrawnEvent,
    CircuitBreakerResetEvent,
    CircuitBreakerTrippedEvent,
    ParametersUpdatedEvent,
    ReserveRebalancedEvent,
    YieldHarvestedEvent,
)
from vstrc.core.exceptions import (
    CircuitBreakerActiveError,
    InsufficientReserveError,
    InvalidParameterError,
    SlippageExceededError,
    ZeroAmountError,
)
from vstrc.core.guard import NonReentrantGuard
from vstrc.engine.fixed_point import apply_bps, mul_div
from vstrc.models.strategy import AllocationSplit, CircuitBreakerConfig, StrategyConfig
from vstrc.models.types import BASIS_POINTS, Rounding
from vstrc.strategy.circuit_breaker import CircuitBreaker

if TYPE_CHECKING:
    from vstrc.core.clock import Clock
    from vstrc.core.transaction import Transaction, TransactionManager
    from vstrc.oracle.reader import OracleReader
    from vstrc.venues.ports import DexPort, LendingPort, TokenPort


class ReserveStrategy:
    """변동성 자산 포지션 + 현금 준비금 관리자.

    Args:
        config: 전략 설정
        tokens: 토큰 잔고/전송
        dex: 스왑 venue
        lending: lending venue
        oracle: 검증 오라클 reader
        clock: 현재 시각
        transactions: 공유 TransactionManager (생성 시 participant로 등록)

    Example:
        >>> strategy = ReserveStrategy(StrategyConfig(), tokens, dex, lending, reader, clock, tx)
        >>> await strategy.deploy(1_000_000_000, CallContext.orchestrator("vault"))
    """

    def __init__(
        self,
        config: StrategyConfig,
        tokens: TokenPort,
        dex: DexPort,
        lending: LendingPort,
        oracle: OracleReader,
        clock: Clock,
        transactions: TransactionManager,
    ) -> None:
        self._account = config.account_id
        self._stable = config.stable_asset
        self._volatile = config.volatile_asset
        self._allocation = config.allocation
        self._max_slippage_bps = config.max_slippage_bps
        self._swap_deadline_seconds = config.swap_deadline_seconds
        self._breaker = CircuitBreaker(config.circuit_breaker)

        self._tokens = tokens
        self._dex = dex
        self._lending = lending
        self._oracle = oracle
        self._clock = clock
        self._tx = transactions
        self._guard = NonReentrantGuard(f"strategy:{self._account}")

        self._volatile_asset_held = 0
        self._cash_deployed = 0

        transactions.register(self)

    # =========================================================================
    # Views
    # =========================================================================

    @property
    def strategy_id(self) -> str:
        return self._account

    @property
    def state_key(self) -> str:
        return f"strategy:{self._account}"

    @property
    def volatile_asset_held(self) -> int:
        return self._volatile_asset_held

    @property
    def cash_deployed(self) -> int:
        """lending venue에 투입한 원금 (이자 제외)."""
        return self._cash_deployed

    @property
    def allocation(self) -> AllocationSplit:
        return self._allocation

    @property
    def max_slippage_bps(self) -> int:
        return self._max_slippage_bps

    @property
    def swap_deadline_seconds(self) -> int:
        return self._swap_deadline_seconds

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def circuit_breaker_tripped(self) -> bool:
        return self._breaker.tripped

    async def volatile_reserve_value(self) -> int:
        """보유 변동성 자산의 오라클 가치 (stable 단위)."""
        if self._volatile_asset_held == 0:
            return 0
        return await self._convert(self._volatile_asset_held, self._volatile, self._stable)

    async def cash_reserve_value(self) -> int:
        return await self._lending.balance_of(self._stable, self._account)

    async def idle_balance(self) -> int:
        return await self._tokens.balance_of(self._stable, self._account)

    async def total_value(self) -> int:
        """변동성 자산 가치 + lending 실잔고 + 전략 idle stable."""
        return (
            await self.volatile_reserve_value()
            + await self.cash_reserve_value()
            + await self.idle_balance()
        )

    # =========================================================================
    # Capital movement (ORCHESTRATOR)
    # =========================================================================

    async def deploy(self, amount: int, ctx: CallContext) -> int:
        """orchestrator의 stable amount를 배분 비율대로 투입.

        Returns:
            투입된 금액

        Raises:
            UnauthorizedError: ORCHESTRATOR capability 없음
            ZeroAmountError: amount <= 0
            CircuitBreakerActiveError: breaker 발동 상태 또는 이번 검사에서 발동
            SlippageExceededError: 스왑 체결량이 하한 미만
        """
        ctx.require(Capability.ORCHESTRATOR)
        if amount <= 0:
            msg = "Deploy amount must be positive"
            raise ZeroAmountError(msg, context={"amount": amount})

        async with self._tx.atomic("strategy.deploy") as tx:
            with self._guard.hold("deploy"):
                await self._check_breaker(tx)
                await self._tokens.transfer(self._stable, ctx.caller, self._account, amount)

                volatile_portion = apply_bps(amount, self._allocation.volatile_bps)
                cash_portion = amount - volatile_portion

                acquired = 0
                if volatile_portion > 0:
                    acquired = await self._buy_volatile(volatile_portion)
                supplied = 0
                if cash_portion > 0:
                    supplied = await self._supply_cash(cash_portion)

                tx.emit(
                    CapitalDeployedEvent(
                        timestamp=self._clock.now(),
                        source=self.state_key,
                        operation_id=tx.operation_id,
                        amount=amount,
                        volatile_acquired=acquired,
                        cash_supplied=supplied,
                    )
                )
                logger.info(
                    "Deployed {} {}: +{} {} / +{} cash",
                    amount,
                    self._stable,
                    acquired,
                    self._volatile,
                    supplied,
                )
                return amount

    async def withdraw(self, amount: int, ctx: CallContext) -> int:
        """최대 amount의 stable을 orchestrator에게 전달.

        조달 순서: 전략 idle → 현금 준비금 → 변동성 자산 청산.

        Returns:
            실제 전달량 (자산 부족 시 amount 미만)
        """
        ctx.require(Capability.ORCHESTRATOR)
        if amount <= 0:
            msg = "Withdraw amount must be positive"
            raise ZeroAmountError(msg, context={"amount": amount})

        async with self._tx.atomic("strategy.withdraw") as tx:
            with self._guard.hold("withdraw"):
                await self._check_breaker(tx)

                idle = await self.idle_balance()
                if idle < amount:
                    live_cash = await self.cash_reserve_value()
                    take = min(amount - idle, live_cash)
                    if take > 0:
                        await self._withdraw_cash(take)
                    idle = await self.idle_balance()

                volatile_sold = 0
                if idle < amount and self._volatile_asset_held > 0:
                    volatile_sold, _ = await self._sell_volatile_for(amount - idle)
                    idle = await self.idle_balance()

                delivered = min(amount, idle)
                if delivered > 0:
                    await self._tokens.transfer(self._stable, self._account, ctx.caller, delivered)

                tx.emit(
                    CapitalWithdrawnEvent(
                        timestamp=self._clock.now(),
                        source=self.state_key,
                        operation_id=tx.operation_id,
                        requested=amount,
                        delivered=delivered,
                        volatile_sold=volatile_sold,
                    )
                )
                if delivered < amount:
                    logger.warning("Strategy delivered {} of requested {}", delivered, amount)
                else:
                    logger.info("Withdrew {} {} to {}", delivered, self._stable, ctx.caller)
                return delivered

    async def rebalance(self, sell_volatile: bool, amount: int, ctx: CallContext) -> None:
        """변동성 자산과 현금 준비금 사이에서 amount(stable 가치)를 이동.

        Args:
            sell_volatile: True면 변동성 자산 매도 → 현금 준비금 예치
                (보유량 부족 시 전량 매도), False면 현금 준비금 → 변동성 자산 매수
            amount: 이동할 stable 가치
            ctx: ORCHESTRATOR 컨텍스트

        Raises:
            InsufficientReserveError: 매수 시 amount > 현금 준비금 실잔고
        """
        ctx.require(Capability.ORCHESTRATOR)
        if amount <= 0:
            msg = "Rebalance amount must be positive"
            raise ZeroAmountError(msg, context={"amount": amount})

        async with self._tx.atomic("strategy.rebalance") as tx:
            with self._guard.hold("rebalance"):
                await self._check_breaker(tx)

                if sell_volatile:
                    volatile_delta, proceeds = await self._sell_volatile_for(amount)
                    cash_delta = await self._supply_cash(proceeds) if proceeds > 0 else 0
                    volatile_delta = -volatile_delta
                else:
                    live_cash = await self.cash_reserve_value()
                    if amount > live_cash:
                        msg = "Cash reserve below rebalance amount"
                        raise InsufficientReserveError(
                            msg, context={"amount": amount, "cash_reserve": live_cash}
                        )
                    withdrawn = await self._withdraw_cash(amount)
                    volatile_delta = await self._buy_volatile(withdrawn)
                    cash_delta = -withdrawn

                tx.emit(
                    ReserveRebalancedEvent(
                        timestamp=self._clock.now(),
                        source=self.state_key,
                        operation_id=tx.operation_id,
                        sell_volatile=sell_volatile,
                        amount=amount,
                        volatile_delta=volatile_delta,
                        cash_delta=cash_delta,
                    )
                )
                logger.info(
                    "Rebalanced {} (sell_volatile={}): volatile {:+d}, cash {:+d}",
                    amount,
                    sell_volatile,
                    volatile_delta,
                    cash_delta,
                )

    async def harvest_yield(self, ctx: CallContext) -> int:
        """lending 이자(실잔고 - 원금)를 orchestrator에게 전달.

        Returns:
            회수한 이자 (없으면 0, 상태 변경 없음)
        """
        ctx.require(Capability.ORCHESTRATOR)
        async with self._tx.atomic("strategy.harvest_yield") as tx:
            with self._guard.hold("harvest_yield"):
                await self._check_breaker(tx)

                live_cash = await self.cash_reserve_value()
                accrued = live_cash - self._cash_deployed
                if accrued <= 0:
                    logger.debug(
                        "No yield to harvest (live={}, principal={})",
                        live_cash,
                        self._cash_deployed,
                    )
                    return 0

                before = await self._tokens.balance_of(self._stable, ctx.caller)
                await self._lending.withdraw(self._stable, accrued, self._account, ctx.caller)
                harvested = await self._tokens.balance_of(self._stable, ctx.caller) - before

                tx.emit(
                    YieldHarvestedEvent(
                        timestamp=self._clock.now(),
                        source=self.state_key,
                        operation_id=tx.operation_id,
                        amount=harvested,
                    )
                )
                logger.info("Harvested {} {} yield", harvested, self._stable)
                return harvested

    async def withdraw_all(self, ctx: CallContext) -> int:
        """전량 청산 후 호출자에게 전달 (비상용).

        서킷브레이커는 우회하지만 스왑 slippage 하한은 유지합니다.

        Returns:
            전달한 stable 총량
        """
        ctx.require(Capability.ADMIN, Capability.ORCHESTRATOR)
        async with self._tx.atomic("strategy.withdraw_all") as tx:
            with self._guard.hold("withdraw_all"):
                volatile_sold = 0
                if self._volatile_asset_held > 0:
                    volatile_sold, _ = await self._sell_volatile_exact(self._volatile_asset_held)

                live_cash = await self.cash_reserve_value()
                if live_cash > 0:
                    await self._withdraw_cash(live_cash)
                self._cash_deployed = 0

                delivered = await self.idle_balance()
                if delivered > 0:
                    await self._tokens.transfer(self._stable, self._account, ctx.caller, delivered)

                tx.emit(
                    CapitalWithdrawnEvent(
                        timestamp=self._clock.now(),
                        source=self.state_key,
                        operation_id=tx.operation_id,
                        requested=delivered,
                        delivered=delivered,
                        volatile_sold=volatile_sold,
                    )
                )
                logger.warning("Emergency withdraw_all delivered {} to {}", delivered, ctx.caller)
                return delivered

    # =========================================================================
    # Admin
    # =========================================================================

    async def set_allocation(self, allocation: AllocationSplit, ctx: CallContext) -> None:
        ctx.require(Capability.ADMIN)
        async with self._tx.atomic("strategy.set_allocation") as tx:
            self._allocation = allocation
            self._emit_parameters(
                tx,
                ctx,
                "allocation",
                {"volatile_bps": allocation.volatile_bps, "cash_bps": allocation.cash_bps},
            )

    async def set_max_slippage(self, max_slippage_bps: int, ctx: CallContext) -> None:
        ctx.require(Capability.ADMIN)
        if not 0 <= max_slippage_bps < BASIS_POINTS:
            msg = "max_slippage_bps out of range"
            raise InvalidParameterError(msg, context={"max_slippage_bps": max_slippage_bps})
        async with self._tx.atomic("strategy.set_max_slippage") as tx:
            self._max_slippage_bps = max_slippage_bps
            self._emit_parameters(tx, ctx, "slippage", {"max_slippage_bps": max_slippage_bps})

    async def set_circuit_breaker_params(
        self, threshold_bps: int, window_seconds: int, ctx: CallContext
    ) -> None:
        ctx.require(Capability.ADMIN)
        if not 0 < threshold_bps < BASIS_POINTS or window_seconds <= 0:
            msg = "Invalid circuit breaker parameters"
            raise InvalidParameterError(
                msg, context={"threshold_bps": threshold_bps, "window_seconds": window_seconds}
            )
        async with self._tx.atomic("strategy.set_circuit_breaker_params") as tx:
            self._breaker.reconfigure(
                CircuitBreakerConfig(threshold_bps=threshold_bps, window_seconds=window_seconds)
            )
            self._emit_parameters(
                tx,
                ctx,
                "circuit_breaker",
                {"threshold_bps": threshold_bps, "window_seconds": window_seconds},
            )

    async def reset_circuit_breaker(self, ctx: CallContext) -> None:
        """latch 해제 + 현재 오라클 가격으로 체크포인트 재설정."""
        ctx.require(Capability.ADMIN)
        async with self._tx.atomic("strategy.reset_circuit_breaker") as tx:
            price = (await self._oracle.read(self._volatile)).price
            self._breaker.reset(price, self._clock.now())
            tx.emit(
                CircuitBreakerResetEvent(
                    timestamp=self._clock.now(),
                    source=self.state_key,
                    operation_id=tx.operation_id,
                    checkpoint_price=price,
                    reset_by=ctx.caller,
                )
            )
            logger.warning("Circuit breaker reset by {} at price {}", ctx.caller, price)

    # =========================================================================
    # Transactional
    # =========================================================================

    def snapshot(self) -> dict[str, Any]:
        """롤백 대상 상태 (서킷브레이커 제외)."""
        return {
            "volatile_asset_held": self._volatile_asset_held,
            "cash_deployed": self._cash_deployed,
            "allocation": self._allocation.model_dump(),
            "max_slippage_bps": self._max_slippage_bps,
            "swap_deadline_seconds": self._swap_deadline_seconds,
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._volatile_asset_held = int(snapshot["volatile_asset_held"])
        self._cash_deployed = int(snapshot["cash_deployed"])
        self._allocation = AllocationSplit.model_validate(snapshot["allocation"])
        self._max_slippage_bps = int(snapshot["max_slippage_bps"])
        self._swap_deadline_seconds = int(snapshot["swap_deadline_seconds"])

    def to_dict(self) -> dict[str, Any]:
        state = self.snapshot()
        state["circuit_breaker"] = self._breaker.to_dict()
        return state

    def restore_from_dict(self, state: dict[str, Any]) -> None:
        self.restore(state)
        if "circuit_breaker" in state:
            self._breaker.restore_from_dict(state["circuit_breaker"])
        logger.info(
            "Strategy state restored: volatile={}, cash_deployed={}, breaker_tripped={}",
            self._volatile_asset_held,
            self._cash_deployed,
            self._breaker.tripped,
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    async def _check_breaker(self, tx: Transaction) -> None:
        self._breaker.ensure_open()
        price = (await self._oracle.read(self._volatile)).price
        checkpoint = self._breaker.checkpoint_price
        drop = self._breaker.observe(price, self._clock.now())
        if drop is None:
            return
        tx.emit(
            CircuitBreakerTrippedEvent(
                timestamp=self._clock.now(),
                source=self.state_key,
                operation_id=tx.operation_id,
                checkpoint_price=checkpoint,
                current_price=price,
                drop_bps=drop,
            ),
            sticky=True,
        )
        msg = "Circuit breaker tripped"
        raise CircuitBreakerActiveError(
            msg, context={"checkpoint_price": checkpoint, "price": price, "drop_bps": drop}
        )

    async def _convert(
        self, amount: int, asset_in: str, asset_out: str, rounding: Rounding = Rounding.DOWN
    ) -> int:
        """오라클 가격으로 asset_in 수량을 asset_out 수량으로 환산."""
        price_in = await self._oracle.read(asset_in)
        price_out = await self._oracle.read(asset_out)
        num = price_in.price * 10 ** (self._tokens.decimals(asset_out) + price_out.decimals)
        den = price_out.price * 10 ** (self._tokens.decimals(asset_in) + price_in.decimals)
        return mul_div(amount, num, den, rounding)

    def _deadline(self) -> int:
        return self._clock.now() + self._swap_deadline_seconds

    def _min_out(self, expected: int) -> int:
        return apply_bps(expected, BASIS_POINTS - self._max_slippage_bps)

    async def _buy_volatile(self, stable_amount: int) -> int:
        """stable → 변동성 자산 exact-input 스왑. 수령량(잔고 변화) 반환."""
        expected = await self._convert(stable_amount, self._stable, self._volatile)
        min_out = self._min_out(expected)
        before = await self._tokens.balance_of(self._volatile, self._account)
        reported = await self._dex.swap_exact_input(
            self._account,
            self._stable,
            self._volatile,
            stable_amount,
            min_out,
            self._deadline(),
        )
        received = await self._tokens.balance_of(self._volatile, self._account) - before
        self._verify_output(received, min_out, reported)
        self._volatile_asset_held += received
        return received

    async def _sell_volatile_exact(self, volatile_amount: int) -> tuple[int, int]:
        """변동성 자산 exact-input 매도.

        Returns:
            (매도한 변동성 수량, 수령한 stable)
        """
        if volatile_amount <= 0:
            return 0, 0
        expected = await self._convert(volatile_amount, self._volatile, self._stable)
        min_out = self._min_out(expected)
        volatile_before = await self._tokens.balance_of(self._volatile, self._account)
        stable_before = await self._tokens.balance_of(self._stable, self._account)
        reported = await self._dex.swap_exact_input(
            self._account,
            self._volatile,
            self._stable,
            volatile_amount,
            min_out,
            self._deadline(),
        )
        sold = volatile_before - await self._tokens.balance_of(self._volatile, self._account)
        proceeds = await self._tokens.balance_of(self._stable, self._account) - stable_before
        self._verify_output(proceeds, min_out, reported)
        self._volatile_asset_held -= sold
        return sold, proceeds

    async def _sell_volatile_for(self, stable_needed: int) -> tuple[int, int]:
        """stable_needed를 조달할 만큼 변동성 자산 매도.

        필요 수량(slippage 상한 포함)이 보유량을 넘으면 전량 매도합니다.

        Returns:
            (매도한 변동성 수량, 수령한 stable)
        """
        expected_in = await self._convert(stable_needed, self._stable, self._volatile, Rounding.UP)
        max_in = apply_bps(expected_in, BASIS_POINTS + self._max_slippage_bps, Rounding.UP)
        if max_in >= self._volatile_asset_held:
            return await self._sell_volatile_exact(self._volatile_asset_held)

        volatile_before = await self._tokens.balance_of(self._volatile, self._account)
        stable_before = await self._tokens.balance_of(self._stable, self._account)
        await self._dex.swap_exact_output(
            self._account,
            self._volatile,
            self._stable,
            stable_needed,
            max_in,
            self._deadline(),
        )
        sold = volatile_before - await self._tokens.balance_of(self._volatile, self._account)
        proceeds = await self._tokens.balance_of(self._stable, self._account) - stable_before
        if sold > max_in:
            msg = "Swap consumed more than maximum input"
            raise SlippageExceededError(msg, context={"sold": sold, "max_in": max_in})
        self._volatile_asset_held -= sold
        return sold, proceeds

    def _verify_output(self, received: int, min_out: int, reported: int) -> None:
        if received != reported:
            logger.warning("DEX reported {} but balance changed by {}", reported, received)
        if received < min_out:
            msg = "Observed swap output below minimum"
            raise SlippageExceededError(msg, context={"received": received, "min_out": min_out})

    async def _supply_cash(self, amount: int) -> int:
        before = await self._lending.balance_of(self._stable, self._account)
        await self._lending.supply(self._stable, amount, self._account)
        supplied = await self._lending.balance_of(self._stable, self._account) - before
        self._cash_deployed += supplied
        return supplied

    async def _withdraw_cash(self, amount: int) -> int:
        """lending → 전략 idle. 원금 추적은 원금부터 차감."""
        before = await self.idle_balance()
        await self._lending.withdraw(self._stable, amount, self._account, self._account)
        withdrawn = await self.idle_balance() - before
        self._cash_deployed -= min(withdrawn, self._cash_deployed)
        return withdrawn

    def _emit_parameters(
        self,
        tx: Transaction,
        ctx: CallContext,
        section: str,
        values: dict[str, int | str | bool],
    ) -> None:
        tx.emit(
            ParametersUpdatedEvent(
                timestamp=self._clock.now(),
                source=self.state_key,
                operation_id=tx.operation_id,
                updated_by=ctx.caller,
                section=section,
                values=values,
            )
        )
        logger.info("Strategy {} updated by {}: {}", section, ctx.caller, values)
