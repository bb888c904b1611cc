"""vSTRC Vault - share accounting, epoch tick, admin.

사용자 예치/인출을 지분 원장으로 회계 처리하고, keeper의 epoch tick마다
배당률을 재계산해 ReserveStrategy로 자본을 이동합니다.

Conversions (virtual offset, 지분 decimals = 자산 decimals + 3):
    shares = assets * (total_shares + 10**3) / (total_assets + 1)
    assets = shares * (total_assets + 1) / (total_shares + 10**3)

가상 자산이 1이므로 전체 지분의 청구액은 실제 total_assets를 넘지 않습니다.

반올림은 항상 vault에 유리하게: deposit/redeem 방향 floor, mint/withdraw 방향 ceil.

Epoch Tick:
    IDLE → COMPUTING (oracle, rate, dividend) → REBALANCING (harvest, liquidity)
    → SETTLED

Rules Applied:
    - #23 Exception Handling: 검증 후 실행, 실패 시 전체 롤백
    - EDA state persistence 패턴 (to_dict/restore_from_dict)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from vstrc.core.access import CallContext, Capability
from vstrc.core.audit import (
    DepositEvent,
    DividendDistributedEvent,
    ParametersUpdatedEvent,
    PauseUpdatedEvent,
    ShareTransferEvent,
    StrategyUpdatedEvent,
    WithdrawEvent,
    YieldRebalancedEvent,
)
from vstrc.core.exceptions import (
    DepositCapExceededError,
    DepositTooLargeError,
    DepositTooSmallError,
    EpochNotElapsedError,
    InsufficientAllowanceError,
    InsufficientLiquidityError,
    InsufficientSharesError,
    InvalidParameterError,
    MintingPausedError,
    RedeemingPausedError,
    StrategyNotEmptyError,
    StrategyNotSetError,
    VaultError,
    ZeroAmountError,
    add_context_note,
)
from vstrc.core.guard import NonReentrantGuard
from vstrc.engine.fixed_point import mul_div
from vstrc.engine.rate_controller import (
    clamp_rate,
    collateral_ratio,
    epoch_dividend,
    peg_state,
    projected_annual_dividend,
    variable_rate,
)
from vstrc.logging.context import get_vault_logger
from vstrc.models.types import BASIS_POINTS, EpochPhase, PegState, Rounding
from vstrc.models.vault import DepositLimits, EpochReport, RateParameters, VaultConfig
from vstrc.vault.ledger import ShareLedger

if TYPE_CHECKING:
    from vstrc.core.clock import Clock
    from vstrc.core.transaction import Transaction, TransactionManager
    from vstrc.oracle.reader import OracleReader
    from vstrc.strategy.ports import StrategyPort
    from vstrc.venues.ports import TokenPort

DECIMALS_OFFSET = 3
VIRTUAL_SHARES = 10**DECIMALS_OFFSET
VIRTUAL_ASSETS = 1


class Vault:
    """지분 발행 treasury vault.

    Args:
        config: vault 설정
        tokens: 토큰 잔고/전송
        oracle: 검증 오라클 reader (지분 시장가)
        clock: 현재 시각
        transactions: 공유 TransactionManager (생성 시 participant로 등록)
        strategy: 초기 전략 (선택, set_strategy로 교체 가능)

    Example:
        >>> vault = Vault(VaultConfig(), tokens, reader, clock, tx, strategy=strategy)
        >>> shares = await vault.deposit(1_000_000_000, "alice", CallContext.user("alice"))
        >>> report = await vault.rebalance_yield(CallContext.keeper("keeper"))
    """

    def __init__(
        self,
        config: VaultConfig,
        tokens: TokenPort,
        oracle: OracleReader,
        clock: Clock,
        transactions: TransactionManager,
        *,
        strategy: StrategyPort | None = None,
    ) -> None:
        self._name = config.name
        self._symbol = config.symbol
        self._asset = config.asset_id
        self._account = config.account_id
        self._tokens = tokens
        self._oracle = oracle
        self._clock = clock
        self._tx = transactions
        self._asset_decimals = tokens.decimals(config.asset_id)
        self._decimals = self._asset_decimals + DECIMALS_OFFSET

        self._target_price = config.target_price
        self._epoch_duration = config.epoch_duration
        self._liquidity_buffer_bps = config.liquidity_buffer_bps
        self._rates = config.rates
        self._limits = config.limits
        self._share_price_asset = config.symbol

        self._current_rate = config.rates.base_rate
        self._last_epoch_timestamp = clock.now()
        self._epoch_count = 0
        self._accumulated_yield_per_share = 0
        self._last_assets_per_share = 10**self._asset_decimals
        self._total_dividends_paid = 0
        self._minting_paused = False
        self._redeeming_paused = False
        self._phase = EpochPhase.IDLE

        self._ledger = ShareLedger()
        self._strategy: StrategyPort | None = None
        self._known_strategies: dict[str, StrategyPort] = {}
        if strategy is not None:
            self._attach_strategy(strategy)

        self._guard = NonReentrantGuard(f"vault:{self._account}")
        self._orchestrator_ctx = CallContext.orchestrator(self._account)
        transactions.register(self)

    # =========================================================================
    # Token metadata / share views
    # =========================================================================

    @property
    def name(self) -> str:
        return self._name

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def decimals(self) -> int:
        return self._decimals

    @property
    def asset(self) -> str:
        return self._asset

    @property
    def account_id(self) -> str:
        return self._account

    @property
    def state_key(self) -> str:
        return f"vault:{self._account}"

    def balance_of(self, holder: str) -> int:
        return self._ledger.balance_of(holder)

    def total_supply(self) -> int:
        return self._ledger.total_shares

    def allowance(self, owner: str, spender: str) -> int:
        return self._ledger.allowance(owner, spender)

    @property
    def holders(self) -> dict[str, int]:
        return self._ledger.holders

    # =========================================================================
    # State views
    # =========================================================================

    @property
    def strategy(self) -> StrategyPort | None:
        return self._strategy

    @property
    def target_price(self) -> int:
        return self._target_price

    @property
    def rates(self) -> RateParameters:
        return self._rates

    @property
    def limits(self) -> DepositLimits:
        return self._limits

    @property
    def current_rate(self) -> int:
        return self._current_rate

    @property
    def epoch_duration(self) -> int:
        return self._epoch_duration

    @property
    def epoch_count(self) -> int:
        return self._epoch_count

    @property
    def last_epoch_timestamp(self) -> int:
        return self._last_epoch_timestamp

    @property
    def next_epoch_at(self) -> int:
        return self._last_epoch_timestamp + self._epoch_duration

    @property
    def phase(self) -> EpochPhase:
        """현재 epoch 상태 (정산 후 다음 epoch 도래 시 IDLE)."""
        if self._phase is EpochPhase.SETTLED and self._clock.now() >= self.next_epoch_at:
            return EpochPhase.IDLE
        return self._phase

    @property
    def accumulated_yield_per_share(self) -> int:
        return self._accumulated_yield_per_share

    @property
    def last_assets_per_share(self) -> int:
        return self._last_assets_per_share

    @property
    def total_dividends_paid(self) -> int:
        return self._total_dividends_paid

    @property
    def minting_paused(self) -> bool:
        return self._minting_paused

    @property
    def redeeming_paused(self) -> bool:
        return self._redeeming_paused

    @property
    def share_price_asset(self) -> str:
        return self._share_price_asset

    async def idle_balance(self) -> int:
        return await self._tokens.balance_of(self._asset, self._account)

    async def total_assets(self) -> int:
        """vault idle + 전략 총가치."""
        total = await self.idle_balance()
        if self._strategy is not None:
            total += await self._strategy.total_value()
        return total

    # ── Conversions ───────────────────────────────────────────────

    async def convert_to_shares(self, assets: int) -> int:
        return self._to_shares(assets, await self.total_assets(), Rounding.DOWN)

    async def convert_to_assets(self, shares: int) -> int:
        return self._to_assets(shares, await self.total_assets(), Rounding.DOWN)

    async def preview_deposit(self, assets: int) -> int:
        return self._to_shares(assets, await self.total_assets(), Rounding.DOWN)

    async def preview_mint(self, shares: int) -> int:
        return self._to_assets(shares, await self.total_assets(), Rounding.UP)

    async def preview_withdraw(self, assets: int) -> int:
        return self._to_shares(assets, await self.total_assets(), Rounding.UP)

    async def preview_redeem(self, shares: int) -> int:
        return self._to_assets(shares, await self.total_assets(), Rounding.DOWN)

    async def max_deposit(self, receiver: str) -> int:
        if self._minting_paused:
            return 0
        headroom = self._limits.max_total_deposits - await self.total_assets()
        return max(0, min(self._limits.max_single_deposit, headroom))

    async def max_mint(self, receiver: str) -> int:
        return await self.convert_to_shares(await self.max_deposit(receiver))

    async def max_withdraw(self, owner: str) -> int:
        if self._redeeming_paused:
            return 0
        return await self.convert_to_assets(self._ledger.balance_of(owner))

    def max_redeem(self, owner: str) -> int:
        if self._redeeming_paused:
            return 0
        return self._ledger.balance_of(owner)

    async def assets_per_share(self) -> int:
        """1 whole share(10**decimals)의 자산 가치."""
        return await self.convert_to_assets(10**self._decimals)

    async def collateral_ratio(self) -> int | float:
        """(준비금 + 현금) / 액면 부채 (PRECISION 스케일, 부채 0이면 inf).

        부채는 유통 지분(whole share) x target_price 입니다. 지분은 약 1 자산에 발행되므로
        예치 직후 비율은 약 PRECISION / 100 (target $100 기준)이고, assets_per_share가
        target_price에 도달해야 PRECISION(100%)이 됩니다.
        """
        reserve = 0
        strategy_total = 0
        if self._strategy is not None:
            reserve = await self._strategy.volatile_reserve_value()
            strategy_total = await self._strategy.total_value()
        cash = strategy_total - reserve + await self.idle_balance()
        liabilities = mul_div(self._ledger.total_shares, self._target_price, 10**self._decimals)
        return collateral_ratio(reserve, cash, liabilities)

    async def projected_annual_dividend(self) -> int:
        return projected_annual_dividend(await self.total_assets(), self._current_rate)

    # =========================================================================
    # User operations
    # =========================================================================

    async def deposit(self, assets: int, receiver: str, ctx: CallContext) -> int:
        """assets를 예치하고 지분 발행.

        Returns:
            발행된 지분

        Raises:
            MintingPausedError, ZeroAmountError, DepositTooSmallError,
            DepositTooLargeError, DepositCapExceededError
        """
        async with self._tx.atomic("vault.deposit") as tx:
            with self._guard.hold("deposit"):
                total = await self.total_assets()
                self._validate_deposit(assets, total)
                shares = self._to_shares(assets, total, Rounding.DOWN)
                if shares == 0:
                    msg = "Deposit would mint zero shares"
                    raise ZeroAmountError(msg, context={"assets": assets})
                await self._pull_and_mint(tx, ctx.caller, receiver, assets, shares)
                return shares

    async def mint(self, shares: int, receiver: str, ctx: CallContext) -> int:
        """정확히 shares를 발행. 필요한 자산은 올림 계산.

        Returns:
            지불한 자산
        """
        if self._minting_paused:
            msg = "Minting is paused"
            raise MintingPausedError(msg)
        if shares <= 0:
            msg = "Mint shares must be positive"
            raise ZeroAmountError(msg, context={"shares": shares})

        async with self._tx.atomic("vault.mint") as tx:
            with self._guard.hold("mint"):
                total = await self.total_assets()
                assets = self._to_assets(shares, total, Rounding.UP)
                self._validate_deposit(assets, total)
                await self._pull_and_mint(tx, ctx.caller, receiver, assets, shares)
                return assets

    async def withdraw(self, assets: int, receiver: str, owner: str, ctx: CallContext) -> int:
        """정확히 assets를 인출. 소각 지분은 올림 계산.

        Returns:
            소각된 지분
        """
        self._validate_redeem_state()
        if assets <= 0:
            msg = "Withdraw assets must be positive"
            raise ZeroAmountError(msg, context={"assets": assets})

        async with self._tx.atomic("vault.withdraw") as tx:
            with self._guard.hold("withdraw"):
                total = await self.total_assets()
                shares = self._to_shares(assets, total, Rounding.UP)
                await self._burn_and_pay(tx, ctx.caller, receiver, owner, assets, shares)
                return shares

    async def redeem(self, shares: int, receiver: str, owner: str, ctx: CallContext) -> int:
        """shares를 소각하고 자산 수령 (내림 계산).

        Returns:
            지급된 자산
        """
        self._validate_redeem_state()
        if shares <= 0:
            msg = "Redeem shares must be positive"
            raise ZeroAmountError(msg, context={"shares": shares})

        async with self._tx.atomic("vault.redeem") as tx:
            with self._guard.hold("redeem"):
                total = await self.total_assets()
                assets = self._to_assets(shares, total, Rounding.DOWN)
                if assets == 0:
                    msg = "Redeem would return zero assets"
                    raise ZeroAmountError(msg, context={"shares": shares})
                final_exit = shares == self._ledger.total_shares
                return await self._burn_and_pay(
                    tx, ctx.caller, receiver, owner, assets, shares, final_exit=final_exit
                )

    # ── Share transfers ───────────────────────────────────────────

    async def transfer(self, recipient: str, shares: int, ctx: CallContext) -> None:
        async with self._tx.atomic("vault.transfer") as tx:
            with self._guard.hold("transfer"):
                self._ledger.transfer(ctx.caller, recipient, shares)
                self._emit_transfer(tx, ctx.caller, recipient, shares)

    async def approve(self, spender: str, shares: int, ctx: CallContext) -> None:
        async with self._tx.atomic("vault.approve"):
            self._ledger.approve(ctx.caller, spender, shares)

    async def transfer_from(
        self, owner: str, recipient: str, shares: int, ctx: CallContext
    ) -> None:
        async with self._tx.atomic("vault.transfer_from") as tx:
            with self._guard.hold("transfer_from"):
                self._check_owner(owner, ctx.caller, shares)
                self._ledger.spend_allowance(owner, ctx.caller, shares)
                self._ledger.transfer(owner, recipient, shares)
                self._emit_transfer(tx, owner, recipient, shares)

    # =========================================================================
    # Epoch tick (KEEPER)
    # =========================================================================

    async def rebalance_yield(self, ctx: CallContext) -> EpochReport:
        """Epoch tick: 배당률 재계산 + 배당 유동성 확보.

        Raises:
            UnauthorizedError: KEEPER capability 없음
            EpochNotElapsedError: epoch_duration 미경과
            OracleError: 지분 시장가 검증 실패
            CircuitBreakerActiveError: 전략 서킷브레이커 발동 상태
        """
        ctx.require(Capability.KEEPER)
        async with self._tx.atomic("vault.rebalance_yield") as tx:
            with self._guard.hold("rebalance_yield"):
                return await self._run_epoch(tx)

    async def _run_epoch(self, tx: Transaction) -> EpochReport:
        log = get_vault_logger(component="vault", operation="rebalance_yield")
        now = self._clock.now()
        if now < self.next_epoch_at:
            msg = "Epoch has not elapsed"
            raise EpochNotElapsedError(
                msg, next_epoch_at=self.next_epoch_at, context={"now": now}
            )

        # COMPUTING
        self._phase = EpochPhase.COMPUTING
        market_price = await self._oracle.read_scaled(self._share_price_asset, self._asset_decimals)
        rates = self._rates
        new_rate = variable_rate(
            self._target_price,
            market_price,
            rates.base_rate,
            rates.sensitivity,
            rates.min_rate,
            rates.max_rate,
        )
        self._current_rate = new_rate
        total = await self.total_assets()
        dividend = epoch_dividend(total, new_rate, self._epoch_duration)

        aps_before = await self.assets_per_share()
        if aps_before > self._last_assets_per_share:
            self._accumulated_yield_per_share += aps_before - self._last_assets_per_share
        log.debug(
            "Epoch computing: market={}, rate={} bps, dividend={}", market_price, new_rate, dividend
        )

        # REBALANCING
        self._phase = EpochPhase.REBALANCING
        peg = peg_state(self._target_price, market_price)
        harvested = liquidated = withdrawn = deployed = 0
        strategy = self._strategy
        if strategy is not None:
            harvested = await strategy.harvest_yield(self._orchestrator_ctx)
            if peg is PegState.BELOW and dividend > 0:
                cash = await strategy.cash_reserve_value()
                if cash < dividend:
                    liquidated = dividend - cash
                    await strategy.rebalance(True, liquidated, self._orchestrator_ctx)
                withdrawn = await strategy.withdraw(dividend, self._orchestrator_ctx)
            elif peg is PegState.ABOVE:
                deployed = await self._deploy_idle()

        aps_after = await self.assets_per_share()
        self._last_assets_per_share = aps_after

        # SETTLED
        self._last_epoch_timestamp += self._epoch_duration
        self._epoch_count += 1
        self._total_dividends_paid += dividend
        self._phase = EpochPhase.SETTLED

        tx.emit(
            YieldRebalancedEvent(
                timestamp=now,
                source=self.state_key,
                operation_id=tx.operation_id,
                new_rate_bps=new_rate,
                market_price=market_price,
                target_price=self._target_price,
            )
        )
        tx.emit(
            DividendDistributedEvent(
                timestamp=now,
                source=self.state_key,
                operation_id=tx.operation_id,
                epoch=self._epoch_count,
                amount=dividend,
                rate_bps=new_rate,
            )
        )
        log.info(
            "Epoch {} settled: peg={}, rate={} bps, dividend={}, harvested={}",
            self._epoch_count,
            peg,
            new_rate,
            dividend,
            harvested,
        )
        return EpochReport(
            epoch=self._epoch_count,
            market_price=market_price,
            peg=peg,
            new_rate=new_rate,
            total_assets=total,
            dividend=dividend,
            harvested=harvested,
            liquidated=liquidated,
            withdrawn=withdrawn,
            deployed=deployed,
            assets_per_share_before=aps_before,
            assets_per_share_after=aps_after,
            accumulated_yield_per_share=self._accumulated_yield_per_share,
            epoch_timestamp=self._last_epoch_timestamp,
        )

    # =========================================================================
    # Admin (ADMIN)
    # =========================================================================

    async def set_strategy(self, strategy: StrategyPort | None, ctx: CallContext) -> None:
        """전략 교체. 기존 전략에 자산이 남아 있으면 거부."""
        ctx.require(Capability.ADMIN)
        async with self._tx.atomic("vault.set_strategy") as tx:
            with self._guard.hold("set_strategy"):
                if self._strategy is not None and strategy is not self._strategy:
                    remaining = await self._strategy.total_value()
                    if remaining > 0:
                        msg = "Current strategy still holds assets"
                        raise StrategyNotEmptyError(
                            msg,
                            context={
                                "strategy": self._strategy.strategy_id,
                                "total_value": remaining,
                            },
                        )
                self._strategy = None
                if strategy is not None:
                    self._attach_strategy(strategy)
                tx.emit(
                    StrategyUpdatedEvent(
                        timestamp=self._clock.now(),
                        source=self.state_key,
                        operation_id=tx.operation_id,
                        strategy_id=strategy.strategy_id if strategy is not None else None,
                        updated_by=ctx.caller,
                    )
                )
                logger.info(
                    "Strategy set to {} by {}",
                    strategy.strategy_id if strategy is not None else None,
                    ctx.caller,
                )

    async def set_share_price_oracle(self, asset_id: str, ctx: CallContext) -> None:
        """지분 시장가 오라클 자산 ID 변경 (reader에 설정된 자산만 허용)."""
        ctx.require(Capability.ADMIN)
        self._oracle.max_staleness(asset_id)
        async with self._tx.atomic("vault.set_share_price_oracle") as tx:
            self._share_price_asset = asset_id
            self._emit_parameters(tx, ctx, "oracle", {"share_price_asset": asset_id})

    async def set_dividend_params(
        self,
        base_rate: int,
        sensitivity: int,
        min_rate: int,
        max_rate: int,
        ctx: CallContext,
    ) -> None:
        ctx.require(Capability.ADMIN)
        try:
            rates = RateParameters(
                base_rate=base_rate,
                sensitivity=sensitivity,
                min_rate=min_rate,
                max_rate=max_rate,
            )
        except PydanticValidationError as e:
            msg = "Invalid dividend parameters"
            raise InvalidParameterError(
                msg,
                context={
                    "base_rate": base_rate,
                    "sensitivity": sensitivity,
                    "min_rate": min_rate,
                    "max_rate": max_rate,
                },
            ) from e
        async with self._tx.atomic("vault.set_dividend_params") as tx:
            self._rates = rates
            self._current_rate = clamp_rate(self._current_rate, min_rate, max_rate)
            self._emit_parameters(tx, ctx, "rates", rates.model_dump())

    async def set_target_price(self, target_price: int, ctx: CallContext) -> None:
        ctx.require(Capability.ADMIN)
        if target_price <= 0:
            msg = "Target price must be positive"
            raise InvalidParameterError(msg, context={"target_price": target_price})
        async with self._tx.atomic("vault.set_target_price") as tx:
            self._target_price = target_price
            self._emit_parameters(tx, ctx, "target_price", {"target_price": target_price})

    async def set_epoch_duration(self, epoch_duration: int, ctx: CallContext) -> None:
        ctx.require(Capability.ADMIN)
        if epoch_duration <= 0:
            msg = "Epoch duration must be positive"
            raise InvalidParameterError(msg, context={"epoch_duration": epoch_duration})
        async with self._tx.atomic("vault.set_epoch_duration") as tx:
            self._epoch_duration = epoch_duration
            self._emit_parameters(tx, ctx, "epoch", {"epoch_duration": epoch_duration})

    async def set_deposit_limits(self, limits: DepositLimits, ctx: CallContext) -> None:
        ctx.require(Capability.ADMIN)
        async with self._tx.atomic("vault.set_deposit_limits") as tx:
            self._limits = limits
            self._emit_parameters(tx, ctx, "limits", limits.model_dump())

    async def set_liquidity_buffer(self, liquidity_buffer_bps: int, ctx: CallContext) -> None:
        ctx.require(Capability.ADMIN)
        if not 0 <= liquidity_buffer_bps <= BASIS_POINTS:
            msg = "Liquidity buffer out of range"
            raise InvalidParameterError(
                msg, context={"liquidity_buffer_bps": liquidity_buffer_bps}
            )
        async with self._tx.atomic("vault.set_liquidity_buffer") as tx:
            self._liquidity_buffer_bps = liquidity_buffer_bps
            self._emit_parameters(
                tx, ctx, "liquidity_buffer", {"liquidity_buffer_bps": liquidity_buffer_bps}
            )

    async def set_pause(self, minting: bool, redeeming: bool, ctx: CallContext) -> None:
        ctx.require(Capability.ADMIN)
        async with self._tx.atomic("vault.set_pause") as tx:
            self._set_pause(tx, minting, redeeming, ctx.caller)

    async def emergency_withdraw(self, ctx: CallContext) -> int:
        """전략 전량 청산 → vault idle 회수 + 신규 예치 중단.

        Returns:
            회수한 자산
        """
        ctx.require(Capability.ADMIN)
        strategy = self._require_strategy()
        async with self._tx.atomic("vault.emergency_withdraw") as tx:
            with self._guard.hold("emergency_withdraw"):
                recovered = await strategy.withdraw_all(self._orchestrator_ctx)
                self._set_pause(tx, True, self._redeeming_paused, ctx.caller)
                logger.warning("Emergency withdraw by {} recovered {}", ctx.caller, recovered)
                return recovered

    # =========================================================================
    # Transactional
    # =========================================================================

    def snapshot(self) -> dict[str, Any]:
        return {
            "ledger": self._ledger.to_dict(),
            "target_price": self._target_price,
            "epoch_duration": self._epoch_duration,
            "liquidity_buffer_bps": self._liquidity_buffer_bps,
            "rates": self._rates.model_dump(),
            "limits": self._limits.model_dump(),
            "share_price_asset": self._share_price_asset,
            "current_rate": self._current_rate,
            "last_epoch_timestamp": self._last_epoch_timestamp,
            "epoch_count": self._epoch_count,
            "accumulated_yield_per_share": self._accumulated_yield_per_share,
            "last_assets_per_share": self._last_assets_per_share,
            "total_dividends_paid": self._total_dividends_paid,
            "minting_paused": self._minting_paused,
            "redeeming_paused": self._redeeming_paused,
            "phase": str(self._phase),
            "strategy_id": self._strategy.strategy_id if self._strategy is not None else None,
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._ledger.restore_from_dict(snapshot["ledger"])
        self._target_price = int(snapshot["target_price"])
        self._epoch_duration = int(snapshot["epoch_duration"])
        self._liquidity_buffer_bps = int(snapshot["liquidity_buffer_bps"])
        self._rates = RateParameters.model_validate(snapshot["rates"])
        self._limits = DepositLimits.model_validate(snapshot["limits"])
        self._share_price_asset = snapshot["share_price_asset"]
        self._current_rate = int(snapshot["current_rate"])
        self._last_epoch_timestamp = int(snapshot["last_epoch_timestamp"])
        self._epoch_count = int(snapshot["epoch_count"])
        self._accumulated_yield_per_share = int(snapshot["accumulated_yield_per_share"])
        self._last_assets_per_share = int(snapshot["last_assets_per_share"])
        self._total_dividends_paid = int(snapshot["total_dividends_paid"])
        self._minting_paused = bool(snapshot["minting_paused"])
        self._redeeming_paused = bool(snapshot["redeeming_paused"])
        self._phase = EpochPhase(snapshot["phase"])
        strategy_id = snapshot.get("strategy_id")
        self._strategy = self._known_strategies.get(strategy_id) if strategy_id else None

    def to_dict(self) -> dict[str, Any]:
        return self.snapshot()

    def restore_from_dict(self, state: dict[str, Any]) -> None:
        """영속화된 상태 복구. 전략 객체는 미리 연결되어 있어야 합니다."""
        self.restore(state)
        strategy_id = state.get("strategy_id")
        if strategy_id and self._strategy is None:
            logger.warning("Persisted strategy {} is not attached to this vault", strategy_id)
        logger.info(
            "Vault state restored: epoch={}, supply={}, rate={} bps",
            self._epoch_count,
            self._ledger.total_shares,
            self._current_rate,
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _to_shares(self, assets: int, total_assets: int, rounding: Rounding) -> int:
        return mul_div(
            assets,
            self._ledger.total_shares + VIRTUAL_SHARES,
            total_assets + VIRTUAL_ASSETS,
            rounding,
        )

    def _to_assets(self, shares: int, total_assets: int, rounding: Rounding) -> int:
        return mul_div(
            shares,
            total_assets + VIRTUAL_ASSETS,
            self._ledger.total_shares + VIRTUAL_SHARES,
            rounding,
        )

    def _validate_deposit(self, assets: int, total_assets: int) -> None:
        if self._minting_paused:
            msg = "Minting is paused"
            raise MintingPausedError(msg)
        if assets <= 0:
            msg = "Deposit assets must be positive"
            raise ZeroAmountError(msg, context={"assets": assets})
        limits = self._limits
        if assets < limits.min_deposit:
            msg = "Deposit below minimum"
            raise DepositTooSmallError(
                msg, context={"assets": assets, "min_deposit": limits.min_deposit}
            )
        if assets > limits.max_single_deposit:
            msg = "Deposit above single-deposit maximum"
            raise DepositTooLargeError(
                msg, context={"assets": assets, "max_single_deposit": limits.max_single_deposit}
            )
        if total_assets + assets > limits.max_total_deposits:
            msg = "Deposit would exceed total deposit cap"
            raise DepositCapExceededError(
                msg,
                context={
                    "assets": assets,
                    "total_assets": total_assets,
                    "max_total_deposits": limits.max_total_deposits,
                },
            )

    def _validate_redeem_state(self) -> None:
        if self._redeeming_paused:
            msg = "Redeeming is paused"
            raise RedeemingPausedError(msg)

    def _check_owner(self, owner: str, spender: str, shares: int) -> None:
        balance = self._ledger.balance_of(owner)
        if balance < shares:
            msg = "Insufficient shares"
            raise InsufficientSharesError(
                msg, context={"owner": owner, "balance": balance, "shares": shares}
            )
        if spender != owner:
            allowance = self._ledger.allowance(owner, spender)
            if allowance < shares:
                msg = "Insufficient allowance"
                raise InsufficientAllowanceError(
                    msg,
                    context={
                        "owner": owner,
                        "spender": spender,
                        "allowance": allowance,
                        "shares": shares,
                    },
                )

    async def _pull_and_mint(
        self, tx: Transaction, sender: str, receiver: str, assets: int, shares: int
    ) -> None:
        await self._tokens.transfer(self._asset, sender, self._account, assets)
        self._ledger.mint(receiver, shares)
        tx.emit(
            DepositEvent(
                timestamp=self._clock.now(),
                source=self.state_key,
                operation_id=tx.operation_id,
                sender=sender,
                owner=receiver,
                assets=assets,
                shares=shares,
            )
        )
        deployed = await self._deploy_idle()
        logger.info(
            "Deposit {} {} -> {} shares for {} (deployed {})",
            assets,
            self._asset,
            shares,
            receiver,
            deployed,
        )

    async def _burn_and_pay(
        self,
        tx: Transaction,
        spender: str,
        receiver: str,
        owner: str,
        assets: int,
        shares: int,
        *,
        final_exit: bool = False,
    ) -> int:
        self._check_owner(owner, spender, shares)
        assets = await self._ensure_liquidity(assets, final_exit=final_exit)
        self._ledger.spend_allowance(owner, spender, shares)
        self._ledger.burn(owner, shares)
        await self._tokens.transfer(self._asset, self._account, receiver, assets)
        tx.emit(
            WithdrawEvent(
                timestamp=self._clock.now(),
                source=self.state_key,
                operation_id=tx.operation_id,
                sender=spender,
                receiver=receiver,
                owner=owner,
                assets=assets,
                shares=shares,
            )
        )
        logger.info(
            "Withdraw {} shares of {} -> {} {} to {}", shares, owner, assets, self._asset, receiver
        )
        return assets

    async def _ensure_liquidity(self, assets: int, *, final_exit: bool = False) -> int:
        """vault idle이 assets 미만이면 부족분을 전략에서 회수.

        total_assets는 변동성 자산을 오라클 가격으로 평가하므로 전량 청산 시 DEX 수수료만큼
        실현액이 모자랍니다. 마지막 보유자의 전량 상환(final_exit)은 전략이 더 내줄 것이
        없을 때 실현된 idle 전액으로 정산합니다.

        Returns:
            지급 가능한 자산 (final_exit가 아니면 항상 assets)
        """
        idle = await self.idle_balance()
        if idle >= assets:
            return assets
        if self._strategy is not None:
            try:
                await self._strategy.withdraw(assets - idle, self._orchestrator_ctx)
            except VaultError as e:
                add_context_note(e, f"while sourcing {assets - idle} {self._asset} for redemption")
                raise
            idle = await self.idle_balance()
        if idle < assets and final_exit and idle > 0:
            logger.warning("Final redemption settles realized {} of quoted {}", idle, assets)
            return idle
        if idle < assets:
            msg = "Insufficient liquidity to honor withdrawal"
            raise InsufficientLiquidityError(msg, context={"required": assets, "available": idle})
        return assets

    async def _deploy_idle(self) -> int:
        """idle - buffer를 전략에 투입. buffer = max(idle * buffer_bps, min_deposit)."""
        strategy = self._strategy
        if strategy is None:
            return 0
        if strategy.circuit_breaker_tripped:
            logger.warning("Circuit breaker tripped; keeping capital idle in vault")
            return 0
        idle = await self.idle_balance()
        buffer = max(
            mul_div(idle, self._liquidity_buffer_bps, BASIS_POINTS), self._limits.min_deposit
        )
        amount = idle - buffer
        if amount <= 0:
            return 0
        await strategy.deploy(amount, self._orchestrator_ctx)
        return amount

    def _require_strategy(self) -> StrategyPort:
        if self._strategy is None:
            msg = "No strategy configured"
            raise StrategyNotSetError(msg)
        return self._strategy

    def _attach_strategy(self, strategy: StrategyPort) -> None:
        self._strategy = strategy
        self._known_strategies[strategy.strategy_id] = strategy

    def _set_pause(self, tx: Transaction, minting: bool, redeeming: bool, caller: str) -> None:
        self._minting_paused = minting
        self._redeeming_paused = redeeming
        tx.emit(
            PauseUpdatedEvent(
                timestamp=self._clock.now(),
                source=self.state_key,
                operation_id=tx.operation_id,
                minting_paused=minting,
                redeeming_paused=redeeming,
                updated_by=caller,
            )
        )
        logger.warning("Pause updated by {}: minting={}, redeeming={}", caller, minting, redeeming)

    def _emit_transfer(self, tx: Transaction, sender: str, recipient: str, shares: int) -> None:
        tx.emit(
            ShareTransferEvent(
                timestamp=self._clock.now(),
                source=self.state_key,
                operation_id=tx.operation_id,
                sender=sender,
                recipient=recipient,
                shares=shares,
            )
        )

    def _emit_parameters(
        self,
        tx: Transaction,
        ctx: CallContext,
        section: str,
        values: dict[str, Any],
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
        logger.info("Vault {} updated by {}: {}", section, ctx.caller, values)
