"""ReserveStrategy 테스트.

배분(80/20), 조달 순서, rebalance, harvest, 서킷브레이커, slippage/잔고 변화 검증을
orchestrator 컨텍스트로 직접 호출해 확인합니다.

가격: WBTC $97,000, DEX 수수료 30 bps, 허용 slippage 100 bps.
"""

import pytest

from vstrc.core.access import CallContext
from vstrc.core.audit import AuditEventType, InMemoryAuditLog
from vstrc.core.exceptions import (
    CircuitBreakerActiveError,
    InsufficientReserveError,
    InvalidParameterError,
    SlippageExceededError,
    StalePriceError,
    UnauthorizedError,
    ZeroAmountError,
)
from vstrc.models.strategy import AllocationSplit
from vstrc.simulation.world import ProtocolWorld
from vstrc.strategy.ports import StrategyPort

USDC = 10**6
DEPLOYED = 1_000 * USDC
# 800 USDC → 824_742 sats 기대, 수수료 30 bps 차감 후 822_267 sats 체결
VOLATILE_ACQUIRED = 822_267


@pytest.fixture
async def deployed(world: ProtocolWorld, orchestrator: CallContext) -> ProtocolWorld:
    world.fund(orchestrator.caller, DEPLOYED)
    await world.strategy.deploy(DEPLOYED, orchestrator)
    return world


class TestDeploy:
    async def test_splits_by_allocation(self, deployed: ProtocolWorld) -> None:
        strategy = deployed.strategy
        assert strategy.volatile_asset_held == VOLATILE_ACQUIRED
        assert deployed.tokens.balance("WBTC", "strategy") == VOLATILE_ACQUIRED
        assert strategy.cash_deployed == 200 * USDC
        assert await strategy.cash_reserve_value() == 200 * USDC
        assert await strategy.volatile_reserve_value() == VOLATILE_ACQUIRED * 970
        assert await strategy.total_value() == 200 * USDC + VOLATILE_ACQUIRED * 970

    async def test_emits_event(self, deployed: ProtocolWorld) -> None:
        assert isinstance(deployed.audit_log, InMemoryAuditLog)
        events = deployed.audit_log.of_type(AuditEventType.CAPITAL_DEPLOYED)
        assert len(events) == 1
        assert events[0].volatile_acquired == VOLATILE_ACQUIRED  # type: ignore[union-attr]

    async def test_requires_orchestrator(self, world: ProtocolWorld) -> None:
        world.fund("alice", DEPLOYED)
        with pytest.raises(UnauthorizedError):
            await world.strategy.deploy(DEPLOYED, CallContext.user("alice"))
        with pytest.raises(UnauthorizedError):
            await world.strategy.deploy(DEPLOYED, world.admin)

    async def test_zero_amount(self, world: ProtocolWorld, orchestrator: CallContext) -> None:
        with pytest.raises(ZeroAmountError):
            await world.strategy.deploy(0, orchestrator)

    async def test_slippage_rolls_back(
        self, world: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        world.dex.execution_discount_bps = 100
        world.fund(orchestrator.caller, DEPLOYED)
        with pytest.raises(SlippageExceededError):
            await world.strategy.deploy(DEPLOYED, orchestrator)
        assert world.tokens.balance("USDC", orchestrator.caller) == DEPLOYED
        assert world.strategy.volatile_asset_held == 0
        assert world.strategy.cash_deployed == 0

    async def test_holdings_follow_balance_delta(
        self, world: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        world.dex.return_skew_bps = 500
        world.fund(orchestrator.caller, DEPLOYED)
        await world.strategy.deploy(DEPLOYED, orchestrator)
        assert world.strategy.volatile_asset_held == VOLATILE_ACQUIRED
        assert world.tokens.balance("WBTC", "strategy") == VOLATILE_ACQUIRED

    async def test_stale_volatile_price_aborts(
        self, world: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        world.advance(7200, refresh_feeds=False)
        world.fund(orchestrator.caller, DEPLOYED)
        with pytest.raises(StalePriceError):
            await world.strategy.deploy(DEPLOYED, orchestrator)
        assert world.tokens.balance("USDC", orchestrator.caller) == DEPLOYED

    def test_satisfies_port(self, world: ProtocolWorld) -> None:
        assert isinstance(world.strategy, StrategyPort)


class TestWithdraw:
    async def test_cash_reserve_first(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        strategy = deployed.strategy
        delivered = await strategy.withdraw(100 * USDC, orchestrator)
        assert delivered == 100 * USDC
        assert strategy.volatile_asset_held == VOLATILE_ACQUIRED
        assert strategy.cash_deployed == 100 * USDC
        assert deployed.tokens.balance("USDC", orchestrator.caller) == 100 * USDC

    async def test_then_sells_volatile(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        strategy = deployed.strategy
        delivered = await strategy.withdraw(300 * USDC, orchestrator)
        assert delivered == 300 * USDC
        assert strategy.cash_deployed == 0
        assert 0 < strategy.volatile_asset_held < VOLATILE_ACQUIRED
        assert strategy.volatile_asset_held == deployed.tokens.balance("WBTC", "strategy")
        assert await strategy.idle_balance() == 0

    async def test_partial_when_assets_short(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        strategy = deployed.strategy
        delivered = await strategy.withdraw(2_000 * USDC, orchestrator)
        assert 990 * USDC < delivered < DEPLOYED
        assert strategy.volatile_asset_held == 0
        assert await strategy.total_value() == 0

    async def test_principal_reduced_before_interest(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        deployed.lending.accrue_interest("USDC", "strategy", 10 * USDC)
        await deployed.strategy.withdraw(150 * USDC, orchestrator)
        assert deployed.strategy.cash_deployed == 50 * USDC
        assert await deployed.strategy.cash_reserve_value() == 60 * USDC


class TestRebalance:
    async def test_sell_volatile_into_cash(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        strategy = deployed.strategy
        await strategy.rebalance(True, 100 * USDC, orchestrator)
        assert strategy.cash_deployed == 300 * USDC
        assert strategy.volatile_asset_held < VOLATILE_ACQUIRED
        assert await strategy.idle_balance() == 0

    async def test_buy_volatile_from_cash(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        strategy = deployed.strategy
        await strategy.rebalance(False, 100 * USDC, orchestrator)
        assert strategy.cash_deployed == 100 * USDC
        assert strategy.volatile_asset_held > VOLATILE_ACQUIRED

    async def test_buy_beyond_cash_rejected(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        strategy = deployed.strategy
        with pytest.raises(InsufficientReserveError):
            await strategy.rebalance(False, 300 * USDC, orchestrator)
        assert strategy.cash_deployed == 200 * USDC
        assert strategy.volatile_asset_held == VOLATILE_ACQUIRED

    async def test_sell_more_than_held_sells_all(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        await deployed.strategy.rebalance(True, 5_000 * USDC, orchestrator)
        assert deployed.strategy.volatile_asset_held == 0
        assert deployed.strategy.cash_deployed > 990 * USDC


class TestHarvest:
    async def test_harvests_only_interest(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        deployed.lending.accrue_interest("USDC", "strategy", 5 * USDC)
        harvested = await deployed.strategy.harvest_yield(orchestrator)
        assert harvested == 5 * USDC
        assert deployed.strategy.cash_deployed == 200 * USDC
        assert await deployed.strategy.cash_reserve_value() == 200 * USDC
        assert deployed.tokens.balance("USDC", orchestrator.caller) == 5 * USDC

    async def test_nothing_to_harvest(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        assert await deployed.strategy.harvest_yield(orchestrator) == 0
        assert isinstance(deployed.audit_log, InMemoryAuditLog)
        assert deployed.audit_log.of_type(AuditEventType.YIELD_HARVESTED) == []


class TestCircuitBreaker:
    async def _crash(self, world: ProtocolWorld) -> None:
        world.advance(600)
        world.feeds.set_price("WBTC", 72_750 * 10**8)  # -25%

    async def test_trip_blocks_deploy_until_reset(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        strategy = deployed.strategy
        await self._crash(deployed)
        deployed.fund(orchestrator.caller, DEPLOYED)

        with pytest.raises(CircuitBreakerActiveError):
            await strategy.deploy(DEPLOYED, orchestrator)
        assert strategy.circuit_breaker_tripped
        assert deployed.tokens.balance("USDC", orchestrator.caller) == DEPLOYED

        with pytest.raises(CircuitBreakerActiveError):
            await strategy.deploy(DEPLOYED, orchestrator)
        with pytest.raises(CircuitBreakerActiveError):
            await strategy.withdraw(10 * USDC, orchestrator)

        await strategy.reset_circuit_breaker(deployed.admin)
        assert not strategy.circuit_breaker_tripped
        assert strategy.circuit_breaker.checkpoint_price == 72_750 * 10**8
        await strategy.deploy(DEPLOYED, orchestrator)

    async def test_trip_event_recorded_despite_rollback(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        await self._crash(deployed)
        with pytest.raises(CircuitBreakerActiveError):
            await deployed.strategy.withdraw(10 * USDC, orchestrator)
        assert isinstance(deployed.audit_log, InMemoryAuditLog)
        tripped = deployed.audit_log.of_type(AuditEventType.CIRCUIT_BREAKER_TRIPPED)
        assert len(tripped) == 1
        assert tripped[0].drop_bps == 2500  # type: ignore[union-attr]
        assert deployed.audit_log.of_type(AuditEventType.CAPITAL_WITHDRAWN) == []

    async def test_exact_threshold_does_not_trip(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        deployed.advance(600)
        deployed.feeds.set_price("WBTC", 77_600 * 10**8)  # -20%
        await deployed.strategy.withdraw(10 * USDC, orchestrator)
        assert not deployed.strategy.circuit_breaker_tripped

    async def test_reset_requires_admin(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        with pytest.raises(UnauthorizedError):
            await deployed.strategy.reset_circuit_breaker(orchestrator)

    async def test_withdraw_all_bypasses_breaker(
        self, deployed: ProtocolWorld, orchestrator: CallContext
    ) -> None:
        strategy = deployed.strategy
        await self._crash(deployed)
        with pytest.raises(CircuitBreakerActiveError):
            await strategy.withdraw(10 * USDC, orchestrator)

        delivered = await strategy.withdraw_all(deployed.admin)
        assert delivered > 700 * USDC
        assert deployed.tokens.balance("USDC", "admin") == delivered
        assert await strategy.total_value() == 0
        assert strategy.cash_deployed == 0


class TestAdmin:
    async def test_set_allocation(self, world: ProtocolWorld) -> None:
        allocation = AllocationSplit(volatile_bps=6000, cash_bps=4000)
        await world.strategy.set_allocation(allocation, world.admin)
        assert world.strategy.allocation == allocation

    def test_allocation_must_sum(self) -> None:
        with pytest.raises(ValueError, match="sum"):
            AllocationSplit(volatile_bps=7000, cash_bps=2000)

    async def test_set_max_slippage_bounds(self, world: ProtocolWorld) -> None:
        await world.strategy.set_max_slippage(250, world.admin)
        assert world.strategy.max_slippage_bps == 250
        with pytest.raises(InvalidParameterError):
            await world.strategy.set_max_slippage(10_000, world.admin)

    async def test_set_breaker_params(self, world: ProtocolWorld) -> None:
        await world.strategy.set_circuit_breaker_params(1500, 1800, world.admin)
        config = world.strategy.circuit_breaker.config
        assert (config.threshold_bps, config.window_seconds) == (1500, 1800)
        with pytest.raises(InvalidParameterError):
            await world.strategy.set_circuit_breaker_params(0, 1800, world.admin)

    async def test_admin_only(self, world: ProtocolWorld) -> None:
        with pytest.raises(UnauthorizedError):
            await world.strategy.set_max_slippage(50, world.keeper)

    async def test_state_round_trip(self, deployed: ProtocolWorld) -> None:
        state = deployed.strategy.to_dict()
        assert state["circuit_breaker"]["checkpoint_price"] == 97_000 * 10**8
        deployed.strategy.restore_from_dict(
            {**state, "volatile_asset_held": 1, "cash_deployed": 2}
        )
        assert deployed.strategy.volatile_asset_held == 1
        deployed.strategy.restore_from_dict(state)
        assert deployed.strategy.volatile_asset_held == VOLATILE_ACQUIRED
