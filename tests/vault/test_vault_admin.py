"""Vault 관리자 작업 테스트 (전략 교체, 파라미터, pause, 비상 인출, 상태 복구)."""

import pytest

from vstrc.core.access import CallContext
from vstrc.core.audit import AuditEventType, InMemoryAuditLog
from vstrc.core.exceptions import (
    InvalidParameterError,
    MintingPausedError,
    StrategyNotEmptyError,
    StrategyNotSetError,
    UnauthorizedError,
    UnknownAssetError,
)
from vstrc.models.strategy import StrategyConfig
from vstrc.models.vault import DepositLimits
from vstrc.simulation.world import ProtocolWorld, build_world
from vstrc.strategy.reserve_strategy import ReserveStrategy

USDC = 10**6
AMOUNT = 10_000 * USDC
ALICE_SHARES = AMOUNT * 10**3

alice = CallContext.user("alice")


async def _seed_deposit(world: ProtocolWorld) -> None:
    world.fund("alice", AMOUNT)
    await world.vault.deposit(AMOUNT, "alice", alice)


def _second_strategy(world: ProtocolWorld) -> ReserveStrategy:
    return ReserveStrategy(
        StrategyConfig(account_id="strategy-v2"),
        world.tokens,
        world.dex,
        world.lending,
        world.oracle,
        world.clock,
        world.transactions,
    )


class TestAccessControl:
    @pytest.mark.parametrize(
        "call",
        [
            lambda v, ctx: v.set_pause(True, True, ctx),
            lambda v, ctx: v.set_target_price(1, ctx),
            lambda v, ctx: v.set_epoch_duration(1, ctx),
            lambda v, ctx: v.set_liquidity_buffer(0, ctx),
            lambda v, ctx: v.set_deposit_limits(DepositLimits(), ctx),
            lambda v, ctx: v.set_dividend_params(800, 2000, 100, 2500, ctx),
            lambda v, ctx: v.set_strategy(None, ctx),
            lambda v, ctx: v.emergency_withdraw(ctx),
        ],
    )
    async def test_admin_only(self, world: ProtocolWorld, call) -> None:
        with pytest.raises(UnauthorizedError):
            await call(world.vault, alice)
        with pytest.raises(UnauthorizedError):
            await call(world.vault, world.keeper)


class TestParameters:
    async def test_dividend_params_clamp_current_rate(self, world: ProtocolWorld) -> None:
        vault = world.vault
        await vault.set_dividend_params(1000, 3000, 900, 2500, world.admin)
        assert vault.rates.base_rate == 1000
        assert vault.current_rate == 900

        await vault.set_dividend_params(300, 3000, 100, 400, world.admin)
        assert vault.current_rate == 400

    async def test_invalid_dividend_params(self, world: ProtocolWorld) -> None:
        with pytest.raises(InvalidParameterError):
            await world.vault.set_dividend_params(800, 2000, 900, 500, world.admin)
        assert world.vault.rates.min_rate == 100

    async def test_scalar_parameters(self, world: ProtocolWorld) -> None:
        vault = world.vault
        await vault.set_target_price(50 * USDC, world.admin)
        await vault.set_epoch_duration(86_400, world.admin)
        await vault.set_liquidity_buffer(500, world.admin)
        assert vault.target_price == 50 * USDC
        assert vault.next_epoch_at == vault.last_epoch_timestamp + 86_400

        for bad in (
            vault.set_target_price(0, world.admin),
            vault.set_epoch_duration(0, world.admin),
            vault.set_liquidity_buffer(10_001, world.admin),
        ):
            with pytest.raises(InvalidParameterError):
                await bad

    async def test_parameter_events(self, world: ProtocolWorld) -> None:
        await world.vault.set_target_price(50 * USDC, world.admin)
        log = world.audit_log
        assert isinstance(log, InMemoryAuditLog)
        event = log.of_type(AuditEventType.PARAMETERS_UPDATED)[-1]
        assert event.section == "target_price"  # type: ignore[union-attr]
        assert event.updated_by == "admin"  # type: ignore[union-attr]

    async def test_share_price_oracle(self, world: ProtocolWorld) -> None:
        await world.vault.set_share_price_oracle("USDC", world.admin)
        assert world.vault.share_price_asset == "USDC"
        with pytest.raises(UnknownAssetError):
            await world.vault.set_share_price_oracle("DOGE", world.admin)


class TestStrategyManagement:
    async def test_cannot_replace_funded_strategy(self, world: ProtocolWorld) -> None:
        await _seed_deposit(world)
        with pytest.raises(StrategyNotEmptyError):
            await world.vault.set_strategy(_second_strategy(world), world.admin)
        assert world.vault.strategy is world.strategy

    async def test_without_strategy_capital_stays_idle(self, world: ProtocolWorld) -> None:
        await world.vault.set_strategy(None, world.admin)
        await _seed_deposit(world)
        assert await world.vault.idle_balance() == AMOUNT
        assert await world.vault.total_assets() == AMOUNT
        with pytest.raises(StrategyNotSetError):
            await world.vault.emergency_withdraw(world.admin)

    async def test_emergency_withdraw_then_migrate(self, world: ProtocolWorld) -> None:
        await _seed_deposit(world)
        vault = world.vault

        recovered = await vault.emergency_withdraw(world.admin)

        assert recovered > 0
        assert vault.minting_paused
        assert not vault.redeeming_paused
        assert await world.strategy.total_value() == 0
        assert await vault.idle_balance() == 100 * USDC + recovered
        with pytest.raises(MintingPausedError):
            await vault.deposit(AMOUNT, "alice", alice)

        replacement = _second_strategy(world)
        await vault.set_strategy(replacement, world.admin)
        await vault.set_pause(False, False, world.admin)
        world.fund("bob", AMOUNT)
        await vault.deposit(AMOUNT, "bob", CallContext.user("bob"))

        assert vault.strategy is replacement
        assert replacement.volatile_asset_held > 0
        log = world.audit_log
        assert isinstance(log, InMemoryAuditLog)
        event = log.of_type(AuditEventType.STRATEGY_UPDATED)[-1]
        assert event.strategy_id == "strategy-v2"  # type: ignore[union-attr]

    async def test_redeem_after_emergency(self, world: ProtocolWorld) -> None:
        await _seed_deposit(world)
        await world.vault.emergency_withdraw(world.admin)
        paid = await world.vault.redeem(ALICE_SHARES, "alice", "alice", alice)
        assert paid == await world.tokens.balance_of("USDC", "alice")
        assert AMOUNT * 99 // 100 <= paid <= AMOUNT
        assert await world.vault.idle_balance() == 0
        assert world.vault.total_supply() == 0


class TestStateRestore:
    async def test_restore_into_fresh_world(self, world: ProtocolWorld) -> None:
        await _seed_deposit(world)
        await world.vault.set_dividend_params(1000, 3000, 900, 2500, world.admin)

        fresh = build_world(world.config, start_timestamp=world.clock.now())
        fresh.vault.restore_from_dict(world.vault.to_dict())

        assert fresh.vault.balance_of("alice") == ALICE_SHARES
        assert fresh.vault.current_rate == 900
        assert fresh.vault.rates == world.vault.rates
        assert fresh.vault.strategy is fresh.strategy
