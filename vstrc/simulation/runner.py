"""Scenario runner.

Scenario의 초기 가격/유동성/예치로 world를 준비하고, 에폭마다 시간 진행 →
가격 갱신 → lending 이자 적립 → 사용자 행동 → keeper tick을 실행한 뒤
EpochReport를 pandas DataFrame으로 모읍니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pandas as pd
from loguru import logger

from vstrc.core.access import CallContext
from vstrc.core.exceptions import CircuitBreakerActiveError, VaultError
from vstrc.engine.fixed_point import apply_bps
from vstrc.simulation.world import ProtocolWorld, build_world

if TYPE_CHECKING:
    from vstrc.core.audit import AuditLog
    from vstrc.models.vault import EpochReport
    from vstrc.persistence.state_store import StateStore
    from vstrc.simulation.scenario import EpochStep, Scenario

_DEFAULT_LIQUIDITY_UNITS = 10**9


class SimulationRunner:
    """Scenario 실행기.

    Args:
        scenario: 실행할 시나리오
        store: 상태/리포트 저장소 (선택)
        audit_log: 감사 로그 (기본: InMemoryAuditLog)

    Example:
        >>> runner = SimulationRunner(load_scenario("config/scenario-example.yaml"))
        >>> df = await runner.run()
        >>> df[["epoch", "new_rate", "dividend"]]
    """

    def __init__(
        self,
        scenario: Scenario,
        *,
        store: StateStore | None = None,
        audit_log: AuditLog | None = None,
    ) -> None:
        self._scenario = scenario
        self._store = store
        self._world = build_world(
            scenario.protocol,
            start_timestamp=scenario.start_timestamp,
            audit_log=audit_log,
            store=store,
            dex_fee_bps=scenario.dex_fee_bps,
        )

    @property
    def world(self) -> ProtocolWorld:
        return self._world

    async def run(self) -> pd.DataFrame:
        """시나리오 전체 실행.

        Returns:
            에폭별 리포트 DataFrame (실패한 tick은 error 컬럼에 기록)
        """
        world = self._world
        self._seed()
        for deposit in self._scenario.deposits:
            await self._deposit(deposit.account, deposit.amount)

        rows: list[dict[str, Any]] = []
        duration = world.vault.epoch_duration
        logger.info(
            "Running scenario '{}' ({} epochs)", self._scenario.name, len(self._scenario.epochs)
        )
        for index, step in enumerate(self._scenario.epochs, 1):
            world.advance(world.vault.epoch_duration)
            self._apply_prices(step)
            world.lending.accrue_rate(
                world.stable_asset, self._scenario.lending_apy_bps, duration
            )
            await self._apply_user_actions(step)
            rows.append(await self._tick(index))

        frame = pd.DataFrame(rows)
        logger.info("Scenario '{}' finished: {} rows", self._scenario.name, len(frame))
        return frame

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _seed(self) -> None:
        world = self._world
        for asset_id, feed in self._scenario.prices.items():
            world.feeds.set_price(asset_id, feed.price, decimals=feed.decimals)

        liquidity = dict(self._scenario.dex_liquidity)
        for asset in (world.stable_asset, world.volatile_asset):
            if asset not in liquidity:
                liquidity[asset] = _DEFAULT_LIQUIDITY_UNITS * 10 ** world.tokens.decimals(asset)
        for asset, amount in liquidity.items():
            world.tokens.mint(asset, world.dex.account_id, amount)

    def _apply_prices(self, step: EpochStep) -> None:
        world = self._world
        if step.share_price is not None:
            world.feeds.set_price(world.share_asset, step.share_price)
        if step.volatile_price is not None:
            world.feeds.set_price(world.volatile_asset, step.volatile_price)

    async def _apply_user_actions(self, step: EpochStep) -> None:
        for deposit in step.deposits:
            await self._deposit(deposit.account, deposit.amount)
        vault = self._world.vault
        for redemption in step.redemptions:
            shares = apply_bps(vault.balance_of(redemption.account), redemption.fraction_bps)
            if shares == 0:
                continue
            ctx = CallContext.user(redemption.account)
            try:
                await vault.redeem(shares, redemption.account, redemption.account, ctx)
            except VaultError as e:
                logger.warning("Redemption by {} rejected: {}", redemption.account, e)

    async def _deposit(self, account: str, amount: int) -> None:
        world = self._world
        world.fund(account, amount)
        try:
            await world.vault.deposit(amount, account, CallContext.user(account))
        except VaultError as e:
            logger.warning("Deposit by {} rejected: {}", account, e)

    async def _tick(self, index: int) -> dict[str, Any]:
        world = self._world
        try:
            report = await world.vault.rebalance_yield(world.keeper)
        except CircuitBreakerActiveError as e:
            if not self._scenario.reset_breaker_on_trip:
                logger.warning("Epoch {} skipped: {}", index, e)
                return await self._row(index, None, error=type(e).__name__)
            await world.strategy.reset_circuit_breaker(world.admin)
            report = await world.vault.rebalance_yield(world.keeper)
        except VaultError as e:
            logger.warning("Epoch {} failed: {}", index, e)
            return await self._row(index, None, error=type(e).__name__)

        if self._store is not None:
            await self._store.save_epoch_report(report)
        return await self._row(index, report)

    async def _row(
        self, index: int, report: EpochReport | None, *, error: str | None = None
    ) -> dict[str, Any]:
        world = self._world
        row: dict[str, Any] = {"step": index, "timestamp": world.clock.now()}
        if report is not None:
            row.update(report.model_dump(mode="json"))
        row.update(
            {
                "total_supply": world.vault.total_supply(),
                "vault_idle": await world.vault.idle_balance(),
                "cash_reserve": await world.strategy.cash_reserve_value(),
                "volatile_held": world.strategy.volatile_asset_held,
                "current_rate": world.vault.current_rate,
                "breaker_tripped": world.strategy.circuit_breaker_tripped,
                "error": error,
            }
        )
        return row
