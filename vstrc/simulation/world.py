"""In-process protocol wiring.

ProtocolConfig 하나로 clock, 가격 feed, 시뮬레이션 venue, TransactionManager,
ReserveStrategy, Vault를 생성하고 연결합니다. 시뮬레이션 runner, CLI, 테스트가
같은 조립 경로를 사용합니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from vstrc.core.access import CallContext
from vstrc.core.audit import InMemoryAuditLog
from vstrc.core.clock import ManualClock
from vstrc.core.transaction import TransactionManager
from vstrc.models.types import STABLE_DECIMALS, VOLATILE_DECIMALS
from vstrc.oracle.feeds import SimulatedPriceOracle
from vstrc.oracle.reader import OracleReader
from vstrc.strategy.reserve_strategy import ReserveStrategy
from vstrc.vault.vault import Vault
from vstrc.venues.simulated import SimulatedDex, SimulatedLendingPool, SimulatedTokenLedger

if TYPE_CHECKING:
    from vstrc.config.config_loader import ProtocolConfig
    from vstrc.core.audit import AuditLog
    from vstrc.core.transaction import StatePersister

ADMIN_ACCOUNT = "admin"
KEEPER_ACCOUNT = "keeper"


@dataclass
class ProtocolWorld:
    """조립된 protocol 구성요소 묶음."""

    config: ProtocolConfig
    clock: ManualClock
    feeds: SimulatedPriceOracle
    oracle: OracleReader
    tokens: SimulatedTokenLedger
    dex: SimulatedDex
    lending: SimulatedLendingPool
    transactions: TransactionManager
    audit_log: AuditLog
    strategy: ReserveStrategy
    vault: Vault

    @property
    def admin(self) -> CallContext:
        return CallContext.admin(ADMIN_ACCOUNT)

    @property
    def keeper(self) -> CallContext:
        return CallContext.keeper(KEEPER_ACCOUNT)

    @property
    def stable_asset(self) -> str:
        return self.config.strategy.stable_asset

    @property
    def volatile_asset(self) -> str:
        return self.config.strategy.volatile_asset

    @property
    def share_asset(self) -> str:
        return self.config.vault.symbol

    def fund(self, account: str, amount: int, asset: str | None = None) -> None:
        """계정에 토큰 발행 (기본: stable)."""
        self.tokens.mint(asset or self.stable_asset, account, amount)

    def advance(self, seconds: int, *, refresh_feeds: bool = True) -> None:
        """시간 경과 + (기본) 모든 feed 갱신."""
        self.clock.advance(seconds)
        if refresh_feeds:
            self.feeds.touch_all()


def build_world(
    config: ProtocolConfig,
    *,
    start_timestamp: int = 1_700_000_000,
    audit_log: AuditLog | None = None,
    store: StatePersister | None = None,
    dex_fee_bps: int = 30,
) -> ProtocolWorld:
    """ProtocolConfig로 전체 구성요소 조립.

    가격 feed는 비어 있으므로 호출자가 set_price로 초기 가격을 설정해야 합니다.

    Args:
        config: 프로토콜 설정
        start_timestamp: ManualClock 시작 시각
        audit_log: 감사 로그 (기본: InMemoryAuditLog)
        store: participant 상태 저장소 (선택)
        dex_fee_bps: 시뮬레이션 DEX 수수료
    """
    clock = ManualClock(start_timestamp)
    log = audit_log if audit_log is not None else InMemoryAuditLog()
    transactions = TransactionManager(audit_log=log, store=store)

    feeds = SimulatedPriceOracle(clock)
    oracle = OracleReader(feeds, clock, config.oracle)

    strategy_cfg = config.strategy
    tokens = SimulatedTokenLedger(
        {
            strategy_cfg.stable_asset: STABLE_DECIMALS,
            strategy_cfg.volatile_asset: VOLATILE_DECIMALS,
        }
    )
    dex = SimulatedDex(tokens, feeds, clock, fee_bps=dex_fee_bps)
    lending = SimulatedLendingPool(tokens)
    transactions.register(tokens)
    transactions.register(lending)

    strategy = ReserveStrategy(strategy_cfg, tokens, dex, lending, oracle, clock, transactions)
    vault = Vault(config.vault, tokens, oracle, clock, transactions, strategy=strategy)

    return ProtocolWorld(
        config=config,
        clock=clock,
        feeds=feeds,
        oracle=oracle,
        tokens=tokens,
        dex=dex,
        lending=lending,
        transactions=transactions,
        audit_log=log,
        strategy=strategy,
        vault=vault,
    )
