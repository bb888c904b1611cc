"""Shared fixtures for tests.

이 모듈은 테스트에서 공통으로 사용되는 protocol world 픽스처를 제공합니다.
가격: WBTC $97,000 / USDC $1 / vSTRC $100 (목표가와 동일).

Rules Applied:
    - #17 Testing Standards: Pytest fixtures
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeAlias

import pytest

from vstrc.config.config_loader import ProtocolConfig
from vstrc.core.access import CallContext
from vstrc.simulation.world import ProtocolWorld, build_world

# ---------------------------------------------------------------------------
# 디렉토리 경로 → pytest 마커 자동 매핑
# ---------------------------------------------------------------------------
_DIR_MARKER_MAP: dict[str, str] = {
    "/simulation/": "integration",
    "/persistence/": "integration",
    "/cli/": "integration",
    "/vault/": "integration",
    "/core/": "unit",
    "/engine/": "unit",
    "/oracle/": "unit",
    "/venues/": "unit",
    "/strategy/": "unit",
    "/config/": "unit",
}


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """디렉토리 경로 기반 자동 마커 부여."""
    for item in items:
        fspath = str(item.fspath)
        for dir_pattern, marker_name in _DIR_MARKER_MAP.items():
            if dir_pattern in fspath:
                item.add_marker(getattr(pytest.mark, marker_name))
                break


START = 1_700_000_000
USDC = 10**6
WBTC_PRICE = 97_000 * 10**8
SHARE_PRICE = 100 * 10**6

DepositFn: TypeAlias = Callable[[str, int], Awaitable[int]]


def seed_world(world: ProtocolWorld) -> ProtocolWorld:
    """기본 가격 + DEX 유동성 설정."""
    world.feeds.set_price("WBTC", WBTC_PRICE, decimals=8)
    world.feeds.set_price("USDC", 10**8, decimals=8)
    world.feeds.set_price("vSTRC", SHARE_PRICE, decimals=6)
    world.tokens.mint("USDC", world.dex.account_id, 10**9 * USDC)
    world.tokens.mint("WBTC", world.dex.account_id, 10**6 * 10**8)
    return world


@pytest.fixture
def protocol_config() -> ProtocolConfig:
    return ProtocolConfig()


@pytest.fixture
def world(protocol_config: ProtocolConfig) -> ProtocolWorld:
    """가격/유동성이 준비된 protocol world (DEX 수수료 30 bps)."""
    return seed_world(build_world(protocol_config, start_timestamp=START))


@pytest.fixture
def deposit(world: ProtocolWorld) -> DepositFn:
    """계정에 자금 공급 후 예치하는 헬퍼."""

    async def _deposit(account: str, amount: int) -> int:
        world.fund(account, amount)
        return await world.vault.deposit(amount, account, CallContext.user(account))

    return _deposit


@pytest.fixture
def orchestrator(world: ProtocolWorld) -> CallContext:
    """전략을 직접 호출하는 orchestrator 컨텍스트."""
    return CallContext.orchestrator("orchestrator")
