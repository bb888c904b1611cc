"""시뮬레이션 venue 테스트 (토큰 원장, DEX, lending)."""

import pytest

from vstrc.core.clock import ManualClock
from vstrc.core.exceptions import (
    DeadlineExpiredError,
    SlippageExceededError,
    VenueError,
    ZeroAmountError,
)
from vstrc.oracle.feeds import SimulatedPriceOracle
from vstrc.venues.ports import DexPort, LendingPort, TokenPort
from vstrc.venues.simulated import SimulatedDex, SimulatedLendingPool, SimulatedTokenLedger

START = 1_700_000_000


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture
def tokens() -> SimulatedTokenLedger:
    ledger = SimulatedTokenLedger({"USDC": 6, "WBTC": 8})
    ledger.mint("USDC", "venue:dex", 10**15)
    ledger.mint("WBTC", "venue:dex", 10**12)
    return ledger


@pytest.fixture
def dex(tokens: SimulatedTokenLedger, clock: ManualClock) -> SimulatedDex:
    feeds = SimulatedPriceOracle(clock)
    feeds.set_price("USDC", 10**8, decimals=8)
    feeds.set_price("WBTC", 100_000 * 10**8, decimals=8)
    return SimulatedDex(tokens, feeds, clock, fee_bps=0)


class TestTokenLedger:
    async def test_transfer(self, tokens: SimulatedTokenLedger) -> None:
        tokens.mint("USDC", "alice", 100)
        await tokens.transfer("USDC", "alice", "bob", 40)
        assert tokens.balance("USDC", "alice") == 60
        assert await tokens.balance_of("USDC", "bob") == 40

    async def test_insufficient_balance(self, tokens: SimulatedTokenLedger) -> None:
        tokens.mint("USDC", "alice", 10)
        with pytest.raises(VenueError, match="Insufficient"):
            await tokens.transfer("USDC", "alice", "bob", 11)
        assert tokens.balance("USDC", "alice") == 10

    async def test_unknown_asset(self, tokens: SimulatedTokenLedger) -> None:
        with pytest.raises(VenueError, match="Unknown"):
            tokens.decimals("DOGE")

    async def test_hooks_fire_after_transfer(self, tokens: SimulatedTokenLedger) -> None:
        seen: list[tuple[str, str, str, int]] = []

        async def hook(asset: str, sender: str, recipient: str, amount: int) -> None:
            seen.append((asset, sender, recipient, amount))
            assert tokens.balance(asset, recipient) >= amount

        tokens.add_transfer_hook(hook)
        tokens.mint("USDC", "alice", 5)
        await tokens.transfer("USDC", "alice", "bob", 5)
        assert seen == [("USDC", "alice", "bob", 5)]

        tokens.clear_transfer_hooks()
        await tokens.transfer("USDC", "bob", "alice", 5)
        assert len(seen) == 1

    def test_snapshot_restore(self, tokens: SimulatedTokenLedger) -> None:
        tokens.mint("USDC", "alice", 5)
        snapshot = tokens.snapshot()
        tokens.mint("USDC", "alice", 100)
        tokens.restore(snapshot)
        assert tokens.balance("USDC", "alice") == 5

    def test_satisfies_port(self, tokens: SimulatedTokenLedger) -> None:
        assert isinstance(tokens, TokenPort)


class TestSimulatedDex:
    async def test_exact_input(self, dex: SimulatedDex, tokens: SimulatedTokenLedger) -> None:
        tokens.mint("USDC", "strategy", 1_000 * 10**6)
        out = await dex.swap_exact_input(
            "strategy", "USDC", "WBTC", 1_000 * 10**6, 0, START + 60
        )
        # $1,000 / $100,000 = 0.01 BTC
        assert out == 1_000_000
        assert tokens.balance("WBTC", "strategy") == 1_000_000
        assert tokens.balance("USDC", "strategy") == 0

    async def test_exact_output_rounds_input_up(
        self, dex: SimulatedDex, tokens: SimulatedTokenLedger
    ) -> None:
        tokens.mint("WBTC", "strategy", 10**8)
        paid = await dex.swap_exact_output("strategy", "WBTC", "USDC", 1, 10**8, START)
        assert paid == 1
        assert tokens.balance("USDC", "strategy") == 1

    async def test_fee_applied(self, dex: SimulatedDex, tokens: SimulatedTokenLedger) -> None:
        dex.fee_bps = 30
        tokens.mint("USDC", "strategy", 1_000 * 10**6)
        out = await dex.swap_exact_input("strategy", "USDC", "WBTC", 1_000 * 10**6, 0, START)
        assert out == 997_000

    async def test_deadline(self, dex: SimulatedDex, tokens: SimulatedTokenLedger) -> None:
        tokens.mint("USDC", "strategy", 10**6)
        with pytest.raises(DeadlineExpiredError):
            await dex.swap_exact_input("strategy", "USDC", "WBTC", 10**6, 0, START - 1)
        assert tokens.balance("USDC", "strategy") == 10**6

    async def test_min_out_enforced(
        self, dex: SimulatedDex, tokens: SimulatedTokenLedger
    ) -> None:
        tokens.mint("USDC", "strategy", 1_000 * 10**6)
        with pytest.raises(SlippageExceededError):
            await dex.swap_exact_input(
                "strategy", "USDC", "WBTC", 1_000 * 10**6, 1_000_001, START
            )
        assert tokens.balance("USDC", "strategy") == 1_000 * 10**6

    async def test_max_in_enforced(
        self, dex: SimulatedDex, tokens: SimulatedTokenLedger
    ) -> None:
        tokens.mint("WBTC", "strategy", 10**8)
        with pytest.raises(SlippageExceededError):
            await dex.swap_exact_output("strategy", "WBTC", "USDC", 1_000 * 10**6, 999_999, START)

    async def test_zero_amount(self, dex: SimulatedDex) -> None:
        with pytest.raises(ZeroAmountError):
            await dex.swap_exact_input("strategy", "USDC", "WBTC", 0, 0, START)

    async def test_return_skew_only_affects_report(
        self, dex: SimulatedDex, tokens: SimulatedTokenLedger
    ) -> None:
        dex.return_skew_bps = 1_000
        tokens.mint("USDC", "strategy", 1_000 * 10**6)
        reported = await dex.swap_exact_input("strategy", "USDC", "WBTC", 1_000 * 10**6, 0, START)
        assert reported == 1_100_000
        assert tokens.balance("WBTC", "strategy") == 1_000_000

    def test_satisfies_port(self, dex: SimulatedDex) -> None:
        assert isinstance(dex, DexPort)


class TestLendingPool:
    async def test_supply_withdraw_interest(self, tokens: SimulatedTokenLedger) -> None:
        pool = SimulatedLendingPool(tokens)
        tokens.mint("USDC", "strategy", 1_000)
        await pool.supply("USDC", 1_000, "strategy")
        assert await pool.balance_of("USDC", "strategy") == 1_000

        pool.accrue_interest("USDC", "strategy", 50)
        assert await pool.balance_of("USDC", "strategy") == 1_050

        withdrawn = await pool.withdraw("USDC", 5_000, "strategy", "vault")
        assert withdrawn == 1_050
        assert tokens.balance("USDC", "vault") == 1_050
        assert await pool.balance_of("USDC", "strategy") == 0

    async def test_accrue_rate(self, tokens: SimulatedTokenLedger) -> None:
        pool = SimulatedLendingPool(tokens)
        tokens.mint("USDC", "strategy", 10**9)
        await pool.supply("USDC", 10**9, "strategy")
        interest = pool.accrue_rate("USDC", 500, 365 * 24 * 3600)
        assert interest == 5 * 10**7
        assert await pool.balance_of("USDC", "strategy") == 105 * 10**7

    async def test_zero_supply_rejected(self, tokens: SimulatedTokenLedger) -> None:
        pool = SimulatedLendingPool(tokens)
        with pytest.raises(ZeroAmountError):
            await pool.supply("USDC", 0, "strategy")
        assert await pool.withdraw("USDC", 0, "strategy", "vault") == 0

    def test_satisfies_port(self, tokens: SimulatedTokenLedger) -> None:
        assert isinstance(SimulatedLendingPool(tokens), LendingPort)
