"""SimulationRunner / Scenario 테스트."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest
import yaml

from vstrc.persistence.database import Database
from vstrc.persistence.state_store import StateStore
from vstrc.simulation.runner import SimulationRunner
from vstrc.simulation.scenario import Scenario, load_scenario

USDC = 10**6
WBTC_PRICE = 97_000 * 10**8


def _scenario(**overrides: object) -> Scenario:
    data: dict[str, object] = {
        "name": "test",
        "deposits": [{"account": "alice", "amount": 50_000 * USDC}],
        "epochs": [
            {"share_price": 90 * USDC},
            {"share_price": 110 * USDC},
            {"share_price": 100 * USDC},
        ],
    }
    data.update(overrides)
    return Scenario.model_validate(data)


def _crash_scenario(*, reset: bool) -> Scenario:
    return _scenario(
        protocol={"strategy": {"circuit_breaker": {"window_seconds": 30 * 86_400}}},
        epochs=[{"volatile_price": WBTC_PRICE // 2}],
        reset_breaker_on_trip=reset,
    )


class TestSimulationRunner:
    async def test_peg_path_rates(self) -> None:
        frame = await SimulationRunner(_scenario()).run()

        assert isinstance(frame, pd.DataFrame)
        assert len(frame) == 3
        assert frame["new_rate"].tolist() == [1000, 600, 800]
        assert frame["epoch"].tolist() == [1, 2, 3]
        assert frame["peg"].tolist() == ["below", "above", "at"]
        assert frame["error"].isna().all()

    async def test_lending_interest_is_harvested(self) -> None:
        frame = await SimulationRunner(_scenario()).run()
        assert (frame["harvested"] > 0).all()

    async def test_redemption_step(self) -> None:
        scenario = _scenario(
            epochs=[{"redemptions": [{"account": "alice", "fraction_bps": 5_000}]}]
        )
        runner = SimulationRunner(scenario)
        frame = await runner.run()
        assert frame["total_supply"].iloc[0] == 25_000 * USDC * 10**3
        assert runner.world.vault.balance_of("alice") == 25_000 * USDC * 10**3

    async def test_breaker_trip_recorded(self) -> None:
        runner = SimulationRunner(_crash_scenario(reset=False))
        frame = await runner.run()
        assert frame["error"].tolist() == ["CircuitBreakerActiveError"]
        assert bool(frame["breaker_tripped"].iloc[0])
        assert runner.world.vault.epoch_count == 0

    async def test_breaker_reset_option(self) -> None:
        runner = SimulationRunner(_crash_scenario(reset=True))
        frame = await runner.run()
        assert frame["error"].isna().all()
        assert not bool(frame["breaker_tripped"].iloc[0])
        assert runner.world.vault.epoch_count == 1

    async def test_reports_persisted(self) -> None:
        async with Database(":memory:") as database:
            store = StateStore(database)
            await SimulationRunner(_scenario(), store=store).run()
            reports = await store.load_epoch_reports()
            assert [r["new_rate"] for r in reports] == [1000, 600, 800]
            assert (await store.load_all()).keys() >= {"vault:vault", "strategy:strategy"}


class TestLoadScenario:
    def test_load_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "scenario.yaml"
        path.write_text(
            yaml.dump(
                {
                    "name": "yaml",
                    "lending_apy_bps": 300,
                    "epochs": [{"share_price": 95_000_000}],
                }
            ),
            encoding="utf-8",
        )
        scenario = load_scenario(path)
        assert scenario.name == "yaml"
        assert scenario.lending_apy_bps == 300
        assert scenario.epochs[0].share_price == 95 * USDC
        assert scenario.prices["WBTC"].decimals == 8

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_scenario(tmp_path / "nope.yaml")

    def test_example_scenario_parses(self) -> None:
        path = Path(__file__).parents[2] / "config" / "scenario-example.yaml"
        scenario = load_scenario(path)
        assert scenario.epochs
