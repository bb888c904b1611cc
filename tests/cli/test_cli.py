"""Tests for the vstrc Typer CLI (simulate / state sub-commands)."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest
import yaml
from typer.testing import CliRunner

from vstrc.cli import create_app
from vstrc.cli.simulate import _fmt_usd, _to_units
from vstrc.config.settings import clear_settings_cache
from vstrc.core.audit import JsonlAuditLog

runner = CliRunner()

USDC = 10**6


@pytest.fixture(autouse=True)
def _isolated_logs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VSTRC_LOG_DIR", str(tmp_path / "logs"))
    clear_settings_cache()


@pytest.fixture()
def scenario_yaml(tmp_path: Path) -> Path:
    path = tmp_path / "scenario.yaml"
    data = {
        "name": "cli",
        "deposits": [{"account": "alice", "amount": 20_000 * USDC}],
        "epochs": [{"share_price": 90 * USDC}, {"share_price": 110 * USDC}],
    }
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


class TestHelpers:
    def test_to_units(self) -> None:
        assert _to_units(95.5) == 95_500_000

    def test_fmt_usd(self) -> None:
        assert _fmt_usd(1_234_560_000) == "$1,234.56"
        assert _fmt_usd(None) == "-"
        assert _fmt_usd(float("nan")) == "-"


class TestRateCommand:
    def test_below_peg(self) -> None:
        result = runner.invoke(create_app(), ["simulate", "rate", "--market", "95"])
        assert result.exit_code == 0
        assert "900 bps" in result.output
        assert "below" in result.output

    def test_with_assets(self) -> None:
        result = runner.invoke(
            create_app(), ["simulate", "rate", "-m", "100", "--assets", "1000000"]
        )
        assert result.exit_code == 0
        assert "$80,000.00" in result.output

    def test_invalid_bounds(self) -> None:
        result = runner.invoke(
            create_app(),
            ["simulate", "rate", "-m", "95", "--min-rate", "3000", "--max-rate", "1000"],
        )
        assert result.exit_code == 1


class TestRunCommand:
    def test_run_with_outputs(self, scenario_yaml: Path, tmp_path: Path) -> None:
        db = tmp_path / "state.db"
        csv = tmp_path / "out" / "reports.csv"
        audit = tmp_path / "audit.jsonl"
        result = runner.invoke(
            create_app(),
            [
                "simulate",
                "run",
                str(scenario_yaml),
                "--db",
                str(db),
                "--csv",
                str(csv),
                "--audit",
                str(audit),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Summary" in result.output

        frame = pd.read_csv(csv)
        assert frame["new_rate"].tolist() == [1000, 600]
        assert db.exists()
        assert JsonlAuditLog(audit).read_all()

    def test_missing_scenario(self, tmp_path: Path) -> None:
        result = runner.invoke(create_app(), ["simulate", "run", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_scenario(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"dex_fee_bps": -1}), encoding="utf-8")
        result = runner.invoke(create_app(), ["simulate", "run", str(path)])
        assert result.exit_code == 1
        assert "Invalid scenario" in result.output


class TestStateCommands:
    def test_show_and_reports(self, scenario_yaml: Path, tmp_path: Path) -> None:
        db = tmp_path / "state.db"
        app = create_app()
        ran = runner.invoke(app, ["simulate", "run", str(scenario_yaml), "--db", str(db)])
        assert ran.exit_code == 0, ran.output

        shown = runner.invoke(app, ["state", "show", str(db)])
        assert shown.exit_code == 0, shown.output
        assert "vault:vault" in shown.output
        assert "strategy:strategy" in shown.output

        listed = runner.invoke(app, ["state", "reports", str(db), "--last", "1"])
        assert listed.exit_code == 0, listed.output
        assert "600" in listed.output

    def test_missing_db(self, tmp_path: Path) -> None:
        result = runner.invoke(create_app(), ["state", "show", str(tmp_path / "none.db")])
        assert result.exit_code == 1
        assert "not found" in result.output
