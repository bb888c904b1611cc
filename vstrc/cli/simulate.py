"""Typer CLI for scenario simulation.

Commands:
    - run: YAML 시나리오 실행 → 에폭 리포트 테이블 (+ CSV, SQLite 상태)
    - rate: 단일 시장가에 대한 배당률 계산
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vstrc.config.settings import get_settings
from vstrc.core.audit import JsonlAuditLog
from vstrc.core.exceptions import VaultError
from vstrc.core.logger import setup_logger
from vstrc.engine.rate_controller import (
    epoch_dividend,
    peg_state,
    price_deviation_bps,
    projected_annual_dividend,
    variable_rate,
)
from vstrc.models.types import STABLE_DECIMALS
from vstrc.models.vault import DEFAULT_EPOCH_DURATION
from vstrc.persistence import Database, StateStore
from vstrc.simulation import SimulationRunner, load_scenario

if TYPE_CHECKING:
    import pandas as pd

    from vstrc.simulation import Scenario

app = typer.Typer(no_args_is_help=True)
console = Console()

_TABLE_COLUMNS: list[tuple[str, str]] = [
    ("step", "Step"),
    ("epoch", "Epoch"),
    ("peg", "Peg"),
    ("market_price", "Market"),
    ("new_rate", "Rate (bps)"),
    ("total_assets", "Total Assets"),
    ("dividend", "Dividend"),
    ("harvested", "Harvested"),
    ("liquidated", "Liquidated"),
    ("deployed", "Deployed"),
    ("error", "Error"),
]


def _to_units(dollars: float) -> int:
    return round(dollars * 10**STABLE_DECIMALS)


def _fmt_usd(value: object) -> str:
    if value is None or value != value:  # noqa: PLR0124  # NaN check
        return "-"
    return f"${int(value) / 10**STABLE_DECIMALS:,.2f}"


@app.command()
def run(
    scenario_path: Annotated[str, typer.Argument(help="Scenario YAML file path")],
    db: Annotated[
        str | None, typer.Option("--db", help="Persist protocol state to this SQLite file")
    ] = None,
    csv: Annotated[str | None, typer.Option("--csv", help="Write epoch reports to CSV")] = None,
    audit: Annotated[
        str | None, typer.Option("--audit", help="Append audit events to this JSONL file")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Enable verbose output")] = False,
) -> None:
    """Run a simulation scenario and print per-epoch reports."""
    settings = get_settings()
    setup_logger(log_dir=settings.log_dir, console_level="DEBUG" if verbose else "WARNING")

    try:
        scenario = load_scenario(scenario_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    except ValidationError as e:
        console.print(f"[red]Invalid scenario:[/red] {e}")
        raise typer.Exit(code=1) from None

    logger.info("Simulating scenario {} from {}", scenario.name, scenario_path)
    try:
        frame = asyncio.run(_run_scenario(scenario, db, audit))
    except VaultError as e:
        console.print(f"[red]Simulation aborted:[/red] {e}")
        raise typer.Exit(code=1) from None

    _display_reports(scenario.name, frame)

    if csv:
        csv_path = Path(csv)
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(csv_path, index=False)
        console.print(f"[green]Reports written to {csv_path}[/green]")
    if db:
        console.print(f"[green]State persisted to {db}[/green]")


@app.command()
def rate(
    market: Annotated[float, typer.Option("--market", "-m", help="Share market price (USD)")],
    target: Annotated[float, typer.Option("--target", "-t", help="Target price (USD)")] = 100.0,
    base_rate: Annotated[int, typer.Option("--base", help="Base rate (bps)")] = 800,
    sensitivity: Annotated[int, typer.Option("--sensitivity", help="Sensitivity (bps)")] = 2000,
    min_rate: Annotated[int, typer.Option("--min-rate", help="Rate floor (bps)")] = 100,
    max_rate: Annotated[int, typer.Option("--max-rate", help="Rate cap (bps)")] = 2500,
    assets: Annotated[
        float | None, typer.Option("--assets", help="Total assets (USD) for dividend projection")
    ] = None,
) -> None:
    """Compute the variable dividend rate for a market price."""
    target_units = _to_units(target)
    market_units = _to_units(market)
    try:
        new_rate = variable_rate(
            target_units, market_units, base_rate, sensitivity, min_rate, max_rate
        )
        deviation = price_deviation_bps(target_units, market_units)
    except VaultError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    table = Table(show_header=False, title="Variable Rate")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Target", f"${target:,.2f}")
    table.add_row("Market", f"${market:,.2f}")
    table.add_row("Peg", str(peg_state(target_units, market_units)))
    table.add_row("Deviation", f"{deviation} bps")
    table.add_row("Rate", f"[cyan]{new_rate} bps ({new_rate / 100:.2f}%)[/cyan]")
    if assets is not None:
        asset_units = _to_units(assets)
        annual = projected_annual_dividend(asset_units, new_rate)
        table.add_row("Annual Dividend", _fmt_usd(annual))
        table.add_row(
            "Epoch Dividend (7d)",
            _fmt_usd(epoch_dividend(asset_units, new_rate, DEFAULT_EPOCH_DURATION)),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _run_scenario(
    scenario: Scenario, db_path: str | None, audit_path: str | None
) -> pd.DataFrame:
    audit_log = JsonlAuditLog(audit_path) if audit_path else None
    if db_path is None:
        return await SimulationRunner(scenario, audit_log=audit_log).run()

    async with Database(db_path) as database:
        store = StateStore(database)
        runner = SimulationRunner(scenario, store=store, audit_log=audit_log)
        return await runner.run()


def _display_reports(name: str, frame: pd.DataFrame) -> None:
    if frame.empty:
        console.print("[yellow]Scenario has no epochs.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", title=f"Scenario: {name}")
    present = [(key, label) for key, label in _TABLE_COLUMNS if key in frame.columns]
    for _, label in present:
        table.add_column(label, justify="right")

    usd_columns = {
        "market_price",
        "total_assets",
        "dividend",
        "harvested",
        "liquidated",
        "deployed",
    }
    for record in frame.to_dict(orient="records"):
        cells: list[str] = []
        for key, _ in present:
            value = record.get(key)
            if key in usd_columns:
                cells.append(_fmt_usd(value))
            elif value is None or value != value:  # noqa: PLR0124
                cells.append("-")
            elif key == "error":
                cells.append(f"[red]{value}[/red]")
            elif isinstance(value, float) and value.is_integer():
                cells.append(str(int(value)))
            else:
                cells.append(str(value))
        table.add_row(*cells)
    console.print(table)

    last = frame.iloc[-1]
    summary = (
        f"Final rate: {last['current_rate']} bps | "
        f"Supply: {last['total_supply']} | "
        f"Breaker: {'TRIPPED' if last['breaker_tripped'] else 'ok'}"
    )
    console.print(Panel(summary, title="Summary", border_style="cyan"))
