"""Typer CLI for persisted protocol state.

Commands:
    - show: SQLite에 저장된 vault/strategy/venue 상태 요약
    - reports: 저장된 에폭 리포트 목록
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vstrc.models.types import STABLE_DECIMALS
from vstrc.persistence import Database, StateStore

app = typer.Typer(no_args_is_help=True)
console = Console()


def _fmt_usd(value: int | str) -> str:
    return f"${int(value) / 10**STABLE_DECIMALS:,.2f}"


def _require_db(db_path: str) -> None:
    if not Path(db_path).exists():
        console.print(f"[red]State database not found: {db_path}[/red]")
        raise typer.Exit(code=1)


@app.command()
def show(
    db_path: Annotated[str, typer.Argument(help="SQLite state file")],
) -> None:
    """저장된 protocol 상태 요약."""
    _require_db(db_path)
    states, saved_at = asyncio.run(_load_states(db_path))
    if not states:
        console.print("[yellow]No protocol state stored.[/yellow]")
        return

    for key, state in states.items():
        if key.startswith("vault:"):
            _print_vault(key, state)
        elif key.startswith("strategy:"):
            _print_strategy(key, state)
        else:
            console.print(f"[dim]{key}: {len(state)} field(s)[/dim]")

    if saved_at is not None:
        console.print(f"[dim]Last saved at {saved_at.isoformat()}[/dim]")


@app.command()
def reports(
    db_path: Annotated[str, typer.Argument(help="SQLite state file")],
    last: Annotated[int | None, typer.Option("--last", "-n", help="Show only last N")] = None,
) -> None:
    """저장된 에폭 리포트 목록."""
    _require_db(db_path)
    rows = asyncio.run(_load_reports(db_path))
    if last is not None:
        rows = rows[-last:]
    if not rows:
        console.print("[yellow]No epoch reports stored.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", title=f"Epoch Reports ({len(rows)})")
    table.add_column("Epoch", justify="right")
    table.add_column("Peg", width=8)
    table.add_column("Market", justify="right")
    table.add_column("Rate (bps)", justify="right")
    table.add_column("Dividend", justify="right")
    table.add_column("Total Assets", justify="right")
    for row in rows:
        table.add_row(
            str(row["epoch"]),
            str(row["peg"]),
            _fmt_usd(row["market_price"]),
            str(row["new_rate"]),
            _fmt_usd(row["dividend"]),
            _fmt_usd(row["total_assets"]),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _load_states(db_path: str) -> tuple[dict[str, dict[str, Any]], Any]:
    async with Database(db_path) as database:
        store = StateStore(database)
        return await store.load_all(), await store.last_saved_at()


async def _load_reports(db_path: str) -> list[dict[str, Any]]:
    async with Database(db_path) as database:
        return await StateStore(database).load_epoch_reports()


def _print_vault(key: str, state: dict[str, Any]) -> None:
    ledger = state.get("ledger", {})
    lines = [
        f"Epoch: {state['epoch_count']} ({state['phase']})",
        f"Current rate: {state['current_rate']} bps",
        f"Total supply: {ledger.get('total_shares', 0)}",
        f"Holders: {len(ledger.get('balances', {}))}",
        f"Dividends paid: {_fmt_usd(state['total_dividends_paid'])}",
        f"Strategy: {state.get('strategy_id') or '-'}",
        f"Minting paused: {state['minting_paused']} | "
        f"Redeeming paused: {state['redeeming_paused']}",
    ]
    console.print(Panel("\n".join(lines), title=key, border_style="cyan"))


def _print_strategy(key: str, state: dict[str, Any]) -> None:
    breaker = state.get("circuit_breaker", {})
    allocation = state.get("allocation", {})
    tripped = breaker.get("tripped", False)
    lines = [
        f"Volatile held: {state['volatile_asset_held']}",
        f"Cash deployed: {_fmt_usd(state['cash_deployed'])}",
        f"Allocation: {allocation.get('volatile_bps')} / {allocation.get('cash_bps')} bps",
        f"Max slippage: {state['max_slippage_bps']} bps",
        f"Circuit breaker: {'[red]TRIPPED[/red]' if tripped else '[green]ok[/green]'}",
    ]
    console.print(Panel("\n".join(lines), title=key, border_style="magenta"))
