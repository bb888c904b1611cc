"""CLI interface using Typer.

Available subcommands:
    - simulate: YAML 시나리오 시뮬레이션 / 배당률 계산
    - state: 저장된 protocol 상태 및 에폭 리포트 조회

Usage:
    uv run vstrc simulate run config/scenario-example.yaml --db data/vstrc.db
    uv run vstrc simulate rate --market 95
    uv run vstrc state show data/vstrc.db
    uv run vstrc state reports data/vstrc.db --last 5
"""

import typer


def create_app() -> typer.Typer:
    """Create the main CLI application with all sub-commands.

    Lazy import를 사용하여 각 서브커맨드 모듈을 필요할 때만 로드합니다.
    """
    from vstrc.cli.simulate import app as simulate_app
    from vstrc.cli.state import app as state_app

    main_app = typer.Typer(
        name="vstrc",
        help="vSTRC Treasury Vault - variable-rate yield vault simulator",
        no_args_is_help=True,
    )

    main_app.add_typer(simulate_app, name="simulate", help="Scenario simulation and rate tools")
    main_app.add_typer(state_app, name="state", help="Persisted protocol state")

    return main_app


def main() -> None:
    """Entry point for the ``vstrc`` console script."""
    app = create_app()
    app()
