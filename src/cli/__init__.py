"""CLI interface using Typer.

Available subcommands:
    - snapshots: Metric snapshot sweep / inspection / admin tooling

Usage:
    uv run dashline snapshots sweep --ranges 24h,7d
    uv run dashline snapshots show pepe
    uv run dashline snapshots get holdersV2:pepe:7d
    uv run dashline snapshots serve --port 9108 --interval 300
    uv run dashline snapshots ops-metrics --prometheus
"""

import typer


def create_app() -> typer.Typer:
    """Create the main CLI application with all sub-commands.

    Lazy import를 사용하여 각 서브커맨드 모듈을 필요할 때만 로드합니다.
    """
    from src.cli.snapshots import app as snapshots_app

    main_app = typer.Typer(
        name="dashline",
        help="Dashline - Token analytics metric snapshots",
        no_args_is_help=True,
    )

    main_app.add_typer(snapshots_app, name="snapshots", help="Metric snapshot sweep and inspection")

    return main_app


def main() -> None:
    """Entry point for the ``dashline`` console script."""
    app = create_app()
    app()
