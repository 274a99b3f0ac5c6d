"""Typer CLI for metric snapshots.

Commands:
    - sweep: 활성 프로젝트의 만료 스냅샷 재수집 (cron hook)
    - serve: 주기적 sweep + Prometheus /metrics 노출 (장기 실행)
    - get: 단일 메트릭 read-through (신선하면 캐시, 아니면 수집 후 저장)
    - show: 프로젝트 스냅샷 목록 (fresh/stale, source, 만료 시각)
    - clear: 스냅샷 삭제 (관리자 도구)
    - ops-metrics: 운영 카운터 스냅샷 (--prometheus: text exposition)

Rules Applied:
    - #18 Typer CLI: Annotated syntax, Rich UI, async handling
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from src.analytics.formatters import (
    format_address,
    format_currency,
    format_decimal_balance,
    format_number,
    format_percentage,
    format_relative_time,
)
from src.config.config_loader import load_projects
from src.config.settings import get_settings
from src.core.exceptions import StorageError
from src.core.logger import setup_logger
from src.models.metrics import (
    HoldersMetric,
    LiquidityMixMetric,
    PriceMetric,
    TopHoldersMetric,
    TransactionsMetric,
    VolumeMetric,
)
from src.models.types import TimeRange
from src.monitoring.metrics import export_counter_snapshot, render_prometheus, start_metrics_server
from src.runtime import Runtime
from src.snapshot.registry import parse_metric_key
from src.snapshot.store import is_snapshot_expired

if TYPE_CHECKING:
    from src.models.metrics import MetricValue
    from src.models.project import ProjectContext
    from src.models.snapshot import MetricSnapshot, ProjectRefreshResult
    from src.snapshot.registry import MetricConfig

console = Console()

app = typer.Typer(
    name="snapshots",
    help="Token analytics metric snapshots",
    no_args_is_help=True,
)


def _parse_ranges(raw: str | None) -> list[TimeRange] | None:
    """Comma separated ranges → TimeRange list (예: "24h,7d")."""
    if raw is None:
        return None
    ranges: list[TimeRange] = []
    for item in raw.split(","):
        name = item.strip().lower()
        if not name:
            continue
        try:
            ranges.append(TimeRange(name))
        except ValueError:
            console.print(f"[red]Invalid range: {name}[/red]")
            console.print(f"Valid: {', '.join(r.value for r in TimeRange)}")
            raise typer.Exit(code=1) from None
    return ranges


def _load_active(project_id: str | None) -> list[ProjectContext]:
    settings = get_settings()
    try:
        projects = load_projects(settings.projects_file).active()
    except FileNotFoundError:
        console.print(f"[red]{settings.projects_file} not found.[/red]")
        raise typer.Exit(code=1) from None
    except ValidationError as e:
        console.print(f"[red]Invalid projects file:[/red] {e}")
        raise typer.Exit(code=1) from None
    if project_id is not None:
        projects = [p for p in projects if p.id == project_id]
        if not projects:
            console.print(f"[red]Active project not found: {project_id}[/red]")
            raise typer.Exit(code=1)
    return projects


def summarize_value(value: MetricValue) -> str:
    """메트릭 payload 한 줄 요약."""
    if isinstance(value, HoldersMetric):
        return f"{format_number(value.total_holders)} holders ({format_percentage(value.change_percent)})"
    if isinstance(value, VolumeMetric):
        return f"{format_currency(value.volume_24h)} 24h ({format_percentage(value.change_percent)})"
    if isinstance(value, TransactionsMetric):
        return f"{format_number(value.total_tx)} tx ({format_percentage(value.change_percent)})"
    if isinstance(value, PriceMetric):
        return f"{format_currency(value.price)} ({format_percentage(value.change_24h)})"
    if isinstance(value, TopHoldersMetric):
        if not value.holders:
            return "no holders"
        top = value.holders[0]
        balance = format_decimal_balance(f"{top.balance:.4f}")
        return f"{len(value.holders)} holders, #1 {format_address(top.address)} {balance} ({top.percentage:.2f}%)"
    if isinstance(value, LiquidityMixMetric):
        return ", ".join(f"{item.name} {item.percentage}%" for item in value.items) or "no pools"
    return "-"


def _setup_logging(verbose: bool) -> None:
    settings = get_settings()
    setup_logger(
        log_dir=settings.log_dir,
        console_level="DEBUG" if verbose else "INFO",
        secrets=settings.secret_values(),
    )


def _display_snapshot(snapshot: MetricSnapshot) -> None:
    now = datetime.now(UTC)
    state = "[red]stale[/red]" if is_snapshot_expired(snapshot, now) else "[green]fresh[/green]"
    lines = [
        f"State: {state}",
        f"Source: {escape(snapshot.source)}" + (" [yellow](data empty)[/yellow]" if snapshot.data_empty else ""),
        f"Collected: {format_relative_time(snapshot.collected_at, now)}",
        f"Expires: {snapshot.expires_at.strftime('%Y-%m-%d %H:%M:%S')} UTC",
        f"Value: {escape(summarize_value(snapshot.value))}",
    ]
    console.print(Panel.fit("\n".join(lines), title=escape(snapshot.metric), border_style="cyan"))


def _display_sweep(results: list[ProjectRefreshResult]) -> None:
    table = Table(show_header=True, header_style="bold", title="Snapshot Sweep")
    table.add_column("Project", style="cyan")
    table.add_column("Metric", min_width=24)
    table.add_column("Status", width=10)
    table.add_column("Source / Error")

    for result in results:
        for outcome in result.outcomes:
            if outcome.error is not None:
                status, detail = "[red]error[/red]", outcome.error
            elif outcome.refreshed:
                status, detail = "[green]refreshed[/green]", outcome.source or "-"
            else:
                status, detail = "[dim]fresh[/dim]", outcome.reason or "-"
            table.add_row(result.project_id, outcome.metric, status, detail)

    console.print(table)
    refreshed = sum(r.refreshed_count for r in results)
    errors = sum(r.error_count for r in results)
    color = "red" if errors else "green"
    console.print(
        Panel.fit(
            f"Projects: {len(results)}\nRefreshed: {refreshed}\nErrors: {errors}",
            title="Summary",
            border_style=color,
        )
    )


async def _sweep(
    projects: list[ProjectContext], ranges: list[TimeRange] | None, force: bool
) -> list[ProjectRefreshResult]:
    async with Runtime(get_settings()) as runtime:
        return await runtime.orchestrator.refresh_active_projects(projects, force=force, ranges=ranges)


async def _serve(
    projects: list[ProjectContext], ranges: list[TimeRange] | None, interval: float, iterations: int
) -> int:
    """주기적 sweep (iterations=0이면 무한 반복). 완료한 sweep 수 반환."""
    completed = 0
    async with Runtime(get_settings()) as runtime:
        while True:
            results = await runtime.orchestrator.refresh_active_projects(projects, ranges=ranges)
            export_counter_snapshot(await runtime.counters.snapshot())
            completed += 1
            logger.info(
                f"Sweep #{completed}: {sum(r.refreshed_count for r in results)} refreshed, "
                f"{sum(r.error_count for r in results)} errors"
            )
            if iterations and completed >= iterations:
                return completed
            await asyncio.sleep(interval)


async def _get(
    project: ProjectContext,
    metric_key: str,
    config: MetricConfig,
    time_range: TimeRange | None,
    collect: bool,
) -> MetricSnapshot | None:
    async with Runtime(get_settings()) as runtime:
        orchestrator = runtime.orchestrator
        return await orchestrator.ensure_fresh_snapshot(
            project,
            metric_key,
            ttl_minutes=config.ttl_minutes,
            fallback_collect=orchestrator.collector_for(config, project, time_range) if collect else None,
        )


async def _list(project_id: str) -> list[MetricSnapshot]:
    async with Runtime(get_settings()) as runtime:
        return await runtime.store.list_snapshots(project_id)


async def _clear(project_id: str, metric: str | None) -> int:
    async with Runtime(get_settings()) as runtime:
        return await runtime.store.delete_snapshot(project_id, metric)


async def _ops_metrics() -> dict[str, int]:
    async with Runtime(get_settings()) as runtime:
        return await runtime.counters.snapshot()


@app.command()
def sweep(
    project: Annotated[
        str | None, typer.Option("--project", "-p", help="Only sweep this project ID")
    ] = None,
    ranges: Annotated[
        str | None, typer.Option("--ranges", "-r", help="Comma separated ranges (e.g., 24h,7d)")
    ] = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Refresh even fresh snapshots")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging")] = False,
) -> None:
    """Refresh stale snapshots for active projects.

    Example:
        dashline snapshots sweep --ranges 24h,7d
        dashline snapshots sweep --project pepe --force
    """
    _setup_logging(verbose)

    wanted = _parse_ranges(ranges)
    projects = _load_active(project)
    if not projects:
        console.print("[yellow]No active projects.[/yellow]")
        return

    try:
        results = asyncio.run(_sweep(projects, wanted, force))
    except StorageError as e:
        console.print(f"[bold red]Storage error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    _display_sweep(results)


@app.command()
def serve(
    port: Annotated[int, typer.Option("--port", help="Prometheus /metrics port (0 disables)")] = 9108,
    interval: Annotated[
        float, typer.Option("--interval", "-i", min=1.0, help="Seconds between sweeps")
    ] = 300.0,
    iterations: Annotated[
        int, typer.Option("--iterations", "-n", min=0, help="Stop after N sweeps (0 = run forever)")
    ] = 0,
    ranges: Annotated[
        str | None, typer.Option("--ranges", "-r", help="Comma separated ranges (e.g., 24h,7d)")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging")] = False,
) -> None:
    """Sweep active projects on an interval and expose Prometheus metrics.

    Example:
        dashline snapshots serve --port 9108 --interval 300
    """
    _setup_logging(verbose)

    wanted = _parse_ranges(ranges)
    projects = _load_active(None)
    if not projects:
        console.print("[yellow]No active projects.[/yellow]")
        return

    if start_metrics_server(port):
        console.print(f"[green]✓[/green] Metrics on http://0.0.0.0:{port}/metrics")

    try:
        completed = asyncio.run(_serve(projects, wanted, interval, iterations))
    except StorageError as e:
        console.print(f"[bold red]Storage error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")
        return
    console.print(f"[green]✓[/green] Completed {completed} sweep(s)")


@app.command()
def get(
    metric_key: Annotated[str, typer.Argument(help="Metric key (e.g., holdersV2:pepe:7d)")],
    cache_only: Annotated[
        bool, typer.Option("--cache-only", help="Only return a fresh stored snapshot")
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging")] = False,
) -> None:
    """Read one metric through the snapshot cache.

    A fresh snapshot is returned as stored; otherwise the metric is collected,
    saved with its registry TTL and shown.

    Example:
        dashline snapshots get priceV2:pepe
        dashline snapshots get holdersV2:pepe:30d --cache-only
    """
    _setup_logging(verbose)

    try:
        config, project_id, time_range = parse_metric_key(metric_key)
    except KeyError:
        console.print(f"[red]Unknown metric family: {escape(metric_key.split(':', 1)[0])}[/red]")
        raise typer.Exit(code=1) from None
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    project = _load_active(project_id)[0]
    try:
        snapshot = asyncio.run(_get(project, metric_key, config, time_range, collect=not cache_only))
    except StorageError as e:
        console.print(f"[bold red]Storage error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if snapshot is None:
        console.print(f"[yellow]No fresh snapshot for {escape(metric_key)}.[/yellow]")
        return
    _display_snapshot(snapshot)


@app.command()
def show(
    project_id: Annotated[str, typer.Argument(help="Project ID")],
) -> None:
    """List stored snapshots for a project."""
    try:
        snapshots = asyncio.run(_list(project_id))
    except StorageError as e:
        console.print(f"[bold red]Storage error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if not snapshots:
        console.print(f"[yellow]No snapshots for {project_id}.[/yellow]")
        return

    now = datetime.now(UTC)
    table = Table(show_header=True, header_style="bold", title=f"Snapshots: {project_id}")
    table.add_column("Metric", style="bold", min_width=24)
    table.add_column("State", width=6)
    table.add_column("Source", width=12)
    table.add_column("Collected", width=10)
    table.add_column("Expires", width=10)
    table.add_column("Value")

    for snap in snapshots:
        state = "[red]stale[/red]" if is_snapshot_expired(snap, now) else "[green]fresh[/green]"
        source = f"[yellow]{snap.source}[/yellow]" if snap.data_empty else snap.source
        table.add_row(
            snap.metric,
            state,
            source,
            format_relative_time(snap.collected_at, now),
            snap.expires_at.strftime("%H:%M:%S"),
            summarize_value(snap.value),
        )

    console.print(table)


@app.command()
def clear(
    project_id: Annotated[str, typer.Argument(help="Project ID")],
    metric: Annotated[
        str | None, typer.Option("--metric", "-m", help="Metric key (default: all)")
    ] = None,
) -> None:
    """Delete stored snapshots (admin tooling)."""
    try:
        deleted = asyncio.run(_clear(project_id, metric))
    except StorageError as e:
        console.print(f"[bold red]Storage error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓[/green] Deleted {deleted} snapshot(s) for {project_id}")


@app.command(name="ops-metrics")
def ops_metrics(
    prometheus: Annotated[
        bool, typer.Option("--prometheus", help="Print Prometheus text exposition instead of a table")
    ] = False,
) -> None:
    """Print operational counters."""
    counts = asyncio.run(_ops_metrics())
    if prometheus:
        export_counter_snapshot(counts)
        typer.echo(render_prometheus(), nl=False)
        return
    if not counts:
        console.print("[yellow]No counters recorded.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", title="Operational Counters")
    table.add_column("Key", style="cyan")
    table.add_column("Count", justify="right")
    for key in sorted(counts):
        table.add_row(key, f"{counts[key]:,}")
    console.print(table)
