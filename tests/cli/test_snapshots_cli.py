"""Tests for the snapshots CLI (commands with a patched Runtime)."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from src.cli import create_app
from src.cli.snapshots import _parse_ranges, app, summarize_value
from src.core.exceptions import StorageError
from src.models.holders import SeriesPoint
from src.models.metrics import (
    HoldersMetric,
    LiquidityMixMetric,
    LiquidityShare,
    PriceMetric,
    RankedHolder,
    TopHoldersMetric,
)
from src.models.project import ProjectEntry, ProjectsFile
from src.models.snapshot import MetricSnapshot, ProjectRefreshResult, RefreshOutcome
from src.models.types import TimeRange

runner = CliRunner()

PEPE = "0x6982508145454Ce325dDbE47a25d4ec3d2311933"


@pytest.fixture()
def runtime() -> Iterator[MagicMock]:
    """Runtime 클래스를 패치하고 async context 진입 시 반환되는 객체를 돌려줌."""
    fake = MagicMock()
    fake.orchestrator.refresh_active_projects = AsyncMock(return_value=[])
    fake.store.list_snapshots = AsyncMock(return_value=[])
    fake.store.delete_snapshot = AsyncMock(return_value=0)
    fake.counters.snapshot = AsyncMock(return_value={})
    fake.orchestrator.ensure_fresh_snapshot = AsyncMock(return_value=None)
    with patch("src.cli.snapshots.Runtime") as runtime_cls:
        runtime_cls.return_value.__aenter__.return_value = fake
        yield fake


@pytest.fixture()
def projects() -> Iterator[MagicMock]:
    file = ProjectsFile(
        projects=[
            ProjectEntry(id="pepe", contract_address=PEPE),
            ProjectEntry(id="old", contract_address=PEPE, is_active=False),
        ]
    )
    with (
        patch("src.cli.snapshots.load_projects", return_value=file) as loader,
        patch("src.cli.snapshots.setup_logger"),
    ):
        yield loader


def _price_snapshot() -> MetricSnapshot:
    now = datetime.now(UTC)
    return MetricSnapshot(
        project_id="pepe",
        metric="priceV2:pepe",
        value=PriceMetric(price=1.0, source="coingecko"),
        source="coingecko",
        collected_at=now,
        ttl_minutes=1,
        expires_at=now + timedelta(minutes=1),
        created_at=now,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestParseRanges:
    def test_none(self) -> None:
        assert _parse_ranges(None) is None

    def test_valid(self) -> None:
        assert _parse_ranges("24h, 7D,") == [TimeRange.H24, TimeRange.D7]


class TestSummarizeValue:
    def test_holders(self) -> None:
        value = HoldersMetric(
            time_range=TimeRange.D7,
            total_holders=1234,
            change_percent=2.5,
            series_source="bitquery",
            source="moralis",
            chart_data=[SeriesPoint(date=date(2024, 1, 1), value=1234)],
        )
        assert summarize_value(value) == "1,234 holders (+2.5%)"

    def test_price(self) -> None:
        assert summarize_value(PriceMetric(price=1500, change_24h=-1.0, source="coingecko")) == "$1.5k (-1.0%)"

    def test_top_holders(self) -> None:
        value = TopHoldersMetric(
            holders=[RankedHolder(rank=1, address=PEPE.lower(), balance=1234.56, percentage=12.3456)],
            source="moralis",
        )
        assert summarize_value(value) == "1 holders, #1 0x6982...1933 1.23k (12.35%)"

    def test_empty_top_holders(self) -> None:
        assert summarize_value(TopHoldersMetric(source="mock")) == "no holders"

    def test_liquidity_mix(self) -> None:
        value = LiquidityMixMetric(
            items=[LiquidityShare(name="uniswap", liquidity_usd=1.0, percentage=100)], source="dexscreener"
        )
        assert summarize_value(value) == "uniswap 100%"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestSweepCommand:
    def test_sweep_active_projects(self, runtime: MagicMock, projects: MagicMock) -> None:
        runtime.orchestrator.refresh_active_projects.return_value = [
            ProjectRefreshResult(
                project_id="pepe",
                outcomes=[
                    RefreshOutcome(metric="priceV2:pepe", refreshed=True, source="coingecko"),
                    RefreshOutcome(metric="volumeV2:pepe:7d", refreshed=False, error="boom"),
                ],
            )
        ]

        result = runner.invoke(app, ["sweep", "--ranges", "7d", "--force"])

        assert result.exit_code == 0, result.output
        assert "Refreshed: 1" in result.output
        assert "Errors: 1" in result.output
        call = runtime.orchestrator.refresh_active_projects.await_args
        assert [p.id for p in call.args[0]] == ["pepe"]
        assert call.kwargs == {"force": True, "ranges": [TimeRange.D7]}

    def test_invalid_range(self, runtime: MagicMock, projects: MagicMock) -> None:
        result = runner.invoke(app, ["sweep", "--ranges", "3d"])

        assert result.exit_code == 1
        assert "Invalid range" in result.output
        runtime.orchestrator.refresh_active_projects.assert_not_awaited()

    def test_unknown_project(self, runtime: MagicMock, projects: MagicMock) -> None:
        result = runner.invoke(app, ["sweep", "--project", "old"])

        assert result.exit_code == 1
        assert "Active project not found" in result.output

    def test_no_active_projects(self, runtime: MagicMock, projects: MagicMock) -> None:
        projects.return_value = ProjectsFile()

        result = runner.invoke(app, ["sweep"])

        assert result.exit_code == 0
        assert "No active projects" in result.output

    def test_missing_projects_file(self, runtime: MagicMock, projects: MagicMock) -> None:
        projects.side_effect = FileNotFoundError("nope")

        result = runner.invoke(app, ["sweep"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_storage_error(self, runtime: MagicMock, projects: MagicMock) -> None:
        runtime.orchestrator.refresh_active_projects.side_effect = StorageError("disk full")

        result = runner.invoke(app, ["sweep"])

        assert result.exit_code == 1
        assert "Storage error" in result.output


class TestGetCommand:
    def test_collects_through_cache(self, runtime: MagicMock, projects: MagicMock) -> None:
        runtime.orchestrator.ensure_fresh_snapshot.return_value = _price_snapshot()

        result = runner.invoke(app, ["get", "priceV2:pepe"])

        assert result.exit_code == 0, result.output
        assert "priceV2:pepe" in result.output
        assert "coingecko" in result.output
        call = runtime.orchestrator.ensure_fresh_snapshot.await_args
        project, key = call.args
        assert (project.id, key) == ("pepe", "priceV2:pepe")
        assert call.kwargs["ttl_minutes"] == 1
        assert call.kwargs["fallback_collect"] is runtime.orchestrator.collector_for.return_value
        config, _, time_range = runtime.orchestrator.collector_for.call_args.args
        assert (config.family, time_range) == ("priceV2", None)

    def test_ranged_key_uses_range(self, runtime: MagicMock, projects: MagicMock) -> None:
        result = runner.invoke(app, ["get", "holdersV2:pepe:30d"])

        assert result.exit_code == 0, result.output
        assert runtime.orchestrator.collector_for.call_args.args[2] == TimeRange.D30
        assert runtime.orchestrator.ensure_fresh_snapshot.await_args.kwargs["ttl_minutes"] == 10

    def test_cache_only_miss(self, runtime: MagicMock, projects: MagicMock) -> None:
        result = runner.invoke(app, ["get", "priceV2:pepe", "--cache-only"])

        assert result.exit_code == 0
        assert "No fresh snapshot for priceV2:pepe" in result.output
        assert runtime.orchestrator.ensure_fresh_snapshot.await_args.kwargs["fallback_collect"] is None

    @pytest.mark.parametrize(
        ("key", "message"),
        [
            ("nopeV2:pepe", "Unknown metric family"),
            ("priceV2:pepe:7d", "takes no range"),
            ("holdersV2:pepe:all", "needs one of"),
            ("priceV2:old", "Active project not found"),
        ],
    )
    def test_rejected_keys(self, runtime: MagicMock, projects: MagicMock, key: str, message: str) -> None:
        result = runner.invoke(app, ["get", key])

        assert result.exit_code == 1
        assert message in result.output
        runtime.orchestrator.ensure_fresh_snapshot.assert_not_awaited()

    def test_storage_error(self, runtime: MagicMock, projects: MagicMock) -> None:
        runtime.orchestrator.ensure_fresh_snapshot.side_effect = StorageError("locked")

        result = runner.invoke(app, ["get", "priceV2:pepe"])

        assert result.exit_code == 1
        assert "Storage error" in result.output


class TestServeCommand:
    def test_single_iteration_exposes_metrics(self, runtime: MagicMock, projects: MagicMock) -> None:
        runtime.counters.snapshot.return_value = {"snapshots.refresh.success.priceV2": 4}

        with (
            patch("src.cli.snapshots.start_metrics_server", return_value=True) as server,
            patch("src.cli.snapshots.export_counter_snapshot") as export,
        ):
            result = runner.invoke(app, ["serve", "--port", "9200", "--iterations", "1", "--ranges", "7d"])

        assert result.exit_code == 0, result.output
        assert "Completed 1 sweep(s)" in result.output
        server.assert_called_once_with(9200)
        export.assert_called_once_with({"snapshots.refresh.success.priceV2": 4})
        call = runtime.orchestrator.refresh_active_projects.await_args
        assert [p.id for p in call.args[0]] == ["pepe"]
        assert call.kwargs == {"ranges": [TimeRange.D7]}

    def test_no_active_projects(self, runtime: MagicMock, projects: MagicMock) -> None:
        projects.return_value = ProjectsFile()

        with patch("src.cli.snapshots.start_metrics_server") as server:
            result = runner.invoke(app, ["serve", "--iterations", "1"])

        assert result.exit_code == 0
        assert "No active projects" in result.output
        server.assert_not_called()


class TestShowCommand:
    def test_no_snapshots(self, runtime: MagicMock) -> None:
        result = runner.invoke(app, ["show", "pepe"])

        assert result.exit_code == 0
        assert "No snapshots for pepe" in result.output

    def test_lists_snapshots(self, runtime: MagicMock) -> None:
        runtime.store.list_snapshots.return_value = [_price_snapshot()]

        result = runner.invoke(app, ["show", "pepe"])

        assert result.exit_code == 0, result.output
        assert "priceV2:pepe" in result.output
        assert "fresh" in result.output


class TestClearAndOpsMetrics:
    def test_clear(self, runtime: MagicMock) -> None:
        runtime.store.delete_snapshot.return_value = 3

        result = runner.invoke(app, ["clear", "pepe", "--metric", "priceV2:pepe"])

        assert result.exit_code == 0
        assert "Deleted 3 snapshot(s)" in result.output
        runtime.store.delete_snapshot.assert_awaited_once_with("pepe", "priceV2:pepe")

    def test_ops_metrics_empty(self, runtime: MagicMock) -> None:
        result = runner.invoke(app, ["ops-metrics"])
        assert "No counters recorded" in result.output

    def test_ops_metrics(self, runtime: MagicMock) -> None:
        runtime.counters.snapshot.return_value = {"providers.moralis.calls": 1200}

        result = runner.invoke(app, ["ops-metrics"])

        assert result.exit_code == 0
        assert "providers.moralis.calls" in result.output
        assert "1,200" in result.output

    def test_ops_metrics_prometheus(self, runtime: MagicMock) -> None:
        runtime.counters.snapshot.return_value = {"providers.etherscan.calls": 7}

        result = runner.invoke(app, ["ops-metrics", "--prometheus"])

        assert result.exit_code == 0
        assert "# TYPE dashline_ops_events_total counter" in result.output
        assert 'dashline_ops_counter{key="providers.etherscan.calls"} 7.0' in result.output


class TestRootApp:
    def test_help_lists_snapshots(self) -> None:
        result = runner.invoke(create_app(), ["--help"])

        assert result.exit_code == 0
        assert "snapshots" in result.output

