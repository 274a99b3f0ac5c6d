"""OperationalCounters / Prometheus callback 테스트."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from src.core.kv_store import InMemoryKeyValueStore
from src.monitoring.metrics import (
    METRICS_KEY_PREFIX,
    OperationalCounters,
    PrometheusProviderCallback,
    ProviderMetricsCallback,
    export_counter_snapshot,
    latency_bucket,
    render_prometheus,
    start_metrics_server,
)


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    """REGISTRY에서 특정 metric 값을 가져옴 (없으면 0)."""
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestLatencyBucket:
    @pytest.mark.parametrize(
        ("elapsed", "label"),
        [(0, "lt100"), (99.9, "lt100"), (100, "lt300"), (250, "lt300"), (2999, "lt3000"), (15000, "gte10000")],
    )
    def test_bucket(self, elapsed: float, label: str) -> None:
        assert latency_bucket(elapsed) == label


class TestOperationalCounters:
    """프로세스 로컬 카운터 테스트."""

    def test_inc_and_get(self) -> None:
        counters = OperationalCounters()
        counters.inc("providers.moralis.calls")
        counters.inc("providers.moralis.calls", 2)

        assert counters.get("providers.moralis.calls") == 3
        assert counters.get("providers.bitquery.calls") == 0

    def test_reset(self) -> None:
        counters = OperationalCounters()
        counters.inc("a")
        counters.inc("b")

        counters.reset("a")
        assert counters.get("a") == 0
        assert counters.get("b") == 1

        counters.reset()
        assert counters.get("b") == 0

    def test_inc_outside_event_loop_skips_mirror(self) -> None:
        counters = OperationalCounters(InMemoryKeyValueStore())
        counters.inc("x")
        assert counters.get("x") == 1

    def test_prometheus_mirror(self) -> None:
        before = _sample("dashline_ops_events_total", {"event": "test.prom.mirror"})
        OperationalCounters().inc("test.prom.mirror", 4)
        after = _sample("dashline_ops_events_total", {"event": "test.prom.mirror"})
        assert after - before == 4

    def test_refresh_counter_labels(self) -> None:
        labels = {"family": "testFamilyV2", "status": "success"}
        before = _sample("dashline_snapshot_refresh_total", labels)
        OperationalCounters().inc("snapshots.refresh.success.testFamilyV2")
        assert _sample("dashline_snapshot_refresh_total", labels) - before == 1

    def test_synthetic_counter_labels(self) -> None:
        labels = {"family": "testSynthV2", "status": "synthetic"}
        before = _sample("dashline_snapshot_refresh_total", labels)
        OperationalCounters().inc("snapshots.synthetic.testSynthV2")
        assert _sample("dashline_snapshot_refresh_total", labels) - before == 1

    @pytest.mark.asyncio()
    async def test_snapshot_local(self) -> None:
        counters = OperationalCounters()
        counters.inc("providers.dune.calls")
        assert await counters.snapshot() == {"providers.dune.calls": 1}


class TestSharedCounters:
    """kv store 미러링 테스트."""

    @pytest.mark.asyncio()
    async def test_mirrored_to_store(self, kv_store: InMemoryKeyValueStore) -> None:
        counters = OperationalCounters(kv_store)
        counters.inc("providers.moralis.calls")
        counters.inc("providers.moralis.calls")
        await counters.flush()

        assert await kv_store.get(f"{METRICS_KEY_PREFIX}providers.moralis.calls") == "2"

    @pytest.mark.asyncio()
    async def test_snapshot_aggregates_instances(self, kv_store: InMemoryKeyValueStore) -> None:
        first = OperationalCounters(kv_store)
        second = OperationalCounters(kv_store)
        first.inc("providers.bitquery.errors")
        second.inc("providers.bitquery.errors", 2)
        await second.flush()

        snap = await first.snapshot()

        assert snap["providers.bitquery.errors"] == 3

    @pytest.mark.asyncio()
    async def test_reset_all_clears_store(self, kv_store: InMemoryKeyValueStore) -> None:
        counters = OperationalCounters(kv_store)
        counters.inc("a")
        counters.inc("b")
        await counters.flush()

        counters.reset()
        await counters.flush()

        assert await kv_store.scan(f"{METRICS_KEY_PREFIX}*") == []

    @pytest.mark.asyncio()
    async def test_mirror_failure_does_not_raise(self) -> None:
        class BrokenStore(InMemoryKeyValueStore):
            async def incr(self, key: str, by: int = 1) -> int:
                msg = "redis down"
                raise ConnectionError(msg)

        counters = OperationalCounters(BrokenStore())
        counters.inc("x")
        await counters.flush()
        await asyncio.sleep(0)

        assert counters.get("x") == 1


class TestPrometheusProviderCallback:
    def test_protocol(self) -> None:
        assert isinstance(PrometheusProviderCallback(), ProviderMetricsCallback)

    def test_on_call(self) -> None:
        labels = {"provider": "testprov", "status": "success"}
        before = _sample("dashline_provider_calls_total", labels)
        PrometheusProviderCallback().on_call("testprov", 0.2, "success")

        assert _sample("dashline_provider_calls_total", labels) - before == 1
        assert _sample("dashline_provider_latency_seconds_count", {"provider": "testprov"}) >= 1


class TestExposition:
    """Prometheus exposition 테스트."""

    def test_render_contains_dashline_metrics(self) -> None:
        OperationalCounters().inc("snapshots.refresh.success.priceV2")
        PrometheusProviderCallback().on_call("moralis", 0.2, "success")

        text = render_prometheus()

        for name in (
            "dashline_ops_events_total",
            "dashline_snapshot_refresh_total",
            "dashline_provider_calls_total",
            "dashline_provider_latency_seconds_bucket",
        ):
            assert name in text
        assert 'event="snapshots.refresh.success.priceV2"' in text

    def test_export_counter_snapshot_sets_gauge(self) -> None:
        export_counter_snapshot({"providers.dune.calls": 42})

        assert _sample("dashline_ops_counter", {"key": "providers.dune.calls"}) == 42
        assert 'dashline_ops_counter{key="providers.dune.calls"} 42.0' in render_prometheus()

    def test_start_metrics_server(self) -> None:
        with patch("src.monitoring.metrics.start_http_server") as server:
            assert start_metrics_server(9108) is True
        server.assert_called_once_with(9108)

    def test_start_metrics_server_disabled(self) -> None:
        with patch("src.monitoring.metrics.start_http_server") as server:
            assert start_metrics_server(0) is False
        server.assert_not_called()
