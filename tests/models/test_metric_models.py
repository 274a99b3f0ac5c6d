"""Tests for metric / snapshot / holder models."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest
from pydantic import ValidationError

from src.models.holders import RawHolder, SeriesPoint, TokenMeta
from src.models.metrics import (
    HoldersMetric,
    LiquidityMixMetric,
    PriceMetric,
    TopHoldersMetric,
    parse_metric_value,
)
from src.models.project import ProjectContext
from src.models.snapshot import MetricSnapshot, ProjectRefreshResult, RefreshOutcome, compute_expires_at
from src.models.types import TimeRange

T0 = datetime(2024, 1, 1, tzinfo=UTC)


class TestTimeRange:
    @pytest.mark.parametrize(
        ("time_range", "days"),
        [(TimeRange.H24, 2), (TimeRange.D7, 7), (TimeRange.D30, 30), (TimeRange.D90, 90), (TimeRange.ALL, 120)],
    )
    def test_days(self, time_range: TimeRange, days: int) -> None:
        assert time_range.days == days

    def test_from_value(self) -> None:
        assert TimeRange("24h") is TimeRange.H24


class TestMetricValue:
    """tagged union 파싱 테스트."""

    def test_parse_by_kind(self) -> None:
        value = parse_metric_value({"kind": "price", "price": 1.2, "source": "coingecko"})
        assert isinstance(value, PriceMetric)

    def test_parse_json(self) -> None:
        original = HoldersMetric(
            time_range=TimeRange.D7,
            total_holders=5,
            chart_data=[SeriesPoint(date=date(2024, 1, 1), value=5)],
            series_source="bitquery",
            source="moralis",
        )
        assert parse_metric_value(original.model_dump_json()) == original

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValidationError):
            parse_metric_value({"kind": "tvl", "source": "x"})

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PriceMetric(price=-1, source="coingecko")

    def test_frozen(self) -> None:
        value = LiquidityMixMetric(source="mock")
        with pytest.raises(ValidationError):
            value.source = "dexscreener"  # type: ignore[misc]

    def test_defaults(self) -> None:
        value = TopHoldersMetric(source="mock")
        assert value.holders == []
        assert value.partial is False


class TestHolderModels:
    def test_raw_holder_lowercase(self) -> None:
        assert RawHolder(address="0xABC", balance=1).address == "0xabc"

    def test_raw_holder_big_int(self) -> None:
        assert RawHolder(address="0xabc", balance=10**40).balance == 10**40

    def test_raw_holder_negative_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RawHolder(address="0xabc", balance=-1)

    def test_token_meta_defaults(self) -> None:
        meta = TokenMeta()
        assert (meta.decimals, meta.total_supply, meta.supply_unknown) == (18, 0, False)


class TestSnapshotModels:
    def test_compute_expires_at(self) -> None:
        assert compute_expires_at(T0, 5) == T0 + timedelta(minutes=5)

    def test_is_expired_inclusive(self) -> None:
        snap = MetricSnapshot(
            project_id="p",
            metric="priceV2:p",
            value=PriceMetric(price=1, source="coingecko"),
            source="coingecko",
            collected_at=T0,
            ttl_minutes=1,
            expires_at=compute_expires_at(T0, 1),
            created_at=T0,
        )
        assert snap.is_expired(T0 + timedelta(seconds=59)) is False
        assert snap.is_expired(T0 + timedelta(minutes=1)) is True

    def test_refresh_counts(self) -> None:
        result = ProjectRefreshResult(
            project_id="p",
            outcomes=[
                RefreshOutcome(metric="a", refreshed=True),
                RefreshOutcome(metric="b", refreshed=False, reason="fresh"),
                RefreshOutcome(metric="c", refreshed=False, error="boom"),
            ],
        )
        assert (result.refreshed_count, result.error_count) == (1, 1)
        assert result.model_dump()["error_count"] == 1


class TestProjectContext:
    def test_normalized(self) -> None:
        ctx = ProjectContext(id="p", contract_address="0x6982508145454Ce325dDbE47a25d4ec3d2311933", chain="Base")
        assert ctx.contract_address == "0x6982508145454ce325ddbe47a25d4ec3d2311933"
        assert ctx.chain == "base"

    @pytest.mark.parametrize("address", ["0x123", "6982508145454Ce325dDbE47a25d4ec3d2311933", ""])
    def test_invalid_address(self, address: str) -> None:
        with pytest.raises(ValidationError):
            ProjectContext(id="p", contract_address=address)
