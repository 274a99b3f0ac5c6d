"""Tests for src/analytics/holders.py: share math and provider priority."""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.analytics.holders import (
    HoldersService,
    clamp_limit_top,
    compute_shares,
    holder_tags,
)
from src.data.providers.base import DEAD_ADDRESS, ZERO_ADDRESS, ProviderResult
from src.data.providers.circuit_breaker import ProviderGuard
from src.models.holders import RawHolder, SeriesPoint, TokenMeta
from src.models.types import HolderTag, ProviderName

CONTRACT = "0x6982508145454ce325ddbe47a25d4ec3d2311933"
LP = "0x00000000000000000000000000000000000000aa"


def _holders(*rows: tuple[str, int]) -> list[RawHolder]:
    return [RawHolder(address=a, balance=b) for a, b in rows]


def _service(
    guard: ProviderGuard,
    *,
    priority: tuple[ProviderName, ...] = (ProviderName.MORALIS, ProviderName.BITQUERY),
    meta: TokenMeta | None = None,
    lp: frozenset[str] = frozenset(),
) -> tuple[HoldersService, MagicMock, MagicMock, MagicMock]:
    moralis = MagicMock()
    moralis.top_holders = AsyncMock(return_value=ProviderResult.empty(ProviderName.MORALIS, []))
    bitquery = MagicMock()
    bitquery.top_holders = AsyncMock(return_value=ProviderResult.empty(ProviderName.BITQUERY, []))
    bitquery.holder_count = AsyncMock(return_value=ProviderResult.empty(ProviderName.BITQUERY, 0))
    bitquery.holder_series = AsyncMock(return_value=ProviderResult.empty(ProviderName.BITQUERY, []))
    dexscreener = MagicMock()
    dexscreener.lp_addresses = AsyncMock(return_value=ProviderResult.success(lp, ProviderName.DEXSCREENER))
    reader = MagicMock()
    reader.read_meta = AsyncMock(return_value=meta or TokenMeta(decimals=0, total_supply=12000))
    service = HoldersService(
        priority=priority,
        moralis=moralis,
        bitquery=bitquery,
        dexscreener=dexscreener,
        rpc=lambda _chain: reader,
        guard=guard,
    )
    return service, moralis, bitquery, reader


class TestComputeShares:
    """compute_shares 테스트."""

    def test_total_and_circulating_share(self) -> None:
        """12000 공급, burn 2000 → 9000은 0.75 / 0.9."""
        holders = _holders(("0xabc", 9000), (DEAD_ADDRESS, 2000))
        result = compute_shares(holders, 0, 12000)

        assert result[0].total_supply_share == pytest.approx(0.75)
        assert result[0].circulating_share == pytest.approx(0.9)
        assert HolderTag.BURN in result[1].tags

    def test_lp_excluded_from_circulating(self) -> None:
        holders = _holders(("0xabc", 500), (LP, 500))
        result = compute_shares(holders, 0, 2000, lp_addresses=[LP.upper()])

        assert result[0].circulating_share == pytest.approx(500 / 1500)
        assert result[1].tags == frozenset({HolderTag.LP})

    def test_zero_supply(self) -> None:
        result = compute_shares(_holders(("0xabc", 100)), 18, 0)

        assert result[0].total_supply_share == 0.0
        assert result[0].circulating_share == 0.0

    def test_circulating_never_negative(self) -> None:
        """burn 잔고가 공급량을 넘으면 분모 0 → 0."""
        holders = _holders((ZERO_ADDRESS, 5000), ("0xabc", 10))
        result = compute_shares(holders, 0, 1000)

        assert all(h.circulating_share >= 0 for h in result)
        assert result[1].circulating_share == 0.0

    def test_balance_normalized_by_decimals(self) -> None:
        result = compute_shares(_holders(("0xabc", 1_500_000_000_000_000_000)), 18, 10**21)

        assert result[0].balance == pytest.approx(1.5)
        assert result[0].total_supply_share == pytest.approx(0.0015)

    def test_large_balances_keep_precision(self) -> None:
        supply = 420_690_000_000_000 * 10**18
        result = compute_shares(_holders(("0xabc", supply // 4)), 18, supply)

        assert result[0].total_supply_share == 0.25

    def test_display_balance_from_integer_split(self) -> None:
        raw = 420690000000000123456789012345678
        result = compute_shares(_holders(("0xabc", raw)), 18, raw * 2)

        assert result[0].balance == float("420690000000000.123456789012345678")

    def test_order_preserved(self) -> None:
        holders = _holders(("0x1", 10), ("0x2", 30), ("0x3", 20))
        assert [h.address for h in compute_shares(holders, 0, 60)] == ["0x1", "0x2", "0x3"]


class TestHelpers:
    """clamp_limit_top / holder_tags 테스트."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, 200), (1, 10), (10, 10), (500, 500), (5000, 1000)],
    )
    def test_clamp_limit_top(self, value: int | None, expected: int) -> None:
        assert clamp_limit_top(value) == expected

    def test_holder_tags(self) -> None:
        assert holder_tags(ZERO_ADDRESS, frozenset()) == frozenset({HolderTag.BURN})
        assert holder_tags(LP, frozenset({LP})) == frozenset({HolderTag.LP})
        assert holder_tags("0xabc", frozenset({LP})) == frozenset()


class TestHoldersServiceSummary:
    """HoldersService.summary 테스트."""

    @pytest.mark.asyncio()
    async def test_first_provider_with_data_wins(self, guard: ProviderGuard) -> None:
        service, moralis, bitquery, _ = _service(guard)
        moralis.top_holders.return_value = ProviderResult.success(
            _holders(("0xabc", 9000), (DEAD_ADDRESS, 2000)), ProviderName.MORALIS
        )

        summary = await service.summary(CONTRACT, "ethereum")

        assert summary.source == "moralis"
        assert summary.partial is False
        assert summary.total_holders == 2
        assert summary.top_holders[0].total_supply_share == pytest.approx(0.75)
        bitquery.top_holders.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_falls_back_to_bitquery_with_count(self, guard: ProviderGuard) -> None:
        service, moralis, bitquery, _ = _service(guard)
        moralis.top_holders.return_value = ProviderResult.failure("boom")
        bitquery.top_holders.return_value = ProviderResult.success(
            _holders(("0xabc", 6000)), ProviderName.BITQUERY
        )
        bitquery.holder_count.return_value = ProviderResult.success(4321, ProviderName.BITQUERY)

        summary = await service.summary(CONTRACT, "ethereum")

        assert summary.source == "bitquery"
        assert summary.total_holders == 4321

    @pytest.mark.asyncio()
    async def test_priority_order_respected(self, guard: ProviderGuard) -> None:
        service, moralis, bitquery, _ = _service(
            guard, priority=(ProviderName.BITQUERY, ProviderName.MORALIS)
        )
        moralis.top_holders.return_value = ProviderResult.success(_holders(("0x1", 1)), ProviderName.MORALIS)
        bitquery.top_holders.return_value = ProviderResult.success(_holders(("0x2", 1)), ProviderName.BITQUERY)

        summary = await service.summary(CONTRACT, "ethereum")

        assert summary.source == "bitquery"
        moralis.top_holders.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_all_providers_fail_returns_partial_mock(self, guard: ProviderGuard) -> None:
        service, moralis, bitquery, reader = _service(guard)
        moralis.top_holders.return_value = ProviderResult.failure("down")
        bitquery.top_holders.return_value = ProviderResult.unavailable(ProviderName.BITQUERY)

        summary = await service.summary(CONTRACT, "ethereum")

        assert summary.partial is True
        assert summary.source == "mock"
        assert summary.top_holders == []
        reader.read_meta.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_limit_applied_before_shares(self, guard: ProviderGuard) -> None:
        service, moralis, _, _ = _service(guard)
        rows = _holders(*[(f"0x{i:040x}", 100) for i in range(1, 31)])
        moralis.top_holders.return_value = ProviderResult.success(rows, ProviderName.MORALIS)

        summary = await service.summary(CONTRACT, "ethereum", limit_top=3)

        assert len(summary.top_holders) == 10  # clamped to minimum
        assert summary.total_holders == 30

    @pytest.mark.asyncio()
    async def test_supply_unknown_propagates(self, guard: ProviderGuard) -> None:
        service, moralis, _, _ = _service(guard, meta=TokenMeta(supply_unknown=True))
        moralis.top_holders.return_value = ProviderResult.success(_holders(("0xabc", 5)), ProviderName.MORALIS)

        summary = await service.summary(CONTRACT, "ethereum")

        assert summary.supply_unknown is True
        assert summary.top_holders[0].total_supply_share == 0.0

    @pytest.mark.asyncio()
    async def test_lp_tagging(self, guard: ProviderGuard) -> None:
        service, moralis, _, _ = _service(guard, lp=frozenset({LP}))
        moralis.top_holders.return_value = ProviderResult.success(
            _holders(("0xabc", 100), (LP, 100)), ProviderName.MORALIS
        )

        summary = await service.summary(CONTRACT, "ethereum")

        assert HolderTag.LP in summary.top_holders[1].tags


class TestHolderSeries:
    """HoldersService.holder_series 테스트."""

    @pytest.mark.asyncio()
    async def test_provider_series(self, guard: ProviderGuard) -> None:
        service, _, bitquery, _ = _service(guard)
        points = [SeriesPoint(date=date(2024, 1, 1), value=10), SeriesPoint(date=date(2024, 1, 2), value=12)]
        bitquery.holder_series.return_value = ProviderResult.success(points, ProviderName.BITQUERY)

        series = await service.holder_series(CONTRACT, "ethereum", 2, today=date(2024, 1, 2))

        assert series.synthetic is False
        assert series.source == "bitquery"
        assert series.chart_data == points

    @pytest.mark.asyncio()
    async def test_synthetic_when_empty(self, guard: ProviderGuard) -> None:
        service, _, _, _ = _service(guard)

        series = await service.holder_series(CONTRACT, "ethereum", 7, today=date(2024, 1, 7))

        assert series.synthetic is True
        assert series.source == "synthetic"
        assert len(series.chart_data) == 7
        assert series.chart_data[-1].date == date(2024, 1, 7)
