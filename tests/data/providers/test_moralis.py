"""Tests for src/data/providers/moralis.py."""

from __future__ import annotations

from datetime import date

import httpx
import pytest

from src.data.providers.moralis import MoralisAdapter
from src.models.types import MOCK_SOURCE, ResultStatus
from src.monitoring.metrics import OperationalCounters
from tests.data.providers.conftest import MockClient

TOKEN = "0x6982508145454ce325ddbe47a25d4ec3d2311933"
WHALE = "0x" + "a" * 40
SHRIMP = "0x" + "b" * 40


class TestMoralisAvailability:
    @pytest.mark.asyncio()
    async def test_missing_key_is_unavailable(
        self, mock_client: MockClient, counters: OperationalCounters
    ) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        async with mock_client("moralis", handler) as client:
            result = await MoralisAdapter(client, "", counters).holder_stats(TOKEN, "ethereum")

        assert result.status == ResultStatus.UNAVAILABLE
        assert result.source == MOCK_SOURCE
        assert calls == []
        assert counters.get("providers.moralis.missing_key") == 1


class TestHolderStats:
    @pytest.mark.asyncio()
    async def test_total_holders(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith(f"/erc20/{TOKEN}/holders")
            assert request.headers["X-API-Key"] == "key"
            assert request.url.params["chain"] == "eth"
            return httpx.Response(200, json={"totalHolders": 1234})

        async with mock_client("moralis", handler) as client:
            result = await MoralisAdapter(client, "key", counters).holder_stats(TOKEN, "ethereum")

        assert result.ok
        assert result.data == 1234
        assert result.source == "moralis"

    @pytest.mark.asyncio()
    async def test_not_found_is_empty(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        async with mock_client("moralis", lambda r: httpx.Response(404)) as client:
            result = await MoralisAdapter(client, "key", counters).holder_stats(TOKEN, "ethereum")
        assert result.status == ResultStatus.EMPTY

    @pytest.mark.asyncio()
    async def test_server_error_is_failure(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        async with mock_client("moralis", lambda r: httpx.Response(500)) as client:
            result = await MoralisAdapter(client, "key", counters).holder_stats(TOKEN, "ethereum")
        assert result.status == ResultStatus.ERROR
        assert result.source == MOCK_SOURCE
        assert result.error is not None


class TestTopHolders:
    @pytest.mark.asyncio()
    async def test_pagination_merges_duplicates(
        self, mock_client: MockClient, counters: OperationalCounters
    ) -> None:
        pages = {
            None: {
                "result": [
                    {"owner_address": WHALE.upper().replace("0X", "0x"), "balance": "100"},
                    {"owner_address": SHRIMP, "balance": "5"},
                ],
                "cursor": "page-2",
            },
            "page-2": {"result": [{"owner_address": WHALE, "balance": "50"}], "cursor": None},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=pages[request.url.params.get("cursor")])

        async with mock_client("moralis", handler) as client:
            result = await MoralisAdapter(client, "key", counters).top_holders(TOKEN, "ethereum")

        assert result.ok
        assert result.data is not None
        assert [(h.address, h.balance) for h in result.data] == [(WHALE, 150), (SHRIMP, 5)]

    @pytest.mark.asyncio()
    async def test_max_pages_truncates(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"result": [{"owner_address": WHALE, "balance": "1"}], "cursor": "more"}
            )

        async with mock_client("moralis", handler) as client:
            result = await MoralisAdapter(client, "key", counters, max_pages=2).top_holders(TOKEN, "ethereum")

        assert result.data is not None
        assert result.data[0].balance == 2

    @pytest.mark.asyncio()
    async def test_big_balances_keep_precision(
        self, mock_client: MockClient, counters: OperationalCounters
    ) -> None:
        raw = "420690000000000000000000000000000"

        async with mock_client(
            "moralis", lambda r: httpx.Response(200, json={"result": [{"owner_address": WHALE, "balance": raw}]})
        ) as client:
            result = await MoralisAdapter(client, "key", counters).top_holders(TOKEN, "ethereum")

        assert result.data is not None
        assert result.data[0].balance == int(raw)


class TestTransferSeries:
    @pytest.mark.asyncio()
    async def test_daily_buckets_fill_window(
        self, mock_client: MockClient, counters: OperationalCounters
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["from_date"] == "2025-01-08"
            assert request.url.params["to_date"] == "2025-01-10"
            return httpx.Response(
                200,
                json={
                    "result": [
                        {"block_timestamp": "2025-01-10T01:00:00.000Z"},
                        {"block_timestamp": "2025-01-09T12:00:00.000Z"},
                        {"block_timestamp": "2025-01-09T13:00:00.000Z"},
                    ]
                },
            )

        async with mock_client("moralis", handler) as client:
            result = await MoralisAdapter(client, "key", counters).transfer_series(
                TOKEN, "ethereum", 3, today=date(2025, 1, 10)
            )

        assert result.data is not None
        assert [(p.date, p.value) for p in result.data] == [
            (date(2025, 1, 8), 0.0),
            (date(2025, 1, 9), 2.0),
            (date(2025, 1, 10), 1.0),
        ]
