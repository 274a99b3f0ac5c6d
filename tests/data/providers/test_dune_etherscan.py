"""Tests for src/data/providers/dune.py and src/data/providers/etherscan.py."""

from __future__ import annotations

import json
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.core.exceptions import ProviderResponseError
from src.data.providers.dune import DuneAdapter
from src.data.providers.etherscan import EtherscanAdapter
from src.models.types import MOCK_SOURCE, ResultStatus
from src.monitoring.metrics import OperationalCounters
from tests.data.providers.conftest import Handler, MockClient

TOKEN = "0x6982508145454ce325ddbe47a25d4ec3d2311933"


def _dune_handler(states: list[str], rows: list[dict[str, object]]) -> tuple[list[str], Handler]:
    seen: list[str] = []
    remaining = iter(states)

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        seen.append(path)
        assert request.headers["X-Dune-API-Key"] == "dune-key"
        if path.endswith("/execute"):
            return httpx.Response(200, json={"execution_id": "01HX"})
        if path.endswith("/status"):
            return httpx.Response(200, json={"state": next(remaining)})
        return httpx.Response(200, json={"result": {"rows": rows}})

    return seen, handler


class TestDuneAdapter:
    @pytest.mark.asyncio()
    async def test_execute_poll_results(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        rows = [{"address": "0x" + "A" * 40, "balance": "1000.5", "percentage": 12.5}]
        seen, handler = _dune_handler(["QUERY_STATE_PENDING", "QUERY_STATE_EXECUTING", "QUERY_STATE_COMPLETED"], rows)

        async with mock_client("dune", handler) as client:
            adapter = DuneAdapter(client, "dune-key", counters, holders_query_id=42, poll_interval=0.5)
            with patch("src.data.providers.dune.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
                result = await adapter.top_holders(TOKEN, 10)

        assert result.ok
        assert result.data is not None
        holder = result.data[0]
        assert (holder.rank, holder.address, holder.balance, holder.percentage) == (1, "0x" + "a" * 40, 1000.5, 12.5)
        assert seen[0] == "/api/v1/query/42/execute"
        assert seen[-1] == "/api/v1/execution/01HX/results"
        assert mock_sleep.await_count == 2

    @pytest.mark.asyncio()
    async def test_failed_state_is_error(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        _, handler = _dune_handler(["QUERY_STATE_FAILED"], [])
        async with mock_client("dune", handler) as client:
            adapter = DuneAdapter(client, "dune-key", counters, holders_query_id=42)
            result = await adapter.top_holders(TOKEN, 10)
        assert result.status == ResultStatus.ERROR
        assert "QUERY_STATE_FAILED" in (result.error or "")

    @pytest.mark.asyncio()
    async def test_poll_limit(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        _, handler = _dune_handler(["QUERY_STATE_EXECUTING"] * 3, [])
        async with mock_client("dune", handler) as client:
            adapter = DuneAdapter(client, "dune-key", counters, max_polls=3)
            with (
                patch("src.data.providers.dune.asyncio.sleep", new_callable=AsyncMock),
                pytest.raises(ProviderResponseError, match="not finished after 3 polls"),
            ):
                await adapter.run_query(7, {})
        assert counters.get("providers.dune.poll_timeouts") == 1

    @pytest.mark.asyncio()
    async def test_missing_query_id_is_unavailable(
        self, mock_client: MockClient, counters: OperationalCounters
    ) -> None:
        async with mock_client("dune", lambda r: httpx.Response(500)) as client:
            result = await DuneAdapter(client, "dune-key", counters).volume_series(TOKEN, 7)
        assert result.status == ResultStatus.UNAVAILABLE
        assert counters.get("providers.dune.missing_key") == 0

    @pytest.mark.asyncio()
    async def test_volume_series_window(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        rows = [
            {"day": "2025-01-09 00:00:00.000 UTC", "volume_usd": 10.0},
            {"day": "2025-01-09", "volume_usd": 5.0},
            {"block_date": "2025-01-10", "volume": 1.0},
            {"day": "2024-12-01", "volume_usd": 999.0},
        ]
        seen_params: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith("/execute"):
                seen_params.append(json.loads(request.content)["query_parameters"])
                return httpx.Response(200, json={"execution_id": "e1"})
            if path.endswith("/status"):
                return httpx.Response(200, json={"state": "QUERY_STATE_COMPLETED"})
            return httpx.Response(200, json={"result": {"rows": rows}})

        async with mock_client("dune", handler) as client:
            adapter = DuneAdapter(client, "dune-key", counters, volume_query_id=9)
            result = await adapter.volume_series(TOKEN, 7, today=date(2025, 1, 10))

        assert seen_params == [{"token_address": TOKEN, "since": "2025-01-04", "till": "2025-01-10"}]
        assert result.data is not None
        assert [(p.date.day, p.value) for p in result.data] == [(9, 15.0), (10, 1.0)]


def _ts(year: int, month: int, day: int, hour: int = 12) -> str:
    return str(int(datetime(year, month, day, hour, tzinfo=UTC).timestamp()))


class TestEtherscanAdapter:
    @pytest.mark.asyncio()
    async def test_daily_counts(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            params = request.url.params
            assert params["chainid"] == "1"
            assert params["action"] == "tokentx"
            assert params["contractaddress"] == TOKEN
            return httpx.Response(
                200,
                json={
                    "status": "1",
                    "message": "OK",
                    "result": [
                        {"timeStamp": _ts(2025, 1, 10)},
                        {"timeStamp": _ts(2025, 1, 10, 1)},
                        {"timeStamp": _ts(2025, 1, 8)},
                        {"timeStamp": _ts(2024, 12, 1)},
                    ],
                },
            )

        async with mock_client("etherscan", handler) as client:
            result = await EtherscanAdapter(client, "es-key", counters).transfer_counts_daily(
                TOKEN, "ethereum", 3, today=date(2025, 1, 10)
            )

        assert result.data is not None
        assert [p.value for p in result.data] == [1.0, 0.0, 2.0]

    @pytest.mark.asyncio()
    async def test_no_transactions_is_empty(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        payload = {"status": "0", "message": "No transactions found", "result": []}
        async with mock_client("etherscan", lambda r: httpx.Response(200, json=payload)) as client:
            result = await EtherscanAdapter(client, "es-key", counters).transfer_counts_daily(TOKEN, "ethereum", 7)
        assert result.status == ResultStatus.EMPTY

    @pytest.mark.asyncio()
    async def test_error_status_is_failure(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        payload = {"status": "0", "message": "NOTOK", "result": "Invalid API Key"}
        async with mock_client("etherscan", lambda r: httpx.Response(200, json=payload)) as client:
            result = await EtherscanAdapter(client, "es-key", counters).transfer_counts_daily(TOKEN, "ethereum", 7)
        assert result.status == ResultStatus.ERROR
        assert result.source == MOCK_SOURCE
        assert "Invalid API Key" in (result.error or "")

    @pytest.mark.asyncio()
    async def test_missing_key(self, mock_client: MockClient, counters: OperationalCounters) -> None:
        async with mock_client("etherscan", lambda r: httpx.Response(500)) as client:
            result = await EtherscanAdapter(client, "", counters).transfer_counts_daily(TOKEN, "ethereum", 7)
        assert result.status == ResultStatus.UNAVAILABLE
        assert counters.get("providers.etherscan.missing_key") == 1
