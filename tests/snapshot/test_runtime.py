"""Runtime wiring test: sweep against providers that know nothing."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from src.config.settings import DashboardSettings
from src.models.project import ProjectContext
from src.models.types import ProviderName
from src.runtime import Runtime


def _settings(**kwargs: object) -> DashboardSettings:
    return DashboardSettings(_env_file=None, database_path=":memory:", **kwargs)  # type: ignore[call-arg]


def _not_found(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, json={"error": "not found"})


class TestRuntime:
    def test_reader_cached_per_chain(self) -> None:
        runtime = Runtime(_settings())

        assert runtime.reader_for("ethereum") is runtime.reader_for("Ethereum")
        assert runtime.reader_for("base") is not runtime.reader_for("ethereum")

    def test_reader_uses_chain_rpc_url(self) -> None:
        runtime = Runtime(_settings(alchemy_key="alk", public_rpc_url="https://pub.example"))

        assert runtime.reader_for("ethereum").rpc_url == "https://eth-mainnet.g.alchemy.com/v2/alk"
        assert runtime.reader_for("base").rpc_url == "https://rpc.ankr.com/base"

    def test_secrets_redacted_per_client(self) -> None:
        runtime = Runtime(_settings(etherscan_api_key="eth-secret", alchemy_key="alk-secret"))

        assert runtime._secrets(ProviderName.ETHERSCAN.value) == ("eth-secret",)
        assert runtime._secrets(ProviderName.DEXSCREENER.value) == ()

    @pytest.mark.asyncio()
    async def test_sweep_degrades_to_mock(self, project: ProjectContext) -> None:
        async with Runtime(_settings(), transport=httpx.MockTransport(_not_found)) as runtime:
            results = await runtime.orchestrator.refresh_active_projects([project], ranges=[])
            snapshots = await runtime.store.list_snapshots(project.id)

        result = results[0]
        assert result.error_count == 0
        assert result.refreshed_count == 3
        assert {s.metric for s in snapshots} == {"priceV2:pepe", "topHoldersV2:pepe", "liquidityMixV2:pepe"}
        assert all(s.source == "mock" for s in snapshots)
        assert all(s.data_empty for s in snapshots)

    @pytest.mark.asyncio()
    async def test_missing_keys_counted(self, project: ProjectContext) -> None:
        async with Runtime(_settings(), transport=httpx.MockTransport(_not_found)) as runtime:
            await runtime.providers.top_holders(project.contract_address, project.chain, 10)
            assert runtime.counters.get("providers.moralis.missing_key") >= 1

    @pytest.mark.asyncio()
    async def test_readers_closed_on_exit(self) -> None:
        async with Runtime(_settings(), transport=httpx.MockTransport(_not_found)) as runtime:
            reader = runtime.reader_for("ethereum")
            reader.close = AsyncMock()  # type: ignore[method-assign]

        reader.close.assert_awaited_once()
