"""Dexscreener adapter (pairs, best pair, LP addresses).

Rules Applied:
    - #23 Exception Handling: Adapter boundary → ProviderResult
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.data.providers.base import (
    ADAPTER_ERRORS,
    DEXSCREENER_CHAINS,
    ProviderResult,
    failure_result,
    is_hex_address,
    map_chain,
    normalize_address,
)
from src.models.market import DexPair
from src.models.types import ProviderName

if TYPE_CHECKING:
    from src.data.providers.client import AsyncProviderClient

DEXSCREENER_BASE_URL = "https://api.dexscreener.com/latest/dex"


class DexscreenerAdapter:
    """Dexscreener pair 조회 어댑터 (API 키 불필요).

    Args:
        client: Dexscreener 전용 AsyncProviderClient
    """

    provider = ProviderName.DEXSCREENER

    def __init__(self, client: AsyncProviderClient, *, base_url: str = DEXSCREENER_BASE_URL) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def pairs(self, contract: str) -> ProviderResult[list[DexPair]]:
        """토큰이 포함된 모든 pair."""
        address = normalize_address(contract)
        try:
            payload = await self._client.get_json(f"{self._base_url}/tokens/{address}")
            raw_pairs = payload.get("pairs") if isinstance(payload, dict) else None
            pairs = [DexPair.from_api(p) for p in raw_pairs or [] if isinstance(p, dict)]
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "pairs", e)
        if not pairs:
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(pairs, self.provider)

    async def best_pair(self, contract: str, chain: str) -> ProviderResult[DexPair]:
        """USD 유동성이 가장 큰 pair.

        요청 체인의 pair가 없으면 전체 pair 중에서 선택합니다.
        """
        result = await self.pairs(contract)
        if not result.ok or not result.data:
            return ProviderResult(data=None, source=result.source, status=result.status, error=result.error)
        want = map_chain(DEXSCREENER_CHAINS, chain, "ethereum")
        candidates = [p for p in result.data if p.chain_id == want] or result.data
        return ProviderResult.success(max(candidates, key=lambda p: p.liquidity_usd), self.provider)

    async def lp_addresses(self, contract: str, chain: str) -> ProviderResult[frozenset[str]]:
        """확실한 LP 풀 주소만 반환.

        조건: 20-byte hex pair 주소, 체인 일치, 토큰이 base 또는 quote,
        v4 pool id 아님. 애매한 경우는 태깅하지 않습니다 (false positive 방지).
        """
        result = await self.pairs(contract)
        if not result.ok or not result.data:
            return ProviderResult(
                data=frozenset(), source=result.source, status=result.status, error=result.error
            )
        token = normalize_address(contract)
        want = map_chain(DEXSCREENER_CHAINS, chain, "ethereum")
        lps = frozenset(
            p.pair_address
            for p in result.data
            if p.chain_id == want
            and is_hex_address(p.pair_address)
            and token in (p.base_address, p.quote_address)
            and "v4" not in p.labels
        )
        return ProviderResult.success(lps, self.provider)
