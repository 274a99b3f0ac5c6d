"""CoinGecko price adapter.

contract 엔드포인트(풍부한 market_data)를 먼저 시도하고, 실패하면 simple
token_price 엔드포인트로 fallback합니다. 일시 오류 재시도는
AsyncProviderClient의 지수 백오프(기본 3회)가 담당합니다.

Rules Applied:
    - #23 Exception Handling: Adapter boundary → ProviderResult
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from src.data.providers.base import (
    ADAPTER_ERRORS,
    COINGECKO_PLATFORMS,
    ProviderResult,
    failure_result,
    map_chain,
    normalize_address,
)
from src.models.market import TokenPrice
from src.models.types import ProviderName

if TYPE_CHECKING:
    from src.data.providers.client import AsyncProviderClient

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


def _float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class CoinGeckoAdapter:
    """CoinGecko 가격 어댑터.

    Args:
        client: CoinGecko 전용 AsyncProviderClient (max_attempts=3 권장)
        api_key: demo API 키 (선택, 없으면 public 엔드포인트)
    """

    provider = ProviderName.COINGECKO

    def __init__(
        self,
        client: AsyncProviderClient,
        api_key: str = "",
        *,
        base_url: str = COINGECKO_BASE_URL,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        return {"x-cg-demo-api-key": self._api_key} if self._api_key else {}

    async def token_price(self, contract: str, chain: str) -> ProviderResult[TokenPrice]:
        """USD 가격, 24h 변동률, 시가총액, 24h 거래량."""
        address = normalize_address(contract)
        platform = map_chain(COINGECKO_PLATFORMS, chain, "ethereum")
        try:
            payload = await self._client.get_json(
                f"{self._base_url}/coins/{platform}/contract/{address}", headers=self._headers
            )
            market = (payload or {}).get("market_data") or {}
            price = TokenPrice(
                price=max(0.0, _float((market.get("current_price") or {}).get("usd"))),
                change_24h=_float(market.get("price_change_percentage_24h")),
                market_cap=_float((market.get("market_cap") or {}).get("usd")) or None,
                volume_24h=max(0.0, _float((market.get("total_volume") or {}).get("usd"))),
            )
            if price.price > 0:
                return ProviderResult.success(price, self.provider)
        except ADAPTER_ERRORS as e:
            logger.debug(f"CoinGecko contract endpoint failed for {address}: {e}")

        try:
            payload = await self._client.get_json(
                f"{self._base_url}/simple/token_price/{platform}",
                params={
                    "contract_addresses": address,
                    "vs_currencies": "usd",
                    "include_24hr_change": "true",
                    "include_market_cap": "true",
                    "include_24hr_vol": "true",
                },
                headers=self._headers,
            )
            entry = (payload or {}).get(address) or next(iter((payload or {}).values()), {})
            price = TokenPrice(
                price=max(0.0, _float(entry.get("usd"))),
                change_24h=_float(entry.get("usd_24h_change")),
                market_cap=_float(entry.get("usd_market_cap")) or None,
                volume_24h=max(0.0, _float(entry.get("usd_24h_vol"))),
            )
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "token_price", e)
        if price.price <= 0:
            return ProviderResult.empty(self.provider)
        return ProviderResult.success(price, self.provider)
