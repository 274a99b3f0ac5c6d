"""The Graph adapter: daily token volume across Uniswap subgraphs.

Rules Applied:
    - #23 Exception Handling: Adapter boundary → ProviderResult
    - #19 Git Security: Gateway API key from settings
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from loguru import logger

from src.data.providers.base import ADAPTER_ERRORS, ProviderResult, failure_result, normalize_address
from src.data.providers.windows import DayWindow, daily_sums, parse_day
from src.models.holders import SeriesPoint
from src.models.types import ProviderName

if TYPE_CHECKING:
    from src.data.providers.client import AsyncProviderClient
    from src.monitoring.metrics import OperationalCounters

THEGRAPH_GATEWAY_URL = "https://gateway.thegraph.com/api/{api_key}/subgraphs/id/{subgraph_id}"

# Uniswap V2 / V3 (Ethereum mainnet)
DEFAULT_SUBGRAPHS: dict[str, list[str]] = {
    "ethereum": [
        "A3Np3RQbaBA6oKJgiwDJeo5T3zrYfGHPWFYayMwtNDum",
        "5zvR82QoaXYFyDEKLZ9t6v9adgnptxYpKpSbxtgVENFV",
    ],
}

TOKEN_DAY_DATAS_QUERY = """
query ($addr: String!, $days: Int!) {
  tokenDayDatas(first: $days, orderBy: date, orderDirection: desc, where: { token: $addr }) {
    date
    volumeUSD
    dailyVolumeToken
    priceUSD
  }
}
"""


def _row_volume(row: dict[str, Any]) -> float:
    if row.get("volumeUSD") is not None:
        return float(row["volumeUSD"])
    return float(row.get("dailyVolumeToken") or 0) * float(row.get("priceUSD") or 0)


class TheGraphAdapter:
    """Uniswap subgraph 일별 거래량 어댑터.

    Args:
        client: The Graph 전용 AsyncProviderClient
        api_key: gateway API 키 (빈 문자열이면 비가용)
        counters: 운영 카운터
        subgraphs: 체인별 subgraph ID (None이면 기본 매핑)
    """

    provider = ProviderName.THEGRAPH

    def __init__(
        self,
        client: AsyncProviderClient,
        api_key: str,
        counters: OperationalCounters,
        *,
        subgraphs: dict[str, list[str]] | None = None,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._counters = counters
        self._subgraphs = {k.lower(): v for k, v in (subgraphs or DEFAULT_SUBGRAPHS).items()}

    @property
    def available(self) -> bool:
        """API 키 설정 여부."""
        return bool(self._api_key)

    def subgraph_urls(self, chain: str) -> list[str]:
        """체인에 매핑된 subgraph gateway URL."""
        return [
            THEGRAPH_GATEWAY_URL.format(api_key=self._api_key, subgraph_id=sid)
            for sid in self._subgraphs.get(chain.lower(), [])
        ]

    async def token_daily_volume(
        self, contract: str, chain: str, days: int, *, today: date | None = None
    ) -> ProviderResult[list[SeriesPoint]]:
        """subgraph 합산 일별 USD 거래량 (오래된 순).

        개별 subgraph 실패는 건너뛰고, 모두 실패한 경우에만 error를 반환합니다.
        """
        if not self.available:
            self._counters.inc("providers.thegraph.missing_key")
            return ProviderResult.unavailable(self.provider)
        urls = self.subgraph_urls(chain)
        if not urls:
            return ProviderResult.empty(self.provider, [])

        window = DayWindow.last_days(days, today)
        address = normalize_address(contract)
        values: list[tuple[date, float]] = []
        last_error: Exception | None = None
        succeeded = 0
        for url in urls:
            try:
                payload = await self._client.post_json(
                    url, json={"query": TOKEN_DAY_DATAS_QUERY, "variables": {"addr": address, "days": days}}
                )
                rows = ((payload or {}).get("data") or {}).get("tokenDayDatas") or []
                values.extend((parse_day(int(row.get("date") or 0)), _row_volume(row)) for row in rows)
                succeeded += 1
            except ADAPTER_ERRORS as e:
                last_error = e
                logger.warning(f"TheGraph subgraph query failed ({chain}): {e}")

        if succeeded == 0 and last_error is not None:
            return failure_result(self.provider, "token_daily_volume", last_error)
        series = daily_sums(values, window)
        if not series:
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(series, self.provider)
