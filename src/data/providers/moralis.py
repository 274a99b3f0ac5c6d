"""Moralis Web3 Data API adapter (v2.2).

Endpoints:
    - /erc20/{address}/holders    holder 통계 (총 holder 수)
    - /erc20/{address}/owners     holder 리스트 (cursor pagination, raw balance)
    - /erc20/{address}/transfers  전송 내역 ([from_date, to_date] 윈도우)

Rules Applied:
    - #23 Exception Handling: Adapter boundary → ProviderResult
    - #19 Git Security: API key from settings (X-API-Key header)
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from loguru import logger

from src.data.providers.base import (
    ADAPTER_ERRORS,
    MORALIS_CHAINS,
    ProviderResult,
    failure_result,
    map_chain,
    normalize_address,
)
from src.data.providers.windows import DayWindow, daily_counts, parse_day
from src.models.holders import RawHolder, SeriesPoint
from src.models.types import ProviderName

if TYPE_CHECKING:
    from src.data.providers.client import AsyncProviderClient
    from src.monitoring.metrics import OperationalCounters

MORALIS_BASE_URL = "https://deep-index.moralis.io/api/v2.2"
MORALIS_PAGE_LIMIT = 100  # API 최대값
DEFAULT_MAX_PAGES = 200

# holder 통계 응답에서 총 holder 수로 해석 가능한 필드 (우선순위 순)
_HOLDER_TOTAL_FIELDS = ("totalHolders", "total", "holders", "address_count", "count")


def _items(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    items = payload.get("result") or payload.get("items") or []
    return [i for i in items if isinstance(i, dict)]


def _next_cursor(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    cursor = payload.get("cursor") or payload.get("next")
    return str(cursor) if cursor else None


class MoralisAdapter:
    """Moralis holder/transfer 어댑터.

    Args:
        client: Moralis 전용 AsyncProviderClient
        api_key: API 키 (빈 문자열이면 비가용)
        counters: 운영 카운터
        max_pages: owners/transfers 페이지 상한
    """

    provider = ProviderName.MORALIS

    def __init__(
        self,
        client: AsyncProviderClient,
        api_key: str,
        counters: OperationalCounters,
        *,
        max_pages: int = DEFAULT_MAX_PAGES,
        base_url: str = MORALIS_BASE_URL,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._counters = counters
        self._max_pages = max_pages
        self._base_url = base_url.rstrip("/")

    @property
    def available(self) -> bool:
        """API 키 설정 여부."""
        return bool(self._api_key)

    def _unavailable(self) -> ProviderResult[Any]:
        self._counters.inc("providers.moralis.missing_key")
        return ProviderResult.unavailable(self.provider)

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-API-Key": self._api_key, "Accept": "application/json"}

    async def holder_stats(self, contract: str, chain: str) -> ProviderResult[int]:
        """총 holder 수.

        Returns:
            ok(total>0) | empty | error | unavailable
        """
        if not self.available:
            return self._unavailable()
        address = normalize_address(contract)
        try:
            payload = await self._client.get_json(
                f"{self._base_url}/erc20/{address}/holders",
                params={"chain": map_chain(MORALIS_CHAINS, chain, "eth")},
                headers=self._headers,
            )
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "holder_stats", e)

        total = 0
        if isinstance(payload, dict):
            for field in _HOLDER_TOTAL_FIELDS:
                try:
                    value = int(payload.get(field) or 0)
                except (TypeError, ValueError):
                    continue
                if value > 0:
                    total = value
                    break
        if total <= 0:
            return ProviderResult.empty(self.provider)
        return ProviderResult.success(total, self.provider)

    async def top_holders(self, contract: str, chain: str) -> ProviderResult[list[RawHolder]]:
        """전체 holder 리스트 (raw balance 내림차순).

        cursor pagination으로 max_pages까지 수집하고, 중복 주소는 합산합니다.
        """
        if not self.available:
            return self._unavailable()
        address = normalize_address(contract)
        url = f"{self._base_url}/erc20/{address}/owners"
        balances: dict[str, int] = {}
        cursor: str | None = None
        pages = 0
        try:
            while True:
                params: dict[str, str | int] = {
                    "chain": map_chain(MORALIS_CHAINS, chain, "eth"),
                    "limit": MORALIS_PAGE_LIMIT,
                }
                if cursor:
                    params["cursor"] = cursor
                payload = await self._client.get_json(url, params=params, headers=self._headers)
                for item in _items(payload):
                    owner = normalize_address(str(item.get("owner_address") or item.get("address") or ""))
                    if not owner:
                        continue
                    balances[owner] = balances.get(owner, 0) + int(str(item.get("balance") or "0"))
                cursor = _next_cursor(payload)
                pages += 1
                if not cursor or pages >= self._max_pages:
                    break
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "top_holders", e)

        if cursor:
            logger.warning(f"Moralis owners truncated at {pages} pages for {address}")
        holders = sorted(
            (RawHolder(address=a, balance=b) for a, b in balances.items()),
            key=lambda h: h.balance,
            reverse=True,
        )
        if not holders:
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(holders, self.provider)

    async def transfer_series(
        self,
        contract: str,
        chain: str,
        days: int,
        *,
        today: date | None = None,
    ) -> ProviderResult[list[SeriesPoint]]:
        """일별 전송 건수 (윈도우의 모든 날짜 포함)."""
        if not self.available:
            return self._unavailable()
        address = normalize_address(contract)
        window = DayWindow.last_days(days, today)
        url = f"{self._base_url}/erc20/{address}/transfers"
        transfer_days: list[date] = []
        cursor: str | None = None
        pages = 0
        try:
            while True:
                params: dict[str, str | int] = {
                    "chain": map_chain(MORALIS_CHAINS, chain, "eth"),
                    "from_date": window.since.isoformat(),
                    "to_date": window.till.isoformat(),
                    "limit": MORALIS_PAGE_LIMIT,
                }
                if cursor:
                    params["cursor"] = cursor
                payload = await self._client.get_json(url, params=params, headers=self._headers)
                for item in _items(payload):
                    ts = item.get("block_timestamp")
                    if ts:
                        transfer_days.append(parse_day(str(ts)))
                cursor = _next_cursor(payload)
                pages += 1
                if not cursor or pages >= self._max_pages:
                    break
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "transfer_series", e)

        if not transfer_days:
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(daily_counts(transfer_days, window), self.provider)
