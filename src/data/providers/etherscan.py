"""Etherscan API v2 adapter: daily ERC-20 transfer counts.

`tokentx` 결과를 명시적 UTC 일 윈도우로 버킷팅합니다.

Rules Applied:
    - #23 Exception Handling: Adapter boundary → ProviderResult
    - #19 Git Security: API key from settings (query param)
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from src.core.exceptions import ProviderResponseError
from src.data.providers.base import (
    ADAPTER_ERRORS,
    ETHERSCAN_CHAIN_IDS,
    ProviderResult,
    failure_result,
    normalize_address,
)
from src.data.providers.windows import DayWindow, daily_counts, parse_day
from src.models.types import ProviderName

if TYPE_CHECKING:
    from src.data.providers.client import AsyncProviderClient
    from src.models.holders import SeriesPoint
    from src.monitoring.metrics import OperationalCounters

ETHERSCAN_BASE_URL = "https://api.etherscan.io/v2/api"
ETHERSCAN_PAGE_SIZE = 10_000

# status "0"이지만 오류가 아닌 응답
_NO_RESULTS_MESSAGE = "No transactions found"


class EtherscanAdapter:
    """Etherscan tokentx 어댑터.

    Args:
        client: Etherscan 전용 AsyncProviderClient
        api_key: API 키 (빈 문자열이면 비가용)
        counters: 운영 카운터
    """

    provider = ProviderName.ETHERSCAN

    def __init__(
        self,
        client: AsyncProviderClient,
        api_key: str,
        counters: OperationalCounters,
        *,
        base_url: str = ETHERSCAN_BASE_URL,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._counters = counters
        self._base_url = base_url

    @property
    def available(self) -> bool:
        """API 키 설정 여부."""
        return bool(self._api_key)

    async def transfer_counts_daily(
        self,
        contract: str,
        chain: str,
        days: int,
        *,
        today: date | None = None,
    ) -> ProviderResult[list[SeriesPoint]]:
        """최근 days일 일별 전송 건수 (빈 날은 0).

        최신순 한 페이지를 읽고 윈도우 밖 전송은 버립니다.
        """
        if not self.available:
            self._counters.inc("providers.etherscan.missing_key")
            return ProviderResult.unavailable(self.provider)
        chain_id = ETHERSCAN_CHAIN_IDS.get(chain.lower())
        if chain_id is None:
            return ProviderResult.empty(self.provider, [])

        window = DayWindow.last_days(days, today)
        try:
            payload = await self._client.get_json(
                self._base_url,
                params={
                    "chainid": chain_id,
                    "module": "account",
                    "action": "tokentx",
                    "contractaddress": normalize_address(contract),
                    "page": 1,
                    "offset": ETHERSCAN_PAGE_SIZE,
                    "sort": "desc",
                    "apikey": self._api_key,
                },
            )
            result = (payload or {}).get("result")
            if str((payload or {}).get("status")) != "1":
                if (payload or {}).get("message") == _NO_RESULTS_MESSAGE:
                    return ProviderResult.empty(self.provider, [])
                msg = f"Etherscan error: {result or (payload or {}).get('message')}"
                raise ProviderResponseError(msg, context={"chain": chain})
            transfer_days = [parse_day(str(tx["timeStamp"])) for tx in result or [] if tx.get("timeStamp")]
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "transfer_counts_daily", e)

        if not any(day in window for day in transfer_days):
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(daily_counts(transfer_days, window), self.provider)
