"""BitQuery GraphQL adapter (streaming endpoint, Bearer auth).

모든 시계열 쿼리는 명시적인 since/till 윈도우를 사용합니다.
200 응답이라도 GraphQL `errors`가 있으면 실패로 처리합니다.

Rules Applied:
    - #23 Exception Handling: Adapter boundary → ProviderResult
    - #19 Git Security: API key from settings
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from src.core.exceptions import ProviderResponseError
from src.data.providers.base import (
    ADAPTER_ERRORS,
    BITQUERY_NETWORKS,
    ProviderResult,
    failure_result,
    map_chain,
    normalize_address,
)
from src.data.providers.windows import DayWindow, parse_day
from src.models.holders import RawHolder, SeriesPoint
from src.models.types import ProviderName

if TYPE_CHECKING:
    from src.data.providers.client import AsyncProviderClient
    from src.monitoring.metrics import OperationalCounters

BITQUERY_ENDPOINT = "https://streaming.bitquery.io/eap"
DEFAULT_DECIMALS = 18
MAX_TOP_HOLDERS = 1000

# legacy `ethereum(network: ...)` cube 네트워크 이름
_LEGACY_NETWORKS: dict[str, str] = {
    "ethereum": "ethereum",
    "polygon": "matic",
    "bsc": "bsc",
}

HOLDER_COUNT_QUERY = """
query ($network: evm_network, $token: String!) {
  EVM(network: $network) {
    BalanceUpdates(
      where: {
        Currency: {SmartContract: {is: $token}}
        BalanceUpdate: {Amount: {gt: "0"}}
      }
      limitBy: {by: BalanceUpdate_Address, count: 1}
      limit: {count: 100000}
    ) {
      count
    }
  }
}
"""

TOP_HOLDERS_QUERY = """
query ($network: evm_network, $token: String!, $limit: Int!) {
  EVM(network: $network) {
    BalanceUpdates(
      where: {Currency: {SmartContract: {is: $token}}}
      orderBy: {descendingByField: "balance"}
      limit: {count: $limit}
    ) {
      BalanceUpdate { Address }
      Currency { Decimals }
      balance: sum(of: BalanceUpdate_Amount, selectWhere: {gt: "0"})
    }
  }
}
"""

HOLDER_SERIES_QUERY = """
query ($network: EthereumNetwork!, $address: String!, $since: ISO8601DateTime, $till: ISO8601DateTime) {
  ethereum(network: $network) {
    transfers(date: {since: $since, till: $till}, currency: {is: $address}) {
      date: date { date }
      distinctReceivers: count(uniq: receiver)
    }
  }
}
"""

TX_SERIES_QUERY = """
query ($network: EthereumNetwork!, $address: String!, $since: ISO8601DateTime, $till: ISO8601DateTime) {
  ethereum(network: $network) {
    transfers(date: {since: $since, till: $till}, currency: {is: $address}) {
      date: date { date }
      c: count
    }
  }
}
"""


def to_raw_amount(amount: str | int | float, decimals: int) -> int:
    """토큰 단위 decimal 문자열 → 최소 단위 정수.

    Decimal 산술 컨텍스트(28자리)를 거치지 않고 계수와 지수만으로 정수 연산합니다.
    decimals보다 긴 소수부는 버림 처리됩니다.

    Example:
        >>> to_raw_amount("1.5", 18)
        1500000000000000000
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as e:
        msg = f"Invalid amount: {amount!r}"
        raise ValueError(msg) from e
    if not value.is_finite():
        msg = f"Invalid amount: {amount!r}"
        raise ValueError(msg)
    sign, digits, exponent = value.as_tuple()
    coefficient = int("".join(map(str, digits)) or "0")
    shift = int(exponent) + decimals
    raw = coefficient * 10**shift if shift >= 0 else coefficient // 10**-shift
    return -raw if sign else raw


class BitqueryAdapter:
    """BitQuery holder/시계열 어댑터.

    Args:
        client: BitQuery 전용 AsyncProviderClient
        api_key: API 키 (빈 문자열이면 비가용)
        counters: 운영 카운터
    """

    provider = ProviderName.BITQUERY

    def __init__(
        self,
        client: AsyncProviderClient,
        api_key: str,
        counters: OperationalCounters,
        *,
        endpoint: str = BITQUERY_ENDPOINT,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._counters = counters
        self._endpoint = endpoint

    @property
    def available(self) -> bool:
        """API 키 설정 여부."""
        return bool(self._api_key)

    def _unavailable(self) -> ProviderResult[Any]:
        self._counters.inc("providers.bitquery.missing_key")
        return ProviderResult.unavailable(self.provider)

    async def _query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        payload = await self._client.post_json(
            self._endpoint,
            json={"query": query, "variables": variables},
            headers={"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
        )
        if not isinstance(payload, dict):
            msg = "Unexpected BitQuery payload"
            raise ProviderResponseError(msg)
        errors = payload.get("errors")
        if errors:
            self._counters.inc("providers.bitquery.graphql_errors")
            first = errors[0].get("message") if isinstance(errors[0], dict) else errors[0]
            raise ProviderResponseError(f"GraphQL error: {first}", context={"errors": len(errors)})
        return payload.get("data") or {}

    async def holder_count(self, contract: str, chain: str) -> ProviderResult[int]:
        """양수 잔고 보유 주소 수."""
        if not self.available:
            return self._unavailable()
        try:
            data = await self._query(
                HOLDER_COUNT_QUERY,
                {"network": map_chain(BITQUERY_NETWORKS, chain, "eth"), "token": normalize_address(contract)},
            )
            rows = (data.get("EVM") or {}).get("BalanceUpdates") or []
            total = int(rows[0].get("count") or 0) if rows else 0
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "holder_count", e)
        if total <= 0:
            return ProviderResult.empty(self.provider)
        return ProviderResult.success(total, self.provider)

    async def top_holders(
        self, contract: str, chain: str, limit: int = 200
    ) -> ProviderResult[list[RawHolder]]:
        """상위 holder (raw balance 내림차순)."""
        if not self.available:
            return self._unavailable()
        try:
            data = await self._query(
                TOP_HOLDERS_QUERY,
                {
                    "network": map_chain(BITQUERY_NETWORKS, chain, "eth"),
                    "token": normalize_address(contract),
                    "limit": max(1, min(MAX_TOP_HOLDERS, limit)),
                },
            )
            holders: dict[str, int] = {}
            for row in (data.get("EVM") or {}).get("BalanceUpdates") or []:
                address = normalize_address(str((row.get("BalanceUpdate") or {}).get("Address") or ""))
                decimals = int((row.get("Currency") or {}).get("Decimals") or DEFAULT_DECIMALS)
                raw = to_raw_amount(row.get("balance") or "0", decimals)
                if address and raw > 0:
                    holders[address] = holders.get(address, 0) + raw
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "top_holders", e)

        ranked = sorted(
            (RawHolder(address=a, balance=b) for a, b in holders.items()),
            key=lambda h: h.balance,
            reverse=True,
        )
        if not ranked:
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(ranked, self.provider)

    async def _daily_series(
        self, query: str, value_field: str, contract: str, chain: str, window: DayWindow, operation: str
    ) -> ProviderResult[list[SeriesPoint]]:
        try:
            data = await self._query(
                query,
                {
                    "network": map_chain(_LEGACY_NETWORKS, chain, "ethereum"),
                    "address": normalize_address(contract),
                    "since": window.since_dt.isoformat(),
                    "till": window.till_dt.isoformat(),
                },
            )
            rows = (data.get("ethereum") or {}).get("transfers") or []
            points = sorted(
                (
                    SeriesPoint(
                        date=parse_day(str((row.get("date") or {}).get("date") or "")),
                        value=float(row.get(value_field) or 0),
                    )
                    for row in rows
                    if (row.get("date") or {}).get("date")
                ),
                key=lambda p: p.date,
            )
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, operation, e)
        if not points:
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(points, self.provider)

    async def holder_series(
        self, contract: str, chain: str, since: date, till: date
    ) -> ProviderResult[list[SeriesPoint]]:
        """일별 고유 수신자 수 ([since, till] 윈도우)."""
        if not self.available:
            return self._unavailable()
        return await self._daily_series(
            HOLDER_SERIES_QUERY, "distinctReceivers", contract, chain,
            DayWindow(since=since, till=till), "holder_series",
        )

    async def tx_series(
        self, contract: str, chain: str, days: int, *, today: date | None = None
    ) -> ProviderResult[list[SeriesPoint]]:
        """일별 전송 건수 (최근 days일 윈도우)."""
        if not self.available:
            return self._unavailable()
        return await self._daily_series(
            TX_SERIES_QUERY, "c", contract, chain,
            DayWindow.last_days(days, today), "tx_series",
        )
