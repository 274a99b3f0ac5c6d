"""Dune Analytics API adapter (v1).

Saved query를 `token_address` 파라미터로 실행하고 상태를 폴링한 뒤 결과 행을 읽습니다.

Flow:
    1. POST /query/{query_id}/execute      → execution_id
    2. GET  /execution/{id}/status         → QUERY_STATE_* (bounded polling)
    3. GET  /execution/{id}/results        → result.rows

Rules Applied:
    - #23 Exception Handling: Adapter boundary → ProviderResult
    - #19 Git Security: API key from settings (X-Dune-API-Key header)
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from src.core.exceptions import ProviderResponseError
from src.data.providers.base import (
    ADAPTER_ERRORS,
    ProviderResult,
    failure_result,
    normalize_address,
)
from src.data.providers.windows import DayWindow, daily_sums, parse_day
from src.models.metrics import RankedHolder
from src.models.types import ProviderName

if TYPE_CHECKING:
    from src.data.providers.client import AsyncProviderClient
    from src.models.holders import SeriesPoint
    from src.monitoring.metrics import OperationalCounters

DUNE_BASE_URL = "https://api.dune.com/api/v1"
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_POLLS = 30

STATE_COMPLETED = "QUERY_STATE_COMPLETED"
TERMINAL_FAILURE_STATES = frozenset(
    {"QUERY_STATE_FAILED", "QUERY_STATE_CANCELLED", "QUERY_STATE_EXPIRED"}
)


def _first(row: dict[str, Any], *fields: str) -> Any:
    for field in fields:
        value = row.get(field)
        if value is not None:
            return value
    return None


class DuneAdapter:
    """Dune saved query 실행 어댑터.

    Args:
        client: Dune 전용 AsyncProviderClient
        api_key: API 키 (빈 문자열이면 비가용)
        counters: 운영 카운터
        holders_query_id: top holders 쿼리 ID
        volume_query_id: 일별 거래량 쿼리 ID
        poll_interval: 상태 폴링 간격 (초)
        max_polls: 최대 폴링 횟수
    """

    provider = ProviderName.DUNE

    def __init__(
        self,
        client: AsyncProviderClient,
        api_key: str,
        counters: OperationalCounters,
        *,
        holders_query_id: int | None = None,
        volume_query_id: int | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int = DEFAULT_MAX_POLLS,
        base_url: str = DUNE_BASE_URL,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._counters = counters
        self._holders_query_id = holders_query_id
        self._volume_query_id = volume_query_id
        self._poll_interval = poll_interval
        self._max_polls = max(1, max_polls)
        self._base_url = base_url.rstrip("/")

    @property
    def available(self) -> bool:
        """API 키 설정 여부."""
        return bool(self._api_key)

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-Dune-API-Key": self._api_key}

    async def run_query(self, query_id: int, parameters: dict[str, Any]) -> list[dict[str, Any]]:
        """쿼리 실행 → 완료까지 폴링 → 결과 행.

        Raises:
            ProviderResponseError: 실행 실패 상태, 폴링 한도 초과, 응답 형식 오류
            NetworkError: HTTP 실패
        """
        started = await self._client.post_json(
            f"{self._base_url}/query/{query_id}/execute",
            json={"query_parameters": parameters},
            headers=self._headers,
        )
        execution_id = (started or {}).get("execution_id")
        if not execution_id:
            msg = "Dune execute response has no execution_id"
            raise ProviderResponseError(msg, context={"query_id": query_id})

        for _ in range(self._max_polls):
            status = await self._client.get_json(
                f"{self._base_url}/execution/{execution_id}/status", headers=self._headers
            )
            state = str((status or {}).get("state") or "")
            if state == STATE_COMPLETED:
                break
            if state in TERMINAL_FAILURE_STATES:
                msg = f"Dune execution ended in {state}"
                raise ProviderResponseError(msg, context={"query_id": query_id, "execution_id": execution_id})
            await asyncio.sleep(self._poll_interval)
        else:
            self._counters.inc("providers.dune.poll_timeouts")
            msg = f"Dune execution not finished after {self._max_polls} polls"
            raise ProviderResponseError(msg, context={"query_id": query_id, "execution_id": execution_id})

        results = await self._client.get_json(
            f"{self._base_url}/execution/{execution_id}/results", headers=self._headers
        )
        rows = ((results or {}).get("result") or {}).get("rows") or []
        return [row for row in rows if isinstance(row, dict)]

    def _unavailable(self) -> ProviderResult[Any]:
        if not self.available:
            self._counters.inc("providers.dune.missing_key")
        return ProviderResult.unavailable(self.provider)

    async def top_holders(self, contract: str, limit: int) -> ProviderResult[list[RankedHolder]]:
        """쿼리 결과 기반 상위 holder (토큰 단위 잔고, percentage 0..100)."""
        query_id = self._holders_query_id
        if not self.available or query_id is None:
            return self._unavailable()
        try:
            rows = await self.run_query(query_id, {"token_address": normalize_address(contract)})
            holders: list[RankedHolder] = []
            for row in rows[:limit]:
                address = _first(row, "address", "holder", "wallet")
                if not address:
                    continue
                holders.append(
                    RankedHolder(
                        rank=len(holders) + 1,
                        address=normalize_address(str(address)),
                        balance=float(Decimal(str(_first(row, "balance", "amount") or 0))),
                        percentage=max(0.0, float(_first(row, "percentage", "share_pct") or 0)),
                    )
                )
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "top_holders", e)

        if not holders:
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(holders, self.provider)

    async def volume_series(
        self, contract: str, days: int, *, today: date | None = None
    ) -> ProviderResult[list[SeriesPoint]]:
        """쿼리 결과 기반 일별 USD 거래량 (윈도우 밖 행은 무시)."""
        query_id = self._volume_query_id
        if not self.available or query_id is None:
            return self._unavailable()
        window = DayWindow.last_days(days, today)
        try:
            rows = await self.run_query(
                query_id,
                {
                    "token_address": normalize_address(contract),
                    "since": window.since.isoformat(),
                    "till": window.till.isoformat(),
                },
            )
            values = [
                (parse_day(_first(row, "day", "date", "block_date")), float(_first(row, "volume_usd", "volume") or 0))
                for row in rows
                if _first(row, "day", "date", "block_date") is not None
            ]
        except ADAPTER_ERRORS as e:
            return failure_result(self.provider, "volume_series", e)

        series = daily_sums(values, window)
        if not series:
            return ProviderResult.empty(self.provider, [])
        return ProviderResult.success(series, self.provider)
