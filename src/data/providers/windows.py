"""Explicit UTC day windows and per-day bucketing.

모든 시계열 조회는 명시적인 [since, till] 윈도우를 사용합니다
(무제한 "since forever" 쿼리는 빈 결과를 유발).

Rules Applied:
    - #10 Python Standards: Modern typing
    - pandas: date_range / value_counts 기반 버킷팅
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

import pandas as pd

from src.models.holders import SeriesPoint


@dataclass(frozen=True)
class DayWindow:
    """UTC 일 단위 윈도우 [since, till] (양 끝 포함).

    Attributes:
        since: 시작일
        till: 종료일 (보통 오늘)
    """

    since: date
    till: date

    @classmethod
    def last_days(cls, days: int, today: date | None = None) -> DayWindow:
        """오늘을 포함한 최근 days일 윈도우."""
        till = today or datetime.now(UTC).date()
        return cls(since=till - timedelta(days=max(1, days) - 1), till=till)

    @property
    def dates(self) -> list[date]:
        """윈도우 내 모든 날짜 (오래된 순)."""
        return [ts.date() for ts in pd.date_range(self.since, self.till, freq="D")]

    @property
    def since_dt(self) -> datetime:
        """시작일 00:00:00 UTC."""
        return datetime.combine(self.since, time.min, tzinfo=UTC)

    @property
    def till_dt(self) -> datetime:
        """종료일 23:59:59 UTC."""
        return datetime.combine(self.till, time(23, 59, 59), tzinfo=UTC)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.since <= day <= self.till


def daily_counts(days: Iterable[date], window: DayWindow) -> list[SeriesPoint]:
    """날짜 목록 → 윈도우 전체 일별 건수 (빈 날은 0).

    Args:
        days: 이벤트 발생 날짜들 (윈도우 밖은 무시)
        window: 대상 윈도우

    Returns:
        윈도우의 모든 날짜에 대한 SeriesPoint 리스트
    """
    counts = pd.Series([d for d in days if d in window], dtype="object").value_counts()
    filled = counts.reindex(window.dates, fill_value=0)
    return [SeriesPoint(date=d, value=float(v)) for d, v in filled.items()]


def daily_sums(values: Iterable[tuple[date, float]], window: DayWindow | None = None) -> list[SeriesPoint]:
    """(날짜, 값) 목록 → 일별 합계 (오래된 순).

    window가 주어지면 윈도우 밖 값은 무시합니다 (빈 날은 채우지 않음).
    """
    rows = [(d, v) for d, v in values if window is None or d in window]
    if not rows:
        return []
    frame = pd.DataFrame(rows, columns=["date", "value"])
    summed = frame.groupby("date")["value"].sum().sort_index()
    return [SeriesPoint(date=d, value=float(v)) for d, v in summed.items()]


def parse_day(value: str | int | float) -> date:
    """ISO 문자열 / Unix seconds → UTC 날짜.

    Raises:
        ValueError: 파싱 불가 값
    """
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC).date()
    text = value.strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text), tz=UTC).date()
    return date.fromisoformat(text[:10])
