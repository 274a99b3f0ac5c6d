"""Deterministic synthetic series builders.

실제 시리즈가 비어 있을 때 UI가 null 차트를 그리지 않도록 결정적인 대체 시리즈를
생성합니다. 결과는 항상 `synthetic=True` / `source="synthetic"|"mock"`으로 태그되어야 합니다.

형태: base + linear trend + bounded sinusoid (난수 없음, 같은 입력 → 같은 출력)

Rules Applied:
    - #12 Data Engineering: numpy vectorized
"""

from __future__ import annotations

from datetime import date

import numpy as np
import numpy.typing as npt

from src.data.providers.windows import DayWindow
from src.models.holders import SeriesPoint


def _round_half_up(values: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    return np.floor(values + 0.5)


def _to_points(window: DayWindow, values: npt.NDArray[np.float64]) -> list[SeriesPoint]:
    return [SeriesPoint(date=d, value=float(v)) for d, v in zip(window.dates, values, strict=True)]


def holders_series(total_holders: int, days: int, *, today: date | None = None) -> list[SeriesPoint]:
    """현재 holder 수에 수렴하는 증가 시리즈.

    base = max(1, round(total/2)), 마지막 포인트 = total.

    Example:
        >>> [p.value for p in holders_series(100, 2)]
        [75.0, 100.0]
    """
    window = DayWindow.last_days(days, today)
    n = len(window.dates)
    base = max(1.0, float(_round_half_up(np.array([total_holders / 2]))[0]))
    steps = (np.arange(n) + 1) / n
    values = base + _round_half_up(steps * (total_holders - base))
    return _to_points(window, values)


def volume_series(volume_24h: float, days: int, *, today: date | None = None) -> list[SeriesPoint]:
    """24h 거래량에 수렴하는 추세 + 진동 시리즈 (음수 없음)."""
    window = DayWindow.last_days(days, today)
    n = len(window.dates)
    idx = np.arange(n, dtype=np.float64)
    base = float(_round_half_up(np.array([volume_24h / 3]))[0])
    trend = base + _round_half_up(idx / max(1, n - 1) * (volume_24h - base))
    wave = _round_half_up(np.sin(idx / 3) * base * 0.15)
    return _to_points(window, np.maximum(0.0, trend + wave))


def tx_series(days: int, *, today: date | None = None) -> list[SeriesPoint]:
    """일별 전송 건수 대체 시리즈 (약 50건 기준)."""
    window = DayWindow.last_days(days, today)
    idx = np.arange(len(window.dates), dtype=np.float64)
    values = _round_half_up(50 + np.sin(idx / 3) * 10 + idx * 2)
    return _to_points(window, np.maximum(0.0, values))


def holder_count_series(days: int, *, today: date | None = None) -> list[SeriesPoint]:
    """앵커 없는 holder 수 대체 시리즈."""
    window = DayWindow.last_days(days, today)
    idx = np.arange(len(window.dates), dtype=np.float64)
    values = 50 + idx * 5 + _round_half_up(np.sin(idx / 3) * 10)
    return _to_points(window, values)
