"""Display formatters for CLI tables and snapshot inspection.

Raw balance 변환(`format_wei_to_decimal`)은 정수 연산만 사용하여
18-decimals 토큰에서도 정밀도를 잃지 않습니다.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime

_THOUSAND = 1_000
_MILLION = 1_000_000
_BILLION = 1_000_000_000


def format_number(value: float) -> str:
    """천 단위 구분 기호 (예: 1234567 → "1,234,567")."""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def format_currency(value: float) -> str:
    """USD 축약 표기 (예: 2_500_000 → "$2.50M", 1500 → "$1.5k")."""
    if abs(value) >= _MILLION:
        return f"${value / _MILLION:.2f}M"
    if abs(value) >= _THOUSAND:
        return f"${value / _THOUSAND:.1f}k"
    return f"${value:g}"


def format_percentage(value: float) -> str:
    """부호 포함 퍼센트 (예: 3.14 → "+3.1%")."""
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.1f}%"


def format_address(address: str) -> str:
    """주소 축약 (예: "0x1234...abcd")."""
    return f"{address[:6]}...{address[-4:]}"


def format_relative_time(moment: datetime, now: datetime | None = None) -> str:
    """경과 시간 표기 ("just now", "5m ago", "3h ago", "2d ago")."""
    now = now or datetime.now(UTC)
    minutes = round((now - moment).total_seconds() / 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:  # noqa: PLR2004
        return f"{minutes}m ago"
    hours = round(minutes / 60)
    if hours < 24:  # noqa: PLR2004
        return f"{hours}h ago"
    return f"{round(hours / 24)}d ago"


def format_wei_to_decimal(raw: int | str, decimals: int = 18, precision: int = 6) -> str:
    """최소 단위 정수 → 10진 문자열 (정수 연산, 뒤쪽 0 제거).

    Args:
        raw: 최소 단위 잔고 (int 또는 정수 문자열)
        decimals: 토큰 decimals
        precision: 소수점 이하 최대 자릿수 (버림)

    Returns:
        10진 문자열 (파싱 불가 입력은 "0")

    Example:
        >>> format_wei_to_decimal(1_500_000_000_000_000_000)
        '1.5'
    """
    try:
        value = raw if isinstance(raw, int) else int(str(raw).strip() or "0")
    except ValueError:
        return "0"
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**decimals)
    if frac == 0:
        return f"{sign}{whole}"
    frac_text = str(frac).zfill(decimals)[:precision].rstrip("0")
    return f"{sign}{whole}.{frac_text}" if frac_text else f"{sign}{whole}"


def format_decimal_balance(text: str, digits: int = 4) -> str:
    """10진 문자열 → 축약 표기.

    1e3/1e6/1e9 이상은 소수 둘째 자리 + k/M/B, 미만은 소수 digits 자리에서
    뒤쪽 0을 제거합니다.

    Example:
        >>> format_decimal_balance("1234.5600")
        '1.23k'
        >>> format_decimal_balance("10.5000")
        '10.5'
    """
    if not text:
        return "0"
    negative = text.startswith("-")
    body = text[1:] if negative else text
    whole, _, frac = body.partition(".")
    try:
        amount = float(whole or "0")
    except ValueError:
        return text
    if not math.isfinite(amount):
        return text
    sign = "-" if negative else ""
    for threshold, suffix in ((_BILLION, "B"), (_MILLION, "M"), (_THOUSAND, "k")):
        if amount >= threshold:
            return f"{sign}{amount / threshold:.2f}{suffix}"
    trimmed = frac[:digits].rstrip("0")
    return f"{sign}{whole}.{trimmed}" if trimmed else f"{sign}{whole}"
