"""Market data models (DEX pairs, token price).

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _num(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


class DexPair(BaseModel):
    """Dexscreener pair (정규화).

    Attributes:
        chain_id: 체인 ID (예: "ethereum")
        dex_id: DEX 이름 (예: "uniswap")
        pair_address: 풀 주소 (v4는 32-byte pool id)
        labels: 버전 라벨 (예: ["v3"])
        liquidity_usd: USD 유동성
    """

    model_config = ConfigDict(frozen=True)

    chain_id: str = ""
    dex_id: str = "unknown"
    pair_address: str = ""
    labels: tuple[str, ...] = ()
    price_usd: float = 0.0
    liquidity_usd: float = Field(default=0.0, ge=0)
    volume_h24: float = Field(default=0.0, ge=0)
    price_change_h24: float = 0.0
    market_cap: float | None = None
    base_address: str = ""
    base_name: str | None = None
    base_symbol: str | None = None
    quote_address: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> DexPair:
        """Dexscreener API pair dict → DexPair."""
        base = raw.get("baseToken") or {}
        quote = raw.get("quoteToken") or {}
        market_cap = raw.get("marketCap") or raw.get("fdv")
        return cls(
            chain_id=str(raw.get("chainId") or "").lower(),
            dex_id=str(raw.get("dexId") or "unknown"),
            pair_address=str(raw.get("pairAddress") or "").lower(),
            labels=tuple(str(label).lower() for label in raw.get("labels") or ()),
            price_usd=_num(raw.get("priceUsd")),
            liquidity_usd=max(0.0, _num((raw.get("liquidity") or {}).get("usd"))),
            volume_h24=max(0.0, _num((raw.get("volume") or {}).get("h24"))),
            price_change_h24=_num((raw.get("priceChange") or {}).get("h24")),
            market_cap=_num(market_cap) if market_cap is not None else None,
            base_address=str(base.get("address") or "").lower(),
            base_name=base.get("name"),
            base_symbol=base.get("symbol"),
            quote_address=str(quote.get("address") or "").lower(),
        )


class TokenPrice(BaseModel):
    """토큰 가격/거래량."""

    model_config = ConfigDict(frozen=True)

    price: float = Field(..., ge=0)
    change_24h: float = 0.0
    market_cap: float | None = None
    volume_24h: float = Field(default=0.0, ge=0)
