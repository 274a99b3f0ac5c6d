"""Holder analytics models.

Raw balance는 항상 int(임의 정밀도)로 유지하고, decimals 정규화 이후에만
float 표시값으로 변환합니다.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
    - #10 Python Standards: Modern typing (X | None)
"""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.types import MOCK_SOURCE, HolderTag


class RawHolder(BaseModel):
    """프로바이더가 반환한 원시 holder 레코드.

    Attributes:
        address: 0x hex 주소 (소문자)
        balance: 최소 단위 잔고 (wei 등)
    """

    model_config = ConfigDict(frozen=True)

    address: str
    balance: int = Field(..., ge=0)

    @field_validator("address", mode="after")
    @classmethod
    def lowercase_address(cls, v: str) -> str:
        """주소 소문자 정규화."""
        return v.lower()


class TokenMeta(BaseModel):
    """ERC-20 온체인 메타데이터.

    Attributes:
        decimals: 소수 자릿수
        total_supply: 최소 단위 총 공급량
        supply_unknown: RPC 조회 실패로 기본값이 사용된 경우 True
    """

    model_config = ConfigDict(frozen=True)

    decimals: int = Field(default=18, ge=0, le=255)
    total_supply: int = Field(default=0, ge=0)
    supply_unknown: bool = False


class TopHolder(BaseModel):
    """정규화된 상위 holder.

    Attributes:
        address: 주소 (소문자)
        balance: 토큰 단위 잔고 (decimals 정규화)
        total_supply_share: balance / total_supply (0..1)
        circulating_share: balance / circulating supply (>= 0)
        tags: burn, lp 등 분류 태그
    """

    model_config = ConfigDict(frozen=True)

    address: str
    balance: float
    total_supply_share: float = Field(..., ge=0)
    circulating_share: float = Field(..., ge=0)
    tags: frozenset[HolderTag] = Field(default_factory=frozenset)


class HoldersSummary(BaseModel):
    """Holders service 요약 결과.

    provider가 모두 실패해도 예외 없이 partial=True로 반환됩니다.
    """

    model_config = ConfigDict(frozen=True)

    top_holders: list[TopHolder] = Field(default_factory=list)
    total_holders: int = Field(default=0, ge=0)
    source: str = MOCK_SOURCE
    last_updated_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
    partial: bool = False
    supply_unknown: bool = False


class SeriesPoint(BaseModel):
    """일별 시계열 포인트."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    value: float


class HolderSeries(BaseModel):
    """Holder 수 시계열 결과.

    Attributes:
        chart_data: 일별 포인트 (오래된 순)
        source: 데이터 소스 또는 "synthetic"
        synthetic: 합성 데이터 여부
    """

    model_config = ConfigDict(frozen=True)

    chart_data: list[SeriesPoint] = Field(default_factory=list)
    source: str
    synthetic: bool = False
