"""Pydantic Settings for configuration management.

This module provides centralized configuration management using
pydantic-settings. All settings are loaded from environment variables
and/or .env files with type validation.

Features:
    - SecretStr for provider API keys (auto-masking in logs)
    - Provider priority parsed once into a validated enum list
    - Timeout, retry and circuit breaker parameters
    - RPC endpoint resolution per chain

Rules Applied:
    - #11 Pydantic Modeling: BaseSettings, SecretStr
    - #19 Git Security: No secrets in code
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from src.models.types import HOLDER_PROVIDERS, ProviderName

DEFAULT_PUBLIC_RPC = "https://rpc.ankr.com/eth"

# 체인별 공개 RPC (키 없이 사용하는 마지막 fallback)
PUBLIC_RPC_URLS: dict[str, str] = {
    "ethereum": DEFAULT_PUBLIC_RPC,
    "polygon": "https://rpc.ankr.com/polygon",
    "base": "https://rpc.ankr.com/base",
    "arbitrum": "https://rpc.ankr.com/arbitrum",
    "bsc": "https://rpc.ankr.com/bsc",
    "optimism": "https://rpc.ankr.com/optimism",
}


class DashboardSettings(BaseSettings):
    """스냅샷 파이프라인 설정.

    환경 변수 또는 .env 파일에서 설정을 로드합니다.
    API 키는 SecretStr로 보호되어 로그에 노출되지 않습니다.
    키가 비어 있으면 해당 프로바이더만 비가용 처리됩니다.

    Environment Variables:
        - MORALIS_API_KEY, BITQUERY_API_KEY, ETHERSCAN_API_KEY, DUNE_API_KEY,
          COINGECKO_API_KEY, THEGRAPH_API_KEY: 프로바이더 API 키
        - QUICKNODE_RPC, ALCHEMY_KEY, INFURA_KEY, PUBLIC_RPC_URL: RPC 엔드포인트
        - REDIS_URL: 공유 key-value 저장소 (circuit breaker, 카운터)
        - DATABASE_PATH: SQLite 파일 경로 (기본: data/snapshots.db)
        - HOLDERS_PROVIDER_PRIORITY: holder 프로바이더 우선순위 (예: "bitquery,moralis")

    Example:
        >>> settings = get_settings()
        >>> settings.holders_provider_priority
        [<ProviderName.MORALIS: 'moralis'>]
        >>> settings.moralis_api_key
        SecretStr('**********')
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # 알 수 없는 환경 변수 무시
    )

    # ==========================================================================
    # API Credentials (SecretStr for security)
    # ==========================================================================
    moralis_api_key: SecretStr = Field(default=SecretStr(""), description="Moralis API Key")
    bitquery_api_key: SecretStr = Field(default=SecretStr(""), description="BitQuery API Key")
    etherscan_api_key: SecretStr = Field(default=SecretStr(""), description="Etherscan API Key")
    dune_api_key: SecretStr = Field(default=SecretStr(""), description="Dune API Key")
    coingecko_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="CoinGecko demo API Key (선택, 없으면 public 엔드포인트)",
    )
    thegraph_api_key: SecretStr = Field(default=SecretStr(""), description="The Graph gateway Key")

    # ==========================================================================
    # RPC Endpoints
    # ==========================================================================
    quicknode_rpc: str = Field(default="", description="QuickNode RPC URL (최우선)")
    alchemy_key: SecretStr = Field(default=SecretStr(""), description="Alchemy API Key")
    infura_key: SecretStr = Field(default=SecretStr(""), description="Infura Project ID")
    public_rpc_url: str = Field(default="", description="Ethereum public RPC URL (ethereum 전용)")
    rpc_urls: dict[str, str] = Field(
        default_factory=dict,
        description='체인별 RPC URL override (JSON, 예: {"base": "https://..."})',
    )

    # ==========================================================================
    # Storage
    # ==========================================================================
    redis_url: str | None = Field(
        default=None,
        description="Redis URL (설정 시 circuit breaker/카운터 공유 저장소로 사용)",
    )
    database_path: Path = Field(
        default=Path("data/snapshots.db"),
        description="스냅샷 SQLite 파일 경로 (테스트: ':memory:')",
    )
    log_dir: Path = Field(default=Path("logs"), description="로그 파일 저장 경로")
    projects_file: Path = Field(
        default=Path("config/projects.yaml"),
        description="Sweep 대상 프로젝트 YAML 파일",
    )

    # ==========================================================================
    # Provider Policy
    # ==========================================================================
    holders_provider_priority: Annotated[list[ProviderName], NoDecode] = Field(
        default_factory=lambda: [ProviderName.MORALIS],
        description="Holder 프로바이더 우선순위 (콤마 구분)",
    )
    moralis_max_pages: int = Field(
        default=200,
        ge=1,
        le=1000,
        description="Moralis owners 커서 페이지 상한",
    )
    dune_holders_query_id: int | None = Field(default=None, description="Dune top holders 쿼리 ID")
    dune_volume_query_id: int | None = Field(default=None, description="Dune 일별 거래량 쿼리 ID")
    thegraph_subgraphs: dict[str, list[str]] = Field(
        default_factory=dict,
        description='체인별 Uniswap subgraph ID override (JSON, 예: {"ethereum": ["5zvR..."]})',
    )

    # ==========================================================================
    # Timeout / Retry / Circuit Breaker
    # ==========================================================================
    request_timeout: float = Field(
        default=15.0,
        ge=10.0,
        le=30.0,
        description="HTTP 요청 타임아웃 (초)",
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="가격 조회 최대 시도 횟수",
    )
    retry_base_delay: float = Field(
        default=0.3,
        gt=0,
        le=10.0,
        description="지수 백오프 기준 지연 (초)",
    )
    breaker_threshold: int = Field(
        default=5,
        ge=1,
        description="Circuit open까지 연속 실패 횟수",
    )
    breaker_window_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Circuit open 유지 시간 (초)",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("holders_provider_priority", mode="before")
    @classmethod
    def parse_provider_priority(cls, v: str | list[str] | list[ProviderName]) -> list[ProviderName]:
        """콤마 구분 문자열 → ProviderName 리스트 (시작 시 1회).

        Args:
            v: "bitquery,moralis" 형식 문자열 또는 리스트

        Returns:
            중복 제거된 ProviderName 리스트 (순서 유지)

        Raises:
            ValueError: 알 수 없거나 holder를 지원하지 않는 프로바이더
        """
        items = v.split(",") if isinstance(v, str) else list(v)
        parsed: list[ProviderName] = []
        for item in items:
            name = item.value if isinstance(item, ProviderName) else item.strip().lower()
            if not name:
                continue
            try:
                provider = ProviderName(name)
            except ValueError:
                msg = f"Unknown holders provider: {name!r}"
                raise ValueError(msg) from None
            if provider not in HOLDER_PROVIDERS:
                msg = f"Provider {name!r} cannot supply holder lists"
                raise ValueError(msg)
            if provider not in parsed:
                parsed.append(provider)
        if not parsed:
            msg = "holders_provider_priority must name at least one provider"
            raise ValueError(msg)
        return parsed

    @field_validator("database_path", "log_dir", "projects_file", mode="before")
    @classmethod
    def ensure_path(cls, v: str | Path) -> Path:
        """문자열을 Path 객체로 변환."""
        return Path(v) if isinstance(v, str) else v

    # ==========================================================================
    # Helper Methods
    # ==========================================================================
    def api_key(self, provider: ProviderName) -> str:
        """프로바이더 API 키 (미설정 시 빈 문자열).

        Args:
            provider: 프로바이더 이름

        Returns:
            평문 API 키
        """
        secret: SecretStr | None = getattr(self, f"{provider.value}_api_key", None)
        return secret.get_secret_value() if secret is not None else ""

    def resolve_rpc_url(self, chain: str = "ethereum") -> str:
        """체인별 RPC URL 결정.

        우선순위 (ethereum): RPC_URLS override → QuickNode → Alchemy → Infura
        → PUBLIC_RPC_URL → Ankr public. 키 기반 엔드포인트와 PUBLIC_RPC_URL은
        Ethereum mainnet 전용이므로, 다른 체인은 override가 없으면
        PUBLIC_RPC_URLS의 체인별 공개 엔드포인트를 사용합니다.

        Args:
            chain: 체인 이름

        Returns:
            RPC 엔드포인트 URL
        """
        chain = chain.lower()
        if chain in self.rpc_urls:
            return self.rpc_urls[chain]
        if chain != "ethereum":
            return PUBLIC_RPC_URLS.get(chain, f"https://rpc.ankr.com/{chain}")
        if self.quicknode_rpc:
            return self.quicknode_rpc
        alchemy = self.alchemy_key.get_secret_value()
        if alchemy:
            return f"https://eth-mainnet.g.alchemy.com/v2/{alchemy}"
        infura = self.infura_key.get_secret_value()
        if infura:
            return f"https://mainnet.infura.io/v3/{infura}"
        return self.public_rpc_url or DEFAULT_PUBLIC_RPC

    def secret_values(self) -> list[str]:
        """로그에서 가릴 비밀 값 (API 키, 키가 포함된 RPC URL)."""
        values = [self.api_key(provider) for provider in ProviderName]
        values += [
            self.quicknode_rpc,
            self.alchemy_key.get_secret_value(),
            self.infura_key.get_secret_value(),
            *self.rpc_urls.values(),
        ]
        return [v for v in values if v]

    def ensure_directories(self) -> None:
        """DB/로그 디렉토리 생성 (이미 존재하면 무시)."""
        if str(self.database_path) != ":memory:":
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> DashboardSettings:
    """설정 싱글톤 인스턴스 반환.

    lru_cache를 사용하여 설정 객체를 캐싱합니다.
    애플리케이션 전체에서 동일한 설정 인스턴스를 사용합니다.

    Returns:
        DashboardSettings 인스턴스
    """
    return DashboardSettings()


def clear_settings_cache() -> None:
    """설정 캐시 초기화 (테스트용).

    테스트에서 설정을 재로드해야 할 때 사용합니다.
    """
    get_settings.cache_clear()
