"""ERC-20 on-chain reader (web3 AsyncHTTPProvider).

최소 ERC-20 ABI(decimals, totalSupply)로 컨트랙트를 읽습니다.
모든 호출은 rate limit 버킷 "rpc"를 거치며, 메타데이터 조회 실패 시
기본값(decimals=18, total_supply=0)과 함께 `supply_unknown=True`를 반환하여
"실제 0 공급량"과 "조회 실패"를 구분합니다.

Rules Applied:
    - #23 Exception Handling: RPC failure degrades to flagged defaults
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import aiohttp
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from src.data.providers.base import ADAPTER_ERRORS, normalize_address
from src.models.holders import TokenMeta

if TYPE_CHECKING:
    from src.data.providers.rate_limiter import RateLimiterRegistry
    from src.monitoring.metrics import OperationalCounters

RPC_BUCKET = "rpc"
DEFAULT_DECIMALS = 18

ERC20_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

RPC_ERRORS: tuple[type[BaseException], ...] = (
    *ADAPTER_ERRORS,
    Web3Exception,
    aiohttp.ClientError,
    TimeoutError,
)


class Erc20Reader:
    """ERC-20 컨트랙트 읽기 전용 RPC 클라이언트.

    Args:
        rpc_url: JSON-RPC 엔드포인트 URL
        limiter: RateLimiterRegistry (버킷 "rpc")
        counters: OperationalCounters (providers.rpc.calls / errors)
        timeout: 요청 타임아웃 (초)
        w3: AsyncWeb3 인스턴스 override (테스트용)

    Example:
        >>> reader = Erc20Reader(settings.resolve_rpc_url("ethereum"), limiter, counters)
        >>> meta = await reader.read_meta("0x...")
        >>> meta.decimals, meta.supply_unknown
        (18, False)
    """

    def __init__(
        self,
        rpc_url: str,
        limiter: RateLimiterRegistry,
        counters: OperationalCounters,
        *,
        timeout: float = 10.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._limiter = limiter
        self._counters = counters
        self._w3 = w3 if w3 is not None else AsyncWeb3(
            AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)},
                exception_retry_configuration=None,
            )
        )

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def _call(self, contract: str, function_name: str) -> int:
        token = self._w3.eth.contract(address=AsyncWeb3.to_checksum_address(contract), abi=ERC20_ABI)
        function = getattr(token.functions, function_name)()
        self._counters.inc(f"providers.{RPC_BUCKET}.calls")
        try:
            return int(await self._limiter.run(RPC_BUCKET, function.call))
        except RPC_ERRORS:
            self._counters.inc(f"providers.{RPC_BUCKET}.errors")
            raise

    async def decimals(self, contract: str) -> int:
        return await self._call(contract, "decimals")

    async def total_supply(self, contract: str) -> int:
        return await self._call(contract, "totalSupply")

    async def read_meta(self, contract: str) -> TokenMeta:
        """decimals + totalSupply (실패 시 supply_unknown=True 기본값).

        Returns:
            TokenMeta (예외를 던지지 않음)
        """
        try:
            decimals = await self.decimals(contract)
            total_supply = await self.total_supply(contract)
            return TokenMeta(decimals=decimals, total_supply=total_supply)
        except RPC_ERRORS as e:
            logger.warning(f"ERC-20 metadata read failed for {normalize_address(contract)}: {e}")
            return TokenMeta(decimals=DEFAULT_DECIMALS, total_supply=0, supply_unknown=True)

    async def close(self) -> None:
        """Provider가 캐시한 aiohttp 세션 정리."""
        await self._w3.provider.disconnect()
