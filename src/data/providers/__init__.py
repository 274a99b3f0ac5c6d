"""External data provider adapters.

Exports:
    - AsyncProviderClient: Rate-limited httpx client (per provider)
    - RateLimiterRegistry / TokenBucket: Token-bucket admission
    - CircuitBreaker: KeyValueStore-backed closed/open breaker
    - ProviderResult: Tagged adapter result (never raised past the adapter)
    - *Adapter: Moralis, BitQuery, Dexscreener, CoinGecko, TheGraph, Dune, Etherscan
    - Erc20Reader: JSON-RPC ERC-20 reader
"""

from src.data.providers.base import ProviderResult
from src.data.providers.bitquery import BitqueryAdapter
from src.data.providers.circuit_breaker import CircuitBreaker, ProviderGuard
from src.data.providers.client import AsyncProviderClient
from src.data.providers.coingecko import CoinGeckoAdapter
from src.data.providers.dexscreener import DexscreenerAdapter
from src.data.providers.dune import DuneAdapter
from src.data.providers.etherscan import EtherscanAdapter
from src.data.providers.moralis import MoralisAdapter
from src.data.providers.rate_limiter import BucketPolicy, RateLimiterRegistry, TokenBucket
from src.data.providers.rpc import Erc20Reader
from src.data.providers.thegraph import TheGraphAdapter

__all__ = [
    "AsyncProviderClient",
    "BitqueryAdapter",
    "BucketPolicy",
    "CircuitBreaker",
    "CoinGeckoAdapter",
    "DexscreenerAdapter",
    "DuneAdapter",
    "Erc20Reader",
    "EtherscanAdapter",
    "MoralisAdapter",
    "ProviderGuard",
    "ProviderResult",
    "RateLimiterRegistry",
    "TheGraphAdapter",
    "TokenBucket",
]
