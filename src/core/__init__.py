"""Core module - Single Source of Truth for shared components."""

from src.core.exceptions import (
    CacheBackendError,
    DashboardError,
    NetworkError,
    ProviderError,
    ProviderResponseError,
    RateLimitError,
    StorageError,
)
from src.core.kv_store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore

__all__ = [
    # Exceptions
    "CacheBackendError",
    "DashboardError",
    "NetworkError",
    "ProviderError",
    "ProviderResponseError",
    "RateLimitError",
    "StorageError",
    # Key-value stores
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
]
