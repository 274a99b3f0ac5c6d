"""Rate-limited async HTTP client for provider APIs.

Wraps httpx.AsyncClient with per-provider token-bucket admission, explicit
timeouts, operational counters and jittered exponential backoff.

Retry policy:
    - Timeouts, transport errors, 5xx: `base * 2**attempt + uniform(0, 0.1)`초 후 재시도
    - 429: RateLimitError 즉시 발생 (인라인 재시도 없음, 호출자 fallback이 처리)
    - 기타 4xx: NetworkError (status 포함)

Rules Applied:
    - #23 Exception Handling: Domain-driven hierarchy
    - #19 Git Security: No secrets in code
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from src.core.exceptions import NetworkError, ProviderResponseError, RateLimitError
from src.models.types import ProviderName
from src.monitoring.metrics import latency_bucket

if TYPE_CHECKING:
    from src.data.providers.rate_limiter import RateLimiterRegistry
    from src.monitoring.metrics import OperationalCounters, ProviderMetricsCallback

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 1
DEFAULT_BACKOFF_BASE = 0.3
DEFAULT_TIMEOUT = 15.0
MAX_JITTER = 0.1

# HTTP status codes
HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500


def backoff_delay(attempt: int, base: float) -> float:
    """지수 백오프 + 지터 (초).

    Args:
        attempt: 0부터 시작하는 시도 번호
        base: 기준 지연 (초)
    """
    return base * 2**attempt + random.uniform(0, MAX_JITTER)  # noqa: S311


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class AsyncProviderClient:
    """Rate-limited async HTTP client for one provider.

    Uses httpx.AsyncClient with HTTP/2 support, per-provider token-bucket
    admission, and exponential backoff retry for transient failures.

    Example:
        >>> async with AsyncProviderClient(ProviderName.MORALIS, limiter, counters) as client:
        ...     data = await client.get_json(f"{MORALIS_BASE}/erc20/{addr}/owners")
    """

    def __init__(
        self,
        provider: ProviderName | str,
        limiter: RateLimiterRegistry,
        counters: OperationalCounters,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        headers: dict[str, str] | None = None,
        metrics_callback: ProviderMetricsCallback | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        redact: tuple[str, ...] = (),
    ) -> None:
        """Initialize client.

        Args:
            provider: Provider name (rate limit bucket key and counter prefix).
            limiter: Shared rate limiter registry.
            counters: Operational counters sink.
            timeout: Request timeout in seconds.
            max_attempts: Attempts per request (1 = no retry).
            backoff_base: Exponential backoff base delay in seconds.
            headers: Default headers (API keys).
            metrics_callback: Optional Prometheus callback.
            transport: Optional httpx transport (tests).
            redact: Secrets embedded in URLs, masked in errors and logs.
        """
        self._provider = provider.value if isinstance(provider, ProviderName) else provider
        self._limiter = limiter
        self._counters = counters
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._backoff_base = backoff_base
        self._headers = headers or {}
        self._metrics_callback = metrics_callback
        self._transport = transport
        self._redact = tuple(s for s in redact if s)
        self._client: httpx.AsyncClient | None = None

    @property
    def provider(self) -> str:
        """Provider name."""
        return self._provider

    @property
    def timeout(self) -> float:
        """Request timeout in seconds."""
        return self._timeout

    async def __aenter__(self) -> AsyncProviderClient:
        """Enter async context: create httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                http2=True,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers=self._headers,
                transport=self._transport,
            )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context: close httpx client."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _safe_url(self, url: str) -> str:
        for secret in self._redact:
            url = url.replace(secret, "***")
        return url

    def _record(self, started: float, status: str) -> None:
        elapsed = time.monotonic() - started
        self._counters.inc(f"providers.{self._provider}.latency_ms.{latency_bucket(elapsed * 1000)}")
        if status != "success":
            self._counters.inc(f"providers.{self._provider}.errors")
        if self._metrics_callback is not None:
            self._metrics_callback.on_call(self._provider, elapsed, status)

    async def request(
        self,
        method: str,
        url: str,
        *,
        max_attempts: int | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send request with rate limiting and retry.

        Args:
            method: HTTP method.
            url: Request URL.
            max_attempts: Override attempts for this request.
            **kwargs: Additional httpx request kwargs (params, json, headers).

        Returns:
            httpx.Response object (2xx).

        Raises:
            RuntimeError: Client not initialized (use async with).
            RateLimitError: HTTP 429 (never retried inline).
            NetworkError: Request failed (4xx immediately, transient after retries).
        """
        if self._client is None:
            msg = "Client not initialized. Use 'async with AsyncProviderClient(...)' context manager."
            raise RuntimeError(msg)
        client = self._client
        attempts = max(1, max_attempts or self._max_attempts)
        safe_url = self._safe_url(url)

        last_exc: Exception | None = None
        for attempt in range(attempts):
            started = time.monotonic()
            self._counters.inc(f"providers.{self._provider}.calls")
            try:
                response = await self._limiter.run(
                    self._provider, lambda: client.request(method, url, **kwargs)
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == HTTP_TOO_MANY_REQUESTS:
                    self._record(started, "rate_limited")
                    raise RateLimitError(
                        f"Rate limited by {self._provider} (429)",
                        retry_after=_retry_after(e.response),
                        context={"provider": self._provider, "url": safe_url},
                    ) from e
                self._record(started, "failure")
                if status < HTTP_SERVER_ERROR:
                    raise NetworkError(
                        f"HTTP {status} from {self._provider}: {safe_url}",
                        context={"provider": self._provider, "url": safe_url, "status": status},
                    ) from e
                last_exc = e
            except httpx.TimeoutException as e:
                self._record(started, "failure")
                last_exc = e
            except httpx.HTTPError as e:
                self._record(started, "failure")
                last_exc = e
            else:
                self._record(started, "success")
                return response

            if attempt + 1 < attempts:
                wait = backoff_delay(attempt, self._backoff_base)
                logger.warning(
                    f"{type(last_exc).__name__} from {self._provider}, retry {attempt + 1}/{attempts} in {wait:.2f}s",
                )
                await asyncio.sleep(wait)

        status_code = (
            last_exc.response.status_code if isinstance(last_exc, httpx.HTTPStatusError) else None
        )
        raise NetworkError(
            f"Request to {self._provider} failed after {attempts} attempt(s): {safe_url}",
            context={
                "provider": self._provider,
                "url": safe_url,
                "status": status_code,
                "last_error": repr(last_exc),
            },
        ) from last_exc

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET request (see request())."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST request (see request())."""
        return await self.request("POST", url, **kwargs)

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET and decode JSON body.

        Raises:
            ProviderResponseError: Body is not valid JSON.
        """
        return self._decode(await self.get(url, **kwargs), url)

    async def post_json(self, url: str, **kwargs: Any) -> Any:
        """POST and decode JSON body.

        Raises:
            ProviderResponseError: Body is not valid JSON.
        """
        return self._decode(await self.post(url, **kwargs), url)

    def _decode(self, response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderResponseError(
                f"Invalid JSON from {self._provider}",
                context={"provider": self._provider, "url": self._safe_url(url)},
            ) from e

