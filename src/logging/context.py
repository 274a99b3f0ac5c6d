"""Context binding utilities for structured logging.

provider/operation, project_id/metric 컨텍스트를 contextvars로 전파하여
동시에 실행되는 sweep 작업에서도 로그 레코드에 올바른 컨텍스트가 붙도록 합니다.

Rules Applied:
    - #15 Logging Standards: Context binding with logger.bind()
    - #10 Python Standards: contextvars for async safety
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger

# =============================================================================
# Context Variables (Async-Safe)
# =============================================================================

current_project_id: ContextVar[str | None] = ContextVar("project_id", default=None)
current_sweep_id: ContextVar[str | None] = ContextVar("sweep_id", default=None)


# =============================================================================
# Logger Factory Functions
# =============================================================================


def get_provider_logger(provider: str, operation: str | None = None) -> Logger:
    """Get a logger bound with provider context.

    Args:
        provider: Provider name (e.g., "moralis", "bitquery")
        operation: Operation name (e.g., "top_holders")

    Returns:
        Logger instance with provider context bound

    Example:
        >>> log = get_provider_logger("moralis", "top_holders")
        >>> log.warning("Page fetch failed")
    """
    ctx: dict[str, str] = {"provider": provider}
    if operation:
        ctx["operation"] = operation
    project_id = current_project_id.get()
    if project_id:
        ctx["project_id"] = project_id
    return logger.bind(**ctx)


def get_snapshot_logger(project_id: str, metric: str | None = None) -> Logger:
    """Get a logger bound with snapshot context.

    Args:
        project_id: Project identifier
        metric: Metric key (e.g., "holdersV2:p1:7d")

    Returns:
        Logger instance with snapshot context bound
    """
    ctx: dict[str, str] = {"project_id": project_id}
    if metric:
        ctx["metric"] = metric
    sweep_id = current_sweep_id.get()
    if sweep_id:
        ctx["sweep_id"] = sweep_id
    return logger.bind(**ctx)


def generate_sweep_id() -> str:
    """Generate a short identifier for one sweep run.

    Returns:
        Unique sweep identifier (e.g., "sweep_a1b2c3d4")
    """
    return f"sweep_{uuid.uuid4().hex[:8]}"


# =============================================================================
# Context Manager for Scoped Logging
# =============================================================================


class LoggingContext:
    """Context manager for scoped logging context.

    Example:
        >>> async with LoggingContext(project_id="p1", sweep_id=generate_sweep_id()):
        ...     await orchestrator.refresh_snapshots_for_project(project)
    """

    def __init__(self, project_id: str | None = None, sweep_id: str | None = None) -> None:
        self._project_id = project_id
        self._sweep_id = sweep_id
        self._tokens: list[tuple[ContextVar[str | None], object]] = []

    def __enter__(self) -> LoggingContext:
        """Enter context and set variables."""
        if self._project_id:
            self._tokens.append((current_project_id, current_project_id.set(self._project_id)))
        if self._sweep_id:
            self._tokens.append((current_sweep_id, current_sweep_id.set(self._sweep_id)))
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit context and reset variables."""
        for var, token in reversed(self._tokens):
            var.reset(token)  # type: ignore[arg-type]
        self._tokens.clear()

    async def __aenter__(self) -> LoggingContext:
        """Async enter - delegates to sync enter."""
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Async exit - delegates to sync exit."""
        self.__exit__(exc_type, exc_val, exc_tb)
