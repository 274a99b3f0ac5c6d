"""Logging service module.

- Pydantic-based logging configuration (LOG_* env vars)
- Context binding utilities for async environments

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from src.logging.config import LoggingConfig, get_logging_config
from src.logging.context import (
    LoggingContext,
    generate_sweep_id,
    get_provider_logger,
    get_snapshot_logger,
)

__all__ = [
    "LoggingConfig",
    "LoggingContext",
    "generate_sweep_id",
    "get_logging_config",
    "get_provider_logger",
    "get_snapshot_logger",
]
