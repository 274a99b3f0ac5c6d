"""Loguru setup for the snapshot CLI and sweeps.

Sinks:
    - stderr: 사람이 읽는 포맷 (컬러)
    - file: `logs/dashline_<date>.json` (또는 .log), 크기/기간 기준 교체

프로바이더 URL에는 API 키가 쿼리/경로로 들어가므로 (Etherscan `apikey=`,
The Graph gateway, Alchemy/Infura RPC) 설정된 비밀 값은 patcher에서
`***`로 치환됩니다.

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks, context binding (src.logging.context)
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from src.logging.config import LoggingConfig, get_logging_config
from src.logging.context import get_provider_logger, get_snapshot_logger

if TYPE_CHECKING:
    from loguru import Record

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

LOG_FILE_STEM = "dashline"
MASK = "***"
_MIN_SECRET_LENGTH = 6


def make_secret_patcher(secrets: Iterable[str]) -> Callable[[Record], None]:
    """비밀 값을 메시지에서 가리는 loguru patcher.

    짧은 값(6자 미만)은 오탐을 피하기 위해 무시합니다.

    Example:
        >>> patcher = make_secret_patcher(["abc123secret"])
        >>> logger.configure(patcher=patcher)
    """
    values = sorted({s for s in secrets if s and len(s) >= _MIN_SECRET_LENGTH}, key=len, reverse=True)

    def patch(record: Record) -> None:
        message = record["message"]
        for value in values:
            if value in message:
                message = message.replace(value, MASK)
        record["message"] = message

    return patch


def setup_logger(
    log_dir: Path | str = Path("logs"),
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    *,
    json_logs: bool = True,
    secrets: Iterable[str] = (),
) -> None:
    """로거 초기화 (CLI 진입 시 1회).

    Args:
        log_dir: 로그 파일 디렉토리
        console_level: stderr 레벨
        file_level: 파일 레벨
        json_logs: JSON 직렬화 여부
        secrets: 로그에서 가릴 값 (API 키, RPC URL)
    """
    config = LoggingConfig(
        log_dir=Path(log_dir),
        console_level=console_level,  # type: ignore[arg-type]
        file_level=file_level,  # type: ignore[arg-type]
        json_logs=json_logs,
    )
    configure_logging(config, secrets)


def configure_logging(config: LoggingConfig | None = None, secrets: Iterable[str] = ()) -> None:
    """LoggingConfig 기반 sink 구성.

    Args:
        config: 로그 설정 (None이면 LOG_* 환경 변수)
        secrets: 로그에서 가릴 값
    """
    config = config or get_logging_config()
    logger.remove()
    logger.configure(patcher=make_secret_patcher(secrets) if config.mask_secrets else None)

    log_path = Path(config.log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=config.console_level,
        colorize=True,
        diagnose=config.diagnose,
    )
    suffix = "json" if config.json_logs else "log"
    logger.add(
        log_path / f"{LOG_FILE_STEM}_{{time:YYYY-MM-DD}}.{suffix}",
        format=CONSOLE_FORMAT,
        level=config.file_level,
        serialize=config.json_logs,
        rotation=config.rotation,
        retention=config.retention,
        enqueue=True,
        diagnose=False,
    )
    logger.debug(f"Logger initialized (dir={log_path}, console={config.console_level})")


__all__ = [
    "configure_logging",
    "get_provider_logger",
    "get_snapshot_logger",
    "logger",
    "make_secret_patcher",
    "setup_logger",
]
