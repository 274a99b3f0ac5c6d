"""Logging settings (LOG_* 환경 변수).

Rules Applied:
    - #11 Pydantic Modeling: BaseSettings
    - #15 Logging Standards: console + rotated file sink
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


class LoggingConfig(BaseSettings):
    """Sweep/CLI 로그 설정.

    Attributes:
        log_dir: 로그 파일 디렉토리
        console_level: stderr 최소 레벨
        file_level: 파일 최소 레벨
        rotation: 파일 교체 기준 (크기 또는 시간)
        retention: 교체된 파일 보관 기간
        json_logs: 파일 레코드를 JSON으로 직렬화
        mask_secrets: 설정된 API 키/RPC URL을 로그 메시지에서 가림
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_dir: Path = Field(default=Path("logs"))
    console_level: LogLevel = "INFO"
    file_level: LogLevel = "DEBUG"
    rotation: str = Field(default="10 MB", description="예: '10 MB', '1 day'")
    retention: str = "7 days"
    json_logs: bool = True
    # traceback 변수 값에 API 키가 포함될 수 있음
    diagnose: bool = False
    mask_secrets: bool = True


def get_logging_config() -> LoggingConfig:
    """LOG_* 환경 변수에서 설정 로드."""
    return LoggingConfig()
