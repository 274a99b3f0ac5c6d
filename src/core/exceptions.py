"""Custom exception hierarchy for the analytics dashboard core.

This module defines a domain-driven exception hierarchy. Exceptions are
categorized by their nature and expected handling behavior.

Exception Categories:
    - Recoverable (Degrade): Provider errors. Adapters convert them into
      tagged failure results and never raise them past their boundary.
    - Unrecoverable (Propagate): Persistence errors. A snapshot that cannot
      be stored must not be reported as cached.

Rules Applied:
    - #23 Exception Handling: Domain-driven hierarchy, add_note()
"""


class DashboardError(Exception):
    """모든 대시보드 관련 예외의 기본 클래스.

    이 예외를 직접 발생시키지 말고, 하위 클래스를 사용하세요.

    Attributes:
        message: 에러 메시지
        context: 추가 컨텍스트 정보 (디버깅용)
    """

    def __init__(self, message: str, *, context: dict[str, object] | None = None) -> None:
        """DashboardError 초기화.

        Args:
            message: 에러 메시지
            context: 추가 컨텍스트 정보 (선택)
        """
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = context or {}

    def __str__(self) -> str:
        """에러 메시지와 컨텍스트를 포함한 문자열 반환."""
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


# =============================================================================
# Infrastructure Errors (Propagate)
# =============================================================================


class InfrastructureError(DashboardError):
    """인프라 관련 오류 (DB 연결, 캐시 백엔드 등)."""


class StorageError(InfrastructureError):
    """스냅샷 저장소 오류 (SQLite 읽기/쓰기 실패 등).

    Example:
        >>> raise StorageError(
        ...     "Failed to upsert snapshot",
        ...     context={"project_id": "p1", "metric": "priceV2:p1"}
        ... )
    """


class CacheBackendError(InfrastructureError):
    """Key-value 백엔드 (Redis) 오류."""


# =============================================================================
# Provider Errors (Recoverable - Degrade)
# =============================================================================


class ProviderError(DashboardError):
    """외부 데이터 프로바이더 관련 오류의 기본 클래스.

    어댑터 경계에서 포착되어 태그된 실패 결과(source="mock")로 변환됩니다.
    """


class NetworkError(ProviderError):
    """네트워크 오류 (타임아웃, 연결 실패, 5xx 등).

    Example:
        >>> raise NetworkError(
        ...     "Connection timeout",
        ...     context={"provider": "moralis", "timeout": 15}
        ... )
    """


class RateLimitError(ProviderError):
    """프로바이더 레이트 리밋 초과 (HTTP 429).

    인라인 재시도 대상이 아닙니다. 호출자의 fallback 체인이 처리합니다.

    Attributes:
        retry_after: 재시도까지 대기 시간 (초)
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        """RateLimitError 초기화.

        Args:
            message: 에러 메시지
            retry_after: 재시도까지 대기 시간 (초)
            context: 추가 컨텍스트 정보
        """
        super().__init__(message, context=context)
        self.retry_after = retry_after


class ProviderResponseError(ProviderError):
    """응답 파싱 실패 또는 예상하지 못한 페이로드 형식."""


# =============================================================================
# Utility Functions
# =============================================================================


def add_context_note(exc: Exception, note: str) -> None:
    """예외에 컨텍스트 노트 추가 (Python 3.11+ add_note).

    원본 Traceback을 보존하면서 디버깅 정보를 추가합니다.

    Args:
        exc: 예외 객체
        note: 추가할 노트 문자열

    Example:
        >>> try:
        ...     await store.upsert_snapshot(...)
        ... except StorageError as e:
        ...     add_context_note(e, f"Failed while refreshing {metric_key}")
        ...     raise
    """
    exc.add_note(note)
