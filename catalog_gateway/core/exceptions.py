"""커스텀 예외 정의 (Structured Exception Hierarchy)

모든 예외는 ErrorKind 태그를 가지고 있어서, fusion 경계에서
BranchOutcome으로 변환된 뒤에는 예외 대신 kind로 분기합니다.
"""
import asyncio
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """오류 분류"""

    CONFIGURATION = "configuration"  # YCL 미설정 → 디지털 브랜치 생략
    VALIDATION = "validation"  # 잘못된 파라미터 → 400
    AUTHENTICATION = "authentication"  # 로그인 페이지 응답 / 세션 획득 실패
    TRANSIENT_TRANSPORT = "transient_transport"  # 타임아웃 / 네트워크 오류
    STRUCTURAL_SCRAPE = "structural_scrape"  # Legacy 페이지 구조 인식 실패
    UNHANDLED = "unhandled"  # 그 외 → 500


class CatalogGatewayException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모"""

    kind: ErrorKind = ErrorKind.UNHANDLED

    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ConfigurationError(CatalogGatewayException):
    """필요한 설정이 없음"""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, setting: str, details: Optional[dict[str, Any]] = None):
        message = f"Missing configuration: {setting}"
        super().__init__(message, "CONFIGURATION_ERROR", details or {"setting": setting})


class ValidationException(CatalogGatewayException):
    """유효성 검증 예외"""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Validation failed for '{field}': {reason}"
        self.field = field
        self.reason = reason
        super().__init__(message, "VALIDATION_ERROR", details or {"field": field, "reason": reason})


class AuthenticationError(CatalogGatewayException):
    """인증 실패 (로그인 페이지로 리다이렉트, 세션 없음 등)"""

    kind = ErrorKind.AUTHENTICATION

    def __init__(self, source: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Authentication failed for {source}: {reason}"
        super().__init__(message, "AUTHENTICATION_ERROR", details or {"source": source, "reason": reason})


class TransientTransportError(CatalogGatewayException):
    """네트워크 오류 / 타임아웃 (재시도 예산 소진 후)"""

    kind = ErrorKind.TRANSIENT_TRANSPORT

    def __init__(self, operation: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Transport failure during '{operation}': {reason}"
        super().__init__(message, "TRANSPORT_ERROR", details or {"operation": operation, "reason": reason})


class StructuralScrapeError(CatalogGatewayException):
    """검색 제출 후 Legacy 페이지 구조를 인식하지 못함"""

    kind = ErrorKind.STRUCTURAL_SCRAPE

    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Unrecognized page structure: {reason}"
        super().__init__(message, "STRUCTURAL_SCRAPE_ERROR", details or {"reason": reason})


class BrowserException(CatalogGatewayException):
    """브라우저 연결/실행 오류"""

    kind = ErrorKind.TRANSIENT_TRANSPORT

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "BROWSER_ERROR", details)


def classify_exception(exc: BaseException) -> ErrorKind:
    """임의 예외를 ErrorKind로 분류"""
    if isinstance(exc, CatalogGatewayException):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT_TRANSPORT
    return ErrorKind.UNHANDLED
