"""Branch Outcome - 브랜치 결과 값

fusion 경계에서 예외를 값으로 바꿔, 합류 단계는 예외를 잡는 대신
status/kind로 분기합니다.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from catalog_gateway.core.exceptions import ErrorKind, classify_exception


class BranchStatus(str, Enum):
    """브랜치 상태"""

    SUCCESS = "success"
    FAILED = "failed"  # 예외 (kind로 구분)
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"  # 필터 또는 미설정으로 호출하지 않음


@dataclass
class BranchOutcome:
    """브랜치 하나의 결과 또는 오류

    Attributes:
        name: 브랜치 이름 ("legacy" | "ycl_search" | "ycl_count" | "ycl_session")
        status: 브랜치 상태
        value: 성공 시 결과 값
        kind: 실패 시 오류 분류
        message: 실패 사유
        elapsed_ms: 소요 시간 (밀리초)
    """

    name: str
    status: BranchStatus
    value: Any = None
    kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    elapsed_ms: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.status == BranchStatus.SUCCESS

    def value_or(self, default: Any) -> Any:
        return self.value if self.ok else default

    @classmethod
    def success(cls, name: str, value: Any, elapsed_ms: Optional[float] = None) -> "BranchOutcome":
        return cls(name=name, status=BranchStatus.SUCCESS, value=value, elapsed_ms=elapsed_ms)

    @classmethod
    def failure(
        cls, name: str, kind: ErrorKind, message: str, elapsed_ms: Optional[float] = None
    ) -> "BranchOutcome":
        return cls(name=name, status=BranchStatus.FAILED, kind=kind, message=message, elapsed_ms=elapsed_ms)

    @classmethod
    def from_exception(cls, name: str, exc: BaseException, elapsed_ms: Optional[float] = None) -> "BranchOutcome":
        return cls.failure(name, classify_exception(exc), f"{type(exc).__name__}: {exc}", elapsed_ms)

    @classmethod
    def timed_out(cls, name: str, timeout_s: float) -> "BranchOutcome":
        return cls(
            name=name,
            status=BranchStatus.TIMED_OUT,
            kind=ErrorKind.TRANSIENT_TRANSPORT,
            message=f"timed out after {timeout_s}s",
            elapsed_ms=timeout_s * 1000,
        )

    @classmethod
    def skipped(cls, name: str, reason: str, kind: Optional[ErrorKind] = None) -> "BranchOutcome":
        return cls(name=name, status=BranchStatus.SKIPPED, kind=kind, message=reason)
