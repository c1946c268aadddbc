"""검색 시간 예산

예산 구조:
- 전체 요청: 60초 (초과 시 중립 빈 응답)
- 브랜치별: 15초 (Legacy 검색 / YCL 검색 / YCL 카운트 각각)
- YCL 세션 획득: 리다이렉트 대기 30초 + 여유
"""

from dataclasses import dataclass
from typing import Optional

from catalog_gateway.core.config import Settings, settings


@dataclass
class BudgetConfig:
    """예산 설정 (초)"""

    branch_timeout: float = 15.0
    session_timeout: float = 35.0
    total_budget: float = 60.0

    def __post_init__(self):
        """설정 검증"""
        for name in ("branch_timeout", "session_timeout", "total_budget"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.branch_timeout > self.total_budget:
            raise ValueError(
                f"Branch timeout ({self.branch_timeout}s) exceeds total budget ({self.total_budget}s)"
            )

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "BudgetConfig":
        cfg = source or settings
        return cls(
            branch_timeout=cfg.branch_timeout_s,
            session_timeout=cfg.session_redirect_timeout_s + 5.0,
            total_budget=cfg.search_timeout_s,
        )
