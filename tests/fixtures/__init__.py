"""테스트 자산(데이터) 레이어

규칙:
- 로직 없음 (단순 문자열/dict)
- 엔진/네트워크 의존 없음
"""

from .legacy_pages import LEGACY_PAGES

__all__ = [
    "LEGACY_PAGES",
]
