"""Pydantic 스키마 정의 (통합 검색 요청/응답)

와이어 포맷은 기존 클라이언트 호환을 위해 camelCase를 유지합니다.
"""
import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MediaType(str, Enum):
    """아이템 매체 종류"""

    PHYSICAL = "physical"
    DIGITAL = "digital"


class SourceName(str, Enum):
    """결과 출처"""

    LEGACY = "legacy"  # Source A (스크래핑)
    YCL = "ycl"  # Source B (JSON API)


class MediaFilter(str, Enum):
    PHYSICAL = "physical"
    DIGITAL = "digital"
    COMBINED = "combined"


class SortKey(str, Enum):
    RELEVANCE = "relevance"
    AVAILABILITY = "availability"
    TITLE = "title"
    AUTHOR = "author"
    DATE = "date"  # 허용만 하고 relevance로 정렬


class ResponseVersion(str, Enum):
    V1 = "v1"
    V2 = "v2"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UnifiedItem(_CamelModel):
    """두 카탈로그 결과를 정규화한 단일 아이템

    어댑터 경계에서 바로 만들어지고 응답 직렬화 후 버려집니다.
    """

    id: str = Field(..., description="응답 내 전역 고유 ID")
    title: str
    author: str
    description: str = ""
    media_type: MediaType = Field(..., alias="mediaType")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    availability: str = Field(..., description="가용성 원문 (예: Available, Checked Out)")
    copies: int = Field(0, ge=0)
    format: str
    source: SourceName
    source_id: str = Field(..., alias="sourceId", description="출처 내부 ID (출처 간 충돌 가능)")
    additional_details: dict[str, Any] = Field(default_factory=dict, alias="additionalDetails")


class PageMeta(_CamelModel):
    """페이지네이션 메타데이터"""

    current_page: int = Field(1, alias="currentPage")
    page_size: int = Field(0, alias="pageSize")
    total_results: int = Field(0, alias="totalResults")
    total_pages: int = Field(0, alias="totalPages")

    @staticmethod
    def pages_for(total_results: int, page_size: int) -> int:
        """totalPages = ceil(total/size), size가 0이면 1"""
        if page_size > 0:
            return math.ceil(total_results / page_size)
        return 1

    @classmethod
    def compute(cls, current_page: int, page_size: int, total_results: int) -> "PageMeta":
        return cls(
            current_page=current_page,
            page_size=page_size,
            total_results=total_results,
            total_pages=cls.pages_for(total_results, page_size),
        )

    @classmethod
    def empty(cls, current_page: int = 1, page_size: int = 0) -> "PageMeta":
        """결과 없음 (totalPages=0)"""
        return cls(current_page=current_page, page_size=page_size, total_results=0, total_pages=0)


class MediaTypeCounts(BaseModel):
    physical: int = 0
    digital: int = 0


class SearchMeta(PageMeta):
    media_type_counts: MediaTypeCounts = Field(default_factory=MediaTypeCounts, alias="mediaTypeCounts")


class SearchResponse(BaseModel):
    """v2 통합 검색 응답"""

    meta: SearchMeta
    results: list[UnifiedItem] = Field(default_factory=list)

    @classmethod
    def empty(cls, current_page: int, page_size: int) -> "SearchResponse":
        """전체 타임아웃 등에서 반환하는 중립 응답 (카운트 0)"""
        return cls(
            meta=SearchMeta(
                current_page=current_page,
                page_size=page_size,
                total_results=0,
                total_pages=0,
                media_type_counts=MediaTypeCounts(),
            ),
            results=[],
        )


class LegacyCredentials(BaseModel):
    """Legacy 카탈로그 로그인 정보"""

    username: str = Field(..., min_length=1)
    password: str = ""

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("username must not be blank")
        return v


class SearchRequest(BaseModel):
    """통합 검색 요청"""

    term: str = Field(..., min_length=1)
    credentials: LegacyCredentials
    library_slug: Optional[str] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1, le=50)
    media_filter: MediaFilter = MediaFilter.COMBINED
    sort_key: SortKey = SortKey.RELEVANCE
    response_version: ResponseVersion = ResponseVersion.V2

    @field_validator("term")
    @classmethod
    def validate_term(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("search term must not be blank")
        return v

    @property
    def offset(self) -> int:
        """YCL offset = (page-1) * pageSize"""
        return (self.page - 1) * self.page_size


class HealthServices(BaseModel):
    legacy: bool
    ycl: bool


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str
    services: HealthServices


class LegacySearchResponse(BaseModel):
    """v1 응답: mediaTypeCounts 없는 meta + Legacy 원본 필드명 결과"""

    meta: PageMeta
    results: list[dict[str, Any]] = Field(default_factory=list)


class ScrapeResponse(BaseModel):
    """/scrape 응답 (Legacy 원본 그대로)"""

    meta: PageMeta
    results: list[dict[str, Any]] = Field(default_factory=list)
