"""Search Routes - 통합 검색 / Legacy 스크래핑

HTTP Layer는 파라미터 검증과 응답 포맷 변환만 하고, 검색은 Engine Layer에 위임합니다.
브라우저 페이지는 요청마다 열고 요청이 끝나면 닫습니다.
"""

import asyncio
from typing import Any, Mapping, Optional

from fastapi import APIRouter, Depends, Request

from catalog_gateway.core.config import settings
from catalog_gateway.core.exceptions import TransientTransportError, ValidationException
from catalog_gateway.core.logging import get_logger
from catalog_gateway.crawlers.legacy import LegacyCatalogAdapter, LegacyScraper
from catalog_gateway.crawlers.playwright import BrowserProvider
from catalog_gateway.engine import FederatedSearchEngine
from catalog_gateway.schemas.search_schema import (
    LegacyCredentials,
    LegacySearchResponse,
    MediaFilter,
    MediaType,
    ResponseVersion,
    ScrapeResponse,
    SearchRequest,
    SearchResponse,
    SortKey,
    UnifiedItem,
)

router = APIRouter(tags=["search"])
logger = get_logger("api")

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

# 싱글톤
_browser_provider: Optional[BrowserProvider] = None
_scraper: Optional[LegacyScraper] = None
_engine: Optional[FederatedSearchEngine] = None


def get_browser_provider() -> BrowserProvider:
    global _browser_provider
    if _browser_provider is None:
        _browser_provider = BrowserProvider()
    return _browser_provider


def get_scraper() -> LegacyScraper:
    global _scraper
    if _scraper is None:
        _scraper = LegacyScraper()
    return _scraper


def get_engine(scraper: LegacyScraper = Depends(get_scraper)) -> FederatedSearchEngine:
    """FederatedSearchEngine 싱글톤"""
    global _engine
    if _engine is None:
        _engine = FederatedSearchEngine(LegacyCatalogAdapter(scraper))
    return _engine


async def shutdown_browser_provider() -> None:
    global _browser_provider
    if _browser_provider is not None:
        await _browser_provider.shutdown()
        _browser_provider = None


# ----------------------------------------------------------------------
# 파라미터 파싱
# ----------------------------------------------------------------------


def _first(params: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = params.get(name)
        if value is not None and value != "":
            return value
    return None


def _parse_int(raw: Optional[str], default: int) -> int:
    """숫자가 아니면 기본값"""
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _parse_enum(raw: Optional[str], enum_cls, default, field: str):
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationException(field, f"Must be one of: {choices}")


def _parse_credentials(params: Mapping[str, str]) -> LegacyCredentials:
    username = _first(params, "username")
    if not username or not username.strip():
        raise ValidationException("username", "Username is required")
    return LegacyCredentials(username=username, password=params.get("password") or "")


def _parse_search_term(params: Mapping[str, str]) -> str:
    term = _first(params, "search")
    if not term or not term.strip():
        raise ValidationException("search", "Search query is required")
    return term


def _parse_page(params: Mapping[str, str]) -> int:
    page = _parse_int(_first(params, "page"), DEFAULT_PAGE)
    if page < 1:
        raise ValidationException("page", "must be >= 1")
    return page


def parse_search_request(params: Mapping[str, str]) -> SearchRequest:
    """쿼리 파라미터 → SearchRequest (잘못된 값은 ValidationException)"""
    term = _parse_search_term(params)
    credentials = _parse_credentials(params)
    page = _parse_page(params)

    page_size = _parse_int(_first(params, "pageSize"), DEFAULT_PAGE_SIZE)
    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise ValidationException("pageSize", f"must be between 1 and {MAX_PAGE_SIZE}")

    return SearchRequest(
        term=term,
        credentials=credentials,
        library_slug=_first(params, "sourceBSlug", "librarySlug"),
        page=page,
        page_size=page_size,
        media_filter=_parse_enum(
            _first(params, "mediaFilter", "mediaType"), MediaFilter, MediaFilter.COMBINED, "mediaFilter"
        ),
        sort_key=_parse_enum(_first(params, "sortKey", "sortBy"), SortKey, SortKey.RELEVANCE, "sortKey"),
        response_version=_parse_enum(
            _first(params, "responseVersion", "version"), ResponseVersion, ResponseVersion.V2, "responseVersion"
        ),
    )


# ----------------------------------------------------------------------
# v1 포맷
# ----------------------------------------------------------------------


def to_v1_item(item: UnifiedItem) -> dict[str, Any]:
    """UnifiedItem → Legacy 원본 필드명 (디지털 아이템은 mediaType 표시)"""
    details = item.additional_details or {}
    if item.media_type == MediaType.PHYSICAL:
        return {
            "bookJacketUrl": item.image_url,
            "googlePreviewUrl": details.get("googlePreviewUrl"),
            "title": item.title,
            "expandedAuthor": details.get("expandedAuthor") or item.author,
            "author": item.author,
            "extraFields": details.get("extraFields") or {},
            "description": item.description,
            "availability": item.availability,
            "copies": item.copies,
        }
    return {
        "bookJacketUrl": item.image_url,
        "title": item.title,
        "author": item.author,
        "extraFields": {},
        "description": item.description,
        "availability": item.availability,
        "copies": item.copies,
        "mediaType": MediaType.DIGITAL.value,
    }


def to_v1_response(response: SearchResponse) -> LegacySearchResponse:
    meta = response.meta
    return LegacySearchResponse(
        meta={
            "current_page": meta.current_page,
            "page_size": meta.page_size,
            "total_results": meta.total_results,
            "total_pages": meta.total_pages,
        },
        results=[to_v1_item(item) for item in response.results],
    )


# ----------------------------------------------------------------------
# 엔드포인트
# ----------------------------------------------------------------------


@router.get("/search")
@router.get("/api/search")
async def search(
    request: Request,
    engine: FederatedSearchEngine = Depends(get_engine),
    browser: BrowserProvider = Depends(get_browser_provider),
):
    """통합 검색 API

    Flow:
        1. 파라미터 검증 (실패 시 400, 백엔드 호출 없음)
        2. 요청 전용 브라우저 페이지 열기
        3. Engine에 위임 (Legacy + YCL 병렬, 60초 예산)
        4. v1/v2 포맷으로 변환
    """
    search_request = parse_search_request(request.query_params)
    logger.info(
        f"[API] Search request: term='{search_request.term}', filter={search_request.media_filter.value}, "
        f"page={search_request.page}, pageSize={search_request.page_size}, "
        f"version={search_request.response_version.value}"
    )

    async with browser.open_page() as page:
        response = await engine.search_with_deadline(search_request, page)

    if search_request.response_version == ResponseVersion.V1:
        return to_v1_response(response).model_dump(mode="json", by_alias=True)
    return response.model_dump(mode="json", by_alias=True)


@router.get("/scrape", response_model=ScrapeResponse, response_model_by_alias=True)
@router.get("/api/scrape", response_model=ScrapeResponse, response_model_by_alias=True)
async def scrape(
    request: Request,
    scraper: LegacyScraper = Depends(get_scraper),
    browser: BrowserProvider = Depends(get_browser_provider),
):
    """Legacy 전용 스크래핑 (원본 필드 그대로)"""
    params = request.query_params
    term = _parse_search_term(params)
    credentials = _parse_credentials(params)
    page_index = _parse_page(params)
    logger.info(f"[API] Scrape request: term='{term}', page={page_index}")

    async with browser.open_page() as page:
        try:
            scraped = await asyncio.wait_for(
                scraper.search_source(term, page_index, credentials, page),
                timeout=settings.search_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise TransientTransportError("scrape", f"timed out after {settings.search_timeout_s}s") from e

    logger.info(f"[API] Scraping with term '{term}' on page {page_index} completed. Found {len(scraped.items)} books.")
    return ScrapeResponse(meta=scraped.meta, results=scraped.items)
