"""Legacy 카탈로그 어댑터

ScrapedSource(스크래퍼 또는 fixture 재생)를 감싸고, 원본 책 정보를
어댑터 경계에서 바로 UnifiedItem으로 정규화합니다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from catalog_gateway.core.logging import get_logger
from catalog_gateway.schemas.search_schema import (
    LegacyCredentials,
    MediaType,
    PageMeta,
    SourceName,
    UnifiedItem,
)

from .scraper import ScrapedPage, ScrapedSource


@dataclass
class LegacyResult:
    """Legacy 검색 결과 (정규화된 아이템 + 출처 자체 메타)"""

    items: list[UnifiedItem] = field(default_factory=list)
    meta: PageMeta = field(default_factory=PageMeta.empty)


def _as_int(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def map_legacy_item(book: dict[str, Any], page_index: int, position: int) -> UnifiedItem:
    """Legacy 책 정보 → UnifiedItem

    Legacy 시스템에는 고유 ID가 없어서 sourceId는 제목을 사용합니다.
    응답 내 id는 (페이지, 순번)으로 만듭니다.
    """
    title = book.get("title") or "Unknown Title"
    extra_fields = book.get("extraFields") or {}
    return UnifiedItem(
        id=f"legacy-{page_index}-{position}",
        title=title,
        author=book.get("author") or book.get("expandedAuthor") or "Unknown Author",
        description=book.get("description") or "",
        media_type=MediaType.PHYSICAL,
        image_url=book.get("bookJacketUrl") or None,
        availability=book.get("availability") or "Unknown",
        copies=_as_int(book.get("copies")),
        format="Book",
        source=SourceName.LEGACY,
        source_id=title,
        additional_details={
            "googlePreviewUrl": book.get("googlePreviewUrl"),
            "extraFields": extra_fields if isinstance(extra_fields, dict) else {},
            "expandedAuthor": book.get("expandedAuthor") or None,
        },
    )


class LegacyCatalogAdapter:
    """Legacy(실물) 검색 어댑터

    Usage:
        adapter = LegacyCatalogAdapter(LegacyScraper())
        result = await adapter.search("dune", 2, credentials, page)
    """

    def __init__(self, source: ScrapedSource, logger: Optional[logging.Logger] = None) -> None:
        self.source = source
        self.logger = logger or get_logger("lw")

    async def search(
        self,
        term: str,
        page_index: int,
        credentials: LegacyCredentials,
        page: Any,
    ) -> LegacyResult:
        """한 페이지 검색 후 정규화

        실패는 그대로 전파합니다 (fusion 경계에서 BranchOutcome으로 변환).
        """
        self.logger.info(f"[LW] Searching legacy system for '{term}' (page {page_index})")
        scraped: ScrapedPage = await self.source.search_source(term, page_index, credentials, page)

        reached = scraped.meta.current_page or page_index
        items = [map_legacy_item(book, reached, n) for n, book in enumerate(scraped.items, start=1)]
        self.logger.info(f"[LW] Found {len(items)} physical media items")
        return LegacyResult(items=items, meta=scraped.meta)
