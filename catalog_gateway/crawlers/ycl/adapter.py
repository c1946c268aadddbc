"""YCL 디지털 카탈로그 어댑터 (offset/limit JSON API)

응답 아이템은 어댑터 경계에서 바로 UnifiedItem으로 정규화합니다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from catalog_gateway.core.config import DigitalSourceConfig
from catalog_gateway.core.exceptions import AuthenticationError
from catalog_gateway.core.logging import get_logger
from catalog_gateway.schemas.search_schema import MediaType, SourceName, UnifiedItem

from .client import CatalogClient
from .transport import CatalogTransport, TransportResponse


@dataclass
class DigitalResult:
    """YCL 검색 결과 (한 페이지 + 전체 개수)"""

    items: list[UnifiedItem] = field(default_factory=list)
    total: int = 0


def _search_block(payload: Any) -> Optional[dict[str, Any]]:
    """payload['results']['search'] (없으면 None)"""
    if not isinstance(payload, dict):
        return None
    results = payload.get("results")
    if not isinstance(results, dict):
        return None
    search = results.get("search")
    return search if isinstance(search, dict) else None


def extract_items(payload: Any) -> Optional[list[dict[str, Any]]]:
    search = _search_block(payload)
    if search is None:
        return None
    items = search.get("items")
    if not isinstance(items, list):
        return None
    return [item for item in items if isinstance(item, dict)]


def extract_total(payload: Any) -> int:
    search = _search_block(payload) or {}
    try:
        return max(0, int(search.get("totalItems") or 0))
    except (TypeError, ValueError):
        return 0


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def map_ycl_item(item: dict[str, Any], config: DigitalSourceConfig, position: int = 0) -> UnifiedItem:
    """YCL 아이템 → UnifiedItem

    id가 없는 아이템은 검색 결과 내 위치(offset 기준)로 id를 만듭니다.
    """
    authors = item.get("authors") or []
    author = authors[0] if isinstance(authors, list) and authors else None
    raw_id = item.get("id")
    source_id = "" if raw_id is None or raw_id == "" else str(raw_id)
    item_id = f"ycl-{source_id}" if source_id else f"ycl-pos-{position}"
    document_id = item.get("documentId")
    details_url = f"{config.base_url}/library/{config.library_slug}/detail/{document_id}" if document_id else None

    return UnifiedItem(
        id=item_id,
        title=item.get("title") or "Unknown Title",
        author=author or "Unknown Author",
        description=item.get("summary") or "",
        media_type=MediaType.DIGITAL,
        image_url=item.get("imageLinkThumbnail") or None,
        availability="Available" if _as_int(item.get("currentlyAvailable")) > 0 else "Checked Out",
        copies=max(0, _as_int(item.get("totalCopies"))),
        format=item.get("mediaType") or "eBook",
        source=SourceName.YCL,
        source_id=source_id,
        additional_details={
            "isbn": item.get("isbn"),
            "publisher": item.get("publisherName"),
            "publishDate": item.get("datePublished"),
            "language": item.get("language"),
            "subjects": item.get("subjects"),
            "seriesTitle": item.get("seriesTitle"),
            "detailsUrl": details_url,
        },
    )


class DigitalCatalogAdapter:
    """YCL 검색 어댑터

    Usage:
        adapter = DigitalCatalogAdapter(client, config)
        result = await adapter.search("dune", offset=0, limit=10, cookie=cookie)
        total = await adapter.count("dune", cookie=cookie)
    """

    def __init__(
        self,
        client: CatalogClient,
        config: DigitalSourceConfig,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.config = config
        self.logger = logger or get_logger("ycl")

    def _check_authenticated(self, response: TransportResponse) -> None:
        # 로그인 페이지로 리다이렉트되면 JSON 대신 HTML 문서가 옴
        if response.is_html:
            raise AuthenticationError("ycl", "received HTML instead of JSON (redirected to login)")

    async def search(self, term: str, offset: int, limit: int, cookie: Optional[str]) -> DigitalResult:
        """한 페이지 검색

        Raises:
            AuthenticationError: 쿠키 없음 또는 로그인 페이지 응답
            TransientTransportError: 네트워크 실패
        """
        if not cookie:
            raise AuthenticationError("ycl", "authentication cookie is required")

        self.logger.info(f"[YCL] Searching for '{term}' (offset {offset}, limit {limit})")
        response = await self.client.search(
            cookie,
            search_text=term,
            extra_params={"offset": str(offset), "limit": str(limit), "owned": "yes"},
        )
        self._check_authenticated(response)

        items = extract_items(response.json)
        if items is None:
            if response.status == 200:
                self.logger.warning("[YCL] 200 status but no search items in the response")
            else:
                self.logger.warning(f"[YCL] Search returned status {response.status} with no items")
            return DigitalResult(items=[], total=0)

        results = [map_ycl_item(item, self.config, offset + n) for n, item in enumerate(items, start=1)]
        self.logger.info(f"[YCL] Found {len(results)} digital items")
        return DigitalResult(items=results, total=extract_total(response.json))

    async def count(self, term: str, cookie: Optional[str]) -> int:
        """전체 결과 수 (limit=1 최소 요청)"""
        if not cookie:
            raise AuthenticationError("ycl", "authentication cookie is required")

        response = await self.client.search(
            cookie,
            search_text=term,
            extra_params={"limit": "1", "owned": "yes"},
        )
        self._check_authenticated(response)
        return extract_total(response.json)

    async def close(self) -> None:
        await self.client.transport.close()


def build_digital_adapter(config: DigitalSourceConfig, logger: Optional[logging.Logger] = None) -> DigitalCatalogAdapter:
    """요청 단위 어댑터 (transport도 요청마다 새로 만들어 쿠키가 섞이지 않게 함)"""
    logger = logger or get_logger("ycl")
    transport = CatalogTransport(logger=logger)
    return DigitalCatalogAdapter(CatalogClient(config, transport, logger=logger), config, logger=logger)
