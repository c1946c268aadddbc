"""YCL 카탈로그 엔드포인트 (search / detail)

data route 경로와 referer를 브라우저 주소창과 동일하게 구성합니다.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote, quote_plus, urlencode

from catalog_gateway.core.config import DigitalSourceConfig
from catalog_gateway.core.logging import get_logger

from .transport import CatalogTransport, TransportResponse, build_headers


DEFAULT_QUERY_PARAMS: dict[str, str] = {
    "format": "",
    "available": "any",
    "language": "",
    "sort": "",
    "orderBy": "relevence",
    "owned": "yes",
}

SEARCH_DATA_PARAM = "_data=routes%2Flibrary.%24name.search"
DETAIL_DATA_PARAM = "_data=routes%2Flibrary.%24name.detail.%24id"


def encode_search_text(text: str) -> tuple[str, str]:
    """검색어 인코딩: 쿼리스트링은 '+', referer는 '%20'"""
    return quote_plus(text, safe="!~*'()"), quote(text, safe="!~*'()")


class CatalogClient:
    """YCL search/detail 요청 빌더"""

    def __init__(
        self,
        config: DigitalSourceConfig,
        transport: CatalogTransport,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.transport = transport
        self.logger = logger or get_logger("ycl")

    def build_search_path(
        self,
        search_text: Optional[str] = None,
        extra_params: Optional[dict[str, Any]] = None,
    ) -> tuple[str, str]:
        """(path, referer) 반환"""
        slug = self.config.library_slug
        params = {**DEFAULT_QUERY_PARAMS, **{k: str(v) for k, v in (extra_params or {}).items()}}
        query_part = urlencode(params)

        text = (search_text or "").strip()
        if text:
            for_query, for_referer = encode_search_text(text)
            query_part = f"{query_part}&query={for_query}" if query_part else f"query={for_query}"
            referer = f"{self.config.base_url}/library/{slug}/search?query={for_referer}"
        else:
            plain = urlencode(params)
            referer = f"{self.config.base_url}/library/{slug}/search" + (f"?{plain}" if plain else "")

        full = f"{query_part}&{SEARCH_DATA_PARAM}" if query_part else SEARCH_DATA_PARAM
        return f"/library/{slug}/search?{full}", referer

    async def search(
        self,
        cookie: str,
        search_text: Optional[str] = None,
        extra_params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> TransportResponse:
        """검색/브라우징 요청

        search_text 없이 카테고리 필터(extra_params)만으로도 호출할 수 있습니다.
        """
        path, referer = self.build_search_path(search_text, extra_params)
        hdrs = build_headers(headers, path, referer, self.config.host, self.config.protocol, cookie)
        return await self.transport.request(hdrs)

    async def detail(
        self,
        cookie: str,
        item_id: str,
        headers: Optional[dict[str, str]] = None,
    ) -> TransportResponse:
        slug = self.config.library_slug
        item = quote(str(item_id), safe="")
        path = f"/library/{slug}/detail/{item}?{DETAIL_DATA_PARAM}"
        referer = f"{self.config.base_url}/library/{slug}/detail/{item}"
        hdrs = build_headers(headers, path, referer, self.config.host, self.config.protocol, cookie)
        return await self.transport.request(hdrs)
