"""Legacy 결과 페이지 파싱 (외부 협력자 경계)

LegacyScraper는 PageExtractor 프로토콜만 알고, 실제 DOM 구조는 여기서만 다룹니다.
브라우저에서는 page.content()만 가져오고, 파싱은 네트워크와 분리된 순수 함수로 처리합니다.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Protocol

from playwright.async_api import Page
from selectolax.parser import HTMLParser, Node

from catalog_gateway.core.logging import get_logger


CONTAINER_SELECTOR = ".card > .card-body > .row"
PAGINATOR_SELECTOR = 'td[align="right"][valign="top"]'

_COPIES_RE = re.compile(r"(\d+)")


class MissingFieldError(ValueError):
    """컨테이너에 필수 요소가 없음 (해당 아이템만 건너뜀)"""

    def __init__(self, field: str):
        self.field = field
        super().__init__(field)


def _text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return (node.text(deep=True) or "").strip()


def _extra_fields(font: Node) -> dict[str, str]:
    """<b>Key:</b> value <b>Key2:</b> value2 형태를 dict로"""
    full = font.text(deep=True) or ""
    # (라벨, 본문 내 시작 위치, 끝 위치)
    labels: list[tuple[str, int, int]] = []
    cursor = 0
    for bold in font.css("b"):
        label = bold.text(deep=True) or ""
        start = full.find(label, cursor) if label else -1
        if start < 0:
            continue
        cursor = start + len(label)
        labels.append((label, start, cursor))

    fields: dict[str, str] = {}
    for idx, (label, _, end) in enumerate(labels):
        if not label.endswith(":"):
            continue
        stop = labels[idx + 1][1] if idx + 1 < len(labels) else len(full)
        fields[label[:-1].strip()] = full[end:stop].strip()
    return fields


def parse_book(container: Node) -> dict[str, Any]:
    """결과 컨테이너 하나 → Legacy 원본 필드 dict

    Raises:
        MissingFieldError: 표지/미리보기/제목/가용성 중 하나라도 없을 때
    """
    left = container.css_first(".col-sm-2 center")
    links = left.css("a") if left is not None else []
    jacket = links[0].css_first("img") if links else None
    if jacket is None:
        raise MissingFieldError("jacket")
    book_jacket_url = jacket.attributes.get("src")
    if not book_jacket_url:
        raise MissingFieldError("jacket_url")
    google_preview_url = links[1].attributes.get("href") if len(links) > 1 else None
    if not google_preview_url:
        raise MissingFieldError("preview")

    details = container.css_first(".col-sm-8")
    if details is None:
        raise MissingFieldError("details")

    fonts = details.css("font")
    title = ""
    expanded_author = ""
    extra_fields: dict[str, str] = {}
    description = ""
    if fonts:
        parts = [p.strip() for p in _text(fonts[0]).split("/")]
        title = parts[0] if parts else ""
        expanded_author = parts[1] if len(parts) > 1 else ""
    for font in fonts[1:]:
        if font.css_first("b") is not None:
            extra_fields.update(_extra_fields(font))
            continue
        text = _text(font)
        if text:
            description = f"{description}\n\n{text}" if description else text
    if not title:
        raise MissingFieldError("title")
    author = extra_fields.pop("Author", None)

    columns = container.css(".col-sm-2")
    right = columns[-1] if len(columns) > 1 else None
    if right is None:
        raise MissingFieldError("availability")
    lines = [line.strip() for line in (right.text(deep=True, separator="\n") or "").split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        raise MissingFieldError("availability")
    match = _COPIES_RE.search(lines[1]) if len(lines) > 1 else None

    return {
        "bookJacketUrl": book_jacket_url,
        "googlePreviewUrl": google_preview_url,
        "title": title,
        "expandedAuthor": expanded_author,
        "author": author,
        "extraFields": extra_fields,
        "description": description,
        "availability": lines[0],
        "copies": int(match.group(1)) if match else 0,
    }


def parse_books(html: str, logger: Optional[logging.Logger] = None) -> list[dict[str, Any]]:
    """결과 페이지 HTML → 책 목록 (필수 요소가 빠진 컨테이너는 건너뜀)"""
    log = logger or get_logger("lw")
    containers = HTMLParser(html or "").css(CONTAINER_SELECTOR)
    log.info(f"[LW] Found {len(containers)} book containers")

    books: list[dict[str, Any]] = []
    for idx, container in enumerate(containers):
        try:
            books.append(parse_book(container))
        except MissingFieldError as e:
            log.error(f"[LW] Container {idx} skipped: missing {e.field}")
    return books


def parse_indicator(html: str) -> Optional[str]:
    """'1-10 of 100' 범위 표시 원문 (없으면 None)"""
    paginator = HTMLParser(html or "").css_first(PAGINATOR_SELECTOR)
    if paginator is None:
        return None
    return paginator.text(deep=True)


class PageExtractor(Protocol):
    """결과 페이지에서 아이템과 범위 표시('1-10 of 100')를 읽는 협력자"""

    async def extract_items(self, page: Page) -> list[dict[str, Any]]:
        ...

    async def read_indicator(self, page: Page) -> Optional[str]:
        ...


class SelectorPageExtractor:
    """page.content() + selectolax 기반 기본 extractor"""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or get_logger("lw")

    async def extract_items(self, page: Page) -> list[dict[str, Any]]:
        return parse_books(await page.content(), self.logger)

    async def read_indicator(self, page: Page) -> Optional[str]:
        return parse_indicator(await page.content())
