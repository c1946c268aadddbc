"""Legacy 카탈로그 스크래퍼 (Playwright)

상태 전이: EnsureAuthenticated → Search → (NavigateToPage)* → ExtractPage

사이트는 '다음' 링크만 제공하므로 N페이지에 도달하려면 N-1번 클릭해야 합니다.
링크가 중간에 사라지면 실제 도달한 마지막 페이지를 반환합니다 (오류 아님).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from catalog_gateway.core.config import settings
from catalog_gateway.core.exceptions import (
    AuthenticationError,
    CatalogGatewayException,
    StructuralScrapeError,
    TransientTransportError,
)
from catalog_gateway.core.logging import get_logger
from catalog_gateway.schemas.search_schema import LegacyCredentials, PageMeta

from .cookie_store import CredentialStore, JsonCookieStore
from .extractor import CONTAINER_SELECTOR, PAGINATOR_SELECTOR, PageExtractor, SelectorPageExtractor


LOGIN_HEADER_TEXT = "Login to the Library"
LOGIN_USERNAME_SELECTOR = "#libraryname"
LOGIN_PASSWORD_SELECTOR = "#password"
LOGIN_SUBMIT_SELECTOR = 'button[type="submit"]'
POST_LOGIN_SELECTOR = 'img[alt="Profile"]'
SEARCH_INPUT_SELECTOR = 'input[name="term"]'
SEARCH_BUTTON_SELECTOR = 'button[id="search"]'
RESULTS_MARKER_SELECTOR = 'a[href="standard.php?display=Item"]'
NO_RECORDS_TEXT = "No records to display"
NEXT_LINK_SELECTOR = f'{PAGINATOR_SELECTOR} a[href="catalog_next.php"]'

_RANGE_PATTERN = re.compile(r"(\d+)-(\d+)\s+of\s+(\d+)")
NETWORK_ERROR_MARKER = "net::ERR_"


@dataclass
class ScrapedPage:
    """스크래핑한 한 페이지 (원본 필드 그대로의 아이템 + 메타)"""

    items: list[dict[str, Any]] = field(default_factory=list)
    meta: PageMeta = field(default_factory=PageMeta.empty)

    @classmethod
    def no_records(cls) -> "ScrapedPage":
        return cls(items=[], meta=PageMeta.empty(current_page=1, page_size=0))


class ScrapedSource(Protocol):
    """검색어 + 페이지 번호로 한 페이지를 돌려주는 좁은 인터페이스

    실제 브라우저 구현이든 fixture 재생이든 이 계약만 지키면 됩니다.
    """

    async def search_source(
        self, term: str, page_index: int, credentials: LegacyCredentials, page: Any
    ) -> ScrapedPage:
        ...


def parse_range_indicator(text: Optional[str], current_page: int) -> Optional[PageMeta]:
    """'  11-20 of 100' → PageMeta(current, size=10, total=100, pages=10)"""
    if not text:
        return None
    match = _RANGE_PATTERN.search(text)
    if not match:
        return None
    start, end, total = (int(g) for g in match.groups())
    page_size = max(0, end - start + 1)
    return PageMeta.compute(current_page, page_size, total)


def is_network_error(error: BaseException) -> bool:
    """Chromium 네트워크 오류 (net::ERR_CONNECTION_REFUSED 등)"""
    return NETWORK_ERROR_MARKER in str(error)


class LegacyScraper:
    """Playwright 기반 Legacy 카탈로그 스크래퍼"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        extractor: Optional[PageExtractor] = None,
        credential_store: Optional[CredentialStore] = None,
        login_timeout_s: Optional[float] = None,
        results_timeout_s: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_url = (base_url or settings.legacy_site_url).rstrip("/")
        self.logger = logger or get_logger("lw")
        self.extractor = extractor or SelectorPageExtractor(logger=self.logger)
        self.credential_store = credential_store or JsonCookieStore(logger=self.logger)
        self.login_timeout_ms = (login_timeout_s or settings.legacy_login_timeout_s) * 1000
        self.results_timeout_ms = (results_timeout_s or settings.legacy_results_timeout_s) * 1000

    async def search_source(
        self, term: str, page_index: int, credentials: LegacyCredentials, page: Page
    ) -> ScrapedPage:
        """검색 후 page_index 페이지(또는 도달 가능한 마지막 페이지)를 추출

        Raises:
            AuthenticationError: 로그인 후 마커가 나타나지 않음
            StructuralScrapeError: 검색 제출 후 페이지 구조를 인식하지 못함
            TransientTransportError: 타임아웃/네트워크 오류 또는 검색 제출 전 브라우저 오류
        """
        self.logger.info(f"[LW] Starting scrape for '{term}' on page {page_index}")
        submitted = False
        try:
            await self.credential_store.load(page, credentials)
            await self._ensure_authenticated(page, credentials)

            await page.goto(f"{self.base_url}/home.php", wait_until="networkidle")
            if not await self._submit_search(page, term):
                self.logger.info("[LW] No results found for the search term")
                return ScrapedPage.no_records()
            submitted = True

            current_page, meta = await self._navigate_to(page, page_index)
            return await self._extract(page, current_page, meta)
        except CatalogGatewayException:
            raise
        except PlaywrightTimeoutError as e:
            raise TransientTransportError("legacy_scrape", str(e)) from e
        except PlaywrightError as e:
            # 네트워크 오류이거나 검색 제출 전이면 구조 문제가 아님
            if is_network_error(e) or not submitted:
                self.logger.error(f"[LW] Browser error before results were reached: {e}")
                raise TransientTransportError("legacy_scrape", str(e)) from e
            raise StructuralScrapeError(f"browser error: {e}") from e

    async def _ensure_authenticated(self, page: Page, credentials: LegacyCredentials) -> None:
        self.logger.info("[LW] Checking login state...")
        await page.goto(self.base_url, wait_until="networkidle")

        header = await page.query_selector("h4")
        header_text = ((await header.text_content()) or "").strip() if header else ""
        if header_text != LOGIN_HEADER_TEXT:
            self.logger.info("[LW] Already logged in, no need to login again")
            return

        self.logger.info(
            f"[LW] Performing login for user: {credentials.username} "
            f"(password {'provided' if credentials.password else 'not provided'})"
        )
        await page.goto(f"{self.base_url}/index.php", wait_until="networkidle")
        await page.wait_for_selector(LOGIN_USERNAME_SELECTOR, timeout=self.login_timeout_ms)
        await page.fill(LOGIN_USERNAME_SELECTOR, credentials.username)
        await page.fill(LOGIN_PASSWORD_SELECTOR, credentials.password or "")
        await page.click(LOGIN_SUBMIT_SELECTOR)

        try:
            await page.wait_for_selector(POST_LOGIN_SELECTOR, timeout=self.login_timeout_ms)
        except PlaywrightTimeoutError as e:
            self.logger.error("[LW] Login seems to have failed; post-login element did not appear in time")
            raise AuthenticationError("legacy", "post-login marker not found") from e

        self.logger.info("[LW] Login successful, saving session")
        await self.credential_store.save(page, credentials)

    async def _submit_search(self, page: Page, term: str) -> bool:
        """검색 제출. 결과 없음 마커면 False, 구조 인식 실패면 예외"""
        await page.wait_for_selector(SEARCH_INPUT_SELECTOR)
        await page.fill(SEARCH_INPUT_SELECTOR, term)
        await page.click(SEARCH_BUTTON_SELECTOR)

        try:
            await page.wait_for_selector(RESULTS_MARKER_SELECTOR, timeout=self.results_timeout_ms)
            return True
        except PlaywrightTimeoutError:
            pass

        if await self._has_no_records_marker(page):
            return False

        self.logger.warning(f"[LW] Results marker not found after search (url={page.url})")
        content = await page.content()
        self.logger.debug(f"[LW] Current page content: {content[:500]}")
        raise StructuralScrapeError("results marker missing after search submission", {"url": page.url})

    async def _has_no_records_marker(self, page: Page) -> bool:
        centers = await page.query_selector_all("center")
        for center in centers:
            text = await center.inner_text()
            if NO_RECORDS_TEXT in (text or ""):
                return True
        return False

    async def _read_meta(self, page: Page, current_page: int, previous: Optional[PageMeta]) -> Optional[PageMeta]:
        parsed = parse_range_indicator(await self.extractor.read_indicator(page), current_page)
        if parsed is not None:
            return parsed
        if previous is not None:
            return previous.model_copy(update={"current_page": current_page})
        return None

    async def _navigate_to(self, page: Page, target_page: int) -> tuple[int, Optional[PageMeta]]:
        current_page = 1
        meta = await self._read_meta(page, current_page, None)

        while current_page < target_page:
            next_link = await page.query_selector(NEXT_LINK_SELECTOR)
            if next_link is None:
                self.logger.warning(f"[LW] No next page available. Stopping at page {current_page}")
                break
            async with page.expect_navigation(wait_until="networkidle"):
                await next_link.click()
            current_page += 1
            meta = await self._read_meta(page, current_page, meta)

        return current_page, meta

    async def _extract(self, page: Page, current_page: int, meta: Optional[PageMeta]) -> ScrapedPage:
        try:
            await page.wait_for_selector(CONTAINER_SELECTOR, timeout=self.results_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise StructuralScrapeError(f"no result containers on page {current_page}") from e

        items = await self.extractor.extract_items(page)
        self.logger.info(f"[LW] Extracted {len(items)} books on page {current_page}")

        if meta is None:
            # 범위 표시가 없으면 현재 페이지만으로 메타 구성
            meta = PageMeta.compute(current_page, len(items), len(items))
        return ScrapedPage(items=items, meta=meta)
