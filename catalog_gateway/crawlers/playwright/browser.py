"""Playwright 브라우저 관리

Playwright 런타임은 프로세스 단위로 공유하고, 브라우저/컨텍스트/페이지는
요청마다 새로 만들어 요청 종료 시 닫습니다 (요청 간 세션 공유 없음).
"""

from __future__ import annotations

import asyncio
import logging
import platform
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from catalog_gateway.core.config import settings
from catalog_gateway.core.exceptions import BrowserException
from catalog_gateway.core.logging import get_logger


def build_launch_args() -> list[str]:
    args: list[str] = [
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-background-networking",
        "--disable-default-apps",
        "--disable-extensions",
        "--no-first-run",
        "--no-default-browser-check",
    ]
    if platform.system().lower() == "linux":
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])
    return args


class BrowserProvider:
    """요청 단위 브라우저 페이지 제공자

    ws_endpoint가 있으면 원격 브라우저에 CDP로 연결하고, 없으면 로컬
    headless Chromium을 띄웁니다.

    Usage:
        provider = BrowserProvider()
        async with provider.open_page() as page:
            ...
        await provider.shutdown()
    """

    def __init__(
        self,
        ws_endpoint: Optional[str] = None,
        connect_timeout_ms: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.ws_endpoint = ws_endpoint if ws_endpoint is not None else settings.browser_ws_endpoint
        self.connect_timeout_ms = connect_timeout_ms or settings.browser_connect_timeout_ms
        self.logger = logger or get_logger("browser")
        self._lock = asyncio.Lock()
        self._playwright: Optional[Playwright] = None

    async def _ensure_playwright(self) -> Playwright:
        async with self._lock:
            if self._playwright is None:
                self.logger.info("[Playwright] Starting runtime")
                self._playwright = await async_playwright().start()
            return self._playwright

    async def _open_browser(self) -> Browser:
        pw = await self._ensure_playwright()
        try:
            if self.ws_endpoint:
                self.logger.info("[Playwright] Connecting to remote browser...")
                return await pw.chromium.connect_over_cdp(self.ws_endpoint, timeout=self.connect_timeout_ms)
            self.logger.info("[Playwright] Launching local headless browser...")
            return await pw.chromium.launch(headless=True, args=build_launch_args(), timeout=self.connect_timeout_ms)
        except PlaywrightError as e:
            self.logger.error(f"[Playwright] Failed to open browser: {e}")
            raise BrowserException(f"Browser connection failed: {e}") from e

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[Page]:
        """새 컨텍스트의 페이지. 종료 시 브라우저를 닫음 (실패는 무시)"""
        browser = await self._open_browser()
        try:
            try:
                context = await browser.new_context(ignore_https_errors=True)
                page = await context.new_page()
            except PlaywrightError as e:
                raise BrowserException(f"Failed to create browser page: {e}") from e
            self.logger.info("[Playwright] Browser connected successfully")
            yield page
        finally:
            try:
                await browser.close()
            except PlaywrightError as e:
                self.logger.warning(f"[Playwright] Error closing browser (non-fatal): {e}")

    async def shutdown(self) -> None:
        async with self._lock:
            if self._playwright is None:
                return
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                self.logger.debug(f"[Playwright] Runtime stop failed: {e}")
            self._playwright = None
