"""YCL 세션 쿠키 획득 (Playwright 리다이렉트 가로채기)

auth URL로 이동하면서 모든 응답의 Set-Cookie를 기록하고, 동시에 auth URL에서 나온
첫 3xx 응답을 기다립니다. 결정 순서:

1. 리다이렉트 응답의 Set-Cookie
2. 이동 중 수집한 Set-Cookie 전체 ('; ' 결합)
3. 브라우저 쿠키 저장소 (name=value; ...)

각 단계는 독립적으로 실패할 수 있고, 셋 다 비어야 None을 반환합니다.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from playwright.async_api import BrowserContext, Page, Response
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from catalog_gateway.core.config import settings
from catalog_gateway.core.logging import get_logger, mask_cookie

from .transport import is_session_reset_line


def is_qualifying_redirect(response: Any, auth_url: str) -> bool:
    status = getattr(response, "status", 0) or 0
    return 300 <= status < 400 and str(getattr(response, "url", "")).startswith(auth_url)


def drop_session_reset_lines(value: Optional[str], session_name: Optional[str] = None) -> str:
    """세션 ID를 빈 값으로 초기화하는 Set-Cookie 줄만 제거

    그대로 쓰면 살아 있는 세션이 지워집니다.
    """
    if not value:
        return ""
    session_name = session_name or settings.ycl_session_cookie_name
    kept = [
        line.strip()
        for line in value.split("\n")
        if line.strip() and not is_session_reset_line(line, session_name)
    ]
    return "\n".join(kept)


class SessionAcquirer:
    """요청 단위 YCL 세션 쿠키 획득기 (캐시하지 않음)"""

    def __init__(
        self,
        redirect_timeout_s: Optional[float] = None,
        session_cookie_name: Optional[str] = None,
        post_navigation_grace_s: float = 1.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.redirect_timeout_s = redirect_timeout_s or settings.session_redirect_timeout_s
        self.session_cookie_name = session_cookie_name or settings.ycl_session_cookie_name
        self.post_navigation_grace_s = post_navigation_grace_s
        self.logger = logger or get_logger("ycl")

    async def acquire(self, page: Page, auth_url: str) -> Optional[str]:
        """세션 쿠키 문자열 또는 None"""
        self.logger.info(f"[YCL] Getting redirect cookie from: {auth_url}")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.redirect_timeout_s

        responses: list[Response] = []

        def on_response(response: Response) -> None:
            responses.append(response)

        page.on("response", on_response)
        redirect_task = asyncio.create_task(self._wait_for_redirect(page, auth_url))
        redirect: Optional[Response] = None
        try:
            try:
                await page.goto(auth_url, wait_until="networkidle", timeout=self.redirect_timeout_s * 1000)
            except PlaywrightError as e:
                self.logger.warning(f"[YCL] Navigation error (non-fatal): {e}")

            redirect = next((r for r in responses if is_qualifying_redirect(r, auth_url)), None)
            if redirect is None:
                remaining = max(0.0, deadline - loop.time())
                try:
                    redirect = await asyncio.wait_for(
                        asyncio.shield(redirect_task), timeout=min(remaining, self.post_navigation_grace_s)
                    )
                except asyncio.TimeoutError:
                    redirect = None
        finally:
            page.remove_listener("response", on_response)
            if not redirect_task.done():
                redirect_task.cancel()

        cookie = await self._from_redirect(redirect)
        if cookie:
            return cookie

        cookie = await self._from_collected(responses)
        if cookie:
            return cookie

        cookie = await self._from_cookie_jar(page, auth_url)
        if cookie:
            return cookie

        self.logger.warning("[YCL] No cookies found")
        return None

    async def _wait_for_redirect(self, page: Page, auth_url: str) -> Optional[Response]:
        try:
            return await page.wait_for_event(
                "response",
                predicate=lambda r: is_qualifying_redirect(r, auth_url),
                timeout=self.redirect_timeout_s * 1000,
            )
        except (PlaywrightTimeoutError, PlaywrightError) as e:
            self.logger.warning(f"[YCL] Redirect wait error (non-fatal): {e}")
            return None

    async def _from_redirect(self, redirect: Optional[Response]) -> Optional[str]:
        if redirect is None:
            return None
        try:
            self.logger.info(f"[YCL] Got redirect response: {redirect.status} {redirect.url}")
            raw = await redirect.header_value("set-cookie")
        except PlaywrightError as e:
            self.logger.warning(f"[YCL] Could not read redirect Set-Cookie: {e}")
            return None
        cookie = drop_session_reset_lines(raw, self.session_cookie_name)
        if cookie:
            self.logger.info(f"[YCL] Successfully extracted Set-Cookie header from redirect ({mask_cookie(cookie)})")
        return cookie or None

    async def _from_collected(self, responses: list[Response]) -> Optional[str]:
        collected: list[str] = []
        for response in responses:
            try:
                raw = await response.header_value("set-cookie")
            except PlaywrightError as e:
                self.logger.debug(f"[YCL] Skipping response headers: {e}")
                continue
            cleaned = drop_session_reset_lines(raw, self.session_cookie_name)
            if cleaned:
                collected.append(cleaned)
        if not collected:
            return None
        self.logger.info(f"[YCL] Using cookies collected from {len(collected)} responses")
        # Set-Cookie 원문 형태를 유지해야 sanitize_cookie가 줄마다 name=value를 뽑음
        return "\n".join(collected)

    async def _from_cookie_jar(self, page: Page, auth_url: str) -> Optional[str]:
        try:
            url = page.url if page.url.startswith("http") else auth_url
            jar = await page.context.cookies([url])
        except PlaywrightError as e:
            self.logger.error(f"[YCL] Failed to read cookies from page: {e}")
            return None
        pairs = [f"{c['name']}={c['value']}" for c in jar if c.get("name")]
        if not pairs:
            return None
        self.logger.info(f"[YCL] Found {len(pairs)} cookies from page")
        return "; ".join(pairs)

    async def acquire_with_aux_page(self, context: BrowserContext, auth_url: str) -> Optional[str]:
        """보조 탭을 열어 세션을 획득하고 닫음 (닫기 실패는 무시)"""
        aux_page = await context.new_page()
        try:
            return await self.acquire(aux_page, auth_url)
        finally:
            try:
                await aux_page.close()
            except PlaywrightError as e:
                self.logger.warning(f"[YCL] Error closing auxiliary page (non-fatal): {e}")
