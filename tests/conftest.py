"""전역 테스트 설정

역할:
- 테스트 환경 구성
- 공통 Fake 주입 (브라우저 페이지, curl 세션, 어댑터)

금지:
- 실제 네트워크 / 실제 브라우저
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest


# 프로젝트 루트를 경로에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from playwright.async_api import TimeoutError as PlaywrightTimeoutError  # noqa: E402

from catalog_gateway.core.config import Settings  # noqa: E402
from catalog_gateway.crawlers.ycl.adapter import DigitalResult  # noqa: E402
from catalog_gateway.schemas.search_schema import (  # noqa: E402
    LegacyCredentials,
    MediaType,
    SourceName,
    UnifiedItem,
)


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    """테스트 환경 변수 설정 (세션 전역)"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "INFO"


# ============================================================================
# curl_cffi 세션 Fake
# ============================================================================


class FakeCurlResponse:
    def __init__(self, status_code: int = 200, headers: Optional[dict[str, str]] = None, content: bytes = b""):
        self.status_code = status_code
        self.headers = headers or {}
        self.content = content


class FakeCurlSession:
    """AsyncSession.request 대역

    outcomes: 호출 순서대로 반환할 응답 또는 던질 예외
    """

    def __init__(self, outcomes: list[Any]):
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def request(self, method: str, url: str, **kwargs: Any) -> FakeCurlResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


# ============================================================================
# Playwright Page Fake
# ============================================================================


class FakeBrowserResponse:
    def __init__(self, url: str, status: int = 200, set_cookie: Optional[str] = None):
        self.url = url
        self.status = status
        self.set_cookie = set_cookie

    async def header_value(self, name: str) -> Optional[str]:
        if name.lower() == "set-cookie":
            return self.set_cookie
        return None


class FakeBrowserContext:
    def __init__(self, cookies: Optional[list[dict[str, Any]]] = None, page_factory: Optional[Callable] = None):
        self._cookies = cookies or []
        self.page_factory = page_factory
        self.opened_pages: list["FakeBrowserPage"] = []
        self.added_cookies: list[dict[str, Any]] = []

    async def cookies(self, urls: Any = None) -> list[dict[str, Any]]:
        return list(self._cookies)

    async def add_cookies(self, cookies: list[dict[str, Any]]) -> None:
        self.added_cookies.extend(cookies)

    async def new_page(self) -> "FakeBrowserPage":
        page = self.page_factory(self) if self.page_factory else FakeBrowserPage(context=self)
        self.opened_pages.append(page)
        return page


class FakeBrowserPage:
    """세션 획득 테스트용 페이지

    goto()가 호출되면 responses를 순서대로 리스너/대기자에게 전달합니다.
    """

    def __init__(
        self,
        responses: Optional[list[FakeBrowserResponse]] = None,
        context: Optional[FakeBrowserContext] = None,
        goto_error: Optional[BaseException] = None,
        close_error: Optional[BaseException] = None,
    ):
        self.responses = list(responses or [])
        self.context = context or FakeBrowserContext()
        self.goto_error = goto_error
        self.close_error = close_error
        self.url = "about:blank"
        self.closed = False
        self._listeners: list[Callable] = []
        self._waiters: list[tuple[Callable, asyncio.Future]] = []

    def on(self, event: str, callback: Callable) -> None:
        self._listeners.append(callback)

    def remove_listener(self, event: str, callback: Callable) -> None:
        self._listeners.remove(callback)

    async def wait_for_event(self, event: str, predicate: Optional[Callable] = None, timeout: float = 30000) -> Any:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.append((predicate or (lambda _: True), future))
        try:
            return await asyncio.wait_for(future, timeout=timeout / 1000)
        except asyncio.TimeoutError:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded while waiting for event \"{event}\"")

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.url = url
        await asyncio.sleep(0)
        for response in self.responses:
            for listener in list(self._listeners):
                listener(response)
            for predicate, future in list(self._waiters):
                if not future.done() and predicate(response):
                    future.set_result(response)
        if self.goto_error is not None:
            raise self.goto_error

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class ContextOnlyPage:
    """fusion 테스트용: 엔진은 page.context만 사용"""

    def __init__(self) -> None:
        self.context = FakeBrowserContext()


# ============================================================================
# 어댑터 / 협력자 Fake
# ============================================================================


def make_item(
    n: int,
    media_type: MediaType = MediaType.PHYSICAL,
    availability: str = "Available",
    copies: int = 1,
    title: Optional[str] = None,
    author: Optional[str] = None,
) -> UnifiedItem:
    source = SourceName.LEGACY if media_type == MediaType.PHYSICAL else SourceName.YCL
    return UnifiedItem(
        id=f"{source.value}-{n}",
        title=title or f"Title {n}",
        author=author or f"Author {n}",
        media_type=media_type,
        availability=availability,
        copies=copies,
        format="Book" if media_type == MediaType.PHYSICAL else "eBook",
        source=source,
        source_id=str(n),
    )


class FakeSessionAcquirer:
    def __init__(self, cookie: Optional[str] = "__config_PROD=abc", delay: float = 0.0, error: Optional[BaseException] = None):
        self.cookie = cookie
        self.delay = delay
        self.error = error
        self.calls: list[str] = []

    async def acquire_with_aux_page(self, context: Any, auth_url: str) -> Optional[str]:
        self.calls.append(auth_url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.cookie


class FakeDigitalAdapter:
    """DigitalCatalogAdapter 대역"""

    def __init__(
        self,
        items: Optional[list[UnifiedItem]] = None,
        total: int = 0,
        search_delay: float = 0.0,
        count_delay: float = 0.0,
        search_error: Optional[BaseException] = None,
        count_error: Optional[BaseException] = None,
    ):
        self._result = DigitalResult(items=items or [], total=total)
        self.total = total
        self.search_delay = search_delay
        self.count_delay = count_delay
        self.search_error = search_error
        self.count_error = count_error
        self.search_calls: list[tuple] = []
        self.closed = False

    async def search(self, term: str, offset: int, limit: int, cookie: Optional[str]):
        self.search_calls.append((term, offset, limit, cookie))
        if self.search_delay:
            await asyncio.sleep(self.search_delay)
        if self.search_error is not None:
            raise self.search_error
        return self._result

    async def count(self, term: str, cookie: Optional[str]) -> int:
        if self.count_delay:
            await asyncio.sleep(self.count_delay)
        if self.count_error is not None:
            raise self.count_error
        return self.total

    async def close(self) -> None:
        self.closed = True


class FakeLegacyAdapter:
    """LegacyCatalogAdapter 대역"""

    def __init__(self, result: Any = None, delay: float = 0.0, error: Optional[BaseException] = None):
        self.result = result
        self.delay = delay
        self.error = error
        self.calls: list[tuple] = []

    async def search(self, term: str, page_index: int, credentials: LegacyCredentials, page: Any):
        self.calls.append((term, page_index, credentials.username))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def credentials() -> LegacyCredentials:
    return LegacyCredentials(username="reader", password="secret")


@pytest.fixture
def ycl_settings() -> Settings:
    """YCL이 설정된 Settings"""
    return Settings(
        ycl_host="catalog.example.org",
        ycl_library_slug="springfield",
        ycl_auth_url="https://catalog.example.org/auth",
        _env_file=None,
    )


@pytest.fixture
def no_ycl_settings() -> Settings:
    return Settings(ycl_host="", _env_file=None)


@pytest.fixture
def fakes() -> SimpleNamespace:
    """테스트 모듈에서 Fake 클래스에 접근하기 위한 네임스페이스"""
    return SimpleNamespace(
        ContextOnlyPage=ContextOnlyPage,
        FakeBrowserContext=FakeBrowserContext,
        FakeBrowserPage=FakeBrowserPage,
        FakeBrowserResponse=FakeBrowserResponse,
        FakeCurlResponse=FakeCurlResponse,
        FakeCurlSession=FakeCurlSession,
        FakeDigitalAdapter=FakeDigitalAdapter,
        FakeLegacyAdapter=FakeLegacyAdapter,
        FakeSessionAcquirer=FakeSessionAcquirer,
        make_item=make_item,
    )
