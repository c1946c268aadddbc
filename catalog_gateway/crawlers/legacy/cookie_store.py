"""Legacy 로그인 세션 저장소 (외부 협력자 경계)

자격 증명 해시로 파일을 구분해 브라우저 쿠키를 JSON으로 저장/복원합니다.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from catalog_gateway.core.config import settings
from catalog_gateway.core.logging import get_logger
from catalog_gateway.schemas.search_schema import LegacyCredentials


def hash_credentials(credentials: LegacyCredentials) -> str:
    digest = hashlib.sha256()
    digest.update(credentials.username.encode("utf-8"))
    digest.update((credentials.password or "").encode("utf-8"))
    return digest.hexdigest()


class CredentialStore(Protocol):
    async def load(self, page: Page, credentials: LegacyCredentials) -> None:
        ...

    async def save(self, page: Page, credentials: LegacyCredentials) -> None:
        ...


class JsonCookieStore:
    """cookies.<sha256>.json 파일 기반 저장소"""

    def __init__(self, directory: Optional[str] = None, logger: Optional[logging.Logger] = None) -> None:
        self.directory = Path(directory or settings.cookie_store_dir)
        self.logger = logger or get_logger("lw")

    def path_for(self, credentials: LegacyCredentials) -> Path:
        return self.directory / f"cookies.{hash_credentials(credentials)}.json"

    async def load(self, page: Page, credentials: LegacyCredentials) -> None:
        """저장된 쿠키가 있으면 컨텍스트에 주입 (손상된 파일은 무시)"""
        path = self.path_for(credentials)
        if not path.exists():
            return
        try:
            cookies = json.loads(path.read_text(encoding="utf-8")) or []
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"[LW] Ignoring unreadable cookie file: {type(e).__name__}")
            return
        if cookies:
            try:
                await page.context.add_cookies(cookies)
            except PlaywrightError as e:
                self.logger.warning(f"[LW] Stored cookies rejected by browser: {e}")

    async def save(self, page: Page, credentials: LegacyCredentials) -> None:
        cookies = await page.context.cookies()
        path = self.path_for(credentials)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(cookies, indent=2), encoding="utf-8")
        except OSError as e:
            self.logger.warning(f"[LW] Failed to persist cookies: {type(e).__name__}: {e}")
