"""YCL 전송 계층 (curl_cffi, HTTP/2 → HTTP/1.1 폴백)

- 모든 헤더(HTTP/2 pseudo-header 포함)를 고정 순서로 직접 구성합니다.
  라이브러리 기본 헤더 자동 주입은 끕니다 (봇 탐지 회피).
- 응답 압축 해제는 Content-Encoding 기준으로 직접 수행합니다.
- JSON 파싱은 content-type이 JSON일 때만 시도하고, 실패해도 예외를 던지지 않습니다.
"""

from __future__ import annotations

import asyncio
import gzip
import json
import logging
import re
import zlib
from dataclasses import dataclass
from typing import Any, Optional, Union

import brotli
from curl_cffi import CurlHttpVersion
from curl_cffi.curl import CurlError
from curl_cffi.requests import AsyncSession

from catalog_gateway.core.config import settings
from catalog_gateway.core.exceptions import TransientTransportError
from catalog_gateway.core.logging import get_logger, mask_cookie


STATIC_HEADERS: dict[str, str] = {
    "accept": "*/*",
    "accept-encoding": "gzip, deflate, br",
    "accept-language": "en-US,en;q=0.9",
    "user-agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36"
    ),
    "sec-ch-ua": '"Google Chrome";v="135", "Not-A.Brand";v="8", "Chromium";v="135"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"macOS"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-origin",
    "priority": "u=1, i",
}

PSEUDO_HEADER_ORDER = (":method", ":path", ":authority", ":scheme")

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# 재시도할 응답 상태 코드 (멱등 메서드만)
RETRYABLE_STATUSES = frozenset({408, 413, 429, 500, 502, 503, 504, 521, 522, 524})

_NON_PRINTABLE = re.compile(r"[^\x20-\x7E]")


@dataclass
class TransportResponse:
    """YCL 응답 (압축 해제된 본문 + 선택적 JSON)"""

    status: int
    headers: dict[str, str]
    raw_body: bytes
    json: Optional[Any] = None

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "") or ""

    @property
    def is_html(self) -> bool:
        return "text/html" in self.content_type.lower()


# ---------------------------------------------------------------------------
# Cookie
# ---------------------------------------------------------------------------


def strip_non_printable(value: str) -> str:
    """제어 문자, 비 ASCII 문자 제거"""
    return _NON_PRINTABLE.sub("", value)


def is_session_reset_line(line: str, session_name: str) -> bool:
    """'__session_PROD=;' 처럼 세션 ID를 빈 값으로 덮어쓰는 줄인지"""
    stripped = line.strip()
    prefix = f"{session_name}="
    if not stripped.startswith(prefix):
        return False
    value = stripped[len(prefix):].split(";", 1)[0].strip()
    return value == ""


def _name_value(part: str) -> str:
    """'name=value; Path=/; HttpOnly' → 'name=value'"""
    return part.split(";", 1)[0].strip()


def _find_primary_pair(text: str, primary_name: str) -> Optional[str]:
    for part in text.split(";"):
        candidate = part.strip()
        if candidate.startswith(f"{primary_name}="):
            return candidate
    return None


def sanitize_cookie(
    cookie: Union[str, list[str], None],
    primary_name: Optional[str] = None,
    session_name: Optional[str] = None,
) -> str:
    """전송 전 쿠키 헤더 정리

    - 리스트: 각 값에서 출력 불가 문자를 제거하고 '; '로 결합
    - 여러 줄(Set-Cookie 원문): primary 쿠키가 있으면 그 name=value만 사용,
      없으면 세션 초기화 줄만 버리고 나머지 줄의 name=value를 결합
    - 한 줄: primary 쿠키가 있으면 그 name=value만, 아니면 문자만 정리
    """
    primary_name = primary_name or settings.ycl_primary_cookie_name
    session_name = session_name or settings.ycl_session_cookie_name

    if cookie is None:
        return ""

    if isinstance(cookie, list):
        return "; ".join(strip_non_printable(c) for c in cookie if isinstance(c, str))

    if "\n" in cookie:
        lines = [line.strip("\r") for line in cookie.split("\n") if line.strip()]
        for line in lines:
            if line.startswith(f"{primary_name}="):
                return strip_non_printable(_name_value(line))

        pairs = [_name_value(line) for line in lines if not is_session_reset_line(line, session_name)]
        return strip_non_printable("; ".join(p for p in pairs if p))

    primary = _find_primary_pair(cookie, primary_name)
    if primary:
        return strip_non_printable(primary)

    return strip_non_printable(cookie)


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


def build_headers(
    overrides: Optional[dict[str, str]],
    path: str,
    referer: str,
    authority: str,
    scheme: str,
    cookie: Union[str, list[str], None],
    method: str = "GET",
) -> dict[str, str]:
    """요청 헤더를 고정 순서로 구성

    pseudo-header → pseudo override → 정적 fingerprint 헤더 → referer/cookie → 일반 override
    """
    overrides = overrides or {}

    pseudo = {
        ":method": method.upper(),
        ":path": path,
        ":authority": authority,
        ":scheme": scheme,
    }
    pseudo.update({k: v for k, v in overrides.items() if k.startswith(":")})

    headers: dict[str, str] = {key: pseudo[key] for key in PSEUDO_HEADER_ORDER}
    headers.update(STATIC_HEADERS)
    headers["referer"] = referer
    headers["cookie"] = sanitize_cookie(cookie)
    for key, value in overrides.items():
        if not key.startswith(":"):
            headers[key.lower()] = value
    return headers


def to_http1_headers(headers: dict[str, str]) -> dict[str, str]:
    """HTTP/1.1용: pseudo-header 제거 후 host 헤더로 대체"""
    http1 = {k: v for k, v in headers.items() if not k.startswith(":")}
    authority = headers.get(":authority")
    if authority:
        return {"host": authority, **http1}
    return http1


def regular_headers(headers: dict[str, str]) -> dict[str, str]:
    """HTTP/2 전송 시 curl에 넘길 일반 헤더 (pseudo-header는 URL/메서드로 전달)"""
    return {k: v for k, v in headers.items() if not k.startswith(":")}


def url_from_headers(headers: dict[str, str]) -> str:
    return f"{headers[':scheme']}://{headers[':authority']}{headers[':path']}"


# ---------------------------------------------------------------------------
# Body
# ---------------------------------------------------------------------------


def decompress_body(raw: bytes, content_encoding: Optional[str], logger: Optional[logging.Logger] = None) -> bytes:
    """Content-Encoding 첫 토큰 기준 압축 해제 (gzip/deflate/br, 그 외는 그대로)"""
    key = (content_encoding or "").split(",")[0].strip().lower()
    if not raw or not key:
        return raw
    try:
        if key in ("gzip", "x-gzip"):
            return gzip.decompress(raw)
        if key == "deflate":
            try:
                return zlib.decompress(raw)
            except zlib.error:
                # zlib 헤더 없는 raw deflate
                return zlib.decompress(raw, -zlib.MAX_WBITS)
        if key == "br":
            return brotli.decompress(raw)
    except (OSError, zlib.error, brotli.error, EOFError) as e:
        (logger or get_logger("ycl")).warning(
            f"[YCL] Failed to decode body as {key}, using raw bytes: {type(e).__name__}"
        )
        return raw
    return raw


def parse_json_body(raw: bytes, content_type: str, logger: Optional[logging.Logger] = None) -> Optional[Any]:
    """content-type이 JSON인 경우만 파싱. 실패 시 None"""
    if not content_type.lower().startswith("application/json"):
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        log = logger or get_logger("ycl")
        log.error(f"[YCL] Error parsing JSON response: {type(e).__name__}: {e}")
        log.debug(f"[YCL] Raw response preview: {raw[:200]!r}...")
        return None


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class CatalogTransport:
    """YCL 와이어 클라이언트

    Usage:
        transport = CatalogTransport()
        rsp = await transport.request(headers)
        await transport.close()
    """

    def __init__(
        self,
        session: Optional[Any] = None,
        *,
        timeout_s: Optional[float] = None,
        max_retries: Optional[int] = None,
        impersonate: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._lock = asyncio.Lock()
        self.timeout_s = timeout_s if timeout_s is not None else settings.http_request_timeout_s
        self.max_retries = max_retries if max_retries is not None else settings.http_max_retries
        self.impersonate = impersonate if impersonate is not None else settings.ycl_http_impersonate
        self.logger = logger or get_logger("ycl")
        self.retry_backoff_s = 0.5

    async def _ensure_session(self) -> Any:
        async with self._lock:
            if self._session is not None:
                return self._session
            kwargs: dict[str, Any] = {"trust_env": False}
            if self.impersonate:
                # TLS fingerprint만 흉내 내고 기본 헤더는 주입하지 않음
                kwargs["impersonate"] = self.impersonate
                kwargs["default_headers"] = False
            self._session = AsyncSession(**kwargs)
            return self._session

    async def request(self, headers: dict[str, str]) -> TransportResponse:
        """build_headers()로 만든 헤더로 요청. HTTP/2 실패 시 HTTP/1.1로 한 번 폴백

        Raises:
            TransientTransportError: 두 프로토콜 모두 실패
        """
        url = url_from_headers(headers)
        method = headers.get(":method", "GET").upper()
        self.logger.debug(f"[YCL] Request: {method} {url} (cookie={mask_cookie(headers.get('cookie'))})")

        try:
            rsp = await self._send(method, url, regular_headers(headers), CurlHttpVersion.V2_0)
            self.logger.debug(f"[YCL] Response status (HTTP/2): {rsp.status}")
            return rsp
        except (CurlError, asyncio.TimeoutError, OSError) as http2_error:
            self.logger.warning(f"[YCL] HTTP/2 request failed, falling back to HTTP/1.1: {type(http2_error).__name__}: {http2_error}")

        try:
            rsp = await self._send(method, url, to_http1_headers(headers), CurlHttpVersion.V1_1)
            self.logger.debug(f"[YCL] Response status (HTTP/1.1 fallback): {rsp.status}")
            return rsp
        except (CurlError, asyncio.TimeoutError, OSError) as e:
            self.logger.error(f"[YCL] Request failed: url={url}, error={type(e).__name__}: {e}")
            raise TransientTransportError("ycl_request", f"{type(e).__name__}: {e}", {"url": url}) from e

    async def _send(self, method: str, url: str, headers: dict[str, str], http_version: Any) -> TransportResponse:
        """단일 프로토콜 시도 (멱등 메서드는 재시도)"""
        attempts = 1 + (self.max_retries if method in IDEMPOTENT_METHODS else 0)
        session = await self._ensure_session()

        attempt = 0
        while True:
            attempt += 1
            try:
                resp = await session.request(
                    method,
                    url,
                    headers=headers,
                    timeout=self.timeout_s,
                    allow_redirects=True,
                    http_version=http_version,
                    accept_encoding=None,
                )
            except (CurlError, asyncio.TimeoutError, OSError) as e:
                self.logger.info(f"[YCL] Attempt {attempt}/{attempts} failed: {type(e).__name__}: {e}")
                if attempt >= attempts:
                    raise
                await asyncio.sleep(self.retry_backoff_s * attempt)
                continue

            status = int(getattr(resp, "status_code", 0) or 0)
            if status in RETRYABLE_STATUSES and attempt < attempts:
                self.logger.info(f"[YCL] Attempt {attempt}/{attempts} got retryable status {status}")
                await asyncio.sleep(self.retry_backoff_s * attempt)
                continue
            return self._process_response(resp)

    def _process_response(self, resp: Any) -> TransportResponse:
        resp_headers = {str(k).lower(): str(v) for k, v in (resp.headers or {}).items()}
        raw = decompress_body(resp.content or b"", resp_headers.get("content-encoding"), self.logger)
        parsed = parse_json_body(raw, resp_headers.get("content-type", ""), self.logger)
        return TransportResponse(
            status=int(resp.status_code),
            headers=resp_headers,
            raw_body=raw,
            json=parsed,
        )

    async def close(self) -> None:
        async with self._lock:
            if self._session is None or not self._owns_session:
                return
            try:
                await self._session.close()
            except Exception as e:
                self.logger.debug(f"[YCL] Session close failed: {type(e).__name__}")
            self._session = None
