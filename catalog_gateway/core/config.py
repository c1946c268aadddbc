"""설정 관리 - 환경 변수 로드 및 검증"""
from dataclasses import dataclass
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class DigitalSourceConfig:
    """YCL(Source B) 접속 정보

    요청 단위로 만들어집니다. slug가 요청마다 다를 수 있기 때문입니다.
    """

    host: str
    protocol: str
    library_slug: str
    auth_url: str

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}"


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # Legacy 카탈로그 (Source A, 브라우저 스크래핑)
    legacy_site_url: str = "http://example.com"

    # 원격 브라우저 (CDP). 비어 있으면 로컬 headless Chromium을 띄웁니다.
    browser_ws_endpoint: str = ""
    browser_connect_timeout_ms: int = 120000

    # YCL 디지털 카탈로그 (Source B). host가 비어 있으면 미설정으로 취급
    ycl_host: str = ""
    ycl_protocol: str = "https"
    ycl_library_slug: str = ""
    ycl_auth_url: str = ""
    ycl_primary_cookie_name: str = "__config_PROD"
    ycl_session_cookie_name: str = "__session_PROD"
    # 비어 있으면 impersonate 없이 순수 curl로 요청 (헤더는 항상 직접 구성)
    ycl_http_impersonate: str = ""

    # Transport
    http_request_timeout_s: float = 30.0
    http_max_retries: int = 2

    # 타임아웃 예산
    session_redirect_timeout_s: float = 30.0
    branch_timeout_s: float = 15.0
    search_timeout_s: float = 60.0
    legacy_login_timeout_s: float = 60.0
    legacy_results_timeout_s: float = 5.0

    # Legacy 세션 쿠키 저장 위치
    cookie_store_dir: str = ".cookies"

    # API
    api_title: str = "Federated Catalog Search"
    api_version: str = "1.0.0"
    api_description: str = "Legacy(실물) + YCL(디지털) 카탈로그 통합 검색"
    port: int = 7700

    # 로깅
    log_level: str = "INFO"

    @field_validator("ycl_protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        if v not in ("https", "http"):
            raise ValueError("ycl_protocol must be 'https' or 'http'")
        return v

    @field_validator(
        "http_request_timeout_s",
        "session_redirect_timeout_s",
        "branch_timeout_s",
        "search_timeout_s",
        "legacy_login_timeout_s",
        "legacy_results_timeout_s",
    )
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("http_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("http_max_retries must be >= 0")
        return v

    def ycl_config(self, library_slug: Optional[str] = None) -> Optional[DigitalSourceConfig]:
        """요청 slug 기준 YCL 설정 반환. 필수 값이 없으면 None (미설정)."""
        slug = (library_slug or self.ycl_library_slug or "").strip()
        if not self.ycl_host or not self.ycl_auth_url or not slug:
            return None
        return DigitalSourceConfig(
            host=self.ycl_host,
            protocol=self.ycl_protocol,
            library_slug=slug,
            auth_url=f"{self.ycl_auth_url.rstrip('/')}/{slug}/featured",
        )

    @property
    def ycl_available(self) -> bool:
        """YCL 사용 가능 여부 (설정 존재 기준, 실제 접속 확인 아님)"""
        return bool(self.ycl_host)

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
