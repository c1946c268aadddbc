"""API 엔드포인트 패키지 - export only."""

from .routes import (
    get_browser_provider,
    get_engine,
    get_scraper,
    health_router,
    search_router,
    shutdown_browser_provider,
)

__all__ = [
    "get_browser_provider",
    "get_engine",
    "get_scraper",
    "health_router",
    "search_router",
    "shutdown_browser_provider",
]
