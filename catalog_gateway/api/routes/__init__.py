"""API routes package."""

from .health_routes import router as health_router
from .search_routes import (
    get_browser_provider,
    get_engine,
    get_scraper,
    router as search_router,
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
