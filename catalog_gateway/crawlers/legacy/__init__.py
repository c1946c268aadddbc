"""Legacy (Source A) 카탈로그: 브라우저 스크래핑 + 정규화."""

from .adapter import LegacyCatalogAdapter, LegacyResult, map_legacy_item
from .cookie_store import CredentialStore, JsonCookieStore, hash_credentials
from .extractor import PageExtractor, SelectorPageExtractor
from .scraper import LegacyScraper, ScrapedPage, ScrapedSource, parse_range_indicator

__all__ = [
    "CredentialStore",
    "JsonCookieStore",
    "LegacyCatalogAdapter",
    "LegacyResult",
    "LegacyScraper",
    "PageExtractor",
    "ScrapedPage",
    "ScrapedSource",
    "SelectorPageExtractor",
    "hash_credentials",
    "map_legacy_item",
    "parse_range_indicator",
]
