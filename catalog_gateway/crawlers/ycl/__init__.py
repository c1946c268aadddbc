"""YCL (Source B) 디지털 카탈로그: transport, session, adapter."""

from .adapter import DigitalCatalogAdapter, DigitalResult, build_digital_adapter, map_ycl_item
from .client import CatalogClient
from .session import SessionAcquirer, drop_session_reset_lines
from .transport import (
    CatalogTransport,
    TransportResponse,
    build_headers,
    decompress_body,
    parse_json_body,
    sanitize_cookie,
    to_http1_headers,
)

__all__ = [
    "CatalogClient",
    "CatalogTransport",
    "DigitalCatalogAdapter",
    "DigitalResult",
    "build_digital_adapter",
    "SessionAcquirer",
    "TransportResponse",
    "build_headers",
    "decompress_body",
    "drop_session_reset_lines",
    "map_ycl_item",
    "parse_json_body",
    "sanitize_cookie",
    "to_http1_headers",
]
