"""WebDAV surface: range streaming, cache policy and listings."""

from __future__ import annotations

from magnetdav.webdav.cache import cache_headers, etag_matches, generate_etag
from magnetdav.webdav.ranges import (
    ByteRange,
    ResolvedRange,
    normalize_range,
    parse_range_header,
)
from magnetdav.webdav.streaming import StreamingHandler

__all__ = [
    "ByteRange",
    "ResolvedRange",
    "StreamingHandler",
    "cache_headers",
    "etag_matches",
    "generate_etag",
    "normalize_range",
    "parse_range_header",
]
