"""Conditional-cache policy for served files."""

from __future__ import annotations

import hashlib
import time
from email.utils import formatdate
from typing import TYPE_CHECKING

from magnetdav.core.media import is_video_file

if TYPE_CHECKING:  # pragma: no cover
    from magnetdav.models import CacheConfig

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS, PROPFIND",
    "Access-Control-Allow-Headers": "Range, Content-Type, Authorization, Depth",
    "Access-Control-Expose-Headers": "Content-Range, Content-Length, ETag",
}

_ETAG_HEX_LENGTH = 32


def generate_etag(path: str, start: int, end: int, length: int) -> str:
    """Quoted validator for one byte interval of one file."""
    digest = hashlib.sha1(
        f"{path}\x00{start}-{end}/{length}".encode(), usedforsecurity=False
    ).hexdigest()
    return f'"{digest[:_ETAG_HEX_LENGTH]}"'


def etag_matches(if_none_match: str | None, etag: str) -> bool:
    """Weak comparison of ``If-None-Match`` against ``etag``."""
    if not if_none_match:
        return False
    value = if_none_match.strip()
    if value == "*":
        return True
    bare = etag.removeprefix("W/")
    for candidate in value.split(","):
        if candidate.strip().removeprefix("W/") == bare:
            return True
    return False


def max_age_for(path: str, whole_file: bool, config: CacheConfig) -> int:
    """Video lifetimes depend on whether the response covers the whole file."""
    if is_video_file(path):
        return config.video_full_max_age if whole_file else config.video_range_max_age
    return config.default_max_age


def cache_headers(
    path: str,
    etag: str,
    whole_file: bool,
    config: CacheConfig,
    now: float | None = None,
) -> dict[str, str]:
    """``ETag``, ``Cache-Control`` and ``Expires`` for a file response."""
    now = time.time() if now is None else now
    return {
        "ETag": etag,
        "Cache-Control": f"public, max-age={max_age_for(path, whole_file, config)}",
        "Expires": formatdate(now + config.expires_after, usegmt=True),
    }
