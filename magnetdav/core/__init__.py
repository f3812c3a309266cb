"""Core helpers: content identifiers and media types."""

from __future__ import annotations

from magnetdav.core.magnet import content_identifier
from magnetdav.core.media import catalog_mime_type, is_video_file, response_mime_type

__all__ = [
    "catalog_mime_type",
    "content_identifier",
    "is_video_file",
    "response_mime_type",
]
