"""Media type helpers for served files."""

from __future__ import annotations

import posixpath

DEFAULT_MIME_TYPE = "application/octet-stream"

# Media types recorded in the catalog
CATALOG_MIME_TYPES: dict[str, str] = {
    ".mp4": "video/mp4",
    ".mkv": "video/x-matroska",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
    ".jpg": "image/jpeg",
    ".png": "image/png",
    ".srt": "text/plain",
    ".ass": "text/plain",
}

# Content-Type sent on the wire; subtitles carry an explicit charset
RESPONSE_MIME_TYPES: dict[str, str] = {
    **CATALOG_MIME_TYPES,
    ".srt": "text/plain; charset=utf-8",
    ".ass": "text/plain; charset=utf-8",
    ".ssa": "text/plain; charset=utf-8",
}

VIDEO_EXTENSIONS = frozenset(
    {".mp4", ".mkv", ".avi", ".mov", ".webm", ".flv", ".wmv", ".m4v", ".3gp"}
)


def file_extension(path: str) -> str:
    return posixpath.splitext(path)[1].lower()


def catalog_mime_type(path: str) -> str:
    """Media type stored on a file entry."""
    return CATALOG_MIME_TYPES.get(file_extension(path), DEFAULT_MIME_TYPE)


def response_mime_type(path: str) -> str:
    """Content-Type header for a served file."""
    return RESPONSE_MIME_TYPES.get(file_extension(path), DEFAULT_MIME_TYPE)


def is_video_file(path: str) -> bool:
    return file_extension(path) in VIDEO_EXTENSIONS


def format_file_size(size: int) -> str:
    """Format a byte count with binary units, e.g. ``1.5 MB``."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"
