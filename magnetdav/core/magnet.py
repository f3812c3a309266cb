"""Content identifier derivation for submitted magnet URIs."""

from __future__ import annotations

import hashlib
import re

_BTIH_RE = re.compile(r"btih:([^&]+)")

# Length of the fallback identifier (hex characters of a SHA-1 digest)
FALLBACK_ID_LENGTH = 20


def content_identifier(uri: str) -> str:
    """Derive the stable content identifier for a submitted URI.

    The ``btih:`` token is used verbatim (lower-cased) when present. Any other
    text falls back to the first 20 hex characters of its SHA-1 digest, so the
    same input always maps to the same identifier.
    """
    match = _BTIH_RE.search(uri)
    if match:
        return match.group(1).lower()
    return hashlib.sha1(uri.encode("utf-8")).hexdigest()[:FALLBACK_ID_LENGTH]
