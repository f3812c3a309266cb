"""HTTP ``Range`` header parsing and normalization.

Only single ``bytes=`` ranges are honored. Anything else (multiple ranges,
other units, garbage) is treated as if no header was sent.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from magnetdav.utils.exceptions import RangeNotSatisfiableError

_RANGE_RE = re.compile(r"^\s*(\d*)\s*-\s*(\d*)\s*$")


@dataclass(frozen=True)
class ByteRange:
    """A requested range before it is checked against the file length.

    ``suffix`` is set for ``bytes=-N`` requests, in which case ``start`` is
    unused.
    """

    start: int = 0
    end: int | None = None
    suffix: int | None = None


@dataclass(frozen=True)
class ResolvedRange:
    """Inclusive byte interval to serve."""

    start: int
    end: int
    length: int
    partial: bool

    @property
    def content_length(self) -> int:
        return max(0, self.end - self.start + 1)

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.length}"

    @property
    def covers_whole_file(self) -> bool:
        """True when the interval spans every byte, with or without a Range header."""
        return self.start == 0 and self.end >= self.length - 1


def parse_range_header(value: str | None) -> ByteRange | None:
    """Parse ``bytes=start-end``; malformed or unsupported values yield None."""
    if not value:
        return None
    unit, sep, spec = value.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes" or "," in spec:
        return None
    match = _RANGE_RE.match(spec)
    if match is None:
        return None
    start_s, end_s = match.groups()
    if not start_s and not end_s:
        return None
    if not start_s:
        suffix = int(end_s)
        return ByteRange(suffix=suffix) if suffix > 0 else None
    start = int(start_s)
    end = int(end_s) if end_s else None
    if end is not None and end < start:
        return None
    return ByteRange(start=start, end=end)


def normalize_range(requested: ByteRange | None, length: int) -> ResolvedRange:
    """Clamp ``requested`` to a file of ``length`` bytes.

    A missing end, or one past the last byte, becomes ``length - 1``. Ranges
    against an empty file are ignored.

    Raises:
        RangeNotSatisfiableError: the range starts at or after ``length``

    """
    if requested is None or length == 0:
        return ResolvedRange(0, length - 1, length, partial=False)
    if requested.suffix is not None:
        start = max(0, length - requested.suffix)
        return ResolvedRange(start, length - 1, length, partial=True)
    if requested.start >= length:
        raise RangeNotSatisfiableError(requested.start, length)
    end = requested.end
    if end is None or end >= length:
        end = length - 1
    return ResolvedRange(requested.start, end, length, partial=True)
