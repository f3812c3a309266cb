"""Tests for Range header parsing and normalization."""

from __future__ import annotations

import pytest

pytestmark = [pytest.mark.unit, pytest.mark.webdav]

from magnetdav.utils.exceptions import RangeNotSatisfiableError
from magnetdav.webdav.ranges import ByteRange, normalize_range, parse_range_header


class TestParseRangeHeader:
    """Header syntax."""

    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("bytes=0-0", ByteRange(0, 0)),
            ("bytes=100-", ByteRange(100, None)),
            ("bytes=5-9", ByteRange(5, 9)),
            ("Bytes = 5 - 9", ByteRange(5, 9)),
            ("bytes=-500", ByteRange(suffix=500)),
        ],
    )
    def test_valid(self, header, expected):
        assert parse_range_header(header) == expected

    @pytest.mark.parametrize(
        "header",
        [None, "", "bytes", "items=0-1", "bytes=a-b", "bytes=-", "bytes=9-5", "bytes=0-1,4-5", "bytes=-0"],
    )
    def test_malformed_is_ignored(self, header):
        assert parse_range_header(header) is None


class TestNormalizeRange:
    """Clamping against the file length."""

    def test_no_range_is_full(self):
        span = normalize_range(None, 100)
        assert (span.start, span.end, span.partial) == (0, 99, False)
        assert span.content_length == 100

    def test_first_byte(self):
        span = normalize_range(ByteRange(0, 0), 100)
        assert span.partial
        assert span.content_length == 1
        assert span.content_range == "bytes 0-0/100"

    def test_open_end(self):
        span = normalize_range(ByteRange(40, None), 100)
        assert (span.start, span.end) == (40, 99)

    def test_end_past_length_is_clamped(self):
        span = normalize_range(ByteRange(10, 5000), 100)
        assert span.end == 99
        assert span.content_length == 90

    def test_suffix(self):
        span = normalize_range(ByteRange(suffix=10), 100)
        assert (span.start, span.end) == (90, 99)
        assert normalize_range(ByteRange(suffix=1000), 100).start == 0

    def test_start_past_end_is_unsatisfiable(self):
        with pytest.raises(RangeNotSatisfiableError) as excinfo:
            normalize_range(ByteRange(100, None), 100)
        assert excinfo.value.length == 100
        assert excinfo.value.start == 100

    def test_empty_file_ignores_range(self):
        span = normalize_range(ByteRange(0, 10), 0)
        assert not span.partial
        assert span.content_length == 0

    def test_covers_whole_file(self):
        assert normalize_range(None, 100).covers_whole_file
        assert normalize_range(ByteRange(0, None), 100).covers_whole_file
        assert normalize_range(ByteRange(0, 5000), 100).covers_whole_file
        assert normalize_range(ByteRange(suffix=1000), 100).covers_whole_file
        assert not normalize_range(ByteRange(0, 98), 100).covers_whole_file
        assert not normalize_range(ByteRange(1, None), 100).covers_whole_file
        assert normalize_range(None, 0).covers_whole_file
