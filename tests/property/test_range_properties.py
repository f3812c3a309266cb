"""Property-based tests for range normalization and validators.

Run with:
    pytest tests/property/test_range_properties.py -v
"""

from __future__ import annotations

import pytest

pytestmark = [pytest.mark.property, pytest.mark.webdav]

from hypothesis import given, strategies as st

from magnetdav.utils.exceptions import RangeNotSatisfiableError
from magnetdav.webdav.cache import etag_matches, generate_etag
from magnetdav.webdav.ranges import ByteRange, normalize_range, parse_range_header


class TestRangeProperties:
    """Properties of byte range handling."""

    @given(
        length=st.integers(min_value=1, max_value=10**12),
        start=st.integers(min_value=0, max_value=10**12),
        end=st.one_of(st.none(), st.integers(min_value=0, max_value=2 * 10**12)),
    )
    def test_normalized_range_stays_inside_file(self, length, start, end):
        if end is not None and end < start:
            return
        try:
            span = normalize_range(ByteRange(start, end), length)
        except RangeNotSatisfiableError:
            assert start >= length
            return
        assert 0 <= span.start <= span.end <= length - 1
        assert span.content_length == span.end - span.start + 1
        if end is not None and end < length:
            assert span.end == end

    @given(
        start=st.integers(min_value=0, max_value=10**9),
        width=st.integers(min_value=0, max_value=10**9),
    )
    def test_header_round_trip(self, start, width):
        parsed = parse_range_header(f"bytes={start}-{start + width}")
        assert parsed == ByteRange(start, start + width)

    @given(st.text(max_size=40))
    def test_parser_never_raises(self, header):
        result = parse_range_header(header)
        assert result is None or isinstance(result, ByteRange)

    @given(
        path=st.text(min_size=1, max_size=50),
        start=st.integers(min_value=0, max_value=10**9),
        end=st.integers(min_value=0, max_value=10**9),
        length=st.integers(min_value=0, max_value=10**9),
    )
    def test_validator_matches_itself(self, path, start, end, length):
        etag = generate_etag(path, start, end, length)
        assert etag == generate_etag(path, start, end, length)
        assert etag_matches(etag, etag)
