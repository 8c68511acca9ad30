"""Tests for Range header parsing and RangeReader."""

from __future__ import annotations

from pathlib import Path

import pytest

from uploads.exceptions import InvalidRange, StorageError
from uploads.services.range_reader import ByteRange, RangeReader, parse_range

DATA = bytes(range(256)) * 4  # 1024 bytes


@pytest.fixture
def media_file(tmp_path: Path) -> Path:
    path = tmp_path / "clip.mp4"
    path.write_bytes(DATA)
    return path


# =============================================================================
# parse_range
# =============================================================================


class TestParseRange:
    """Tests for parse_range()."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("bytes=0-99", ByteRange(0, 99)),
            ("bytes=500-", ByteRange(500, 1023)),
            ("bytes=-100", ByteRange(924, 1023)),
            ("bytes=-5000", ByteRange(0, 1023)),
            ("bytes=1000-5000", ByteRange(1000, 1023)),
            ("bytes=10-5", ByteRange(10, 1023)),
            ("bytes=0-1,10-20", ByteRange(0, 1)),
            (" bytes=7-7 ", ByteRange(7, 7)),
        ],
    )
    def test_satisfiable(self, header, expected):
        assert parse_range(header, 1024) == expected

    @pytest.mark.parametrize(
        "header",
        ["bytes=1024-", "bytes=2000-3000", "items=0-10", "bytes=abc", "bytes=a-b", "bytes=-"],
    )
    def test_unsatisfiable(self, header):
        """
        Bad or out-of-bounds ranges raise InvalidRange carrying the size.

        Why it matters: Players use the 416 Content-Range to learn the real
        file size and retry with a valid range.
        """
        with pytest.raises(InvalidRange) as exc_info:
            parse_range(header, 1024)

        assert exc_info.value.status_code == 416
        assert exc_info.value.headers == {"Content-Range": "bytes */1024"}

    def test_empty_file_has_no_satisfiable_range(self):
        with pytest.raises(InvalidRange):
            parse_range("bytes=0-", 0)

    def test_length(self):
        assert ByteRange(10, 19).length == 10


# =============================================================================
# RangeReader
# =============================================================================


class TestRangeReader:
    """Tests for RangeReader.read_range()."""

    def test_full_read_without_header(self, media_file):
        result = RangeReader().read_range(media_file)

        assert result.status == 200
        assert result.content_length == 1024
        assert result.content_range is None
        assert b"".join(result.body) == DATA

    def test_partial_read(self, media_file):
        result = RangeReader().read_range(media_file, "bytes=100-199")

        assert result.status == 206
        assert result.content_length == 100
        assert result.content_range == "bytes 100-199/1024"
        assert b"".join(result.body) == DATA[100:200]

    def test_reads_in_bounded_blocks(self, media_file):
        """
        Bytes are yielded in buffer-sized blocks.

        Why it matters: A multi-gigabyte video must stream without being
        loaded into memory.
        """
        blocks = list(RangeReader(buffer_size=64).read_range(media_file, "bytes=0-299").body)

        assert all(len(block) <= 64 for block in blocks)
        assert len(blocks) == 5
        assert b"".join(blocks) == DATA[:300]

    def test_missing_file(self, tmp_path):
        with pytest.raises(StorageError):
            RangeReader().read_range(tmp_path / "gone.mp4", "bytes=0-1")

    def test_invalid_range(self, media_file):
        with pytest.raises(InvalidRange):
            RangeReader().read_range(media_file, "bytes=5000-")
