"""Tests for the Upload-Metadata codec and metadata value parsers."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone as dt_timezone

import pytest
from freezegun import freeze_time

from uploads.exceptions import InvalidArgument
from uploads.metadata import (
    encode_upload_metadata,
    parse_bool,
    parse_client_datetime,
    parse_upload_metadata,
    parse_visibility,
)
from uploads.models import AssetVisibility


class TestParseUploadMetadata:
    """Tests for parse_upload_metadata()."""

    def test_decodes_base64_values(self):
        fields = parse_upload_metadata("filename dmlkZW8ubXA0,filetype dmlkZW8vbXA0")

        assert fields == {"filename": "video.mp4", "filetype": "video/mp4"}

    def test_key_without_value(self):
        """
        A bare key maps to the empty string.

        Why it matters: tus allows flags without a value; rejecting them
        would break conforming clients.
        """
        fields = parse_upload_metadata("isFavorite, filename dmlkZW8ubXA0")

        assert fields == {"isFavorite": "", "filename": "video.mp4"}

    @pytest.mark.parametrize("header", [None, "", "   "])
    def test_empty_header(self, header):
        assert parse_upload_metadata(header) == {}

    def test_invalid_base64_rejected(self):
        with pytest.raises(InvalidArgument) as exc_info:
            parse_upload_metadata("filename not*base64")

        assert exc_info.value.details == {"key": "filename"}
        assert exc_info.value.status_code == 400

    def test_too_many_parts_rejected(self):
        with pytest.raises(InvalidArgument):
            parse_upload_metadata("filename dmlkZW8ubXA0 extra")

    def test_encode_matches_decode(self):
        header = encode_upload_metadata({"filename": "résumé.pdf", "isFavorite": ""})

        assert parse_upload_metadata(header) == {"filename": "résumé.pdf", "isFavorite": ""}


class TestMetadataValues:
    """Tests for the parsers applied to decoded metadata values."""

    def test_client_datetime_parsed(self):
        parsed = parse_client_datetime("2024-03-01T12:30:00Z")

        assert parsed == datetime(2024, 3, 1, 12, 30, tzinfo=dt_timezone.utc)

    def test_naive_client_datetime_is_utc(self):
        parsed = parse_client_datetime("2024-03-01T12:30:00")

        assert parsed.tzinfo is not None
        assert parsed == datetime(2024, 3, 1, 12, 30, tzinfo=dt_timezone.utc)

    @freeze_time("2025-01-15 08:00:00")
    @pytest.mark.parametrize("value", [None, "", "yesterday", "2024-13-45T99:00:00"])
    def test_client_datetime_falls_back_to_now(self, value):
        """
        Missing or unparseable timestamps become the upload time.

        Why it matters: Device clocks and metadata are untrusted; a bad
        value must not fail an upload whose bytes are already on disk.
        """
        assert parse_client_datetime(value) == datetime(2025, 1, 15, 8, 0, tzinfo=dt_timezone.utc)

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("archive", AssetVisibility.ARCHIVE),
            ("HIDDEN", AssetVisibility.HIDDEN),
            ("nonsense", AssetVisibility.TIMELINE),
            (None, AssetVisibility.TIMELINE),
        ],
    )
    def test_visibility(self, value, expected):
        assert parse_visibility(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [("true", True), ("True", True), ("false", False), ("", False), (None, False), ("1", False)],
    )
    def test_bool(self, value, expected):
        assert parse_bool(value) is expected
