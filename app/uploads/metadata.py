"""
Upload-Metadata header codec.

The header is a comma-separated list of ``key base64(value)`` pairs. A key
may appear without a value, in which case it maps to the empty string.

Usage:
    from uploads.metadata import parse_upload_metadata

    fields = parse_upload_metadata("filename dmlkZW8ubXA0,isFavorite")
    # {"filename": "video.mp4", "isFavorite": ""}
"""

from __future__ import annotations

import base64
import binascii
from datetime import datetime
from datetime import timezone as dt_timezone

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from uploads.exceptions import InvalidArgument
from uploads.models import AssetVisibility


def parse_upload_metadata(header: str | None) -> dict[str, str]:
    """
    Decode an Upload-Metadata header into a dict.

    Raises:
        InvalidArgument: A pair is malformed or a value is not valid base64
    """
    fields: dict[str, str] = {}
    if not header or not header.strip():
        return fields

    for pair in header.split(","):
        pair = pair.strip()
        if not pair:
            continue
        parts = pair.split(" ")
        key = parts[0]
        if len(parts) == 1:
            fields[key] = ""
            continue
        if len(parts) != 2 or not key:
            raise InvalidArgument(
                "Malformed Upload-Metadata pair",
                details={"key": key},
            )
        try:
            fields[key] = base64.b64decode(parts[1], validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise InvalidArgument(
                "Upload-Metadata value is not valid base64",
                details={"key": key},
            ) from exc
    return fields


def encode_upload_metadata(fields: dict[str, str]) -> str:
    """Encode a dict as an Upload-Metadata header value."""
    pairs = []
    for key, value in fields.items():
        if value == "":
            pairs.append(key)
        else:
            encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
            pairs.append(f"{key} {encoded}")
    return ",".join(pairs)


def parse_client_datetime(value: str | None) -> datetime:
    """Parse an ISO-8601 timestamp from metadata, falling back to now."""
    if not value:
        return timezone.now()
    try:
        parsed = parse_datetime(value)
    except ValueError:
        parsed = None
    if parsed is None:
        return timezone.now()
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def parse_visibility(value: str | None) -> str:
    if value and value.lower() in AssetVisibility.values:
        return value.lower()
    return AssetVisibility.TIMELINE


def parse_bool(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"
