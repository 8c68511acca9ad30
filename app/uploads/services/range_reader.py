"""
Byte-range reads of finalized files for streaming playback.

One range per request: ``bytes=N-M``, open-ended ``bytes=N-`` or suffix
``bytes=-K``. Only the first range of a multi-range header is honoured.
Bytes are yielded in bounded buffer-sized blocks regardless of file size.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

from core.services import BaseService
from uploads.exceptions import InvalidRange, StorageError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass
class RangeResult:
    """
    Outcome of read_range().

    Attributes:
        status: 200 for a full body, 206 for a partial one
        file_size: Size of the whole file
        byte_range: The served range (None for a full body)
        content_length: Number of bytes ``body`` will yield
        body: Iterator over the served bytes
    """

    status: int
    file_size: int
    byte_range: ByteRange | None
    content_length: int
    body: Iterator[bytes]

    @property
    def content_range(self) -> str | None:
        if self.byte_range is None:
            return None
        return f"bytes {self.byte_range.start}-{self.byte_range.end}/{self.file_size}"


def parse_range(header: str, file_size: int) -> ByteRange:
    """
    Parse a Range header against a file of ``file_size`` bytes.

    ``end`` is clamped to the last byte; an ``end`` before ``start`` is read
    as open-ended.

    Raises:
        InvalidRange: Malformed header or start outside [0, file_size)
    """
    header = header.strip()
    if not header.startswith("bytes="):
        raise InvalidRange("Unsupported range unit", file_size=file_size)

    first_range = header[len("bytes="):].split(",")[0].strip()
    first, sep, last = first_range.partition("-")
    if not sep:
        raise InvalidRange("Malformed range", file_size=file_size)

    try:
        if not first:
            suffix = int(last)
            start = max(0, file_size - suffix)
            end = file_size - 1
        elif not last:
            start = int(first)
            end = file_size - 1
        else:
            start = int(first)
            end = int(last)
    except ValueError as exc:
        raise InvalidRange("Malformed range", file_size=file_size) from exc

    if start < 0 or start >= file_size:
        raise InvalidRange(
            "Range start out of bounds",
            file_size=file_size,
            details={"start": start, "size": file_size},
        )
    if end < start:
        end = file_size - 1
    end = min(end, file_size - 1)
    return ByteRange(start, end)


class RangeReader(BaseService):
    """
    Serves full or partial reads of a file on disk.

    Usage:
        result = RangeReader().read_range(path, request.headers.get("Range"))
        response = StreamingHttpResponse(result.body, status=result.status)
    """

    def __init__(self, buffer_size: int | None = None):
        self.buffer_size = buffer_size or settings.UPLOADS_RANGE_BUFFER_SIZE

    def read_range(self, path: str | Path, range_header: str | None = None) -> RangeResult:
        """
        Raises:
            StorageError: The file is missing or unreadable
            InvalidRange: The Range header cannot be satisfied
        """
        try:
            file_size = os.path.getsize(path)
        except OSError as exc:
            self.get_logger().error(
                "Finalized file missing on disk",
                extra={"event_type": "range_read_missing", "path": str(path)},
            )
            raise StorageError("File is not available") from exc

        if not range_header:
            return RangeResult(
                status=200,
                file_size=file_size,
                byte_range=None,
                content_length=file_size,
                body=self.iter_bytes(path, 0, file_size),
            )

        byte_range = parse_range(range_header, file_size)
        return RangeResult(
            status=206,
            file_size=file_size,
            byte_range=byte_range,
            content_length=byte_range.length,
            body=self.iter_bytes(path, byte_range.start, byte_range.length),
        )

    def iter_bytes(self, path: str | Path, start: int, length: int) -> Iterator[bytes]:
        """Yield ``length`` bytes from ``start`` in buffer-sized blocks."""
        with open(path, "rb") as f:
            f.seek(start)
            remaining = length
            while remaining > 0:
                block = f.read(min(self.buffer_size, remaining))
                if not block:
                    break
                remaining -= len(block)
                yield block
