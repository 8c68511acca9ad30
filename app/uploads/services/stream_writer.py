"""
On-disk layout for stream-mode uploads: one growing temp file per upload.

The writer never truncates and never rewinds. Bytes are written at the
offset the caller supplies; the caller has already checked that offset
against the ledger.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from django.conf import settings

from uploads.exceptions import StorageError
from uploads.services.storage import copy_stream, remove_file, temp_root

if TYPE_CHECKING:
    from typing import BinaryIO

logger = logging.getLogger(__name__)


class StreamWriter:
    """
    Filesystem operations for stream-mode temp files.

    Usage:
        writer = StreamWriter()
        path = writer.create(tus_id)
        written = writer.append(path, offset=0, body=request_stream)
    """

    def __init__(self, base_dir: str | Path | None = None, buffer_size: int | None = None):
        self.base_dir = Path(base_dir) if base_dir else temp_root()
        self.buffer_size = buffer_size or settings.UPLOADS_COPY_BUFFER_SIZE

    def temp_path(self, tus_id: str) -> Path:
        return self.base_dir / f"{tus_id}.bin"

    def create(self, tus_id: str) -> Path:
        """
        Allocate an empty temp file.

        Raises:
            StorageError: The file could not be created
        """
        path = self.temp_path(tus_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb"):
                pass
        except OSError as exc:
            logger.exception(
                "Could not allocate temp file",
                extra={"event_type": "stream_temp_create_failed", "tus_id": tus_id},
            )
            raise StorageError("Could not allocate upload storage") from exc
        return path

    def append(self, path: str | Path, offset: int, body: BinaryIO) -> int:
        """
        Write ``body`` into the temp file starting at ``offset``.

        Bytes copied before a failure stay in the file.

        Returns:
            Bytes written

        Raises:
            StorageError: The temp file is gone or the write failed
        """
        try:
            with open(path, "r+b") as f:
                f.seek(offset)
                written = copy_stream(body, f, self.buffer_size)
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            logger.exception(
                "Stream append failed",
                extra={"event_type": "stream_append_failed", "path": str(path), "offset": offset},
            )
            raise StorageError("Could not write upload data") from exc
        return written

    def delete(self, path: str | Path | None) -> bool:
        return remove_file(path)
