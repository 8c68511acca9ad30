"""
On-disk layout for chunk-mode upload sessions.

Each session owns one directory under UPLOADS_TEMP_DIR named after the
upload id, holding one ``chunk-{index}`` file per received chunk. The store
knows nothing about ledgers or protocol rules.

Layout:
    {UPLOADS_TEMP_DIR}/{upload_id}/chunk-0
    {UPLOADS_TEMP_DIR}/{upload_id}/chunk-1
    ...
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path
from typing import TYPE_CHECKING

from django.conf import settings

from uploads.exceptions import StorageError
from uploads.services.storage import copy_stream, remove_file, temp_root

if TYPE_CHECKING:
    from typing import BinaryIO

logger = logging.getLogger(__name__)


class ChunkAlreadyStored(Exception):
    """A chunk file for this index already exists on disk."""


class ChunkStore:
    """
    Filesystem operations for chunk session directories.

    Usage:
        store = ChunkStore()
        written = store.write_chunk(upload.id, 0, request_stream)
        store.assemble(upload.id, upload.total_chunks, target_path)
        store.delete_session(upload.id)
    """

    def __init__(self, base_dir: str | Path | None = None, buffer_size: int | None = None):
        self.base_dir = Path(base_dir) if base_dir else temp_root()
        self.buffer_size = buffer_size or settings.UPLOADS_COPY_BUFFER_SIZE

    def session_dir(self, upload_id) -> Path:
        return self.base_dir / str(upload_id)

    def chunk_path(self, upload_id, index: int) -> Path:
        return self.session_dir(upload_id) / f"chunk-{index}"

    def assembled_path(self, upload_id) -> Path:
        """Where commit concatenates chunks before the finalizer renames it."""
        return self.session_dir(upload_id) / "assembled.bin"

    def write_chunk(self, upload_id, index: int, body: BinaryIO) -> int:
        """
        Stream ``body`` into a new chunk file.

        The file is created with an exclusive flag, so of two racing writers
        for the same index exactly one gets to write.

        Returns:
            Bytes written

        Raises:
            ChunkAlreadyStored: The chunk file already exists
            StorageError: The write failed; the partial file is removed
        """
        path = self.chunk_path(upload_id, index)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            f = open(path, "xb")
        except FileExistsError as exc:
            raise ChunkAlreadyStored(str(index)) from exc
        except OSError as exc:
            logger.exception(
                "Could not create chunk file",
                extra={"event_type": "chunk_write_failed", "upload_id": str(upload_id), "path": str(path)},
            )
            raise StorageError("Could not store chunk") from exc

        try:
            with f:
                return copy_stream(body, f, self.buffer_size)
        except OSError as exc:
            remove_file(path)
            logger.exception(
                "Chunk write failed",
                extra={"event_type": "chunk_write_failed", "upload_id": str(upload_id), "path": str(path)},
            )
            raise StorageError("Could not store chunk") from exc

    def delete_chunk(self, upload_id, index: int) -> bool:
        return remove_file(self.chunk_path(upload_id, index))

    def chunk_age(self, upload_id, index: int) -> float | None:
        """Seconds since the chunk file was last written, or None if absent."""
        try:
            mtime = self.chunk_path(upload_id, index).stat().st_mtime
        except FileNotFoundError:
            return None
        return time.time() - mtime

    def assemble(self, upload_id, total_chunks: int, target: Path) -> int:
        """
        Concatenate chunks 0..total_chunks-1 into ``target`` in index order.

        Returns:
            Size of the assembled file in bytes

        Raises:
            StorageError: A chunk file is missing or the copy failed
        """
        written = 0
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                for index in range(total_chunks):
                    with open(self.chunk_path(upload_id, index), "rb") as chunk:
                        written += copy_stream(chunk, out, self.buffer_size)
        except OSError as exc:
            remove_file(target)
            logger.exception(
                "Chunk assembly failed",
                extra={"event_type": "chunk_assembly_failed", "upload_id": str(upload_id)},
            )
            raise StorageError("Could not assemble upload") from exc
        return written

    def delete_session(self, upload_id) -> None:
        """Remove the session directory and everything in it. Missing is fine."""
        shutil.rmtree(self.session_dir(upload_id), ignore_errors=True)

    def list_session_ids(self) -> list[str]:
        """Names of all session directories currently on disk."""
        if not self.base_dir.is_dir():
            return []
        return [p.name for p in self.base_dir.iterdir() if p.is_dir()]
