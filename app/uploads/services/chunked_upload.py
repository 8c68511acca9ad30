"""
Chunk-mode upload coordinator.

State machine: PENDING → IN_PROGRESS → {COMPLETED | CANCELLED | FAILED}

Chunks can arrive in any order and from several senders. Re-sending a
stored index is a no-op; completeness is only checked at commit. Commit and
cancel take the upload's row lock, so two of them on the same id never both
succeed.

Usage:
    service = ChunkedUploadService()
    upload = service.init(owner=user, filename="clip.mp4", content_type="video/mp4",
                          total_size=1000, chunk_size=400)
    service.put_chunk(upload.id, 0, stream, owner=user)
    service.commit(upload.id, owner=user)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError

from core.services import BaseService
from uploads.exceptions import (
    IncompleteUpload,
    InvalidArgument,
    InvalidState,
    SizeMismatch,
    UploadNotFound,
)
from uploads.locks import lock_upload
from uploads.models import ChunkedUpload, UploadChunk, UploadStatus
from uploads.services.chunk_store import ChunkAlreadyStored, ChunkStore
from uploads.services.finalizer import UploadFinalizer
from uploads.services.storage import remove_file, sanitize_filename

if TYPE_CHECKING:
    from typing import BinaryIO

    from authentication.models import User
    from uploads.models import Asset


class ChunkedUploadService(BaseService):
    """Coordinates chunk-mode uploads: init, put_chunk, missing_chunks, commit, cancel."""

    def __init__(self, store: ChunkStore | None = None, finalizer: UploadFinalizer | None = None):
        self.store = store or ChunkStore()
        self.finalizer = finalizer or UploadFinalizer(chunk_store=self.store)

    def init(
        self,
        owner: User | None,
        filename: str,
        content_type: str,
        total_size: int,
        chunk_size: int,
    ) -> ChunkedUpload:
        """
        Create a ledger entry; total_chunks is fixed here.

        Raises:
            InvalidArgument: total_size or chunk_size is not positive
        """
        if total_size is None or total_size <= 0:
            raise InvalidArgument("total_size must be positive")
        if chunk_size is None or chunk_size <= 0:
            raise InvalidArgument("chunk_size must be positive")

        upload = ChunkedUpload.objects.create(
            owner=owner,
            filename=sanitize_filename(filename),
            content_type=content_type or "",
            total_size=total_size,
            chunk_size=chunk_size,
        )
        self.get_logger().info(
            f"Created chunked upload {upload.id}",
            extra={
                "event_type": "chunked_upload_created",
                "upload_id": str(upload.id),
                "total_size": total_size,
                "total_chunks": upload.total_chunks,
            },
        )
        return upload

    def get(self, upload_id, owner: User | None = None) -> ChunkedUpload:
        queryset = ChunkedUpload.objects.filter(pk=upload_id)
        if owner is not None:
            queryset = queryset.filter(owner=owner)
        upload = queryset.first()
        if upload is None:
            raise UploadNotFound("Upload not found", details={"upload_id": str(upload_id)})
        return upload

    def put_chunk(
        self,
        upload_id,
        index: int,
        body: BinaryIO,
        owner: User | None = None,
        declared_size: int | None = None,
        checksum: str | None = None,
    ) -> bool:
        """
        Store one chunk.

        Returns:
            True if the chunk was stored, False if it was already present

        Raises:
            UploadNotFound: Unknown id
            InvalidState: Upload is terminal
            InvalidArgument: Index outside [0, total_chunks)
            SizeMismatch: declared_size differs from the bytes received
            StorageError: The write failed; nothing was recorded
        """
        upload = self.get(upload_id, owner)
        self._ensure_active(upload)
        if index < 0 or index >= upload.total_chunks:
            raise InvalidArgument(
                "Chunk index out of range",
                details={"index": index, "total_chunks": upload.total_chunks},
            )

        if UploadChunk.objects.filter(upload=upload, index=index).exists():
            return False

        written = self._write_chunk(upload, index, body)
        if written is None:
            return False

        if declared_size is not None and declared_size != written:
            self.store.delete_chunk(upload.id, index)
            raise SizeMismatch(
                "Chunk size does not match X-Chunk-Size",
                details={"index": index, "declared": declared_size, "received": written},
            )

        try:
            with self.atomic():
                upload = lock_upload(ChunkedUpload, pk=upload.pk)
                if upload.is_terminal:
                    raise InvalidState(
                        f"Upload is {upload.status}",
                        details={"upload_id": str(upload.id), "status": upload.status},
                    )
                UploadChunk.objects.create(
                    upload=upload,
                    index=index,
                    size=written,
                    checksum=checksum or "",
                    stored_path=str(self.store.chunk_path(upload.id, index)),
                )
                if upload.status == UploadStatus.PENDING:
                    upload.start()
                    upload.save_fields("status")
        except IntegrityError:
            # Row already recorded for this index; the file on disk is the same chunk
            return False
        except Exception:
            # Nothing was recorded, so the index must stay writable for a retry
            self.store.delete_chunk(upload.id, index)
            raise

        self.get_logger().debug(
            f"Stored chunk {index} of {upload.id}",
            extra={"event_type": "chunk_stored", "upload_id": str(upload.id), "index": index, "size": written},
        )
        return True

    def missing_chunks(self, upload_id, owner: User | None = None) -> list[int]:
        return self.get(upload_id, owner).missing_indices()

    def commit(self, upload_id, owner: User | None = None) -> Asset:
        """
        Assemble chunks in index order, verify the size, finalize.

        On a size mismatch the upload becomes FAILED; the chunks stay on
        disk and the partial assembled file is removed.

        Raises:
            UploadNotFound: Unknown id
            InvalidState: Upload is terminal
            IncompleteUpload: Chunks are missing (details.missing)
            SizeMismatch: Assembled size differs from total_size
        """
        mismatch = None
        plan = None
        with self.atomic():
            upload = lock_upload(ChunkedUpload, owner=owner, pk=upload_id)
            self._ensure_active(upload)

            missing = upload.missing_indices()
            if missing:
                raise IncompleteUpload(missing)

            target = self.store.assembled_path(upload.id)
            assembled_size = self.store.assemble(upload.id, upload.total_chunks, target)

            if assembled_size != upload.total_size:
                remove_file(target)
                upload.fail(f"Assembled {assembled_size} bytes, expected {upload.total_size}")
                upload.save_fields("status", "failure_reason")
                mismatch = SizeMismatch(
                    "Assembled size does not match total_size",
                    details={"expected": upload.total_size, "received": assembled_size},
                    status_code=409,
                )
            else:
                plan = self.finalizer.prepare(upload, target)
                self.finalizer.record(plan)

        if mismatch is not None:
            self.get_logger().warning(
                f"Commit failed for {upload.id}: size mismatch",
                extra={"event_type": "chunked_commit_failed", "upload_id": str(upload.id), **mismatch.details},
            )
            raise mismatch

        if self.finalizer.publish(plan):
            self.store.delete_session(upload.id)
        return plan.asset

    def cancel(self, upload_id, owner: User | None = None) -> ChunkedUpload:
        """
        Cancel the upload and delete its session directory.

        Idempotent on terminal uploads. A FAILED upload keeps its status but
        its retained chunks are deleted.
        """
        with self.atomic():
            upload = lock_upload(ChunkedUpload, owner=owner, pk=upload_id)
            if upload.status == UploadStatus.FAILED:
                self.store.delete_session(upload.id)
                return upload
            if upload.is_terminal:
                return upload
            upload.cancel()
            upload.save_fields("status")

        self.store.delete_session(upload.id)
        self.get_logger().info(
            f"Cancelled chunked upload {upload.id}",
            extra={"event_type": "chunked_upload_cancelled", "upload_id": str(upload.id)},
        )
        return upload

    def _write_chunk(self, upload: ChunkedUpload, index: int, body: BinaryIO) -> int | None:
        """
        Write a chunk file, reclaiming one left behind by a failed put.

        Returns:
            Bytes written, or None if another sender owns this index
        """
        try:
            return self.store.write_chunk(upload.id, index, body)
        except ChunkAlreadyStored:
            pass

        if UploadChunk.objects.filter(upload=upload, index=index).exists():
            return None
        age = self.store.chunk_age(upload.id, index)
        if age is not None and age < settings.UPLOADS_CHUNK_RECLAIM_SECONDS:
            # A concurrent sender is still writing or about to record it
            return None

        self.get_logger().warning(
            f"Reclaiming unrecorded chunk {index} of {upload.id}",
            extra={"event_type": "chunk_reclaimed", "upload_id": str(upload.id), "index": index, "age": age},
        )
        self.store.delete_chunk(upload.id, index)
        try:
            return self.store.write_chunk(upload.id, index, body)
        except ChunkAlreadyStored:
            return None

    def _ensure_active(self, upload: ChunkedUpload) -> None:
        if upload.is_terminal:
            raise InvalidState(
                f"Upload is {upload.status}",
                details={"upload_id": str(upload.id), "status": upload.status},
            )
