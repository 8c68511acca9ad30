"""
Stream-mode (tus) upload coordinator.

State machine: PENDING → IN_PROGRESS → {COMPLETED | CANCELLED}

Every append must present the exact offset recorded in the ledger. The
append runs under the upload's row lock and advances the offset with a
conditional update, so of two racing appends with the same offset only one
succeeds; the other sees OffsetConflict and can re-read the offset.

Usage:
    service = StreamUploadService()
    upload = service.create(owner=user, upload_length=500, metadata_header=header)
    upload = service.append(upload.tus_id, client_offset=0, body=stream, owner=user)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from uploads.exceptions import InvalidArgument, InvalidState, OffsetConflict, UploadNotFound
from uploads.locks import lock_upload
from uploads.metadata import parse_upload_metadata
from uploads.models import StreamUpload, UploadStatus
from uploads.services.finalizer import UploadFinalizer
from uploads.services.storage import sanitize_filename
from uploads.services.stream_writer import StreamWriter

if TYPE_CHECKING:
    from typing import BinaryIO

    from authentication.models import User


@dataclass(frozen=True)
class UploadInfo:
    """Read-only snapshot returned by info()."""

    offset: int
    length: int
    status: str
    metadata: str


class LimitedReader:
    """File-like wrapper that stops after ``limit`` bytes."""

    def __init__(self, stream: BinaryIO, limit: int):
        self.stream = stream
        self.remaining = limit

    def read(self, size: int = -1) -> bytes:
        if self.remaining <= 0:
            return b""
        if size < 0 or size > self.remaining:
            size = self.remaining
        data = self.stream.read(size)
        self.remaining -= len(data)
        return data


class StreamUploadService(BaseService):
    """Coordinates stream-mode uploads: create, append, info, terminate."""

    def __init__(self, writer: StreamWriter | None = None, finalizer: UploadFinalizer | None = None):
        self.writer = writer or StreamWriter()
        self.finalizer = finalizer or UploadFinalizer()

    def create(
        self,
        owner: User | None,
        upload_length: int,
        metadata_header: str | None = None,
    ) -> StreamUpload:
        """
        Allocate a ledger entry and an empty temp file.

        A zero-length upload is complete on creation and is finalized
        immediately.

        Raises:
            InvalidArgument: Negative or oversized length, or bad metadata
            StorageError: The temp file could not be allocated
        """
        if upload_length < 0:
            raise InvalidArgument("Upload-Length must be non-negative")
        max_size = settings.UPLOADS_TUS_MAX_SIZE
        if max_size and upload_length > max_size:
            raise InvalidArgument(
                "Upload-Length exceeds the maximum upload size",
                details={"max_size": max_size},
                status_code=413,
            )

        fields = parse_upload_metadata(metadata_header)
        tus_id = str(uuid.uuid4())

        # Row first: a failed insert leaves no temp file behind, and a failed
        # allocation rolls the row back
        with self.atomic():
            upload = StreamUpload.objects.create(
                tus_id=tus_id,
                owner=owner,
                upload_length=upload_length,
                metadata=metadata_header or "",
                metadata_fields=fields,
                filename=sanitize_filename(fields.get("filename")) if fields.get("filename") else "",
                filetype=fields.get("filetype", ""),
                temp_path=str(self.writer.temp_path(tus_id)),
            )
            self.writer.create(tus_id)

        self.get_logger().info(
            f"Created stream upload {tus_id}",
            extra={
                "event_type": "stream_upload_created",
                "tus_id": tus_id,
                "upload_length": upload_length,
                "owner_id": str(owner.pk) if owner else None,
            },
        )

        if upload_length == 0:
            self.finalizer.finalize(upload)
            upload.refresh_from_db()
        return upload

    def get(self, tus_id: str, owner: User | None = None) -> StreamUpload:
        queryset = StreamUpload.objects.filter(tus_id=tus_id)
        if owner is not None:
            queryset = queryset.filter(owner=owner)
        upload = queryset.first()
        if upload is None:
            raise UploadNotFound("Upload not found", details={"upload_id": tus_id})
        return upload

    def info(self, tus_id: str, owner: User | None = None) -> UploadInfo:
        upload = self.get(tus_id, owner)
        return UploadInfo(
            offset=upload.upload_offset,
            length=upload.upload_length,
            status=upload.status,
            metadata=upload.metadata,
        )

    def append(
        self,
        tus_id: str,
        client_offset: int,
        body: BinaryIO,
        owner: User | None = None,
        content_length: int | None = None,
    ) -> StreamUpload:
        """
        Append ``body`` at ``client_offset`` and advance the ledger.

        Finalizes the upload before returning when the new offset reaches
        the declared length.

        Raises:
            UploadNotFound: Unknown id
            InvalidState: Upload is terminal
            OffsetConflict: client_offset differs from the recorded offset
            InvalidArgument: The body would run past Upload-Length
            StorageError: Writing or finalizing failed
        """
        plan = None
        with self.atomic():
            upload = lock_upload(StreamUpload, owner=owner, tus_id=tus_id)
            self._ensure_active(upload)

            if client_offset != upload.upload_offset:
                raise OffsetConflict(
                    "Upload-Offset does not match the current offset",
                    details={"expected": upload.upload_offset, "received": client_offset},
                )

            remaining = upload.upload_length - upload.upload_offset
            if content_length is not None and content_length > remaining:
                raise InvalidArgument(
                    "Request body exceeds Upload-Length",
                    details={"remaining": remaining},
                )

            written = self.writer.append(
                upload.temp_path, client_offset, LimitedReader(body, remaining)
            )
            new_offset = client_offset + written

            updated = StreamUpload.objects.filter(
                pk=upload.pk, upload_offset=client_offset
            ).update(upload_offset=F("upload_offset") + written, updated_at=timezone.now())
            if updated == 0:
                raise OffsetConflict(
                    "Upload offset changed concurrently",
                    details={"received": client_offset},
                )
            upload.upload_offset = new_offset

            upload.start()
            upload.save_fields("status")

            self.get_logger().debug(
                f"Appended {written} bytes to {tus_id}",
                extra={"event_type": "stream_append", "tus_id": tus_id, "offset": new_offset},
            )

            if upload.is_fully_received:
                plan = self.finalizer.prepare(upload)
                self.finalizer.record(plan)

        if plan is not None:
            self.finalizer.publish(plan)
        return upload

    def terminate(self, tus_id: str, owner: User | None = None) -> StreamUpload:
        """
        Cancel the upload and delete its temp file.

        Idempotent on terminal uploads: nothing changes and no error is raised.
        """
        with self.atomic():
            upload = lock_upload(StreamUpload, owner=owner, tus_id=tus_id)
            if upload.is_terminal:
                return upload
            upload.cancel()
            upload.save_fields("status")

        self.writer.delete(upload.temp_path)
        self.get_logger().info(
            f"Terminated stream upload {tus_id}",
            extra={"event_type": "stream_upload_terminated", "tus_id": tus_id},
        )
        return upload

    def _ensure_active(self, upload: StreamUpload) -> None:
        if not upload.is_terminal:
            return
        raise InvalidState(
            f"Upload is {upload.status}",
            details={"upload_id": upload.tus_id, "status": upload.status},
            # Terminated uploads are gone for good
            status_code=410 if upload.status == UploadStatus.CANCELLED else None,
        )
