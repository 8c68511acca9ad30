"""
Finalization of completed uploads.

Finalizing runs in three steps:

1. prepare()  - checksum the completed bytes, resolve the owner, derive the
                asset type and the deterministic library path. No writes.
2. record()   - inside a transaction: create the Asset, charge the owner's
                storage counter, mark the ledger COMPLETED with final_path.
3. publish()  - after that transaction commits: rename the file into the
                library and push one job per downstream consumer.

The rename only happens once the bookkeeping is durable. A crash between
steps 2 and 3 leaves a COMPLETED ledger whose final_path does not exist yet;
reconcile() detects and repairs exactly that state.

Usage:
    finalizer = UploadFinalizer()

    # Standalone (opens its own transaction)
    asset = finalizer.finalize(upload)

    # Inside a coordinator that already holds the upload's row lock
    with transaction.atomic():
        upload = lock_upload(ChunkedUpload, pk=upload_id)
        plan = finalizer.prepare(upload, assembled_path)
        finalizer.record(plan)
    finalizer.publish(plan)
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from django.conf import settings
from django_fsm import TransitionNotAllowed

from core.services import BaseService
from uploads.exceptions import InvalidState, StorageError
from uploads.metadata import parse_bool, parse_client_datetime, parse_visibility
from uploads.models import Asset, AssetType, ChunkedUpload, StreamUpload, UploadStatus
from uploads.services.chunk_store import ChunkStore
from uploads.services.owner import resolve_owner
from uploads.services.storage import final_path_for, sanitize_filename, sha1_file, stored_name_for
from uploads.services.task_queue import CeleryTaskQueue

if TYPE_CHECKING:
    from typing import Any

    from authentication.models import User
    from core.protocols import TaskQueue


def determine_asset_type(mime_type: str | None) -> str:
    """
    Map a MIME type to an AssetType.

    image/*, video/* and audio/* map to their category; anything mentioning
    pdf, document or text/plain is a DOCUMENT; everything else is OTHER.
    """
    if not mime_type:
        return AssetType.OTHER
    mime = mime_type.lower()
    if mime.startswith("image/"):
        return AssetType.IMAGE
    if mime.startswith("video/"):
        return AssetType.VIDEO
    if mime.startswith("audio/"):
        return AssetType.AUDIO
    if "pdf" in mime or "document" in mime or "text/plain" in mime:
        return AssetType.DOCUMENT
    return AssetType.OTHER


def derivatives_expected(asset_type: str) -> int:
    # Videos get a thumbnail and a playback rendition, everything else a thumbnail
    return 2 if asset_type == AssetType.VIDEO else 1


@dataclass
class FinalizePlan:
    """Everything computed before the bookkeeping transaction."""

    upload: StreamUpload | ChunkedUpload
    owner: User
    source_path: Path
    final_path: Path
    asset_type: str
    checksum: str
    file_size: int
    filename: str
    metadata: dict[str, str] = field(default_factory=dict)
    asset: Asset | None = None

    @property
    def asset_id(self) -> uuid.UUID:
        return uuid.UUID(self.upload.public_id)


class UploadFinalizer(BaseService):
    """
    Moves completed bytes into the library and hands off to the pipeline.

    Depends only on the TaskQueue protocol for downstream hand-off; the
    default is CeleryTaskQueue.
    """

    def __init__(self, task_queue: TaskQueue | None = None, chunk_store: ChunkStore | None = None):
        self.task_queue = task_queue or CeleryTaskQueue()
        self.chunk_store = chunk_store or ChunkStore()

    # =========================================================================
    # Public API
    # =========================================================================

    def finalize(self, upload: StreamUpload | ChunkedUpload, source_path: Path | None = None) -> Asset:
        """
        Run all three steps, opening a transaction for the bookkeeping.

        Raises:
            InvalidState: The upload is already terminal
            OwnerResolutionError: The upload has no resolvable owner
            StorageError: The completed bytes cannot be read
        """
        plan = self.prepare(upload, source_path)
        with self.atomic():
            self.record(plan)
        self.publish(plan)
        return plan.asset

    def prepare(self, upload: StreamUpload | ChunkedUpload, source_path: Path | None = None) -> FinalizePlan:
        if upload.is_terminal:
            raise InvalidState(
                f"Upload is already {upload.status}",
                details={"upload_id": upload.public_id, "status": upload.status},
            )

        owner = resolve_owner(upload)
        source_path = Path(source_path) if source_path else self.source_path_for(upload)

        try:
            checksum = sha1_file(source_path)
            file_size = source_path.stat().st_size
        except OSError as exc:
            self.get_logger().exception(
                "Completed upload bytes are unreadable",
                extra={"event_type": "finalize_read_failed", "upload_id": upload.public_id, "path": str(source_path)},
            )
            raise StorageError("Could not read completed upload") from exc

        metadata = upload.client_metadata
        filename = sanitize_filename(upload.filename or metadata.get("filename"))
        asset_type = determine_asset_type(upload.mime_type)

        return FinalizePlan(
            upload=upload,
            owner=owner,
            source_path=source_path,
            final_path=final_path_for(owner.pk, asset_type, upload.public_id, filename),
            asset_type=asset_type,
            checksum=checksum,
            file_size=file_size,
            filename=filename,
            metadata=metadata,
        )

    def record(self, plan: FinalizePlan) -> Asset:
        """
        Durable bookkeeping for a finalized upload.

        Must run inside a transaction; the caller's row lock on the upload
        (if any) keeps a concurrent finalize from getting here twice.
        """
        upload = plan.upload
        metadata = plan.metadata

        with self.atomic():
            asset = Asset.objects.create(
                id=plan.asset_id,
                owner=plan.owner,
                asset_type=plan.asset_type,
                original_filename=plan.filename,
                stored_name=stored_name_for(upload.public_id, plan.filename),
                original_path=str(plan.final_path),
                content_type=upload.mime_type or "",
                file_size=plan.file_size,
                checksum=plan.checksum,
                device_asset_id=metadata.get("deviceAssetId", ""),
                device_id=metadata.get("deviceId", ""),
                file_created_at=parse_client_datetime(metadata.get("fileCreatedAt")),
                file_modified_at=parse_client_datetime(metadata.get("fileModifiedAt")),
                is_favorite=parse_bool(metadata.get("isFavorite")),
                duration=metadata.get("duration", "")[:32],
                visibility=parse_visibility(metadata.get("visibility")),
                derivatives_pending=derivatives_expected(plan.asset_type),
                derivatives_completed=0,
                source=upload.asset_source,
            )

            plan.owner.profile.add_storage_usage(plan.file_size)

            try:
                upload.complete(str(plan.final_path))
            except TransitionNotAllowed as exc:
                raise InvalidState(
                    f"Upload cannot complete from {upload.status}",
                    details={"upload_id": upload.public_id, "status": upload.status},
                ) from exc
            upload.save()

        plan.asset = asset
        self.get_logger().info(
            f"Recorded asset {asset.id} for upload {upload.public_id}",
            extra={
                "event_type": "upload_recorded",
                "upload_id": upload.public_id,
                "asset_id": str(asset.id),
                "owner_id": str(plan.owner.pk),
                "asset_type": plan.asset_type,
                "file_size": plan.file_size,
            },
        )
        return asset

    def publish(self, plan: FinalizePlan) -> bool:
        """
        Rename the file into the library, then emit downstream jobs.

        A failed rename is logged and left for reconcile(); the jobs are only
        emitted once the file is in place.

        Returns:
            True if the file is in place and jobs were emitted
        """
        if not self._move_into_place(plan.upload, plan.source_path, plan.final_path):
            return False
        self.emit_pipeline(plan.asset)
        self.get_logger().info(
            f"Finalized upload {plan.upload.public_id}",
            extra={
                "event_type": "upload_finalized",
                "upload_id": plan.upload.public_id,
                "asset_id": str(plan.asset.id),
                "checksum": plan.checksum,
            },
        )
        return True

    def reconcile(self, upload: StreamUpload | ChunkedUpload) -> bool:
        """
        Repair a COMPLETED upload whose file never reached final_path.

        Returns:
            True if the file was moved into place, False if nothing to do

        Raises:
            StorageError: Neither the final file nor the source file exists
        """
        if upload.status != UploadStatus.COMPLETED or not upload.final_path:
            return False

        final_path = Path(upload.final_path)
        if final_path.exists():
            return False

        source_path = self.source_path_for(upload)
        if not source_path.exists():
            self.get_logger().error(
                f"Completed upload {upload.public_id} has no file on disk",
                extra={"event_type": "reconcile_failed", "upload_id": upload.public_id},
            )
            raise StorageError(
                "Completed upload has lost its file",
                details={"upload_id": upload.public_id},
            )

        if not self._move_into_place(upload, source_path, final_path):
            raise StorageError(
                "Could not move completed upload into place",
                details={"upload_id": upload.public_id},
            )

        asset = Asset.objects.filter(id=uuid.UUID(upload.public_id)).first()
        if asset is not None:
            self.emit_pipeline(asset)
        if isinstance(upload, ChunkedUpload):
            self.chunk_store.delete_session(upload.id)

        self.get_logger().warning(
            f"Reconciled completed upload {upload.public_id}",
            extra={"event_type": "upload_reconciled", "upload_id": upload.public_id},
        )
        return True

    def emit_pipeline(self, asset: Asset) -> None:
        """Push one job per downstream consumer. Never raises."""
        queues = settings.UPLOADS_PIPELINE_QUEUES
        payload: dict[str, Any] = {
            "asset_id": str(asset.id),
            "owner_id": str(asset.owner_id),
            "asset_type": asset.asset_type,
        }
        names = []
        if asset.asset_type == AssetType.VIDEO:
            names.append(queues["transcode"])
        names.extend([queues["thumbnail"], queues["metadata"], queues["remote_sync"]])

        for name in names:
            self.task_queue.push(name, dict(payload))

    # =========================================================================
    # Helpers
    # =========================================================================

    def source_path_for(self, upload: StreamUpload | ChunkedUpload) -> Path:
        """Where the completed bytes sit before finalization."""
        if isinstance(upload, StreamUpload):
            return Path(upload.temp_path)
        return self.chunk_store.assembled_path(upload.id)

    def _move_into_place(self, upload, source_path: Path, final_path: Path) -> bool:
        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source_path, final_path)
        except OSError:
            self.get_logger().exception(
                f"Rename into library failed for upload {upload.public_id}",
                extra={
                    "event_type": "finalize_rename_failed",
                    "upload_id": upload.public_id,
                    "source": str(source_path),
                    "target": str(final_path),
                },
            )
            return False
        return True
