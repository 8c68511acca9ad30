"""
Celery tasks for the upload pipeline and upload maintenance.

Downstream hand-off (pushed by UploadFinalizer through CeleryTaskQueue):
- transcode_video      (video-transcode-queue, videos only)
- generate_thumbnail   (thumbnail-queue)
- extract_metadata     (metadata-queue)
- sync_to_remote       (remote-sync-queue)

These are the boundary with external workers: they load the Asset, record
what they can, and return a status dict. Each receives one payload dict:
{"asset_id": ..., "owner_id": ..., "asset_type": ...}.

Maintenance (scheduled via celery-beat, see migrations):
- cleanup_stale_uploads
- reconcile_completed_uploads
- cleanup_orphaned_chunk_sessions
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db.models import F
from django.utils import timezone

logger = logging.getLogger(__name__)

# Completed uploads older than this are assumed already reconciled
RECONCILE_LOOKBACK_HOURS = 48


# =============================================================================
# Pipeline Tasks
# =============================================================================


def _load_asset(payload: dict):
    from uploads.models import Asset

    try:
        return Asset.objects.get(id=UUID(payload["asset_id"]))
    except (Asset.DoesNotExist, KeyError, ValueError):
        logger.error(
            "Asset not found for pipeline task",
            extra={"event_type": "pipeline_asset_missing", "asset_id": payload.get("asset_id")},
        )
        return None


def _record_derivative(asset) -> None:
    from uploads.models import Asset

    Asset.objects.filter(id=asset.id).update(
        derivatives_completed=F("derivatives_completed") + 1,
        updated_at=timezone.now(),
    )


@shared_task(
    bind=True,
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
    acks_late=True,
)
def generate_thumbnail(self, payload: dict) -> dict:
    """
    Thumbnail derivative for a finalized asset.

    Rendering happens in the external thumbnail worker; this records the
    derivative as produced.
    """
    asset = _load_asset(payload)
    if asset is None:
        return {"status": "not_found", "asset_id": payload.get("asset_id")}

    _record_derivative(asset)
    logger.info(
        "Thumbnail derivative recorded",
        extra={"event_type": "thumbnail_generated", "asset_id": str(asset.id)},
    )
    return {"status": "success", "asset_id": str(asset.id)}


@shared_task(
    bind=True,
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
    acks_late=True,
)
def transcode_video(self, payload: dict) -> dict:
    """Playback rendition for a finalized video asset."""
    from uploads.models import AssetType

    asset = _load_asset(payload)
    if asset is None:
        return {"status": "not_found", "asset_id": payload.get("asset_id")}
    if asset.asset_type != AssetType.VIDEO:
        return {"status": "skipped", "asset_id": str(asset.id), "reason": "not a video"}

    _record_derivative(asset)
    logger.info(
        "Playback rendition recorded",
        extra={"event_type": "video_transcoded", "asset_id": str(asset.id)},
    )
    return {"status": "success", "asset_id": str(asset.id)}


@shared_task(bind=True, acks_late=True)
def extract_metadata(self, payload: dict) -> dict:
    """Metadata extraction hand-off; metadata lives in the database, not as a derivative."""
    asset = _load_asset(payload)
    if asset is None:
        return {"status": "not_found", "asset_id": payload.get("asset_id")}

    logger.info(
        "Metadata extraction requested",
        extra={"event_type": "metadata_extraction", "asset_id": str(asset.id), "file_size": asset.file_size},
    )
    return {"status": "success", "asset_id": str(asset.id)}


@shared_task(
    bind=True,
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def sync_to_remote(self, payload: dict) -> dict:
    """Remote sync hand-off for the original file."""
    asset = _load_asset(payload)
    if asset is None:
        return {"status": "not_found", "asset_id": payload.get("asset_id")}

    if not os.path.exists(asset.original_path):
        logger.warning(
            "Original missing at sync time",
            extra={"event_type": "remote_sync_missing_file", "asset_id": str(asset.id)},
        )
        return {"status": "missing_file", "asset_id": str(asset.id)}

    logger.info(
        "Remote sync requested",
        extra={"event_type": "remote_sync", "asset_id": str(asset.id), "checksum": asset.checksum},
    )
    return {"status": "success", "asset_id": str(asset.id)}


# =============================================================================
# Maintenance Tasks
# =============================================================================


@shared_task
def cleanup_stale_uploads() -> dict:
    """
    Terminate stream uploads and cancel chunked uploads left unfinished.

    Selects PENDING / IN_PROGRESS uploads whose updated_at is older than
    UPLOADS_STALE_AFTER_HOURS and runs them through the normal
    terminate / cancel operations.

    Returns:
        Dict with counts of uploads cleaned up.
    """
    from uploads.models import ChunkedUpload, StreamUpload
    from uploads.models.states import ACTIVE_STATUSES
    from uploads.services.chunked_upload import ChunkedUploadService
    from uploads.services.stream_upload import StreamUploadService

    threshold = timezone.now() - timedelta(hours=settings.UPLOADS_STALE_AFTER_HOURS)
    stream_service = StreamUploadService()
    chunked_service = ChunkedUploadService()

    terminated = 0
    cancelled = 0
    errors = []

    stale_streams = StreamUpload.objects.filter(
        status__in=ACTIVE_STATUSES, updated_at__lt=threshold
    ).values_list("tus_id", flat=True)
    for tus_id in stale_streams:
        try:
            stream_service.terminate(tus_id)
            terminated += 1
        except Exception as e:
            errors.append(f"Error terminating stream upload {tus_id}: {e}")
            logger.error(
                "Failed to terminate stale stream upload",
                extra={"event_type": "stale_upload_cleanup_error", "upload_id": tus_id, "error": str(e)},
            )

    stale_chunked = ChunkedUpload.objects.filter(
        status__in=ACTIVE_STATUSES, updated_at__lt=threshold
    ).values_list("id", flat=True)
    for upload_id in stale_chunked:
        try:
            chunked_service.cancel(upload_id)
            cancelled += 1
        except Exception as e:
            errors.append(f"Error cancelling chunked upload {upload_id}: {e}")
            logger.error(
                "Failed to cancel stale chunked upload",
                extra={"event_type": "stale_upload_cleanup_error", "upload_id": str(upload_id), "error": str(e)},
            )

    logger.info(
        "Stale uploads cleaned up",
        extra={
            "event_type": "stale_upload_cleanup",
            "terminated": terminated,
            "cancelled": cancelled,
            "error_count": len(errors),
        },
    )
    return {"terminated": terminated, "cancelled": cancelled, "errors": errors}


@shared_task
def reconcile_completed_uploads() -> dict:
    """
    Move recently completed uploads whose file never reached final_path.

    Covers a crash between the finalize bookkeeping commit and the rename.

    Returns:
        Dict with count of uploads repaired.
    """
    from uploads.exceptions import StorageError
    from uploads.models import ChunkedUpload, StreamUpload, UploadStatus
    from uploads.services.finalizer import UploadFinalizer

    since = timezone.now() - timedelta(hours=RECONCILE_LOOKBACK_HOURS)
    finalizer = UploadFinalizer()

    checked = 0
    repaired = 0
    errors = []

    for model_class in (StreamUpload, ChunkedUpload):
        completed = model_class.objects.filter(
            status=UploadStatus.COMPLETED, updated_at__gte=since
        ).exclude(final_path="")
        for upload in completed.iterator():
            if os.path.exists(upload.final_path):
                continue
            checked += 1
            try:
                if finalizer.reconcile(upload):
                    repaired += 1
            except StorageError as e:
                errors.append(f"{upload.public_id}: {e.message}")

    logger.info(
        "Completed upload reconciliation finished",
        extra={
            "event_type": "upload_reconciliation",
            "checked": checked,
            "repaired": repaired,
            "error_count": len(errors),
        },
    )
    return {"checked": checked, "repaired": repaired, "errors": errors}


@shared_task
def cleanup_orphaned_chunk_sessions() -> dict:
    """
    Safety net for chunk session directories without an active upload.

    Removes directories under UPLOADS_TEMP_DIR that match no PENDING /
    IN_PROGRESS / FAILED chunked upload (and no COMPLETED one still waiting
    for reconciliation) and are older than UPLOADS_STALE_AFTER_HOURS.

    Returns:
        Dict with count of directories removed.
    """
    from uploads.models import ChunkedUpload, UploadStatus
    from uploads.services.chunk_store import ChunkStore

    store = ChunkStore()
    session_ids = store.list_session_ids()
    if not session_ids:
        return {"removed_count": 0}

    keep_statuses = [UploadStatus.PENDING, UploadStatus.IN_PROGRESS, UploadStatus.FAILED]
    kept = {
        str(pk)
        for pk in ChunkedUpload.objects.filter(status__in=keep_statuses).values_list("id", flat=True)
    }
    threshold = (timezone.now() - timedelta(hours=settings.UPLOADS_STALE_AFTER_HOURS)).timestamp()

    removed_count = 0
    for session_id in session_ids:
        if session_id in kept:
            continue
        session_dir = store.session_dir(session_id)
        if session_dir.stat().st_mtime > threshold:
            # Too new, may belong to an upload being created right now
            continue
        if store.assembled_path(session_id).exists():
            # Completed upload awaiting reconciliation
            continue
        store.delete_session(session_id)
        removed_count += 1
        logger.info(
            "Removed orphaned chunk session directory",
            extra={"event_type": "orphaned_session_cleanup", "directory": session_id},
        )

    logger.info(
        "Orphaned chunk session cleanup complete",
        extra={"event_type": "orphaned_session_cleanup_complete", "removed_count": removed_count},
    )
    return {"removed_count": removed_count}
