"""
Tests for ChunkedUploadService.

Covers out-of-order delivery, idempotent re-sends, commit completeness and
size verification, and cancellation.
"""

from __future__ import annotations

import hashlib
import io
import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest
from django.db import OperationalError, transaction

from uploads.exceptions import (
    IncompleteUpload,
    InvalidArgument,
    InvalidState,
    SizeMismatch,
    UploadNotFound,
)
from uploads.models import Asset, AssetSource, AssetType, UploadChunk, UploadStatus

pytestmark = pytest.mark.django_db


PART_A = b"A" * 400
PART_B = b"B" * 400
PART_C = b"C" * 200


@pytest.fixture
def upload(chunked_service, user):
    """A 1000-byte JPEG upload in 400-byte chunks (3 chunks)."""
    return chunked_service.init(
        owner=user,
        filename="photo.jpg",
        content_type="image/jpeg",
        total_size=1000,
        chunk_size=400,
    )


# =============================================================================
# Init
# =============================================================================


class TestInit:
    """Tests for ChunkedUploadService.init()."""

    def test_init_fixes_total_chunks(self, upload, user):
        assert upload.total_chunks == 3
        assert upload.status == UploadStatus.PENDING
        assert upload.owner == user
        assert upload.missing_indices() == [0, 1, 2]

    @pytest.mark.parametrize("total_size,chunk_size", [(0, 400), (-1, 400), (1000, 0)])
    def test_non_positive_sizes_rejected(self, chunked_service, user, total_size, chunk_size):
        with pytest.raises(InvalidArgument):
            chunked_service.init(
                owner=user,
                filename="a.bin",
                content_type="",
                total_size=total_size,
                chunk_size=chunk_size,
            )

    def test_filename_sanitized(self, chunked_service, user):
        upload = chunked_service.init(
            owner=user, filename="../x/evil.jpg", content_type="image/jpeg", total_size=1, chunk_size=1
        )

        assert upload.filename == "evil.jpg"


# =============================================================================
# Put Chunk
# =============================================================================


class TestPutChunk:
    """Tests for ChunkedUploadService.put_chunk()."""

    def test_first_chunk_starts_upload(self, chunked_service, upload, user):
        stored = chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)

        upload.refresh_from_db()
        assert stored is True
        assert upload.status == UploadStatus.IN_PROGRESS
        chunk = UploadChunk.objects.get(upload=upload, index=0)
        assert chunk.size == 400

    def test_resend_is_noop(self, chunked_service, chunk_store, upload, user):
        """
        Re-sending a stored index leaves the first copy in place.

        Why it matters: Clients retry chunks whose response was lost; the
        retry must succeed without altering what was already stored.
        """
        chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)

        stored = chunked_service.put_chunk(upload.id, 0, io.BytesIO(b"Z" * 400), owner=user)

        assert stored is False
        assert chunk_store.chunk_path(upload.id, 0).read_bytes() == PART_A
        assert UploadChunk.objects.filter(upload=upload).count() == 1

    @pytest.mark.parametrize("index", [-1, 3, 99])
    def test_index_out_of_range(self, chunked_service, upload, user, index):
        with pytest.raises(InvalidArgument) as exc_info:
            chunked_service.put_chunk(upload.id, index, io.BytesIO(b"x"), owner=user)

        assert exc_info.value.details["total_chunks"] == 3

    def test_declared_size_mismatch(self, chunked_service, chunk_store, upload, user):
        """A chunk shorter than X-Chunk-Size is discarded and not recorded."""
        with pytest.raises(SizeMismatch) as exc_info:
            chunked_service.put_chunk(upload.id, 0, io.BytesIO(b"A" * 300), owner=user, declared_size=400)

        assert exc_info.value.status_code == 422
        assert not chunk_store.chunk_path(upload.id, 0).exists()
        assert not UploadChunk.objects.filter(upload=upload).exists()

    def test_checksum_stored_as_given(self, chunked_service, upload, user):
        chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user, checksum="sha1=abc")

        assert UploadChunk.objects.get(upload=upload, index=0).checksum == "sha1=abc"

    def test_put_after_cancel_rejected(self, chunked_service, upload, user):
        chunked_service.cancel(upload.id, owner=user)

        with pytest.raises(InvalidState):
            chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)

    def test_other_owner_rejected(self, chunked_service, upload, other_user):
        with pytest.raises(UploadNotFound):
            chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=other_user)


# =============================================================================
# Commit
# =============================================================================


class TestCommit:
    """Tests for ChunkedUploadService.commit()."""

    def test_out_of_order_upload_commits(self, chunked_service, chunk_store, upload, user, task_queue):
        """
        Chunks 0 and 2 then 1 commit into one file in index order.

        Why it matters: Parallel senders deliver chunks in any order; the
        library file must still be byte-identical to the original.
        """
        chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)
        chunked_service.put_chunk(upload.id, 2, io.BytesIO(PART_C), owner=user)

        with pytest.raises(IncompleteUpload) as exc_info:
            chunked_service.commit(upload.id, owner=user)
        assert exc_info.value.missing == [1]
        upload.refresh_from_db()
        assert upload.status == UploadStatus.IN_PROGRESS

        chunked_service.put_chunk(upload.id, 1, io.BytesIO(PART_B), owner=user)
        asset = chunked_service.commit(upload.id, owner=user)

        expected = PART_A + PART_B + PART_C
        upload.refresh_from_db()
        assert upload.status == UploadStatus.COMPLETED
        assert Path(upload.final_path).read_bytes() == expected
        assert asset.id == upload.id
        assert asset.asset_type == AssetType.IMAGE
        assert asset.source == AssetSource.CHUNKED
        assert asset.checksum == hashlib.sha1(expected).hexdigest()
        assert asset.file_size == 1000
        assert not chunk_store.session_dir(upload.id).exists()
        assert "video-transcode-queue" not in task_queue.queue_names
        assert len(task_queue.pushed) == 3

    def test_missing_chunks_reported(self, chunked_service, upload, user):
        chunked_service.put_chunk(upload.id, 1, io.BytesIO(PART_B), owner=user)

        assert chunked_service.missing_chunks(upload.id, owner=user) == [0, 2]

    def test_size_mismatch_fails_upload(self, chunked_service, chunk_store, upload, user):
        """
        Assembled bytes that disagree with total_size fail the upload.

        Why it matters: A wrong-size file must never reach the library, and
        the retained chunks let an operator see what arrived.
        """
        chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)
        chunked_service.put_chunk(upload.id, 1, io.BytesIO(PART_B), owner=user)
        chunked_service.put_chunk(upload.id, 2, io.BytesIO(b"C" * 100), owner=user)

        with pytest.raises(SizeMismatch) as exc_info:
            chunked_service.commit(upload.id, owner=user)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {"expected": 1000, "received": 900}
        upload.refresh_from_db()
        assert upload.status == UploadStatus.FAILED
        assert upload.failure_reason
        assert chunk_store.chunk_path(upload.id, 0).exists()
        assert not chunk_store.assembled_path(upload.id).exists()
        assert not Asset.objects.filter(id=upload.id).exists()

    def test_second_commit_rejected(self, chunked_service, upload, user):
        for index, part in enumerate((PART_A, PART_B, PART_C)):
            chunked_service.put_chunk(upload.id, index, io.BytesIO(part), owner=user)
        chunked_service.commit(upload.id, owner=user)

        with pytest.raises(InvalidState):
            chunked_service.commit(upload.id, owner=user)

        assert Asset.objects.filter(id=upload.id).count() == 1

    def test_commit_charges_storage(self, chunked_service, upload, user):
        for index, part in enumerate((PART_A, PART_B, PART_C)):
            chunked_service.put_chunk(upload.id, index, io.BytesIO(part), owner=user)

        chunked_service.commit(upload.id, owner=user)

        user.profile.refresh_from_db()
        assert user.profile.total_storage_bytes == 1000


# =============================================================================
# Cancel
# =============================================================================


class TestCancel:
    """Tests for ChunkedUploadService.cancel()."""

    def test_cancel_deletes_session(self, chunked_service, chunk_store, upload, user):
        chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)

        upload = chunked_service.cancel(upload.id, owner=user)

        assert upload.status == UploadStatus.CANCELLED
        assert not chunk_store.session_dir(upload.id).exists()

    def test_cancel_is_idempotent(self, chunked_service, upload, user):
        chunked_service.cancel(upload.id, owner=user)

        assert chunked_service.cancel(upload.id, owner=user).status == UploadStatus.CANCELLED

    def test_cancel_failed_upload_clears_chunks(self, chunked_service, chunk_store, upload, user):
        """A FAILED upload stays FAILED; cancel only releases its chunks."""
        chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)
        chunked_service.put_chunk(upload.id, 1, io.BytesIO(PART_B), owner=user)
        chunked_service.put_chunk(upload.id, 2, io.BytesIO(b"C"), owner=user)
        with pytest.raises(SizeMismatch):
            chunked_service.commit(upload.id, owner=user)

        upload = chunked_service.cancel(upload.id, owner=user)

        assert upload.status == UploadStatus.FAILED
        assert not chunk_store.session_dir(upload.id).exists()

    def test_cancel_completed_is_noop(self, chunked_service, upload, user):
        for index, part in enumerate((PART_A, PART_B, PART_C)):
            chunked_service.put_chunk(upload.id, index, io.BytesIO(part), owner=user)
        chunked_service.commit(upload.id, owner=user)

        upload = chunked_service.cancel(upload.id, owner=user)

        assert upload.status == UploadStatus.COMPLETED
        assert Path(upload.final_path).exists()


# =============================================================================
# Concurrency
# =============================================================================


class TestConcurrentPut:
    """Tests for racing writers of the same chunk index."""

    def test_losing_writer_records_nothing(self, chunked_service, chunk_store, upload, user):
        """
        A writer that finds the chunk file already created backs off.

        Why it matters: The exclusive create is what keeps a racing
        duplicate from double-counting the chunk or mixing its bytes in.
        """
        chunk_store.write_chunk(upload.id, 1, io.BytesIO(PART_B))

        stored = chunked_service.put_chunk(upload.id, 1, io.BytesIO(b"Z" * 400), owner=user)

        assert stored is False
        assert chunk_store.chunk_path(upload.id, 1).read_bytes() == PART_B
        assert not UploadChunk.objects.filter(upload=upload).exists()

    def test_record_lost_to_concurrent_insert(self, chunked_service, chunk_store, upload, user):
        """A duplicate row insert is treated as an idempotent re-send."""
        real_write = chunk_store.write_chunk

        def write_then_race(upload_id, index, body):
            written = real_write(upload_id, index, body)
            UploadChunk.objects.create(
                upload=upload,
                index=index,
                size=written,
                stored_path=str(chunk_store.chunk_path(upload_id, index)),
            )
            return written

        with patch.object(chunk_store, "write_chunk", side_effect=write_then_race):
            stored = chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)

        assert stored is False
        assert UploadChunk.objects.filter(upload=upload, index=0).count() == 1

    def test_failed_record_leaves_index_retryable(self, chunked_service, chunk_store, upload, user):
        """
        A database error while recording a chunk removes its file.

        Why it matters: A file without a row would make every re-send back
        off as a duplicate, so the index could never be committed.
        """
        real_create = UploadChunk.objects.create
        calls = []

        def fail_once(**kwargs):
            calls.append(kwargs["index"])
            if len(calls) == 1:
                raise OperationalError("connection lost")
            return real_create(**kwargs)

        with patch.object(UploadChunk.objects, "create", side_effect=fail_once):
            with pytest.raises(OperationalError):
                chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)

            assert not chunk_store.chunk_path(upload.id, 0).exists()
            assert chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user) is True

        chunked_service.put_chunk(upload.id, 1, io.BytesIO(PART_B), owner=user)
        chunked_service.put_chunk(upload.id, 2, io.BytesIO(PART_C), owner=user)
        asset = chunked_service.commit(upload.id, owner=user)

        assert asset.file_size == 1000

    def test_stale_unrecorded_chunk_reclaimed(self, chunked_service, chunk_store, upload, user, settings):
        """A chunk file orphaned by a crash before recording is overwritten on re-send."""
        settings.UPLOADS_CHUNK_RECLAIM_SECONDS = 60
        chunk_store.write_chunk(upload.id, 0, io.BytesIO(b"partial"))
        stale = time.time() - 3600
        os.utime(chunk_store.chunk_path(upload.id, 0), (stale, stale))

        stored = chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)

        assert stored is True
        assert chunk_store.chunk_path(upload.id, 0).read_bytes() == PART_A
        assert UploadChunk.objects.get(upload=upload, index=0).size == 400
        assert chunked_service.missing_chunks(upload.id, owner=user) == [1, 2]

    def test_recorded_chunk_never_reclaimed(self, chunked_service, chunk_store, upload, user, settings):
        settings.UPLOADS_CHUNK_RECLAIM_SECONDS = 0
        chunked_service.put_chunk(upload.id, 0, io.BytesIO(PART_A), owner=user)

        stored = chunked_service.put_chunk(upload.id, 0, io.BytesIO(b"Z" * 400), owner=user)

        assert stored is False
        assert chunk_store.chunk_path(upload.id, 0).read_bytes() == PART_A


class TestCommitCancelRace:
    """Tests for commit and cancel contending for the same upload."""

    def test_cancel_queued_behind_commit_is_noop(
        self, chunked_service, chunk_store, upload, user, django_capture_on_commit_callbacks
    ):
        """
        A cancel that waits on commit's row lock finds the upload COMPLETED.

        Why it matters: Commit and cancel on one id must never both take
        effect; a cancel after the lock is released must not delete the
        finalized file or flip the status.
        """
        for index, part in enumerate((PART_A, PART_B, PART_C)):
            chunked_service.put_chunk(upload.id, index, io.BytesIO(part), owner=user)
        real_assemble = chunk_store.assemble
        cancelled = []

        def assemble_with_pending_cancel(upload_id, total_chunks, target):
            # The cancel can only run once commit's transaction releases the lock
            transaction.on_commit(lambda: cancelled.append(chunked_service.cancel(upload_id, owner=user)))
            return real_assemble(upload_id, total_chunks, target)

        with django_capture_on_commit_callbacks(execute=True):
            with patch.object(chunk_store, "assemble", side_effect=assemble_with_pending_cancel):
                asset = chunked_service.commit(upload.id, owner=user)

        upload.refresh_from_db()
        assert cancelled[0].status == UploadStatus.COMPLETED
        assert upload.status == UploadStatus.COMPLETED
        assert Path(upload.final_path).exists()
        assert Asset.objects.filter(id=asset.id).exists()

    def test_commit_after_cancel_rejected(self, chunked_service, chunk_store, upload, user):
        for index, part in enumerate((PART_A, PART_B, PART_C)):
            chunked_service.put_chunk(upload.id, index, io.BytesIO(part), owner=user)
        chunked_service.cancel(upload.id, owner=user)

        with pytest.raises(InvalidState):
            chunked_service.commit(upload.id, owner=user)

        upload.refresh_from_db()
        assert upload.status == UploadStatus.CANCELLED
        assert not Asset.objects.filter(id=upload.id).exists()
        assert not chunk_store.session_dir(upload.id).exists()
