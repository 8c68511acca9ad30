"""
Test fixtures for uploads app.

Provides fixtures for:
- Storage roots isolated under tmp_path
- A recording TaskQueue in place of Celery
- Services wired to the recording queue
- tus request headers
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from uploads.services.chunk_store import ChunkStore
from uploads.services.chunked_upload import ChunkedUploadService
from uploads.services.finalizer import UploadFinalizer
from uploads.services.stream_upload import StreamUploadService
from uploads.services.stream_writer import StreamWriter

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def upload_storage(settings, tmp_path: Path) -> dict[str, Path]:
    """Point the temp and library roots at a per-test directory."""
    temp_dir = tmp_path / "upload"
    final_dir = tmp_path / "library"
    temp_dir.mkdir()
    final_dir.mkdir()
    settings.UPLOADS_TEMP_DIR = str(temp_dir)
    settings.UPLOADS_FINAL_DIR = str(final_dir)
    settings.UPLOADS_TUS_MAX_SIZE = 0
    return {"temp": temp_dir, "final": final_dir}


# =============================================================================
# Task Queue Fixtures
# =============================================================================


class RecordingTaskQueue:
    """TaskQueue that keeps pushed jobs in memory."""

    def __init__(self):
        self.pushed: list[tuple[str, dict[str, Any]]] = []

    def push(self, queue_name: str, payload: dict[str, Any]) -> None:
        self.pushed.append((queue_name, payload))

    @property
    def queue_names(self) -> list[str]:
        return [name for name, _ in self.pushed]


@pytest.fixture
def task_queue() -> RecordingTaskQueue:
    return RecordingTaskQueue()


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def chunk_store(upload_storage) -> ChunkStore:
    return ChunkStore()


@pytest.fixture
def finalizer(task_queue, chunk_store) -> UploadFinalizer:
    return UploadFinalizer(task_queue=task_queue, chunk_store=chunk_store)


@pytest.fixture
def stream_service(upload_storage, finalizer) -> StreamUploadService:
    return StreamUploadService(writer=StreamWriter(), finalizer=finalizer)


@pytest.fixture
def chunked_service(chunk_store, finalizer) -> ChunkedUploadService:
    return ChunkedUploadService(store=chunk_store, finalizer=finalizer)


# =============================================================================
# Helpers
# =============================================================================


@pytest.fixture
def tus_headers() -> dict[str, str]:
    """Headers every tus request except OPTIONS must carry."""
    return {"HTTP_TUS_RESUMABLE": "1.0.0"}
