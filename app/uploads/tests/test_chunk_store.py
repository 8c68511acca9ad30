"""Tests for ChunkStore session directories."""

from __future__ import annotations

import io
import uuid

import pytest

from uploads.exceptions import StorageError
from uploads.services.chunk_store import ChunkAlreadyStored, ChunkStore


@pytest.fixture
def store(upload_storage) -> ChunkStore:
    return ChunkStore(buffer_size=4)


@pytest.fixture
def upload_id() -> uuid.UUID:
    return uuid.uuid4()


class TestWriteChunk:
    """Tests for ChunkStore.write_chunk()."""

    def test_writes_bytes(self, store, upload_id):
        written = store.write_chunk(upload_id, 0, io.BytesIO(b"hello world"))

        assert written == 11
        assert store.chunk_path(upload_id, 0).read_bytes() == b"hello world"

    def test_existing_chunk_not_overwritten(self, store, upload_id):
        """
        A second write to the same index raises and leaves the first intact.

        Why it matters: Two senders racing on one index must not interleave
        bytes; the exclusive create lets exactly one of them through.
        """
        store.write_chunk(upload_id, 0, io.BytesIO(b"first"))

        with pytest.raises(ChunkAlreadyStored):
            store.write_chunk(upload_id, 0, io.BytesIO(b"second"))

        assert store.chunk_path(upload_id, 0).read_bytes() == b"first"

    def test_delete_chunk(self, store, upload_id):
        store.write_chunk(upload_id, 1, io.BytesIO(b"x"))

        assert store.delete_chunk(upload_id, 1) is True
        assert not store.chunk_path(upload_id, 1).exists()


class TestAssemble:
    """Tests for ChunkStore.assemble()."""

    def test_concatenates_in_index_order(self, store, upload_id):
        """Chunks written out of order are assembled by index."""
        store.write_chunk(upload_id, 2, io.BytesIO(b"CC"))
        store.write_chunk(upload_id, 0, io.BytesIO(b"AAAA"))
        store.write_chunk(upload_id, 1, io.BytesIO(b"BBBB"))
        target = store.assembled_path(upload_id)

        size = store.assemble(upload_id, 3, target)

        assert size == 10
        assert target.read_bytes() == b"AAAABBBBCC"

    def test_missing_chunk_raises_and_cleans_up(self, store, upload_id):
        store.write_chunk(upload_id, 0, io.BytesIO(b"AAAA"))
        target = store.assembled_path(upload_id)

        with pytest.raises(StorageError):
            store.assemble(upload_id, 2, target)

        assert not target.exists()


class TestSessions:
    """Tests for session listing and deletion."""

    def test_list_and_delete_sessions(self, store):
        first, second = uuid.uuid4(), uuid.uuid4()
        store.write_chunk(first, 0, io.BytesIO(b"a"))
        store.write_chunk(second, 0, io.BytesIO(b"b"))

        assert sorted(store.list_session_ids()) == sorted([str(first), str(second)])

        store.delete_session(first)

        assert store.list_session_ids() == [str(second)]

    def test_delete_missing_session_is_noop(self, store, upload_id):
        store.delete_session(upload_id)

        assert not store.session_dir(upload_id).exists()

    def test_list_without_base_dir(self, tmp_path):
        assert ChunkStore(base_dir=tmp_path / "absent").list_session_ids() == []
