"""Tests for StreamWriter temp files."""

from __future__ import annotations

import io

import pytest

from uploads.exceptions import StorageError
from uploads.services.stream_writer import StreamWriter


@pytest.fixture
def writer(upload_storage) -> StreamWriter:
    return StreamWriter(buffer_size=4)


class TestStreamWriter:
    """Tests for create(), append() and delete()."""

    def test_create_allocates_empty_file(self, writer, upload_storage):
        path = writer.create("abc")

        assert path == upload_storage["temp"] / "abc.bin"
        assert path.read_bytes() == b""

    def test_append_at_offset(self, writer):
        """
        Appends land at the given offset and return the bytes written.

        Why it matters: A resumed upload continues exactly where the ledger
        says the previous request stopped.
        """
        path = writer.create("abc")

        assert writer.append(path, 0, io.BytesIO(b"hello ")) == 6
        assert writer.append(path, 6, io.BytesIO(b"world")) == 5
        assert path.read_bytes() == b"hello world"

    def test_append_to_missing_file_raises(self, writer, upload_storage):
        with pytest.raises(StorageError):
            writer.append(upload_storage["temp"] / "missing.bin", 0, io.BytesIO(b"x"))

    def test_delete(self, writer):
        path = writer.create("abc")

        assert writer.delete(path) is True
        assert writer.delete(path) is False
        assert not path.exists()
