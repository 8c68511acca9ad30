"""
Filesystem helpers shared by the upload services.

All storage roots come from settings (UPLOADS_TEMP_DIR, UPLOADS_FINAL_DIR).
Client-supplied names only ever reach the filesystem through
sanitize_filename(), so they cannot escape those roots.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import SuspiciousFileOperation
from django.utils.text import get_valid_filename

if TYPE_CHECKING:
    from typing import BinaryIO

DEFAULT_FILENAME = "upload.bin"


def temp_root() -> Path:
    return Path(settings.UPLOADS_TEMP_DIR)


def final_root() -> Path:
    return Path(settings.UPLOADS_FINAL_DIR)


def sanitize_filename(name: str | None) -> str:
    """
    Reduce a client filename to a safe basename.

    Directory components are dropped and unsafe characters replaced.
    Names that reduce to nothing fall back to ``upload.bin``.
    """
    base = os.path.basename((name or "").replace("\\", "/")).strip()
    if base in ("", ".", ".."):
        return DEFAULT_FILENAME
    try:
        return get_valid_filename(base)[:200]
    except SuspiciousFileOperation:
        return DEFAULT_FILENAME


def stored_name_for(upload_id: str, filename: str) -> str:
    return f"{upload_id}_{filename}"


def final_path_for(owner_id: object, asset_type: str, upload_id: str, filename: str) -> Path:
    """
    Deterministic library path for a finalized upload.

    Layout: ``{final_root}/originals/{owner_id}/{ASSET_TYPE}/{upload_id}_{filename}``
    """
    return (
        final_root()
        / "originals"
        / str(owner_id)
        / asset_type.upper()
        / stored_name_for(upload_id, filename)
    )


def copy_stream(source: BinaryIO, target: BinaryIO, buffer_size: int | None = None) -> int:
    """
    Copy ``source`` into ``target`` in bounded reads.

    Returns:
        Number of bytes copied
    """
    buffer_size = buffer_size or settings.UPLOADS_COPY_BUFFER_SIZE
    copied = 0
    while True:
        block = source.read(buffer_size)
        if not block:
            break
        target.write(block)
        copied += len(block)
    return copied


def sha1_file(path: Path, buffer_size: int | None = None) -> str:
    """Hex SHA-1 of a file, read in buffer-sized blocks."""
    buffer_size = buffer_size or settings.UPLOADS_COPY_BUFFER_SIZE
    digest = hashlib.sha1()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(buffer_size), b""):
            digest.update(block)
    return digest.hexdigest()


def remove_file(path: Path | str | None) -> bool:
    """
    Delete a file if it exists.

    Returns:
        True if a file was removed, False if it was already gone
    """
    if not path:
        return False
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True
