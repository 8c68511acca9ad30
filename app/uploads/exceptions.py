"""
Upload-specific exceptions.

Every error the upload engine raises derives from core.exceptions, so the
API exception handler renders it with a distinct error_code and status.
Messages never include filesystem paths.

Exception Hierarchy:
    UploadNotFound (NotFoundError, 404)
    InvalidState (ConflictError, 409; 410 for terminated stream uploads)
    OffsetConflict (ConflictError, 409)
    InvalidArgument (ValidationError, 400)
    SizeMismatch (BaseApplicationError, 422 for a chunk, 409 at commit)
    IncompleteUpload (ConflictError, 409)
    InvalidRange (BaseApplicationError, 416)
    StorageError (BaseApplicationError, 500)
    OwnerResolutionError (PermissionDeniedError, 403)
    UnsupportedTusVersion (BaseApplicationError, 412)

Usage:
    from uploads.exceptions import OffsetConflict

    if client_offset != upload.upload_offset:
        raise OffsetConflict(
            "Upload-Offset does not match the current offset",
            details={"expected": upload.upload_offset, "received": client_offset},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


class UploadNotFound(NotFoundError):
    """Unknown upload id, or an id owned by someone else."""

    default_error_code: str = "UPLOAD_NOT_FOUND"


class InvalidState(ConflictError):
    """Operation not valid for the upload's current lifecycle status."""

    default_error_code: str = "INVALID_STATE"


class OffsetConflict(ConflictError):
    """
    Stream-mode append presented an offset other than the recorded one.

    Clients recover by re-reading the offset (HEAD) and resuming from it.
    """

    default_error_code: str = "OFFSET_CONFLICT"


class InvalidArgument(ValidationError):
    """Bad index, size, header or metadata."""

    default_error_code: str = "INVALID_ARGUMENT"


class SizeMismatch(BaseApplicationError):
    """Declared and actual byte counts disagree."""

    default_error_code: str = "SIZE_MISMATCH"
    status_code: int = 422


class IncompleteUpload(ConflictError):
    """Commit attempted while chunks are still missing."""

    default_error_code: str = "INCOMPLETE_UPLOAD"

    def __init__(self, missing: list[int], message: str | None = None):
        super().__init__(
            message or f"Upload is missing {len(missing)} chunk(s)",
            details={"missing": list(missing)},
        )
        self.missing = list(missing)


class InvalidRange(BaseApplicationError):
    """Unsatisfiable or malformed Range header."""

    default_error_code: str = "INVALID_RANGE"
    status_code: int = 416

    def __init__(self, message: str, file_size: int, **kwargs: Any):
        headers = {"Content-Range": f"bytes */{file_size}"}
        super().__init__(message, headers=headers, **kwargs)
        self.file_size = file_size


class StorageError(BaseApplicationError):
    """I/O failure while reading, writing or renaming upload files."""

    default_error_code: str = "STORAGE_ERROR"
    status_code: int = 500


class OwnerResolutionError(PermissionDeniedError):
    """The upload could not be resolved to an owner with a profile."""

    default_error_code: str = "OWNER_UNRESOLVED"


class UnsupportedTusVersion(BaseApplicationError):
    """Tus-Resumable header missing or naming a version this server does not speak."""

    default_error_code: str = "UNSUPPORTED_TUS_VERSION"
    status_code: int = 412
