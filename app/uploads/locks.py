"""
Per-upload mutual exclusion.

Status transitions on a ledger row happen while holding that row's lock
(``SELECT ... FOR UPDATE``). Locks are scoped to one upload id; nothing
ever locks two uploads at once, so unrelated uploads never contend.

Usage:
    from uploads.locks import lock_upload

    with transaction.atomic():
        upload = lock_upload(ChunkedUpload, owner=user, pk=upload_id)
        upload.cancel()
        upload.save()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from django.db import models

from uploads.exceptions import UploadNotFound

if TYPE_CHECKING:
    from typing import Any

T = TypeVar("T", bound=models.Model)


def lock_upload(model_class: type[T], owner: Any = None, **lookup: Any) -> T:
    """
    Fetch and row-lock an upload ledger entry.

    Args:
        model_class: StreamUpload or ChunkedUpload
        owner: When given, the row must belong to this user
        **lookup: Field lookup identifying the row (pk=..., tus_id=...)

    Returns:
        The locked instance

    Raises:
        UploadNotFound: No row matches (or it belongs to another owner)

    Note:
        Must be called within a transaction. The lock is held until the
        transaction commits or rolls back.
    """
    queryset = model_class.objects.select_for_update()
    if owner is not None:
        queryset = queryset.filter(owner=owner)
    instance = queryset.filter(**lookup).first()
    if instance is None:
        raise UploadNotFound(
            f"{model_class.__name__} not found",
            details={key: str(value) for key, value in lookup.items()},
        )
    return instance
