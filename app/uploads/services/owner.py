"""
Owner resolution for upload ledgers.

The authenticated user is recorded as the owner when an upload is created.
Finalization charges the stored bytes to that owner's Profile, so an upload
without an owner (or an owner without a profile) cannot be finalized.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from authentication.models import Profile
from uploads.exceptions import OwnerResolutionError

if TYPE_CHECKING:
    from authentication.models import User
    from uploads.models import ChunkedUpload, StreamUpload


def resolve_owner(upload: StreamUpload | ChunkedUpload) -> User:
    """
    Return the user an upload belongs to.

    Raises:
        OwnerResolutionError: No owner recorded, or the owner has no profile
    """
    owner = upload.owner
    if owner is None:
        raise OwnerResolutionError(
            "Upload has no owner",
            details={"upload_id": upload.public_id},
        )
    if not Profile.objects.filter(user=owner).exists():
        raise OwnerResolutionError(
            "Upload owner has no profile",
            details={"upload_id": upload.public_id},
        )
    return owner
