"""
State enums for upload ledger models.

These are Django TextChoices for database storage and admin integration;
the transitions between them are declared with django-fsm on the models.

Stream uploads:
    PENDING → IN_PROGRESS → COMPLETED
    PENDING/IN_PROGRESS → CANCELLED
    IN_PROGRESS → IN_PROGRESS (partial append)

Chunked uploads:
    PENDING → IN_PROGRESS → COMPLETED
    IN_PROGRESS → FAILED (assembled size mismatch at commit)
    PENDING/IN_PROGRESS → CANCELLED
"""

from django.db import models


class UploadStatus(models.TextChoices):
    """
    Lifecycle status shared by both ledger variants.

    Terminal states: COMPLETED, CANCELLED, FAILED. No transition leaves a
    terminal state.
    """

    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    FAILED = "failed", "Failed"


TERMINAL_STATUSES = frozenset(
    {UploadStatus.COMPLETED, UploadStatus.CANCELLED, UploadStatus.FAILED}
)
ACTIVE_STATUSES = (UploadStatus.PENDING, UploadStatus.IN_PROGRESS)


class AssetType(models.TextChoices):
    """Content category of a finalized asset, derived from its MIME type."""

    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    AUDIO = "audio", "Audio"
    DOCUMENT = "document", "Document"
    OTHER = "other", "Other"


class AssetVisibility(models.TextChoices):
    """Where the asset shows up in client timelines."""

    TIMELINE = "timeline", "Timeline"
    ARCHIVE = "archive", "Archive"
    HIDDEN = "hidden", "Hidden"
    LOCKED = "locked", "Locked"


class AssetSource(models.TextChoices):
    """Which upload protocol produced the asset."""

    STREAM = "stream", "Stream"
    CHUNKED = "chunked", "Chunked"
