"""
Asset model: the durable artifact produced when an upload is finalized.

One Asset per completed upload, sharing the upload's public id. Downstream
workers (thumbnails, transcoding, metadata extraction, remote sync) address
their jobs by Asset id.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from uploads.models.states import AssetSource, AssetType, AssetVisibility


class Asset(BaseModel):
    """
    A finalized file in an owner's library.

    Attributes:
        id: Equal to the upload's public id (tus id or chunked upload id)
        owner: User the bytes are charged to
        asset_type: Content category derived from the MIME type
        original_filename: Sanitized client filename
        stored_name: ``{id}_{original_filename}``, the on-disk basename
        original_path: Absolute path of the file in the library
        content_type: MIME type declared by the client
        file_size: Size in bytes
        checksum: Hex SHA-1 of the file content
        derivatives_pending: Derivatives expected from downstream workers
        derivatives_completed: Derivatives reported done so far
        source: Upload protocol that produced the asset
    """

    id = models.UUIDField(
        primary_key=True,
        editable=False,
        help_text="Same id as the upload that produced this asset",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="assets",
        help_text="User who owns this asset",
    )

    # =========================================================================
    # File
    # =========================================================================

    asset_type = models.CharField(
        max_length=20,
        choices=AssetType.choices,
        db_index=True,
        help_text="Content category",
    )
    original_filename = models.CharField(
        max_length=255,
        help_text="Sanitized client filename",
    )
    stored_name = models.CharField(
        max_length=320,
        db_index=True,
        help_text="Basename of the stored file",
    )
    original_path = models.CharField(
        max_length=1024,
        help_text="Location of the file in the library",
    )
    content_type = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="MIME type declared by the client",
    )
    file_size = models.BigIntegerField(
        help_text="Size in bytes",
    )
    checksum = models.CharField(
        max_length=40,
        db_index=True,
        help_text="Hex SHA-1 of the file content",
    )

    # =========================================================================
    # Client metadata
    # =========================================================================

    device_asset_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Client-side asset identifier",
    )
    device_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Identifier of the uploading device",
    )
    file_created_at = models.DateTimeField(
        default=timezone.now,
        help_text="Creation time reported by the client",
    )
    file_modified_at = models.DateTimeField(
        default=timezone.now,
        help_text="Modification time reported by the client",
    )
    is_favorite = models.BooleanField(
        default=False,
    )
    duration = models.CharField(
        max_length=32,
        blank=True,
        default="",
        help_text="Playback duration as reported by the client",
    )
    visibility = models.CharField(
        max_length=20,
        choices=AssetVisibility.choices,
        default=AssetVisibility.TIMELINE,
    )

    # =========================================================================
    # Downstream processing
    # =========================================================================

    derivatives_pending = models.PositiveSmallIntegerField(
        default=1,
        help_text="Number of derivatives expected (thumbnail, playback video)",
    )
    derivatives_completed = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of derivatives reported done",
    )
    source = models.CharField(
        max_length=20,
        choices=AssetSource.choices,
        help_text="Upload protocol that produced this asset",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "stored_name"],
                name="unique_asset_stored_name_per_owner",
            ),
        ]
        indexes = [
            models.Index(
                fields=["owner", "asset_type"],
                name="idx_asset_owner_type",
            ),
        ]

    def __str__(self) -> str:
        return f"Asset({self.stored_name}, {self.asset_type})"

    @property
    def derivatives_done(self) -> bool:
        return self.derivatives_completed >= self.derivatives_pending
