"""
StreamUpload model: ledger for single-stream (tus) uploads.

A stream upload owns exactly one growing temp file until it completes;
finalization then moves that file to its final path in one rename.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from uploads.models.states import TERMINAL_STATUSES, AssetSource, UploadStatus


class StreamUpload(UUIDPrimaryKeyMixin, BaseModel):
    """
    Durable record of a stream-mode upload.

    The internal ``id`` never leaves the server; clients address the upload
    by ``tus_id``, which is also the id of the Asset produced on completion.

    Invariants:
        0 <= upload_offset <= upload_length
        status == COMPLETED implies upload_offset == upload_length and
        final_path is set

    Attributes:
        tus_id: Opaque external identifier used in URLs
        owner: User who created the upload
        upload_length: Declared total length in bytes, immutable
        upload_offset: Bytes durably appended so far
        metadata: Raw Upload-Metadata header as received
        metadata_fields: Decoded Upload-Metadata key/value pairs
        filename: Sanitized filename taken from metadata
        filetype: MIME type taken from metadata
        temp_path: Growing temp file
        final_path: Location in the library, set on completion
        status: Lifecycle status (managed by FSM)
    """

    tus_id = models.CharField(
        max_length=64,
        unique=True,
        db_index=True,
        help_text="Opaque upload identifier exposed to clients",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="stream_uploads",
        help_text="User who created the upload",
    )

    # =========================================================================
    # Progress
    # =========================================================================

    upload_length = models.BigIntegerField(
        help_text="Declared total length in bytes",
    )
    upload_offset = models.BigIntegerField(
        default=0,
        help_text="Number of bytes durably appended so far",
    )

    # =========================================================================
    # Metadata
    # =========================================================================

    metadata = models.TextField(
        blank=True,
        default="",
        help_text="Raw Upload-Metadata header",
    )
    metadata_fields = models.JSONField(
        default=dict,
        blank=True,
        help_text="Decoded Upload-Metadata key/value pairs",
    )
    filename = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Sanitized original filename",
    )
    filetype = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="MIME type declared by the client",
    )

    # =========================================================================
    # Storage
    # =========================================================================

    temp_path = models.CharField(
        max_length=1024,
        help_text="Temp file receiving appended bytes",
    )
    final_path = models.CharField(
        max_length=1024,
        blank=True,
        default="",
        help_text="Final location, set on completion",
    )

    status = FSMField(
        default=UploadStatus.PENDING,
        choices=UploadStatus.choices,
        db_index=True,
        help_text="Current state of the upload (managed by FSM)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "stream upload"
        verbose_name_plural = "stream uploads"
        indexes = [
            models.Index(
                fields=["status", "updated_at"],
                name="idx_stream_upload_status_upd",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(upload_offset__gte=0)
                & models.Q(upload_offset__lte=models.F("upload_length")),
                name="stream_upload_offset_within_length",
            ),
        ]

    def __str__(self) -> str:
        return f"StreamUpload({self.tus_id}, {self.status}, {self.upload_offset}/{self.upload_length})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_fully_received(self) -> bool:
        return self.upload_offset == self.upload_length

    # Read-only view shared with ChunkedUpload, consumed by the finalizer
    asset_source = AssetSource.STREAM

    @property
    def public_id(self) -> str:
        return self.tus_id

    @property
    def mime_type(self) -> str:
        return self.filetype

    @property
    def total_bytes(self) -> int:
        return self.upload_length

    @property
    def client_metadata(self) -> dict:
        return self.metadata_fields or {}

    # =========================================================================
    # State Transitions (django-fsm)
    # =========================================================================

    @transition(
        field=status,
        source=[UploadStatus.PENDING, UploadStatus.IN_PROGRESS],
        target=UploadStatus.IN_PROGRESS,
    )
    def start(self):
        """
        Record an accepted partial append.

        Transition: PENDING/IN_PROGRESS -> IN_PROGRESS
        """

    @transition(
        field=status,
        source=[UploadStatus.PENDING, UploadStatus.IN_PROGRESS],
        target=UploadStatus.COMPLETED,
        conditions=[lambda upload: upload.is_fully_received],
    )
    def complete(self, final_path: str):
        """
        Mark the upload finalized at ``final_path``.

        Transition: PENDING/IN_PROGRESS -> COMPLETED
        Only allowed once every declared byte has been received.
        """
        self.final_path = final_path

    @transition(
        field=status,
        source=[UploadStatus.PENDING, UploadStatus.IN_PROGRESS],
        target=UploadStatus.CANCELLED,
    )
    def cancel(self):
        """
        Terminate the upload.

        Transition: PENDING/IN_PROGRESS -> CANCELLED
        """
