"""
ChunkedUpload and UploadChunk models: ledger for chunk-indexed uploads.

Chunks may arrive in any order and from several senders at once. Each
received index is one UploadChunk row; the unique (upload, index)
constraint is what makes a re-sent chunk a no-op.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from uploads.models.states import TERMINAL_STATUSES, AssetSource, UploadStatus


def compute_total_chunks(total_size: int, chunk_size: int) -> int:
    """Return ceil(total_size / chunk_size) for positive sizes."""
    return (total_size + chunk_size - 1) // chunk_size


class ChunkedUpload(UUIDPrimaryKeyMixin, BaseModel):
    """
    Durable record of a chunk-mode upload.

    Attributes:
        owner: User who created the upload
        filename: Sanitized original filename
        content_type: MIME type declared by the client
        total_size: Declared total size in bytes
        chunk_size: Size of every chunk except possibly the last
        total_chunks: ceil(total_size / chunk_size), fixed at creation
        final_path: Location in the library, set on completion
        failure_reason: Why the upload ended FAILED
        status: Lifecycle status (managed by FSM)
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="chunked_uploads",
        help_text="User who created the upload",
    )

    filename = models.CharField(
        max_length=255,
        help_text="Sanitized original filename",
    )
    content_type = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="MIME type declared by the client",
    )
    total_size = models.BigIntegerField(
        help_text="Declared total size in bytes",
    )
    chunk_size = models.BigIntegerField(
        help_text="Size of each chunk in bytes (the last may be shorter)",
    )
    total_chunks = models.PositiveIntegerField(
        editable=False,
        help_text="Number of chunks, computed once at creation",
    )

    final_path = models.CharField(
        max_length=1024,
        blank=True,
        default="",
        help_text="Final location, set on completion",
    )
    failure_reason = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Why the upload failed",
    )

    status = FSMField(
        default=UploadStatus.PENDING,
        choices=UploadStatus.choices,
        db_index=True,
        help_text="Current state of the upload (managed by FSM)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "chunked upload"
        verbose_name_plural = "chunked uploads"
        indexes = [
            models.Index(
                fields=["status", "updated_at"],
                name="idx_chunked_upload_status_upd",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_size__gt=0) & models.Q(chunk_size__gt=0),
                name="chunked_upload_sizes_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"ChunkedUpload({self.filename}, {self.status})"

    def save(self, *args, **kwargs):
        if self._state.adding and not self.total_chunks:
            self.total_chunks = compute_total_chunks(self.total_size, self.chunk_size)
        super().save(*args, **kwargs)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    asset_source = AssetSource.CHUNKED

    @property
    def public_id(self) -> str:
        return str(self.id)

    @property
    def mime_type(self) -> str:
        return self.content_type

    @property
    def total_bytes(self) -> int:
        return self.total_size

    @property
    def client_metadata(self) -> dict:
        return {}

    def received_indices(self) -> set[int]:
        return set(self.chunks.values_list("index", flat=True))

    def missing_indices(self) -> list[int]:
        """Indices in [0, total_chunks) with no stored chunk, ascending."""
        received = self.received_indices()
        return [i for i in range(self.total_chunks) if i not in received]

    # =========================================================================
    # State Transitions (django-fsm)
    # =========================================================================

    @transition(
        field=status,
        source=UploadStatus.PENDING,
        target=UploadStatus.IN_PROGRESS,
    )
    def start(self):
        """
        First chunk accepted.

        Transition: PENDING -> IN_PROGRESS
        """

    @transition(
        field=status,
        source=UploadStatus.IN_PROGRESS,
        target=UploadStatus.COMPLETED,
    )
    def complete(self, final_path: str):
        """
        Commit succeeded.

        Transition: IN_PROGRESS -> COMPLETED
        """
        self.final_path = final_path

    @transition(
        field=status,
        source=UploadStatus.IN_PROGRESS,
        target=UploadStatus.FAILED,
    )
    def fail(self, reason: str):
        """
        Commit found the assembled file has the wrong size.

        Transition: IN_PROGRESS -> FAILED
        """
        self.failure_reason = reason[:255]

    @transition(
        field=status,
        source=[UploadStatus.PENDING, UploadStatus.IN_PROGRESS],
        target=UploadStatus.CANCELLED,
    )
    def cancel(self):
        """
        Transition: PENDING/IN_PROGRESS -> CANCELLED
        """


class UploadChunk(BaseModel):
    """
    One durably written chunk of a ChunkedUpload.

    Created only after the bytes are on disk and verified; never mutated.
    Rows go away with their upload's session cleanup.
    """

    upload = models.ForeignKey(
        ChunkedUpload,
        on_delete=models.CASCADE,
        related_name="chunks",
        help_text="Upload this chunk belongs to",
    )
    index = models.PositiveIntegerField(
        help_text="Zero-based chunk index",
    )
    size = models.BigIntegerField(
        help_text="Bytes actually received",
    )
    checksum = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Client-supplied checksum, stored as given",
    )
    stored_path = models.CharField(
        max_length=1024,
        help_text="Chunk file inside the session directory",
    )
    received_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the chunk was stored",
    )

    class Meta:
        ordering = ["upload", "index"]
        constraints = [
            models.UniqueConstraint(
                fields=["upload", "index"],
                name="unique_upload_chunk_index",
            ),
        ]

    def __str__(self) -> str:
        return f"UploadChunk({self.upload_id}, #{self.index})"
