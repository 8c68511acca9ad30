# Generated manually for the upload ledgers and Asset

import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="StreamUpload",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        db_index=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "tus_id",
                    models.CharField(
                        db_index=True,
                        help_text="Opaque upload identifier exposed to clients",
                        max_length=64,
                        unique=True,
                    ),
                ),
                ("upload_length", models.BigIntegerField(help_text="Declared total length in bytes")),
                (
                    "upload_offset",
                    models.BigIntegerField(
                        default=0, help_text="Number of bytes durably appended so far"
                    ),
                ),
                (
                    "metadata",
                    models.TextField(blank=True, default="", help_text="Raw Upload-Metadata header"),
                ),
                (
                    "metadata_fields",
                    models.JSONField(
                        blank=True, default=dict, help_text="Decoded Upload-Metadata key/value pairs"
                    ),
                ),
                (
                    "filename",
                    models.CharField(
                        blank=True, default="", help_text="Sanitized original filename", max_length=255
                    ),
                ),
                (
                    "filetype",
                    models.CharField(
                        blank=True, default="", help_text="MIME type declared by the client", max_length=255
                    ),
                ),
                (
                    "temp_path",
                    models.CharField(help_text="Temp file receiving appended bytes", max_length=1024),
                ),
                (
                    "final_path",
                    models.CharField(
                        blank=True, default="", help_text="Final location, set on completion", max_length=1024
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the upload (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who created the upload",
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stream_uploads",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "stream upload",
                "verbose_name_plural": "stream uploads",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "updated_at"], name="idx_stream_upload_status_upd"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("upload_offset__gte", 0))
                        & models.Q(("upload_offset__lte", models.F("upload_length"))),
                        name="stream_upload_offset_within_length",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ChunkedUpload",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        db_index=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("filename", models.CharField(help_text="Sanitized original filename", max_length=255)),
                (
                    "content_type",
                    models.CharField(
                        blank=True, default="", help_text="MIME type declared by the client", max_length=255
                    ),
                ),
                ("total_size", models.BigIntegerField(help_text="Declared total size in bytes")),
                (
                    "chunk_size",
                    models.BigIntegerField(help_text="Size of each chunk in bytes (the last may be shorter)"),
                ),
                (
                    "total_chunks",
                    models.PositiveIntegerField(
                        editable=False, help_text="Number of chunks, computed once at creation"
                    ),
                ),
                (
                    "final_path",
                    models.CharField(
                        blank=True, default="", help_text="Final location, set on completion", max_length=1024
                    ),
                ),
                (
                    "failure_reason",
                    models.CharField(blank=True, default="", help_text="Why the upload failed", max_length=255),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("in_progress", "In Progress"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the upload (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who created the upload",
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chunked_uploads",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "chunked upload",
                "verbose_name_plural": "chunked uploads",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "updated_at"], name="idx_chunked_upload_status_upd"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_size__gt", 0)) & models.Q(("chunk_size__gt", 0)),
                        name="chunked_upload_sizes_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UploadChunk",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        db_index=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                ("index", models.PositiveIntegerField(help_text="Zero-based chunk index")),
                ("size", models.BigIntegerField(help_text="Bytes actually received")),
                (
                    "checksum",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Client-supplied checksum, stored as given",
                        max_length=255,
                    ),
                ),
                (
                    "stored_path",
                    models.CharField(help_text="Chunk file inside the session directory", max_length=1024),
                ),
                (
                    "received_at",
                    models.DateTimeField(auto_now_add=True, help_text="When the chunk was stored"),
                ),
                (
                    "upload",
                    models.ForeignKey(
                        help_text="Upload this chunk belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chunks",
                        to="uploads.chunkedupload",
                    ),
                ),
            ],
            options={
                "ordering": ["upload", "index"],
                "constraints": [
                    models.UniqueConstraint(fields=("upload", "index"), name="unique_upload_chunk_index"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Asset",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        db_index=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        editable=False,
                        help_text="Same id as the upload that produced this asset",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "asset_type",
                    models.CharField(
                        choices=[
                            ("image", "Image"),
                            ("video", "Video"),
                            ("audio", "Audio"),
                            ("document", "Document"),
                            ("other", "Other"),
                        ],
                        db_index=True,
                        help_text="Content category",
                        max_length=20,
                    ),
                ),
                ("original_filename", models.CharField(help_text="Sanitized client filename", max_length=255)),
                (
                    "stored_name",
                    models.CharField(db_index=True, help_text="Basename of the stored file", max_length=320),
                ),
                (
                    "original_path",
                    models.CharField(help_text="Location of the file in the library", max_length=1024),
                ),
                (
                    "content_type",
                    models.CharField(
                        blank=True, default="", help_text="MIME type declared by the client", max_length=255
                    ),
                ),
                ("file_size", models.BigIntegerField(help_text="Size in bytes")),
                (
                    "checksum",
                    models.CharField(db_index=True, help_text="Hex SHA-1 of the file content", max_length=40),
                ),
                (
                    "device_asset_id",
                    models.CharField(
                        blank=True, default="", help_text="Client-side asset identifier", max_length=255
                    ),
                ),
                (
                    "device_id",
                    models.CharField(
                        blank=True, default="", help_text="Identifier of the uploading device", max_length=255
                    ),
                ),
                (
                    "file_created_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now, help_text="Creation time reported by the client"
                    ),
                ),
                (
                    "file_modified_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="Modification time reported by the client",
                    ),
                ),
                ("is_favorite", models.BooleanField(default=False)),
                (
                    "duration",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Playback duration as reported by the client",
                        max_length=32,
                    ),
                ),
                (
                    "visibility",
                    models.CharField(
                        choices=[
                            ("timeline", "Timeline"),
                            ("archive", "Archive"),
                            ("hidden", "Hidden"),
                            ("locked", "Locked"),
                        ],
                        default="timeline",
                        max_length=20,
                    ),
                ),
                (
                    "derivatives_pending",
                    models.PositiveSmallIntegerField(
                        default=1,
                        help_text="Number of derivatives expected (thumbnail, playback video)",
                    ),
                ),
                (
                    "derivatives_completed",
                    models.PositiveSmallIntegerField(default=0, help_text="Number of derivatives reported done"),
                ),
                (
                    "source",
                    models.CharField(
                        choices=[("stream", "Stream"), ("chunked", "Chunked")],
                        help_text="Upload protocol that produced this asset",
                        max_length=20,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="User who owns this asset",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["owner", "asset_type"], name="idx_asset_owner_type"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("owner", "stored_name"), name="unique_asset_stored_name_per_owner"
                    ),
                ],
            },
        ),
    ]
