"""Django admin configuration for uploads app."""

from django.contrib import admin

from uploads.models import Asset, ChunkedUpload, StreamUpload, UploadChunk


@admin.register(StreamUpload)
class StreamUploadAdmin(admin.ModelAdmin):
    """Admin configuration for StreamUpload model."""

    list_display = [
        "tus_id",
        "filename",
        "owner",
        "upload_offset",
        "upload_length",
        "status",
        "updated_at",
    ]
    list_filter = ["status"]
    search_fields = ["tus_id", "filename", "owner__email"]
    # Progress and status only change through the upload services
    readonly_fields = [
        "id",
        "tus_id",
        "upload_length",
        "upload_offset",
        "status",
        "temp_path",
        "final_path",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["owner"]
    ordering = ["-created_at"]


class UploadChunkInline(admin.TabularInline):
    model = UploadChunk
    extra = 0
    can_delete = False
    readonly_fields = ["index", "size", "checksum", "received_at"]
    fields = readonly_fields


@admin.register(ChunkedUpload)
class ChunkedUploadAdmin(admin.ModelAdmin):
    """Admin configuration for ChunkedUpload model."""

    list_display = [
        "id",
        "filename",
        "owner",
        "total_size",
        "total_chunks",
        "status",
        "updated_at",
    ]
    list_filter = ["status"]
    search_fields = ["filename", "owner__email"]
    readonly_fields = [
        "id",
        "total_chunks",
        "status",
        "failure_reason",
        "final_path",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["owner"]
    inlines = [UploadChunkInline]
    ordering = ["-created_at"]


@admin.register(Asset)
class AssetAdmin(admin.ModelAdmin):
    """Admin configuration for Asset model."""

    list_display = [
        "id",
        "original_filename",
        "asset_type",
        "file_size",
        "owner",
        "visibility",
        "source",
        "created_at",
    ]
    list_filter = ["asset_type", "visibility", "source", "is_favorite"]
    search_fields = ["original_filename", "stored_name", "checksum", "owner__email"]
    readonly_fields = ["id", "checksum", "file_size", "original_path", "created_at", "updated_at"]
    raw_id_fields = ["owner"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
