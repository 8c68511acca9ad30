"""
Serializers for the chunk-mode upload API.

Stream mode speaks tus headers and carries no JSON bodies, so only the
chunk-mode endpoints have serializers.

Provides:
- ChunkedUploadInitSerializer: Validate the init request body
- ChunkedUploadCreatedSerializer: Response for a created upload
- ChunkedUploadStatusSerializer: Progress of an upload
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers


class ChunkedUploadInitSerializer(serializers.Serializer):
    """
    Serializer for initializing a chunked upload.

    total_chunks is derived from total_size and chunk_size by the service.
    """

    filename = serializers.CharField(max_length=255, help_text="Original filename")
    content_type = serializers.CharField(
        max_length=255,
        required=False,
        allow_blank=True,
        default="",
        help_text="MIME type of the file",
    )
    total_size = serializers.IntegerField(min_value=1, help_text="Total file size in bytes")
    chunk_size = serializers.IntegerField(
        min_value=1, help_text="Size of every chunk except possibly the last"
    )

    def validate_content_type(self, value: str) -> str:
        if value and "/" not in value:
            raise serializers.ValidationError("Invalid MIME type format.")
        return value.lower()


class ChunkedUploadCreatedSerializer(serializers.Serializer):
    upload_id = serializers.UUIDField(source="id", read_only=True)
    total_chunks = serializers.IntegerField(read_only=True)


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Upload in progress",
            value={
                "status": "in_progress",
                "missing": [1],
                "received": [0, 2],
                "total_chunks": 3,
            },
            response_only=True,
        ),
    ]
)
class ChunkedUploadStatusSerializer(serializers.Serializer):
    """Status and chunk bookkeeping for a chunked upload."""

    status = serializers.CharField(read_only=True)
    missing = serializers.ListField(child=serializers.IntegerField(), read_only=True)
    received = serializers.ListField(child=serializers.IntegerField(), read_only=True)
    total_chunks = serializers.IntegerField(read_only=True)
