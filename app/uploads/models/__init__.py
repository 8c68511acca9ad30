"""
Uploads models package.

Exports:
    StreamUpload: Ledger for single-stream (tus) uploads
    ChunkedUpload: Ledger for chunk-indexed uploads
    UploadChunk: One received chunk of a ChunkedUpload
    Asset: Durable artifact produced by finalization
    UploadStatus, AssetType, AssetVisibility, AssetSource: State enums
"""

from uploads.models.asset import Asset
from uploads.models.chunked_upload import ChunkedUpload, UploadChunk
from uploads.models.states import AssetSource, AssetType, AssetVisibility, UploadStatus
from uploads.models.stream_upload import StreamUpload

__all__ = [
    "Asset",
    "AssetSource",
    "AssetType",
    "AssetVisibility",
    "ChunkedUpload",
    "StreamUpload",
    "UploadChunk",
    "UploadStatus",
]
