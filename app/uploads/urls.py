"""
URL configuration for uploads app.

Uploads - Stream (tus 1.0):
    OPTIONS /files                          - Server capabilities
    POST    /files                          - Create upload
    HEAD    /files/{tus_id}                 - Current offset
    PATCH   /files/{tus_id}                 - Append bytes
    DELETE  /files/{tus_id}                 - Terminate

Uploads - Chunked:
    POST    /uploads                        - Create upload
    PUT     /uploads/{id}/chunks/{index}    - Store chunk
    GET     /uploads/{id}/status            - Received / missing chunks
    POST    /uploads/{id}/commit            - Assemble and finalize
    DELETE  /uploads/{id}                   - Cancel

Uploads - Files:
    GET     /uploads/{stored_name}          - Full or ranged read

No trailing slashes: tus clients follow the Location header verbatim.
The UUID routes are listed before the stored_name route.
"""

from django.urls import path

from uploads.views import (
    AssetRangeView,
    ChunkedUploadChunkView,
    ChunkedUploadCommitView,
    ChunkedUploadCreateView,
    ChunkedUploadDetailView,
    ChunkedUploadStatusView,
    TusCollectionView,
    TusUploadView,
)

app_name = "uploads"

urlpatterns = [
    # Stream mode
    path("files", TusCollectionView.as_view(), name="tus-collection"),
    path("files/<str:tus_id>", TusUploadView.as_view(), name="tus-upload"),
    # Chunk mode
    path("uploads", ChunkedUploadCreateView.as_view(), name="chunked-create"),
    path(
        "uploads/<uuid:upload_id>",
        ChunkedUploadDetailView.as_view(),
        name="chunked-detail",
    ),
    path(
        "uploads/<uuid:upload_id>/chunks/<int:index>",
        ChunkedUploadChunkView.as_view(),
        name="chunked-chunk",
    ),
    path(
        "uploads/<uuid:upload_id>/status",
        ChunkedUploadStatusView.as_view(),
        name="chunked-status",
    ),
    path(
        "uploads/<uuid:upload_id>/commit",
        ChunkedUploadCommitView.as_view(),
        name="chunked-commit",
    ),
    # Range reads
    path("uploads/<str:stored_name>", AssetRangeView.as_view(), name="asset-range"),
]
