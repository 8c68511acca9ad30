"""
API views for resumable uploads and ranged file reads.

Provides:
- TusCollectionView: tus discovery (OPTIONS) and creation (POST)
- TusUploadView: tus offset query (HEAD), append (PATCH), termination (DELETE)
- ChunkedUploadCreateView: Start a chunked upload
- ChunkedUploadDetailView: Cancel a chunked upload
- ChunkedUploadChunkView: Store one chunk
- ChunkedUploadStatusView: Received / missing chunk indices
- ChunkedUploadCommitView: Assemble and finalize
- AssetRangeView: Full or byte-range read of a finalized file

Domain errors are raised by the services and rendered by
core.exceptions.api_exception_handler; views never build error bodies.
"""

from __future__ import annotations

import io
import mimetypes
from urllib.parse import quote

from django.conf import settings
from django.http import StreamingHttpResponse
from django.urls import reverse
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.exceptions import UnsupportedMediaType
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import NotFoundError
from uploads.exceptions import InvalidArgument, UnsupportedTusVersion
from uploads.models import Asset
from uploads.serializers import (
    ChunkedUploadCreatedSerializer,
    ChunkedUploadInitSerializer,
    ChunkedUploadStatusSerializer,
)
from uploads.services.chunked_upload import ChunkedUploadService
from uploads.services.range_reader import RangeReader
from uploads.services.stream_upload import StreamUploadService

TUS_EXTENSIONS = "creation,termination,metadata"
TUS_PATCH_CONTENT_TYPE = "application/offset+octet-stream"


def _request_body(request):
    """Raw request body as a file-like object; empty when there is none."""
    return request.stream or io.BytesIO(b"")


def _int_header(request, name: str, required: bool = True) -> int | None:
    raw = request.headers.get(name)
    if raw is None or raw == "":
        if required:
            raise InvalidArgument(f"Missing {name} header")
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidArgument(f"Invalid {name} header") from exc
    if value < 0:
        raise InvalidArgument(f"Invalid {name} header")
    return value


# =============================================================================
# Stream mode (tus 1.0)
# =============================================================================


class TusProtocolMixin:
    """
    tus protocol framing shared by the stream-mode views.

    Every response carries Tus-Resumable. Requests other than OPTIONS must
    send the supported Tus-Resumable version or get 412.
    """

    permission_classes = [IsAuthenticated]

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        if request.method == "OPTIONS":
            return
        version = settings.UPLOADS_TUS_VERSION
        if request.headers.get("Tus-Resumable") != version:
            raise UnsupportedTusVersion(
                "Unsupported Tus-Resumable version",
                headers={"Tus-Version": version},
            )

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        response["Tus-Resumable"] = settings.UPLOADS_TUS_VERSION
        return response

    def options(self, request, *args, **kwargs):
        response = Response(status=status.HTTP_204_NO_CONTENT)
        response["Tus-Version"] = settings.UPLOADS_TUS_VERSION
        response["Tus-Extension"] = TUS_EXTENSIONS
        if settings.UPLOADS_TUS_MAX_SIZE:
            response["Tus-Max-Size"] = str(settings.UPLOADS_TUS_MAX_SIZE)
        return response


class TusCollectionView(TusProtocolMixin, APIView):
    """
    tus creation endpoint.

    OPTIONS /api/v1/files
        Server capabilities.

    POST /api/v1/files
        Create an upload. Headers: Upload-Length (required), Upload-Metadata.

    Response:
        201 Created: Location of the new upload, Upload-Offset: 0
        400 Bad Request: Missing or invalid Upload-Length / Upload-Metadata
        412 Precondition Failed: Unsupported Tus-Resumable
        413 Payload Too Large: Upload-Length above Tus-Max-Size
    """

    @extend_schema(
        operation_id="create_stream_upload",
        summary="Create stream upload",
        parameters=[
            OpenApiParameter("Tus-Resumable", str, OpenApiParameter.HEADER, required=True),
            OpenApiParameter("Upload-Length", int, OpenApiParameter.HEADER, required=True),
            OpenApiParameter("Upload-Metadata", str, OpenApiParameter.HEADER),
        ],
        request=None,
        responses={
            201: OpenApiResponse(description="Upload created; see Location header"),
            400: OpenApiResponse(description="Invalid Upload-Length or Upload-Metadata"),
            412: OpenApiResponse(description="Unsupported Tus-Resumable version"),
            413: OpenApiResponse(description="Upload-Length exceeds Tus-Max-Size"),
        },
        tags=["Uploads - Stream"],
    )
    def post(self, request):
        upload_length = _int_header(request, "Upload-Length")
        upload = StreamUploadService().create(
            owner=request.user,
            upload_length=upload_length,
            metadata_header=request.headers.get("Upload-Metadata"),
        )

        response = Response(status=status.HTTP_201_CREATED)
        response["Location"] = request.build_absolute_uri(
            reverse("uploads:tus-upload", kwargs={"tus_id": upload.tus_id})
        )
        response["Upload-Offset"] = str(upload.upload_offset)
        return response


class TusUploadView(TusProtocolMixin, APIView):
    """
    A single tus upload.

    HEAD   /api/v1/files/{tus_id}  - Current offset
    PATCH  /api/v1/files/{tus_id}  - Append bytes at Upload-Offset
    DELETE /api/v1/files/{tus_id}  - Terminate

    Lookups are scoped to the authenticated user; a foreign id is 404.
    """

    @extend_schema(
        operation_id="get_stream_upload_offset",
        summary="Get stream upload offset",
        responses={
            204: OpenApiResponse(description="Upload-Offset and Upload-Length headers"),
            404: OpenApiResponse(description="Upload not found"),
        },
        tags=["Uploads - Stream"],
    )
    def head(self, request, tus_id):
        info = StreamUploadService().info(tus_id, owner=request.user)

        response = Response(status=status.HTTP_204_NO_CONTENT)
        response["Upload-Offset"] = str(info.offset)
        response["Upload-Length"] = str(info.length)
        if info.metadata:
            response["Upload-Metadata"] = info.metadata
        response["Cache-Control"] = "no-store"
        return response

    @extend_schema(
        operation_id="append_stream_upload",
        summary="Append to stream upload",
        parameters=[
            OpenApiParameter("Upload-Offset", int, OpenApiParameter.HEADER, required=True),
        ],
        request={TUS_PATCH_CONTENT_TYPE: {"type": "string", "format": "binary"}},
        responses={
            204: OpenApiResponse(description="Bytes appended; new Upload-Offset header"),
            400: OpenApiResponse(description="Invalid Upload-Offset or body past Upload-Length"),
            404: OpenApiResponse(description="Upload not found"),
            409: OpenApiResponse(description="Upload-Offset does not match"),
            410: OpenApiResponse(description="Upload was terminated"),
            415: OpenApiResponse(description="Wrong Content-Type"),
        },
        tags=["Uploads - Stream"],
    )
    def patch(self, request, tus_id):
        content_type = request.content_type.split(";")[0].strip()
        if content_type != TUS_PATCH_CONTENT_TYPE:
            raise UnsupportedMediaType(content_type)

        client_offset = _int_header(request, "Upload-Offset")
        content_length = _int_header(request, "Content-Length", required=False)

        upload = StreamUploadService().append(
            tus_id,
            client_offset=client_offset,
            body=_request_body(request),
            owner=request.user,
            content_length=content_length,
        )

        response = Response(status=status.HTTP_204_NO_CONTENT)
        response["Upload-Offset"] = str(upload.upload_offset)
        return response

    @extend_schema(
        operation_id="terminate_stream_upload",
        summary="Terminate stream upload",
        responses={
            204: OpenApiResponse(description="Upload terminated"),
            404: OpenApiResponse(description="Upload not found"),
        },
        tags=["Uploads - Stream"],
    )
    def delete(self, request, tus_id):
        StreamUploadService().terminate(tus_id, owner=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Chunk mode
# =============================================================================


class ChunkedUploadCreateView(APIView):
    """
    Start a chunked upload.

    POST /api/v1/uploads

    Request:
        {"filename": "clip.mp4", "content_type": "video/mp4",
         "total_size": 1000, "chunk_size": 400}

    Response:
        201 Created: {"upload_id": "...", "total_chunks": 3}
        400 Bad Request: Validation error
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_chunked_upload",
        summary="Create chunked upload",
        request=ChunkedUploadInitSerializer,
        responses={
            201: OpenApiResponse(
                response=ChunkedUploadCreatedSerializer,
                description="Upload created",
            ),
            400: OpenApiResponse(description="Validation error"),
        },
        tags=["Uploads - Chunked"],
    )
    def post(self, request):
        serializer = ChunkedUploadInitSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        upload = ChunkedUploadService().init(owner=request.user, **serializer.validated_data)
        return Response(
            ChunkedUploadCreatedSerializer(upload).data,
            status=status.HTTP_201_CREATED,
        )


class ChunkedUploadDetailView(APIView):
    """
    DELETE /api/v1/uploads/{upload_id}
        Cancel the upload and discard its chunks. Idempotent.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_chunked_upload",
        summary="Cancel chunked upload",
        responses={
            204: OpenApiResponse(description="Upload cancelled"),
            404: OpenApiResponse(description="Upload not found"),
        },
        tags=["Uploads - Chunked"],
    )
    def delete(self, request, upload_id):
        ChunkedUploadService().cancel(upload_id, owner=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ChunkedUploadChunkView(APIView):
    """
    PUT /api/v1/uploads/{upload_id}/chunks/{index}
        Store one chunk. Raw binary body.

    Headers:
        X-Chunk-Size (optional): Expected byte count, 422 on mismatch
        X-Chunk-Checksum (optional): Stored as given

    Re-sending an index that is already stored is accepted and changes nothing.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="put_chunk",
        summary="Upload chunk",
        parameters=[
            OpenApiParameter("X-Chunk-Size", int, OpenApiParameter.HEADER),
            OpenApiParameter("X-Chunk-Checksum", str, OpenApiParameter.HEADER),
        ],
        request={"application/octet-stream": {"type": "string", "format": "binary"}},
        responses={
            202: OpenApiResponse(description="Chunk accepted"),
            400: OpenApiResponse(description="Index out of range"),
            404: OpenApiResponse(description="Upload not found"),
            409: OpenApiResponse(description="Upload is no longer active"),
            422: OpenApiResponse(description="Chunk size does not match X-Chunk-Size"),
        },
        tags=["Uploads - Chunked"],
    )
    def put(self, request, upload_id, index):
        stored = ChunkedUploadService().put_chunk(
            upload_id,
            index,
            _request_body(request),
            owner=request.user,
            declared_size=_int_header(request, "X-Chunk-Size", required=False),
            checksum=request.headers.get("X-Chunk-Checksum"),
        )
        return Response({"index": index, "stored": stored}, status=status.HTTP_202_ACCEPTED)


class ChunkedUploadStatusView(APIView):
    """GET /api/v1/uploads/{upload_id}/status"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_chunked_upload_status",
        summary="Get chunked upload status",
        responses={
            200: OpenApiResponse(response=ChunkedUploadStatusSerializer, description="Upload status"),
            404: OpenApiResponse(description="Upload not found"),
        },
        tags=["Uploads - Chunked"],
    )
    def get(self, request, upload_id):
        upload = ChunkedUploadService().get(upload_id, owner=request.user)
        data = {
            "status": upload.status,
            "missing": upload.missing_indices(),
            "received": sorted(upload.received_indices()),
            "total_chunks": upload.total_chunks,
        }
        return Response(ChunkedUploadStatusSerializer(data).data)


class ChunkedUploadCommitView(APIView):
    """
    POST /api/v1/uploads/{upload_id}/commit
        Assemble every chunk in index order and finalize.

    Response:
        204 No Content: Finalized
        409 Conflict: Missing chunks (details.missing), size mismatch or
            upload no longer active
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="commit_chunked_upload",
        summary="Commit chunked upload",
        request=None,
        responses={
            204: OpenApiResponse(description="Upload finalized"),
            404: OpenApiResponse(description="Upload not found"),
            409: OpenApiResponse(description="Missing chunks, size mismatch or invalid state"),
        },
        tags=["Uploads - Chunked"],
    )
    def post(self, request, upload_id):
        ChunkedUploadService().commit(upload_id, owner=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Range reads
# =============================================================================


class AssetRangeView(APIView):
    """
    GET /api/v1/uploads/{stored_name}
        Stream a finalized file, honouring a single-range Range header.

    Response:
        200 OK: Whole file
        206 Partial Content: Requested range with Content-Range
        404 Not Found: No such asset for this user
        416 Range Not Satisfiable: Content-Range: bytes */{size}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="read_asset",
        summary="Read finalized file",
        parameters=[OpenApiParameter("Range", str, OpenApiParameter.HEADER)],
        responses={
            200: OpenApiResponse(description="Binary file content"),
            206: OpenApiResponse(description="Partial binary content"),
            404: OpenApiResponse(description="File not found"),
            416: OpenApiResponse(description="Range not satisfiable"),
        },
        tags=["Uploads - Files"],
    )
    def get(self, request, stored_name):
        asset = Asset.objects.filter(owner=request.user, stored_name=stored_name).first()
        if asset is None:
            raise NotFoundError("File not found", error_code="ASSET_NOT_FOUND")

        result = RangeReader().read_range(asset.original_path, request.headers.get("Range"))

        content_type = mimetypes.guess_type(stored_name)[0] or "application/octet-stream"
        response = StreamingHttpResponse(result.body, status=result.status, content_type=content_type)
        response["Content-Length"] = str(result.content_length)
        response["Accept-Ranges"] = "bytes"
        if result.content_range:
            response["Content-Range"] = result.content_range
        response["Content-Disposition"] = f'inline; filename="{quote(asset.original_filename, safe="")}"'
        return response
