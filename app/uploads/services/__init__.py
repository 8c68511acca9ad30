"""
Upload services.

Modules:
    storage: Path layout and file helpers
    chunk_store: ChunkStore (chunk session directories)
    stream_writer: StreamWriter (stream temp files)
    stream_upload: StreamUploadService (tus coordinator)
    chunked_upload: ChunkedUploadService (chunk coordinator)
    finalizer: UploadFinalizer
    range_reader: RangeReader
    owner: resolve_owner
    task_queue: CeleryTaskQueue
"""
