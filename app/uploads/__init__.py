"""
Uploads app: the resumable upload engine.

This app provides:
- Stream-mode uploads (tus 1.0 core, creation, termination, metadata)
- Chunk-mode uploads (indexed, idempotent chunks committed into one file)
- Finalization into the durable library plus downstream task hand-off
- Byte-range reads of finalized files
"""
