"""Chunked blob storage for uploaded files.

Blobs live in a DuckDB database split into fixed-size chunks (GridFS
layout): one metadata row per blob in ``blob_files``, numbered chunks in
``blob_chunks``. Reads are lazy, one chunk at a time.
"""
from .schemas import IMAGE_CONTENT_TYPES, StoredFile, StoreState, is_image_type
from .store import BlobStore
from .stream import ByteStream, pipe

__all__ = [
    "BlobStore",
    "ByteStream",
    "IMAGE_CONTENT_TYPES",
    "StoredFile",
    "StoreState",
    "is_image_type",
    "pipe",
]
