"""Pydantic schemas for blob store records.

StoredFile is the metadata record describing one blob. It mirrors the
GridFS ``files`` document shape on the wire (``_id``, ``contentType``,
``chunkSize``, ``uploadDate``) so JSON clients see the familiar layout,
while Python code uses snake_case attributes.

The image classification is derived from the declared content type on
every access and is never persisted.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Only these exact content types count as images for display purposes.
IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png"})


class StoreState(str, Enum):
    """Lifecycle of a blob store connection.

    UNINITIALIZED -> CONNECTING -> READY -> CLOSED. Only READY accepts
    operations.
    """
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


def is_image_type(content_type: Optional[str]) -> bool:
    """Return True iff *content_type* is exactly ``image/jpeg`` or ``image/png``.

    Examples:
        >>> is_image_type("image/png")
        True
        >>> is_image_type("image/gif")
        False
        >>> is_image_type(None)
        False
    """
    return content_type in IMAGE_CONTENT_TYPES


class StoredFile(BaseModel):
    """Metadata for one stored blob.

    Instances are immutable: a record is created once on upload commit and
    only ever removed, never updated.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., alias="_id", description="Store-assigned identifier")
    filename: str = Field(..., description="Lookup name (client's original filename)")
    content_type: Optional[str] = Field(None, alias="contentType", description="Declared MIME type")
    length: int = Field(..., ge=0, description="Size in bytes")
    chunk_size: int = Field(..., gt=0, alias="chunkSize", description="Chunk size used on write")
    upload_date: datetime = Field(..., alias="uploadDate", description="Commit timestamp (UTC)")
    md5: Optional[str] = Field(None, description="Hex MD5 digest of the content")
    bucket_name: str = Field(..., alias="bucketName", description="Logical bucket")

    @property
    def is_image(self) -> bool:
        return is_image_type(self.content_type)

    @property
    def num_chunks(self) -> int:
        return -(-self.length // self.chunk_size)

    def to_json(self) -> dict:
        """JSON-safe dict in the wire (camelCase) shape."""
        return self.model_dump(mode="json", by_alias=True)
