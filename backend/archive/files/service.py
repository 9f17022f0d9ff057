"""File archive service.

Sits between the HTTP routes and the blob store: derives storage metadata
for uploads, applies the filename collision policy, classifies records and
opens streams. Everything goes to the single ``uploads`` bucket.
"""
import logging
from typing import AsyncIterator, List

from starlette.datastructures import UploadFile

from archive.blobstore import BlobStore, ByteStream, StoredFile
from archive.config import UPLOADS_BUCKET
from archive.exceptions import FileExists, FileNotFound, MissingUpload, NotAnImage

from .schemas import FileListing

logger = logging.getLogger(__name__)


async def _read_upload(upload: UploadFile, size: int) -> AsyncIterator[bytes]:
    """Yield the upload's bytes in reads of at most *size*."""
    while True:
        chunk = await upload.read(size)
        if not chunk:
            break
        yield chunk


class FileArchiveService:
    """Upload, list, fetch and delete archived files.

    Args:
        store: An opened BlobStore.
        on_collision: ``allow``, ``reject`` or ``rename``; see UploadSettings.
        bucket: Bucket every file goes to.
    """

    def __init__(self, store: BlobStore, on_collision: str = "allow", bucket: str = UPLOADS_BUCKET) -> None:
        self._store = store
        self._on_collision = on_collision
        self._bucket = bucket

    # -----------------------------------------------------------------------
    # Upload
    # -----------------------------------------------------------------------

    async def upload(self, upload: UploadFile) -> StoredFile:
        """Store one uploaded file under its client filename, or a renamed one.

        Raises:
            MissingUpload: If the part has no filename.
            FileExists: If the name is taken and the policy is ``reject``.
            StorageError: If the store is not ready or the write fails.
        """
        if not upload.filename:
            raise MissingUpload()

        if self._on_collision == "reject" and await self._store.exists(upload.filename, self._bucket):
            # Fail before reading the body; the store checks again at commit.
            logger.info("Upload rejected, %s already exists", upload.filename)
            raise FileExists()

        record = await self._store.put(
            upload.filename,
            _read_upload(upload, self._store.chunk_size),
            bucket=self._bucket,
            content_type=upload.content_type,
            on_collision=self._on_collision,
        )
        logger.info(
            f"File uploaded: {record.filename} ({record.length} bytes, {record.content_type})"
        )
        return record

    # -----------------------------------------------------------------------
    # Listing
    # -----------------------------------------------------------------------

    async def list_for_view(self) -> FileListing:
        """Records for the pages. An empty archive is a valid empty state."""
        return FileListing.from_records(await self._store.list(self._bucket))

    async def list_for_api(self) -> List[StoredFile]:
        """Records for the JSON API.

        Raises:
            FileNotFound: If the archive is empty.
        """
        records = await self._store.list(self._bucket)
        if not records:
            raise FileNotFound("No files exist")
        return records

    # -----------------------------------------------------------------------
    # Retrieval
    # -----------------------------------------------------------------------

    async def get_file(self, filename: str) -> StoredFile:
        return await self._store.find_by_name(filename, self._bucket)

    async def open_image(self, filename: str) -> ByteStream:
        """Stream an image file.

        Raises:
            FileNotFound: If no file has that name.
            NotAnImage: If the file is not a JPEG or PNG.
        """
        record = await self.get_file(filename)
        if not record.is_image:
            raise NotAnImage()
        return await self._store.open_read_stream(record.filename, self._bucket)

    async def open_file(self, filename: str) -> ByteStream:
        return await self._store.open_read_stream(filename, self._bucket)

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def delete(self, file_id: str) -> None:
        await self._store.delete(file_id, self._bucket)
