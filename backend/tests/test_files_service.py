"""Tests for FileArchiveService uploads under concurrent requests."""
import asyncio

import pytest
import pytest_asyncio

from archive.blobstore import BlobStore
from archive.exceptions import FileExists, MissingUpload
from archive.files.service import FileArchiveService


class _SlowUpload:
    """Just enough of UploadFile: ``read`` yields to the event loop every call."""

    def __init__(self, filename, payload: bytes, content_type: str = "text/plain") -> None:
        self.filename = filename
        self.content_type = content_type
        self._payload = payload
        self._offset = 0

    async def read(self, size: int = -1) -> bytes:
        await asyncio.sleep(0)
        if size < 0:
            size = len(self._payload) - self._offset
        chunk = self._payload[self._offset:self._offset + size]
        self._offset += len(chunk)
        return chunk


@pytest_asyncio.fixture
async def store(tmp_path):
    blob_store = BlobStore(db_path=str(tmp_path / "service.duckdb"), chunk_size=4)
    await blob_store.open()
    yield blob_store
    await blob_store.close()


class TestConcurrentUploads:
    """Two requests uploading the same name at once."""

    @pytest.mark.asyncio
    async def test_reject_keeps_one_copy(self, store):
        service = FileArchiveService(store, on_collision="reject")

        results = await asyncio.gather(
            service.upload(_SlowUpload("a.txt", b"first upload")),
            service.upload(_SlowUpload("a.txt", b"second upload")),
            return_exceptions=True,
        )

        names = [record.filename for record in await store.list()]
        assert names.count("a.txt") == 1
        assert sum(isinstance(result, FileExists) for result in results) == 1

    @pytest.mark.asyncio
    async def test_rename_gives_each_upload_its_own_name(self, store):
        service = FileArchiveService(store, on_collision="rename")

        records = await asyncio.gather(
            service.upload(_SlowUpload("a.txt", b"first upload")),
            service.upload(_SlowUpload("a.txt", b"second upload")),
        )

        assert sorted(record.filename for record in records) == ["a (1).txt", "a.txt"]
        assert sorted(record.filename for record in await store.list()) == ["a (1).txt", "a.txt"]

    @pytest.mark.asyncio
    async def test_allow_keeps_both(self, store):
        service = FileArchiveService(store, on_collision="allow")

        await asyncio.gather(
            service.upload(_SlowUpload("a.txt", b"first upload")),
            service.upload(_SlowUpload("a.txt", b"second upload")),
        )

        assert [record.filename for record in await store.list()] == ["a.txt", "a.txt"]


class TestUploadValidation:

    @pytest.mark.asyncio
    async def test_missing_filename(self, store):
        with pytest.raises(MissingUpload):
            await FileArchiveService(store).upload(_SlowUpload("", b"data"))

    @pytest.mark.asyncio
    async def test_reject_fails_before_reading_body(self, store):
        service = FileArchiveService(store, on_collision="reject")
        await service.upload(_SlowUpload("a.txt", b"first"))
        late = _SlowUpload("a.txt", b"second")

        with pytest.raises(FileExists):
            await service.upload(late)

        assert late._offset == 0
