"""Lazy byte streams over stored blobs.

A ByteStream reads one chunk per iteration step, so piping a large blob to
a response never holds more than one chunk in memory. Streams are finite
and cannot be restarted.
"""
import asyncio
import logging
from typing import AsyncIterator, Callable

from archive.exceptions import StorageError

from .schemas import StoredFile

logger = logging.getLogger(__name__)


class ByteStream:
    """Single-pass async iterator of chunk buffers for one StoredFile.

    Args:
        record: The file being read.
        read_chunk: Callable returning chunk ``n`` of the file. Raises
            StorageError when the chunk is missing or the store is gone.
    """

    def __init__(self, record: StoredFile, read_chunk: Callable[[int], bytes]) -> None:
        self.record = record
        self._read_chunk = read_chunk
        self._next_chunk = 0
        self._bytes_read = 0
        self._started = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def bytes_read(self) -> int:
        return self._bytes_read

    def __aiter__(self) -> "ByteStream":
        if self._started:
            raise StorageError(
                f"Stream for '{self.record.filename}' has already been consumed"
            )
        self._started = True
        return self

    async def __anext__(self) -> bytes:
        if self._closed or self._next_chunk >= self.record.num_chunks:
            self._closed = True
            raise StopAsyncIteration

        data = self._read_chunk(self._next_chunk)
        self._next_chunk += 1
        self._bytes_read += len(data)

        if self._next_chunk == self.record.num_chunks and self._bytes_read != self.record.length:
            self._closed = True
            raise StorageError(
                f"File '{self.record.filename}' is truncated: "
                f"read {self._bytes_read} of {self.record.length} bytes"
            )
        return data

    async def aclose(self) -> None:
        self._closed = True

    async def read(self) -> bytes:
        """Drain the whole stream into memory. Meant for small files and tests."""
        parts = [chunk async for chunk in self]
        return b"".join(parts)


async def pipe(stream: ByteStream) -> AsyncIterator[bytes]:
    """Yield buffers from *stream* to a response body, closing it however the consumer stops.

    A consumer that goes away mid-transfer (client disconnect) cancels or
    closes this generator; that is logged and the source stream released.
    """
    try:
        async for chunk in stream:
            yield chunk
    except (asyncio.CancelledError, GeneratorExit):
        logger.info(
            "Stream of '%s' aborted after %d of %d bytes",
            stream.record.filename,
            stream.bytes_read,
            stream.record.length,
        )
        raise
    finally:
        await stream.aclose()
