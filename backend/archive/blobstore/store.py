"""DuckDB-backed chunked blob store.

Blobs are split into fixed-size chunks the same way GridFS does it: a
``blob_files`` table holds one metadata row per blob and ``blob_chunks``
holds the numbered chunks. Chunks are written as the upload arrives and the
metadata row is written last, so a reader can never see a half-written
blob.

Database Schema:
    blob_files:
        - id: Store-assigned identifier (hex UUID)
        - seq: Insertion order, used for listings and name lookups
        - bucket: Logical namespace ("uploads")
        - filename, content_type, length, chunk_size, upload_date, md5
    blob_chunks:
        - files_id: Owning blob
        - n: Zero-based chunk number
        - data: Chunk bytes

Lifecycle:
    The store starts UNINITIALIZED. ``open()`` moves it through CONNECTING
    to READY exactly once; ``close()`` moves it to CLOSED. Any operation
    outside READY raises StoreNotReady instead of blocking.

Usage:
    store = BlobStore(db_path="archive.duckdb")
    await store.open()
    record = await store.put("cat.png", chunks, content_type="image/png")
    stream = await store.open_read_stream("cat.png")
"""
import asyncio
import hashlib
import logging
import os
import uuid
from datetime import datetime, timezone
from functools import partial
from itertools import count
from typing import AsyncIterable, List, Optional

import duckdb

from archive.config import DEFAULT_CHUNK_SIZE, UPLOADS_BUCKET
from archive.exceptions import ArchiveError, FileExists, FileNotFound, StorageError, StoreNotReady

from .schemas import StoredFile, StoreState
from .stream import ByteStream

logger = logging.getLogger(__name__)

_FILE_COLUMNS = "id, filename, content_type, length, chunk_size, upload_date, md5, bucket"

COLLISION_POLICIES = ("allow", "reject", "rename")


def _row_to_file(row: tuple) -> StoredFile:
    return StoredFile(
        id=row[0],
        filename=row[1],
        content_type=row[2],
        length=row[3],
        chunk_size=row[4],
        upload_date=row[5],
        md5=row[6],
        bucket_name=row[7],
    )


class BlobStore:
    """Chunked binary storage keyed by filename and store-assigned id.

    Args:
        db_path: Path to the DuckDB file (``":memory:"`` for a scratch store).
        chunk_size: Size in bytes of every chunk but the last.
    """

    def __init__(self, db_path: str = "archive.duckdb", chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._db_path = db_path
        self._chunk_size = chunk_size
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._state = StoreState.UNINITIALIZED

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is StoreState.READY

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    async def open(self) -> None:
        """Connect and create the schema. Valid only from UNINITIALIZED.

        Raises:
            StorageError: If the store was already opened or the connection fails.
        """
        if self._state is not StoreState.UNINITIALIZED:
            raise StorageError(f"Blob store cannot be opened while {self._state.value}")

        self._state = StoreState.CONNECTING
        logger.info("Opening blob store at %s", self._db_path)
        try:
            self._connection = await asyncio.to_thread(duckdb.connect, self._db_path)
            self._initialize_db()
        except duckdb.Error as e:
            self._state = StoreState.CLOSED
            logger.error(f"Blob store failed to open: {e}")
            raise StorageError(f"Blob store connection failed: {e}") from e

        self._state = StoreState.READY
        logger.info("Blob store ready (chunk_size=%d)", self._chunk_size)

    async def close(self) -> None:
        """Close the connection. Later operations raise StoreNotReady."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._state is not StoreState.CLOSED:
            self._state = StoreState.CLOSED
            logger.info("Blob store closed")

    def _require_ready(self) -> duckdb.DuckDBPyConnection:
        if self._state is not StoreState.READY or self._connection is None:
            raise StoreNotReady(f"Blob store not ready ({self._state.value})")
        return self._connection

    def _initialize_db(self) -> None:
        """Create tables and sequence. Safe to call on an existing database."""
        conn = self._connection
        conn.execute("CREATE SEQUENCE IF NOT EXISTS blob_files_seq START 1")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS blob_files (
                id VARCHAR PRIMARY KEY,
                seq BIGINT DEFAULT nextval('blob_files_seq'),
                bucket VARCHAR NOT NULL,
                filename VARCHAR NOT NULL,
                content_type VARCHAR,
                length BIGINT NOT NULL,
                chunk_size INTEGER NOT NULL,
                upload_date TIMESTAMP NOT NULL,
                md5 VARCHAR
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS blob_chunks (
                files_id VARCHAR NOT NULL,
                n INTEGER NOT NULL,
                data BLOB NOT NULL,
                PRIMARY KEY (files_id, n)
            )
        """)

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def put(
        self,
        name: str,
        source: AsyncIterable[bytes],
        bucket: str = UPLOADS_BUCKET,
        content_type: Optional[str] = None,
        on_collision: str = "allow",
    ) -> StoredFile:
        """Ingest *source* as a new blob named *name*.

        Buffers from *source* are regrouped into ``chunk_size`` chunks and
        written as soon as each chunk fills, so memory use is bounded by
        one chunk regardless of the payload size.

        The name is claimed when the metadata row is written, in the same
        transaction, so concurrent uploads of one name cannot both get it.

        Args:
            name: Filename the blob is stored and looked up under.
            source: Async iterable of byte buffers (any sizes).
            bucket: Logical bucket.
            content_type: Declared MIME type, stored as-is.
            on_collision: What to do when *name* is taken in *bucket*:
                ``allow`` stores it anyway, ``reject`` raises FileExists,
                ``rename`` stores it as ``name (n).ext``.

        Returns:
            The committed StoredFile, carrying the final filename.

        Raises:
            StoreNotReady: If the store is not READY.
            FileExists: If *name* is taken and *on_collision* is ``reject``.
            StorageError: If *source* fails or a write fails. Chunks written
                so far are removed.
        """
        if on_collision not in COLLISION_POLICIES:
            raise ValueError(f"Unknown collision policy: {on_collision}")
        self._require_ready()

        file_id = uuid.uuid4().hex
        digest = hashlib.md5()
        buffer = bytearray()
        length = 0
        n = 0

        try:
            async for piece in source:
                if not piece:
                    continue
                digest.update(piece)
                length += len(piece)
                buffer.extend(piece)
                while len(buffer) >= self._chunk_size:
                    self._write_chunk(file_id, n, bytes(buffer[:self._chunk_size]))
                    del buffer[:self._chunk_size]
                    n += 1
            if buffer:
                self._write_chunk(file_id, n, bytes(buffer))
                n += 1

            # No await from here on: the name check and the insert run as one step.
            record = self._commit_file(
                StoredFile(
                    id=file_id,
                    filename=name,
                    content_type=content_type,
                    length=length,
                    chunk_size=self._chunk_size,
                    upload_date=datetime.now(timezone.utc).replace(tzinfo=None),
                    md5=digest.hexdigest(),
                    bucket_name=bucket,
                ),
                on_collision,
            )
        except asyncio.CancelledError:
            self._discard_chunks(file_id)
            raise
        except ArchiveError:
            self._discard_chunks(file_id)
            raise
        except Exception as e:
            self._discard_chunks(file_id)
            raise StorageError(f"Upload of '{name}' failed: {e}") from e

        logger.info(f"Stored {record.filename} ({length} bytes, {n} chunks) in bucket {bucket}")
        return record

    def _write_chunk(self, file_id: str, n: int, data: bytes) -> None:
        conn = self._require_ready()
        try:
            conn.execute(
                "INSERT INTO blob_chunks (files_id, n, data) VALUES (?, ?, ?)",
                [file_id, n, data],
            )
        except duckdb.Error as e:
            raise StorageError(f"Failed to write chunk {n} of {file_id}: {e}") from e

    def _commit_file(self, record: StoredFile, on_collision: str) -> StoredFile:
        """Claim a filename under *on_collision* and write the metadata row."""
        conn = self._require_ready()
        try:
            conn.begin()
            try:
                filename = self._claim_name(conn, record.filename, record.bucket_name, on_collision)
                if filename != record.filename:
                    logger.info("Upload %s renamed to %s", record.filename, filename)
                    record = record.model_copy(update={"filename": filename})
                self._insert_file(conn, record)
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        except duckdb.Error as e:
            raise StorageError(f"Failed to commit {record.filename}: {e}") from e
        return record

    def _claim_name(self, conn: duckdb.DuckDBPyConnection, name: str, bucket: str, on_collision: str) -> str:
        if on_collision == "allow" or not self._name_taken(conn, name, bucket):
            return name

        if on_collision == "reject":
            logger.info("Upload rejected, %s already exists", name)
            raise FileExists()

        stem, ext = os.path.splitext(name)
        for i in count(1):
            candidate = f"{stem} ({i}){ext}"
            if not self._name_taken(conn, candidate, bucket):
                return candidate

    @staticmethod
    def _name_taken(conn: duckdb.DuckDBPyConnection, name: str, bucket: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM blob_files WHERE bucket = ? AND filename = ? LIMIT 1",
            [bucket, name],
        ).fetchone()
        return row is not None

    @staticmethod
    def _insert_file(conn: duckdb.DuckDBPyConnection, record: StoredFile) -> None:
        conn.execute(
            """
            INSERT INTO blob_files
            (id, bucket, filename, content_type, length, chunk_size, upload_date, md5)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                record.id,
                record.bucket_name,
                record.filename,
                record.content_type,
                record.length,
                record.chunk_size,
                record.upload_date,
                record.md5,
            ],
        )

    def _discard_chunks(self, file_id: str) -> None:
        """Best-effort removal of chunks left by a failed upload."""
        if self._connection is None:
            return
        try:
            self._connection.execute("DELETE FROM blob_chunks WHERE files_id = ?", [file_id])
        except duckdb.Error as e:
            logger.warning("Could not discard chunks of failed upload %s: %s", file_id, e)

    async def delete(self, file_id: str, bucket: str = UPLOADS_BUCKET) -> None:
        """Remove a blob by its store-assigned id.

        The chunks and the metadata row go in one transaction; on failure
        neither is removed.

        Raises:
            StoreNotReady: If the store is not READY.
            StorageError: If no blob with that id exists in *bucket*, or the
                delete fails.
        """
        conn = self._require_ready()
        try:
            found = conn.execute(
                "SELECT id FROM blob_files WHERE id = ? AND bucket = ?",
                [file_id, bucket],
            ).fetchone()
            if not found:
                raise StorageError(f"No file found with id {file_id} in bucket {bucket}")
            conn.begin()
            try:
                conn.execute("DELETE FROM blob_chunks WHERE files_id = ?", [file_id])
                conn.execute("DELETE FROM blob_files WHERE id = ?", [file_id])
                conn.commit()
            except duckdb.Error:
                conn.rollback()
                raise
        except duckdb.Error as e:
            raise StorageError(f"Failed to delete {file_id}: {e}") from e

        logger.info(f"Deleted file {file_id} from bucket {bucket}")

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def list(self, bucket: str = UPLOADS_BUCKET) -> List[StoredFile]:
        """All blobs in *bucket*, in insertion order. Empty list when there are none."""
        conn = self._require_ready()
        rows = conn.execute(
            f"SELECT {_FILE_COLUMNS} FROM blob_files WHERE bucket = ? ORDER BY seq",
            [bucket],
        ).fetchall()
        return [_row_to_file(row) for row in rows]

    async def find_by_name(self, name: str, bucket: str = UPLOADS_BUCKET) -> StoredFile:
        """Exact-match lookup. With duplicate names the earliest upload wins.

        Raises:
            FileNotFound: If no blob has that name.
        """
        conn = self._require_ready()
        row = conn.execute(
            f"""
            SELECT {_FILE_COLUMNS} FROM blob_files
            WHERE bucket = ? AND filename = ?
            ORDER BY seq
            LIMIT 1
            """,
            [bucket, name],
        ).fetchone()
        if not row:
            raise FileNotFound()
        return _row_to_file(row)

    async def exists(self, name: str, bucket: str = UPLOADS_BUCKET) -> bool:
        conn = self._require_ready()
        return self._name_taken(conn, name, bucket)

    async def open_read_stream(self, name: str, bucket: str = UPLOADS_BUCKET) -> ByteStream:
        """Open a lazy chunk-by-chunk stream over the blob named *name*.

        Raises:
            FileNotFound: If no blob has that name.
        """
        record = await self.find_by_name(name, bucket)
        return ByteStream(record, partial(self._read_chunk, record.id))

    def _read_chunk(self, file_id: str, n: int) -> bytes:
        conn = self._require_ready()
        row = conn.execute(
            "SELECT data FROM blob_chunks WHERE files_id = ? AND n = ?",
            [file_id, n],
        ).fetchone()
        if row is None:
            raise StorageError(f"Chunk {n} of file {file_id} is missing")
        return bytes(row[0])
