"""Segmented blob store.

Blobs are split into fixed-size segments keyed by (blob_id, seq) and
persisted one upsert at a time. A write is not atomic across segments:
a crash, or two concurrent writers of the same blob, can leave a mix of
old and new segments. Rewriting the blob repairs it, since each upsert
is idempotent and the trailing delete drops any stale tail.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from segblob.config import StoreConfig, ensure_directories, load_config
from segblob.errors import BlobNotFoundError
from segblob.logging_config import StructuredLogger, configure_logging
from segblob.models import Segment, SortOrder
from segblob.reader import BlobReader
from segblob.storage import Database, SegmentCollection
from segblob.streams import ChunkSource

logger = StructuredLogger(__name__)

DEFAULT_CHUNK_SIZE = 2 * 1024 * 1024  # 2 MiB


def _check_blob_id(blob_id: Any) -> None:
    if not isinstance(blob_id, str):
        raise TypeError(f"blob_id must be str, not {type(blob_id).__name__}")


class BlobStore:
    """Stores blobs as ordered segments in a document collection.

    Concurrency Model:
    - Safe to share between tasks; the collection handle is read-only state
    - ensure_index() runs the index creation at most once at a time and
      stops once it has succeeded
    - Each open reader owns one background task (see BlobReader)
    - Writers of the same blob_id are not serialized
    """

    def __init__(
        self,
        collection: SegmentCollection,
        chunk_size: int | None = None,
        read_buffer_segments: int = 1,
    ):
        self.collection = collection
        self._chunk_size = chunk_size
        self.read_buffer_segments = read_buffer_segments

        self._index_lock = asyncio.Lock()
        self._index_ready = False

    @property
    def chunk_size(self) -> int:
        """Effective segment size; falls back to DEFAULT_CHUNK_SIZE."""
        if self._chunk_size is None or self._chunk_size <= 0:
            return DEFAULT_CHUNK_SIZE
        return self._chunk_size

    async def ensure_index(self) -> None:
        """Ensure the unique (blob_id, seq) index exists.

        Can be called any number of times. Creation attempts never overlap;
        once one succeeds, later calls return immediately. A failure
        propagates to its caller and leaves the next call to try again.
        """
        if self._index_ready:
            return
        async with self._index_lock:
            if self._index_ready:
                return
            start_time = time.time()
            await self.collection.ensure_unique_index()
            self._index_ready = True
            logger.info(
                "Ensured unique segment index",
                operation="segblob.ensure_index",
                duration_ms=int((time.time() - start_time) * 1000),
            )

    async def write(self, blob_id: str, stream: Any = None) -> int:
        """Write blob data, replacing any previous content.

        Args:
            blob_id: Blob identity
            stream: Input data; None writes an empty blob. See ChunkSource
                for accepted types.

        Returns:
            Number of segments written
        """
        _check_blob_id(blob_id)
        source = ChunkSource(stream)
        chunk_size = self.chunk_size
        start_time = time.time()

        seq = 0
        start = 0
        while True:
            data = await source.read_chunk(chunk_size)
            # An empty input still gets one zero-length segment
            if not data and seq > 0:
                break
            segment = Segment(blob_id=blob_id, seq=seq, data=data, start=start, n=len(data))
            await self.collection.upsert(segment)
            start += segment.n
            seq += 1
            if len(data) < chunk_size:
                break

        truncated = await self.collection.delete_from(blob_id, seq)

        logger.debug(
            "Wrote blob",
            blob_id=blob_id,
            operation="segblob.write",
            duration_ms=int((time.time() - start_time) * 1000),
            segments=seq,
            size=start,
            truncated_segments=truncated,
        )
        return seq

    async def read(self, blob_id: str) -> BlobReader:
        """Open a blob for streaming.

        The caller must close the returned reader, otherwise its worker
        task stays blocked and the store cursor is never released.

        Raises:
            BlobNotFoundError: No segments exist for blob_id
        """
        _check_blob_id(blob_id)
        cursor = await self.collection.find(blob_id, SortOrder.ASCENDING)
        try:
            first = await cursor.next()
        except BaseException:
            await cursor.close()
            raise
        if first is None:
            await cursor.close()
            raise BlobNotFoundError(blob_id, operation="read")

        logger.debug("Opened blob for reading", blob_id=blob_id, operation="segblob.read")
        return BlobReader(blob_id, cursor, first, buffer_segments=self.read_buffer_segments)

    async def size(self, blob_id: str) -> int:
        """Return the blob length in bytes from its last segment.

        Raises:
            BlobNotFoundError: No segments exist for blob_id
        """
        _check_blob_id(blob_id)
        async with await self.collection.find(
            blob_id, SortOrder.DESCENDING, limit=1
        ) as cursor:
            last = await cursor.next()
        if last is None:
            raise BlobNotFoundError(blob_id, operation="size")
        return last.end

    async def remove(self, *blob_ids: str) -> None:
        """Delete all segments of the given blobs. Missing blobs are ignored."""
        if not blob_ids:
            return
        for blob_id in blob_ids:
            _check_blob_id(blob_id)
        deleted = await self.collection.delete_blobs(blob_ids)
        logger.debug(
            "Removed blobs",
            operation="segblob.remove",
            blob_ids=list(blob_ids),
            deleted_segments=deleted,
        )


@asynccontextmanager
async def open_store(config: StoreConfig | None = None) -> AsyncIterator[BlobStore]:
    """Open a SQLite-backed blob store and manage its connection lifecycle."""
    config = config or load_config()
    ensure_directories(config)

    if config.apply_logging:
        configure_logging(
            log_level=config.log_level,
            structured=config.structured_logging,
            log_file=config.log_file,
        )

    db = Database(config.database_path)
    await db.connect()
    try:
        collection = await db.collection(config.collection)
        store = BlobStore(
            collection,
            chunk_size=config.chunk_size,
            read_buffer_segments=config.read_buffer_segments,
        )
        if config.ensure_index_on_open:
            await store.ensure_index()
        yield store
    finally:
        await db.close()
