"""Streaming blob reader.

Each open reader owns one background task that walks the segment cursor
and hands payloads to the consumer through a bounded queue. The task
blocks while the queue is full, so an idle consumer holds at most
``buffer_segments`` segments in memory.

Readers must be closed (``await reader.close()`` or ``async with``);
closing cancels the worker, which releases the store cursor.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from types import TracebackType

from segblob.logging_config import StructuredLogger
from segblob.models import Segment
from segblob.storage.collection import SegmentCursor

logger = StructuredLogger(__name__)

_EOF = object()
_CLOSED = object()


class _WorkerFailure:
    """Carries an exception from the worker to the consumer."""

    __slots__ = ("error",)

    def __init__(self, error: BaseException):
        self.error = error


class BlobReader:
    """Lazily produced, non-restartable byte stream of one blob."""

    def __init__(
        self,
        blob_id: str,
        cursor: SegmentCursor,
        first: Segment,
        buffer_segments: int = 1,
    ):
        self.blob_id = blob_id
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max(1, buffer_segments))
        self._pending = bytearray()
        self._done = False
        self._closed = False
        self._cursor = cursor
        self._worker = asyncio.create_task(
            self._produce(first),
            name=f"segblob-read-{blob_id}",
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def _produce(self, first: Segment) -> None:
        segments = 0
        try:
            segment: Segment | None = first
            while segment is not None:
                await self._queue.put(segment.data)
                segments += 1
                segment = await self._cursor.next()
            await self._queue.put(_EOF)
        except Exception as e:
            await self._queue.put(_WorkerFailure(e))
        finally:
            await self._cursor.close()
            logger.debug(
                "Read worker finished",
                blob_id=self.blob_id,
                operation="segblob.read",
                segments=segments,
            )

    async def _next_item(self) -> bytes | None:
        """Next payload from the worker, or None at end of data."""
        if self._done:
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            # Pass the wakeup on to any other waiting consumer
            self._queue.put_nowait(_CLOSED)
            raise ValueError("I/O operation on closed blob reader")
        if item is _EOF:
            self._done = True
            return None
        if isinstance(item, _WorkerFailure):
            self._done = True
            raise item.error
        return item

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("I/O operation on closed blob reader")

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; -1 reads everything that remains.

        Returns b"" once the blob is exhausted.
        """
        self._check_open()

        if size is None or size < 0:
            while True:
                payload = await self._next_item()
                if payload is None:
                    break
                self._pending.extend(payload)
            data = bytes(self._pending)
            self._pending.clear()
            return data

        if size == 0:
            return b""

        while not self._pending:
            payload = await self._next_item()
            if payload is None:
                return b""
            self._pending.extend(payload)

        data = bytes(self._pending[:size])
        del self._pending[:size]
        return data

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter_chunks()

    async def _iter_chunks(self) -> AsyncIterator[bytes]:
        self._check_open()
        if self._pending:
            data = bytes(self._pending)
            self._pending.clear()
            yield data
        while True:
            payload = await self._next_item()
            if payload is None:
                return
            if payload:
                yield payload

    async def close(self) -> None:
        """Stop the worker and release the store cursor."""
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        if not self._worker.done():
            self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            # Re-raise if our own task is being cancelled rather than the worker
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        finally:
            # Wake consumers still blocked on the queue
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(_CLOSED)
            # A worker cancelled before its first step never reaches its finally
            await self._cursor.close()

    async def __aenter__(self) -> BlobReader:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
