"""Input adapters for blob writes.

``ChunkSource`` turns whatever the caller hands to ``BlobStore.write``
into fixed-size reads. Short reads from the underlying stream are
accumulated, so a chunk is only ever short at end of input.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from typing import Any, Union

BytesLike = Union[bytes, bytearray, memoryview]


class ChunkSource:
    """Read fixed-size chunks from bytes, file-like objects or iterables.

    Accepted inputs:
    - None: empty input
    - bytes, bytearray, memoryview
    - objects with ``read(size)`` returning bytes or an awaitable of bytes
      (binary files, io.BytesIO, asyncio.StreamReader)
    - async iterables or iterables of bytes-like pieces
    """

    def __init__(self, stream: Any = None):
        self._buffer = bytearray()
        self._eof = False
        self._reader = None
        self._aiter: AsyncIterator[BytesLike] | None = None
        self._iter: Iterator[BytesLike] | None = None

        if stream is None:
            self._eof = True
        elif isinstance(stream, str):
            raise TypeError("blob input must be binary, not str")
        elif isinstance(stream, (bytes, bytearray, memoryview)):
            self._buffer.extend(stream)
            self._eof = True
        elif callable(getattr(stream, "read", None)):
            self._reader = stream
        elif isinstance(stream, AsyncIterable):
            self._aiter = stream.__aiter__()
        elif isinstance(stream, Iterable):
            self._iter = iter(stream)
        else:
            raise TypeError(f"unsupported blob input: {type(stream).__name__}")

    async def _pull(self, size: int) -> bytes | None:
        """Fetch the next piece from the underlying input, or None at EOF."""
        if self._reader is not None:
            piece = self._reader.read(size)
            if inspect.isawaitable(piece):
                piece = await piece
            if not piece:
                return None
        elif self._aiter is not None:
            try:
                piece = await self._aiter.__anext__()
            except StopAsyncIteration:
                return None
        else:
            try:
                piece = next(self._iter)
            except StopIteration:
                return None

        if isinstance(piece, str):
            raise TypeError("blob input must be binary, not str")
        return bytes(piece)

    async def read_chunk(self, size: int) -> bytes:
        """Return ``size`` bytes, or fewer only when the input is exhausted."""
        if size <= 0:
            raise ValueError(f"chunk size must be positive, got {size}")

        while len(self._buffer) < size and not self._eof:
            piece = await self._pull(size - len(self._buffer))
            if piece is None:
                self._eof = True
            else:
                self._buffer.extend(piece)

        chunk = bytes(self._buffer[:size])
        del self._buffer[:size]
        return chunk
