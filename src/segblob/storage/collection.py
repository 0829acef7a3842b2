"""Segment collection contract.

The blob store talks to its backing document store only through the
operations defined here. Implementations must propagate driver errors
unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from types import TracebackType

from segblob.models import Segment, SortOrder


class SegmentCursor(ABC):
    """Lazy, forward-only cursor over segments of one blob."""

    @abstractmethod
    async def next(self) -> Segment | None:
        """Return the next segment, or None when exhausted."""

    @abstractmethod
    async def close(self) -> None:
        """Release the cursor. Safe to call more than once."""

    def __aiter__(self) -> SegmentCursor:
        return self

    async def __anext__(self) -> Segment:
        segment = await self.next()
        if segment is None:
            raise StopAsyncIteration
        return segment

    async def __aenter__(self) -> SegmentCursor:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class SegmentCollection(ABC):
    """Document collection holding blob segments."""

    @abstractmethod
    async def ensure_unique_index(self) -> None:
        """Create a unique index on (blobId asc, seq asc)."""

    @abstractmethod
    async def upsert(self, segment: Segment) -> None:
        """Replace the segment matching (blobId, seq), or insert it."""

    @abstractmethod
    async def delete_from(self, blob_id: str, seq: int) -> int:
        """Delete segments of ``blob_id`` with seq >= ``seq``.

        Returns:
            Number of deleted segments
        """

    @abstractmethod
    async def delete_blobs(self, blob_ids: Iterable[str]) -> int:
        """Delete every segment whose blobId is in ``blob_ids``.

        Returns:
            Number of deleted segments
        """

    @abstractmethod
    async def find(
        self,
        blob_id: str,
        order: SortOrder = SortOrder.ASCENDING,
        limit: int | None = None,
    ) -> SegmentCursor:
        """Query segments of ``blob_id`` sorted by seq."""
