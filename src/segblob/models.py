"""Core data models for segblob.

A blob is never persisted as a whole. It exists only as the set of
segments sharing its ``blob_id``:

- seq: zero-based position of the segment within its blob
- start: byte offset of the segment within the blob
- n: payload length, persisted so the size can be computed from the
  last segment alone
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class SortOrder(int, Enum):
    """Sequence ordering for segment queries."""
    ASCENDING = 1
    DESCENDING = -1


class Segment(BaseModel):
    """One persisted chunk of a blob."""
    blob_id: str
    seq: int = Field(ge=0)
    data: bytes = b""
    start: int = Field(default=0, ge=0)
    n: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_length(self) -> Segment:
        if self.n != len(self.data):
            raise ValueError(
                f"segment length mismatch: n={self.n}, len(data)={len(self.data)}"
            )
        return self

    @property
    def end(self) -> int:
        """Offset one past the last byte of this segment."""
        return self.start + self.n

    def to_document(self) -> dict[str, Any]:
        """Convert to the persisted document layout."""
        return {
            "blobId": self.blob_id,
            "seq": self.seq,
            "data": self.data,
            "s": self.start,
            "n": self.n,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Segment:
        """Build a segment from a persisted document."""
        return cls(
            blob_id=doc["blobId"],
            seq=doc["seq"],
            data=bytes(doc["data"]),
            start=doc["s"],
            n=doc["n"],
        )
