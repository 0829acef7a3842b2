"""Storage layer for segblob."""

from segblob.storage.collection import SegmentCollection, SegmentCursor
from segblob.storage.database import Database, SQLiteCollection, SQLiteSegmentCursor

__all__ = [
    "Database",
    "SQLiteCollection",
    "SQLiteSegmentCursor",
    "SegmentCollection",
    "SegmentCursor",
]
