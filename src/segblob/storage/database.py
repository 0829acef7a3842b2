"""SQLite-backed segment collections for segblob."""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

import aiosqlite

from segblob.models import Segment, SortOrder
from segblob.storage.collection import SegmentCollection, SegmentCursor


_COLLECTION_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Stay well under SQLITE_MAX_VARIABLE_NUMBER on older builds
_IN_BATCH_SIZE = 500


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get active connection or raise."""
        if self._connection is None:
            raise RuntimeError("Database not connected")
        return self._connection

    async def collection(self, name: str) -> SQLiteCollection:
        """Open a segment collection, creating its table if needed."""
        collection = SQLiteCollection(self, name)
        await collection.create()
        return collection


class SQLiteSegmentCursor(SegmentCursor):
    """Segment cursor reading rows one at a time from an open statement."""

    def __init__(self, cursor: aiosqlite.Cursor):
        self._cursor: aiosqlite.Cursor | None = cursor

    @property
    def closed(self) -> bool:
        return self._cursor is None

    async def next(self) -> Segment | None:
        if self._cursor is None:
            return None
        row = await self._cursor.fetchone()
        if row is None:
            return None
        return Segment.from_document({
            "blobId": row["blob_id"],
            "seq": row["seq"],
            "data": row["data"],
            "s": row["s"],
            "n": row["n"],
        })

    async def close(self) -> None:
        if self._cursor is not None:
            cursor, self._cursor = self._cursor, None
            await cursor.close()


class SQLiteCollection(SegmentCollection):
    """Segment collection stored as one SQLite table.

    Upserts are update-then-insert so they work with or without the
    unique index; the index is what rejects a racing duplicate insert.
    """

    def __init__(self, database: Database, name: str):
        if not _COLLECTION_NAME.match(name):
            raise ValueError(f"Invalid collection name: {name!r}")
        self.database = database
        self.name = name

    @property
    def conn(self) -> aiosqlite.Connection:
        return self.database.conn

    async def create(self) -> None:
        """Create the backing table if it does not exist."""
        await self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                blob_id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                data BLOB NOT NULL,
                s INTEGER NOT NULL,
                n INTEGER NOT NULL
            )
            """
        )
        await self.conn.commit()

    async def drop(self) -> None:
        """Drop the backing table and its indexes."""
        await self.conn.execute(f"DROP TABLE IF EXISTS {self.name}")
        await self.conn.commit()

    async def ensure_unique_index(self) -> None:
        await self.conn.execute(
            f"CREATE UNIQUE INDEX IF NOT EXISTS {self.name}_blob_id_seq "
            f"ON {self.name} (blob_id ASC, seq ASC)"
        )
        await self.conn.commit()

    async def upsert(self, segment: Segment) -> None:
        doc = segment.to_document()
        async with self.conn.execute(
            f"UPDATE {self.name} SET data = ?, s = ?, n = ? "
            "WHERE blob_id = ? AND seq = ?",
            (doc["data"], doc["s"], doc["n"], doc["blobId"], doc["seq"]),
        ) as cursor:
            updated = cursor.rowcount
        if updated == 0:
            await self.conn.execute(
                f"INSERT INTO {self.name} (blob_id, seq, data, s, n) "
                "VALUES (?, ?, ?, ?, ?)",
                (doc["blobId"], doc["seq"], doc["data"], doc["s"], doc["n"]),
            )
        await self.conn.commit()

    async def delete_from(self, blob_id: str, seq: int) -> int:
        async with self.conn.execute(
            f"DELETE FROM {self.name} WHERE blob_id = ? AND seq >= ?",
            (blob_id, seq),
        ) as cursor:
            deleted = cursor.rowcount
        await self.conn.commit()
        return deleted

    async def delete_blobs(self, blob_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(blob_ids))
        deleted = 0
        for i in range(0, len(ids), _IN_BATCH_SIZE):
            batch = ids[i:i + _IN_BATCH_SIZE]
            placeholders = ", ".join("?" for _ in batch)
            async with self.conn.execute(
                f"DELETE FROM {self.name} WHERE blob_id IN ({placeholders})",
                batch,
            ) as cursor:
                deleted += cursor.rowcount
        await self.conn.commit()
        return deleted

    async def find(
        self,
        blob_id: str,
        order: SortOrder = SortOrder.ASCENDING,
        limit: int | None = None,
    ) -> SQLiteSegmentCursor:
        direction = "ASC" if SortOrder(order) is SortOrder.ASCENDING else "DESC"
        query = (
            f"SELECT blob_id, seq, data, s, n FROM {self.name} "
            f"WHERE blob_id = ? ORDER BY seq {direction}"
        )
        params: list[object] = [blob_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        cursor = await self.conn.execute(query, params)
        return SQLiteSegmentCursor(cursor)

    async def count(self, blob_id: str) -> int:
        """Count stored segments for a blob."""
        async with self.conn.execute(
            f"SELECT COUNT(*) FROM {self.name} WHERE blob_id = ?", (blob_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0
