"""Test fixtures for segblob."""

from __future__ import annotations

import asyncio
import os
import sqlite3
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio

from segblob.config import StoreConfig
from segblob.models import Segment, SortOrder
from segblob.store import BlobStore
from segblob.storage import Database, SegmentCollection, SegmentCursor, SQLiteCollection


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def config(temp_dir: Path) -> StoreConfig:
    """Create test configuration."""
    return StoreConfig(
        database_path=temp_dir / "data" / "test.db",
        collection="blob",
        chunk_size=1024,
    )


@pytest_asyncio.fixture
async def database(config: StoreConfig) -> AsyncGenerator[Database, None]:
    """Create test database."""
    config.database_path.parent.mkdir(parents=True, exist_ok=True)
    db = Database(config.database_path)
    await db.connect()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def collection(database: Database) -> AsyncGenerator[SQLiteCollection, None]:
    """Create test segment collection, dropped afterwards."""
    coll = await database.collection("blob")
    yield coll
    await coll.drop()


@pytest_asyncio.fixture
async def store(collection: SQLiteCollection) -> BlobStore:
    """Create test blob store with 1 KiB segments and the unique index."""
    blob_store = BlobStore(collection, chunk_size=1024)
    await blob_store.ensure_index()
    return blob_store


@pytest.fixture
def rdata() -> Callable[[int], bytes]:
    """Random byte generator."""
    return os.urandom


# --- Instrumented collections ---

class SpyCursor(SegmentCursor):
    """Cursor wrapper counting fetches and recording close."""

    def __init__(self, inner: SegmentCursor, fail_after: int | None = None):
        self.inner = inner
        self.fail_after = fail_after
        self.next_calls = 0
        self.closed = False

    async def next(self) -> Segment | None:
        self.next_calls += 1
        if self.fail_after is not None and self.next_calls > self.fail_after:
            raise sqlite3.OperationalError("cursor lost")
        return await self.inner.next()

    async def close(self) -> None:
        self.closed = True
        await self.inner.close()


class SpyCollection(SegmentCollection):
    """Collection wrapper recording calls and injecting failures."""

    def __init__(
        self,
        inner: SegmentCollection,
        fail_upsert_at: int | None = None,
        fail_index: int = 0,
        cursor_fail_after: int | None = None,
    ):
        self.inner = inner
        self.fail_upsert_at = fail_upsert_at
        self.fail_index = fail_index
        self.cursor_fail_after = cursor_fail_after
        self.index_calls = 0
        self.upserts: list[int] = []
        self.cursors: list[SpyCursor] = []

    async def ensure_unique_index(self) -> None:
        self.index_calls += 1
        # Yield so concurrent callers get a chance to overlap
        await asyncio.sleep(0.01)
        if self.index_calls <= self.fail_index:
            raise sqlite3.OperationalError("database is locked")
        await self.inner.ensure_unique_index()

    async def upsert(self, segment: Segment) -> None:
        if self.fail_upsert_at is not None and segment.seq == self.fail_upsert_at:
            raise sqlite3.OperationalError("disk I/O error")
        self.upserts.append(segment.seq)
        await self.inner.upsert(segment)

    async def delete_from(self, blob_id: str, seq: int) -> int:
        return await self.inner.delete_from(blob_id, seq)

    async def delete_blobs(self, blob_ids: Iterable[str]) -> int:
        return await self.inner.delete_blobs(blob_ids)

    async def find(
        self,
        blob_id: str,
        order: SortOrder = SortOrder.ASCENDING,
        limit: int | None = None,
    ) -> SpyCursor:
        cursor = SpyCursor(
            await self.inner.find(blob_id, order, limit),
            fail_after=self.cursor_fail_after,
        )
        self.cursors.append(cursor)
        return cursor


@pytest.fixture
def spy_factory(collection: SQLiteCollection) -> Callable[..., SpyCollection]:
    """Build spy collections over the test collection."""
    def make(**kwargs) -> SpyCollection:
        return SpyCollection(collection, **kwargs)
    return make
