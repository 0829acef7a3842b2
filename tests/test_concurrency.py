"""Tests for concurrency safety (index setup guard, parallel blobs)."""

import asyncio
import sqlite3

import pytest

from segblob import BlobStore


@pytest.mark.asyncio
async def test_ensure_index_runs_once(collection, spy_factory):
    """Test concurrent and repeated callers trigger a single index creation."""
    spy = spy_factory()
    store = BlobStore(spy)

    await asyncio.gather(*[store.ensure_index() for _ in range(10)])
    await store.ensure_index()

    assert spy.index_calls == 1


@pytest.mark.asyncio
async def test_ensure_index_failure_surfaces(collection, spy_factory):
    """Test a failed attempt propagates and the next call tries again."""
    spy = spy_factory(fail_index=1)
    store = BlobStore(spy)

    with pytest.raises(sqlite3.OperationalError, match="locked"):
        await store.ensure_index()
    assert spy.index_calls == 1

    await store.ensure_index()
    await store.ensure_index()
    assert spy.index_calls == 2


@pytest.mark.asyncio
async def test_ensure_index_attempts_never_overlap(collection, spy_factory):
    """Test concurrent callers after a failure are serialized."""
    spy = spy_factory(fail_index=1)
    store = BlobStore(spy)

    results = await asyncio.gather(
        *[store.ensure_index() for _ in range(5)], return_exceptions=True
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert spy.index_calls == 2


@pytest.mark.asyncio
async def test_concurrent_writes_of_different_blobs(store: BlobStore, rdata):
    """Test parallel writers of distinct blobs do not interfere."""
    blobs = {f"blob-{i}": rdata(500 * (i + 1)) for i in range(10)}

    await asyncio.gather(*[store.write(k, v) for k, v in blobs.items()])

    for blob_id, data in blobs.items():
        assert await store.size(blob_id) == len(data)
        async with await store.read(blob_id) as reader:
            assert await reader.read() == data


@pytest.mark.asyncio
async def test_concurrent_reads_of_same_blob(store: BlobStore, rdata):
    data = rdata(8000)
    await store.write("shared", data)

    async def read_all() -> bytes:
        async with await store.read("shared") as reader:
            return b"".join([chunk async for chunk in reader])

    results = await asyncio.gather(*[read_all() for _ in range(5)])

    assert all(result == data for result in results)

