"""Fixtures for blob store tests.

Both backends run the same contract tests; SQLite uses a temporary file.
"""

from collections.abc import AsyncGenerator

import pytest

from notizen.core.storage import BlobStore, InMemoryBlobStore, SQLiteBlobStore


@pytest.fixture(params=["memory", "sqlite"])
async def blob_store(request, tmp_path) -> AsyncGenerator[BlobStore, None]:
    """Initialized blob store for each backend."""
    if request.param == "memory":
        store = InMemoryBlobStore()
    else:
        store = SQLiteBlobStore(db_path=str(tmp_path / "blobs.db"))

    await store.initialize()
    try:
        yield store
    finally:
        await store.close()
