"""
Blob storage implementations for NotiZen.

Provides abstract base and concrete key-value backends for persisted state.
"""

from notizen.core.storage.base import BlobStore
from notizen.core.storage.factory import BlobStoreFactory
from notizen.core.storage.memory_store import InMemoryBlobStore
from notizen.core.storage.sqlite_store import SQLiteBlobStore

__all__ = [
    "BlobStore",
    "InMemoryBlobStore",
    "SQLiteBlobStore",
    "BlobStoreFactory",
]
