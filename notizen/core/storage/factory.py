"""Factory for creating blob stores."""

from notizen.config import StorageConfig
from notizen.core.storage.base import BlobStore
from notizen.core.storage.memory_store import InMemoryBlobStore
from notizen.core.storage.sqlite_store import SQLiteBlobStore
from notizen.utils.exceptions import ConfigurationError


class BlobStoreFactory:
    """Creates the configured blob store backend."""

    @staticmethod
    def create(config: StorageConfig) -> BlobStore:
        """
        Create a blob store.

        Args:
            config: Storage configuration

        Returns:
            BlobStore instance (not yet initialized)

        Raises:
            ConfigurationError: If the backend is not supported
        """
        if config.backend == "memory":
            return InMemoryBlobStore()
        elif config.backend == "sqlite":
            return SQLiteBlobStore(db_path=config.db_path)
        else:
            raise ConfigurationError(
                f"Unknown storage backend: {config.backend}",
                context={"backend": config.backend},
            )
