"""
Base interface for persistent key-value blob storage.
"""

from abc import ABC, abstractmethod


class BlobStore(ABC):
    """Abstract base class for blob storage backends."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the backend (open connections, create tables).

        Raises:
            StorageError: If initialization fails
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """
        Read a value.

        Args:
            key: Blob key

        Returns:
            Stored bytes or None if the key is absent

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    async def keys(self) -> list[str]:
        """List stored keys in sorted order."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        pass
