"""In-process blob store."""

from notizen.core.storage.base import BlobStore


class InMemoryBlobStore(BlobStore):
    """Dict-backed store; contents live as long as the instance."""

    def __init__(self):
        self._data: dict[str, bytes] = {}

    async def initialize(self) -> None:
        pass

    async def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def keys(self) -> list[str]:
        return sorted(self._data)
