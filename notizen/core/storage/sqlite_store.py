"""
SQLite blob store using aiosqlite.
"""

from datetime import datetime
from pathlib import Path

import aiosqlite

from notizen.core.storage.base import BlobStore
from notizen.utils.exceptions import StorageError
from notizen.utils.logger import get_logger

logger = get_logger(__name__)


class SQLiteBlobStore(BlobStore):
    """
    SQLite-based key-value store.

    One row per key; values are opaque bytes.
    """

    def __init__(self, db_path: str = "data/notizen.db"):
        """
        Initialize SQLite blob store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.connection: aiosqlite.Connection | None = None

        # Ensure directory exists
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def connect(self) -> None:
        """Establish connection to SQLite."""
        if self.connection is None:
            try:
                self.connection = await aiosqlite.connect(self.db_path)
                await self.connection.execute("PRAGMA journal_mode = WAL")
                await self.connection.commit()
            except aiosqlite.Error as e:
                raise StorageError(
                    f"Failed to open blob store: {e}", context={"db_path": self.db_path}
                ) from e

    async def initialize(self) -> None:
        """Initialize database schema."""
        await self.connect()
        try:
            await self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )
            await self.connection.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to create blob table: {e}") from e

        logger.info(f"SQLite blob store ready at {self.db_path}")

    async def _require_connection(self) -> aiosqlite.Connection:
        if self.connection is None:
            await self.initialize()
        return self.connection

    async def get(self, key: str) -> bytes | None:
        conn = await self._require_connection()
        try:
            async with conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to read {key}: {e}", context={"key": key}) from e
        return bytes(row[0]) if row else None

    async def set(self, key: str, value: bytes) -> None:
        conn = await self._require_connection()
        try:
            await conn.execute(
                """
                INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, datetime.now().isoformat()),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to write {key}: {e}", context={"key": key}) from e

    async def delete(self, key: str) -> bool:
        conn = await self._require_connection()
        try:
            cursor = await conn.execute("DELETE FROM blobs WHERE key = ?", (key,))
            await conn.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Failed to delete {key}: {e}", context={"key": key}) from e
        return cursor.rowcount > 0

    async def keys(self) -> list[str]:
        conn = await self._require_connection()
        async with conn.execute("SELECT key FROM blobs ORDER BY key") as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def close(self) -> None:
        """Close connection."""
        if self.connection:
            await self.connection.close()
            self.connection = None
