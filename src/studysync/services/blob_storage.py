"""
Blob storage backends for StudySync.

Provides the opaque byte-blob get/put interface used to persist the local
database image across process restarts, backed by aiosqlite.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

import aiosqlite

logger = logging.getLogger(__name__)


class IBlobStorage(ABC):
    """
    Abstract interface for blob persistence.

    Defines the contract for device-local durable storage,
    allowing for different implementations (SQLite file, memory, etc.).
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the storage and create necessary structures."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the storage and clean up resources."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """
        Retrieve a blob by key.

        Args:
            key: The key to retrieve

        Returns:
            The stored bytes or None if not found
        """
        pass

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """
        Store a blob under a key, replacing any previous value.

        Args:
            key: The key to store
            data: The bytes to store
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Delete a blob.

        Args:
            key: The key to delete
        """
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        """List all stored keys."""
        pass


class SQLiteBlobStorage(IBlobStorage):
    """
    SQLite-file implementation of IBlobStorage.

    Stores blobs in a single key/value table using aiosqlite, so the
    write of one image is atomic.
    """

    def __init__(self, db_path: str = "data/studysync.db"):
        """
        Initialize the blob storage.

        Args:
            db_path: Path to the SQLite file, SQLite URL, or ":memory:"
        """
        if db_path.startswith("sqlite:///"):
            self.db_path = db_path[10:]
        elif db_path.startswith("sqlite://"):
            self.db_path = db_path[9:]
        else:
            self.db_path = db_path
        self.connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the storage is initialized."""
        return self._initialized and self.connection is not None

    async def initialize(self) -> None:
        """Open the file and create the blob table."""
        async with self._lock:
            if self._initialized:
                logger.warning("Blob storage already initialized")
                return

            try:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

                self.connection = await aiosqlite.connect(self.db_path)

                if self.db_path != ":memory:":
                    await self.connection.execute("PRAGMA journal_mode=WAL")

                await self.connection.execute(
                    """
                    CREATE TABLE IF NOT EXISTS blob_store (
                        key TEXT PRIMARY KEY,
                        value BLOB NOT NULL,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    )
                """
                )
                await self.connection.commit()
                self._initialized = True

                logger.info(f"Blob storage initialized: {self.db_path}")

            except Exception as e:
                logger.error(f"Failed to initialize blob storage: {e}")
                if self.connection:
                    await self.connection.close()
                    self.connection = None
                raise

    async def close(self) -> None:
        """Close the storage connection."""
        async with self._lock:
            if self.connection:
                await self.connection.close()
                self.connection = None
                self._initialized = False
                logger.info("Blob storage closed")

    def _require_connection(self) -> aiosqlite.Connection:
        if not self.is_initialized or self.connection is None:
            raise RuntimeError("Blob storage not initialized")
        return self.connection

    async def get(self, key: str) -> Optional[bytes]:
        """Retrieve a blob by key."""
        connection = self._require_connection()

        async with self._lock:
            try:
                cursor = await connection.execute(
                    "SELECT value FROM blob_store WHERE key = ?", (key,)
                )
                row = await cursor.fetchone()
                await cursor.close()

                return bytes(row[0]) if row else None

            except Exception as e:
                logger.error(f"Failed to get blob '{key}': {e}")
                raise

    async def put(self, key: str, data: bytes) -> None:
        """Store a blob."""
        connection = self._require_connection()

        async with self._lock:
            try:
                await connection.execute(
                    """
                    INSERT OR REPLACE INTO blob_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                """,
                    (key, data),
                )
                await connection.commit()

                logger.debug(f"Stored blob '{key}' ({len(data)} bytes)")

            except Exception as e:
                logger.error(f"Failed to store blob '{key}': {e}")
                raise

    async def delete(self, key: str) -> None:
        """Delete a blob."""
        connection = self._require_connection()

        async with self._lock:
            try:
                cursor = await connection.execute("DELETE FROM blob_store WHERE key = ?", (key,))
                await connection.commit()

                if cursor.rowcount > 0:
                    logger.debug(f"Deleted blob '{key}'")
                else:
                    logger.debug(f"Blob '{key}' not found for deletion")

                await cursor.close()

            except Exception as e:
                logger.error(f"Failed to delete blob '{key}': {e}")
                raise

    async def keys(self) -> List[str]:
        """List stored keys."""
        connection = self._require_connection()

        async with self._lock:
            cursor = await connection.execute("SELECT key FROM blob_store ORDER BY key")
            rows = await cursor.fetchall()
            await cursor.close()
            return [row[0] for row in rows]


class MemoryBlobStorage(IBlobStorage):
    """Process-local blob storage; contents vanish with the process."""

    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}
        self.put_count = 0

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def get(self, key: str) -> Optional[bytes]:
        return self._blobs.get(key)

    async def put(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)
        self.put_count += 1

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    async def keys(self) -> List[str]:
        return sorted(self._blobs)
