"""
Local relational store for StudySync.

An in-memory SQLite database (through aiosqlite) whose full binary image is
written to blob storage after every mutating statement and loaded back on
startup, so the local copy survives process restarts.
"""

import asyncio
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiosqlite

from ..errors import LocalStoreError
from .blob_storage import IBlobStorage
from .schema import SCHEMA_SQL, USER_SCOPED_TABLES

logger = logging.getLogger(__name__)

Params = Sequence[Any]


def generate_id() -> str:
    """Generate a new record id."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def bool_to_int(value: Any) -> int:
    return 1 if value else 0


def int_to_bool(value: Any) -> bool:
    return bool(value) and value != "0"


class LocalStore:
    """
    Embedded SQLite database persisted as a single blob.

    All statements are serialized by one asyncio lock; a write returns only
    after the new image has been handed to blob storage.
    """

    def __init__(self, blob_storage: IBlobStorage, storage_key: str = "main"):
        """
        Initialize the local store.

        Args:
            blob_storage: Backend receiving the database image
            storage_key: Key the image is stored under
        """
        self.blob_storage = blob_storage
        self.storage_key = storage_key
        self.connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the store is initialized."""
        return self._initialized and self.connection is not None

    async def initialize(self) -> None:
        """Open the database, restoring the saved image or applying the schema."""
        async with self._lock:
            if self._initialized:
                logger.warning("Local store already initialized")
                return

            try:
                self.connection = await self._open()
                image = await self.blob_storage.get(self.storage_key)

                if image:
                    await self._restore(image)
                    logger.info(f"Local store restored from saved image ({len(image)} bytes)")
                else:
                    await self._apply_schema()
                    await self._persist()
                    logger.info("Local store created with fresh schema")

                self._initialized = True

            except Exception as e:
                logger.error(f"Failed to initialize local store: {e}")
                if self.connection:
                    await self.connection.close()
                    self.connection = None
                if isinstance(e, LocalStoreError):
                    raise
                raise LocalStoreError(f"Failed to initialize local store: {e}") from e

    async def close(self) -> None:
        """Close the database connection."""
        async with self._lock:
            if self.connection:
                await self.connection.close()
                self.connection = None
                self._initialized = False
                logger.info("Local store closed")

    async def _open(self) -> aiosqlite.Connection:
        connection = await aiosqlite.connect(":memory:")
        connection.row_factory = aiosqlite.Row
        return connection

    async def _apply_schema(self) -> None:
        connection = self._require_connection(check_initialized=False)
        await connection.executescript(SCHEMA_SQL)
        await connection.commit()

    async def _restore(self, image: bytes) -> None:
        connection = self._require_connection(check_initialized=False)
        snapshot = sqlite3.connect(":memory:", check_same_thread=False)
        try:
            snapshot.deserialize(image)
            script = "\n".join(snapshot.iterdump())
        except sqlite3.DatabaseError as e:
            raise LocalStoreError(f"Saved database image is unreadable: {e}") from e
        finally:
            snapshot.close()

        await connection.executescript(script)
        await connection.commit()

    async def _export(self) -> bytes:
        connection = self._require_connection(check_initialized=False)
        snapshot = sqlite3.connect(":memory:", check_same_thread=False)
        try:
            await connection.backup(snapshot)
            return snapshot.serialize()
        finally:
            snapshot.close()

    async def _persist(self) -> None:
        image = await self._export()
        await self.blob_storage.put(self.storage_key, image)
        logger.debug(f"Persisted local store image ({len(image)} bytes)")

    def _require_connection(self, check_initialized: bool = True) -> aiosqlite.Connection:
        if self.connection is None or (check_initialized and not self._initialized):
            raise RuntimeError("Local store not initialized")
        return self.connection

    async def execute(self, sql: str, params: Params = ()) -> int:
        """
        Run one mutating statement and persist the image.

        Args:
            sql: SQL statement
            params: Positional parameters

        Returns:
            Number of affected rows
        """
        async with self._lock:
            connection = self._require_connection()
            try:
                cursor = await connection.execute(sql, params)
                rowcount = cursor.rowcount
                await cursor.close()
                await connection.commit()
            except sqlite3.Error:
                await connection.rollback()
                raise

            await self._persist()
            return rowcount

    async def execute_many(self, sql: str, params_seq: Iterable[Params]) -> int:
        """Run one statement for each parameter set, then persist once."""
        async with self._lock:
            connection = self._require_connection()
            try:
                cursor = await connection.executemany(sql, list(params_seq))
                rowcount = cursor.rowcount
                await cursor.close()
                await connection.commit()
            except sqlite3.Error:
                await connection.rollback()
                raise

            await self._persist()
            return rowcount

    async def query(self, sql: str, params: Params = ()) -> List[Dict[str, Any]]:
        """Run a read-only statement and return rows as dictionaries."""
        async with self._lock:
            connection = self._require_connection()
            cursor = await connection.execute(sql, params)
            rows = await cursor.fetchall()
            await cursor.close()
            return [dict(row) for row in rows]

    async def query_one(self, sql: str, params: Params = ()) -> Optional[Dict[str, Any]]:
        rows = await self.query(sql, params)
        return rows[0] if rows else None

    async def save(self) -> None:
        """Persist the current image explicitly."""
        async with self._lock:
            self._require_connection()
            await self._persist()

    async def clear_user_data(self, user_id: str) -> None:
        """
        Remove every user-scoped row for a user (logout).

        The user row itself is kept so the account can still sign in offline.
        """
        async with self._lock:
            connection = self._require_connection()
            try:
                for table in USER_SCOPED_TABLES:
                    await connection.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
                await connection.commit()
            except sqlite3.Error:
                await connection.rollback()
                raise

            await self._persist()
            logger.info(f"Cleared local data for user {user_id}")

    async def reset(self) -> None:
        """Drop everything, re-apply the schema and persist the empty image."""
        async with self._lock:
            await self._require_connection().close()
            self.connection = await self._open()
            await self._apply_schema()
            await self._persist()
            logger.warning("Local store reset")
