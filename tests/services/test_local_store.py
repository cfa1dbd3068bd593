"""
Test cases for LocalStore.

Covers schema creation, image persistence after every write, restoring the
image on startup, and the logout/reset helpers.
"""

import asyncio
import sqlite3

import pytest

from studysync.errors import LocalStoreError
from studysync.services.blob_storage import MemoryBlobStorage
from studysync.services.local_store import (
    LocalStore,
    bool_to_int,
    generate_id,
    int_to_bool,
    now_iso,
)
from studysync.services.schema import APP_SETTINGS_ID, USER_SCOPED_TABLES

TODO_INSERT = """
    INSERT INTO todos (id, user_id, title, created_at, updated_at)
    VALUES (?, ?, ?, ?, ?)
"""


async def insert_todo(
    store: LocalStore, todo_id: str, user_id: str = "user-1", title: str = "Read"
):
    stamp = now_iso()
    return await store.execute(TODO_INSERT, (todo_id, user_id, title, stamp, stamp))


class TestHelpers:
    def test_generate_id_unique(self):
        assert generate_id() != generate_id()
        assert len(generate_id()) == 36

    def test_now_iso_format(self):
        stamp = now_iso()
        assert stamp.endswith("Z")
        assert "T" in stamp
        # Millisecond precision
        assert len(stamp.split(".")[1]) == 4

    def test_bool_conversion(self):
        assert bool_to_int(True) == 1
        assert bool_to_int(None) == 0
        assert int_to_bool(1) is True
        assert int_to_bool(0) is False
        assert int_to_bool("0") is False
        assert int_to_bool(None) is False


class TestLocalStore:
    """Test LocalStore functionality."""

    async def test_fresh_schema(self, local_store, blob_storage):
        """Test that a fresh store has every table and the seeded settings row."""
        rows = await local_store.query("SELECT name FROM sqlite_master WHERE type = 'table'")
        tables = {row["name"] for row in rows}

        for table in USER_SCOPED_TABLES + ["users", "bug_reports", "app_settings"]:
            assert table in tables

        settings = await local_store.query_one("SELECT * FROM app_settings")
        assert settings["id"] == APP_SETTINGS_ID
        assert settings["maintenance_mode"] == 0

        # Fresh image written on creation
        assert await blob_storage.get("main") is not None

    async def test_every_write_persists(self, local_store, blob_storage):
        before = blob_storage.put_count

        await insert_todo(local_store, "t1")
        await local_store.execute("UPDATE todos SET title = ? WHERE id = ?", ("Write", "t1"))
        await local_store.execute("DELETE FROM todos WHERE id = ?", ("t1",))

        assert blob_storage.put_count == before + 3

    async def test_execute_returns_rowcount(self, local_store):
        assert await insert_todo(local_store, "t1") == 1
        assert await local_store.execute("DELETE FROM todos WHERE id = ?", ("nope",)) == 0

    async def test_execute_many_persists_once(self, local_store, blob_storage):
        before = blob_storage.put_count
        stamp = now_iso()

        await local_store.execute_many(
            TODO_INSERT,
            [("t1", "user-1", "A", stamp, stamp), ("t2", "user-1", "B", stamp, stamp)],
        )

        assert blob_storage.put_count == before + 1
        rows = await local_store.query("SELECT id FROM todos ORDER BY id")
        assert [row["id"] for row in rows] == ["t1", "t2"]

    async def test_query_returns_dicts(self, local_store):
        await insert_todo(local_store, "t1", title="Finish thesis")

        row = await local_store.query_one("SELECT * FROM todos WHERE id = ?", ("t1",))

        assert isinstance(row, dict)
        assert row["title"] == "Finish thesis"
        assert row["completed"] == 0
        assert row["priority"] == "medium"
        assert await local_store.query_one("SELECT * FROM todos WHERE id = ?", ("x",)) is None

    async def test_restore_from_image(self, blob_storage):
        """Test that data written by one store is visible to the next one."""
        first = LocalStore(blob_storage)
        await first.initialize()
        await insert_todo(first, "t1", title="Survives restart")
        await first.close()

        second = LocalStore(blob_storage)
        await second.initialize()
        try:
            row = await second.query_one("SELECT title FROM todos WHERE id = ?", ("t1",))
            assert row["title"] == "Survives restart"

            # Constraints survive the round trip
            with pytest.raises(sqlite3.IntegrityError):
                await insert_todo(second, "t1")
        finally:
            await second.close()

    async def test_storage_key_isolates_images(self, blob_storage):
        device_a = LocalStore(blob_storage, storage_key="device-a")
        device_b = LocalStore(blob_storage, storage_key="device-b")
        await device_a.initialize()
        await device_b.initialize()

        try:
            await insert_todo(device_a, "t1")
            assert await device_b.query("SELECT * FROM todos") == []
            assert set(await blob_storage.keys()) >= {"device-a", "device-b"}
        finally:
            await device_a.close()
            await device_b.close()

    async def test_failed_write_rolls_back_without_persisting(self, local_store, blob_storage):
        await insert_todo(local_store, "t1")
        before = blob_storage.put_count

        with pytest.raises(sqlite3.IntegrityError):
            await insert_todo(local_store, "t1")

        assert blob_storage.put_count == before
        rows = await local_store.query("SELECT * FROM todos")
        assert len(rows) == 1

    async def test_unreadable_image(self):
        storage = MemoryBlobStorage()
        await storage.put("main", b"definitely not a database")
        store = LocalStore(storage)

        with pytest.raises(LocalStoreError):
            await store.initialize()
        assert not store.is_initialized

    async def test_use_before_initialize(self, blob_storage):
        store = LocalStore(blob_storage)

        with pytest.raises(RuntimeError, match="Local store not initialized"):
            await store.query("SELECT 1")

    async def test_clear_user_data(self, local_store):
        stamp = now_iso()
        await local_store.execute(
            "INSERT INTO users (id, username, password_hash, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?)",
            ("user-1", "maria", "hash", stamp, stamp),
        )
        await insert_todo(local_store, "mine", user_id="user-1")
        await insert_todo(local_store, "theirs", user_id="user-2")

        await local_store.clear_user_data("user-1")

        todos = await local_store.query("SELECT id FROM todos")
        assert [row["id"] for row in todos] == ["theirs"]
        # Account row kept for offline sign-in
        assert await local_store.query_one("SELECT id FROM users WHERE id = ?", ("user-1",))

    async def test_reset(self, local_store, blob_storage):
        await insert_todo(local_store, "t1")

        await local_store.reset()

        assert await local_store.query("SELECT * FROM todos") == []
        assert await local_store.query_one("SELECT id FROM app_settings") is not None

        restored = LocalStore(blob_storage)
        await restored.initialize()
        try:
            assert await restored.query("SELECT * FROM todos") == []
        finally:
            await restored.close()

    async def test_write_waiting_on_reset_uses_new_connection(self, local_store, blob_storage):
        await insert_todo(local_store, "old")

        results = await asyncio.gather(
            local_store.reset(),
            insert_todo(local_store, "new"),
            local_store.query("SELECT id FROM todos"),
            return_exceptions=True,
        )

        assert results[:2] == [None, 1]
        assert results[2] == [{"id": "new"}]

        restored = LocalStore(blob_storage)
        await restored.initialize()
        try:
            rows = await restored.query("SELECT id FROM todos")
            assert [row["id"] for row in rows] == ["new"]
        finally:
            await restored.close()
