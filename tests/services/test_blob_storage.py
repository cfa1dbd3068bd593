"""
Test cases for blob storage backends.
"""

import tempfile
from pathlib import Path

import pytest

from studysync.services.blob_storage import MemoryBlobStorage, SQLiteBlobStorage


class TestSQLiteBlobStorage:
    """Test cases for the aiosqlite-backed blob storage."""

    @pytest.fixture
    async def temp_storage(self):
        """Create a temporary blob storage file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = str(Path(temp_dir) / "nested" / "blobs.db")
            storage = SQLiteBlobStorage(db_path)
            await storage.initialize()

            yield storage

            await storage.close()

    async def test_initialization(self):
        storage = SQLiteBlobStorage(":memory:")
        assert not storage.is_initialized

        await storage.initialize()
        assert storage.is_initialized

        await storage.close()
        assert not storage.is_initialized

    def test_sqlite_url_prefix_stripped(self):
        assert SQLiteBlobStorage("sqlite:///data/x.db").db_path == "data/x.db"
        assert SQLiteBlobStorage("sqlite://:memory:").db_path == ":memory:"

    async def test_basic_operations(self, temp_storage):
        """Test put/get/delete operations."""
        await temp_storage.put("main", b"\x00\x01image")
        assert await temp_storage.get("main") == b"\x00\x01image"

        await temp_storage.put("main", b"replaced")
        assert await temp_storage.get("main") == b"replaced"

        assert await temp_storage.get("missing") is None

        await temp_storage.delete("main")
        assert await temp_storage.get("main") is None

        # Deleting a missing key is not an error
        await temp_storage.delete("main")

    async def test_keys(self, temp_storage):
        await temp_storage.put("b", b"2")
        await temp_storage.put("a", b"1")

        assert await temp_storage.keys() == ["a", "b"]

    async def test_survives_reopen(self):
        """Test that blobs persist across connections to the same file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = str(Path(temp_dir) / "blobs.db")

            first = SQLiteBlobStorage(db_path)
            await first.initialize()
            await first.put("main", b"persisted")
            await first.close()

            second = SQLiteBlobStorage(db_path)
            await second.initialize()
            try:
                assert await second.get("main") == b"persisted"
            finally:
                await second.close()

    async def test_use_before_initialize(self):
        storage = SQLiteBlobStorage(":memory:")

        with pytest.raises(RuntimeError, match="not initialized"):
            await storage.get("main")


class TestMemoryBlobStorage:
    async def test_put_get_and_count(self):
        storage = MemoryBlobStorage()
        await storage.initialize()

        await storage.put("main", bytearray(b"abc"))
        await storage.put("offline_mode", b"1")

        assert await storage.get("main") == b"abc"
        assert isinstance(await storage.get("main"), bytes)
        assert storage.put_count == 2
        assert await storage.keys() == ["main", "offline_mode"]

        await storage.delete("main")
        assert await storage.get("main") is None
