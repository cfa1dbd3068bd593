"""
Pytest configuration and shared fixtures for StudySync tests.

This module provides common fixtures and test utilities used across
all test modules in the StudySync project.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add project root and src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from studysync.config import SyncConfig  # noqa: E402
from studysync.services.blob_storage import MemoryBlobStorage  # noqa: E402
from studysync.services.local_store import LocalStore  # noqa: E402
from studysync.services.network_monitor import NetworkMonitor  # noqa: E402
from studysync.services.sync_engine import SyncEngine  # noqa: E402
from studysync.services.sync_queue import SyncQueue  # noqa: E402
from tests.mocks.fake_remote import USER_ID, FakeRemoteStore  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_global_test_environment():
    """Set up global test environment configuration."""
    logs_dir = tempfile.mkdtemp(prefix="studysync-logs-")
    os.environ["STUDYSYNC_LOGS_DIR"] = logs_dir

    yield

    os.environ.pop("STUDYSYNC_LOGS_DIR", None)


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment variables before each test."""
    original_values = {}

    test_env_vars = {
        "STUDYSYNC_STORAGE_PATH": ":memory:",
        "STUDYSYNC_SYNC_INTERVAL": "60",
        "LOG_LEVEL": "DEBUG",
    }

    for key, value in test_env_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    yield

    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singleton instances before each test."""
    import studysync.config
    import studysync.logger

    studysync.config._config_manager = None
    studysync.logger._logger_service = None

    yield

    studysync.config._config_manager = None
    studysync.logger._logger_service = None


@pytest.fixture
def test_config(tmp_path):
    """Create a test configuration with backoff disabled."""
    return SyncConfig(
        remote_url="http://remote.test/rest/v1",
        remote_api_key="test-key",
        storage_path=":memory:",
        sync_backoff_base_seconds=0,
        sync_max_retry_count=5,
        logs_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def fake_remote():
    return FakeRemoteStore()


@pytest.fixture
def blob_storage():
    return MemoryBlobStorage()


@pytest.fixture
async def local_store(blob_storage):
    store = LocalStore(blob_storage)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def network_monitor(test_config, blob_storage, fake_remote):
    monitor = NetworkMonitor(test_config, blob_storage=blob_storage, remote_store=fake_remote)
    await monitor.initialize()
    yield monitor
    await monitor.close()


@pytest.fixture
def sync_queue(local_store, test_config):
    return SyncQueue(local_store, test_config)


@pytest.fixture
async def sync_engine(test_config, sync_queue, fake_remote, network_monitor):
    engine = SyncEngine(test_config, sync_queue, fake_remote, network_monitor)
    network_monitor.set_sync_engine(engine)
    network_monitor.set_active_user(USER_ID)
    yield engine
    await engine.close()


@pytest.fixture
async def data_layer(test_config, blob_storage, fake_remote):
    """Create a started DataLayer wired to the fake remote."""
    from studysync.app import DataLayer

    layer = DataLayer(test_config, blob_storage=blob_storage, remote_store=fake_remote)
    await layer.start()
    layer.network_monitor.set_active_user(USER_ID)
    yield layer
    await layer.close()


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "scenario: marks end-to-end offline/online scenarios")
