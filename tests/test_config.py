"""
Tests for configuration management.
"""

import os
import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from studysync.config import ConfigManager, SyncConfig, get_config, get_config_manager


class TestSyncConfig:
    """Test SyncConfig model validation."""

    def test_defaults(self):
        config = SyncConfig()

        assert config.remote_url is None
        assert not config.remote_enabled
        assert config.remote_timeout_seconds == 10.0
        assert config.sync_interval_seconds == 60.0
        assert config.sync_max_retry_count == 5
        assert config.storage_key == "main"
        assert config.log_level == "INFO"

    def test_remote_url_normalized(self):
        config = SyncConfig(remote_url="https://db.example.com/rest/v1/")

        assert config.remote_url == "https://db.example.com/rest/v1"
        assert config.remote_enabled

    def test_blank_remote_url_disables_remote(self):
        config = SyncConfig(remote_url="   ")

        assert config.remote_url is None
        assert not config.remote_enabled

    def test_invalid_remote_url(self):
        with pytest.raises(ValidationError) as exc_info:
            SyncConfig(remote_url="ftp://db.example.com")

        assert any("http://" in str(error) for error in exc_info.value.errors())

    @pytest.mark.parametrize("timeout", [0, -1, 301])
    def test_invalid_remote_timeout(self, timeout):
        with pytest.raises(ValidationError):
            SyncConfig(remote_timeout_seconds=timeout)

    def test_invalid_sync_interval(self):
        with pytest.raises(ValidationError):
            SyncConfig(sync_interval_seconds=0.5)

    def test_invalid_retry_count(self):
        with pytest.raises(ValidationError):
            SyncConfig(sync_max_retry_count=0)

    def test_backoff_may_be_disabled(self):
        config = SyncConfig(sync_backoff_base_seconds=0)
        assert config.sync_backoff_base_seconds == 0

        with pytest.raises(ValidationError):
            SyncConfig(sync_backoff_base_seconds=-5)

    def test_empty_storage_key(self):
        with pytest.raises(ValidationError):
            SyncConfig(storage_key="  ")

    def test_log_level_case_insensitive(self):
        assert SyncConfig(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError) as exc_info:
            SyncConfig(log_level="VERBOSE")
        assert any("Log level must be one of" in str(error) for error in exc_info.value.errors())


class TestConfigManager:
    """Test ConfigManager functionality."""

    def test_load_from_environment(self, monkeypatch):
        monkeypatch.setenv("STUDYSYNC_REMOTE_URL", "http://localhost:3000")
        monkeypatch.setenv("STUDYSYNC_REMOTE_API_KEY", "anon-key")
        monkeypatch.setenv("STUDYSYNC_SYNC_INTERVAL", "15")
        monkeypatch.setenv("STUDYSYNC_SYNC_MAX_RETRY_COUNT", "3")
        monkeypatch.setenv("STUDYSYNC_STORAGE_KEY", "device-a")

        config = ConfigManager(env_file="nonexistent.env").config

        assert config.remote_url == "http://localhost:3000"
        assert config.remote_api_key == "anon-key"
        assert config.sync_interval_seconds == 15.0
        assert config.sync_max_retry_count == 3
        assert config.storage_key == "device-a"
        assert config.storage_path == ":memory:"

    def test_load_from_env_file(self, monkeypatch):
        monkeypatch.delenv("STUDYSYNC_REMOTE_URL", raising=False)

        with tempfile.TemporaryDirectory() as temp_dir:
            env_file = Path(temp_dir) / ".env"
            env_file.write_text("STUDYSYNC_REMOTE_URL=https://from-file.example.com\n")

            try:
                manager = ConfigManager(env_file=str(env_file))
                assert manager.get_remote_url() == "https://from-file.example.com"
            finally:
                os.environ.pop("STUDYSYNC_REMOTE_URL", None)

    def test_reload(self, monkeypatch):
        monkeypatch.setenv("STUDYSYNC_SYNC_INTERVAL", "30")
        manager = ConfigManager(env_file="nonexistent.env")
        assert manager.get_sync_interval() == 30.0

        monkeypatch.setenv("STUDYSYNC_SYNC_INTERVAL", "90")
        assert manager.get_sync_interval() == 30.0

        manager.reload()
        assert manager.get_sync_interval() == 90.0

    def test_invalid_environment_raises(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        with pytest.raises(ValidationError):
            _ = ConfigManager(env_file="nonexistent.env").config

    def test_global_accessors(self):
        manager = get_config_manager()

        assert get_config_manager() is manager
        assert get_config() is manager.config
        assert manager.get_log_level() == "DEBUG"
        assert manager.get_storage_path() == ":memory:"
