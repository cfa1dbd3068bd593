"""
Configuration management for StudySync.

This module provides centralized configuration management using Pydantic
for type validation and python-dotenv for environment variable loading.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


class SyncConfig(BaseModel):
    """
    Offline-first data layer configuration with validation.

    All configuration values are loaded from environment variables.
    The remote service is optional: without it the data layer runs purely
    on the local store and queues every write.
    """

    # Remote (authoritative) data service
    remote_url: Optional[str] = Field(
        default=None, description="Base URL of the PostgREST-compatible data service"
    )
    remote_api_key: Optional[str] = Field(
        default=None, description="API key sent with every remote request"
    )
    remote_timeout_seconds: float = Field(
        default=10.0, description="Total timeout for a single remote request"
    )

    # Local persistence
    storage_path: str = Field(
        default="data/studysync.db", description="Blob storage file, or ':memory:'"
    )
    storage_key: str = Field(
        default="main", description="Key under which the local database image is stored"
    )

    # Sync engine
    sync_interval_seconds: float = Field(
        default=60.0, description="Interval between periodic sync passes"
    )
    sync_max_retry_count: int = Field(
        default=5, description="Failed replays before a queue item is dead-lettered"
    )
    sync_backoff_base_seconds: float = Field(
        default=30.0, description="Base delay for exponential replay backoff (0 disables)"
    )
    sync_backoff_max_seconds: float = Field(
        default=3600.0, description="Upper bound for the replay backoff delay"
    )

    # Connectivity
    connectivity_probe_interval_seconds: float = Field(
        default=30.0, description="Interval between remote reachability probes (0 disables)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    logs_dir: str = Field(default="logs", description="Directory for log files")

    @field_validator("remote_url")
    @classmethod
    def validate_remote_url(cls, v):
        """Validate remote service URL."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("Remote URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("remote_timeout_seconds")
    @classmethod
    def validate_remote_timeout(cls, v):
        """Validate remote request timeout."""
        if v <= 0:
            raise ValueError("Remote timeout must be positive")
        if v > 300:
            raise ValueError("Remote timeout should not exceed 300 seconds")
        return v

    @field_validator("storage_key")
    @classmethod
    def validate_storage_key(cls, v):
        """Validate storage key."""
        if not v or not v.strip():
            raise ValueError("Storage key cannot be empty")
        return v.strip()

    @field_validator("sync_interval_seconds")
    @classmethod
    def validate_sync_interval(cls, v):
        """Validate periodic sync interval."""
        if v < 1:
            raise ValueError("Sync interval must be at least 1 second")
        if v > 86400:
            raise ValueError("Sync interval should not exceed 86400 seconds (1 day)")
        return v

    @field_validator("sync_max_retry_count")
    @classmethod
    def validate_max_retry_count(cls, v):
        """Validate dead-letter threshold."""
        if v <= 0:
            raise ValueError("Maximum retry count must be positive")
        return v

    @field_validator(
        "sync_backoff_base_seconds",
        "sync_backoff_max_seconds",
        "connectivity_probe_interval_seconds",
    )
    @classmethod
    def validate_non_negative(cls, v):
        """Validate delays that may be disabled with zero."""
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            levels_str = ", ".join(valid_levels)
            raise ValueError(f"Log level must be one of: {levels_str}")
        return v.upper()

    @property
    def remote_enabled(self) -> bool:
        """Whether a remote data service is configured."""
        return self.remote_url is not None


class ConfigManager:
    """
    Configuration manager for StudySync.

    Handles loading configuration from environment variables and .env files,
    with validation and type conversion.
    """

    def __init__(self, env_file: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            env_file: Path to .env file. If None, looks for .env in current
                directory.
        """
        self._config: Optional[SyncConfig] = None
        self._env_file = env_file or ".env"
        self._load_env()

    def _load_env(self) -> None:
        """Load environment variables from .env file if it exists."""
        env_path = Path(self._env_file)
        if env_path.exists():
            load_dotenv(env_path)

    @property
    def config(self) -> SyncConfig:
        """
        Get validated configuration.

        Returns:
            SyncConfig: Validated configuration instance

        Raises:
            ValidationError: If configuration is invalid
        """
        if self._config is None:
            self._config = SyncConfig(
                # Remote service
                remote_url=os.getenv("STUDYSYNC_REMOTE_URL"),
                remote_api_key=os.getenv("STUDYSYNC_REMOTE_API_KEY"),
                remote_timeout_seconds=float(os.getenv("STUDYSYNC_REMOTE_TIMEOUT", "10")),
                # Local persistence
                storage_path=os.getenv("STUDYSYNC_STORAGE_PATH", "data/studysync.db"),
                storage_key=os.getenv("STUDYSYNC_STORAGE_KEY", "main"),
                # Sync engine
                sync_interval_seconds=float(os.getenv("STUDYSYNC_SYNC_INTERVAL", "60")),
                sync_max_retry_count=int(os.getenv("STUDYSYNC_SYNC_MAX_RETRY_COUNT", "5")),
                sync_backoff_base_seconds=float(os.getenv("STUDYSYNC_SYNC_BACKOFF_BASE", "30")),
                sync_backoff_max_seconds=float(os.getenv("STUDYSYNC_SYNC_BACKOFF_MAX", "3600")),
                # Connectivity
                connectivity_probe_interval_seconds=float(
                    os.getenv("STUDYSYNC_PROBE_INTERVAL", "30")
                ),
                # Logging
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                logs_dir=os.getenv("STUDYSYNC_LOGS_DIR", "logs"),
            )
        return self._config

    def reload(self) -> None:
        """Reload configuration from environment variables."""
        self._config = None
        self._load_env()

    def get_log_level(self) -> str:
        """Get logging level."""
        return self.config.log_level

    def get_remote_url(self) -> Optional[str]:
        """Get remote data service URL."""
        return self.config.remote_url

    def get_storage_path(self) -> str:
        """Get blob storage path."""
        return self.config.storage_path

    def get_sync_interval(self) -> float:
        """Get periodic sync interval in seconds."""
        return self.config.sync_interval_seconds


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """
    Get global configuration manager instance.

    Returns:
        ConfigManager: Global configuration manager instance
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> SyncConfig:
    """
    Get validated sync configuration.

    Returns:
        SyncConfig: Validated configuration instance
    """
    return get_config_manager().config
