"""
Logging service for StudySync.

This module provides centralized logging functionality with structured output,
file rotation, and level control through configuration.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import colorlog

from .config import get_config_manager


class LoggerService:
    """
    Centralized logging service for the StudySync data layer.

    Provides structured logging with console and file output, log rotation,
    and level control through configuration.
    """

    def __init__(self, name: str = "studysync", logs_dir: Optional[str] = None):
        """
        Initialize the logger service.

        Args:
            name: Logger name (default: "studysync")
            logs_dir: Directory for log files (default: configured logs_dir)
        """
        self.name = name
        self.logs_dir = Path(logs_dir) if logs_dir else None
        self.logger = logging.getLogger(name)
        self._setup_complete = False

    def setup(self) -> None:
        """Setup logging configuration."""
        if self._setup_complete:
            return

        # Environment variable wins over config
        log_level = os.getenv("LOG_LEVEL")
        logs_dir = self.logs_dir

        try:
            config = get_config_manager().config
            log_level = log_level or config.log_level
            logs_dir = logs_dir or Path(config.logs_dir)
        except Exception:
            # Fallback to defaults
            log_level = log_level or "INFO"
            logs_dir = logs_dir or Path("logs")

        self.logs_dir = logs_dir
        self.logs_dir.mkdir(parents=True, exist_ok=True)

        # Clear existing handlers
        self.logger.handlers.clear()

        level_str = log_level.upper() if log_level else "INFO"
        numeric_level = getattr(logging, level_str, logging.INFO)
        self.logger.setLevel(numeric_level)

        self._setup_console_handler(numeric_level)
        self._setup_file_handlers(numeric_level)
        self._setup_library_logging(numeric_level)

        # Prevent propagation to root logger
        self.logger.propagate = False

        self._setup_complete = True

    def _setup_console_handler(self, level: int) -> None:
        """Setup colored console logging handler."""
        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setLevel(level)

        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s | %(levelname)-8s | %(name)s | " "%(message)s%(reset)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
            style="%",
        )
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

    def _setup_file_handlers(self, level: int) -> None:
        """Setup file logging handlers with rotation."""
        assert self.logs_dir is not None

        main_log_file = self.logs_dir / "sync.log"
        file_handler = logging.handlers.RotatingFileHandler(
            main_log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"  # 10MB
        )
        file_handler.setLevel(level)

        file_formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | " "%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)

        # Error-only log file
        error_log_file = self.logs_dir / "error.log"
        error_handler = logging.handlers.RotatingFileHandler(
            error_log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"  # 5MB
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(file_formatter)
        self.logger.addHandler(error_handler)

    def _setup_library_logging(self, level: int) -> None:
        """Route aiohttp and aiosqlite logs through our handlers with less noise."""
        for logger_name in ["aiohttp.client", "aiohttp.internal", "aiosqlite"]:
            library_logger = logging.getLogger(logger_name)
            library_logger.setLevel(max(level, logging.WARNING))
            library_logger.handlers = list(self.logger.handlers)
            library_logger.propagate = False

    def get_logger(self, name: Optional[str] = None) -> logging.Logger:
        """
        Get a logger instance.

        Args:
            name: Optional logger name suffix

        Returns:
            logging.Logger: Configured logger instance
        """
        if not self._setup_complete:
            self.setup()

        if name:
            return logging.getLogger(f"{self.name}.{name}")
        return self.logger


# Global logger service instance
_logger_service: Optional[LoggerService] = None


def get_logger_service() -> LoggerService:
    """
    Get global logger service instance.

    Returns:
        LoggerService: Global logger service instance
    """
    global _logger_service
    if _logger_service is None:
        _logger_service = LoggerService()
        _logger_service.setup()
    return _logger_service


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Optional logger name suffix

    Returns:
        logging.Logger: Configured logger instance
    """
    return get_logger_service().get_logger(name)
