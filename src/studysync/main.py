#!/usr/bin/env python3
"""
StudySync main entry point.

Runs the data layer as a background sync agent for one user: starts
connectivity probing and periodic sync, reports queue status, and shuts down
gracefully on SIGINT/SIGTERM.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .app import DataLayer
from .config import get_config_manager
from .logger import get_logger


class SyncRunner:
    """
    Sync agent runner that handles the application lifecycle.

    Manages initialization, startup, signal handling, and graceful shutdown.
    """

    def __init__(self, user_id: str, once: bool = False):
        """Initialize the sync runner."""
        self.user_id = user_id
        self.once = once
        self.data_layer: Optional[DataLayer] = None
        self.logger: Optional[logging.Logger] = None  # Will be initialized in setup_logging
        self.shutdown_event = asyncio.Event()

    def setup_logging(self) -> None:
        """Set up logging for the runner."""
        try:
            self.logger = get_logger("runner")
            self.logger.info("Sync runner initialized")
        except Exception as e:
            print(f"Failed to initialize logging: {e}")
            sys.exit(1)

    def validate_environment(self) -> bool:
        """
        Validate configuration.

        Returns:
            bool: True if environment is valid, False otherwise
        """
        assert self.logger is not None
        try:
            if Path(".env").exists():
                self.logger.info("Found .env file")
            else:
                self.logger.warning("No .env file found - using system environment variables")

            config = get_config_manager().config  # raises ValidationError if invalid

            if config.remote_enabled:
                self.logger.info(f"Remote store: {config.remote_url}")
            else:
                self.logger.warning("No remote store configured - running local-only")
            self.logger.info(f"Storage: {config.storage_path} (key '{config.storage_key}')")
            self.logger.info(f"Sync interval: {config.sync_interval_seconds:.0f}s")
            self.logger.info(f"Log level: {config.log_level}")
            return True

        except Exception as e:
            self.logger.critical(f"Environment validation failed: {e}")
            return False

    def setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum: int) -> None:
            if self.logger:
                self.logger.info(
                    f"Received {signal.Signals(signum).name} signal, shutting down gracefully..."
                )
            self.shutdown_event.set()

        if sys.platform != "win32":
            for signum in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(signum, signal_handler, signum)
        else:
            signal.signal(signal.SIGINT, lambda signum, frame: signal_handler(signum))

        if self.logger:
            self.logger.info("Signal handlers configured")

    async def report_status(self) -> None:
        assert self.data_layer is not None and self.logger is not None
        status = await self.data_layer.get_status(self.user_id)
        queue = status.get("sync", {}).get("queue", {})
        self.logger.info(
            f"Online: {status['network']['online']} | pending: {queue.get('pending', 0)}, "
            f"retrying: {queue.get('retrying', 0)}, dead letter: {queue.get('dead_letter', 0)}"
        )

    async def run(self) -> int:
        """
        Run the sync agent until shutdown.

        Returns:
            int: Exit code (0 for success, non-zero for error)
        """
        assert self.logger is not None
        self.data_layer = DataLayer()

        try:
            await self.data_layer.start()
            await self.data_layer.network_monitor.check_connectivity()

            if self.once:
                report = await self.data_layer.sync_now(self.user_id)
                if report is not None and report.error:
                    self.logger.error(f"Sync failed: {report.error}")
                    return 1
                await self.report_status()
                return 0

            self.data_layer.activate_user(self.user_id)
            await self.data_layer.sync_now(self.user_id)
            await self.report_status()

            await self.shutdown_event.wait()
            self.logger.info("Shutdown signal received, stopping sync agent...")
            return 0

        except Exception as e:
            self.logger.critical(f"Unexpected error during sync agent execution: {e}")
            return 1
        finally:
            await self.data_layer.close()
            self.logger.info("Sync agent stopped")

    async def start(self) -> int:
        """
        Start the sync runner.

        Returns:
            int: Exit code
        """
        try:
            self.setup_logging()

            if not self.validate_environment():
                return 1

            self.setup_signal_handlers()
            return await self.run()

        except Exception as e:
            if self.logger:
                self.logger.critical(f"Fatal error in sync runner: {e}")
            else:
                print(f"Fatal error in sync runner: {e}")
            return 1


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="studysync", description="StudySync sync agent")
    parser.add_argument("--user", required=True, help="ID of the user whose changes to sync")
    parser.add_argument(
        "--once", action="store_true", help="Run a single sync pass and exit"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the application.

    Returns:
        int: Exit code
    """
    args = parse_args(argv)

    try:
        runner = SyncRunner(args.user, once=args.once)
        return asyncio.run(runner.start())
    except KeyboardInterrupt:
        print("\nSync agent stopped by user")
        return 0
    except Exception as e:
        print(f"Fatal startup error: {e}")
        return 1
