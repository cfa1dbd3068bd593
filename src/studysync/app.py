"""
Composition root for the StudySync data layer.

Builds the local store, remote store, network monitor, sync queue, sync
engine and every repository once, and owns their startup and shutdown.
"""

import logging
from typing import Any, Dict, Optional

from .config import SyncConfig, get_config
from .repositories import (
    ActivityLogRepository,
    AppSettingsRepository,
    BugReportRepository,
    CustomQuizRepository,
    LoginHistoryRepository,
    NoteRepository,
    NotificationRepository,
    PomodoroSessionRepository,
    PomodoroSettingsRepository,
    QuizAttemptRepository,
    TodoRepository,
    UserAchievementRepository,
    UserRepository,
    UserSettingsRepository,
)
from .services.blob_storage import IBlobStorage, MemoryBlobStorage, SQLiteBlobStorage
from .services.local_store import LocalStore
from .services.network_monitor import NetworkMonitor
from .services.remote_store import IRemoteStore, PostgrestRemoteStore
from .services.sync_engine import SyncEngine, SyncReport
from .services.sync_queue import SyncQueue

logger = logging.getLogger(__name__)


class DataLayer:
    """
    Offline-first data layer.

    Consumers talk to the repositories exposed as attributes; the services
    behind them are shared instances created here.
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        blob_storage: Optional[IBlobStorage] = None,
        remote_store: Optional[IRemoteStore] = None,
        platform_online: bool = True,
    ):
        """
        Initialize the data layer.

        Args:
            config: Configuration (default: loaded from the environment)
            blob_storage: Backend for the local database image
            remote_store: Authoritative remote store
            platform_online: Initial platform connectivity
        """
        self.config = config or get_config()

        if blob_storage is None:
            if self.config.storage_path == ":memory:":
                blob_storage = MemoryBlobStorage()
            else:
                blob_storage = SQLiteBlobStorage(self.config.storage_path)
        self.blob_storage = blob_storage

        self.remote_store = remote_store or PostgrestRemoteStore(self.config)
        self.local_store = LocalStore(self.blob_storage, self.config.storage_key)
        self.network_monitor = NetworkMonitor(
            self.config,
            blob_storage=self.blob_storage,
            remote_store=self.remote_store,
            platform_online=platform_online,
        )
        self.sync_queue = SyncQueue(self.local_store, self.config)
        self.sync_engine = SyncEngine(
            self.config, self.sync_queue, self.remote_store, self.network_monitor
        )
        self.network_monitor.set_sync_engine(self.sync_engine)

        deps = (self.local_store, self.remote_store, self.sync_queue, self.network_monitor)
        self.users = UserRepository(*deps)
        self.quiz_attempts = QuizAttemptRepository(*deps)
        self.achievements = UserAchievementRepository(*deps)
        self.custom_quizzes = CustomQuizRepository(*deps)
        self.notes = NoteRepository(*deps)
        self.todos = TodoRepository(*deps)
        self.pomodoro_sessions = PomodoroSessionRepository(*deps)
        self.pomodoro_settings = PomodoroSettingsRepository(*deps)
        self.notifications = NotificationRepository(*deps)
        self.bug_reports = BugReportRepository(*deps)
        self.activity_logs = ActivityLogRepository(*deps)
        self.app_settings = AppSettingsRepository(*deps)
        self.user_settings = UserSettingsRepository(*deps)
        self.login_history = LoginHistoryRepository(*deps)

        self._started = False

    async def start(self) -> None:
        """Open storage and the remote session."""
        if self._started:
            return

        await self.blob_storage.initialize()
        await self.local_store.initialize()
        await self.network_monitor.initialize()
        await self.remote_store.start()

        self._started = True
        logger.info(
            f"Data layer started (remote: "
            f"{'configured' if self.config.remote_enabled else 'none'}, "
            f"online: {self.network_monitor.is_online})"
        )

    def activate_user(self, user_id: str, periodic: bool = True, probe: bool = True) -> None:
        """Make a user the target of reconnect and periodic syncs."""
        self.network_monitor.set_active_user(user_id)
        if periodic:
            self.sync_engine.start_periodic_sync(user_id)
        if probe:
            self.network_monitor.start_probing()

    async def sync_now(self, user_id: Optional[str] = None) -> Optional[SyncReport]:
        """Run a sync pass immediately if online."""
        user_id = user_id or self.network_monitor.active_user_id
        if not user_id or not self.network_monitor.is_online:
            return None
        return await self.sync_engine.sync_all(user_id)

    async def logout(self, user_id: str) -> None:
        """Stop background syncing and remove the user's local data."""
        await self.sync_engine.stop_periodic_sync()
        await self.network_monitor.stop_probing()
        self.network_monitor.set_active_user(None)
        await self.local_store.clear_user_data(user_id)

    async def get_status(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        status: Dict[str, Any] = {"network": self.network_monitor.get_status()}
        user_id = user_id or self.network_monitor.active_user_id
        if user_id:
            status["sync"] = await self.sync_engine.get_sync_status(user_id)
        return status

    async def close(self) -> None:
        """Stop background tasks and release resources."""
        await self.sync_engine.close()
        await self.network_monitor.close()

        for name, closer in (
            ("remote store", self.remote_store.stop),
            ("local store", self.local_store.close),
            ("blob storage", self.blob_storage.close),
        ):
            try:
                await closer()
            except Exception as e:
                logger.error(f"Error closing {name}: {e}")

        self._started = False
        logger.info("Data layer closed")

    async def __aenter__(self) -> "DataLayer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
