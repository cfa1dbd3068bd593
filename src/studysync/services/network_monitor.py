"""
NetworkMonitor - connectivity state for the offline-first data layer.

Combines the platform's reachability signal with a user-settable offline
override. Effective online means the platform is online and the override is
off; entering that state triggers a sync pass for the active user.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from .blob_storage import IBlobStorage
from .remote_store import IRemoteStore

if TYPE_CHECKING:
    from .sync_engine import SyncEngine

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], Awaitable[None]]

OFFLINE_MODE_KEY = "offline_mode"


class NetworkMonitor:
    """
    Connectivity state holder.

    The platform signal comes from set_platform_online() or from the optional
    probe task pinging the remote store.
    """

    def __init__(
        self,
        config: Any = None,
        blob_storage: Optional[IBlobStorage] = None,
        remote_store: Optional[IRemoteStore] = None,
        platform_online: bool = True,
    ):
        """Initialize NetworkMonitor."""
        self.config = config
        self.blob_storage = blob_storage
        self.remote_store = remote_store
        self.probe_interval = getattr(config, "connectivity_probe_interval_seconds", 30.0)

        self._platform_online = platform_online
        self._manual_offline = False
        self._listeners: List[ConnectivityListener] = []
        self._sync_engine: Optional["SyncEngine"] = None
        self._active_user_id: Optional[str] = None
        self._probe_task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()
        self._initialized = False

    async def initialize(self) -> None:
        """Restore the saved offline-mode preference."""
        if self._initialized:
            return

        if self.blob_storage is not None:
            saved = await self.blob_storage.get(OFFLINE_MODE_KEY)
            self._manual_offline = saved == b"1"
            if self._manual_offline:
                logger.info("Manual offline mode restored from saved preference")

        self._initialized = True

    @property
    def is_online(self) -> bool:
        """Effective online state."""
        return self._platform_online and not self._manual_offline

    @property
    def platform_online(self) -> bool:
        return self._platform_online

    @property
    def manual_offline(self) -> bool:
        return self._manual_offline

    @property
    def active_user_id(self) -> Optional[str]:
        return self._active_user_id

    def set_sync_engine(self, sync_engine: "SyncEngine") -> None:
        """Set the engine triggered on reconnect."""
        self._sync_engine = sync_engine

    def set_active_user(self, user_id: Optional[str]) -> None:
        self._active_user_id = user_id

    def add_listener(self, listener: ConnectivityListener) -> None:
        """Subscribe to effective online/offline transitions."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def set_platform_online(self, online: bool) -> None:
        """Record a platform connectivity change."""
        was_online = self.is_online
        if online != self._platform_online:
            logger.info(f"Platform connectivity: {'online' if online else 'offline'}")
        self._platform_online = online
        await self._handle_transition(was_online)

    async def set_manual_offline(self, enabled: bool) -> None:
        """Enable or disable the user's offline override and persist the choice."""
        was_online = self.is_online
        self._manual_offline = enabled

        if self.blob_storage is not None:
            await self.blob_storage.put(OFFLINE_MODE_KEY, b"1" if enabled else b"0")

        logger.info(f"Manual offline mode {'enabled' if enabled else 'disabled'}")
        await self._handle_transition(was_online)

    async def _handle_transition(self, was_online: bool) -> None:
        now_online = self.is_online
        if now_online == was_online:
            return

        logger.warning(f"Connectivity changed: {'online' if now_online else 'offline'}")

        for listener in list(self._listeners):
            try:
                await listener(now_online)
            except Exception as e:
                logger.error(f"Connectivity listener failed: {e}")

        if now_online and self._sync_engine is not None and self._active_user_id:
            await self._sync_engine.sync_all(self._active_user_id)

    async def check_connectivity(self) -> bool:
        """Probe the remote store once and update the platform state."""
        if self.remote_store is None:
            return self._platform_online

        try:
            reachable = await self.remote_store.ping()
        except Exception as e:
            logger.debug(f"Connectivity probe failed: {e}")
            reachable = False

        await self.set_platform_online(reachable)
        return reachable

    def start_probing(self, interval: Optional[float] = None) -> None:
        """Start periodic reachability probes of the remote store."""
        interval = interval or self.probe_interval
        if self.remote_store is None or not interval:
            logger.debug("Connectivity probing disabled")
            return
        if self._probe_task is not None and not self._probe_task.done():
            logger.warning("Connectivity probing is already running")
            return

        self._shutdown_event.clear()
        self._probe_task = asyncio.create_task(self._probe_loop(interval))
        logger.info(f"Started connectivity probing every {interval:.0f}s")

    async def stop_probing(self) -> None:
        self._shutdown_event.set()
        if self._probe_task:
            try:
                await self._probe_task
            except asyncio.CancelledError:
                pass
            self._probe_task = None

    async def _probe_loop(self, interval: float) -> None:
        while not self._shutdown_event.is_set():
            await self.check_connectivity()
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    def get_status(self) -> Dict[str, Any]:
        """Get the current connectivity state."""
        return {
            "online": self.is_online,
            "platform_online": self._platform_online,
            "manual_offline": self._manual_offline,
            "active_user_id": self._active_user_id,
            "probing": self._probe_task is not None and not self._probe_task.done(),
        }

    async def close(self) -> None:
        await self.stop_probing()
        self._listeners.clear()
        logger.info("NetworkMonitor closed")
