"""
SyncEngine for replaying queued local mutations against the remote store.

This module drains the sync queue in creation order, classifies each remote
outcome, and runs either on a periodic timer or when connectivity returns.
Only one pass runs at a time per process.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Tuple

from .remote_store import IRemoteStore, RemoteResult, is_conflict_error
from .sync_queue import SyncOperation, SyncQueue, SyncQueueItem, sanitize_payload

if TYPE_CHECKING:
    from .network_monitor import NetworkMonitor

logger = logging.getLogger(__name__)

# Tables holding one row per key; INSERTs are replayed as upserts on that key
UPSERT_KEYS: Dict[str, str] = {
    "user_settings": "user_id",
    "pomodoro_settings": "user_id",
    "app_settings": "id",
}

# Column that queue record ids refer to, when it is not "id"
RECORD_KEYS: Dict[str, str] = {
    "user_settings": "user_id",
}


class SyncState(Enum):
    """State of the sync engine."""

    IDLE = "idle"
    SYNCING = "syncing"


class SyncItemStatus(Enum):
    """Outcome of replaying one queue item."""

    SYNCED = "synced"
    CONFLICT = "conflict"  # duplicate key, accepted as already applied
    FAILED = "failed"
    DEFERRED = "deferred"  # earlier item for the same record did not sync
    SKIPPED = "skipped"  # backing off or dead-lettered


@dataclass
class SyncItemResult:
    """Result of replaying one queue item."""

    item_id: str
    table_name: str
    record_id: str
    operation: SyncOperation
    status: SyncItemStatus
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status in (SyncItemStatus.SYNCED, SyncItemStatus.CONFLICT)


@dataclass
class SyncReport:
    """Summary of one sync pass."""

    user_id: str
    started_at: datetime
    results: List[SyncItemResult] = field(default_factory=list)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    def _count(self, *statuses: SyncItemStatus) -> int:
        return sum(1 for r in self.results if r.status in statuses)

    @property
    def total_items(self) -> int:
        return len(self.results)

    @property
    def synced_items(self) -> int:
        return self._count(SyncItemStatus.SYNCED, SyncItemStatus.CONFLICT)

    @property
    def conflict_items(self) -> int:
        return self._count(SyncItemStatus.CONFLICT)

    @property
    def failed_items(self) -> int:
        return self._count(SyncItemStatus.FAILED)

    @property
    def deferred_items(self) -> int:
        return self._count(SyncItemStatus.DEFERRED, SyncItemStatus.SKIPPED)

    @property
    def success_rate(self) -> float:
        """Calculate replay success rate."""
        if self.total_items == 0:
            return 0.0
        return self.synced_items / self.total_items

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()


class SyncEngine:
    """
    Drains the sync queue against the remote store.

    Features:
    - Single-flight passes (concurrent triggers collapse into one)
    - Strictly sequential replay in creation order
    - Duplicate-key errors on INSERT accepted as idempotent success
    - Backoff and dead-letter handling through the queue
    - Periodic timer and reconnect trigger
    """

    def __init__(
        self,
        config: Any,
        sync_queue: SyncQueue,
        remote_store: IRemoteStore,
        network_monitor: Optional["NetworkMonitor"] = None,
    ):
        """
        Initialize SyncEngine.

        Args:
            config: Configuration with sync settings
            sync_queue: Queue of pending mutations
            remote_store: Authoritative remote store
            network_monitor: Connectivity state consulted by the periodic timer
        """
        self.config = config
        self.queue = sync_queue
        self.remote = remote_store
        self.network_monitor = network_monitor

        self.sync_interval = getattr(config, "sync_interval_seconds", 60.0)

        self._syncing = False
        self._periodic_task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()
        self.last_report: Optional[SyncReport] = None

    @property
    def state(self) -> SyncState:
        return SyncState.SYNCING if self._syncing else SyncState.IDLE

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    async def sync_all(self, user_id: str) -> Optional[SyncReport]:
        """
        Replay every unsynced queue item for a user.

        Args:
            user_id: Owner of the queue items

        Returns:
            SyncReport for the pass, or None if a pass was already running
            or the remote store is known to be unreachable
        """
        if self._syncing:
            logger.debug("Sync already in progress, skipping")
            return None

        if self.network_monitor is not None and not self.network_monitor.is_online:
            logger.debug("Offline, skipping sync pass")
            return None

        self._syncing = True
        report = SyncReport(user_id=user_id, started_at=datetime.now(timezone.utc))

        try:
            items = await self.queue.get_pending(user_id)
            if items:
                logger.info(f"Syncing {len(items)} queued changes for user {user_id}")

            blocked: Set[Tuple[str, str]] = set()
            now = datetime.now(timezone.utc)

            for item in items:
                key = (item.table_name, item.record_id)

                if key in blocked:
                    report.results.append(self._result(item, SyncItemStatus.DEFERRED))
                    continue

                if not self.queue.is_ready(item, now):
                    blocked.add(key)
                    report.results.append(self._result(item, SyncItemStatus.SKIPPED))
                    continue

                result = await self._replay_item(item)
                if not result.success:
                    blocked.add(key)
                report.results.append(result)

        except Exception as e:
            logger.error(f"Sync pass failed for user {user_id}: {e}", exc_info=True)
            report.error = str(e)
        finally:
            self._syncing = False
            report.completed_at = datetime.now(timezone.utc)
            self.last_report = report

        if report.total_items:
            logger.info(
                f"Sync pass finished: {report.synced_items}/{report.total_items} synced, "
                f"{report.failed_items} failed, {report.deferred_items} deferred "
                f"({report.duration_seconds:.2f}s)"
            )
        return report

    @staticmethod
    def _result(
        item: SyncQueueItem, status: SyncItemStatus, error: Optional[str] = None
    ) -> SyncItemResult:
        return SyncItemResult(
            item_id=item.id,
            table_name=item.table_name,
            record_id=item.record_id,
            operation=item.operation,
            status=status,
            error=error,
        )

    async def _replay_item(self, item: SyncQueueItem) -> SyncItemResult:
        """Apply one queue item remotely and record the outcome."""
        try:
            response = await self._dispatch(item)
        except Exception as e:
            logger.error(f"Unexpected error replaying queue item {item.id}: {e}", exc_info=True)
            await self.queue.record_failure(item.id, str(e))
            return self._result(item, SyncItemStatus.FAILED, str(e))

        if response.ok:
            await self.queue.mark_synced(item.id)
            return self._result(item, SyncItemStatus.SYNCED)

        error = str(response.error)

        if item.operation == SyncOperation.INSERT and is_conflict_error(response.error):
            await self.queue.mark_synced(item.id)
            logger.warning(
                f"Insert of {item.table_name}/{item.record_id} already present remotely, "
                f"accepting as synced: {error}"
            )
            return self._result(item, SyncItemStatus.CONFLICT, error)

        await self.queue.record_failure(item.id, error)
        logger.warning(
            f"Failed to replay {item.operation.value} {item.table_name}/{item.record_id}: {error}"
        )
        return self._result(item, SyncItemStatus.FAILED, error)

    async def _dispatch(self, item: SyncQueueItem) -> RemoteResult[Any]:
        table = item.table_name
        payload = sanitize_payload(table, item.payload) or {}
        key_column = RECORD_KEYS.get(table, "id")

        if item.operation == SyncOperation.INSERT:
            if table in UPSERT_KEYS:
                return await self.remote.upsert(table, payload, on_conflict=UPSERT_KEYS[table])
            return await self.remote.insert(table, payload)

        if item.operation == SyncOperation.UPDATE:
            return await self.remote.update(table, {key_column: item.record_id}, payload)

        return await self.remote.delete(table, {key_column: item.record_id})

    # Triggers

    def start_periodic_sync(self, user_id: str, interval: Optional[float] = None) -> None:
        """Start the fixed-interval sync timer for a user."""
        if self._periodic_task is not None and not self._periodic_task.done():
            logger.warning("Periodic sync is already running")
            return

        self._shutdown_event.clear()
        self._periodic_task = asyncio.create_task(
            self._periodic_loop(user_id, interval or self.sync_interval)
        )
        logger.info(f"Started periodic sync every {interval or self.sync_interval:.0f}s")

    async def stop_periodic_sync(self) -> None:
        """Stop the sync timer, letting a running pass finish."""
        self._shutdown_event.set()

        if self._periodic_task:
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                pass
            self._periodic_task = None
            logger.info("Stopped periodic sync")

    async def _periodic_loop(self, user_id: str, interval: float) -> None:
        try:
            while not self._shutdown_event.is_set():
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                    break
                except asyncio.TimeoutError:
                    pass

                try:
                    await self.sync_all(user_id)
                except Exception as e:
                    logger.error(f"Error in periodic sync: {e}")

        except asyncio.CancelledError:
            logger.info("Periodic sync cancelled")
            raise

    async def get_sync_status(self, user_id: str) -> Dict[str, Any]:
        """Get queue and engine status for a user."""
        status: Dict[str, Any] = {
            "state": self.state.value,
            "queue": await self.queue.get_queue_status(user_id),
            "periodic": self._periodic_task is not None and not self._periodic_task.done(),
        }
        if self.last_report is not None:
            status["last_sync"] = {
                "completed_at": (
                    self.last_report.completed_at.isoformat()
                    if self.last_report.completed_at
                    else None
                ),
                "synced": self.last_report.synced_items,
                "failed": self.last_report.failed_items,
                "error": self.last_report.error,
            }
        return status

    async def close(self) -> None:
        """Clean up resources."""
        await self.stop_periodic_sync()
        logger.info("SyncEngine closed")
