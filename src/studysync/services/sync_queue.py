"""
Sync queue service for StudySync.

This module provides the durable log of local mutations that have not yet
been confirmed against the remote store, kept inside the local store so it
survives restarts, with retry bookkeeping and dead-letter support.
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import SyncError
from .local_store import LocalStore, generate_id, now_iso

# Columns the remote schema does not have, per table
SANITIZED_FIELDS: Dict[str, tuple] = {
    "users": ("bio", "display_name", "displayName"),
}


class SyncOperation(str, Enum):
    """Mutation kinds recorded in the queue."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class SyncQueueItem:
    """Represents one queued mutation."""

    id: str
    user_id: str
    table_name: str
    record_id: str
    operation: SyncOperation
    payload: Optional[Dict[str, Any]]
    synced: bool
    retry_count: int
    last_error: Optional[str]
    created_at: str
    synced_at: Optional[str] = None
    last_attempt_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["operation"] = self.operation.value
        return data

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SyncQueueItem":
        """Create SyncQueueItem from a sync_queue row."""
        try:
            payload = json.loads(row["data"]) if row.get("data") else None
        except ValueError as e:
            raise SyncError(f"Unreadable payload for sync queue item {row['id']}: {e}") from e
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            table_name=row["table_name"],
            record_id=row["record_id"],
            operation=SyncOperation(row["operation"]),
            payload=payload,
            synced=bool(row["synced"]),
            retry_count=int(row["retry_count"] or 0),
            last_error=row.get("last_error"),
            created_at=row["created_at"],
            synced_at=row.get("synced_at"),
            last_attempt_at=row.get("last_attempt_at"),
        )


def sanitize_payload(
    table_name: str, payload: Optional[Dict[str, Any]]
) -> Optional[Dict[str, Any]]:
    """Strip fields that do not exist in the remote schema for a table."""
    if payload is None:
        return None
    dropped = SANITIZED_FIELDS.get(table_name, ())
    return {key: value for key, value in payload.items() if key not in dropped}


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SyncQueue:
    """Local-store backed queue of pending remote mutations."""

    def __init__(self, local_store: LocalStore, config: Any = None):
        """Initialize the sync queue.

        Args:
            local_store: Local store holding the sync_queue table
            config: Configuration object with retry settings
        """
        self.local_store = local_store
        self.logger = logging.getLogger(__name__)

        # Configuration with defaults
        self.max_retry_count = getattr(config, "sync_max_retry_count", 5)
        self.backoff_base_seconds = getattr(config, "sync_backoff_base_seconds", 30.0)
        self.backoff_max_seconds = getattr(config, "sync_backoff_max_seconds", 3600.0)

    async def enqueue(
        self,
        user_id: str,
        table_name: str,
        record_id: str,
        operation: SyncOperation,
        payload: Optional[Dict[str, Any]] = None,
    ) -> SyncQueueItem:
        """Append a mutation to the queue."""
        operation = SyncOperation(operation)
        clean_payload = sanitize_payload(table_name, payload)
        item = SyncQueueItem(
            id=generate_id(),
            user_id=user_id,
            table_name=table_name,
            record_id=record_id,
            operation=operation,
            payload=clean_payload,
            synced=False,
            retry_count=0,
            last_error=None,
            created_at=now_iso(),
        )

        await self.local_store.execute(
            """
            INSERT INTO sync_queue
            (id, user_id, table_name, record_id, operation, data, synced,
             retry_count, created_at)
            VALUES (?, ?, ?, ?, ?, ?, 0, 0, ?)
        """,
            (
                item.id,
                user_id,
                table_name,
                record_id,
                operation.value,
                json.dumps(clean_payload) if clean_payload is not None else None,
                item.created_at,
            ),
        )

        self.logger.debug(f"Queued {operation.value} {table_name}/{record_id} for user {user_id}")
        return item

    async def get_pending(self, user_id: str) -> List[SyncQueueItem]:
        """List unsynced items for a user, oldest first."""
        rows = await self.local_store.query(
            """
            SELECT * FROM sync_queue
            WHERE user_id = ? AND synced = 0
            ORDER BY created_at ASC, rowid ASC
        """,
            (user_id,),
        )
        return [SyncQueueItem.from_row(row) for row in rows]

    async def get_item(self, item_id: str) -> Optional[SyncQueueItem]:
        row = await self.local_store.query_one("SELECT * FROM sync_queue WHERE id = ?", (item_id,))
        return SyncQueueItem.from_row(row) if row else None

    async def mark_synced(self, item_id: str) -> None:
        """Mark an item as confirmed by the remote store."""
        await self.local_store.execute(
            "UPDATE sync_queue SET synced = 1, synced_at = ? WHERE id = ?",
            (now_iso(), item_id),
        )

    async def record_failure(self, item_id: str, error: str) -> None:
        """Increment the retry count and remember the last error."""
        await self.local_store.execute(
            """
            UPDATE sync_queue
            SET retry_count = retry_count + 1,
                last_error = ?,
                last_attempt_at = ?
            WHERE id = ? AND synced = 0
        """,
            (error, now_iso(), item_id),
        )

        item = await self.get_item(item_id)
        if item and self.is_dead_letter(item):
            self.logger.warning(
                f"Queue item {item_id} ({item.operation.value} {item.table_name}/"
                f"{item.record_id}) dead-lettered after {item.retry_count} retries: {error}"
            )

    async def clear(self, user_id: str) -> int:
        """Delete every queue item for a user (logout/reset only)."""
        removed = await self.local_store.execute(
            "DELETE FROM sync_queue WHERE user_id = ?", (user_id,)
        )
        self.logger.info(f"Cleared {removed} sync queue items for user {user_id}")
        return removed

    async def pending_count(self, user_id: str) -> int:
        row = await self.local_store.query_one(
            "SELECT COUNT(*) AS count FROM sync_queue WHERE user_id = ? AND synced = 0",
            (user_id,),
        )
        return int(row["count"]) if row else 0

    def is_dead_letter(self, item: SyncQueueItem) -> bool:
        """Check if an item exhausted its retries."""
        return not item.synced and item.retry_count >= self.max_retry_count

    def next_attempt_at(self, item: SyncQueueItem) -> Optional[datetime]:
        """Earliest time a failed item may be replayed again, or None if due now."""
        if item.retry_count == 0 or not item.last_attempt_at or self.backoff_base_seconds <= 0:
            return None
        delay = self.backoff_base_seconds * (2 ** (item.retry_count - 1))
        delay = min(delay, self.backoff_max_seconds)
        return _parse_time(item.last_attempt_at) + timedelta(seconds=delay)

    def is_ready(self, item: SyncQueueItem, now: Optional[datetime] = None) -> bool:
        """Check if an item may be replayed in the current pass."""
        if item.synced or self.is_dead_letter(item):
            return False
        due = self.next_attempt_at(item)
        if due is None:
            return True
        return (now or datetime.now(timezone.utc)) >= due

    async def get_dead_letters(self, user_id: str) -> List[SyncQueueItem]:
        """List unsynced items that will no longer be replayed."""
        rows = await self.local_store.query(
            """
            SELECT * FROM sync_queue
            WHERE user_id = ? AND synced = 0 AND retry_count >= ?
            ORDER BY created_at ASC, rowid ASC
        """,
            (user_id, self.max_retry_count),
        )
        return [SyncQueueItem.from_row(row) for row in rows]

    async def get_queue_status(self, user_id: str) -> Dict[str, int]:
        """Summarize the queue for a user."""
        row = await self.local_store.query_one(
            """
            SELECT
                SUM(CASE WHEN synced = 0 AND retry_count = 0 THEN 1 ELSE 0 END) AS pending,
                SUM(CASE WHEN synced = 0 AND retry_count > 0 AND retry_count < ?
                    THEN 1 ELSE 0 END) AS retrying,
                SUM(CASE WHEN synced = 0 AND retry_count >= ? THEN 1 ELSE 0 END) AS dead_letter,
                SUM(CASE WHEN synced = 1 THEN 1 ELSE 0 END) AS synced
            FROM sync_queue
            WHERE user_id = ?
        """,
            (self.max_retry_count, self.max_retry_count, user_id),
        )
        row = row or {}
        return {
            "pending": int(row.get("pending") or 0),
            "retrying": int(row.get("retrying") or 0),
            "dead_letter": int(row.get("dead_letter") or 0),
            "synced": int(row.get("synced") or 0),
        }
