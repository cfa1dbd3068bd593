"""Login history repository."""

import logging
from datetime import datetime, timezone
from typing import Optional

from ..errors import RepositoryResult
from ..models import LoginHistory
from ..services.remote_store import RemoteError
from .base import Record, RecordRepository, TableSpec

logger = logging.getLogger(__name__)


class LoginHistoryRepository(RecordRepository[LoginHistory]):
    """One row per user and calendar day."""

    spec = TableSpec(
        table="login_history",
        model=LoginHistory,
        order=(("login_date", True),),
    )

    async def record_login(
        self, user_id: str, login_date: Optional[str] = None
    ) -> RepositoryResult[LoginHistory]:
        """Record that a user logged in on a day (default: today, UTC)."""
        login_date = login_date or datetime.now(timezone.utc).date().isoformat()

        if not self.network.is_online:
            try:
                existing = await self._local_find_one(
                    {"user_id": user_id, "login_date": login_date}
                )
            except Exception as e:
                logger.error(f"Local read failed for {self.table}: {e}")
                existing = None
            if existing:
                return RepositoryResult.ok(self.to_entity(existing), "local")

        return await self.create({"user_id": user_id, "login_date": login_date})

    async def _on_remote_create_error(
        self, record: Record, error: RemoteError
    ) -> Optional[RepositoryResult[LoginHistory]]:
        if not error.is_conflict:
            return None

        # Already recorded remotely; mirror the stored row locally
        found = await self.remote.select_one(
            self.table,
            filters={"user_id": record["user_id"], "login_date": record["login_date"]},
        )
        stored = self.from_remote_row(found.data) if found.ok and found.data else record
        await self._refresh_local([stored])
        return RepositoryResult.ok(self.to_entity(stored), "remote")
