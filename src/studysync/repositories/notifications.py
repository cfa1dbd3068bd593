"""Notification repository."""

import logging
from typing import List

from ..errors import RepositoryResult
from ..models import Notification
from .base import RecordRepository, TableSpec

logger = logging.getLogger(__name__)


class NotificationRepository(RecordRepository[Notification]):
    spec = TableSpec(
        table="notifications",
        model=Notification,
        bool_fields=("read", "synced"),
        json_fields={"metadata": dict},
        order=(("timestamp", True),),
        timestamp_fields=("timestamp",),
    )

    async def mark_as_read(self, notification_id: str) -> RepositoryResult[Notification]:
        return await self.update(notification_id, {"read": True})

    async def mark_all_as_read(self, user_id: str) -> RepositoryResult[int]:
        """Mark every unread notification of a user as read.

        Returns:
            Number of notifications changed
        """
        unread = await self.find_many({"user_id": user_id, "read": False})
        if not unread.success:
            return RepositoryResult.fail(unread.error_kind, unread.error)  # type: ignore[arg-type]

        changed = 0
        for notification in unread.data or []:
            result = await self.update(notification.id, {"read": True}, user_id=user_id)
            if result.success and result.data is not None:
                changed += 1
            else:
                logger.warning(
                    f"Could not mark notification {notification.id} read: {result.error}"
                )
        return RepositoryResult.ok(changed, unread.source or "local")

    async def unread_count(self, user_id: str) -> RepositoryResult[int]:
        unread = await self.find_many({"user_id": user_id, "read": False})
        if not unread.success:
            return RepositoryResult.fail(unread.error_kind, unread.error)  # type: ignore[arg-type]
        return RepositoryResult.ok(len(unread.data or []), unread.source or "local")
