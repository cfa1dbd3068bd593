"""Bug report and activity log repositories used by admin tooling."""

from typing import List, Optional

from ..errors import RepositoryResult
from ..models import ActivityLog, BugReport
from .base import RecordRepository, TableSpec

USER_ACTIVITY_LIMIT = 100


class BugReportRepository(RecordRepository[BugReport]):
    spec = TableSpec(
        table="bug_reports",
        model=BugReport,
        json_fields={"screenshots": list, "platform": dict},
    )

    async def list_all(self) -> RepositoryResult[List[BugReport]]:
        return await self.find_many()

    async def update_status(
        self, report_id: str, status: str, user_id: Optional[str] = None
    ) -> RepositoryResult[BugReport]:
        return await self.update(report_id, {"status": status}, user_id=user_id)


class ActivityLogRepository(RecordRepository[ActivityLog]):
    spec = TableSpec(
        table="activity_logs",
        model=ActivityLog,
        order=(("timestamp", True),),
        timestamp_fields=("timestamp",),
    )

    async def log(
        self, user_id: str, action: str, type: str, details: Optional[str] = None
    ) -> RepositoryResult[ActivityLog]:
        """Record an action performed by a user."""
        return await self.create(
            {"user_id": user_id, "action": action, "type": type, "details": details}
        )

    async def list_by_user(self, user_id: str) -> RepositoryResult[List[ActivityLog]]:
        return await self.find_many({"user_id": user_id}, limit=USER_ACTIVITY_LIMIT)

    async def list_all(self, limit: Optional[int] = None) -> RepositoryResult[List[ActivityLog]]:
        return await self.find_many(limit=limit)
