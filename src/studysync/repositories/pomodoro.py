"""Pomodoro session and settings repositories."""

from typing import Any, Dict, List

from ..errors import RepositoryResult
from ..models import PomodoroSession, PomodoroSettings
from .base import RecordRepository, TableSpec


class PomodoroSessionRepository(RecordRepository[PomodoroSession]):
    spec = TableSpec(
        table="pomodoro_sessions",
        model=PomodoroSession,
        bool_fields=("synced",),
        order=(("completed_at", True),),
    )

    async def list_by_date(
        self, user_id: str, date: str
    ) -> RepositoryResult[List[PomodoroSession]]:
        return await self.find_many({"user_id": user_id, "date": date})


class PomodoroSettingsRepository(RecordRepository[PomodoroSettings]):
    """One settings row per user, upserted on user_id."""

    spec = TableSpec(
        table="pomodoro_settings",
        model=PomodoroSettings,
        order=(),
        upsert_key="user_id",
    )

    async def get_for_user(self, user_id: str) -> RepositoryResult[PomodoroSettings]:
        return await self.find_one({"user_id": user_id})

    async def save_for_user(
        self, user_id: str, changes: Dict[str, Any]
    ) -> RepositoryResult[PomodoroSettings]:
        return await self.save({**changes, "user_id": user_id}, user_id=user_id)
