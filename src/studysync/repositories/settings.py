"""
Settings repositories.

Both tables hold a single row per key: the app-wide settings singleton and one
settings document per user. Writes are upserts on that key.
"""

from typing import Any, Dict, Optional

from ..errors import RepositoryResult
from ..models import AppSettings, UserSettings
from ..services.schema import APP_SETTINGS_ID
from .base import RecordRepository, TableSpec


class AppSettingsRepository(RecordRepository[AppSettings]):
    spec = TableSpec(
        table="app_settings",
        model=AppSettings,
        bool_fields=("maintenance_mode", "allow_user_quiz_creation", "enable_offline_mode"),
        order=(),
        upsert_key="id",
        owner_column=None,
    )

    async def get_settings(self) -> RepositoryResult[AppSettings]:
        """Get the settings singleton, falling back to defaults."""
        result = await self.get(APP_SETTINGS_ID)
        if result.success and result.data is None:
            return RepositoryResult.ok(AppSettings(id=APP_SETTINGS_ID), "local")
        return result

    async def update_settings(
        self, changes: Dict[str, Any], user_id: Optional[str] = None
    ) -> RepositoryResult[AppSettings]:
        """
        Change app-wide settings.

        Args:
            changes: Columns to change
            user_id: Acting user; offline changes are queued under this user
        """
        return await self.save({**changes, "id": APP_SETTINGS_ID}, user_id=user_id)


class UserSettingsRepository(RecordRepository[UserSettings]):
    spec = TableSpec(
        table="user_settings",
        model=UserSettings,
        json_fields={"settings": dict},
        order=(),
        key_column="user_id",
        upsert_key="user_id",
    )

    async def get_for_user(self, user_id: str) -> RepositoryResult[UserSettings]:
        return await self.get(user_id)

    async def save_settings(
        self, user_id: str, settings: Dict[str, Any]
    ) -> RepositoryResult[UserSettings]:
        return await self.save({"user_id": user_id, "settings": settings}, user_id=user_id)
