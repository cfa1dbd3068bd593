"""User achievement repository."""

import logging
from typing import Any, Dict, List, Sequence

from ..errors import ErrorKind, RepositoryResult
from ..models import UserAchievement
from ..services.local_store import now_iso
from .base import RecordRepository, TableSpec

logger = logging.getLogger(__name__)


class UserAchievementRepository(RecordRepository[UserAchievement]):
    spec = TableSpec(
        table="user_achievements",
        model=UserAchievement,
        bool_fields=("unlocked",),
        order=(("created_at", False),),
    )

    async def ensure_for_user(
        self, user_id: str, definitions: Sequence[Dict[str, Any]]
    ) -> RepositoryResult[List[UserAchievement]]:
        """
        Create the achievement rows a user is missing.

        Args:
            user_id: Owner of the achievements
            definitions: Achievement definitions carrying achievement_id, title,
                description, icon, color and max_progress

        Returns:
            All achievement rows of the user after creation
        """
        current = await self.list_by_user(user_id)
        if not current.success:
            return current

        known = {a.achievement_id for a in current.data or []}
        created = 0
        for definition in definitions:
            if definition["achievement_id"] in known:
                continue
            result = await self.create({**definition, "user_id": user_id})
            if not result.success:
                logger.warning(
                    f"Could not create achievement {definition['achievement_id']} "
                    f"for user {user_id}: {result.error}"
                )
                continue
            known.add(definition["achievement_id"])
            created += 1

        if created:
            logger.info(f"Created {created} achievements for user {user_id}")
        return await self.list_by_user(user_id)

    async def update_progress(
        self, record_id: str, progress: int
    ) -> RepositoryResult[UserAchievement]:
        """Set progress, unlocking the achievement once it reaches max_progress."""
        current = await self.get(record_id)
        if not current.success or current.data is None:
            return current
        achievement = current.data

        changes: Dict[str, Any] = {"progress": progress}
        reached = bool(achievement.max_progress) and progress >= achievement.max_progress
        if not achievement.unlocked and reached:
            changes["unlocked"] = True
            changes["unlocked_at"] = now_iso()
        return await self.update(record_id, changes, user_id=achievement.user_id)

    async def unlock(self, record_id: str) -> RepositoryResult[UserAchievement]:
        if not record_id:
            return RepositoryResult.fail(ErrorKind.VALIDATION, "Achievement id is required")
        return await self.update(record_id, {"unlocked": True, "unlocked_at": now_iso()})
