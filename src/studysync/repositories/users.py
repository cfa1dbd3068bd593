"""User account repository."""

import logging
from typing import List, Optional, Union

from ..errors import ErrorKind, RepositoryResult
from ..models import Entity, User
from ..services.local_store import now_iso
from ..services.remote_store import RemoteError
from .base import Record, RecordRepository, TableSpec

logger = logging.getLogger(__name__)


def normalize_username(username: str) -> str:
    """Usernames compare trimmed and case-insensitively."""
    return username.strip().lower()


class UserRepository(RecordRepository[User]):
    spec = TableSpec(
        table="users",
        model=User,
        bool_fields=("is_blocked", "is_admin"),
        json_fields={"securityquestions": list},
        owner_column="id",
    )

    async def get_by_username(self, username: str) -> RepositoryResult[User]:
        """Look a user up by username, remote first."""
        return await self.find_one({}, ilike={"username": normalize_username(username)})

    async def create(self, data: Union[User, Record]) -> RepositoryResult[User]:
        """
        Create a user account.

        Rejects a username that already exists in the remote store (when
        reachable) or in the local store.
        """
        record = data.to_dict() if isinstance(data, Entity) else dict(data)
        username = (record.get("username") or "").strip()
        if not username:
            return RepositoryResult.fail(ErrorKind.VALIDATION, "Username is required")
        record["username"] = username

        existing = await self.get_by_username(username)
        if not existing.success:
            return RepositoryResult.fail(
                existing.error_kind or ErrorKind.LOCAL_STORE, existing.error or "Lookup failed"
            )
        if existing.data is not None:
            return RepositoryResult.fail(ErrorKind.VALIDATION, f"Username '{username}' is taken")

        return await super().create(record)

    async def _on_remote_create_error(
        self, record: Record, error: RemoteError
    ) -> Optional[RepositoryResult[User]]:
        if error.is_conflict:
            return RepositoryResult.fail(
                ErrorKind.VALIDATION, f"Username '{record.get('username')}' is taken"
            )
        return None

    async def list_all(self) -> RepositoryResult[List[User]]:
        return await self.find_many()

    async def update_last_active(self, user_id: str) -> RepositoryResult[User]:
        return await self.update(user_id, {"last_active": now_iso()})

    async def delete(self, record_id: str, user_id: Optional[str] = None) -> RepositoryResult[bool]:
        """Delete a user and its local settings row."""
        result = await super().delete(record_id, user_id=user_id or record_id)
        if not result.success:
            return result

        try:
            await self.local.execute("DELETE FROM user_settings WHERE user_id = ?", (record_id,))
        except Exception as e:
            logger.error(f"Failed to remove local settings for user {record_id}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        return result
