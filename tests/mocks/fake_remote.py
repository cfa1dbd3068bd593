"""
In-memory remote store.

Emulates the parts of the PostgREST dialect the data layer relies on: equality
and case-insensitive filters, ordering, limits, unique keys and upserts. A
switch takes it offline so every call reports a connectivity error.
"""

import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

from studysync.errors import ErrorKind
from studysync.services.remote_store import (
    IRemoteStore,
    Order,
    RemoteError,
    RemoteResult,
    Row,
)

logger = logging.getLogger(__name__)

USER_ID = "user-1"

PRIMARY_KEYS: Dict[str, str] = {"user_settings": "user_id"}

UNIQUE_KEYS: Dict[str, List[Tuple[str, ...]]] = {
    "users": [("username",)],
    "user_achievements": [("user_id", "achievement_id")],
    "pomodoro_settings": [("user_id",)],
    "login_history": [("user_id", "login_date")],
}


def duplicate_key_error(table: str, columns: Tuple[str, ...]) -> RemoteError:
    return RemoteError(
        message=(
            f'duplicate key value violates unique constraint "{table}_{"_".join(columns)}_key"'
        ),
        code="23505",
        status=409,
        kind=ErrorKind.CONFLICT,
    )


class FakeRemoteStore(IRemoteStore):
    """Remote store backed by dictionaries."""

    def __init__(self, online: bool = True):
        self.online = online
        self.tables: Dict[str, Dict[str, Row]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.rejections: Dict[Tuple[str, str], RemoteError] = {}
        self.started = False

    # Test controls

    def set_online(self, online: bool) -> None:
        self.online = online

    def reject(
        self, method: str, table: str, message: str = "permission denied", code: str = "42501"
    ) -> None:
        """Make every call of a method on a table fail with a rejection."""
        self.rejections[(method, table)] = RemoteError(message=message, code=code, status=403)

    def clear_rejections(self) -> None:
        self.rejections.clear()

    def rows(self, table: str) -> List[Row]:
        return [copy.deepcopy(row) for row in self.tables.get(table, {}).values()]

    def seed(self, table: str, row: Row) -> None:
        self._table(table)[str(row[self._pk(table)])] = copy.deepcopy(row)

    def calls_for(self, method: str, table: Optional[str] = None) -> int:
        return sum(1 for m, t in self.calls if m == method and (table is None or t == table))

    # Internals

    def _pk(self, table: str) -> str:
        return PRIMARY_KEYS.get(table, "id")

    def _table(self, table: str) -> Dict[str, Row]:
        return self.tables.setdefault(table, {})

    def _check(self, method: str, table: str) -> Optional[RemoteError]:
        self.calls.append((method, table))
        if not self.online:
            return RemoteError(message="Cannot connect to host", kind=ErrorKind.CONNECTIVITY)
        return self.rejections.get((method, table))

    @staticmethod
    def _matches(
        row: Row, filters: Optional[Dict[str, Any]], ilike: Optional[Dict[str, str]]
    ) -> bool:
        for column, value in (filters or {}).items():
            if row.get(column) != value:
                return False
        for column, pattern in (ilike or {}).items():
            if str(row.get(column, "")).lower() != pattern.lower():
                return False
        return True

    def _unique_violation(
        self, table: str, row: Row, ignore_pk: Optional[str] = None
    ) -> Optional[RemoteError]:
        pk = self._pk(table)
        for existing in self._table(table).values():
            if str(existing[pk]) == ignore_pk:
                continue
            for columns in UNIQUE_KEYS.get(table, []):
                if all(row.get(c) is not None and existing.get(c) == row.get(c) for c in columns):
                    return duplicate_key_error(table, columns)
        return None

    # IRemoteStore

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> RemoteResult[List[Row]]:
        error = self._check("select", table)
        if error:
            return RemoteResult(error=error)

        rows = [r for r in self._table(table).values() if self._matches(r, filters, ilike)]
        for column, descending in reversed(list(order or [])):
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return RemoteResult(data=copy.deepcopy(rows))

    async def select_one(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
    ) -> RemoteResult[Row]:
        result = await self.select(table, filters=filters, ilike=ilike, limit=1)
        if not result.ok:
            return RemoteResult(error=result.error)
        return RemoteResult(data=result.data[0] if result.data else None)

    async def insert(self, table: str, row: Row) -> RemoteResult[Row]:
        error = self._check("insert", table)
        if error:
            return RemoteResult(error=error)

        pk = self._pk(table)
        if str(row.get(pk)) in self._table(table):
            return RemoteResult(error=duplicate_key_error(table, (pk,)))
        violation = self._unique_violation(table, row)
        if violation:
            return RemoteResult(error=violation)

        self._table(table)[str(row[pk])] = copy.deepcopy(row)
        return RemoteResult(data=copy.deepcopy(row))

    async def update(self, table: str, filters: Dict[str, Any], changes: Row) -> RemoteResult[Row]:
        error = self._check("update", table)
        if error:
            return RemoteResult(error=error)

        updated = None
        for row in self._table(table).values():
            if self._matches(row, filters, None):
                row.update(copy.deepcopy(changes))
                updated = updated or copy.deepcopy(row)
        return RemoteResult(data=updated)

    async def delete(self, table: str, filters: Dict[str, Any]) -> RemoteResult[None]:
        error = self._check("delete", table)
        if error:
            return RemoteResult(error=error)

        rows = self._table(table)
        for key in [k for k, r in rows.items() if self._matches(r, filters, None)]:
            del rows[key]
        return RemoteResult()

    async def upsert(self, table: str, row: Row, on_conflict: str) -> RemoteResult[Row]:
        error = self._check("upsert", table)
        if error:
            return RemoteResult(error=error)

        rows = self._table(table)
        pk = self._pk(table)
        for key, existing in rows.items():
            if existing.get(on_conflict) == row.get(on_conflict):
                merged = {**existing, **copy.deepcopy(row)}
                del rows[key]
                rows[str(merged[pk])] = merged
                return RemoteResult(data=copy.deepcopy(merged))

        rows[str(row[pk])] = copy.deepcopy(row)
        return RemoteResult(data=copy.deepcopy(row))

    async def ping(self) -> bool:
        self.calls.append(("ping", ""))
        return self.online


async def go_offline(monitor, remote: FakeRemoteStore) -> None:
    remote.set_online(False)
    await monitor.set_platform_online(False)


async def go_online(monitor, remote: FakeRemoteStore) -> None:
    """Bring the remote back; the monitor transition triggers a sync pass."""
    remote.set_online(True)
    await monitor.set_platform_online(True)
