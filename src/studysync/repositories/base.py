"""
Generic record repository.

Every entity repository follows the same contract: try the remote store,
write the result through to the local store; if the remote is unreachable or
rejects the call, serve or write the local store and queue the mutation for
replay. Methods return RepositoryResult values and never raise for data
errors.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Generic, List, Optional, Set, Tuple, Type, TypeVar, Union

from ..errors import ErrorKind, RepositoryResult
from ..models import Entity
from ..services.local_store import LocalStore, bool_to_int, generate_id, int_to_bool, now_iso
from ..services.network_monitor import NetworkMonitor
from ..services.remote_store import IRemoteStore, RemoteError
from ..services.sync_queue import SyncOperation, SyncQueue

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

Record = Dict[str, Any]


@dataclass(frozen=True)
class TableSpec:
    """Storage description of one entity table."""

    table: str
    model: Type[Entity]
    bool_fields: Tuple[str, ...] = ()
    json_fields: Dict[str, Callable[[], Any]] = field(default_factory=dict)
    order: Tuple[Tuple[str, bool], ...] = (("created_at", True),)
    key_column: str = "id"
    upsert_key: Optional[str] = None
    owner_column: Optional[str] = "user_id"
    timestamp_fields: Tuple[str, ...] = ()

    @property
    def columns(self) -> List[str]:
        return [f.name for f in fields(self.model)]


def decode_json(value: Any, default: Callable[[], Any], context: str = "") -> Any:
    """Decode JSON text, falling back to the empty default."""
    if value is None or value == "":
        return default()
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.warning(f"Malformed JSON in {context or 'field'}, using empty default")
        return default()


class RecordRepository(Generic[E]):
    """Remote-first repository with local fallback and queued replay."""

    spec: TableSpec

    def __init__(
        self,
        local_store: LocalStore,
        remote_store: IRemoteStore,
        sync_queue: SyncQueue,
        network_monitor: NetworkMonitor,
    ):
        self.local = local_store
        self.remote = remote_store
        self.queue = sync_queue
        self.network = network_monitor

    @property
    def table(self) -> str:
        return self.spec.table

    # Field conversion

    def to_local_row(self, record: Record) -> Record:
        """Convert native values to the local 0/1 and JSON text representation."""
        row = {}
        for key, value in record.items():
            if key in self.spec.bool_fields:
                value = bool_to_int(value) if value is not None else None
            elif key in self.spec.json_fields:
                value = json.dumps(decode_json(value, self.spec.json_fields[key]))
            row[key] = value
        return row

    def from_local_row(self, row: Record) -> Record:
        record = dict(row)
        for name in self.spec.bool_fields:
            if name in record and record[name] is not None:
                record[name] = int_to_bool(record[name])
        for name, default in self.spec.json_fields.items():
            if name in record:
                record[name] = decode_json(record[name], default, f"{self.table}.{name}")
        return record

    def to_remote_row(self, record: Record) -> Record:
        """Convert to native booleans and structures for the remote store."""
        row = {}
        for key, value in record.items():
            if key in self.spec.bool_fields and value is not None:
                value = bool(int_to_bool(value))
            elif key in self.spec.json_fields:
                value = decode_json(value, self.spec.json_fields[key], f"{self.table}.{key}")
            row[key] = value
        return row

    def from_remote_row(self, row: Record) -> Record:
        return self.to_remote_row(row)

    def to_entity(self, record: Record) -> E:
        return self.spec.model.from_dict(record)  # type: ignore[return-value]

    def _known_columns(self, record: Record) -> Record:
        columns = set(self.spec.columns)
        return {key: value for key, value in record.items() if key in columns}

    # Local store helpers

    def _where(
        self, filters: Optional[Record] = None, ilike: Optional[Dict[str, str]] = None
    ) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        for column, value in (filters or {}).items():
            if value is None:
                clauses.append(f"{column} IS NULL")
                continue
            if column in self.spec.bool_fields:
                value = bool_to_int(value)
            clauses.append(f"{column} = ?")
            params.append(value)
        for column, value in (ilike or {}).items():
            clauses.append(f"LOWER({column}) = LOWER(?)")
            params.append(value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def _order_by(self) -> str:
        if not self.spec.order:
            return ""
        parts = [f"{column} {'DESC' if desc else 'ASC'}" for column, desc in self.spec.order]
        return " ORDER BY " + ", ".join(parts)

    async def _local_select(
        self,
        filters: Optional[Record] = None,
        ilike: Optional[Dict[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        where, params = self._where(filters, ilike)
        sql = f"SELECT * FROM {self.table}{where}{self._order_by()}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = await self.local.query(sql, params)
        return [self.from_local_row(row) for row in rows]

    async def _local_find_one(
        self, filters: Optional[Record] = None, ilike: Optional[Dict[str, str]] = None
    ) -> Optional[Record]:
        rows = await self._local_select(filters, ilike, limit=1)
        return rows[0] if rows else None

    def _fill_timestamps(self, record: Record) -> Record:
        if not record.get("created_at"):
            record["created_at"] = now_iso()
        if not record.get("updated_at"):
            record["updated_at"] = record["created_at"]
        return record

    async def _local_insert(self, record: Record, replace: bool = False) -> None:
        row = self.to_local_row(self._fill_timestamps(self._known_columns(record)))
        columns = list(row.keys())
        placeholders = ", ".join("?" for _ in columns)
        verb = "INSERT OR REPLACE" if replace else "INSERT"
        await self.local.execute(
            f"{verb} INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})",
            [row[column] for column in columns],
        )

    async def _pending_record_ids(self) -> Set[str]:
        rows = await self.local.query(
            "SELECT DISTINCT record_id FROM sync_queue WHERE table_name = ? AND synced = 0",
            (self.table,),
        )
        return {row["record_id"] for row in rows}

    async def _has_pending(self, record_id: str) -> bool:
        """Whether the record still has queued writes waiting for replay."""
        row = await self.local.query_one(
            "SELECT 1 FROM sync_queue"
            " WHERE table_name = ? AND record_id = ? AND synced = 0 LIMIT 1",
            (self.table, record_id),
        )
        return row is not None

    async def _refresh_local(self, records: List[Record]) -> None:
        """Write remote rows through to the local store.

        Rows with unsynced local changes are left alone so queued edits stay
        visible until they are replayed.
        """
        if not records:
            return
        try:
            pending = await self._pending_record_ids()
            grouped: Dict[Tuple[str, ...], List[List[Any]]] = {}
            for record in records:
                if str(record.get(self.spec.key_column)) in pending:
                    continue
                row = self.to_local_row(self._fill_timestamps(self._known_columns(dict(record))))
                columns = tuple(row.keys())
                grouped.setdefault(columns, []).append([row[column] for column in columns])

            for columns, values in grouped.items():
                placeholders = ", ".join("?" for _ in columns)
                await self.local.execute_many(
                    f"INSERT OR REPLACE INTO {self.table} ({', '.join(columns)}) "
                    f"VALUES ({placeholders})",
                    values,
                )
        except Exception as e:
            logger.warning(f"Failed to refresh local {self.table}: {e}")

    # Queue helpers

    def _owner_of(self, record: Optional[Record]) -> Optional[str]:
        if record and self.spec.owner_column:
            owner = record.get(self.spec.owner_column)
            if owner:
                return str(owner)
        return self.network.active_user_id

    async def _enqueue(
        self,
        owner: Optional[str],
        record_id: str,
        operation: SyncOperation,
        payload: Optional[Record] = None,
    ) -> None:
        if not owner:
            raise ValueError(f"No owning user for queued {operation.value} on {self.table}")
        await self.queue.enqueue(owner, self.table, record_id, operation, payload)

    def _log_remote_failure(self, action: str, error: Optional[RemoteError]) -> None:
        if error is None:
            return
        if error.is_connectivity:
            logger.debug(f"Remote unreachable during {action} on {self.table}: {error}")
        else:
            logger.warning(f"Remote rejected {action} on {self.table}: {error}")

    # Operations

    def _prepare_new(self, data: Union[E, Record]) -> Record:
        record = data.to_dict() if isinstance(data, Entity) else dict(data)
        if not record.get("id"):
            record["id"] = generate_id()
        now = now_iso()
        record["created_at"] = record.get("created_at") or now
        record["updated_at"] = now
        for name in self.spec.timestamp_fields:
            if not record.get(name):
                record[name] = now
        for name, default in self.spec.json_fields.items():
            if record.get(name) is None:
                record[name] = default()
        # Round-trip through the model to apply its defaults and check required fields
        return self.spec.model.from_dict(record).to_dict()

    async def _on_remote_create_error(
        self, record: Record, error: RemoteError
    ) -> Optional[RepositoryResult[E]]:
        """Hook for entities that handle specific remote errors on create."""
        return None

    async def create(self, data: Union[E, Record]) -> RepositoryResult[E]:
        """Create a record remotely, or locally with a queued INSERT."""
        try:
            record = self._prepare_new(data)
        except TypeError as e:
            return RepositoryResult.fail(ErrorKind.VALIDATION, f"Invalid {self.table} record: {e}")

        if self.network.is_online:
            result = await self.remote.insert(self.table, self.to_remote_row(record))
            if result.ok:
                stored = self.from_remote_row(result.data) if result.data else record
                await self._refresh_local([stored])
                return RepositoryResult.ok(self.to_entity(stored), "remote")

            assert result.error is not None
            handled = await self._on_remote_create_error(record, result.error)
            if handled is not None:
                return handled
            self._log_remote_failure("create", result.error)

        return await self._create_local(record)

    async def _create_local(self, record: Record) -> RepositoryResult[E]:
        try:
            await self._local_insert(record)
            await self._enqueue(
                self._owner_of(record),
                str(record[self.spec.key_column]),
                SyncOperation.INSERT,
                self.to_remote_row(record),
            )
        except sqlite3.IntegrityError as e:
            return RepositoryResult.fail(
                ErrorKind.VALIDATION, f"Duplicate {self.table} record: {e}"
            )
        except Exception as e:
            logger.error(f"Local create failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        return RepositoryResult.ok(self.to_entity(record), "local")

    async def find_one(
        self, filters: Record, ilike: Optional[Dict[str, str]] = None
    ) -> RepositoryResult[E]:
        """Find a single record, remote first."""
        if self.network.is_online:
            result = await self.remote.select_one(
                self.table, filters=self.to_remote_row(filters), ilike=ilike
            )
            if result.ok and result.data:
                record = self.from_remote_row(result.data)
                await self._refresh_local([record])
                return RepositoryResult.ok(self.to_entity(record), "remote")
            self._log_remote_failure("read", result.error)

        try:
            row = await self._local_find_one(filters, ilike)
        except Exception as e:
            logger.error(f"Local read failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        return RepositoryResult.ok(self.to_entity(row) if row else None, "local")

    async def find_many(
        self, filters: Optional[Record] = None, limit: Optional[int] = None
    ) -> RepositoryResult[List[E]]:
        """List records in the entity's order, remote first."""
        if self.network.is_online:
            result = await self.remote.select(
                self.table,
                filters=self.to_remote_row(filters or {}),
                order=self.spec.order,
                limit=limit,
            )
            if result.ok:
                records = [self.from_remote_row(row) for row in result.data or []]
                await self._refresh_local(records)
                return RepositoryResult.ok([self.to_entity(r) for r in records], "remote")
            self._log_remote_failure("list", result.error)

        try:
            rows = await self._local_select(filters, limit=limit)
        except Exception as e:
            logger.error(f"Local list failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        return RepositoryResult.ok([self.to_entity(row) for row in rows], "local")

    async def get(self, record_id: str) -> RepositoryResult[E]:
        return await self.find_one({self.spec.key_column: record_id})

    async def list_by_user(self, user_id: str) -> RepositoryResult[List[E]]:
        return await self.find_many({"user_id": user_id})

    async def update(
        self, record_id: str, changes: Record, user_id: Optional[str] = None
    ) -> RepositoryResult[E]:
        """Apply changes remotely, or locally with a queued UPDATE."""
        protected = {self.spec.key_column, "id", "created_at"}
        clean = {
            key: value
            for key, value in self._known_columns(changes).items()
            if key not in protected
        }
        clean["updated_at"] = now_iso()

        try:
            # Older queued writes must reach the remote first
            pending = await self._has_pending(record_id)
        except Exception as e:
            logger.error(f"Local read failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        if self.network.is_online and not pending:
            result = await self.remote.update(
                self.table, {self.spec.key_column: record_id}, self.to_remote_row(clean)
            )
            if result.ok and result.data:
                record = self.from_remote_row(result.data)
                await self._refresh_local([record])
                return RepositoryResult.ok(self.to_entity(record), "remote")
            self._log_remote_failure("update", result.error)

        return await self._update_local(record_id, clean, user_id)

    async def _update_local(
        self, record_id: str, changes: Record, user_id: Optional[str]
    ) -> RepositoryResult[E]:
        row = self.to_local_row(changes)
        assignments = ", ".join(f"{column} = ?" for column in row)
        try:
            updated = await self.local.execute(
                f"UPDATE {self.table} SET {assignments} WHERE {self.spec.key_column} = ?",
                [*row.values(), record_id],
            )
            if updated == 0:
                return RepositoryResult.ok(None, "local")

            record = await self._local_find_one({self.spec.key_column: record_id})
            await self._enqueue(
                user_id or self._owner_of(record),
                record_id,
                SyncOperation.UPDATE,
                self.to_remote_row(changes),
            )
        except sqlite3.IntegrityError as e:
            return RepositoryResult.fail(ErrorKind.VALIDATION, f"Invalid {self.table} update: {e}")
        except Exception as e:
            logger.error(f"Local update failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        return RepositoryResult.ok(self.to_entity(record) if record else None, "local")

    async def delete(self, record_id: str, user_id: Optional[str] = None) -> RepositoryResult[bool]:
        """Delete remotely and locally; queue a DELETE unless the remote delete succeeded."""
        try:
            pending = await self._has_pending(record_id)
        except Exception as e:
            logger.error(f"Local read failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        remote_deleted = False
        if self.network.is_online and not pending:
            result = await self.remote.delete(self.table, {self.spec.key_column: record_id})
            remote_deleted = result.ok
            self._log_remote_failure("delete", result.error)

        try:
            existing = await self._local_find_one({self.spec.key_column: record_id})
            await self.local.execute(
                f"DELETE FROM {self.table} WHERE {self.spec.key_column} = ?", (record_id,)
            )
            if not remote_deleted:
                await self._enqueue(
                    user_id or self._owner_of(existing), record_id, SyncOperation.DELETE
                )
        except Exception as e:
            logger.error(f"Local delete failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        return RepositoryResult.ok(True, "remote" if remote_deleted else "local")

    async def save(
        self, data: Union[E, Record], user_id: Optional[str] = None
    ) -> RepositoryResult[E]:
        """Insert or replace the single row identified by the upsert key."""
        upsert_key = self.spec.upsert_key or self.spec.key_column
        record = data.to_dict() if isinstance(data, Entity) else dict(data)
        if not record.get(upsert_key):
            return RepositoryResult.fail(ErrorKind.VALIDATION, f"{upsert_key} is required")

        try:
            existing = await self._local_find_one({upsert_key: record[upsert_key]})
        except Exception as e:
            logger.error(f"Local read failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        if existing:
            record = {**existing, **{k: v for k, v in record.items() if v is not None}}
            record["id"] = existing.get("id") or record.get("id")
            record["created_at"] = existing.get("created_at") or record.get("created_at")
        try:
            record = self._prepare_new(record)
        except TypeError as e:
            return RepositoryResult.fail(ErrorKind.VALIDATION, f"Invalid {self.table} record: {e}")

        try:
            pending = await self._has_pending(str(record[self.spec.key_column]))
        except Exception as e:
            logger.error(f"Local read failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        if self.network.is_online and not pending:
            result = await self.remote.upsert(
                self.table, self.to_remote_row(record), on_conflict=upsert_key
            )
            if result.ok:
                stored = self.from_remote_row(result.data) if result.data else record
                await self._refresh_local([stored])
                return RepositoryResult.ok(self.to_entity(stored), "remote")
            self._log_remote_failure("save", result.error)

        try:
            await self._local_insert(record, replace=True)
            await self._enqueue(
                user_id or self._owner_of(record),
                str(record[self.spec.key_column]),
                SyncOperation.INSERT,
                self.to_remote_row(record),
            )
        except Exception as e:
            logger.error(f"Local save failed for {self.table}: {e}")
            return RepositoryResult.fail(ErrorKind.LOCAL_STORE, str(e))

        return RepositoryResult.ok(self.to_entity(record), "local")
