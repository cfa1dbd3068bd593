"""Remote data service adapter for StudySync."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

import aiohttp
from pydantic import BaseModel, Field

from ..config import SyncConfig
from ..errors import ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

Row = Dict[str, Any]
Order = Sequence[Tuple[str, bool]]  # (column, descending)

CONFLICT_CODES = ("23505", "PGRST116")
UNAVAILABLE_STATUSES = (502, 503, 504)


class RemoteError(BaseModel):
    """Structured error reported by (or about) the remote service."""

    message: str = Field(description="Human readable error message")
    code: Optional[str] = Field(default=None, description="Service error code")
    status: Optional[int] = Field(default=None, description="HTTP status, if any")
    details: Optional[str] = Field(default=None, description="Extra detail from the service")
    kind: ErrorKind = Field(default=ErrorKind.REMOTE_REJECTION)

    @property
    def is_connectivity(self) -> bool:
        """Check if the remote was unreachable rather than rejecting the call."""
        return self.kind == ErrorKind.CONNECTIVITY

    @property
    def is_conflict(self) -> bool:
        """Check if this is a duplicate-key class error."""
        return is_conflict_error(self)

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} ({self.code})"
        return self.message


@dataclass
class RemoteResult(Generic[T]):
    """Outcome of a remote call: data on success, error otherwise."""

    data: Optional[T] = None
    error: Optional[RemoteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_conflict_error(error: Optional[RemoteError]) -> bool:
    """Classify duplicate-key errors by code or by message text."""
    if error is None:
        return False
    if error.code in CONFLICT_CODES:
        return True
    message = error.message.lower()
    return "duplicate" in message or "conflict" in message


def connectivity_error(message: str) -> RemoteError:
    return RemoteError(message=message, kind=ErrorKind.CONNECTIVITY)


class IRemoteStore(ABC):
    """
    Abstract interface for the authoritative data service.

    Implementations never raise for network or server failures; every
    outcome is reported through a RemoteResult.
    """

    @abstractmethod
    async def start(self) -> None:
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> RemoteResult[List[Row]]:
        """Select rows matching equality (and case-insensitive) filters."""
        pass

    @abstractmethod
    async def select_one(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
    ) -> RemoteResult[Row]:
        """Select a single row; data is None when nothing matches."""
        pass

    @abstractmethod
    async def insert(self, table: str, row: Row) -> RemoteResult[Row]:
        """Insert a row and return the stored representation."""
        pass

    @abstractmethod
    async def update(
        self, table: str, filters: Dict[str, Any], changes: Row
    ) -> RemoteResult[Row]:
        """Update matching rows; data is None when nothing matched."""
        pass

    @abstractmethod
    async def delete(self, table: str, filters: Dict[str, Any]) -> RemoteResult[None]:
        pass

    @abstractmethod
    async def upsert(self, table: str, row: Row, on_conflict: str) -> RemoteResult[Row]:
        """Insert a row or merge it into the row sharing ``on_conflict``."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check whether the service is reachable."""
        pass


def _encode_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{'true' if value else 'false'}"
    return f"eq.{value}"


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_query_params(
    filters: Optional[Dict[str, Any]] = None,
    ilike: Optional[Dict[str, str]] = None,
    order: Optional[Order] = None,
    limit: Optional[int] = None,
) -> Dict[str, str]:
    """Translate filters into PostgREST query parameters."""
    params: Dict[str, str] = {}
    for column, value in (filters or {}).items():
        params[column] = _encode_value(value)
    for column, pattern in (ilike or {}).items():
        params[column] = f"ilike.{_escape_like(pattern)}"
    if order:
        params["order"] = ",".join(
            f"{column}.{'desc' if descending else 'asc'}" for column, descending in order
        )
    if limit is not None:
        params["limit"] = str(limit)
    return params


class PostgrestRemoteStore(IRemoteStore):
    """Remote store speaking the PostgREST HTTP dialect over aiohttp."""

    def __init__(self, config: SyncConfig) -> None:
        """Initialize the remote store.

        Args:
            config: Application configuration
        """
        self.config = config
        self.base_url = config.remote_url
        self.api_key = config.remote_api_key
        self.session: Optional[aiohttp.ClientSession] = None

    @property
    def headers(self) -> Dict[str, str]:
        """Get request headers with authentication."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def start(self) -> None:
        """Open the HTTP session."""
        if not self.session:
            connector = aiohttp.TCPConnector(limit=20)
            timeout = aiohttp.ClientTimeout(total=self.config.remote_timeout_seconds)
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers=self.headers,
            )
            logger.info(f"Remote store started: {self.base_url}")

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("Remote store stopped")

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if not self.session:
            await self.start()
        assert self.session is not None
        return self.session

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        prefer: Optional[str] = None,
    ) -> RemoteResult[Any]:
        """Make an API request, folding every failure into the result.

        Args:
            method: HTTP method
            table: Table (endpoint) name
            params: Query parameters
            json_body: Request body
            prefer: Value for the Prefer header

        Returns:
            RemoteResult with the decoded body or an error
        """
        if not self.base_url:
            return RemoteResult(error=connectivity_error("Remote store not configured"))

        session = await self._ensure_session()
        url = f"{self.base_url}/{table}"
        headers = {"Prefer": prefer} if prefer else {}

        try:
            async with session.request(
                method, url, params=params, json=json_body, headers=headers
            ) as response:
                if response.status == 204:
                    return RemoteResult(data=None)

                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None

                if response.status >= 400:
                    error = self._parse_error(response.status, data)
                    logger.debug(f"Remote {method} {table} failed: {response.status} - {error}")
                    return RemoteResult(error=error)

                return RemoteResult(data=data)

        except asyncio.TimeoutError:
            logger.warning(f"Request timeout for {method} {url}")
            return RemoteResult(error=connectivity_error(f"Request timeout for {table}"))
        except aiohttp.ClientError as e:
            logger.warning(f"Request failed for {method} {url}: {e}")
            return RemoteResult(error=connectivity_error(str(e) or type(e).__name__))

    def _parse_error(self, status: int, data: Any) -> RemoteError:
        body = data if isinstance(data, dict) else {}
        message = body.get("message") or f"HTTP {status}"
        code = body.get("code")
        details = body.get("details")

        if status in UNAVAILABLE_STATUSES and not code:
            kind = ErrorKind.CONNECTIVITY
        else:
            kind = ErrorKind.REMOTE_REJECTION

        error = RemoteError(
            message=message,
            code=str(code) if code is not None else None,
            status=status,
            details=str(details) if details is not None else None,
            kind=kind,
        )
        if error.is_conflict:
            error.kind = ErrorKind.CONFLICT
        return error

    @staticmethod
    def _first(result: RemoteResult[Any]) -> RemoteResult[Row]:
        if not result.ok:
            return RemoteResult(error=result.error)
        if isinstance(result.data, list):
            return RemoteResult(data=result.data[0] if result.data else None)
        return RemoteResult(data=result.data)

    # Table operations

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> RemoteResult[List[Row]]:
        params = {"select": "*", **build_query_params(filters, ilike, order, limit)}
        result = await self._request("GET", table, params=params)
        if result.ok and result.data is None:
            result.data = []
        return result

    async def select_one(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
    ) -> RemoteResult[Row]:
        result = await self.select(table, filters=filters, ilike=ilike, limit=1)
        return self._first(result)

    async def insert(self, table: str, row: Row) -> RemoteResult[Row]:
        result = await self._request(
            "POST", table, json_body=row, prefer="return=representation"
        )
        return self._first(result)

    async def update(
        self, table: str, filters: Dict[str, Any], changes: Row
    ) -> RemoteResult[Row]:
        result = await self._request(
            "PATCH",
            table,
            params=build_query_params(filters),
            json_body=changes,
            prefer="return=representation",
        )
        return self._first(result)

    async def delete(self, table: str, filters: Dict[str, Any]) -> RemoteResult[None]:
        result = await self._request("DELETE", table, params=build_query_params(filters))
        return RemoteResult(error=result.error)

    async def upsert(self, table: str, row: Row, on_conflict: str) -> RemoteResult[Row]:
        result = await self._request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json_body=row,
            prefer="resolution=merge-duplicates,return=representation",
        )
        return self._first(result)

    async def ping(self) -> bool:
        result = await self.select("app_settings", limit=1)
        if result.error is not None and result.error.is_connectivity:
            return False
        return True
