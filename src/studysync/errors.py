"""
Error taxonomy and result types for the StudySync data layer.

Repository methods report data errors through ``RepositoryResult`` values
instead of raising; the exception classes below are reserved for programmer
and infrastructure errors.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    """Classification of data-layer failures."""

    CONNECTIVITY = "connectivity"  # remote unreachable
    REMOTE_REJECTION = "remote_rejection"  # structured remote error
    CONFLICT = "conflict"  # duplicate key
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    LOCAL_STORE = "local_store"  # local fallback failed


class StudySyncError(Exception):
    """Base exception for StudySync errors."""

    pass


class LocalStoreError(StudySyncError):
    """Raised when the local store cannot be loaded or persisted."""

    pass


class SyncError(StudySyncError):
    """Raised for unrecoverable sync engine failures."""

    pass


@dataclass
class RepositoryResult(Generic[T]):
    """Typed outcome of a repository operation."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    source: Optional[str] = None  # "remote" or "local"

    @classmethod
    def ok(cls, data: Optional[T], source: str) -> "RepositoryResult[T]":
        return cls(success=True, data=data, source=source)

    @classmethod
    def fail(cls, kind: ErrorKind, error: str) -> "RepositoryResult[T]":
        return cls(success=False, error=error, error_kind=kind)

    @property
    def is_remote(self) -> bool:
        return self.source == "remote"
