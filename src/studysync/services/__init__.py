"""
Services package for StudySync.

This package contains the storage, connectivity and synchronization
services the repositories are built on.
"""

from .blob_storage import IBlobStorage, MemoryBlobStorage, SQLiteBlobStorage
from .local_store import LocalStore
from .network_monitor import NetworkMonitor
from .remote_store import IRemoteStore, PostgrestRemoteStore, RemoteError, RemoteResult
from .sync_engine import SyncEngine, SyncItemStatus, SyncReport, SyncState
from .sync_queue import SyncOperation, SyncQueue, SyncQueueItem

__all__ = [
    "IBlobStorage",
    "MemoryBlobStorage",
    "SQLiteBlobStorage",
    "LocalStore",
    "NetworkMonitor",
    "IRemoteStore",
    "PostgrestRemoteStore",
    "RemoteError",
    "RemoteResult",
    "SyncEngine",
    "SyncItemStatus",
    "SyncReport",
    "SyncState",
    "SyncOperation",
    "SyncQueue",
    "SyncQueueItem",
]
