"""
StudySync - offline-first data layer for a student study app.

This package keeps a local relational copy of the user's data, serves reads
and writes from it whenever the remote data service is unreachable, and
replays queued changes once connectivity returns.
"""

__version__ = "1.0.0"
__author__ = "StudySync Team"

# Package-level imports for convenience
from .app import DataLayer
from .config import SyncConfig, get_config_manager
from .errors import ErrorKind, RepositoryResult
from .logger import get_logger

__all__ = [
    "DataLayer",
    "SyncConfig",
    "get_config_manager",
    "ErrorKind",
    "RepositoryResult",
    "get_logger",
]
