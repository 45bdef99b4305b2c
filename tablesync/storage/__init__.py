"""Local storage: persisted tables and the pending operation log"""

from tablesync.storage.local_store import InMemoryStore, LocalStoreInterface
from tablesync.storage.operation_log import (
    InMemoryOperationLog,
    OperationAction,
    PendingOperation,
    PendingOperationLogInterface,
)
from tablesync.storage.sqlite_store import SqliteStore

__all__ = [
    "InMemoryStore",
    "LocalStoreInterface",
    "InMemoryOperationLog",
    "OperationAction",
    "PendingOperation",
    "PendingOperationLogInterface",
    "SqliteStore",
]
