"""Data models for the pull synchronization client."""

from tablesync.models.checkpoint import BEGINNING_OF_TIME, Checkpoint
from tablesync.models.config import (
    AppConfig,
    LoggingConfig,
    PullConfig,
    RemoteConfig,
    StoreConfig,
    TableConfig,
)
from tablesync.models.query import OrderClause, PageQuery, SyncQuery, format_timestamp
from tablesync.models.table import ColumnType, TableDefinition, synced_table

__all__ = [
    "BEGINNING_OF_TIME",
    "Checkpoint",
    "AppConfig",
    "LoggingConfig",
    "PullConfig",
    "RemoteConfig",
    "StoreConfig",
    "TableConfig",
    "OrderClause",
    "PageQuery",
    "SyncQuery",
    "format_timestamp",
    "ColumnType",
    "TableDefinition",
    "synced_table",
]
