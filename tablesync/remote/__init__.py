"""Remote table sources"""

from tablesync.remote.table_client import (
    FEATURE_INCREMENTAL_PULL,
    FEATURE_OFFLINE_SYNC,
    HttpTableClient,
    RemoteTableInterface,
)

__all__ = [
    "FEATURE_INCREMENTAL_PULL",
    "FEATURE_OFFLINE_SYNC",
    "HttpTableClient",
    "RemoteTableInterface",
]
