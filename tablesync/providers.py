"""Centralized provider module for local store and remote source implementations.

This module provides factory functions for the collaborators of the pull
manager. Modify these functions to swap implementations without changing
other code.

Default implementations:
- Local store: SqliteStore (local file, no external services required)
- Remote source: HttpTableClient (Azure Mobile Apps style REST tables)
"""

import structlog

from tablesync.exceptions import ConfigurationError
from tablesync.models.config import AppConfig, RemoteConfig, StoreConfig
from tablesync.remote.table_client import HttpTableClient, RemoteTableInterface
from tablesync.storage.local_store import InMemoryStore, LocalStoreInterface
from tablesync.storage.operation_log import InMemoryOperationLog, PendingOperationLogInterface
from tablesync.storage.sqlite_store import SqliteStore
from tablesync.sync.pull_manager import PullManager
from tablesync.sync.serializer import TaskSerializer

log = structlog.stdlib.get_logger()


def get_local_store(config: StoreConfig) -> LocalStoreInterface:
    """Get the configured local store implementation.

    Args:
        config: Store section of the application config

    Returns:
        LocalStoreInterface instance

    Raises:
        ConfigurationError: If the store type is not supported
    """
    log.info("initializing_local_store", store_type=config.type, path=config.path)

    if config.type == "sqlite":
        return SqliteStore(database_path=config.path)
    if config.type == "memory":
        return InMemoryStore()

    error_msg = f"Unsupported local store type: {config.type!r}"
    log.error("get_local_store_failed", error=error_msg)
    raise ConfigurationError(error_msg)


def get_remote_table(config: RemoteConfig) -> RemoteTableInterface:
    """Get the configured remote source implementation.

    Example - Swap to a custom transport:
        return MyTableClient(base_url=str(config.base_url))

    Args:
        config: Remote section of the application config

    Returns:
        RemoteTableInterface instance
    """
    log.info("initializing_remote_table", base_url=str(config.base_url))
    return HttpTableClient(
        base_url=str(config.base_url),
        api_version=config.api_version,
        timeout_seconds=config.timeout_seconds,
    )


def get_operation_log() -> PendingOperationLogInterface:
    """Get the pending operation log.

    The push half is not part of this client, so nothing is ever pending
    locally by default.
    """
    return InMemoryOperationLog()


def get_pull_manager(
    config: AppConfig,
    store: LocalStoreInterface | None = None,
    store_serializer: TaskSerializer | None = None,
) -> PullManager:
    """Build a pull manager from configuration.

    Args:
        config: Application configuration
        store: Optional local store (created from config if None)
        store_serializer: Optional serializer shared with other store writers

    Returns:
        PullManager wired to the configured collaborators
    """
    return PullManager(
        remote=get_remote_table(config.remote),
        store=store or get_local_store(config.store),
        operation_log=get_operation_log(),
        store_serializer=store_serializer,
    )
