"""Shared fixtures for pull synchronization tests."""

import pytest
from fakes import RecordingStore

from tablesync.models.table import synced_table
from tablesync.storage.operation_log import InMemoryOperationLog


@pytest.fixture
def store() -> RecordingStore:
    """Recording store with the todoitem table defined."""
    return RecordingStore([synced_table("todoitem")])


@pytest.fixture
def operation_log() -> InMemoryOperationLog:
    return InMemoryOperationLog()
