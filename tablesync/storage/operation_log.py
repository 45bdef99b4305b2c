"""Pending operation log: local changes that have not been pushed yet."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

import structlog
from pydantic import BaseModel, Field

from tablesync.models.table import ID_COLUMN
from tablesync.storage.local_store import RecordId, Row

log = structlog.stdlib.get_logger()


class OperationAction(str, Enum):
    """Kind of local change."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class PendingOperation(BaseModel):
    """A local change to a record that is waiting to be pushed."""

    table_name: str = Field(default=..., description="Table the record belongs to")
    record_id: RecordId = Field(default=..., description="Id of the changed record")
    action: OperationAction = Field(default=..., description="Kind of change")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the change was made locally",
    )


class PendingOperationLogInterface(ABC):
    """Read access to the pending operation log needed by pull."""

    @abstractmethod
    async def read_pending_operations(
        self, table_name: str, record_id: RecordId
    ) -> list[PendingOperation]:
        """Pending operations for a single record."""
        pass

    @abstractmethod
    async def read_page_pending_operations(
        self, table_name: str, records: Iterable[Row]
    ) -> list[PendingOperation]:
        """Pending operations touching any of the given records.

        Args:
            table_name: Table the records belong to
            records: Pulled records; only their ids are used

        Returns:
            All pending operations for those records (empty if none)
        """
        pass


class InMemoryOperationLog(PendingOperationLogInterface):
    """Pending operation log kept in process memory."""

    def __init__(self) -> None:
        self._operations: list[PendingOperation] = []

    def add(
        self, table_name: str, record_id: RecordId, action: OperationAction
    ) -> PendingOperation:
        """Record a local change."""
        operation = PendingOperation(table_name=table_name, record_id=record_id, action=action)
        self._operations.append(operation)
        log.debug(
            "pending_operation_added",
            table=table_name,
            record_id=record_id,
            action=action.value,
        )
        return operation

    def remove(self, table_name: str, record_id: RecordId) -> int:
        """Forget all operations for a record, e.g. once they are pushed.

        Returns:
            Number of operations removed
        """
        before = len(self._operations)
        self._operations = [
            operation
            for operation in self._operations
            if not (operation.table_name == table_name and operation.record_id == record_id)
        ]
        return before - len(self._operations)

    async def read_pending_operations(
        self, table_name: str, record_id: RecordId
    ) -> list[PendingOperation]:
        return [
            operation
            for operation in self._operations
            if operation.table_name == table_name and operation.record_id == record_id
        ]

    async def read_page_pending_operations(
        self, table_name: str, records: Iterable[Row]
    ) -> list[PendingOperation]:
        record_ids = {record.get(ID_COLUMN) for record in records}
        return [
            operation
            for operation in self._operations
            if operation.table_name == table_name and operation.record_id in record_ids
        ]
