"""Local store interface and in-memory implementation."""

import copy
from abc import ABC, abstractmethod
from typing import Any, Iterable

import structlog

from tablesync.exceptions import StorageError
from tablesync.models.table import ID_COLUMN, TableDefinition

log = structlog.stdlib.get_logger()

Row = dict[str, Any]
RecordId = str | int


class LocalStoreInterface(ABC):
    """Abstract interface for the persisted local store.

    Every call is atomic on its own: a batched delete or upsert either applies
    to all given records or to none of them.
    """

    @abstractmethod
    async def define_table(self, definition: TableDefinition) -> None:
        """Create the table, or update its definition if it already exists.

        Args:
            definition: Table name and column definitions

        Raises:
            StorageError: If the table cannot be defined
        """
        pass

    @abstractmethod
    async def lookup(
        self, table_name: str, record_id: RecordId, suppress_not_found: bool = False
    ) -> Row | None:
        """Read a single record by id.

        Args:
            table_name: Name of the table
            record_id: Id of the record
            suppress_not_found: If True, return None for a missing record instead of failing

        Returns:
            The record, or None if it does not exist and suppress_not_found is set

        Raises:
            StorageError: If the table is unknown, the lookup fails, or the record
                is missing and suppress_not_found is not set
        """
        pass

    @abstractmethod
    async def delete(self, table_name: str, record_ids: Iterable[RecordId]) -> None:
        """Delete records by id. Ids that do not exist are ignored.

        Raises:
            StorageError: If the table is unknown or the delete fails
        """
        pass

    @abstractmethod
    async def upsert(self, table_name: str, rows: Row | Iterable[Row]) -> None:
        """Insert records, or merge their columns into existing records with the same id.

        Raises:
            StorageError: If the table is unknown, a record has no id, or the upsert fails
        """
        pass


def as_row_list(rows: Row | Iterable[Row]) -> list[Row]:
    """Accept a single record or an iterable of records."""
    if isinstance(rows, dict):
        return [rows]
    return list(rows)


class InMemoryStore(LocalStoreInterface):
    """Local store keeping all tables in process memory."""

    def __init__(self, definitions: Iterable[TableDefinition] = ()) -> None:
        """
        Initialize in-memory store.

        Args:
            definitions: Tables to define up front
        """
        self._definitions: dict[str, TableDefinition] = {}
        self._tables: dict[str, dict[RecordId, Row]] = {}
        for definition in definitions:
            self._definitions[definition.name] = definition
            self._tables[definition.name] = {}

    async def define_table(self, definition: TableDefinition) -> None:
        self._definitions[definition.name] = definition
        self._tables.setdefault(definition.name, {})
        log.debug("table_defined", table=definition.name, store="memory")

    async def lookup(
        self, table_name: str, record_id: RecordId, suppress_not_found: bool = False
    ) -> Row | None:
        table = self._get_table(table_name)
        row = table.get(record_id)
        if row is None:
            if suppress_not_found:
                return None
            raise StorageError(f"Record {record_id!r} not found in table {table_name}")
        return copy.deepcopy(row)

    async def delete(self, table_name: str, record_ids: Iterable[RecordId]) -> None:
        table = self._get_table(table_name)
        for record_id in record_ids:
            table.pop(record_id, None)

    async def upsert(self, table_name: str, rows: Row | Iterable[Row]) -> None:
        table = self._get_table(table_name)
        rows = as_row_list(rows)

        # Validate every record before touching the table
        for row in rows:
            if row.get(ID_COLUMN) is None:
                raise StorageError(f"Cannot upsert a record without an id into {table_name}")

        for row in rows:
            existing = table.setdefault(row[ID_COLUMN], {})
            existing.update(copy.deepcopy(row))

    def rows(self, table_name: str) -> list[Row]:
        """Snapshot of all records of a table."""
        return [copy.deepcopy(row) for row in self._get_table(table_name).values()]

    def _get_table(self, table_name: str) -> dict[RecordId, Row]:
        if table_name not in self._tables:
            raise StorageError(f"Table {table_name} is not defined")
        return self._tables[table_name]
