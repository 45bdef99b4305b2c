"""SQLite implementation of the local store."""

import asyncio
import json
import re
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, TypeVar

import structlog

from tablesync.exceptions import StorageError
from tablesync.models.table import ID_COLUMN, TableDefinition
from tablesync.storage.local_store import LocalStoreInterface, RecordId, Row, as_row_list

log = structlog.stdlib.get_logger()

T = TypeVar("T")

_TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SqliteStore(LocalStoreInterface):
    """Local store backed by a SQLite database file.

    Each record is kept as a JSON document keyed by its id. Columns declared as
    ``date`` in the table definition are converted back to datetimes when read.
    Blocking sqlite calls run in a worker thread so the event loop is never
    blocked.
    """

    def __init__(self, database_path: str = "tablesync.db"):
        """
        Initialize SQLite store.

        Args:
            database_path: Path to the database file, or ":memory:"
        """
        self._database_path: str = database_path
        self._connection: sqlite3.Connection | None = None
        self._definitions: dict[str, TableDefinition] = {}
        self._lock = threading.Lock()
        log.info("sqlite_store_initialized", database_path=database_path)

    async def init(self) -> None:
        """Open the database connection. Safe to call more than once."""
        await self._run(self._open)

    async def close(self) -> None:
        """Close the database connection."""
        await self._run(self._close)

    async def define_table(self, definition: TableDefinition) -> None:
        if not _TABLE_NAME_PATTERN.match(definition.name):
            raise StorageError(f"Invalid table name: {definition.name!r}")

        def _define() -> None:
            connection = self._open()
            with connection:
                connection.execute(
                    f'CREATE TABLE IF NOT EXISTS "{definition.name}" '
                    "(id TEXT PRIMARY KEY, body TEXT NOT NULL)"
                )
            self._definitions[definition.name] = definition

        await self._run(_define)
        log.info("table_defined", table=definition.name, store="sqlite")

    async def lookup(
        self, table_name: str, record_id: RecordId, suppress_not_found: bool = False
    ) -> Row | None:
        definition = self._get_definition(table_name)

        def _lookup() -> str | None:
            cursor = self._open().execute(
                f'SELECT body FROM "{table_name}" WHERE id = ?', (_encode_id(record_id),)
            )
            result = cursor.fetchone()
            return result[0] if result else None

        body = await self._run(_lookup)
        if body is None:
            if suppress_not_found:
                return None
            raise StorageError(f"Record {record_id!r} not found in table {table_name}")

        return _decode_row(body, definition)

    async def delete(self, table_name: str, record_ids: Iterable[RecordId]) -> None:
        self._get_definition(table_name)
        keys = [(_encode_id(record_id),) for record_id in record_ids]
        if not keys:
            return

        def _delete() -> None:
            connection = self._open()
            with connection:
                connection.executemany(f'DELETE FROM "{table_name}" WHERE id = ?', keys)

        await self._run(_delete)
        log.debug("records_deleted", table=table_name, count=len(keys))

    async def upsert(self, table_name: str, rows: Row | Iterable[Row]) -> None:
        definition = self._get_definition(table_name)
        rows = as_row_list(rows)
        for row in rows:
            if row.get(ID_COLUMN) is None:
                raise StorageError(f"Cannot upsert a record without an id into {table_name}")
        if not rows:
            return

        def _upsert() -> None:
            connection = self._open()
            with connection:
                for row in rows:
                    key = _encode_id(row[ID_COLUMN])
                    existing = connection.execute(
                        f'SELECT body FROM "{table_name}" WHERE id = ?', (key,)
                    ).fetchone()
                    merged = _decode_row(existing[0], definition) if existing else {}
                    merged.update(row)
                    connection.execute(
                        f'INSERT OR REPLACE INTO "{table_name}" (id, body) VALUES (?, ?)',
                        (key, json.dumps(merged, default=_encode_value)),
                    )

        await self._run(_upsert)
        log.debug("records_upserted", table=table_name, count=len(rows))

    def _open(self) -> sqlite3.Connection:
        if self._connection is None:
            if self._database_path != ":memory:":
                Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self._database_path, check_same_thread=False)
        return self._connection

    def _close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _get_definition(self, table_name: str) -> TableDefinition:
        if table_name not in self._definitions:
            raise StorageError(f"Table {table_name} is not defined")
        return self._definitions[table_name]

    async def _run(self, func: Callable[[], T]) -> T:
        def _locked() -> T:
            with self._lock:
                return func()

        try:
            return await asyncio.to_thread(_locked)
        except sqlite3.Error as e:
            log.error("sqlite_operation_failed", database_path=self._database_path, error=str(e))
            raise StorageError(f"SQLite operation failed: {e}") from e


def _encode_id(record_id: RecordId) -> str:
    # JSON keeps string "1" and integer 1 distinct
    return json.dumps(record_id)


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode_row(body: str, definition: TableDefinition) -> Row:
    row: Row = json.loads(body)
    for column in definition.date_columns():
        value = row.get(column)
        if isinstance(value, str):
            row[column] = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return row
