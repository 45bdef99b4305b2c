"""Reconciliation of pulled pages with pending local operations."""

import re
from typing import Any

import structlog

from tablesync.exceptions import DataIntegrityError, ValidationError
from tablesync.models.table import DELETED_COLUMN, ID_COLUMN
from tablesync.storage.local_store import LocalStoreInterface
from tablesync.storage.operation_log import PendingOperationLogInterface
from tablesync.sync.models import ReconcileResult
from tablesync.sync.serializer import TaskSerializer

log = structlog.stdlib.get_logger()

MAX_ID_LENGTH: int = 255

_INVALID_ID_CHARACTERS = re.compile(r'[+"/?`\\]|[\u0000-\u001F]|[\u007F-\u009F]')


def is_valid_id(record_id: Any) -> bool:
    """
    Check whether a value can identify a record.

    Valid ids are positive integers, or non-blank strings of at most 255
    characters that contain no control characters, none of ``+ " / ? ` \\``,
    and are not ``.`` or ``..``.
    """
    if isinstance(record_id, bool):
        return False

    if isinstance(record_id, int):
        return record_id > 0

    if isinstance(record_id, str):
        if not record_id.strip() or len(record_id) > MAX_ID_LENGTH:
            return False
        if record_id in (".", ".."):
            return False
        return _INVALID_ID_CHARACTERS.search(record_id) is None

    return False


class Reconciler:
    """Decides which pulled records may be applied locally, and applies them."""

    def __init__(
        self,
        store: LocalStoreInterface,
        operation_log: PendingOperationLogInterface,
        store_serializer: TaskSerializer,
    ):
        """
        Initialize reconciler.

        Args:
            store: Local store pulled records are written to
            operation_log: Log of local changes not yet pushed
            store_serializer: Serializer shared with every other writer of the store
        """
        self._store: LocalStoreInterface = store
        self._operation_log: PendingOperationLogInterface = operation_log
        self._store_serializer: TaskSerializer = store_serializer

    async def process_page(self, table_name: str, records: list[dict[str, Any]]) -> ReconcileResult:
        """
        Reconcile a page and apply it to the local store.

        Runs on the store serializer, so the pending operation check and the
        writes it permits cannot interleave with other writers of the store.

        Args:
            table_name: Table the records belong to
            records: Page of pulled records

        Returns:
            ReconcileResult describing what was applied

        Raises:
            ValidationError: If a record has an invalid id
            DataIntegrityError: If a record has no boolean delete flag
            StorageError: If the local store fails
        """

        async def _process() -> ReconcileResult:
            result = await self.reconcile(table_name, records)
            await self.apply(table_name, result)
            return result

        return await self._store_serializer.run(_process)

    async def reconcile(self, table_name: str, records: list[dict[str, Any]]) -> ReconcileResult:
        """
        Classify a page of pulled records into deletes and upserts.

        If any record of the page has a pending local operation, no record of
        the page is applied: local changes win until they are pushed.

        Args:
            table_name: Table the records belong to
            records: Page of pulled records

        Returns:
            ReconcileResult with the delete and upsert batches

        Raises:
            ValidationError: If any record has an invalid id (fails the whole page)
            DataIntegrityError: If any record has no boolean delete flag
        """
        if not records:
            return ReconcileResult()

        for record in records:
            if not isinstance(record, dict) or not is_valid_id(record.get(ID_COLUMN)):
                log.error("invalid_pulled_record_id", table=table_name, record=record)
                raise ValidationError("Pulled record does not have a valid ID")

        pending_operations = await self._operation_log.read_page_pending_operations(
            table_name, records
        )
        if pending_operations:
            log.info(
                "page_skipped_pending_operations",
                table=table_name,
                page_size=len(records),
                pending_operations=len(pending_operations),
            )
            return ReconcileResult(pending_operations=len(pending_operations))

        ids_to_delete = []
        records_to_upsert = []

        for record in records:
            deleted = record.get(DELETED_COLUMN)
            if deleted is True:
                ids_to_delete.append(record[ID_COLUMN])
            elif deleted is False:
                records_to_upsert.append(record)
            else:
                log.error(
                    "missing_delete_flag",
                    table=table_name,
                    record_id=record[ID_COLUMN],
                    value=deleted,
                )
                raise DataIntegrityError(
                    f"Required system property '{DELETED_COLUMN}' is missing. "
                    "Pull cannot work without it."
                )

        result = ReconcileResult(ids_to_delete=ids_to_delete, records_to_upsert=records_to_upsert)

        log.info(
            "page_reconciled",
            table=table_name,
            deletes=len(result.ids_to_delete),
            upserts=len(result.records_to_upsert),
        )
        return result

    async def apply(self, table_name: str, result: ReconcileResult) -> None:
        """
        Write a reconciled page to the local store.

        Deletes are applied first; upserts are not attempted if they fail.

        Raises:
            StorageError: If the delete or upsert fails
        """
        if result.ids_to_delete:
            await self._store.delete(table_name, result.ids_to_delete)
        if result.records_to_upsert:
            await self._store.upsert(table_name, result.records_to_upsert)
