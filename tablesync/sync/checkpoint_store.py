"""Checkpoint persistence for incremental pulls."""

from datetime import datetime, timezone

import structlog

from tablesync.models.checkpoint import BEGINNING_OF_TIME, Checkpoint
from tablesync.models.query import as_utc
from tablesync.models.table import PULLTIME_TABLE, PULLTIME_TABLE_NAME
from tablesync.storage.local_store import LocalStoreInterface

log = structlog.stdlib.get_logger()


class CheckpointStore:
    """Manages incremental pull checkpoints in the local store."""

    def __init__(self, store: LocalStoreInterface):
        """
        Initialize checkpoint store.

        Args:
            store: Local store holding the pulltime table
        """
        self._store: LocalStoreInterface = store

    async def initialize(self) -> None:
        """Define the pulltime table. Safe to call repeatedly."""
        await self._store.define_table(PULLTIME_TABLE)
        log.info("checkpoint_store_initialized", table=PULLTIME_TABLE_NAME)

    async def get(self, query_id: str | None) -> Checkpoint | None:
        """
        Read the checkpoint row for an incremental pull.

        Args:
            query_id: Incremental pull ID, or None for a vanilla pull

        Returns:
            Checkpoint if one has been saved, None otherwise
        """
        if query_id is None:
            return None

        row = await self._store.lookup(PULLTIME_TABLE_NAME, query_id, suppress_not_found=True)
        if row is None:
            return None
        return Checkpoint.from_row(row)

    async def load(self, query_id: str | None) -> datetime:
        """
        Load the high-water-mark a pull should start from.

        Vanilla pulls and incremental pulls that never completed a page start
        from the beginning of time.

        Args:
            query_id: Incremental pull ID, or None for a vanilla pull

        Returns:
            Cursor timestamp for the first page

        Raises:
            StorageError: If the local store lookup fails
        """
        checkpoint = await self.get(query_id)
        if checkpoint is None:
            log.info("no_checkpoint_found", query_id=query_id)
            return BEGINNING_OF_TIME

        log.info(
            "checkpoint_loaded",
            query_id=query_id,
            table=checkpoint.table_name,
            high_water_mark=checkpoint.high_water_mark,
        )
        return as_utc(checkpoint.high_water_mark)

    async def save(
        self, query_id: str | None, table_name: str, high_water_mark: datetime
    ) -> Checkpoint | None:
        """
        Record the high-water-mark of an incremental pull.

        Does nothing for vanilla pulls. Rewriting the same value is harmless, so
        a retried save leaves the row as a single save would.

        Args:
            query_id: Incremental pull ID, or None for a vanilla pull
            table_name: Remote table the pull targets
            high_water_mark: Latest change timestamp known to be fully pulled

        Returns:
            The saved checkpoint, or None for a vanilla pull

        Raises:
            StorageError: If the local store upsert fails
        """
        if query_id is None:
            return None

        now = datetime.now(timezone.utc)
        existing = await self.get(query_id)
        checkpoint = Checkpoint(
            identity=query_id,
            table_name=table_name,
            high_water_mark=high_water_mark,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        await self._store.upsert(PULLTIME_TABLE_NAME, checkpoint.to_row())

        log.debug(
            "checkpoint_saved",
            query_id=query_id,
            table=table_name,
            high_water_mark=high_water_mark,
        )
        return checkpoint
