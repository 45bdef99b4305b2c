"""Pull manager: drives incremental pulls from the remote source into the local store."""

from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from tablesync.exceptions import InvalidPageSizeError, ValidationError
from tablesync.models.query import PageQuery, SyncQuery
from tablesync.remote.table_client import (
    FEATURE_INCREMENTAL_PULL,
    FEATURE_OFFLINE_SYNC,
    RemoteTableInterface,
)
from tablesync.storage.local_store import LocalStoreInterface
from tablesync.storage.operation_log import PendingOperationLogInterface
from tablesync.sync.checkpoint_store import CheckpointStore
from tablesync.sync.models import PullReport, PullSettings, PullState
from tablesync.sync.page_fetcher import PageFetcher
from tablesync.sync.page_query_builder import PageQueryBuilder, resolve_page_size
from tablesync.sync.query_validator import validate_query, validate_query_id
from tablesync.sync.reconciler import Reconciler
from tablesync.sync.serializer import TaskSerializer

log = structlog.stdlib.get_logger()


class PullSession:
    """State of a single pull, discarded when the pull settles."""

    def __init__(self, query_id: str | None, table_name: str, page_size: int):
        self.query_id: str | None = query_id
        self.table_name: str = table_name
        self.page_size: int = page_size
        self.state: PullState = PullState.IDLE
        self.page_query: PageQuery | None = None
        self.start_time: datetime = datetime.now(timezone.utc)
        self.pages_fetched: int = 0
        self.records_fetched: int = 0
        self.records_upserted: int = 0
        self.records_deleted: int = 0
        self.pages_skipped: int = 0

    @property
    def cursor(self) -> datetime | None:
        return self.page_query.cursor if self.page_query else None

    @property
    def features(self) -> list[str]:
        if self.query_id is not None:
            return [FEATURE_OFFLINE_SYNC, FEATURE_INCREMENTAL_PULL]
        return [FEATURE_OFFLINE_SYNC]

    def transition(self, state: PullState) -> None:
        log.debug(
            "pull_state_changed",
            table=self.table_name,
            query_id=self.query_id,
            previous_state=self.state.value,
            state=state.value,
        )
        self.state = state

    def report(self) -> PullReport:
        end_time = datetime.now(timezone.utc)
        return PullReport(
            table_name=self.table_name,
            query_id=self.query_id,
            pages_fetched=self.pages_fetched,
            records_fetched=self.records_fetched,
            records_upserted=self.records_upserted,
            records_deleted=self.records_deleted,
            pages_skipped=self.pages_skipped,
            high_water_mark=self.cursor,
            start_time=self.start_time,
            end_time=end_time,
            duration_seconds=(end_time - self.start_time).total_seconds(),
        )


class PullManager:
    """Pulls changed records of remote tables into the local store.

    Only one pull (or initialization) runs at a time per manager; further
    calls wait for the running one to settle. Writes to the local store go
    through ``store_serializer``, which should be shared with every other
    writer of the store (such as the push path).
    """

    def __init__(
        self,
        remote: RemoteTableInterface,
        store: LocalStoreInterface,
        operation_log: PendingOperationLogInterface,
        store_serializer: TaskSerializer | None = None,
    ):
        """
        Initialize pull manager.

        Args:
            remote: Source of remote records
            store: Local store pulled records and checkpoints are written to
            operation_log: Log of local changes not yet pushed
            store_serializer: Optional serializer for store writes (a private one
                is created if None)
        """
        self._pull_serializer: TaskSerializer = TaskSerializer("pull")
        self._store_serializer: TaskSerializer = store_serializer or TaskSerializer("store")
        self._checkpoints: CheckpointStore = CheckpointStore(store)
        self._fetcher: PageFetcher = PageFetcher(remote)
        self._reconciler: Reconciler = Reconciler(store, operation_log, self._store_serializer)
        self._session: PullSession | None = None

        log.info("pull_manager_initialized")

    @property
    def state(self) -> PullState:
        """State of the running pull, IDLE if none is running."""
        return self._session.state if self._session else PullState.IDLE

    @property
    def checkpoints(self) -> CheckpointStore:
        return self._checkpoints

    async def initialize(self) -> None:
        """Create the table holding incremental pull checkpoints. Idempotent."""
        await self._pull_serializer.run(self._checkpoints.initialize)

    async def pull(
        self,
        query: SyncQuery,
        query_id: str | None = None,
        settings: PullSettings | dict[str, Any] | None = None,
    ) -> PullReport:
        """
        Pull all records matching the query into the local store.

        With a query ID the pull is incremental: it starts from the checkpoint
        saved by the previous pull with the same ID and saves a new checkpoint
        after every page. Without one, all matching records are pulled and no
        checkpoint is read or written.

        Args:
            query: Table and filter to pull; must not order, page, project or count
            query_id: Incremental pull ID, or None for a vanilla pull
            settings: Optional pull settings (page size)

        Returns:
            PullReport with pull results

        Raises:
            ValidationError: If the query, query ID or page size is invalid, or
                a pulled record has an invalid id
            DataIntegrityError: If a pulled record is missing system properties
            TransportError: If fetching a page fails
            StorageError: If the local store fails
        """
        # Copy before queueing: later changes to the caller's query must not
        # affect this pull, even while it waits for a running one
        if isinstance(query, SyncQuery):
            query = query.copy_query()

        return await self._pull_serializer.run(lambda: self._pull(query, query_id, settings))

    async def _pull(
        self,
        query: SyncQuery,
        query_id: str | None,
        settings: PullSettings | dict[str, Any] | None,
    ) -> PullReport:
        validate_query(query)
        validate_query_id(query_id)
        page_size = _page_size_from(settings)

        builder = PageQueryBuilder(query, page_size)

        session = PullSession(query_id, query.table, page_size)
        self._session = session

        log.info(
            "pull_started",
            table=session.table_name,
            query_id=query_id,
            page_size=page_size,
        )

        try:
            await self._run_session(session, builder)
        except Exception as e:
            session.transition(PullState.FAILED)
            log.error(
                "pull_failed",
                table=session.table_name,
                query_id=query_id,
                cursor=session.cursor,
                pages_fetched=session.pages_fetched,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        finally:
            self._session = None

        report = session.report()
        log.info(
            "pull_completed",
            table=report.table_name,
            query_id=query_id,
            pages_fetched=report.pages_fetched,
            records_upserted=report.records_upserted,
            records_deleted=report.records_deleted,
            pages_skipped=report.pages_skipped,
            high_water_mark=report.high_water_mark,
            duration_seconds=report.duration_seconds,
        )
        return report

    async def _run_session(self, session: PullSession, builder: PageQueryBuilder) -> None:
        session.transition(PullState.INITIALIZING)
        cursor = await self._checkpoints.load(session.query_id)
        session.page_query = builder.build(cursor)

        while True:
            session.transition(PullState.FETCHING_PAGE)
            records = await self._fetcher.fetch(session.page_query, session.features)
            session.pages_fetched += 1
            session.records_fetched += len(records)

            session.transition(PullState.RECONCILING)
            result = await self._reconciler.process_page(session.table_name, records)
            if result.skipped:
                session.pages_skipped += 1
            session.records_deleted += len(result.ids_to_delete)
            session.records_upserted += len(result.records_to_upsert)

            session.transition(PullState.CHECKPOINTING)
            await self._checkpoints.save(
                session.query_id, session.table_name, session.page_query.cursor
            )

            # Only an empty page ends the pull: the server may cap pages below
            # the requested size
            if not records:
                session.transition(PullState.COMPLETE)
                return

            session.page_query = builder.next_page(session.page_query, records)


def _page_size_from(settings: PullSettings | dict[str, Any] | None) -> int:
    if settings is None:
        return resolve_page_size(None)

    if isinstance(settings, dict):
        try:
            settings = PullSettings.model_validate(settings)
        except PydanticValidationError as e:
            unknown = [err["loc"][0] for err in e.errors() if err["type"] == "extra_forbidden"]
            if unknown:
                raise ValidationError(f"Unknown pull settings: {unknown}") from e
            requested = settings.get("pageSize", settings.get("page_size"))
            raise InvalidPageSizeError(
                f"Page size must be a positive integer. Page size {requested!r} is invalid."
            ) from e

    if not isinstance(settings, PullSettings):
        raise ValidationError(f"Pull settings must be a mapping, got {type(settings).__name__}")

    return resolve_page_size(settings.page_size)
