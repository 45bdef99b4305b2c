"""Data models for pull operations."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from tablesync.storage.local_store import RecordId


class PullState(str, Enum):
    """States of a pull loop."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    FETCHING_PAGE = "fetching_page"
    RECONCILING = "reconciling"
    CHECKPOINTING = "checkpointing"
    COMPLETE = "complete"
    FAILED = "failed"


class PullSettings(BaseModel):
    """Per-call pull settings. Accepts ``pageSize`` or ``page_size``; other keys are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    page_size: StrictInt | None = Field(
        default=None,
        alias="pageSize",
        description="Records requested per page. If None, the default is used.",
    )


class ReconcileResult(BaseModel):
    """Outcome of reconciling one pulled page against local pending operations."""

    ids_to_delete: list[RecordId] = Field(
        default_factory=list, description="Ids of soft-deleted records to remove locally"
    )
    records_to_upsert: list[dict[str, Any]] = Field(
        default_factory=list, description="Records to insert or update locally"
    )
    pending_operations: int = Field(
        default=0, ge=0, description="Pending operations found for the page"
    )

    @property
    def skipped(self) -> bool:
        """True when local pending operations blocked the whole page."""
        return self.pending_operations > 0

    @property
    def total_changes(self) -> int:
        """Number of records to apply."""
        return len(self.ids_to_delete) + len(self.records_to_upsert)


class PullReport(BaseModel):
    """Report of a completed pull."""

    table_name: str = Field(..., description="Remote table that was pulled")
    query_id: str | None = Field(default=None, description="Incremental pull ID, None if vanilla")
    pages_fetched: int = Field(
        default=0, ge=0, description="Fetches issued, including the final empty one"
    )
    records_fetched: int = Field(default=0, ge=0, description="Records received from the server")
    records_upserted: int = Field(
        default=0, ge=0, description="Records inserted or updated locally"
    )
    records_deleted: int = Field(default=0, ge=0, description="Records deleted locally")
    pages_skipped: int = Field(
        default=0, ge=0, description="Pages not applied because of pending local operations"
    )
    high_water_mark: datetime = Field(..., description="Cursor when the pull completed")
    start_time: datetime = Field(..., description="Pull start timestamp")
    end_time: datetime = Field(..., description="Pull end timestamp")
    duration_seconds: float = Field(default=0.0, ge=0.0, description="Pull duration in seconds")

    @property
    def incremental(self) -> bool:
        """Whether the pull resumed from and wrote a checkpoint."""
        return self.query_id is not None

    @property
    def total_changes(self) -> int:
        """Get total number of local changes applied."""
        return self.records_upserted + self.records_deleted
