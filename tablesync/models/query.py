"""Pydantic models for pull queries and their per-page derivatives."""

from datetime import datetime, timezone
from urllib.parse import quote

from pydantic import BaseModel, Field

from tablesync.models.table import UPDATED_AT_COLUMN

# Characters left unescaped in rendered OData values
_ODATA_SAFE = "'():,"


class OrderClause(BaseModel):
    """Single ordering clause of a query."""

    column: str = Field(default=..., min_length=1, description="Column to order by")
    ascending: bool = Field(default=True, description="Sort direction")


class SyncQuery(BaseModel):
    """Description of which records of a remote table to pull.

    Pull queries only carry a table and a filter. Ordering, paging, projection
    and total-count requests are representable so that callers reusing general
    table queries get a clear validation error instead of silently wrong
    paging.
    """

    table: str = Field(default=..., min_length=1, description="Remote table name")
    filter: str | None = Field(default=None, description="OData filter expression")
    ordering: list[OrderClause] = Field(default_factory=list, description="Ordering clauses")
    skip: int | None = Field(default=None, description="Number of records to skip")
    take: int | None = Field(default=None, description="Maximum number of records to return")
    selections: list[str] = Field(default_factory=list, description="Projected columns")
    include_total_count: bool = Field(default=False, description="Request total count")

    model_config = {
        "json_schema_extra": {
            "example": {
                "table": "todoitem",
                "filter": "complete eq false",
            }
        }
    }

    def where(self, expression: str) -> "SyncQuery":
        """Return a copy of this query with the expression ANDed into its filter."""
        query = self.copy_query()
        query.filter = and_filters(self.filter, expression)
        return query

    def copy_query(self) -> "SyncQuery":
        """Deep copy, so that later changes to this query do not leak into the copy."""
        return self.model_copy(deep=True)


class PageQuery(BaseModel):
    """Query fetching one page of changed records.

    Records are filtered to those changed at or after ``cursor`` and ordered by
    change timestamp so that records sharing a timestamp come back in a stable
    order across pages. ``skip`` is only non-zero while paging through records
    that share the cursor timestamp.
    """

    table: str = Field(default=..., min_length=1)
    base_filter: str | None = Field(default=None)
    cursor: datetime = Field(default=...)
    take: int = Field(default=..., ge=1)
    skip: int = Field(default=0, ge=0)
    order_by: str = Field(default=UPDATED_AT_COLUMN)

    @property
    def filter(self) -> str:
        """Base filter combined with the change timestamp condition."""
        cursor_clause = f"{self.order_by} ge datetimeoffset'{format_timestamp(self.cursor)}'"
        return and_filters(self.base_filter, cursor_clause)

    def to_odata(self) -> str:
        """Render the page as an OData query string (without the leading '?')."""
        parts = [
            ("$filter", self.filter),
            ("$orderby", self.order_by),
            ("$top", str(self.take)),
        ]
        if self.skip:
            parts.append(("$skip", str(self.skip)))

        return "&".join(f"{key}={quote(value, safe=_ODATA_SAFE)}" for key, value in parts)


def and_filters(left: str | None, right: str) -> str:
    """Combine two OData filter expressions with 'and'."""
    if not left:
        return right
    return f"({left}) and ({right})"


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps; aware timestamps are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_millisecond(value: datetime) -> datetime:
    """Drop sub-millisecond precision, which timestamps lose on the wire."""
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """Format a timestamp as UTC ISO 8601 with millisecond precision.

    Naive timestamps are treated as UTC.
    """
    value = as_utc(value).astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"
