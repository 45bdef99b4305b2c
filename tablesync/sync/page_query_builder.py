"""Derivation of single-page queries and cursor advancement."""

from datetime import datetime
from typing import Any

import structlog

from tablesync.exceptions import DataIntegrityError, InvalidPageSizeError
from tablesync.models.query import PageQuery, SyncQuery, as_utc, to_millisecond
from tablesync.models.table import UPDATED_AT_COLUMN

log = structlog.stdlib.get_logger()

DEFAULT_PAGE_SIZE: int = 50


def resolve_page_size(page_size: Any = None) -> int:
    """
    Resolve the page size of a pull.

    Args:
        page_size: Requested page size, or None for the default

    Returns:
        The page size to use

    Raises:
        InvalidPageSizeError: If page_size is not a positive integer
    """
    if page_size is None:
        return DEFAULT_PAGE_SIZE

    # bool is an int subclass but never a page size
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
        raise InvalidPageSizeError(
            f"Page size must be a positive integer. Page size {page_size!r} is invalid."
        )
    return page_size


class PageQueryBuilder:
    """Builds the page queries of one pull from its base query."""

    def __init__(self, query: SyncQuery, page_size: int = DEFAULT_PAGE_SIZE):
        """
        Initialize page query builder.

        Args:
            query: Validated base query; a private copy is kept
            page_size: Number of records to request per page

        Raises:
            InvalidPageSizeError: If page_size is not a positive integer
        """
        self._query: SyncQuery = query.copy_query()
        self._page_size: int = resolve_page_size(page_size)

    @property
    def page_size(self) -> int:
        return self._page_size

    def build(self, cursor: datetime) -> PageQuery:
        """First page of records changed at or after the cursor."""
        return PageQuery(
            table=self._query.table,
            base_filter=self._query.filter,
            cursor=to_millisecond(as_utc(cursor)),
            take=self._page_size,
            skip=0,
            order_by=UPDATED_AT_COLUMN,
        )

    def next_page(self, page_query: PageQuery, records: list[dict[str, Any]]) -> PageQuery:
        """
        Derive the query for the page following a non-empty page.

        If the last record shares the cursor timestamp, more records with that
        same timestamp may follow, so the cursor stays put and the offset moves
        past the records just fetched. Otherwise the cursor moves to the last
        record's timestamp and paging restarts at offset 0.

        Args:
            page_query: Query that fetched ``records``
            records: Non-empty page of records, ordered by change timestamp

        Returns:
            Query for the next page

        Raises:
            DataIntegrityError: If the last record has no valid change timestamp,
                or its timestamp is older than the cursor
        """
        if not records:
            raise DataIntegrityError("Cannot advance past an empty page")

        last_record_time = change_timestamp(records[-1])

        if last_record_time == page_query.cursor:
            next_query = page_query.model_copy(update={"skip": page_query.skip + len(records)})
            log.debug(
                "cursor_offset_advanced",
                table=page_query.table,
                cursor=page_query.cursor,
                skip=next_query.skip,
            )
            return next_query

        if last_record_time < page_query.cursor:
            raise DataIntegrityError(
                f"Property {UPDATED_AT_COLUMN} of the last record ({last_record_time}) is older "
                f"than the pull cursor ({page_query.cursor}); records are out of order"
            )

        log.debug(
            "cursor_advanced",
            table=page_query.table,
            previous_cursor=page_query.cursor,
            cursor=last_record_time,
        )
        return self.build(last_record_time)


def change_timestamp(record: dict[str, Any]) -> datetime:
    """
    Read the change timestamp of a pulled record.

    ISO 8601 strings are accepted in addition to datetimes. The result is cut
    to milliseconds so that it compares equal to the cursor the server sees.

    Raises:
        DataIntegrityError: If the timestamp is missing or malformed
    """
    value = record.get(UPDATED_AT_COLUMN) if isinstance(record, dict) else None

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            value = None

    if not isinstance(value, datetime):
        raise DataIntegrityError(
            f"Property {UPDATED_AT_COLUMN} of the last record should be a valid date"
        )
    return to_millisecond(as_utc(value))
