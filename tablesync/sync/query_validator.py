"""Validation of caller-supplied pull queries."""

import structlog

from tablesync.exceptions import ValidationError
from tablesync.models.query import SyncQuery

log = structlog.stdlib.get_logger()


def validate_query(query: SyncQuery) -> None:
    """
    Reject query shapes that pull cannot honour.

    Pull orders and pages through the results itself to keep its cursor
    correct, so the query may only select a table and filter it.

    Args:
        query: Query to validate

    Raises:
        ValidationError: If the query orders, skips, takes, projects or
            requests a total count
    """
    if not isinstance(query, SyncQuery):
        raise ValidationError(f"Pull query must be a SyncQuery, got {type(query).__name__}")

    if query.ordering:
        _reject(query, "orderBy and orderByDescending clauses are not supported in the pull query")

    if query.skip is not None:
        _reject(query, "skip is not supported in the pull query")

    if query.take is not None:
        _reject(query, "take is not supported in the pull query")

    if query.selections:
        _reject(query, "select is not supported in the pull query")

    if query.include_total_count:
        _reject(query, "includeTotalCount is not supported in the pull query")


def validate_query_id(query_id: str | None) -> None:
    """A pull query ID is either None (vanilla pull) or a non-blank string."""
    if query_id is None:
        return
    if not isinstance(query_id, str) or not query_id.strip():
        raise ValidationError(f"Pull query ID must be a non-empty string or None, got {query_id!r}")


def _reject(query: SyncQuery, message: str) -> None:
    log.warning("pull_query_rejected", table=query.table, reason=message)
    raise ValidationError(message)
