"""Property-based tests for pull query validation.

Feature: incremental-pull
"""

import pytest
import structlog
from hypothesis import given, settings
from hypothesis import strategies as st

from tablesync.exceptions import ValidationError
from tablesync.models.query import OrderClause, SyncQuery
from tablesync.sync.query_validator import validate_query, validate_query_id

log = structlog.stdlib.get_logger()

table_names = st.text(
    min_size=1, max_size=20, alphabet=st.characters(whitelist_categories=("Ll", "Lu", "Nd"))
)
filters = st.one_of(st.none(), st.sampled_from(["complete eq false", "priority gt 3"]))


@st.composite
def unsupported_query_strategy(draw: st.DrawFn) -> SyncQuery:
    """Generate a query using at least one shape pull does not support."""
    query = SyncQuery(table=draw(table_names), filter=draw(filters))
    shape = draw(st.sampled_from(["ordering", "skip", "take", "selections", "count"]))

    if shape == "ordering":
        query.ordering = [OrderClause(column="text", ascending=draw(st.booleans()))]
    elif shape == "skip":
        query.skip = draw(st.integers(min_value=0, max_value=1000))
    elif shape == "take":
        query.take = draw(st.integers(min_value=0, max_value=1000))
    elif shape == "selections":
        query.selections = draw(st.lists(st.sampled_from(["id", "text"]), min_size=1))
    else:
        query.include_total_count = True

    return query


class TestUnsupportedQueryShapes:
    """Property: Any ordering, paging, projection or count request is rejected."""

    @given(query=unsupported_query_strategy())
    @settings(max_examples=100)
    def test_unsupported_shapes_rejected(self, query: SyncQuery) -> None:
        log.info("test_unsupported_shapes_rejected", table=query.table)

        with pytest.raises(ValidationError):
            validate_query(query)

    @given(table=table_names, filter_=filters)
    @settings(max_examples=50)
    def test_table_and_filter_accepted(self, table: str, filter_: str | None) -> None:
        assert validate_query(SyncQuery(table=table, filter=filter_)) is None

    def test_error_names_the_unsupported_clause(self) -> None:
        with pytest.raises(ValidationError, match="skip"):
            validate_query(SyncQuery(table="todoitem", skip=5))

        with pytest.raises(ValidationError, match="includeTotalCount"):
            validate_query(SyncQuery(table="todoitem", include_total_count=True))

    @pytest.mark.parametrize("not_a_query", [None, "todoitem", {"table": "todoitem"}])
    def test_non_query_rejected(self, not_a_query) -> None:
        with pytest.raises(ValidationError):
            validate_query(not_a_query)


class TestQueryId:
    """Pull query IDs are None or non-blank strings."""

    @given(query_id=st.text(min_size=1).filter(lambda s: s.strip()))
    def test_non_blank_strings_accepted(self, query_id: str) -> None:
        validate_query_id(query_id)

    def test_none_accepted(self) -> None:
        validate_query_id(None)

    @pytest.mark.parametrize("query_id", ["", "   ", 42, ["id"]])
    def test_invalid_ids_rejected(self, query_id) -> None:
        with pytest.raises(ValidationError):
            validate_query_id(query_id)


def test_where_does_not_mutate_original_query() -> None:
    """Deriving a filtered query leaves the original untouched."""
    query = SyncQuery(table="todoitem", filter="complete eq false")
    derived = query.where("priority gt 3")

    assert query.filter == "complete eq false"
    assert derived.filter == "(complete eq false) and (priority gt 3)"
