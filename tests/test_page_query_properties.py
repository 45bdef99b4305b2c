"""Property-based tests for page query derivation and cursor advancement.

Feature: incremental-pull
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import pytest
import structlog
from fakes import record, ts
from hypothesis import given, settings
from hypothesis import strategies as st

from tablesync.exceptions import DataIntegrityError, InvalidPageSizeError
from tablesync.models.checkpoint import BEGINNING_OF_TIME
from tablesync.models.query import PageQuery, SyncQuery, format_timestamp
from tablesync.sync.page_query_builder import (
    DEFAULT_PAGE_SIZE,
    PageQueryBuilder,
    change_timestamp,
    resolve_page_size,
)

log = structlog.stdlib.get_logger()


def parse(page_query: PageQuery) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(page_query.to_odata()).items()}


class TestPageSize:
    """Property: Page sizes must be positive integers."""

    @given(page_size=st.integers(min_value=1, max_value=10_000))
    def test_positive_integers_accepted(self, page_size: int) -> None:
        assert resolve_page_size(page_size) == page_size

    @given(
        page_size=st.one_of(
            st.integers(max_value=0),
            st.floats(allow_nan=False),
            st.booleans(),
            st.text(),
        )
    )
    @settings(max_examples=100)
    def test_everything_else_rejected(self, page_size) -> None:
        log.info("test_everything_else_rejected", page_size=repr(page_size))

        with pytest.raises(InvalidPageSizeError):
            resolve_page_size(page_size)

    def test_default_page_size(self) -> None:
        assert resolve_page_size(None) == DEFAULT_PAGE_SIZE == 50


class TestPageQueryRendering:
    """Rendering of page queries as OData query strings."""

    def test_first_page_query(self) -> None:
        builder = PageQueryBuilder(SyncQuery(table="todoitem", filter="complete eq false"), 25)
        params = parse(builder.build(ts(0)))

        assert params["$filter"] == (
            "(complete eq false) and (updatedAt ge datetimeoffset'2024-01-01T00:00:00.000Z')"
        )
        assert params["$orderby"] == "updatedAt"
        assert params["$top"] == "25"
        assert "$skip" not in params

    def test_query_without_filter(self) -> None:
        page_query = PageQueryBuilder(SyncQuery(table="todoitem")).build(ts(0))

        assert page_query.filter == "updatedAt ge datetimeoffset'2024-01-01T00:00:00.000Z'"

    def test_skip_rendered_when_non_zero(self) -> None:
        page_query = PageQuery(table="todoitem", cursor=ts(0), take=10, skip=20)

        assert parse(page_query)["$skip"] == "20"

    def test_beginning_of_time_renders_with_four_digit_year(self) -> None:
        assert format_timestamp(BEGINNING_OF_TIME) == "0001-01-01T00:00:00.000Z"

    @given(
        moment=st.datetimes(
            min_value=datetime(1971, 1, 1),
            max_value=datetime(2100, 1, 1),
            timezones=st.just(timezone(timedelta(hours=5))),
        )
    )
    def test_timestamps_rendered_in_utc(self, moment: datetime) -> None:
        rendered = format_timestamp(moment)

        assert rendered.endswith("Z")
        parsed = datetime.fromisoformat(rendered.replace("Z", "+00:00"))
        assert abs(parsed - moment) < timedelta(milliseconds=1)

    def test_builder_keeps_private_copy_of_query(self) -> None:
        query = SyncQuery(table="todoitem", filter="complete eq false")
        builder = PageQueryBuilder(query)
        query.filter = "complete eq true"

        assert builder.build(ts(0)).base_filter == "complete eq false"


class TestCursorAdvance:
    """Property: The cursor never moves backwards and never skips same-instant records."""

    def setup_method(self) -> None:
        self.builder = PageQueryBuilder(SyncQuery(table="todoitem"), page_size=2)

    def test_cursor_moves_to_last_record_timestamp(self) -> None:
        first = self.builder.build(ts(0))
        next_query = self.builder.next_page(first, [record("1", ts(1)), record("2", ts(2))])

        assert next_query.cursor == ts(2)
        assert next_query.skip == 0

    def test_same_instant_page_increments_offset(self) -> None:
        page_query = self.builder.build(ts(1))
        page = [record("1", ts(1)), record("2", ts(1))]

        second = self.builder.next_page(page_query, page)
        third = self.builder.next_page(second, [record("3", ts(1))])

        assert (second.cursor, second.skip) == (ts(1), 2)
        assert (third.cursor, third.skip) == (ts(1), 3)

    def test_offset_reset_when_cursor_advances(self) -> None:
        page_query = self.builder.build(ts(1)).model_copy(update={"skip": 4})

        next_query = self.builder.next_page(page_query, [record("5", ts(1)), record("6", ts(3))])

        assert (next_query.cursor, next_query.skip) == (ts(3), 0)

    @given(
        cursor=st.integers(min_value=0, max_value=1000),
        steps=st.lists(st.integers(min_value=0, max_value=50), min_size=1, max_size=4),
    )
    def test_cursor_is_monotonic(self, cursor: int, steps: list[int]) -> None:
        page_query = self.builder.build(ts(cursor))
        current = cursor

        for step in steps:
            current += step
            page_query = self.builder.next_page(page_query, [record("x", ts(current))])
            assert page_query.cursor == ts(current)

    def test_iso_string_timestamp_accepted(self) -> None:
        page_query = self.builder.build(ts(0))
        next_query = self.builder.next_page(
            page_query, [record("1", "2024-01-01T00:00:05.000Z")]
        )

        assert next_query.cursor == ts(5)

    @pytest.mark.parametrize("bad_value", [None, "yesterday", 1700000000, ""])
    def test_malformed_timestamp_rejected(self, bad_value) -> None:
        page_query = self.builder.build(ts(0))

        with pytest.raises(DataIntegrityError):
            self.builder.next_page(page_query, [record("1", ts(1)), record("2", bad_value)])

    def test_missing_timestamp_rejected(self) -> None:
        with pytest.raises(DataIntegrityError):
            change_timestamp({"id": "1", "deleted": False})

    def test_timestamp_older_than_cursor_rejected(self) -> None:
        page_query = self.builder.build(ts(10))

        with pytest.raises(DataIntegrityError, match="out of order"):
            self.builder.next_page(page_query, [record("1", ts(5))])

    def test_naive_timestamps_treated_as_utc(self) -> None:
        naive = datetime(2024, 1, 1, 0, 0, 7)

        assert change_timestamp(record("1", naive)) == ts(7)


class TestMillisecondPrecision:
    """Property: Cursors carry only the precision the OData filter can express."""

    @given(micros=st.integers(min_value=0, max_value=999))
    def test_change_timestamp_cut_to_milliseconds(self, micros: int) -> None:
        moment = ts(1) + timedelta(milliseconds=5, microseconds=micros)

        assert change_timestamp(record("1", moment)) == ts(1) + timedelta(milliseconds=5)

    def test_build_cuts_cursor(self) -> None:
        builder = PageQueryBuilder(SyncQuery(table="todoitem"))

        page_query = builder.build(ts(1) + timedelta(microseconds=1500))

        assert page_query.cursor == ts(1) + timedelta(milliseconds=1)
        assert page_query.filter == "updatedAt ge datetimeoffset'2024-01-01T00:00:01.001Z'"

    def test_same_millisecond_records_keep_cursor(self) -> None:
        builder = PageQueryBuilder(SyncQuery(table="todoitem"), page_size=1)
        page_query = builder.build(ts(1))

        next_query = builder.next_page(
            page_query, [record("b", ts(1) + timedelta(microseconds=200))]
        )

        assert (next_query.cursor, next_query.skip) == (ts(1), 1)
