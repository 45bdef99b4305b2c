"""Tests for the scheduled pull script."""

import asyncio
from unittest.mock import patch

import pytest
from fakes import SimulatedRemote, record, ts

from scripts.scheduled_pull import main, perform_pull, print_summary, select_tables
from tablesync.models.config import (
    AppConfig,
    PullConfig,
    RemoteConfig,
    StoreConfig,
    TableConfig,
)


def make_config(*tables: TableConfig) -> AppConfig:
    return AppConfig(
        remote=RemoteConfig(base_url="https://example.azurewebsites.net"),
        store=StoreConfig(type="memory"),
        pull=PullConfig(page_size=2, tables=list(tables)),
    )


class TestSelectTables:
    """Command line overrides of the configured tables."""

    def setup_method(self) -> None:
        self.config = make_config(
            TableConfig(name="todoitem", filter="complete eq false", query_id="todo-open"),
            TableConfig(name="category", query_id="categories"),
        )

    def test_all_configured_tables_by_default(self) -> None:
        assert select_tables(self.config) == self.config.pull.tables

    def test_single_configured_table(self) -> None:
        [table] = select_tables(self.config, table="category")

        assert table.query_id == "categories"

    def test_unconfigured_table_pulled_without_filter(self) -> None:
        assert select_tables(self.config, table="tag") == [TableConfig(name="tag")]

    def test_vanilla_drops_query_ids(self) -> None:
        tables = select_tables(self.config, vanilla=True)

        assert [t.query_id for t in tables] == [None, None]
        assert tables[0].filter == "complete eq false"

    def test_query_id_override(self) -> None:
        [table] = select_tables(self.config, table="todoitem", query_id="nightly")

        assert table.query_id == "nightly"
        assert self.config.pull.tables[0].query_id == "todo-open"


class TestPerformPull:
    """End-to-end scheduled pulls against a simulated backend."""

    def test_tables_pulled_and_reported(self, capsys) -> None:
        config = make_config(TableConfig(name="todoitem", query_id="todo-all"))
        remote = SimulatedRemote([record("1", ts(1)), record("2", ts(2)), record("3", ts(3))])

        with patch("tablesync.providers.get_remote_table", return_value=remote):
            stats = asyncio.run(perform_pull(config, config.pull.tables))

        assert stats["success"] is True
        [table] = stats["tables"]
        assert table["records_upserted"] >= 3
        assert table["high_water_mark"] == ts(3).isoformat()
        assert all(call.top == 2 for call in remote.calls)

        print_summary(stats)
        assert "Status: SUCCESS" in capsys.readouterr().out

    def test_page_size_override(self) -> None:
        config = make_config(TableConfig(name="todoitem"))
        remote = SimulatedRemote([])

        with patch("tablesync.providers.get_remote_table", return_value=remote):
            asyncio.run(perform_pull(config, config.pull.tables, page_size=7))

        assert remote.calls[0].top == 7

    def test_failure_reported(self, capsys) -> None:
        config = make_config(
            TableConfig(name="todoitem", query_id="todo-all"),
            TableConfig(name="category"),
        )
        remote = SimulatedRemote([record("1", ts(1))], fail_on_call=1)

        with patch("tablesync.providers.get_remote_table", return_value=remote):
            stats = asyncio.run(perform_pull(config, config.pull.tables))

        assert stats["success"] is False
        assert stats["tables"] == []
        assert "simulated network failure" in stats["error"]

        print_summary(stats)
        assert "Status: FAILED" in capsys.readouterr().out


def test_configuration_error_exits_before_pulling(capsys, monkeypatch) -> None:
    monkeypatch.setattr("sys.argv", ["scheduled_pull.py", "--config", "/nonexistent/pull.yaml"])

    with patch("scripts.scheduled_pull.perform_pull") as perform:
        with pytest.raises(SystemExit) as exc_info:
            main()

    assert exc_info.value.code == 2
    perform.assert_not_called()
    assert "Configuration error" in capsys.readouterr().out
