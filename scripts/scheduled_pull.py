#!/usr/bin/env python3
"""
Scheduled pull script for the table synchronization client.

This script pulls changed records of the configured tables into the local
store:
- Resumes incremental pulls from their saved checkpoints
- Applies remote deletes and updates, leaving records with pending local
  changes untouched
- Logs pull statistics

Designed to be run on a schedule (e.g., via cron or Airflow).

Usage:
    python scripts/scheduled_pull.py [--config CONFIG_PATH] [--table NAME]
        [--query-id ID | --vanilla] [--page-size N]
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone

import structlog

from tablesync.exceptions import ConfigurationError
from tablesync.models.config import AppConfig, TableConfig
from tablesync.models.query import SyncQuery
from tablesync.models.table import synced_table
from tablesync.providers import get_local_store, get_pull_manager
from tablesync.storage.sqlite_store import SqliteStore
from tablesync.utils.config_loader import ConfigLoader
from tablesync.utils.logging_config import configure_logging_from_config

log = structlog.stdlib.get_logger()


def select_tables(
    config: AppConfig,
    table: str | None = None,
    query_id: str | None = None,
    vanilla: bool = False,
) -> list[TableConfig]:
    """
    Decide which tables to pull, applying command line overrides.

    Args:
        config: Application configuration
        table: Pull only this table (added if it is not configured)
        query_id: Override the incremental pull ID of the selected table
        vanilla: Pull without checkpoints

    Returns:
        Table configurations to pull, in order
    """
    tables = list(config.pull.tables)

    if table is not None:
        tables = [t for t in tables if t.name == table] or [TableConfig(name=table)]

    overrides: dict = {}
    if vanilla:
        overrides["query_id"] = None
    elif query_id is not None:
        overrides["query_id"] = query_id

    if overrides:
        tables = [t.model_copy(update=overrides) for t in tables]

    return tables


async def perform_pull(
    config: AppConfig,
    tables: list[TableConfig],
    page_size: int | None = None,
) -> dict:
    """
    Pull every selected table, stopping at the first failure.

    Args:
        config: Application configuration
        tables: Tables to pull
        page_size: Optional page size override

    Returns:
        Dictionary with pull statistics
    """
    start_time = datetime.now(timezone.utc)
    results: list[dict] = []

    store = get_local_store(config.store)
    if isinstance(store, SqliteStore):
        await store.init()

    try:
        manager = get_pull_manager(config, store=store)
        await manager.initialize()

        for table in tables:
            await store.define_table(synced_table(table.name))

            report = await manager.pull(
                SyncQuery(table=table.name, filter=table.filter),
                table.query_id,
                {"page_size": page_size if page_size is not None else config.pull.page_size},
            )
            results.append(
                {
                    "table": report.table_name,
                    "query_id": report.query_id,
                    "pages_fetched": report.pages_fetched,
                    "records_upserted": report.records_upserted,
                    "records_deleted": report.records_deleted,
                    "pages_skipped": report.pages_skipped,
                    "high_water_mark": report.high_water_mark.isoformat(),
                }
            )

        stats = {"success": True, "tables": results}

    except Exception as e:
        log.error("scheduled_pull_failed", error=str(e), error_type=type(e).__name__)
        stats = {"success": False, "error": str(e), "tables": results}

    finally:
        if isinstance(store, SqliteStore):
            await store.close()

    end_time = datetime.now(timezone.utc)
    stats.update(
        {
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "duration_seconds": (end_time - start_time).total_seconds(),
        }
    )
    return stats


def print_summary(stats: dict) -> None:
    """Print a human readable summary of a scheduled pull."""
    print("\n" + "=" * 60)
    print("PULL SUMMARY")
    print("=" * 60)

    for table in stats.get("tables", []):
        mode = f"incremental ({table['query_id']})" if table["query_id"] else "vanilla"
        print(f"Table: {table['table']} [{mode}]")
        print(f"  Pages Fetched: {table['pages_fetched']}")
        print(f"  Records Upserted: {table['records_upserted']}")
        print(f"  Records Deleted: {table['records_deleted']}")
        print(f"  Pages Skipped (pending changes): {table['pages_skipped']}")
        print(f"  High-Water-Mark: {table['high_water_mark']}")

    if stats.get("success"):
        print("Status: SUCCESS")
    else:
        print("Status: FAILED")
        print(f"Error: {stats.get('error', 'Unknown error')}")

    print(f"Duration: {stats.get('duration_seconds', 0):.2f} seconds")
    print("=" * 60)


def main() -> None:
    """Main entry point for the scheduled pull script."""
    parser = argparse.ArgumentParser(description="Pull changed records into the local store")
    parser.add_argument("--config", type=str, default=None, help="Path to configuration file")
    parser.add_argument("--table", type=str, default=None, help="Pull only this table")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--query-id", type=str, default=None, help="Incremental pull ID")
    mode.add_argument(
        "--vanilla", action="store_true", help="Pull everything without using checkpoints"
    )
    parser.add_argument("--page-size", type=int, default=None, help="Records per page")

    args = parser.parse_args()

    try:
        config = ConfigLoader().load_config(args.config)
    except ConfigurationError as e:
        log.error("configuration_error", error=str(e))
        print(f"Configuration error: {e}")
        print("Check the configuration file and environment variables.")
        sys.exit(2)

    configure_logging_from_config(config.logging)

    tables = select_tables(config, table=args.table, query_id=args.query_id, vanilla=args.vanilla)
    if not tables:
        log.warning("no_tables_to_pull")

    stats = asyncio.run(perform_pull(config, tables, page_size=args.page_size))
    print_summary(stats)

    sys.exit(0 if stats.get("success") else 1)


if __name__ == "__main__":
    main()
