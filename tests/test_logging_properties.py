"""Property-based tests for logging configuration.

This module tests that log entries written through configure_logging carry
the fields needed to follow a pull:
- timestamp
- severity level (log level)
- event name and context
- call site
"""

import json
import logging
import sys
from contextlib import redirect_stdout
from datetime import datetime
from io import StringIO

import pytest
import structlog
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from pydantic import ValidationError

from tablesync.models.config import LoggingConfig
from tablesync.utils.logging_config import (
    configure_logging,
    configure_logging_from_config,
    get_logger,
)


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore default logging once a test has reconfigured it."""
    yield
    logging.basicConfig(format="%(message)s", level=logging.WARNING, stream=sys.stderr, force=True)
    structlog.reset_defaults()
    for name in ("urllib3", "requests"):
        logging.getLogger(name).setLevel(logging.NOTSET)


def capture(log_level: str, emit, json_logs: bool = True) -> str:
    """Configure logging into a buffer, run emit, and return what was written."""
    log_buffer = StringIO()
    with redirect_stdout(log_buffer):
        configure_logging(log_level=log_level, json_logs=json_logs)
        emit(get_logger("test_logger"))
    return log_buffer.getvalue().strip()


@given(
    log_level=st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    error_message=st.text(min_size=1, max_size=200),
)
@settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
def test_log_entries_contain_required_fields(log_level: str, error_message: str) -> None:
    """
    *For any* logged event, the JSON entry contains timestamp, severity level,
    event name, context and call site.
    """
    log_output = capture(
        "DEBUG",
        lambda log: getattr(log, log_level.lower())("pull_failed", error=error_message),
    )

    try:
        log_entry = json.loads(log_output)
    except json.JSONDecodeError as e:
        raise AssertionError(f"Log output is not valid JSON: {log_output}") from e

    assert "timestamp" in log_entry, f"Log entry missing 'timestamp' field. Log entry: {log_entry}"
    datetime.fromisoformat(log_entry["timestamp"].replace("Z", "+00:00"))

    assert log_entry["level"].upper() == log_level.upper()
    assert log_entry["event"] == "pull_failed"
    assert log_entry["error"] == error_message
    assert log_entry["logger"] == "test_logger"
    assert log_entry["filename"] == "test_logging_properties.py"
    assert "lineno" in log_entry
    assert "func_name" in log_entry


def test_events_below_level_dropped() -> None:
    def emit(log):
        log.debug("pull_state_changed", state="fetching_page")
        log.info("page_fetched", count=3)
        log.warning("configuration_warning", warning="page size")

    lines = capture("WARNING", emit).splitlines()

    assert [json.loads(line)["event"] for line in lines] == ["configuration_warning"]


def test_non_serializable_context_rendered_as_text() -> None:
    moment = datetime(2024, 1, 1, 12, 30)

    log_entry = json.loads(
        capture("INFO", lambda log: log.info("checkpoint_saved", high_water_mark=moment))
    )

    assert log_entry["high_water_mark"] == str(moment)


def test_exception_info_rendered() -> None:
    def emit(log):
        try:
            raise ValueError("broken page")
        except ValueError:
            log.exception("pull_failed")

    log_entry = json.loads(capture("INFO", emit))

    assert "ValueError: broken page" in log_entry["exception"]


def test_console_format() -> None:
    log_output = capture(
        "INFO", lambda log: log.info("pull_started", table="todoitem"), json_logs=False
    )

    assert "pull_started" in log_output
    assert "todoitem" in log_output
    with pytest.raises(json.JSONDecodeError):
        json.loads(log_output)


def test_log_file_receives_entries(tmp_path) -> None:
    log_file = tmp_path / "pull.log"

    with redirect_stdout(StringIO()):
        configure_logging_from_config(
            LoggingConfig(log_level="INFO", json_logs=True, log_file=str(log_file))
        )
        structlog.stdlib.get_logger("test_logger").info("pull_completed", pages_fetched=2)

    log_entry = json.loads(log_file.read_text().strip())
    assert log_entry["event"] == "pull_completed"
    assert log_entry["pages_fetched"] == 2


def test_level_names_case_insensitive() -> None:
    lines = capture("warning", lambda log: log.info("page_fetched", count=3))

    assert lines == ""


def test_http_library_loggers_quieted() -> None:
    capture("DEBUG", lambda log: None)

    assert logging.getLogger("urllib3").level == logging.WARNING


def test_logging_config_normalizes_level() -> None:
    assert LoggingConfig(log_level="debug").log_level == "DEBUG"

    with pytest.raises(ValidationError, match="log_level"):
        LoggingConfig(log_level="VERBOSE")
