"""Remote table source interface and HTTP implementation."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence

import requests
import structlog
from requests.exceptions import RequestException

from tablesync.exceptions import TransportError
from tablesync.models.table import CREATED_AT_COLUMN, UPDATED_AT_COLUMN

log = structlog.stdlib.get_logger()

# Feature codes reported to the server for telemetry
FEATURE_OFFLINE_SYNC = "OL"
FEATURE_INCREMENTAL_PULL = "IP"

_DATE_SYSTEM_COLUMNS = (CREATED_AT_COLUMN, UPDATED_AT_COLUMN)


class RemoteTableInterface(ABC):
    """Abstract interface for reading pages of records from the server of record."""

    @abstractmethod
    async def read(
        self,
        table_name: str,
        query_string: str,
        params: dict[str, Any] | None = None,
        features: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        """Read the records of a table matching an OData query.

        Args:
            table_name: Remote table name
            query_string: OData query string ($filter, $orderby, $top, $skip)
            params: Extra query parameters, e.g. the include-deleted flag
            features: Feature codes describing the calling operation

        Returns:
            Records in the order returned by the server

        Raises:
            TransportError: If the request fails
        """
        pass


class HttpTableClient(RemoteTableInterface):
    """Reads tables from an Azure Mobile Apps style REST backend."""

    def __init__(
        self,
        base_url: str,
        api_version: str = "2.0.0",
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ):
        """
        Initialize HTTP table client.

        Args:
            base_url: Backend URL, e.g. https://example.azurewebsites.net
            api_version: Value sent in the ZUMO-API-VERSION header
            timeout_seconds: Timeout applied to each request
            session: Optional requests session (a new one is created if None)
        """
        self._base_url: str = base_url.rstrip("/")
        self._api_version: str = api_version
        self._timeout_seconds: float = timeout_seconds
        self._session: requests.Session = session or requests.Session()
        log.info("http_table_client_initialized", base_url=self._base_url)

    async def read(
        self,
        table_name: str,
        query_string: str,
        params: dict[str, Any] | None = None,
        features: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read, table_name, query_string, params or {}, features)

    def _read(
        self,
        table_name: str,
        query_string: str,
        params: dict[str, Any],
        features: Sequence[str],
    ) -> list[dict[str, Any]]:
        url = f"{self._base_url}/tables/{table_name}"
        if query_string:
            url = f"{url}?{query_string}"

        headers = {
            "ZUMO-API-VERSION": self._api_version,
            "Accept": "application/json",
        }
        if features:
            headers["X-ZUMO-FEATURES"] = ",".join(features)

        log.debug("fetching_remote_records", table=table_name, url=url)

        try:
            response = self._session.get(
                url,
                params={key: _encode_param(value) for key, value in params.items()},
                headers=headers,
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
        except (RequestException, ValueError) as e:
            log.error("remote_read_failed", table=table_name, error=str(e))
            raise TransportError(f"Failed to read table {table_name}: {e}") from e

        # Servers answer either with a bare array or, with inline count, {"results": [...]}
        if isinstance(body, dict):
            body = body.get("results", [])
        if not isinstance(body, list):
            error_msg = f"Unexpected response body for table {table_name}"
            log.error(
                "remote_read_failed",
                table=table_name,
                error=error_msg,
                body_type=type(body).__name__,
            )
            raise TransportError(error_msg)

        return [_parse_system_dates(record) for record in body]

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()


def _encode_param(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def _parse_system_dates(record: dict[str, Any]) -> dict[str, Any]:
    """Convert ISO 8601 system timestamps to datetimes.

    Values that do not parse are left untouched for the pull engine to reject.
    """
    if not isinstance(record, dict):
        return record

    for column in _DATE_SYSTEM_COLUMNS:
        value = record.get(column)
        if isinstance(value, str):
            try:
                record[column] = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                log.warning("unparseable_system_timestamp", column=column, value=value)
    return record
