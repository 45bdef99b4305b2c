"""Fetching of single pages from the remote source."""

from typing import Any, Sequence

import structlog

from tablesync.models.query import PageQuery
from tablesync.models.table import INCLUDE_DELETED_FLAG
from tablesync.remote.table_client import RemoteTableInterface

log = structlog.stdlib.get_logger()


class PageFetcher:
    """Executes page queries against the remote table source."""

    def __init__(self, remote: RemoteTableInterface):
        self._remote: RemoteTableInterface = remote

    async def fetch(
        self, page_query: PageQuery, features: Sequence[str] = ()
    ) -> list[dict[str, Any]]:
        """
        Fetch one page, soft-deleted records included.

        Soft delete is assumed to be enabled on the server table; the delete
        flag of each record tells pull whether to remove it locally.

        Args:
            page_query: Page to fetch
            features: Feature codes to report to the server

        Returns:
            Records in server order (possibly empty)

        Raises:
            TransportError: If the remote read fails
        """
        params = {INCLUDE_DELETED_FLAG: True}

        result = await self._remote.read(
            page_query.table, page_query.to_odata(), params, features
        )

        if result is None:
            records: list[dict[str, Any]] = []
        elif isinstance(result, dict):
            records = [result]
        else:
            records = list(result)

        log.info(
            "page_fetched",
            table=page_query.table,
            cursor=page_query.cursor,
            skip=page_query.skip,
            take=page_query.take,
            count=len(records),
        )
        return records
