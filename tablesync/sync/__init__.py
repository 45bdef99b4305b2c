"""Pull synchronization components."""

from tablesync.sync.checkpoint_store import CheckpointStore
from tablesync.sync.models import PullReport, PullSettings, PullState, ReconcileResult
from tablesync.sync.page_fetcher import PageFetcher
from tablesync.sync.page_query_builder import DEFAULT_PAGE_SIZE, PageQueryBuilder
from tablesync.sync.pull_manager import PullManager
from tablesync.sync.query_validator import validate_query
from tablesync.sync.reconciler import Reconciler, is_valid_id
from tablesync.sync.serializer import TaskSerializer

__all__ = [
    "CheckpointStore",
    "DEFAULT_PAGE_SIZE",
    "PageFetcher",
    "PageQueryBuilder",
    "PullManager",
    "PullReport",
    "PullSettings",
    "PullState",
    "ReconcileResult",
    "Reconciler",
    "TaskSerializer",
    "is_valid_id",
    "validate_query",
]
