"""Spreadsheet-to-catalog synchronization."""

from plancatalog.catalog_sync.errors import (
    CatalogSyncError,
    SyncAlreadyRunningError,
    WorkbookReadError,
)
from plancatalog.catalog_sync.reconciler import CatalogReconciler
from plancatalog.catalog_sync.service import CatalogSyncService, sync_in_progress
from plancatalog.catalog_sync.types import (
    ProgressCallback,
    SyncPhase,
    SyncResult,
    SyncRunStatus,
)

__all__ = [
    "CatalogReconciler",
    "CatalogSyncError",
    "CatalogSyncService",
    "ProgressCallback",
    "SyncAlreadyRunningError",
    "SyncPhase",
    "SyncResult",
    "SyncRunStatus",
    "WorkbookReadError",
    "sync_in_progress",
]
