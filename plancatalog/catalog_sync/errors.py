"""Catalog sync exceptions."""


class CatalogSyncError(Exception):
    """Base class for errors that abort a sync run."""


class WorkbookReadError(CatalogSyncError):
    """Source spreadsheet missing or not parseable."""


class SyncAlreadyRunningError(CatalogSyncError):
    """A sync run is already in progress in this process."""

    def __init__(self, message: str = "A catalog sync is already running"):
        super().__init__(message)
