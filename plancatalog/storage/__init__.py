"""File storage for uploads and catalog images."""

from plancatalog.storage.file_storage import FileStorage

__all__ = ["FileStorage"]
