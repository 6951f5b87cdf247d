"""Shared dependencies for web routes."""

from __future__ import annotations

from pathlib import Path

from fastapi import HTTPException, UploadFile, status

from plancatalog.catalog_sync import CatalogSyncService
from plancatalog.config import get_config


def get_sync_service() -> CatalogSyncService:
    """Catalog sync service using the configured storage and database."""
    return CatalogSyncService(get_config())


async def read_workbook_upload(file: UploadFile) -> bytes:
    """Read an uploaded workbook, enforcing extension and size limits.

    Raises:
        HTTPException: 400 for a non-.xlsx upload, 413 when too large
    """
    if Path(file.filename or "").suffix.lower() != ".xlsx":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only .xlsx workbooks are supported",
        )

    content = await file.read()
    max_bytes = get_config().storage.max_upload_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum allowed: {get_config().storage.max_upload_mb}MB",
        )
    return content
