"""arq worker for background catalog syncs.

Run with: arq plancatalog.worker.WorkerSettings
"""

import logging
import os
from pathlib import Path
from typing import Any

from arq.connections import RedisSettings

from plancatalog.catalog_sync import CatalogSyncService, SyncAlreadyRunningError
from plancatalog.config import get_config
from plancatalog.core.logging import configure_logging
from plancatalog.db.connection import close_db

logger = logging.getLogger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """Initialize resources when worker starts."""
    config = get_config()
    configure_logging(config)
    ctx["sync_service"] = CatalogSyncService(config)
    logger.info("Worker started")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Cleanup resources when worker stops."""
    await close_db()
    logger.info("Worker stopped. Database connection closed.")


async def run_catalog_sync(ctx: dict[str, Any], stored_path: str) -> dict[str, Any]:
    """Synchronize the catalog with a workbook already stored on disk."""
    service: CatalogSyncService = ctx.get("sync_service") or CatalogSyncService()
    logger.info(f"Starting catalog sync job for {stored_path}")

    try:
        result = await service.sync_catalog(Path(stored_path))
    except SyncAlreadyRunningError as e:
        logger.warning(f"Catalog sync job for {stored_path} rejected: {e}")
        return {"success": False, "status": "REJECTED", "detail": str(e)}

    logger.info(f"Catalog sync job completed with status {result.status.value}")
    return result.to_dict()


class WorkerSettings:
    functions = [run_catalog_sync]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(
        os.environ.get("REDIS_URL", "redis://redis:6379")
    )
    # Syncs of large workbooks can run for minutes
    job_timeout = 1800
    max_jobs = 1
