"""Catalog sync service: single-flight orchestration of a sync run.

A run holds the process-local lock and the shared ``catalog_sync`` lease in
the database, so the web app and the arq worker never sync concurrently.

Flow of one run:
1. Parse and group the first worksheet (worker thread)
2. Extract embedded images into storage (worker thread)
3. Reconcile categories, items, variants and add-on links
4. Record the run in catalog_sync_runs
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plancatalog.catalog_sync.errors import SyncAlreadyRunningError
from plancatalog.catalog_sync.grouping import variant_count
from plancatalog.catalog_sync.images import ImageExtractor
from plancatalog.catalog_sync.reconciler import PHASE_PROGRESS, CatalogReconciler
from plancatalog.catalog_sync.types import (
    ProgressCallback,
    SyncPhase,
    SyncResult,
    no_progress,
)
from plancatalog.catalog_sync.workbook import read_grouped_items
from plancatalog.config import AppConfig, get_config
from plancatalog.db.connection import get_session
from plancatalog.db.models import CatalogSyncRunModel
from plancatalog.repositories import SyncLeaseRepository
from plancatalog.storage.file_storage import FileStorage

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

UPLOAD_SUBDIRECTORY = "imports"
LEASE_NAME = "catalog_sync"

_sync_lock = asyncio.Lock()


async def sync_in_progress(session: AsyncSession) -> bool:
    """True while this process or any other holds the catalog sync."""
    if _sync_lock.locked():
        return True
    return await SyncLeaseRepository(session).is_held(LEASE_NAME)


class CatalogSyncService:
    """Runs spreadsheet-to-catalog syncs, one at a time across processes."""

    def __init__(
        self,
        config: AppConfig | None = None,
        storage: FileStorage | None = None,
        session_factory: SessionFactory = get_session,
    ):
        self.config = config or get_config()
        self.storage = storage or FileStorage(self.config.storage.upload_dir)
        self.session_factory = session_factory
        self.extractor = ImageExtractor(
            self.storage,
            subdirectory=self.config.storage.image_subdirectory,
            temp_dir=self.config.sync.temp_dir,
        )

    def store_upload(self, data: bytes, filename: str) -> Path:
        """Persist an uploaded workbook and return its absolute path."""
        relative = self.storage.save_file(data, filename, UPLOAD_SUBDIRECTORY)
        return self.storage.get_file_path(relative)

    async def sync_catalog(
        self,
        workbook_path: Path,
        progress: ProgressCallback = no_progress,
        cancel_event: asyncio.Event | None = None,
    ) -> SyncResult:
        """Synchronize the catalog with a workbook.

        Args:
            workbook_path: Path of the ``.xlsx`` file
            progress: Called with (message, phase, progress) for every log line
            cancel_event: When set, the run stops before its next phase

        Returns:
            SyncResult; fatal errors are reported in it, not raised

        Raises:
            SyncAlreadyRunningError: Another sync is running in this or another process
        """
        if _sync_lock.locked():
            raise SyncAlreadyRunningError()

        async with _sync_lock:
            holder = uuid.uuid4().hex
            try:
                acquired = await self._acquire_lease(holder)
            except SQLAlchemyError as e:
                logger.error(f"Could not take the catalog sync lease: {e}")
                result = SyncResult(success=False)
                result.log.append(f"Fatal error: {e}")
                result.add_error(0, f"Fatal error: {e}")
                return result
            if not acquired:
                raise SyncAlreadyRunningError()
            try:
                run_timestamp = datetime.now(timezone.utc)
                result = await self._run(Path(workbook_path), progress, cancel_event)
                await self._record_run(result, Path(workbook_path), run_timestamp)
                return result
            finally:
                await self._release_lease(holder)

    async def is_running(self) -> bool:
        async with self.session_factory() as session:
            return await sync_in_progress(session)

    async def _acquire_lease(self, holder: str) -> bool:
        async with self.session_factory() as session:
            acquired = await SyncLeaseRepository(session).try_acquire(
                LEASE_NAME, holder, self.config.sync.lock_ttl_seconds
            )
            await session.commit()
        if acquired:
            logger.debug(f"Acquired catalog sync lease {holder}")
        else:
            logger.warning("Catalog sync lease is held by another process")
        return acquired

    async def _release_lease(self, holder: str) -> None:
        try:
            async with self.session_factory() as session:
                await SyncLeaseRepository(session).release(LEASE_NAME, holder)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to release catalog sync lease {holder}: {e}")

    async def _run(
        self,
        path: Path,
        progress: ProgressCallback,
        cancel_event: asyncio.Event | None,
    ) -> SyncResult:
        result = SyncResult()
        started = time.perf_counter()

        def log(message: str, phase: SyncPhase, value: float | None = None) -> None:
            result.log.append(message)
            logger.info(message)
            progress(message, phase, value)

        logger.info(f"Starting catalog sync from {path.name}")
        try:
            log("Parsing Excel file...", SyncPhase.PARSING)
            grouped = await asyncio.to_thread(
                read_grouped_items,
                path,
                self.config.sync.data_start_row,
                self.config.sync.min_row_cells,
            )
            images = await asyncio.to_thread(self.extractor.extract, path)
            log(
                f"Found {len(grouped)} unique items with {variant_count(grouped)} variants",
                SyncPhase.PARSING,
            )
            log(f"Extracted {len(images)} images", SyncPhase.PARSING, PHASE_PROGRESS[SyncPhase.PARSING])

            async with self.session_factory() as session:
                reconciler = CatalogReconciler(session, progress, cancel_event)
                await reconciler.synchronize(grouped, images, result)

            if not result.cancelled:
                log("Sync completed successfully!", SyncPhase.COMPLETE, PHASE_PROGRESS[SyncPhase.COMPLETE])
        except Exception as e:
            result.success = False
            message = f"Fatal error: {e}"
            logger.error(f"Catalog sync from {path.name} aborted: {e}", exc_info=True)
            result.log.append(message)
            progress(message, SyncPhase.ERROR, None)
            result.add_error(0, message)
        finally:
            result.duration_seconds = time.perf_counter() - started

        logger.info(
            f"Catalog sync finished with status {result.status.value} "
            f"in {result.duration_seconds:.2f}s ({len(result.errors)} errors)"
        )
        return result

    async def _record_run(self, result: SyncResult, path: Path, run_timestamp: datetime) -> None:
        """Write the catalog_sync_runs audit row; failures are logged only."""
        summary = result.to_dict()
        message = result.log[-1] if result.log else None
        try:
            async with self.session_factory() as session:
                session.add(
                    CatalogSyncRunModel(
                        run_timestamp=run_timestamp,
                        source_file=path.name,
                        status=result.status.value,
                        counters=summary["phases"],
                        error_count=len(result.errors),
                        message=message,
                        duration_seconds=result.duration_seconds,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to record catalog sync run: {e}")

    async def recent_runs(self, limit: int = 20) -> list[dict[str, Any]]:
        async with self.session_factory() as session:
            rows = await session.execute(
                select(CatalogSyncRunModel)
                .order_by(CatalogSyncRunModel.run_timestamp.desc())
                .limit(limit)
            )
            return [
                {
                    "id": str(run.id),
                    "run_timestamp": run.run_timestamp.isoformat(),
                    "source_file": run.source_file,
                    "status": run.status,
                    "counters": run.counters,
                    "error_count": run.error_count,
                    "message": run.message,
                    "duration_seconds": run.duration_seconds,
                }
                for run in rows.scalars()
            ]
