"""Catalog sync routes.

Routes:
- POST /api/catalog/sync         - Upload a workbook and sync the catalog
- POST /api/catalog/sync/stream  - Same, streaming progress as server-sent events
- POST /api/catalog/sync/jobs    - Upload a workbook and sync it on the worker
- GET  /api/catalog/sync/runs    - Recent sync runs
"""

from __future__ import annotations

import asyncio
import json

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse

from plancatalog.catalog_sync import (
    CatalogSyncService,
    SyncAlreadyRunningError,
    SyncPhase,
)
from plancatalog.web.dependencies import get_sync_service, read_workbook_upload
from plancatalog.web.models import SyncJobResponse, SyncResultResponse, SyncRunResponse

router = APIRouter(prefix="/api/catalog/sync", tags=["catalog-sync"])
logger = structlog.get_logger()


async def _reject_if_running(service: CatalogSyncService) -> None:
    if await service.is_running():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A catalog sync is already running",
        )


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


@router.post("", response_model=SyncResultResponse)
async def sync_catalog(
    file: UploadFile = File(...),
    service: CatalogSyncService = Depends(get_sync_service),
):
    """Upload a workbook and synchronize the catalog with it.

    Returns the full sync result; 409 while another sync runs.
    """
    await _reject_if_running(service)
    content = await read_workbook_upload(file)
    path = service.store_upload(content, file.filename)
    logger.info("catalog_sync_requested", filename=file.filename, size=len(content))

    try:
        result = await service.sync_catalog(path)
    except SyncAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return result.to_dict()


@router.post("/stream")
async def sync_catalog_stream(
    file: UploadFile = File(...),
    service: CatalogSyncService = Depends(get_sync_service),
):
    """Synchronize the catalog, streaming progress events.

    Emits ``progress`` events ({message, phase, progress}) followed by a
    final ``result`` event, or an ``error`` event if the run was rejected.
    Disconnecting cancels the run before its next phase.
    """
    await _reject_if_running(service)
    content = await read_workbook_upload(file)
    path = service.store_upload(content, file.filename)

    async def event_stream():
        queue: asyncio.Queue = asyncio.Queue()
        cancel_event = asyncio.Event()

        def on_progress(message: str, phase: SyncPhase, progress: float | None) -> None:
            queue.put_nowait(
                ("progress", {"message": message, "phase": phase.value, "progress": progress})
            )

        task = asyncio.create_task(service.sync_catalog(path, on_progress, cancel_event))
        task.add_done_callback(lambda _: queue.put_nowait(None))

        try:
            while (item := await queue.get()) is not None:
                event, data = item
                yield _sse(event, data)

            try:
                yield _sse("result", task.result().to_dict())
            except SyncAlreadyRunningError as e:
                yield _sse("error", {"detail": str(e)})
        finally:
            if not task.done():
                logger.warning("catalog_sync_stream_closed", filename=path.name)
                cancel_event.set()

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.post("/jobs", response_model=SyncJobResponse)
async def enqueue_catalog_sync(
    file: UploadFile = File(...),
    service: CatalogSyncService = Depends(get_sync_service),
):
    """Store a workbook and enqueue its sync on the arq worker."""
    from plancatalog.core.queue import get_queue

    content = await read_workbook_upload(file)
    path = service.store_upload(content, file.filename)

    try:
        redis = await get_queue()
        job = await redis.enqueue_job("run_catalog_sync", str(path))
    except Exception as e:
        logger.error("catalog_sync_enqueue_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Job queue unavailable: {e}",
        )

    logger.info("catalog_sync_enqueued", job_id=job.job_id, path=str(path))
    return SyncJobResponse(job_id=job.job_id, stored_path=str(path))


@router.get("/runs", response_model=list[SyncRunResponse])
async def list_sync_runs(
    limit: int = 20,
    service: CatalogSyncService = Depends(get_sync_service),
):
    """Most recent catalog sync runs, newest first."""
    return await service.recent_runs(limit=min(max(limit, 1), 200))
