"""BOM routes.

Routes:
- GET    /api/floorplans/{floorplan_id}/bom          - Grouped BOM with totals
- POST   /api/floorplans/{floorplan_id}/bom/refresh  - Refresh snapshots from catalog
- PUT    /api/bom-entries/{bom_entry_id}/variant     - Switch an entry's variant
- DELETE /api/bom-entries/{bom_entry_id}             - Delete entry, children, placements
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from plancatalog.bom import BomConflictError, BomError, BomService, InvalidPlacementError
from plancatalog.db.connection import get_session
from plancatalog.web.models import (
    BomEntryResponse,
    ChangeReportResponse,
    FloorplanBomResponse,
    SwitchVariantRequest,
)

router = APIRouter(tags=["bom"])


def bom_http_error(exc: BomError) -> HTTPException:
    """Map a BOM error to 409 (conflict), 422 (bad placement) or 404."""
    if isinstance(exc, BomConflictError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, InvalidPlacementError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        code = status.HTTP_404_NOT_FOUND
    return HTTPException(status_code=code, detail=str(exc))


@router.get("/api/floorplans/{floorplan_id}/bom", response_model=FloorplanBomResponse)
async def get_floorplan_bom(floorplan_id: UUID):
    async with get_session() as session:
        try:
            bom = await BomService(session).get_bom_for_floorplan(floorplan_id)
        except BomError as e:
            raise bom_http_error(e)
        return FloorplanBomResponse.from_bom(bom)


@router.post(
    "/api/floorplans/{floorplan_id}/bom/refresh", response_model=ChangeReportResponse
)
async def refresh_floorplan_bom(floorplan_id: UUID):
    """Refresh BOM snapshots whose catalog price changed."""
    async with get_session() as session:
        try:
            report = await BomService(session).update_from_catalog(floorplan_id)
        except BomError as e:
            raise bom_http_error(e)
        return ChangeReportResponse.from_report(report)


@router.put("/api/bom-entries/{bom_entry_id}/variant", response_model=BomEntryResponse)
async def switch_bom_entry_variant(bom_entry_id: UUID, request: SwitchVariantRequest):
    """Switch an entry to another variant; the entry keeps its id."""
    async with get_session() as session:
        try:
            entry = await BomService(session).switch_variant(bom_entry_id, request.variant_id)
        except BomError as e:
            raise bom_http_error(e)
        return BomEntryResponse.from_record(entry)


@router.delete("/api/bom-entries/{bom_entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bom_entry(bom_entry_id: UUID):
    async with get_session() as session:
        try:
            await BomService(session).delete_bom_entry(bom_entry_id)
        except BomError as e:
            raise bom_http_error(e)
