"""Placement routes.

Routes:
- POST   /api/placements                 - Place a variant on a floorplan
- DELETE /api/placements/{placement_id}  - Remove a placement
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, status

from plancatalog.bom import BomError, BomService, Rect
from plancatalog.db.connection import get_session
from plancatalog.web.models import (
    PlacementCreateRequest,
    PlacementDeleteResponse,
    PlacementResponse,
)
from plancatalog.web.routes.bom import bom_http_error

router = APIRouter(prefix="/api/placements", tags=["placements"])


@router.post("", response_model=PlacementResponse, status_code=status.HTTP_201_CREATED)
async def create_placement(request: PlacementCreateRequest):
    """Place a variant; the floorplan's BOM entry for it is created on first use."""
    rect = Rect(x=request.x, y=request.y, width=request.width, height=request.height)
    async with get_session() as session:
        try:
            placement = await BomService(session).place_variant(
                request.floorplan_id, request.variant_id, rect
            )
        except BomError as e:
            raise bom_http_error(e)
        return PlacementResponse.from_record(placement)


@router.delete("/{placement_id}", response_model=PlacementDeleteResponse)
async def delete_placement(placement_id: UUID):
    """Remove a placement; the BOM entry goes with its last placement."""
    async with get_session() as session:
        try:
            entry_removed = await BomService(session).remove_placement(placement_id)
        except BomError as e:
            raise bom_http_error(e)
        return PlacementDeleteResponse(bom_entry_removed=entry_removed)
