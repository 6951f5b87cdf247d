"""Pydantic request/response models for the PlanCatalog API.

Usage:
    from plancatalog.web.models import PlacementCreateRequest

    @router.post("/api/placements")
    async def create_placement(request: PlacementCreateRequest):
        ...
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from plancatalog.bom.types import BomGroup, ChangeReport, FloorplanBom
from plancatalog.repositories.records import BomEntry, Placement


# ============================================================================
# BOM Models
# ============================================================================


class BomEntryResponse(BaseModel):
    id: UUID
    floorplan_id: UUID
    item_id: UUID
    variant_id: UUID
    parent_bom_entry_id: Optional[UUID] = None
    name_snapshot: str
    model_number_snapshot: Optional[str] = None
    price_snapshot: Decimal
    picture_path: Optional[str] = None

    @classmethod
    def from_record(cls, entry: BomEntry) -> BomEntryResponse:
        return cls(
            id=entry.id,
            floorplan_id=entry.floorplan_id,
            item_id=entry.item_id,
            variant_id=entry.variant_id,
            parent_bom_entry_id=entry.parent_bom_entry_id,
            name_snapshot=entry.name_snapshot,
            model_number_snapshot=entry.model_number_snapshot,
            price_snapshot=entry.price_snapshot,
            picture_path=entry.picture_path,
        )


class BomGroupResponse(BaseModel):
    main_entry: BomEntryResponse
    children: List[BomEntryResponse]
    quantity: int
    total_price: Decimal

    @classmethod
    def from_group(cls, group: BomGroup) -> BomGroupResponse:
        return cls(
            main_entry=BomEntryResponse.from_record(group.main_entry),
            children=[BomEntryResponse.from_record(c) for c in group.children],
            quantity=group.quantity,
            total_price=group.total_price,
        )


class FloorplanBomResponse(BaseModel):
    """Used by: GET /api/floorplans/{floorplan_id}/bom"""

    floorplan_id: UUID
    groups: List[BomGroupResponse]
    total_price: Decimal

    @classmethod
    def from_bom(cls, bom: FloorplanBom) -> FloorplanBomResponse:
        return cls(
            floorplan_id=bom.floorplan_id,
            groups=[BomGroupResponse.from_group(g) for g in bom.groups],
            total_price=bom.total_price,
        )


class PriceChangeResponse(BaseModel):
    entry_id: UUID
    name: str
    old_price: Decimal
    new_price: Decimal


class InvalidEntryResponse(BaseModel):
    entry_id: UUID
    name: str
    reason: str


class ChangeReportResponse(BaseModel):
    """Used by: POST /api/floorplans/{floorplan_id}/bom/refresh"""

    updated: List[PriceChangeResponse]
    invalid: List[InvalidEntryResponse]
    total_before: Decimal
    total_after: Decimal

    @classmethod
    def from_report(cls, report: ChangeReport) -> ChangeReportResponse:
        return cls(
            updated=[
                PriceChangeResponse(
                    entry_id=c.entry_id, name=c.name, old_price=c.old_price, new_price=c.new_price
                )
                for c in report.updated
            ],
            invalid=[
                InvalidEntryResponse(entry_id=i.entry_id, name=i.name, reason=i.reason)
                for i in report.invalid
            ],
            total_before=report.total_before,
            total_after=report.total_after,
        )


class SwitchVariantRequest(BaseModel):
    """Used by: PUT /api/bom-entries/{bom_entry_id}/variant"""

    variant_id: UUID


# ============================================================================
# Placement Models
# ============================================================================


class PlacementCreateRequest(BaseModel):
    """Used by: POST /api/placements"""

    floorplan_id: UUID
    variant_id: UUID
    x: float
    y: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class PlacementResponse(BaseModel):
    id: UUID
    bom_entry_id: UUID
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_record(cls, placement: Placement) -> PlacementResponse:
        return cls(
            id=placement.id,
            bom_entry_id=placement.bom_entry_id,
            x=placement.x,
            y=placement.y,
            width=placement.width,
            height=placement.height,
        )


class PlacementDeleteResponse(BaseModel):
    deleted: bool = True
    bom_entry_removed: bool


# ============================================================================
# Catalog Sync Models
# ============================================================================


class SyncErrorResponse(BaseModel):
    row: int
    message: str
    details: Optional[str] = None


class SyncResultResponse(BaseModel):
    """Used by: POST /api/catalog/sync"""

    success: bool
    cancelled: bool
    status: str
    phases: dict
    log: List[str]
    errors: List[SyncErrorResponse]
    duration_seconds: float


class SyncJobResponse(BaseModel):
    """Used by: POST /api/catalog/sync/jobs"""

    job_id: str
    stored_path: str


class SyncRunResponse(BaseModel):
    """Used by: GET /api/catalog/sync/runs"""

    id: UUID
    run_timestamp: str
    source_file: str
    status: str
    counters: dict
    error_count: int
    message: Optional[str] = None
    duration_seconds: Optional[float] = None
