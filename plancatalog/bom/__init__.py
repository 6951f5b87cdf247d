"""Floorplan bill of materials."""

from plancatalog.bom.errors import (
    BomConflictError,
    BomEntryNotFoundError,
    BomError,
    FloorplanNotFoundError,
    InvalidPlacementError,
    ItemNotFoundError,
    PlacementNotFoundError,
    VariantNotFoundError,
)
from plancatalog.bom.service import BomService
from plancatalog.bom.types import BomGroup, ChangeReport, FloorplanBom, Rect

__all__ = [
    "BomConflictError",
    "BomEntryNotFoundError",
    "BomError",
    "BomGroup",
    "BomService",
    "ChangeReport",
    "FloorplanBom",
    "FloorplanNotFoundError",
    "InvalidPlacementError",
    "ItemNotFoundError",
    "PlacementNotFoundError",
    "Rect",
    "VariantNotFoundError",
]
