"""Async repositories returning plain records."""

from plancatalog.repositories.catalog import (
    CategoryRepository,
    ItemRepository,
    VariantAddonRepository,
    VariantRepository,
)
from plancatalog.repositories.floorplan import (
    BomEntryRepository,
    FloorplanRepository,
    PlacementRepository,
)
from plancatalog.repositories.sync_lease import SyncLeaseRepository
from plancatalog.repositories.records import (
    BomEntry,
    CatalogItem,
    Category,
    Floorplan,
    Placement,
    Variant,
    VariantAddon,
)

__all__ = [
    "CategoryRepository",
    "ItemRepository",
    "VariantRepository",
    "VariantAddonRepository",
    "FloorplanRepository",
    "BomEntryRepository",
    "PlacementRepository",
    "SyncLeaseRepository",
    "Category",
    "CatalogItem",
    "Variant",
    "VariantAddon",
    "Floorplan",
    "BomEntry",
    "Placement",
]
