"""Database layer for PlanCatalog with async SQLAlchemy."""

from plancatalog.db.connection import get_session, init_db
from plancatalog.db.models import (
    Base,
    BomEntryModel,
    CatalogItemModel,
    CatalogSyncRunModel,
    CategoryModel,
    FloorplanModel,
    ItemVariantModel,
    PlacementModel,
    VariantAddonModel,
)

__all__ = [
    "Base",
    "CategoryModel",
    "CatalogItemModel",
    "ItemVariantModel",
    "VariantAddonModel",
    "FloorplanModel",
    "BomEntryModel",
    "PlacementModel",
    "CatalogSyncRunModel",
    "get_session",
    "init_db",
]
