"""Plain records returned by the repositories.

Repositories never hand ORM instances to services: a rolled-back unit of work
during a sync must not invalidate state the reconciler is still holding.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(slots=True)
class Category:
    id: UUID
    name: str
    sort_order: int
    is_active: bool


@dataclass(slots=True)
class CatalogItem:
    id: UUID
    category_id: UUID
    base_model_number: str
    name: str
    description: str | None
    dimensions: str | None
    is_active: bool


@dataclass(slots=True)
class Variant:
    id: UUID
    item_id: UUID
    style_name: str
    price: Decimal
    image_path: str | None
    sort_order: int
    is_active: bool


@dataclass(slots=True)
class VariantAddon:
    id: UUID
    variant_id: UUID
    addon_variant_id: UUID
    is_optional: bool
    sort_order: int
    addon_variant: Variant | None = None


@dataclass(slots=True)
class Floorplan:
    id: UUID
    name: str
    project_id: str | None


@dataclass(slots=True)
class BomEntry:
    id: UUID
    floorplan_id: UUID
    item_id: UUID
    variant_id: UUID
    parent_bom_entry_id: UUID | None
    name_snapshot: str
    model_number_snapshot: str | None
    price_snapshot: Decimal
    picture_path: str | None
    sort_order: int = 0

    @property
    def is_main(self) -> bool:
        return self.parent_bom_entry_id is None


@dataclass(slots=True)
class Placement:
    id: UUID
    bom_entry_id: UUID
    x: float
    y: float
    width: float
    height: float
