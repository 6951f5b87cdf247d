"""BOM views and reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from plancatalog.repositories.records import BomEntry


@dataclass(slots=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


@dataclass(slots=True)
class BomGroup:
    """A main entry with its mandatory add-on children.

    ``quantity`` is the number of placements of the main entry.
    """

    main_entry: BomEntry
    children: list[BomEntry] = field(default_factory=list)
    quantity: int = 0

    @property
    def unit_price(self) -> Decimal:
        return self.main_entry.price_snapshot + sum(
            (c.price_snapshot for c in self.children), Decimal("0")
        )

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(slots=True)
class FloorplanBom:
    floorplan_id: UUID
    groups: list[BomGroup] = field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        return sum((g.total_price for g in self.groups), Decimal("0"))


@dataclass(slots=True)
class PriceChange:
    entry_id: UUID
    name: str
    old_price: Decimal
    new_price: Decimal


@dataclass(slots=True)
class InvalidEntry:
    entry_id: UUID
    name: str
    reason: str


@dataclass(slots=True)
class ChangeReport:
    """Outcome of refreshing BOM snapshots from the catalog."""

    updated: list[PriceChange] = field(default_factory=list)
    invalid: list[InvalidEntry] = field(default_factory=list)
    total_before: Decimal = Decimal("0")
    total_after: Decimal = Decimal("0")
