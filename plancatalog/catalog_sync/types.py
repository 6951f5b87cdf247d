"""Type definitions for spreadsheet-to-catalog synchronization."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class SyncPhase(str, Enum):
    """Phase reported to progress callbacks."""

    PARSING = "parsing"
    CATEGORIES = "categories"
    ITEMS = "items"
    VARIANTS = "variants"
    ADDONS = "addons"
    COMPLETE = "complete"
    ERROR = "error"


class SyncRunStatus(str, Enum):
    """Outcome recorded in the catalog_sync_runs audit table."""

    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


ProgressCallback = Callable[[str, SyncPhase, Optional[float]], None]


def no_progress(message: str, phase: SyncPhase, progress: float | None = None) -> None:
    """Default progress callback: ignore everything."""


@dataclass(slots=True)
class AddonRef:
    """Textual add-on reference from one of the eight add-on columns."""

    slot_number: int
    model_ref: str
    is_optional: bool


@dataclass(slots=True)
class ParsedRow:
    """One spreadsheet row, parsed."""

    row_number: int
    category: str
    item_name: str
    description: str
    model_number: str
    dimensions: str
    style: str
    price: Decimal
    addons: list[AddonRef] = field(default_factory=list)
    image_anchor_row: int | None = None


@dataclass(slots=True)
class VariantRow:
    """Variant-level slice of a parsed row."""

    row_number: int
    style: str
    price: Decimal
    addons: list[AddonRef] = field(default_factory=list)
    image_anchor_row: int | None = None


@dataclass(slots=True)
class GroupedItem:
    """All rows sharing one base model number, in sheet order.

    Item-level fields come from the first row of the group.
    """

    base_model_number: str
    name: str
    category: str
    description: str
    dimensions: str
    variants: list[VariantRow] = field(default_factory=list)

    @property
    def first_row_number(self) -> int:
        return self.variants[0].row_number if self.variants else 0


@dataclass
class CategoryCounters:
    added: int = 0
    activated: int = 0
    deactivated: int = 0
    total: int = 0


@dataclass
class ItemCounters:
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    deactivated: int = 0
    total: int = 0


@dataclass
class VariantCounters:
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    deactivated: int = 0
    images_extracted: int = 0
    total: int = 0


@dataclass
class AddonCounters:
    """Add-on reference counters; total == linked + skipped + not_found."""

    linked: int = 0
    skipped: int = 0
    not_found: int = 0
    total: int = 0


@dataclass
class SyncPhases:
    categories: CategoryCounters = field(default_factory=CategoryCounters)
    items: ItemCounters = field(default_factory=ItemCounters)
    variants: VariantCounters = field(default_factory=VariantCounters)
    addons: AddonCounters = field(default_factory=AddonCounters)


@dataclass
class SyncError:
    """Row-scoped error; row 0 means not tied to a spreadsheet row."""

    row: int
    message: str
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"row": self.row, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class SyncResult:
    """Result of a catalog sync run."""

    success: bool = True
    cancelled: bool = False
    phases: SyncPhases = field(default_factory=SyncPhases)
    log: list[str] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)
    duration_seconds: float = 0.0

    def add_error(self, row: int, message: str, details: str | None = None) -> None:
        self.errors.append(SyncError(row=row, message=message, details=details))

    @property
    def status(self) -> SyncRunStatus:
        if self.cancelled:
            return SyncRunStatus.CANCELLED
        if not self.success:
            return SyncRunStatus.FAILED
        if self.errors:
            return SyncRunStatus.PARTIAL_SUCCESS
        return SyncRunStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "cancelled": self.cancelled,
            "status": self.status.value,
            "phases": asdict(self.phases),
            "log": list(self.log),
            "errors": [e.to_dict() for e in self.errors],
            "duration_seconds": round(self.duration_seconds, 3),
        }
