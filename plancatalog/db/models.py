"""SQLAlchemy async database models for PlanCatalog.

Catalog tables (categories, items, variants, add-on edges) are soft-deleted
through ``is_active``; floorplan BOM entries self-reference their parent.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class CategoryModel(Base):
    """Catalog category (e.g. Lighting, Switches)."""

    __tablename__ = "categories"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class CatalogItemModel(Base):
    """Logical product, identified by its base model number."""

    __tablename__ = "items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    category_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories.id"), nullable=False, index=True
    )
    base_model_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    dimensions: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_items_category_active", "category_id", "is_active"),
    )


class ItemVariantModel(Base):
    """Purchasable style (colour/finish) of an item."""

    __tablename__ = "item_variants"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    item_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    style_name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    image_path: Mapped[str | None] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_variant_price_non_negative"),
    )


class VariantAddonModel(Base):
    """Directed add-on edge between two variants."""

    __tablename__ = "variant_addons"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    variant_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("item_variants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    addon_variant_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("item_variants.id", ondelete="CASCADE"), nullable=False
    )
    is_optional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("variant_id", "addon_variant_id", name="uq_variant_addon_pair"),
        CheckConstraint("variant_id <> addon_variant_id", name="check_addon_no_self_loop"),
    )


# Case-insensitive uniqueness (category names, styles within an item)
Index("idx_categories_name_lower", func.lower(CategoryModel.name), unique=True)
Index(
    "idx_variants_item_style",
    ItemVariantModel.item_id,
    func.lower(ItemVariantModel.style_name),
    unique=True,
)


class FloorplanModel(Base):
    """Floorplan that catalog variants are placed on."""

    __tablename__ = "floorplans"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id: Mapped[str | None] = mapped_column(Text, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    image_path: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class BomEntryModel(Base):
    """Price-snapshotted BOM line for a floorplan.

    References (item_id, variant_id) are only used for catalog refresh;
    everything shown to the user comes from the snapshot columns.
    """

    __tablename__ = "floorplan_bom_entries"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    floorplan_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("floorplans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("items.id"), nullable=False)
    variant_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("item_variants.id"), nullable=False, index=True
    )
    parent_bom_entry_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("floorplan_bom_entries.id", ondelete="CASCADE"),
        index=True,
    )

    # Snapshots
    name_snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    model_number_snapshot: Mapped[str | None] = mapped_column(Text)
    price_snapshot: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    picture_path: Mapped[str | None] = mapped_column(Text)
    # Add-on slot order for children, 0 for main entries
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        # One main entry per variant per floorplan
        Index(
            "idx_bom_main_unique",
            "floorplan_id",
            "variant_id",
            unique=True,
            postgresql_where=text("parent_bom_entry_id IS NULL"),
            sqlite_where=text("parent_bom_entry_id IS NULL"),
        ),
    )


class PlacementModel(Base):
    """Rectangle on a floorplan referencing a BOM entry."""

    __tablename__ = "placements"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    bom_entry_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("floorplan_bom_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    x: Mapped[float] = mapped_column(Float, nullable=False)
    y: Mapped[float] = mapped_column(Float, nullable=False)
    width: Mapped[float] = mapped_column(Float, nullable=False)
    height: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint("width > 0 AND height > 0", name="check_placement_positive_size"),
    )


class CatalogSyncRunModel(Base):
    """Audit row for each spreadsheet-to-catalog sync run."""

    __tablename__ = "catalog_sync_runs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    run_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    source_file: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    counters: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    message: Mapped[str | None] = mapped_column(Text)
    duration_seconds: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class SyncLeaseModel(Base):
    """Named lease shared by every process; one row while a sync holds it.

    A lease past ``expires_at`` belongs to a crashed holder and may be taken
    over.
    """

    __tablename__ = "sync_leases"

    name: Mapped[str] = mapped_column(Text, primary_key=True)
    holder: Mapped[str] = mapped_column(Text, nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
