"""Bill of materials assembly for floorplans.

A main BOM entry is created the first time a variant is placed on a
floorplan, together with one child entry per mandatory add-on of that
variant. Entries carry name, model number, price and picture snapshots that
only change when the entry is switched or refreshed from the catalog.

Every mutating operation is one unit of work and commits before returning.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from plancatalog.bom.errors import (
    BomConflictError,
    BomEntryNotFoundError,
    FloorplanNotFoundError,
    InvalidPlacementError,
    ItemNotFoundError,
    PlacementNotFoundError,
    VariantNotFoundError,
)
from plancatalog.bom.locks import KeyedLock
from plancatalog.bom.types import (
    BomGroup,
    ChangeReport,
    FloorplanBom,
    InvalidEntry,
    PriceChange,
    Rect,
)
from plancatalog.repositories import (
    BomEntry,
    BomEntryRepository,
    CatalogItem,
    FloorplanRepository,
    ItemRepository,
    Placement,
    PlacementRepository,
    Variant,
    VariantAddonRepository,
    VariantRepository,
)

logger = logging.getLogger(__name__)

# Keyed by (floorplan_id, variant_id)
_entry_locks = KeyedLock()
# Keyed by BOM entry id; taken before _entry_locks
_switch_locks = KeyedLock()


def _snapshot(item: CatalogItem, variant: Variant) -> dict:
    return {
        "name_snapshot": item.name,
        "model_number_snapshot": item.base_model_number or variant.style_name,
        "price_snapshot": variant.price,
        "picture_path": variant.image_path,
    }


class BomService:
    """BOM operations bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.entries = BomEntryRepository(session)
        self.placements = PlacementRepository(session)
        self.floorplans = FloorplanRepository(session)
        self.items = ItemRepository(session)
        self.variants = VariantRepository(session)
        self.addons = VariantAddonRepository(session)

    async def _require_floorplan(self, floorplan_id: UUID) -> None:
        if await self.floorplans.find_by_id(floorplan_id) is None:
            raise FloorplanNotFoundError(f"Floorplan not found: {floorplan_id}")

    async def _require_entry(self, bom_entry_id: UUID) -> BomEntry:
        entry = await self.entries.find_by_id(bom_entry_id)
        if entry is None:
            raise BomEntryNotFoundError(f"BOM entry not found: {bom_entry_id}")
        return entry

    async def _load_variant(self, variant_id: UUID) -> tuple[CatalogItem, Variant]:
        variant = await self.variants.find_by_id(variant_id)
        if variant is None:
            raise VariantNotFoundError(f"Variant not found: {variant_id}")
        item = await self.items.find_by_id(variant.item_id)
        if item is None:
            raise ItemNotFoundError(f"Item not found: {variant.item_id}")
        return item, variant

    async def _create_children(self, parent: BomEntry, variant_id: UUID) -> list[BomEntry]:
        """One child per mandatory add-on edge of ``variant_id``, in edge order."""
        children = []
        for edge in await self.addons.find_by_variant_id(variant_id):
            if edge.is_optional or edge.addon_variant is None:
                continue
            addon_item = await self.items.find_by_id(edge.addon_variant.item_id)
            if addon_item is None:
                logger.warning(f"Skipping add-on {edge.addon_variant_id}: item missing")
                continue
            child = await self.entries.create(
                floorplan_id=parent.floorplan_id,
                item_id=addon_item.id,
                variant_id=edge.addon_variant_id,
                parent_bom_entry_id=parent.id,
                name_snapshot=addon_item.name,
                model_number_snapshot=addon_item.base_model_number or "",
                price_snapshot=edge.addon_variant.price,
                picture_path=edge.addon_variant.image_path,
                sort_order=edge.sort_order,
            )
            children.append(child)
        return children

    async def create_bom_entry(self, floorplan_id: UUID, variant_id: UUID) -> BomEntry:
        """Return the main entry for (floorplan, variant), creating it if needed.

        Raises:
            FloorplanNotFoundError, VariantNotFoundError, ItemNotFoundError
        """
        async with _entry_locks.hold((floorplan_id, variant_id)):
            existing = await self.entries.find_main_entry(floorplan_id, variant_id)
            if existing is not None:
                return existing

            await self._require_floorplan(floorplan_id)
            item, variant = await self._load_variant(variant_id)

            try:
                main = await self.entries.create(
                    floorplan_id=floorplan_id,
                    item_id=item.id,
                    variant_id=variant.id,
                    **_snapshot(item, variant),
                )
                children = await self._create_children(main, variant.id)
                await self.session.commit()
            except IntegrityError:
                # Created concurrently by another process
                await self.session.rollback()
                existing = await self.entries.find_main_entry(floorplan_id, variant_id)
                if existing is None:
                    raise
                return existing

            logger.info(
                f"Created BOM entry {main.id} for {item.base_model_number} "
                f"{variant.style_name} with {len(children)} add-ons"
            )
            return main

    async def switch_variant(self, bom_entry_id: UUID, new_variant_id: UUID) -> BomEntry:
        """Re-point an entry to another variant, keeping its id.

        Snapshots are overwritten; for a main entry the children are replaced
        with the new variant's mandatory add-ons.

        Raises:
            BomEntryNotFoundError, VariantNotFoundError, ItemNotFoundError,
            BomConflictError
        """
        async with _switch_locks.hold(bom_entry_id):
            entry = await self._require_entry(bom_entry_id)
            async with _entry_locks.hold((entry.floorplan_id, new_variant_id)):
                return await self._switch_locked(entry, new_variant_id)

    async def _switch_locked(self, entry: BomEntry, new_variant_id: UUID) -> BomEntry:
        item, variant = await self._load_variant(new_variant_id)

        if entry.is_main:
            other = await self.entries.find_main_entry(entry.floorplan_id, new_variant_id)
            if other is not None and other.id != entry.id:
                raise BomConflictError(
                    f"Floorplan {entry.floorplan_id} already has an entry for variant {new_variant_id}"
                )

        try:
            await self.entries.update(
                entry.id, variant_id=variant.id, item_id=item.id, **_snapshot(item, variant)
            )
            if entry.is_main:
                await self.entries.delete_children(entry.id)
                updated = await self._require_entry(entry.id)
                await self._create_children(updated, variant.id)
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise BomConflictError(
                f"Floorplan {entry.floorplan_id} already has an entry for variant {new_variant_id}"
            ) from e

        logger.info(f"Switched BOM entry {entry.id} to variant {new_variant_id}")
        return await self._require_entry(entry.id)

    async def get_bom_for_floorplan(self, floorplan_id: UUID) -> FloorplanBom:
        """Grouped BOM; quantity of a group is the main entry's placement count.

        Raises:
            FloorplanNotFoundError
        """
        await self._require_floorplan(floorplan_id)

        entries = await self.entries.find_by_floorplan(floorplan_id)
        counts = await self.entries.placement_counts(floorplan_id)

        groups: dict[UUID, BomGroup] = {}
        for entry in entries:
            if entry.is_main:
                groups[entry.id] = BomGroup(main_entry=entry, quantity=counts.get(entry.id, 0))
        for entry in entries:
            if not entry.is_main and entry.parent_bom_entry_id in groups:
                groups[entry.parent_bom_entry_id].children.append(entry)
        for group in groups.values():
            group.children.sort(key=lambda c: c.sort_order)

        return FloorplanBom(floorplan_id=floorplan_id, groups=list(groups.values()))

    async def update_from_catalog(self, floorplan_id: UUID) -> ChangeReport:
        """Refresh snapshots whose catalog price changed.

        Entries whose variant or item is gone or inactive are reported as
        invalid and left untouched.
        """
        before = await self.get_bom_for_floorplan(floorplan_id)
        report = ChangeReport(total_before=before.total_price)

        for entry in await self.entries.find_by_floorplan(floorplan_id):
            variant = await self.variants.find_by_id(entry.variant_id)
            item = await self.items.find_by_id(variant.item_id) if variant else None

            if variant is None or item is None or not variant.is_active or not item.is_active:
                report.invalid.append(
                    InvalidEntry(
                        entry_id=entry.id,
                        name=entry.name_snapshot,
                        reason="Item/variant inactive" if variant else "Variant not found in catalog",
                    )
                )
                continue

            if variant.price != entry.price_snapshot:
                await self.entries.update(entry.id, **_snapshot(item, variant))
                report.updated.append(
                    PriceChange(
                        entry_id=entry.id,
                        name=entry.name_snapshot,
                        old_price=entry.price_snapshot,
                        new_price=variant.price,
                    )
                )

        await self.session.commit()

        after = await self.get_bom_for_floorplan(floorplan_id)
        report.total_after = after.total_price
        logger.info(
            f"Refreshed BOM of floorplan {floorplan_id}: {len(report.updated)} updated, "
            f"{len(report.invalid)} invalid"
        )
        return report

    async def delete_bom_entry(self, bom_entry_id: UUID) -> None:
        """Delete an entry, its children and its placements."""
        await self._require_entry(bom_entry_id)
        await self.entries.delete(bom_entry_id)
        await self.session.commit()

    async def place_variant(self, floorplan_id: UUID, variant_id: UUID, rect: Rect) -> Placement:
        """Place a variant on a floorplan, reusing its main BOM entry.

        Raises:
            InvalidPlacementError, FloorplanNotFoundError,
            VariantNotFoundError, ItemNotFoundError
        """
        if rect.width <= 0 or rect.height <= 0:
            raise InvalidPlacementError("Placement width and height must be positive")

        entry = await self.create_bom_entry(floorplan_id, variant_id)
        placement = await self.placements.create(
            bom_entry_id=entry.id, x=rect.x, y=rect.y, width=rect.width, height=rect.height
        )
        await self.session.commit()
        return placement

    async def remove_placement(self, placement_id: UUID) -> bool:
        """Delete a placement, and its BOM entry once no placement references it.

        Returns:
            True if the BOM entry was deleted as well
        """
        placement = await self.placements.find_by_id(placement_id)
        if placement is None:
            raise PlacementNotFoundError(f"Placement not found: {placement_id}")

        await self.placements.delete(placement_id)
        entry_removed = False
        if await self.entries.placement_count(placement.bom_entry_id) == 0:
            await self.entries.delete(placement.bom_entry_id)
            entry_removed = True
        await self.session.commit()
        return entry_removed
