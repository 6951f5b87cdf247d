"""Catalog reconciler: diff grouped spreadsheet items against the catalog.

Runs four ordered phases (categories, items, variants, add-on links).
Each category, item, variant or edge is its own unit of work: it is committed
on success, and on a database error it is rolled back and recorded as a
row-scoped error while the run continues.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plancatalog.catalog_sync.addons import AddonLinker
from plancatalog.catalog_sync.types import (
    GroupedItem,
    ProgressCallback,
    SyncPhase,
    SyncResult,
    no_progress,
)
from plancatalog.repositories import (
    CatalogItem,
    CategoryRepository,
    ItemRepository,
    Variant,
    VariantRepository,
)

logger = logging.getLogger(__name__)

# Progress reported when a phase finishes
PHASE_PROGRESS = {
    SyncPhase.PARSING: 0.1,
    SyncPhase.CATEGORIES: 0.25,
    SyncPhase.ITEMS: 0.5,
    SyncPhase.VARIANTS: 0.75,
    SyncPhase.ADDONS: 0.95,
    SyncPhase.COMPLETE: 1.0,
}


def _nullable(value: str) -> str | None:
    return value or None


class CatalogReconciler:
    """Applies grouped spreadsheet items to the catalog."""

    def __init__(
        self,
        session: AsyncSession,
        progress: ProgressCallback = no_progress,
        cancel_event: asyncio.Event | None = None,
    ):
        self.session = session
        self.progress = progress
        self.cancel_event = cancel_event
        self.categories = CategoryRepository(session)
        self.items = ItemRepository(session)
        self.variants = VariantRepository(session)
        self.result = SyncResult()

    def log(self, message: str, phase: SyncPhase, progress: float | None = None) -> None:
        self.result.log.append(message)
        logger.info(message.strip())
        self.progress(message, phase, progress)

    def _cancelled(self, next_phase: SyncPhase) -> bool:
        if self.cancel_event is None or not self.cancel_event.is_set():
            return False
        self.result.cancelled = True
        self.result.success = False
        self.log(f"Sync cancelled before {next_phase.value} phase", SyncPhase.ERROR)
        return True

    async def synchronize(
        self,
        grouped: dict[str, GroupedItem],
        images: dict[int, str],
        result: SyncResult | None = None,
    ) -> SyncResult:
        """Run all four phases.

        Args:
            grouped: Items keyed by base model number
            images: Sheet row -> stored image path
            result: Result to accumulate into (a fresh one by default)

        Returns:
            The populated SyncResult. Database errors outside a unit of
            work propagate to the caller.
        """
        if result is not None:
            self.result = result

        if self._cancelled(SyncPhase.CATEGORIES):
            return self.result
        await self.sync_categories(grouped)

        if self._cancelled(SyncPhase.ITEMS):
            return self.result
        item_ids, deactivated_item_ids = await self.sync_items(grouped)

        if self._cancelled(SyncPhase.VARIANTS):
            return self.result
        await self.sync_variants(grouped, item_ids, images, deactivated_item_ids)

        if self._cancelled(SyncPhase.ADDONS):
            return self.result
        await self.sync_addons(grouped, item_ids)

        return self.result

    async def sync_categories(self, grouped: dict[str, GroupedItem]) -> None:
        """Phase 1: create, reactivate and deactivate categories."""
        counters = self.result.phases.categories
        self.log("Phase 1: Syncing categories...", SyncPhase.CATEGORIES)

        wanted: dict[str, str] = {}
        for item in grouped.values():
            if item.category:
                wanted.setdefault(item.category.lower(), item.category)

        existing = await self.categories.find_all(include_inactive=True)
        by_name = {c.name.lower(): c for c in existing}

        for key, name in wanted.items():
            category = by_name.get(key)
            if category is not None and category.is_active:
                continue
            try:
                if category is not None:
                    await self.categories.activate(category.id)
                else:
                    await self.categories.create(name)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                self.result.add_error(0, f"Failed to sync category {name}", str(e))
                continue

            if category is not None:
                counters.activated += 1
                self.log(f"  Activated category: {name}", SyncPhase.CATEGORIES)
            else:
                counters.added += 1
                self.log(f"  Created category: {name}", SyncPhase.CATEGORIES)

        for category in existing:
            if not category.is_active or category.name.lower() in wanted:
                continue
            try:
                await self.categories.deactivate(category.id)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                self.result.add_error(0, f"Failed to deactivate category {category.name}", str(e))
                continue
            counters.deactivated += 1
            self.log(f"  Deactivated category: {category.name}", SyncPhase.CATEGORIES)

        counters.total = len(wanted)
        self.log(
            f"Categories synced: {counters.added} added, {counters.activated} activated, "
            f"{counters.deactivated} deactivated",
            SyncPhase.CATEGORIES,
            PHASE_PROGRESS[SyncPhase.CATEGORIES],
        )

    async def sync_items(
        self, grouped: dict[str, GroupedItem]
    ) -> tuple[dict[str, UUID], list[UUID]]:
        """Phase 2: upsert items and deactivate those absent from the sheet.

        Absent items are deactivated without cascading; their variants are
        swept in phase 3.

        Returns:
            (base model -> item id for synchronized items, ids of items
            deactivated here)
        """
        counters = self.result.phases.items
        self.log("Phase 2: Syncing base items...", SyncPhase.ITEMS)

        categories = {
            c.name.lower(): c for c in await self.categories.find_all(include_inactive=True)
        }
        existing: dict[str, CatalogItem] = {
            item.base_model_number: item
            for item in await self.items.find_all(include_inactive=True)
        }
        item_ids: dict[str, UUID] = {}

        for base_model, group in grouped.items():
            category = categories.get(group.category.lower())
            if category is None:
                self.result.add_error(
                    group.first_row_number, f"Category not found: {group.category}"
                )
                continue

            values = {
                "category_id": category.id,
                "name": group.name,
                "description": _nullable(group.description),
                "dimensions": _nullable(group.dimensions),
                "is_active": True,
            }
            current = existing.get(base_model)
            try:
                if current is not None:
                    changes = {k: v for k, v in values.items() if getattr(current, k) != v}
                    if changes:
                        await self.items.update(current.id, **changes)
                    item_id = current.id
                else:
                    changes = values
                    created = await self.items.create(
                        category_id=category.id,
                        name=group.name,
                        base_model_number=base_model,
                        description=group.description,
                        dimensions=group.dimensions,
                    )
                    item_id = created.id
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                self.result.add_error(
                    group.first_row_number, f"Failed to sync item {group.name}", str(e)
                )
                continue

            item_ids[base_model] = item_id
            if current is None:
                counters.added += 1
                self.log(f"  Created item: {group.name} ({base_model})", SyncPhase.ITEMS)
            elif changes:
                counters.updated += 1
                self.log(f"  Updated item: {group.name} ({base_model})", SyncPhase.ITEMS)
            else:
                counters.unchanged += 1

        deactivated: list[UUID] = []
        for base_model, item in existing.items():
            if not item.is_active or base_model in grouped:
                continue
            try:
                await self.items.deactivate(item.id, cascade=False)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                self.result.add_error(0, f"Failed to deactivate item {item.name}", str(e))
                continue
            deactivated.append(item.id)
            counters.deactivated += 1
            self.log(f"  Deactivated item: {item.name} ({base_model})", SyncPhase.ITEMS)

        counters.total = len(grouped)
        self.log(
            f"Items synced: {counters.added} added, {counters.updated} updated, "
            f"{counters.unchanged} unchanged, {counters.deactivated} deactivated",
            SyncPhase.ITEMS,
            PHASE_PROGRESS[SyncPhase.ITEMS],
        )
        return item_ids, deactivated

    async def sync_variants(
        self,
        grouped: dict[str, GroupedItem],
        item_ids: dict[str, UUID],
        images: dict[int, str],
        deactivated_item_ids: list[UUID] | None = None,
    ) -> None:
        """Phase 3: upsert variants with images, then sweep unseen variants."""
        counters = self.result.phases.variants
        self.log("Phase 3: Syncing variants with images...", SyncPhase.VARIANTS)

        seen: set[tuple[UUID, str]] = set()

        for base_model, group in grouped.items():
            item_id = item_ids.get(base_model)
            if item_id is None:
                continue

            by_style: dict[str, Variant] = {
                v.style_name.lower(): v
                for v in await self.variants.find_by_item_id(item_id, include_inactive=True)
            }
            # Variants without their own picture share the group's first one
            shared_image = next(
                (images[v.row_number] for v in group.variants if v.row_number in images), None
            )

            for position, row in enumerate(group.variants):
                key = row.style.lower()
                seen.add((item_id, key))

                own_image = images.get(row.row_number)
                image_path = own_image or shared_image
                if own_image:
                    counters.images_extracted += 1

                current = by_style.get(key)
                try:
                    if current is not None:
                        values = {"price": row.price, "is_active": True}
                        if image_path:
                            values["image_path"] = image_path
                        changes = {k: v for k, v in values.items() if getattr(current, k) != v}
                        if changes:
                            await self.variants.update(current.id, **changes)
                    else:
                        changes = {}
                        created = await self.variants.create(
                            item_id=item_id,
                            style_name=row.style,
                            price=row.price,
                            image_path=image_path,
                            sort_order=position,
                        )
                    await self.session.commit()
                except SQLAlchemyError as e:
                    await self.session.rollback()
                    self.result.add_error(
                        row.row_number, f"Failed to sync variant {row.style}", str(e)
                    )
                    continue

                if current is None:
                    by_style[key] = created
                    counters.added += 1
                    self.log(
                        f"  Created variant: {row.style} ({row.price})", SyncPhase.VARIANTS
                    )
                elif changes:
                    by_style[key] = replace(current, **changes)
                    counters.updated += 1
                    self.log(
                        f"  Updated variant: {row.style} ({row.price})", SyncPhase.VARIANTS
                    )
                else:
                    counters.unchanged += 1

        await self._sweep_variants(
            list(item_ids.values()) + list(deactivated_item_ids or []), seen
        )

        counters.total = len(seen)
        self.log(
            f"Variants synced: {counters.added} added, {counters.updated} updated, "
            f"{counters.unchanged} unchanged, {counters.deactivated} deactivated, "
            f"{counters.images_extracted} images",
            SyncPhase.VARIANTS,
            PHASE_PROGRESS[SyncPhase.VARIANTS],
        )

    async def _sweep_variants(self, item_ids: list[UUID], seen: set[tuple[UUID, str]]) -> None:
        counters = self.result.phases.variants
        for item_id in dict.fromkeys(item_ids):
            for variant in await self.variants.find_by_item_id(item_id, include_inactive=True):
                if not variant.is_active or (item_id, variant.style_name.lower()) in seen:
                    continue
                try:
                    await self.variants.deactivate(variant.id)
                    await self.session.commit()
                except SQLAlchemyError as e:
                    await self.session.rollback()
                    self.result.add_error(
                        0, f"Failed to deactivate variant {variant.style_name}", str(e)
                    )
                    continue
                counters.deactivated += 1
                self.log(f"  Deactivated variant: {variant.style_name}", SyncPhase.VARIANTS)

    async def sync_addons(self, grouped: dict[str, GroupedItem], item_ids: dict[str, UUID]) -> None:
        """Phase 4: rebuild add-on edges."""
        self.log("Phase 4: Linking variant addons...", SyncPhase.ADDONS)
        linker = AddonLinker(self.session, lambda message: self.log(message, SyncPhase.ADDONS))
        await linker.link(grouped, item_ids, self.result)
        self.progress("Add-on linking finished", SyncPhase.ADDONS, PHASE_PROGRESS[SyncPhase.ADDONS])
