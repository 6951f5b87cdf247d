"""Add-on linking: resolve add-on references to variants and rebuild edges."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from plancatalog.catalog_sync.types import AddonRef, GroupedItem, SyncResult, VariantRow
from plancatalog.repositories import Variant, VariantAddonRepository, VariantRepository

logger = logging.getLogger(__name__)


def normalize_ref(value: str) -> str:
    """Trim and collapse internal whitespace."""
    return " ".join(value.split())


def full_model_ref(base_model_number: str, style: str) -> str:
    base = normalize_ref(base_model_number)
    style = normalize_ref(style)
    return f"{base} {style}" if style else base


@dataclass(frozen=True, slots=True)
class AddonTarget:
    base_model_number: str
    style: str


def build_reference_index(grouped: dict[str, GroupedItem]) -> dict[str, AddonTarget]:
    """Full model reference -> (base model, style) for every spreadsheet variant."""
    index: dict[str, AddonTarget] = {}
    for base_model, item in grouped.items():
        for variant in item.variants:
            index[full_model_ref(base_model, variant.style)] = AddonTarget(base_model, variant.style)
    return index


class AddonLinker:
    """Replaces the add-on edge set of every synchronized variant.

    Counters always satisfy ``total == linked + skipped + not_found``.
    """

    def __init__(self, session: AsyncSession, log: Callable[[str], None]):
        self.session = session
        self.variants = VariantRepository(session)
        self.addons = VariantAddonRepository(session)
        self._log = log
        self._variant_cache: dict[UUID, list[Variant]] = {}

    async def _item_variants(self, item_id: UUID) -> list[Variant]:
        if item_id not in self._variant_cache:
            self._variant_cache[item_id] = await self.variants.find_by_item_id(
                item_id, include_inactive=True
            )
        return self._variant_cache[item_id]

    async def link(
        self,
        grouped: dict[str, GroupedItem],
        item_ids: dict[str, UUID],
        result: SyncResult,
    ) -> None:
        counters = result.phases.addons
        index = build_reference_index(grouped)

        await self._clear_edges(grouped, item_ids, result)

        for base_model, item in grouped.items():
            item_id = item_ids.get(base_model)
            if item_id is None:
                continue

            parents = {v.style_name.lower(): v for v in await self._item_variants(item_id)}
            for row in item.variants:
                parent = parents.get(row.style.lower())
                if parent is None:
                    result.add_error(row.row_number, f"Parent variant not found: {row.style}")
                    continue
                for ref in row.addons:
                    counters.total += 1
                    await self._link_one(parent, row, ref, index, item_ids, result)

        self._log(
            f"Add-ons: {counters.total} references, {counters.linked} linked, "
            f"{counters.skipped} skipped, {counters.not_found} not found"
        )

    async def _clear_edges(
        self,
        grouped: dict[str, GroupedItem],
        item_ids: dict[str, UUID],
        result: SyncResult,
    ) -> None:
        for base_model, item in grouped.items():
            item_id = item_ids.get(base_model)
            if item_id is None:
                continue
            variant_ids = [v.id for v in await self._item_variants(item_id)]
            try:
                removed = await self.addons.delete_by_variant_ids(variant_ids)
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                result.add_error(
                    item.first_row_number, f"Failed to clear add-ons for {base_model}", str(e)
                )
                continue
            if removed:
                self._log(f"  Cleared {removed} add-on links of {base_model}")

    async def _link_one(
        self,
        parent: Variant,
        row: VariantRow,
        ref: AddonRef,
        index: dict[str, AddonTarget],
        item_ids: dict[str, UUID],
        result: SyncResult,
    ) -> None:
        counters = result.phases.addons

        target = index.get(normalize_ref(ref.model_ref))
        if target is None:
            counters.not_found += 1
            result.add_error(
                row.row_number, f"Addon not found: {ref.model_ref} (slot {ref.slot_number})"
            )
            self._log(
                f"  Addon not found: {ref.model_ref} (row {row.row_number}, slot {ref.slot_number})"
            )
            return

        addon_item_id = item_ids.get(target.base_model_number)
        if addon_item_id is None:
            counters.not_found += 1
            result.add_error(
                row.row_number, f"Addon item not in catalog: {target.base_model_number}"
            )
            return

        wanted = target.style.strip().lower()
        match = next(
            (
                v
                for v in await self._item_variants(addon_item_id)
                if v.style_name.strip().lower() == wanted
            ),
            None,
        )
        if match is None:
            counters.not_found += 1
            result.add_error(
                row.row_number,
                f'Addon variant "{target.style}" not found for {target.base_model_number}',
            )
            return

        if match.id == parent.id:
            counters.skipped += 1
            self._log(f"  Skipped self-reference {ref.model_ref} (row {row.row_number})")
            return

        try:
            written = await self.addons.create_if_absent(
                variant_id=parent.id,
                addon_variant_id=match.id,
                is_optional=ref.is_optional,
                sort_order=ref.slot_number,
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            counters.skipped += 1
            result.add_error(
                row.row_number, f"Failed to link addon {ref.model_ref}", str(e)
            )
            return

        if written:
            counters.linked += 1
            kind = "optional" if ref.is_optional else "mandatory"
            self._log(
                f'  Linked {kind} addon "{ref.model_ref}" to "{row.style}" (slot {ref.slot_number})'
            )
        else:
            counters.skipped += 1
            logger.debug(f"Add-on {ref.model_ref} already linked to {parent.id}")
