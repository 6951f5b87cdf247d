"""Floorplan, BOM entry and placement repositories."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, select

from plancatalog.db.models import BomEntryModel, FloorplanModel, PlacementModel
from plancatalog.repositories.base import BaseRepository
from plancatalog.repositories.records import BomEntry, Floorplan, Placement


def _to_floorplan(model: FloorplanModel) -> Floorplan:
    return Floorplan(id=model.id, name=model.name, project_id=model.project_id)


def _to_bom_entry(model: BomEntryModel) -> BomEntry:
    return BomEntry(
        id=model.id,
        floorplan_id=model.floorplan_id,
        item_id=model.item_id,
        variant_id=model.variant_id,
        parent_bom_entry_id=model.parent_bom_entry_id,
        name_snapshot=model.name_snapshot,
        model_number_snapshot=model.model_number_snapshot,
        price_snapshot=Decimal(model.price_snapshot),
        picture_path=model.picture_path,
        sort_order=model.sort_order,
    )


def _to_placement(model: PlacementModel) -> Placement:
    return Placement(
        id=model.id,
        bom_entry_id=model.bom_entry_id,
        x=model.x,
        y=model.y,
        width=model.width,
        height=model.height,
    )


class FloorplanRepository(BaseRepository):
    async def find_by_id(self, floorplan_id: UUID) -> Floorplan | None:
        model = await self.session.get(FloorplanModel, floorplan_id, populate_existing=True)
        return _to_floorplan(model) if model else None

    async def create(self, name: str, project_id: str | None = None) -> Floorplan:
        model = FloorplanModel(name=name, project_id=project_id)
        self.session.add(model)
        await self.session.flush()
        return _to_floorplan(model)


class BomEntryRepository(BaseRepository):
    async def find_by_floorplan(self, floorplan_id: UUID) -> list[BomEntry]:
        """All entries of a floorplan, main entries first, oldest first."""
        stmt = (
            select(BomEntryModel)
            .where(BomEntryModel.floorplan_id == floorplan_id)
            .order_by(
                BomEntryModel.parent_bom_entry_id.is_not(None),
                BomEntryModel.created_at,
                BomEntryModel.sort_order,
            )
            .execution_options(populate_existing=True)
        )
        rows = await self.session.execute(stmt)
        return [_to_bom_entry(m) for m in rows.scalars()]

    async def find_by_id(self, bom_entry_id: UUID) -> BomEntry | None:
        model = await self.session.get(BomEntryModel, bom_entry_id, populate_existing=True)
        return _to_bom_entry(model) if model else None

    async def find_main_entry(self, floorplan_id: UUID, variant_id: UUID) -> BomEntry | None:
        stmt = select(BomEntryModel).where(
            BomEntryModel.floorplan_id == floorplan_id,
            BomEntryModel.variant_id == variant_id,
            BomEntryModel.parent_bom_entry_id.is_(None),
        )
        model = (await self.session.execute(stmt.execution_options(populate_existing=True))).scalar_one_or_none()
        return _to_bom_entry(model) if model else None

    async def find_children(self, parent_id: UUID) -> list[BomEntry]:
        stmt = (
            select(BomEntryModel)
            .where(BomEntryModel.parent_bom_entry_id == parent_id)
            .order_by(BomEntryModel.sort_order)
        )
        rows = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [_to_bom_entry(m) for m in rows.scalars()]

    async def create(
        self,
        floorplan_id: UUID,
        item_id: UUID,
        variant_id: UUID,
        name_snapshot: str,
        price_snapshot: Decimal,
        model_number_snapshot: str | None = None,
        picture_path: str | None = None,
        parent_bom_entry_id: UUID | None = None,
        sort_order: int = 0,
    ) -> BomEntry:
        model = BomEntryModel(
            floorplan_id=floorplan_id,
            item_id=item_id,
            variant_id=variant_id,
            parent_bom_entry_id=parent_bom_entry_id,
            name_snapshot=name_snapshot,
            model_number_snapshot=model_number_snapshot,
            price_snapshot=price_snapshot,
            picture_path=picture_path,
            sort_order=sort_order,
        )
        self.session.add(model)
        await self.session.flush()
        return _to_bom_entry(model)

    async def update(self, bom_entry_id: UUID, **values) -> BomEntry | None:
        found = await self._update_by_id(BomEntryModel, bom_entry_id, values)
        return await self.find_by_id(bom_entry_id) if found else None

    async def delete_children(self, parent_id: UUID) -> int:
        child_ids = select(BomEntryModel.id).where(BomEntryModel.parent_bom_entry_id == parent_id)
        await self._bulk(
            delete(PlacementModel).where(PlacementModel.bom_entry_id.in_(child_ids))
        )
        result = await self._bulk(
            delete(BomEntryModel).where(BomEntryModel.parent_bom_entry_id == parent_id)
        )
        return result.rowcount

    async def delete(self, bom_entry_id: UUID) -> None:
        """Delete an entry with its children and every placement referencing it."""
        await self.delete_children(bom_entry_id)
        await self._bulk(
            delete(PlacementModel).where(PlacementModel.bom_entry_id == bom_entry_id)
        )
        await self._bulk(delete(BomEntryModel).where(BomEntryModel.id == bom_entry_id))

    async def placement_count(self, bom_entry_id: UUID) -> int:
        count = await self.session.scalar(
            select(func.count(PlacementModel.id)).where(PlacementModel.bom_entry_id == bom_entry_id)
        )
        return count or 0

    async def placement_counts(self, floorplan_id: UUID) -> dict[UUID, int]:
        """Placement count per BOM entry of a floorplan (entries without placements omitted)."""
        stmt = (
            select(PlacementModel.bom_entry_id, func.count(PlacementModel.id))
            .join(BomEntryModel, BomEntryModel.id == PlacementModel.bom_entry_id)
            .where(BomEntryModel.floorplan_id == floorplan_id)
            .group_by(PlacementModel.bom_entry_id)
        )
        rows = await self.session.execute(stmt)
        return {entry_id: count for entry_id, count in rows.all()}


class PlacementRepository(BaseRepository):
    async def find_by_id(self, placement_id: UUID) -> Placement | None:
        model = await self.session.get(PlacementModel, placement_id, populate_existing=True)
        return _to_placement(model) if model else None

    async def find_by_bom_entry(self, bom_entry_id: UUID) -> list[Placement]:
        stmt = (
            select(PlacementModel)
            .where(PlacementModel.bom_entry_id == bom_entry_id)
            .order_by(PlacementModel.created_at)
        )
        rows = await self.session.execute(stmt)
        return [_to_placement(m) for m in rows.scalars()]

    async def find_by_floorplan(self, floorplan_id: UUID) -> list[Placement]:
        stmt = (
            select(PlacementModel)
            .join(BomEntryModel, BomEntryModel.id == PlacementModel.bom_entry_id)
            .where(BomEntryModel.floorplan_id == floorplan_id)
            .order_by(PlacementModel.created_at)
        )
        rows = await self.session.execute(stmt)
        return [_to_placement(m) for m in rows.scalars()]

    async def create(
        self,
        bom_entry_id: UUID,
        x: float,
        y: float,
        width: float,
        height: float,
    ) -> Placement:
        model = PlacementModel(bom_entry_id=bom_entry_id, x=x, y=y, width=width, height=height)
        self.session.add(model)
        await self.session.flush()
        return _to_placement(model)

    async def delete(self, placement_id: UUID) -> None:
        await self._bulk(delete(PlacementModel).where(PlacementModel.id == placement_id))
