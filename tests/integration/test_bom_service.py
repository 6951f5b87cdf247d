"""Integration tests for BOM assembly on floorplans."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio

from plancatalog.bom import (
    BomConflictError,
    BomEntryNotFoundError,
    BomService,
    FloorplanNotFoundError,
    InvalidPlacementError,
    PlacementNotFoundError,
    Rect,
    VariantNotFoundError,
)
from plancatalog.repositories import (
    BomEntryRepository,
    CategoryRepository,
    FloorplanRepository,
    ItemRepository,
    PlacementRepository,
    VariantAddonRepository,
    VariantRepository,
)

RECT = Rect(x=10, y=20, width=30, height=30)


@pytest_asyncio.fixture()
async def catalog(session_factory):
    """Switch SW-100 (White requires an ivory plate, optional LED), plate PL-1, floorplan."""
    async with session_factory() as session:
        category = await CategoryRepository(session).create("Switches")
        items = ItemRepository(session)
        variants = VariantRepository(session)
        addons = VariantAddonRepository(session)

        switch = await items.create(category.id, "Rocker switch", "SW-100")
        plate = await items.create(category.id, "Cover plate", "PL-1")
        led = await items.create(category.id, "Locator LED", "LED-1")
        white = await variants.create(switch.id, "White", Decimal("10.00"), image_path="items/w.png")
        black = await variants.create(switch.id, "Black", Decimal("12.50"), sort_order=1)
        ivory = await variants.create(plate.id, "Ivory", Decimal("2.50"))
        frame = await variants.create(plate.id, "Frame", Decimal("1.25"), sort_order=1)
        warm = await variants.create(led.id, "Warm", Decimal("4.00"))

        await addons.create_if_absent(white.id, frame.id, False, 2)
        await addons.create_if_absent(white.id, ivory.id, False, 1)
        await addons.create_if_absent(white.id, warm.id, True, 4)

        floorplan = await FloorplanRepository(session).create("Ground floor", project_id="p-1")

    return {
        "switch": switch,
        "plate": plate,
        "white": white,
        "black": black,
        "ivory": ivory,
        "frame": frame,
        "floorplan": floorplan,
    }


async def _children(session_factory, entry_id):
    async with session_factory() as session:
        return await BomEntryRepository(session).find_children(entry_id)


class TestCreateBomEntry:
    @pytest.mark.asyncio
    async def test_creates_main_entry_with_mandatory_children(self, session_factory, catalog):
        async with session_factory() as session:
            entry = await BomService(session).create_bom_entry(
                catalog["floorplan"].id, catalog["white"].id
            )

        assert entry.is_main
        assert entry.name_snapshot == "Rocker switch"
        assert entry.model_number_snapshot == "SW-100"
        assert entry.price_snapshot == Decimal("10.00")
        assert entry.picture_path == "items/w.png"

        children = await _children(session_factory, entry.id)
        assert [(c.variant_id, c.sort_order) for c in children] == [
            (catalog["ivory"].id, 1),
            (catalog["frame"].id, 2),
        ]
        assert all(c.model_number_snapshot == "PL-1" for c in children)

    @pytest.mark.asyncio
    async def test_is_idempotent(self, session_factory, catalog):
        async with session_factory() as session:
            service = BomService(session)
            first = await service.create_bom_entry(catalog["floorplan"].id, catalog["white"].id)
            second = await service.create_bom_entry(catalog["floorplan"].id, catalog["white"].id)

        assert first.id == second.id
        assert len(await _children(session_factory, first.id)) == 2

    @pytest.mark.asyncio
    async def test_concurrent_creation_yields_one_entry(self, session_factory, catalog):
        async def create():
            async with session_factory() as session:
                return await BomService(session).create_bom_entry(
                    catalog["floorplan"].id, catalog["black"].id
                )

        first, second = await asyncio.gather(create(), create())

        assert first.id == second.id
        async with session_factory() as session:
            entries = await BomEntryRepository(session).find_by_floorplan(catalog["floorplan"].id)
        assert len(entries) == 1

    @pytest.mark.asyncio
    async def test_unknown_variant(self, session_factory, catalog):
        async with session_factory() as session:
            with pytest.raises(VariantNotFoundError):
                await BomService(session).create_bom_entry(catalog["floorplan"].id, uuid4())

    @pytest.mark.asyncio
    async def test_unknown_floorplan(self, session_factory, catalog):
        async with session_factory() as session:
            with pytest.raises(FloorplanNotFoundError):
                await BomService(session).create_bom_entry(uuid4(), catalog["white"].id)


class TestSwitchVariant:
    @pytest.mark.asyncio
    async def test_switch_keeps_id_and_replaces_children(self, session_factory, catalog):
        async with session_factory() as session:
            service = BomService(session)
            entry = await service.create_bom_entry(catalog["floorplan"].id, catalog["white"].id)
            switched = await service.switch_variant(entry.id, catalog["black"].id)

        assert switched.id == entry.id
        assert switched.variant_id == catalog["black"].id
        assert switched.price_snapshot == Decimal("12.50")
        assert switched.picture_path is None
        assert await _children(session_factory, entry.id) == []

    @pytest.mark.asyncio
    async def test_switch_to_variant_already_on_floorplan_conflicts(self, session_factory, catalog):
        async with session_factory() as session:
            service = BomService(session)
            white = await service.create_bom_entry(catalog["floorplan"].id, catalog["white"].id)
            await service.create_bom_entry(catalog["floorplan"].id, catalog["black"].id)

            with pytest.raises(BomConflictError):
                await service.switch_variant(white.id, catalog["black"].id)

    @pytest.mark.asyncio
    async def test_switch_child_updates_snapshot_only(self, session_factory, catalog):
        async with session_factory() as session:
            service = BomService(session)
            entry = await service.create_bom_entry(catalog["floorplan"].id, catalog["white"].id)
            child = (await BomEntryRepository(session).find_children(entry.id))[0]

            switched = await service.switch_variant(child.id, catalog["black"].id)

        assert switched.parent_bom_entry_id == entry.id
        assert switched.name_snapshot == "Rocker switch"
        assert switched.price_snapshot == Decimal("12.50")

    @pytest.mark.asyncio
    async def test_concurrent_switches_leave_consistent_children(self, session_factory, catalog):
        async with session_factory() as session:
            entry = await BomService(session).create_bom_entry(
                catalog["floorplan"].id, catalog["black"].id
            )

        async def switch(variant_id):
            async with session_factory() as session:
                return await BomService(session).switch_variant(entry.id, variant_id)

        await asyncio.gather(switch(catalog["white"].id), switch(catalog["black"].id))

        async with session_factory() as session:
            final = await BomEntryRepository(session).find_by_id(entry.id)
        children = await _children(session_factory, entry.id)
        if final.variant_id == catalog["white"].id:
            assert [c.variant_id for c in children] == [catalog["ivory"].id, catalog["frame"].id]
        else:
            assert children == []

    @pytest.mark.asyncio
    async def test_unknown_entry(self, session_factory, catalog):
        async with session_factory() as session:
            with pytest.raises(BomEntryNotFoundError):
                await BomService(session).switch_variant(uuid4(), catalog["black"].id)


class TestFloorplanBom:
    @pytest.mark.asyncio
    async def test_groups_and_totals(self, session_factory, catalog):
        floorplan_id = catalog["floorplan"].id
        async with session_factory() as session:
            service = BomService(session)
            await service.place_variant(floorplan_id, catalog["white"].id, RECT)
            await service.place_variant(floorplan_id, catalog["white"].id, RECT)
            await service.place_variant(floorplan_id, catalog["black"].id, RECT)
            bom = await service.get_bom_for_floorplan(floorplan_id)

        groups = {g.main_entry.variant_id: g for g in bom.groups}
        white = groups[catalog["white"].id]
        assert white.quantity == 2
        assert [c.sort_order for c in white.children] == [1, 2]
        assert white.unit_price == Decimal("13.75")
        assert white.total_price == Decimal("27.50")
        assert groups[catalog["black"].id].total_price == Decimal("12.50")
        assert bom.total_price == Decimal("40.00")

    @pytest.mark.asyncio
    async def test_empty_floorplan(self, session_factory, catalog):
        async with session_factory() as session:
            bom = await BomService(session).get_bom_for_floorplan(catalog["floorplan"].id)

        assert bom.groups == []
        assert bom.total_price == Decimal("0")

    @pytest.mark.asyncio
    async def test_unknown_floorplan(self, session_factory, catalog):
        async with session_factory() as session:
            with pytest.raises(FloorplanNotFoundError):
                await BomService(session).get_bom_for_floorplan(uuid4())


class TestUpdateFromCatalog:
    @pytest.mark.asyncio
    async def test_changed_prices_refreshed(self, session_factory, catalog):
        floorplan_id = catalog["floorplan"].id
        async with session_factory() as session:
            await BomService(session).place_variant(floorplan_id, catalog["white"].id, RECT)

        async with session_factory() as session:
            await VariantRepository(session).update(catalog["white"].id, price=Decimal("11.00"))
            await VariantRepository(session).update(catalog["ivory"].id, price=Decimal("3.00"))

        async with session_factory() as session:
            report = await BomService(session).update_from_catalog(floorplan_id)

        assert sorted((c.old_price, c.new_price) for c in report.updated) == [
            (Decimal("2.50"), Decimal("3.00")),
            (Decimal("10.00"), Decimal("11.00")),
        ]
        assert report.invalid == []
        assert report.total_before == Decimal("13.75")
        assert report.total_after == Decimal("15.25")

    @pytest.mark.asyncio
    async def test_inactive_variant_reported_invalid(self, session_factory, catalog):
        floorplan_id = catalog["floorplan"].id
        async with session_factory() as session:
            await BomService(session).place_variant(floorplan_id, catalog["black"].id, RECT)

        async with session_factory() as session:
            await VariantRepository(session).deactivate(catalog["black"].id)

        async with session_factory() as session:
            report = await BomService(session).update_from_catalog(floorplan_id)
            bom = await BomService(session).get_bom_for_floorplan(floorplan_id)

        assert [(i.name, i.reason) for i in report.invalid] == [
            ("Rocker switch", "Item/variant inactive")
        ]
        assert report.updated == []
        assert bom.groups[0].main_entry.price_snapshot == Decimal("12.50")

    @pytest.mark.asyncio
    async def test_unchanged_catalog_reports_nothing(self, session_factory, catalog):
        floorplan_id = catalog["floorplan"].id
        async with session_factory() as session:
            service = BomService(session)
            await service.place_variant(floorplan_id, catalog["white"].id, RECT)
            report = await service.update_from_catalog(floorplan_id)

        assert report.updated == []
        assert report.invalid == []
        assert report.total_before == report.total_after


class TestPlacements:
    @pytest.mark.asyncio
    async def test_placements_share_one_entry(self, session_factory, catalog):
        async with session_factory() as session:
            service = BomService(session)
            first = await service.place_variant(catalog["floorplan"].id, catalog["white"].id, RECT)
            second = await service.place_variant(
                catalog["floorplan"].id, catalog["white"].id, Rect(0, 0, 5, 5)
            )

        assert first.bom_entry_id == second.bom_entry_id
        assert (second.x, second.y, second.width, second.height) == (0, 0, 5, 5)

    @pytest.mark.asyncio
    async def test_non_positive_size_rejected(self, session_factory, catalog):
        async with session_factory() as session:
            with pytest.raises(InvalidPlacementError):
                await BomService(session).place_variant(
                    catalog["floorplan"].id, catalog["white"].id, Rect(0, 0, 0, 10)
                )

    @pytest.mark.asyncio
    async def test_entry_removed_with_last_placement(self, session_factory, catalog):
        async with session_factory() as session:
            service = BomService(session)
            first = await service.place_variant(catalog["floorplan"].id, catalog["white"].id, RECT)
            second = await service.place_variant(catalog["floorplan"].id, catalog["white"].id, RECT)

            assert await service.remove_placement(first.id) is False
            assert await service.remove_placement(second.id) is True

        async with session_factory() as session:
            entries = await BomEntryRepository(session).find_by_floorplan(catalog["floorplan"].id)
        assert entries == []

    @pytest.mark.asyncio
    async def test_remove_unknown_placement(self, session_factory, catalog):
        async with session_factory() as session:
            with pytest.raises(PlacementNotFoundError):
                await BomService(session).remove_placement(uuid4())


@pytest.mark.asyncio
async def test_delete_bom_entry_removes_children_and_placements(session_factory, catalog):
    async with session_factory() as session:
        service = BomService(session)
        placement = await service.place_variant(catalog["floorplan"].id, catalog["white"].id, RECT)
        await service.delete_bom_entry(placement.bom_entry_id)

    async with session_factory() as session:
        assert await BomEntryRepository(session).find_by_floorplan(catalog["floorplan"].id) == []
        assert await PlacementRepository(session).find_by_id(placement.id) is None

    async with session_factory() as session:
        with pytest.raises(BomEntryNotFoundError):
            await BomService(session).delete_bom_entry(placement.bom_entry_id)
