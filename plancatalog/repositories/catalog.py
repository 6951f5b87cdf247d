"""Catalog repositories: categories, items, variants and add-on edges."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite

from plancatalog.db.models import (
    CatalogItemModel,
    CategoryModel,
    ItemVariantModel,
    VariantAddonModel,
)
from plancatalog.repositories.base import BaseRepository
from plancatalog.repositories.records import CatalogItem, Category, Variant, VariantAddon


def _to_category(model: CategoryModel) -> Category:
    return Category(
        id=model.id,
        name=model.name,
        sort_order=model.sort_order,
        is_active=model.is_active,
    )


def _to_item(model: CatalogItemModel) -> CatalogItem:
    return CatalogItem(
        id=model.id,
        category_id=model.category_id,
        base_model_number=model.base_model_number,
        name=model.name,
        description=model.description,
        dimensions=model.dimensions,
        is_active=model.is_active,
    )


def _to_variant(model: ItemVariantModel) -> Variant:
    return Variant(
        id=model.id,
        item_id=model.item_id,
        style_name=model.style_name,
        price=Decimal(model.price),
        image_path=model.image_path,
        sort_order=model.sort_order,
        is_active=model.is_active,
    )


class CategoryRepository(BaseRepository):
    async def find_all(self, include_inactive: bool = False) -> list[Category]:
        stmt = select(CategoryModel).order_by(CategoryModel.sort_order, CategoryModel.name)
        if not include_inactive:
            stmt = stmt.where(CategoryModel.is_active.is_(True))
        rows = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [_to_category(m) for m in rows.scalars()]

    async def find_by_id(self, category_id: UUID) -> Category | None:
        model = await self.session.get(CategoryModel, category_id, populate_existing=True)
        return _to_category(model) if model else None

    async def find_by_name(self, name: str) -> Category | None:
        """Case-insensitive lookup."""
        stmt = select(CategoryModel).where(func.lower(CategoryModel.name) == name.strip().lower())
        model = (await self.session.execute(stmt.execution_options(populate_existing=True))).scalar_one_or_none()
        return _to_category(model) if model else None

    async def next_sort_order(self) -> int:
        current = await self.session.scalar(select(func.max(CategoryModel.sort_order)))
        return (current or 0) + 1

    async def create(self, name: str, sort_order: int | None = None) -> Category:
        if sort_order is None:
            sort_order = await self.next_sort_order()
        model = CategoryModel(name=name, sort_order=sort_order, is_active=True)
        self.session.add(model)
        await self.session.flush()
        return _to_category(model)

    async def update(self, category_id: UUID, **values) -> bool:
        return await self._update_by_id(CategoryModel, category_id, values)

    async def activate(self, category_id: UUID) -> bool:
        """Reactivate the category only; its items stay as they are."""
        return await self._update_by_id(CategoryModel, category_id, {"is_active": True})

    async def deactivate(self, category_id: UUID) -> bool:
        """Deactivate the category, its items and their variants."""
        found = await self._update_by_id(CategoryModel, category_id, {"is_active": False})
        if not found:
            return False

        item_ids = select(CatalogItemModel.id).where(CatalogItemModel.category_id == category_id)
        await self._bulk(
            update(ItemVariantModel)
            .where(ItemVariantModel.item_id.in_(item_ids))
            .values(is_active=False)
        )
        await self._bulk(
            update(CatalogItemModel)
            .where(CatalogItemModel.category_id == category_id)
            .values(is_active=False)
        )
        return True

    async def delete(self, category_id: UUID) -> None:
        await self._bulk(delete(CategoryModel).where(CategoryModel.id == category_id))


class ItemRepository(BaseRepository):
    async def find_all(
        self,
        include_inactive: bool = False,
        category_id: UUID | None = None,
    ) -> list[CatalogItem]:
        stmt = select(CatalogItemModel).order_by(CatalogItemModel.name)
        if not include_inactive:
            stmt = stmt.where(CatalogItemModel.is_active.is_(True))
        if category_id is not None:
            stmt = stmt.where(CatalogItemModel.category_id == category_id)
        rows = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [_to_item(m) for m in rows.scalars()]

    async def find_by_id(self, item_id: UUID) -> CatalogItem | None:
        model = await self.session.get(CatalogItemModel, item_id, populate_existing=True)
        return _to_item(model) if model else None

    async def find_by_base_model_number(self, base_model_number: str) -> CatalogItem | None:
        stmt = select(CatalogItemModel).where(
            CatalogItemModel.base_model_number == base_model_number
        )
        model = (await self.session.execute(stmt.execution_options(populate_existing=True))).scalar_one_or_none()
        return _to_item(model) if model else None

    async def create(
        self,
        category_id: UUID,
        name: str,
        base_model_number: str,
        description: str | None = None,
        dimensions: str | None = None,
        is_active: bool = True,
    ) -> CatalogItem:
        model = CatalogItemModel(
            category_id=category_id,
            name=name,
            base_model_number=base_model_number,
            description=description or None,
            dimensions=dimensions or None,
            is_active=is_active,
        )
        self.session.add(model)
        await self.session.flush()
        return _to_item(model)

    async def update(self, item_id: UUID, **values) -> bool:
        return await self._update_by_id(CatalogItemModel, item_id, values)

    async def activate(self, item_id: UUID) -> bool:
        """Reactivate the item only; variants are not touched."""
        return await self._update_by_id(CatalogItemModel, item_id, {"is_active": True})

    async def deactivate(self, item_id: UUID, cascade: bool = True) -> bool:
        found = await self._update_by_id(CatalogItemModel, item_id, {"is_active": False})
        if found and cascade:
            await self._bulk(
                update(ItemVariantModel)
                .where(ItemVariantModel.item_id == item_id)
                .values(is_active=False)
            )
        return found

    async def delete(self, item_id: UUID) -> None:
        variant_ids = select(ItemVariantModel.id).where(ItemVariantModel.item_id == item_id)
        await self._bulk(
            delete(VariantAddonModel).where(
                VariantAddonModel.variant_id.in_(variant_ids)
                | VariantAddonModel.addon_variant_id.in_(variant_ids)
            )
        )
        await self._bulk(delete(ItemVariantModel).where(ItemVariantModel.item_id == item_id))
        await self._bulk(delete(CatalogItemModel).where(CatalogItemModel.id == item_id))


class VariantRepository(BaseRepository):
    async def find_by_item_id(self, item_id: UUID, include_inactive: bool = False) -> list[Variant]:
        stmt = (
            select(ItemVariantModel)
            .where(ItemVariantModel.item_id == item_id)
            .order_by(ItemVariantModel.sort_order, ItemVariantModel.created_at)
        )
        if not include_inactive:
            stmt = stmt.where(ItemVariantModel.is_active.is_(True))
        rows = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [_to_variant(m) for m in rows.scalars()]

    async def find_by_id(self, variant_id: UUID) -> Variant | None:
        model = await self.session.get(ItemVariantModel, variant_id, populate_existing=True)
        return _to_variant(model) if model else None

    async def create(
        self,
        item_id: UUID,
        style_name: str,
        price: Decimal,
        image_path: str | None = None,
        sort_order: int = 0,
    ) -> Variant:
        model = ItemVariantModel(
            item_id=item_id,
            style_name=style_name,
            price=price,
            image_path=image_path,
            sort_order=sort_order,
            is_active=True,
        )
        self.session.add(model)
        await self.session.flush()
        return _to_variant(model)

    async def update(self, variant_id: UUID, **values) -> bool:
        return await self._update_by_id(ItemVariantModel, variant_id, values)

    async def activate(self, variant_id: UUID) -> bool:
        return await self._update_by_id(ItemVariantModel, variant_id, {"is_active": True})

    async def deactivate(self, variant_id: UUID) -> bool:
        return await self._update_by_id(ItemVariantModel, variant_id, {"is_active": False})

    async def delete(self, variant_id: UUID) -> None:
        await self._bulk(
            delete(VariantAddonModel).where(
                (VariantAddonModel.variant_id == variant_id)
                | (VariantAddonModel.addon_variant_id == variant_id)
            )
        )
        await self._bulk(delete(ItemVariantModel).where(ItemVariantModel.id == variant_id))


class VariantAddonRepository(BaseRepository):
    async def find_by_variant_id(self, variant_id: UUID) -> list[VariantAddon]:
        """Edges sourced from a variant, in slot order, with the target variant loaded."""
        stmt = (
            select(VariantAddonModel, ItemVariantModel)
            .join(ItemVariantModel, ItemVariantModel.id == VariantAddonModel.addon_variant_id)
            .where(VariantAddonModel.variant_id == variant_id)
            .order_by(VariantAddonModel.sort_order, VariantAddonModel.created_at)
        )
        rows = await self.session.execute(stmt.execution_options(populate_existing=True))
        return [
            VariantAddon(
                id=row.VariantAddonModel.id,
                variant_id=row.VariantAddonModel.variant_id,
                addon_variant_id=row.VariantAddonModel.addon_variant_id,
                is_optional=row.VariantAddonModel.is_optional,
                sort_order=row.VariantAddonModel.sort_order,
                addon_variant=_to_variant(row.ItemVariantModel),
            )
            for row in rows.all()
        ]

    async def create_if_absent(
        self,
        variant_id: UUID,
        addon_variant_id: UUID,
        is_optional: bool,
        sort_order: int,
    ) -> bool:
        """Insert an edge unless the (source, target) pair already exists.

        Returns:
            True if a row was written, False if the edge was already there
        """
        insert = postgresql.insert if self.dialect_name == "postgresql" else sqlite.insert
        stmt = (
            insert(VariantAddonModel)
            .values(
                id=uuid4(),
                variant_id=variant_id,
                addon_variant_id=addon_variant_id,
                is_optional=is_optional,
                sort_order=sort_order,
            )
            .on_conflict_do_nothing(index_elements=["variant_id", "addon_variant_id"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def delete_by_variant_ids(self, variant_ids: Iterable[UUID]) -> int:
        ids = list(variant_ids)
        if not ids:
            return 0
        result = await self._bulk(
            delete(VariantAddonModel).where(VariantAddonModel.variant_id.in_(ids))
        )
        return result.rowcount

    async def delete_by_variant_id(self, variant_id: UUID) -> int:
        return await self.delete_by_variant_ids([variant_id])
