"""Fold parsed rows into items keyed by base model number."""

from __future__ import annotations

from collections.abc import Iterable

from plancatalog.catalog_sync.types import GroupedItem, ParsedRow, VariantRow


def group_rows(rows: Iterable[ParsedRow]) -> dict[str, GroupedItem]:
    """Group rows by base model number, preserving sheet order.

    Rows without a model number or item name are dropped. The first row of
    a group supplies the item-level fields (name, category, description,
    dimensions). Styles are matched case-insensitively; a repeated style
    replaces the earlier variant in place, so the last row wins.
    """
    grouped: dict[str, GroupedItem] = {}
    positions: dict[tuple[str, str], int] = {}

    for row in rows:
        if not row.model_number or not row.item_name:
            continue

        item = grouped.get(row.model_number)
        if item is None:
            item = GroupedItem(
                base_model_number=row.model_number,
                name=row.item_name,
                category=row.category,
                description=row.description,
                dimensions=row.dimensions,
            )
            grouped[row.model_number] = item

        variant = VariantRow(
            row_number=row.row_number,
            style=row.style,
            price=row.price,
            addons=list(row.addons),
            image_anchor_row=row.image_anchor_row,
        )
        key = (row.model_number, row.style.lower())
        if key in positions:
            item.variants[positions[key]] = variant
        else:
            positions[key] = len(item.variants)
            item.variants.append(variant)

    return grouped


def variant_count(grouped: dict[str, GroupedItem]) -> int:
    return sum(len(item.variants) for item in grouped.values())
