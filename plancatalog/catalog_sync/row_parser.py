"""Spreadsheet row parsing.

Column layout, 0-based and relative to the first used column of the sheet:

    0  category             7  style
    1-2 (blank)             8  full model reference (unread)
    3  item name            9  price
    4  description          10-12  mandatory add-on slots 1-3
    5  base model number    13 (blank)
    6  dimensions           14-18  optional add-on slots 4-8
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from plancatalog.catalog_sync.types import AddonRef, ParsedRow

COL_CATEGORY = 0
COL_ITEM_NAME = 3
COL_DESCRIPTION = 4
COL_MODEL_NUMBER = 5
COL_DIMENSIONS = 6
COL_STYLE = 7
COL_PRICE = 9

# (column index, slot number, optional)
ADDON_COLUMNS: tuple[tuple[int, int, bool], ...] = (
    (10, 1, False),
    (11, 2, False),
    (12, 3, False),
    (14, 4, True),
    (15, 5, True),
    (16, 6, True),
    (17, 7, True),
    (18, 8, True),
)

MIN_ROW_CELLS = 9

_NUMERIC_PREFIX = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
_CENTS = Decimal("0.01")


def cell_text(value: Any) -> str:
    """Render a raw cell value as trimmed text.

    Integral floats lose their trailing ``.0`` so model numbers typed as
    numbers (``1200.0``) come back as ``"1200"``.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def parse_price(value: Any) -> Decimal:
    """Coerce a price cell to a non-negative 2-decimal amount.

    Numbers are used as-is; text accepts a leading numeric prefix
    (``"12.50 EUR"`` -> 12.50). Anything else is 0.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0.00")

    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    else:
        match = _NUMERIC_PREFIX.match(str(value))
        if not match:
            return Decimal("0.00")
        raw = match.group(1)

    try:
        price = Decimal(raw)
    except InvalidOperation:
        return Decimal("0.00")

    if not price.is_finite() or price < 0:
        return Decimal("0.00")
    return price.quantize(_CENTS, rounding=ROUND_HALF_UP)


def populated_length(row: Sequence[Any]) -> int:
    """Length of the row once trailing blank cells are dropped."""
    length = len(row)
    while length and cell_text(row[length - 1]) == "":
        length -= 1
    return length


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def parse_addons(row: Sequence[Any]) -> list[AddonRef]:
    addons = []
    for index, slot, optional in ADDON_COLUMNS:
        ref = cell_text(_cell(row, index))
        if ref:
            addons.append(AddonRef(slot_number=slot, model_ref=ref, is_optional=optional))
    return addons


def parse_row(
    row: Sequence[Any],
    row_number: int,
    min_cells: int = MIN_ROW_CELLS,
) -> ParsedRow | None:
    """Parse one raw row.

    Args:
        row: Raw cell values starting at the first used column
        row_number: 1-based sheet row number
        min_cells: Rows with fewer populated leading cells are skipped

    Returns:
        ParsedRow, or None when the row is structurally absent
    """
    if populated_length(row) < min_cells:
        return None

    return ParsedRow(
        row_number=row_number,
        category=cell_text(_cell(row, COL_CATEGORY)),
        item_name=cell_text(_cell(row, COL_ITEM_NAME)),
        description=cell_text(_cell(row, COL_DESCRIPTION)),
        model_number=cell_text(_cell(row, COL_MODEL_NUMBER)),
        dimensions=cell_text(_cell(row, COL_DIMENSIONS)),
        style=cell_text(_cell(row, COL_STYLE)),
        price=parse_price(_cell(row, COL_PRICE)),
        addons=parse_addons(row),
        image_anchor_row=row_number,
    )
