"""Read catalog rows from the first worksheet of an ``.xlsx`` workbook."""

from __future__ import annotations

import logging
import zipfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from plancatalog.catalog_sync.errors import WorkbookReadError
from plancatalog.catalog_sync.grouping import group_rows
from plancatalog.catalog_sync.row_parser import MIN_ROW_CELLS, parse_row
from plancatalog.catalog_sync.types import GroupedItem

logger = logging.getLogger(__name__)


def iter_sheet_rows(path: Path, data_start_row: int = 4) -> Iterator[tuple[int, list[Any]]]:
    """Yield ``(row_number, values)`` for every row from ``data_start_row`` on.

    Values start at the first used column of the sheet, so a sheet whose
    content begins in column B yields column B at index 0.

    Raises:
        WorkbookReadError: File missing or not a readable workbook
    """
    if not path.exists():
        raise WorkbookReadError(f"Workbook not found: {path}")

    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise WorkbookReadError(f"Cannot read workbook {path.name}: {e}") from e

    try:
        sheet = workbook.worksheets[0]
        if sheet.max_column is None:
            # No <dimension> element; gaps between rows are only padded once sized
            sheet.calculate_dimension(force=True)
        first_col = sheet.min_column
        max_col = sheet.max_column
        logger.debug(
            f"Reading sheet '{sheet.title}' rows {data_start_row}-{sheet.max_row}, "
            f"columns {first_col}-{max_col}"
        )
        for offset, values in enumerate(
            sheet.iter_rows(
                min_row=data_start_row,
                min_col=first_col,
                max_col=max_col,
                values_only=True,
            )
        ):
            yield data_start_row + offset, list(values)
    finally:
        workbook.close()


def read_grouped_items(
    path: Path,
    data_start_row: int = 4,
    min_row_cells: int = MIN_ROW_CELLS,
) -> dict[str, GroupedItem]:
    """Parse and group every data row of the workbook."""
    parsed = (
        parse_row(values, row_number, min_cells=min_row_cells)
        for row_number, values in iter_sheet_rows(path, data_start_row)
    )
    return group_rows(row for row in parsed if row is not None)
