"""Tests for reading catalog rows from .xlsx workbooks."""

from __future__ import annotations

from decimal import Decimal

import pytest

from plancatalog.catalog_sync.errors import WorkbookReadError
from plancatalog.catalog_sync.workbook import iter_sheet_rows, read_grouped_items


def test_rows_start_at_first_used_column(make_workbook, catalog_rows):
    path = make_workbook(catalog_rows)

    rows = list(iter_sheet_rows(path))

    assert [number for number, _ in rows] == [4, 5, 6]
    first = rows[0][1]
    assert first[0] == "Switches"
    assert first[5] == "SW-100"
    assert first[10] == "PL-1 Ivory"


def test_read_grouped_items(make_workbook, catalog_rows):
    grouped = read_grouped_items(make_workbook(catalog_rows))

    assert list(grouped) == ["SW-100", "PL-1"]
    switch = grouped["SW-100"]
    assert switch.description == "Single rocker"
    assert [v.style for v in switch.variants] == ["White", "Black"]
    assert switch.variants[1].price == Decimal("12.50")
    assert switch.variants[0].addons[0].model_ref == "PL-1 Ivory"


def test_short_rows_skipped(make_workbook, make_row):
    rows = [
        make_row("Switches", "Rocker switch", "SW-100", "White", 10),
        ["Notes", None, None, "see page 2"],
        make_row("Switches", "Rocker switch", "SW-100", "Black", 11),
    ]

    grouped = read_grouped_items(make_workbook(rows))

    assert [v.row_number for v in grouped["SW-100"].variants] == [4, 6]


def test_missing_file_raises(tmp_path):
    with pytest.raises(WorkbookReadError):
        list(iter_sheet_rows(tmp_path / "missing.xlsx"))


def test_non_workbook_raises(tmp_path):
    path = tmp_path / "catalog.xlsx"
    path.write_text("not a spreadsheet")

    with pytest.raises(WorkbookReadError):
        read_grouped_items(path)
