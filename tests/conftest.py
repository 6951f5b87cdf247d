"""Pytest configuration and fixtures for PlanCatalog tests.

Provides a throwaway SQLite database per test and helpers that build catalog
workbooks (optionally with embedded pictures) on disk.
"""

from __future__ import annotations

import zipfile
from contextlib import asynccontextmanager
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from openpyxl import Workbook
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from plancatalog.config import AppConfig, DBConfig, StorageConfig, SyncConfig, reset_config
from plancatalog.db.connection import enable_sqlite_foreign_keys
from plancatalog.db.models import Base

DRAWING_NS = (
    'xmlns:xdr="http://schemas.openxmlformats.org/drawingml/2006/spreadsheetDrawing" '
    'xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" '
    'xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships"'
)
IMAGE_REL_TYPE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/image"


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch, tmp_path):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Configuration pointing storage and temp files into tmp_path."""
    temp_dir = tmp_path / "tmp"
    temp_dir.mkdir()
    return AppConfig(
        db=DBConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'plancatalog.db'}"),
        storage=StorageConfig(upload_dir=tmp_path / "uploads"),
        sync=SyncConfig(temp_dir=temp_dir),
    )


@pytest_asyncio.fixture()
async def db_engine(app_config):
    """File-backed SQLite database so several sessions see the same data."""
    engine = create_async_engine(app_config.db.url)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Drop-in replacement for plancatalog.db.connection.get_session."""
    SessionLocal = sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def factory():
        session = SessionLocal()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    return factory


@pytest_asyncio.fixture()
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Workbook builders
# ---------------------------------------------------------------------------


def catalog_row(
    category: str,
    name: str,
    model: str,
    style: str,
    price,
    description: str = "",
    dimensions: str = "",
    mandatory: tuple[str, ...] = (),
    optional: tuple[str, ...] = (),
) -> list:
    """One data row in sheet column order (index 0 is the first used column)."""
    row: list = [None] * 19
    row[0] = category
    row[3] = name
    row[4] = description or None
    row[5] = model
    row[6] = dimensions or None
    row[7] = style
    row[8] = f"{model} {style}"
    row[9] = price if not isinstance(price, Decimal) else float(price)
    for index, ref in zip((10, 11, 12), mandatory):
        row[index] = ref
    for index, ref in zip((14, 15, 16, 17, 18), optional):
        row[index] = ref
    return row


def drawing_xml(anchors: list[tuple[str, int, str]]) -> str:
    """Drawing part with one picture per (kind, 0-based row, rel id)."""
    parts = []
    for kind, row, rel_id in anchors:
        position = (
            f"<xdr:from><xdr:col>2</xdr:col><xdr:colOff>0</xdr:colOff>"
            f"<xdr:row>{row}</xdr:row><xdr:rowOff>0</xdr:rowOff></xdr:from>"
        )
        if kind == "twoCellAnchor":
            position += (
                f"<xdr:to><xdr:col>3</xdr:col><xdr:colOff>0</xdr:colOff>"
                f"<xdr:row>{row + 1}</xdr:row><xdr:rowOff>0</xdr:rowOff></xdr:to>"
            )
        else:
            position += '<xdr:ext cx="952500" cy="952500"/>'
        parts.append(
            f'<xdr:{kind} editAs="oneCell">{position}'
            f'<xdr:pic><xdr:nvPicPr><xdr:cNvPr id="{len(parts) + 2}" name="Picture"/>'
            f"<xdr:cNvPicPr/></xdr:nvPicPr>"
            f'<xdr:blipFill><a:blip r:embed="{rel_id}"/><a:stretch/></xdr:blipFill>'
            f"</xdr:pic><xdr:clientData/></xdr:{kind}>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f"<xdr:wsDr {DRAWING_NS}>{''.join(parts)}</xdr:wsDr>"
    )


def drawing_rels_xml(targets: dict[str, str]) -> str:
    """Relationships part mapping rel id -> media file name."""
    rels = "".join(
        f'<Relationship Id="{rel_id}" Type="{IMAGE_REL_TYPE}" Target="../media/{name}"/>'
        for rel_id, name in targets.items()
    )
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
        f"{rels}</Relationships>"
    )


def add_pictures(
    path: Path,
    anchors: list[tuple[str, int, str]],
    media: dict[str, tuple[str, bytes]],
) -> None:
    """Append drawing parts and media to an existing workbook container.

    Args:
        anchors: (anchor kind, 0-based sheet row, rel id)
        media: rel id -> (media file name, bytes)
    """
    with zipfile.ZipFile(path, "a") as archive:
        archive.writestr("xl/drawings/drawing1.xml", drawing_xml(anchors))
        archive.writestr(
            "xl/drawings/_rels/drawing1.xml.rels",
            drawing_rels_xml({rel_id: name for rel_id, (name, _) in media.items()}),
        )
        for name, data in media.values():
            archive.writestr(f"xl/media/{name}", data)


def write_workbook(path: Path, rows: list[list], first_column: int = 2) -> Path:
    """Write a catalog sheet: title in row 1, headers in row 3, data from row 4."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Catalog"
    sheet.cell(row=1, column=first_column, value="Product catalog")
    for offset, header in enumerate(
        ["Category", None, None, "Name", "Description", "Model", "Dimensions", "Style",
         "Full model", "Price"]
    ):
        if header:
            sheet.cell(row=3, column=first_column + offset, value=header)
    for row_offset, values in enumerate(rows):
        for col_offset, value in enumerate(values):
            if value is not None:
                sheet.cell(row=4 + row_offset, column=first_column + col_offset, value=value)
    workbook.save(path)
    return path


@pytest.fixture
def make_workbook(tmp_path):
    """Factory writing a workbook into tmp_path and returning its path."""
    counter = {"n": 0}

    def _make(rows: list[list], name: str | None = None) -> Path:
        counter["n"] += 1
        return write_workbook(tmp_path / (name or f"catalog-{counter['n']}.xlsx"), rows)

    return _make


@pytest.fixture
def catalog_rows() -> list[list]:
    """A switch with two styles whose white style requires an ivory plate."""
    return [
        catalog_row(
            "Switches", "Rocker switch", "SW-100", "White", 10.0,
            description="Single rocker", dimensions="86x86",
            mandatory=("PL-1 Ivory",),
        ),
        catalog_row("Switches", "Rocker switch", "SW-100", "Black", 12.5),
        catalog_row("Plates", "Cover plate", "PL-1", "Ivory", 2.5),
    ]


@pytest.fixture
def make_row():
    return catalog_row


@pytest.fixture
def embed_pictures():
    return add_pictures


@pytest.fixture
def drawing_parts():
    """(drawing XML builder, relationships XML builder)."""
    return drawing_xml, drawing_rels_xml
