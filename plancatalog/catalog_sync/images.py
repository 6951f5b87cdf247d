"""Embedded image extraction from the ``.xlsx`` zip container.

Images live in ``xl/media/``; their sheet positions are described by
``xl/drawings/drawing1.xml`` (anchors referencing relationship ids) and
``xl/drawings/_rels/drawing1.xml.rels`` (relationship id -> media target).
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from plancatalog.storage.file_storage import FileStorage

logger = logging.getLogger(__name__)

DRAWING_PATH = "xl/drawings/drawing1.xml"
DRAWING_RELS_PATH = "xl/drawings/_rels/drawing1.xml.rels"
MEDIA_DIR = "xl/media"

TWO_CELL = "twoCellAnchor"
ONE_CELL = "oneCellAnchor"


@dataclass(frozen=True, slots=True)
class ImageAnchor:
    """One picture anchor: 1-based sheet row and the blip's relationship id."""

    kind: str
    row: int
    rel_id: str


class DrawingParser(Protocol):
    """Parses drawing descriptors; swappable without touching the mapping."""

    def parse_relationships(self, rels_xml: str) -> dict[str, str]:
        """Relationship id -> media file name."""
        ...

    def parse_anchors(self, drawing_xml: str) -> list[ImageAnchor]:
        ...


class RegexDrawingParser:
    """Narrow regex parser for the drawing XML Excel writes."""

    _relationship = re.compile(r'<Relationship\s+Id="([^"]+)"[^>]*?Target="([^"]+)"')
    _anchor = re.compile(
        r"<xdr:(twoCellAnchor|oneCellAnchor)\b[^>]*>(.*?)</xdr:\1>", re.DOTALL
    )
    _from_row = re.compile(r"<xdr:from>.*?<xdr:row>(\d+)</xdr:row>.*?</xdr:from>", re.DOTALL)
    _blip = re.compile(r'<a:blip\b[^>]*?r:embed="([^"]+)"')

    def parse_relationships(self, rels_xml: str) -> dict[str, str]:
        return {
            rel_id: PurePosixPath(target).name
            for rel_id, target in self._relationship.findall(rels_xml)
            if PurePosixPath(target).name
        }

    def parse_anchors(self, drawing_xml: str) -> list[ImageAnchor]:
        anchors = []
        for kind, body in self._anchor.findall(drawing_xml):
            from_match = self._from_row.search(body)
            blip_match = self._blip.search(body)
            if not from_match or not blip_match:
                continue
            # <xdr:row> is 0-based
            anchors.append(
                ImageAnchor(kind=kind, row=int(from_match.group(1)) + 1, rel_id=blip_match.group(1))
            )
        return anchors


def build_row_image_map(
    anchors: list[ImageAnchor],
    relationships: dict[str, str],
) -> dict[int, str]:
    """Map sheet row -> media file name.

    Two-cell anchors are applied first; a one-cell anchor only fills a row
    no two-cell anchor claimed. Within one kind the last anchor wins.
    """
    row_map: dict[int, str] = {}
    for kind in (TWO_CELL, ONE_CELL):
        claimed = set(row_map)
        for anchor in anchors:
            if anchor.kind != kind or anchor.row in claimed:
                continue
            media_name = relationships.get(anchor.rel_id)
            if media_name:
                row_map[anchor.row] = media_name
    return row_map


def content_addressed_name(data: bytes, media_name: str) -> str:
    return f"{hashlib.sha1(data).hexdigest()[:12]}-{media_name}"


class ImageExtractor:
    """Extracts anchored images and copies them into file storage.

    Extraction never raises: any failure is logged and yields an empty or
    partial map.
    """

    def __init__(
        self,
        storage: FileStorage,
        subdirectory: str = "items/excel-import",
        parser: DrawingParser | None = None,
        temp_dir: Path | None = None,
    ):
        self.storage = storage
        self.subdirectory = subdirectory
        self.parser = parser or RegexDrawingParser()
        self.temp_dir = temp_dir

    def extract(self, workbook_path: Path) -> dict[int, str]:
        """Return sheet row -> stored relative image path."""
        try:
            work_dir = Path(tempfile.mkdtemp(prefix="catalog-sync-", dir=self.temp_dir))
        except OSError as e:
            logger.error(f"Image extraction skipped, cannot create temp dir: {e}")
            return {}

        try:
            return self._extract_into(workbook_path, work_dir)
        except Exception as e:
            logger.error(f"Failed to extract images from {workbook_path.name}: {e}")
            return {}
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    def _extract_into(self, workbook_path: Path, work_dir: Path) -> dict[int, str]:
        with zipfile.ZipFile(workbook_path) as archive:
            archive.extractall(work_dir)

        drawing = work_dir / DRAWING_PATH
        rels = work_dir / DRAWING_RELS_PATH
        if not drawing.is_file() or not rels.is_file():
            logger.info(f"No drawings in {workbook_path.name}, no images to extract")
            return {}

        relationships = self.parser.parse_relationships(rels.read_text(encoding="utf-8"))
        anchors = self.parser.parse_anchors(drawing.read_text(encoding="utf-8"))
        row_media = build_row_image_map(anchors, relationships)

        stored: dict[int, str] = {}
        saved_by_media: dict[str, str] = {}
        for row, media_name in sorted(row_media.items()):
            if media_name in saved_by_media:
                stored[row] = saved_by_media[media_name]
                continue
            try:
                data = (work_dir / MEDIA_DIR / media_name).read_bytes()
                path = self.storage.save_file(
                    data,
                    content_addressed_name(data, media_name),
                    self.subdirectory,
                    unique=False,
                )
            except OSError as e:
                logger.warning(f"Failed to copy image {media_name} (row {row}): {e}")
                continue
            saved_by_media[media_name] = path
            stored[row] = path

        logger.info(f"Extracted {len(stored)} row images from {workbook_path.name}")
        return stored
