"""Local file storage for uploaded and extracted files.

Paths handed out by ``FileStorage`` are relative to the upload directory and
use forward slashes, so they can be stored in the database as-is.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[<>"|?*:]')


class FileStorage:
    """Stores blobs under ``upload_dir``."""

    def __init__(self, upload_dir: str | Path):
        self.upload_dir = Path(upload_dir)

    def ensure_directory(self, subdirectory: str) -> Path:
        path = self.upload_dir / subdirectory
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """Strip path traversal and characters unsafe on common filesystems."""
        cleaned = _UNSAFE_CHARS.sub("", filename)
        cleaned = cleaned.replace("..", "").replace("/", "-").replace("\\", "-")
        return cleaned.strip() or "file"

    @staticmethod
    def generate_unique_filename(filename: str) -> str:
        extension = Path(filename).suffix.lstrip(".") or "jpg"
        return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}.{extension}"

    def save_file(
        self,
        data: bytes,
        original_name: str,
        subdirectory: str,
        unique: bool = True,
    ) -> str:
        """Write ``data`` and return its path relative to the upload directory.

        Args:
            data: File content
            original_name: Client or container supplied name
            subdirectory: Target directory below the upload root
            unique: Generate a timestamped name; when False the sanitized
                name is used and an existing file is overwritten

        Returns:
            Relative path, e.g. ``items/excel-import/1a2b3c-image1.png``
        """
        directory = self.ensure_directory(subdirectory)
        safe_name = self.sanitize_filename(original_name)
        filename = self.generate_unique_filename(safe_name) if unique else safe_name

        (directory / filename).write_bytes(data)
        logger.debug(f"Stored {len(data)} bytes as {subdirectory}/{filename}")

        return f"{subdirectory.strip('/')}/{filename}"

    def delete_file(self, relative_path: str) -> None:
        """Remove a stored file; a missing file is not an error."""
        try:
            self.get_file_path(relative_path).unlink()
        except FileNotFoundError:
            logger.debug(f"File already gone: {relative_path}")

    def get_file_path(self, relative_path: str) -> Path:
        return self.upload_dir / relative_path

    def file_exists(self, relative_path: str) -> bool:
        return self.get_file_path(relative_path).is_file()
