"""Tests for the plancatalog command line."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from plancatalog.catalog_sync import SyncResult
from plancatalog.cli import app

runner = CliRunner()


@patch("plancatalog.cli.close_db", new_callable=AsyncMock)
@patch("plancatalog.cli.CatalogSyncService")
def test_sync_catalog_prints_summary(mock_service_class, mock_close_db, tmp_path):
    workbook = tmp_path / "catalog.xlsx"
    workbook.write_bytes(b"stub")
    result = SyncResult(duration_seconds=1.0)
    result.phases.items.added = 3
    result.phases.variants.images_extracted = 2
    mock_service_class.return_value.sync_catalog = AsyncMock(return_value=result)

    outcome = runner.invoke(app, ["sync-catalog", str(workbook)])

    assert outcome.exit_code == 0
    assert "Catalog Sync" in outcome.output
    assert "Images: 2" in outcome.output
    assert "SUCCESS" in outcome.output
    mock_close_db.assert_awaited_once()


@patch("plancatalog.cli.close_db", new_callable=AsyncMock)
@patch("plancatalog.cli.CatalogSyncService")
def test_failed_sync_exits_non_zero(mock_service_class, mock_close_db, tmp_path):
    workbook = tmp_path / "catalog.xlsx"
    workbook.write_bytes(b"stub")
    result = SyncResult(success=False)
    result.add_error(0, "Fatal error: Cannot read workbook")
    mock_service_class.return_value.sync_catalog = AsyncMock(return_value=result)

    outcome = runner.invoke(app, ["sync-catalog", str(workbook)])

    assert outcome.exit_code == 1
    assert "Fatal error" in outcome.output
    assert "FAILED" in outcome.output


@patch("plancatalog.cli.close_db", new_callable=AsyncMock)
@patch("plancatalog.cli.CatalogSyncService")
def test_sync_runs_empty(mock_service_class, mock_close_db):
    mock_service_class.return_value.recent_runs = AsyncMock(return_value=[])

    outcome = runner.invoke(app, ["sync-runs"])

    assert outcome.exit_code == 0
    assert "No catalog sync runs found" in outcome.output


def test_sync_catalog_requires_existing_file(tmp_path):
    outcome = runner.invoke(app, ["sync-catalog", str(tmp_path / "missing.xlsx")])

    assert outcome.exit_code != 0


def test_missing_database_url_exits(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    outcome = runner.invoke(app, ["sync-runs"])

    assert outcome.exit_code == 1
    assert "DATABASE_URL" in outcome.output
