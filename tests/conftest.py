# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from wareflow_import.config.loader import AppConfig, ImportSettings, MockDataSettings
from wareflow_import.db.connection import Database, connect_sqlite
from wareflow_import.db.schema import initialize_schema
from wareflow_import.models.input_document import FileMetadata, InputDocument, RawSheet
from wareflow_import.services.import_service import ImportService


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def clean_db_env(monkeypatch) -> None:
    for var in ("DATABASE_URL", "PGDSN", "WAREFLOW_DB_PATH"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def sqlite_db(tmp_path: Path) -> Database:
    db = connect_sqlite(tmp_path / "wareflow.db")
    cur = db.cursor()
    initialize_schema(cur, db.dialect)
    cur.close()
    yield db
    db.close()


@pytest.fixture()
def import_settings(tmp_path: Path) -> ImportSettings:
    return ImportSettings(stage_timeout_seconds=30, error_log_dir=str(tmp_path / "logs"))


@pytest.fixture()
def app_config(import_settings: ImportSettings) -> AppConfig:
    return AppConfig(imports=import_settings, mock_data=MockDataSettings(seed=7))


@pytest.fixture()
def service(sqlite_db: Database, app_config: AppConfig) -> ImportService:
    return ImportService(sqlite_db, config=app_config)


@pytest.fixture()
def write_workbook(tmp_path: Path) -> Callable[..., Path]:
    """Write {sheet name: list of row dicts} to an .xlsx file with openpyxl."""
    def _write(sheets: dict[str, list[dict[str, Any]]], name: str = "import.xlsx") -> Path:
        path = tmp_path / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, records in sheets.items():
                pd.DataFrame(records).to_excel(writer, sheet_name=sheet_name, index=False)
        return path
    return _write


def wh1_sheets() -> dict[str, list[dict[str, Any]]]:
    """Products 10, Locations 5, Inventory 10 (25 data rows)."""
    products = [
        {"id": f"P{i:03d}", "sku": f"SKU-{i:03d}", "name": f"Product {i}", "category": "Tools", "unit": "ea"}
        for i in range(1, 11)
    ]
    locations = [
        {"id": f"L{i}", "zone_id": "Z1", "sector_id": "S1" if i <= 3 else "S2", "code": f"A-0{i}"}
        for i in range(1, 6)
    ]
    inventory = [
        {"product_id": f"P{i:03d}", "location_id": f"L{(i - 1) % 5 + 1}", "quantity": i * 10}
        for i in range(1, 11)
    ]
    return {"Products": products, "Locations": locations, "Inventory": inventory}


@pytest.fixture()
def wh1_workbook(write_workbook) -> Path:
    return write_workbook(wh1_sheets(), name="wh1.xlsx")


@pytest.fixture()
def make_document() -> Callable[..., InputDocument]:
    """Build an InputDocument from {sheet: (headers, rows)} literals."""
    def _make(sheets: dict[str, tuple[tuple[str, ...], list[tuple[Any, ...]]]], filename: str = "test.xlsx") -> InputDocument:
        raw = {
            name: RawSheet(name=name, headers=tuple(headers), rows=tuple(tuple(r) for r in rows))
            for name, (headers, rows) in sheets.items()
        }
        return InputDocument(
            sheets=raw,
            metadata=FileMetadata(filename=filename, file_size=0, ingested_at=datetime.now(UTC)),
        )
    return _make


def count_rows(db: Database, table: str, where: str = "", params: tuple = ()) -> int:
    cur = db.cursor()
    try:
        cur.execute(f"SELECT COUNT(*) FROM {table} {where}", params)
        return cur.fetchone()[0]
    finally:
        cur.close()


@pytest.fixture()
def table_count(sqlite_db: Database) -> Callable[..., int]:
    def _count(table: str, where: str = "", params: tuple = ()) -> int:
        return count_rows(sqlite_db, table, where, params)
    return _count
