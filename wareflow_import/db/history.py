from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from wareflow_import.db.schema import Dialect
from wareflow_import.models.import_result import ImportResult

"""import_history audit table: one row per import attempt."""

__all__ = ["HistoryEntry", "record_import", "list_history"]

_COLUMNS = (
    "warehouse_id",
    "plugin_id",
    "plugin_version",
    "rows_processed",
    "status",
    "file_name",
    "file_size",
    "duration_ms",
    "error_message",
)


@dataclass(frozen=True)
class HistoryEntry:
    warehouse_id: str
    plugin_id: str
    plugin_version: str | None
    rows_processed: int
    status: str
    file_name: str | None = None
    file_size: int | None = None
    duration_ms: int | None = None
    error_message: str | None = None

    @staticmethod
    def from_result(result: ImportResult) -> HistoryEntry:
        error_message = "; ".join(d.message for d in result.errors) or None
        return HistoryEntry(
            warehouse_id=result.warehouse_id,
            plugin_id=result.plugin_id,
            plugin_version=result.plugin_version,
            rows_processed=result.stats.rows_processed,
            status=result.status.value,
            file_name=result.file_name,
            file_size=result.file_size,
            duration_ms=result.duration_ms,
            error_message=error_message,
        )


def record_import(cursor: Any, dialect: Dialect, entry: HistoryEntry) -> None:
    cols = ", ".join(_COLUMNS)
    sql = f"INSERT INTO import_history ({cols}) VALUES ({dialect.placeholders(len(_COLUMNS))})"
    cursor.execute(sql, tuple(getattr(entry, c) for c in _COLUMNS))


def list_history(cursor: Any, dialect: Dialect, warehouse_id: str, limit: int | None = None) -> list[dict[str, Any]]:
    """Audit rows for one warehouse, newest first."""
    sql = (
        "SELECT id, warehouse_id, plugin_id, plugin_version, imported_at, rows_processed, status, "
        "file_name, file_size, duration_ms, error_message "
        f"FROM import_history WHERE warehouse_id = {dialect.placeholder} ORDER BY id DESC"
    )
    params: tuple[Any, ...] = (warehouse_id,)
    if limit is not None:
        sql += f" LIMIT {dialect.placeholder}"
        params += (limit,)
    cursor.execute(sql, params)
    names = [d[0] for d in cursor.description]
    rows = []
    for row in cursor.fetchall():
        record = dict(zip(names, row, strict=True))
        imported_at = record["imported_at"]
        if hasattr(imported_at, "isoformat"):
            record["imported_at"] = imported_at.isoformat()
        rows.append(record)
    return rows
