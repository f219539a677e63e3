from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import psycopg2

from wareflow_import.db.schema import Dialect

"""Row writer with per-row recovery.

Writes a batch of rows into one table inside the caller's transaction. Every
row runs under its own SAVEPOINT: a row the database rejects (constraint,
type, foreign key) is rolled back alone and reported as a RowFailure while
the rest of the batch proceeds.

Modes:
- UPSERT: INSERT ... ON CONFLICT (id) DO UPDATE. Keeps created_at, refreshes
  updated_at. Dependent rows are untouched (no delete + insert).
- APPEND: plain INSERT, for append-only tables.
- INSERT_IF_ABSENT: INSERT ... ON CONFLICT (id) DO NOTHING.
"""

__all__ = [
    "WriteMode",
    "BatchInsertError",
    "BatchMetrics",
    "RowFailure",
    "InsertResult",
    "build_insert_sql",
    "batch_upsert",
]

logger = logging.getLogger(__name__)

_SAVEPOINT = "wareflow_row"


class WriteMode(Enum):
    UPSERT = "upsert"
    APPEND = "append"
    INSERT_IF_ABSENT = "insert_if_absent"


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of one batch_upsert call."""
    table: str
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class RowFailure:
    index: int  # position within the batch, 0-based
    entity_id: str | None
    message: str


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    failures: tuple[RowFailure, ...] = ()


def build_insert_sql(table: str, columns: Sequence[str], dialect: Dialect, mode: WriteMode) -> str:
    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES ({dialect.placeholders(len(columns))})"
    if mode is WriteMode.UPSERT:
        updates = [f'"{c}" = excluded."{c}"' for c in columns if c != "id"]
        updates.append("updated_at = CURRENT_TIMESTAMP")
        sql += f" ON CONFLICT (id) DO UPDATE SET {', '.join(updates)}"
    elif mode is WriteMode.INSERT_IF_ABSENT:
        sql += " ON CONFLICT (id) DO NOTHING"
    return sql


def _execute_row(cursor: Any, sql: str, row: Sequence[Any]) -> int:
    try:
        cursor.execute(sql, tuple(row))
    except (sqlite3.Error, psycopg2.Error) as e:
        raise BatchInsertError(str(e).strip()) from e
    return cursor.rowcount


def batch_upsert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    dialect: Dialect,
    mode: WriteMode = WriteMode.UPSERT,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Write rows into table; must run inside an open transaction.

    The first column is taken as the row identity for failure reports.
    metrics_callback is not invoked for an empty batch.
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)

    sql = build_insert_sql(table, columns, dialect, mode)
    inserted = 0
    failures: list[RowFailure] = []

    start_time = time.time()
    try:
        for index, row in enumerate(rows_list):
            cursor.execute(f"SAVEPOINT {_SAVEPOINT}")
            try:
                rowcount = _execute_row(cursor, sql, row)
            except BatchInsertError as e:
                cursor.execute(f"ROLLBACK TO SAVEPOINT {_SAVEPOINT}")
                cursor.execute(f"RELEASE SAVEPOINT {_SAVEPOINT}")
                entity_id = str(row[0]) if row and row[0] is not None else None
                failures.append(RowFailure(index=index, entity_id=entity_id, message=str(e)))
                logger.warning("%s: row %d (%s) rejected: %s", table, index + 1, entity_id, e)
                continue
            cursor.execute(f"RELEASE SAVEPOINT {_SAVEPOINT}")
            if mode is WriteMode.INSERT_IF_ABSENT:
                inserted += max(rowcount, 0)
            else:
                inserted += 1
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    table=table,
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(inserted_rows=inserted, failures=tuple(failures))
