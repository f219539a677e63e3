from __future__ import annotations

import logging
import secrets
import sqlite3
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

import psycopg2

from wareflow_import.db.batch_insert import BatchMetrics, WriteMode, batch_upsert
from wareflow_import.db.connection import Database
from wareflow_import.db.schema import TABLES, table_columns
from wareflow_import.models.entities import Movement, NormalizedCollections, Warehouse
from wareflow_import.models.error_record import ErrorRecord
from wareflow_import.models.import_result import LoadStats

"""Normalized loader.

Writes NormalizedCollections into storage in dependency order so foreign keys
always resolve, regardless of the order plugins emitted the collections in.
Each collection is its own transaction; inside it every row has its own
savepoint (see db.batch_insert), so one bad row costs one row, while a
collection-level failure rolls that collection back and aborts the load.

Order:
    warehouses (+ target warehouse placeholder), zones, sectors (each followed
    by its placeholder rows, insert-if-absent), locations,
    products, inventory, movements (append-only), suppliers, customers,
    users, orders, order_lines, pickings, picking_lines, receptions,
    reception_lines, restockings, restocking_lines, returns, return_lines
"""

__all__ = [
    "LoadError",
    "CollectionSpec",
    "LOAD_ORDER",
    "ROW_INSERT_FAILED",
    "movement_id",
    "to_db_value",
    "NormalizedLoader",
]

logger = logging.getLogger(__name__)

ROW_INSERT_FAILED = "ROW_INSERT_FAILED"

LoadProgress = Callable[[float, str], None]


class LoadError(Exception):
    """A collection could not be written; its transaction was rolled back."""


@dataclass(frozen=True)
class CollectionSpec:
    attribute: str  # NormalizedCollections field name
    table: str
    mode: WriteMode = WriteMode.UPSERT
    placeholders: str | None = None  # written INSERT_IF_ABSENT after the declared rows


LOAD_ORDER: tuple[CollectionSpec, ...] = (
    CollectionSpec("warehouses", "warehouses"),
    CollectionSpec("zones", "zones", placeholders="placeholder_zones"),
    CollectionSpec("sectors", "sectors", placeholders="placeholder_sectors"),
    CollectionSpec("locations", "locations"),
    CollectionSpec("products", "products"),
    CollectionSpec("inventory", "inventory"),
    CollectionSpec("movements", "movements", WriteMode.APPEND),
    CollectionSpec("suppliers", "suppliers"),
    CollectionSpec("customers", "customers"),
    CollectionSpec("users", "users"),
    CollectionSpec("orders", "orders"),
    CollectionSpec("order_lines", "order_lines"),
    CollectionSpec("pickings", "pickings"),
    CollectionSpec("picking_lines", "picking_lines"),
    CollectionSpec("receptions", "receptions"),
    CollectionSpec("reception_lines", "reception_lines"),
    CollectionSpec("restockings", "restockings"),
    CollectionSpec("restocking_lines", "restocking_lines"),
    CollectionSpec("returns", "returns"),
    CollectionSpec("return_lines", "return_lines"),
)


def movement_id(movement: Movement) -> str:
    """Fresh identity for an append-only movement: warehouse-product-epochms-random."""
    epoch_ms = int(time.time() * 1000)
    return f"{movement.warehouse_id}-{movement.product_id}-{epoch_ms}-{secrets.token_hex(4)}"


def to_db_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _entity_row(entity: Any, columns: Sequence[str]) -> tuple[Any, ...]:
    values = []
    for column in columns:
        if column == "id" and isinstance(entity, Movement):
            values.append(movement_id(entity))
        else:
            values.append(to_db_value(getattr(entity, column)))
    return tuple(values)


def _placeholder_warehouse(warehouse_id: str) -> Warehouse:
    return Warehouse(
        id=warehouse_id,
        code=warehouse_id,
        name=warehouse_id,
        city="",
        country="",
        status="active",
    )


class NormalizedLoader:
    """Write NormalizedCollections into an open Database.

    source_name labels ErrorRecords (file name, or 'mock-data').
    """

    def __init__(
        self,
        db: Database,
        source_name: str = "unknown",
        metrics_callback: Callable[[BatchMetrics], None] | None = None,
    ) -> None:
        self._db = db
        self._source_name = source_name
        self._metrics_callback = metrics_callback

    def load(self, collections: NormalizedCollections, on_progress: LoadProgress | None = None) -> LoadStats:
        stats = LoadStats(inserted={spec.attribute: 0 for spec in LOAD_ORDER})
        warehouse_id = collections.metadata.warehouse_id

        with self._db.lock:
            cursor = self._db.cursor()
            try:
                for index, spec in enumerate(LOAD_ORDER):
                    entities = getattr(collections, spec.attribute)
                    placeholders = getattr(collections, spec.placeholders) if spec.placeholders else []
                    if spec.attribute == "warehouses":
                        self._load_warehouses(cursor, entities, warehouse_id, stats)
                    elif entities or placeholders:
                        self._load_collection(cursor, spec, entities, placeholders, stats)
                    if on_progress is not None:
                        on_progress((index + 1) * 100.0 / len(LOAD_ORDER), f"Loaded {spec.attribute}")
            finally:
                cursor.close()

        logger.debug("load finished: %s", {k: v for k, v in stats.inserted.items() if v})
        return stats

    def _write(
        self,
        cursor: Any,
        spec: CollectionSpec,
        entities: Sequence[Any],
        stats: LoadStats,
        mode: WriteMode | None = None,
        label: str | None = None,
    ) -> None:
        mode = mode or spec.mode
        columns = table_columns(TABLES[spec.table])
        result = batch_upsert(
            cursor,
            spec.table,
            columns,
            (_entity_row(entity, columns) for entity in entities),
            self._db.dialect,
            mode=mode,
            metrics_callback=lambda m: self._on_metrics(m, stats),
        )
        if mode is WriteMode.INSERT_IF_ABSENT:
            # rows that already existed are still present after the load
            stats.inserted[spec.attribute] += len(entities) - len(result.failures)
        else:
            stats.inserted[spec.attribute] += result.inserted_rows
        for failure in result.failures:
            stats.row_errors.append(
                ErrorRecord.create(
                    file=self._source_name,
                    collection=label or spec.attribute,
                    row=failure.index + 1,
                    error_type=ROW_INSERT_FAILED,
                    db_message=failure.message,
                    entity_id=failure.entity_id,
                )
            )

    def _on_metrics(self, metrics: BatchMetrics, stats: LoadStats) -> None:
        stats.batch_seconds[metrics.table] = stats.batch_seconds.get(metrics.table, 0.0) + metrics.elapsed_seconds
        if self._metrics_callback is not None:
            self._metrics_callback(metrics)

    def _load_collection(
        self,
        cursor: Any,
        spec: CollectionSpec,
        entities: Sequence[Any],
        placeholders: Sequence[Any],
        stats: LoadStats,
    ) -> None:
        def work() -> None:
            if entities:
                self._write(cursor, spec, entities, stats)
            if placeholders:
                self._write(
                    cursor, spec, placeholders, stats, mode=WriteMode.INSERT_IF_ABSENT, label=spec.placeholders
                )

        self._in_transaction(cursor, spec.attribute, work)

    def _load_warehouses(
        self, cursor: Any, warehouses: Sequence[Warehouse], warehouse_id: str, stats: LoadStats
    ) -> None:
        def work() -> None:
            if warehouses:
                self._write(cursor, LOAD_ORDER[0], warehouses, stats)
            # the target warehouse must exist for warehouse-scoped foreign keys
            placeholder = CollectionSpec("warehouses", "warehouses", WriteMode.INSERT_IF_ABSENT)
            columns = table_columns(TABLES["warehouses"])
            batch_upsert(
                cursor,
                placeholder.table,
                columns,
                [_entity_row(_placeholder_warehouse(warehouse_id), columns)],
                self._db.dialect,
                mode=placeholder.mode,
            )

        self._in_transaction(cursor, "warehouses", work)

    def _in_transaction(self, cursor: Any, name: str, work: Callable[[], None]) -> None:
        cursor.execute("BEGIN")
        try:
            work()
            cursor.execute("COMMIT")
        except Exception as e:
            try:
                cursor.execute("ROLLBACK")
            except (sqlite3.Error, psycopg2.Error):
                logger.exception("rollback failed for %s", name)
            raise LoadError(f"failed to load {name}: {e}") from e
