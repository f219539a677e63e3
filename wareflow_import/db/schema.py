from __future__ import annotations

from dataclasses import MISSING, dataclass, fields
from typing import Any

from wareflow_import.models import entities as e

"""Relational schema for the normalized store.

Table layouts are derived from the entity dataclasses (one column per field,
NOT NULL for fields without a default) so storage and models cannot drift.
Every table gets a TEXT primary key `id` plus created_at / updated_at
timestamps. import_history is the only hand-written table.

Two dialects are supported: SQLite (default, on disk) and PostgreSQL.
"""

__all__ = [
    "Dialect",
    "SQLITE",
    "POSTGRES",
    "TableSpec",
    "TABLES",
    "table_columns",
    "create_table_sql",
    "schema_statements",
    "initialize_schema",
]


@dataclass(frozen=True)
class Dialect:
    name: str
    placeholder: str
    autoincrement_pk: str
    text: str = "TEXT"
    integer: str = "INTEGER"
    real: str = "REAL"
    timestamp: str = "TIMESTAMP"

    def column_type(self, annotation: Any) -> str:
        # annotations are strings here (postponed evaluation)
        base = str(annotation).split("|")[0].strip()
        return {
            "str": self.text,
            "int": self.integer,
            "float": self.real,
            "datetime": self.timestamp,
        }.get(base, self.text)

    def placeholders(self, count: int) -> str:
        return ", ".join([self.placeholder] * count)


SQLITE = Dialect(name="sqlite", placeholder="?", autoincrement_pk="INTEGER PRIMARY KEY AUTOINCREMENT")
POSTGRES = Dialect(
    name="postgresql",
    placeholder="%s",
    autoincrement_pk="BIGSERIAL PRIMARY KEY",
    integer="BIGINT",
    real="DOUBLE PRECISION",
    timestamp="TIMESTAMPTZ",
)

CASCADE = "ON DELETE CASCADE"
SET_NULL = "ON DELETE SET NULL"


@dataclass(frozen=True)
class TableSpec:
    name: str
    entity: type
    # (column, referenced table, on-delete clause)
    foreign_keys: tuple[tuple[str, str, str], ...] = ()
    unique: tuple[tuple[str, ...], ...] = ()
    indexes: tuple[tuple[str, ...], ...] = ()


def _wh(*extra: tuple[str, str, str]) -> tuple[tuple[str, str, str], ...]:
    return (("warehouse_id", "warehouses", CASCADE), *extra)


_PRODUCT_FK = ("product_id", "products", "")

TABLES: dict[str, TableSpec] = {
    spec.name: spec
    for spec in (
        TableSpec("warehouses", e.Warehouse, unique=(("code",),)),
        TableSpec("zones", e.Zone, _wh(), indexes=(("warehouse_id",),)),
        TableSpec(
            "sectors",
            e.Sector,
            _wh(("zone_id", "zones", CASCADE)),
            indexes=(("warehouse_id",), ("zone_id",)),
        ),
        TableSpec(
            "locations",
            e.Location,
            _wh(("zone_id", "zones", CASCADE), ("sector_id", "sectors", CASCADE)),
            indexes=(("warehouse_id",), ("zone_id",), ("sector_id",)),
        ),
        TableSpec(
            "products",
            e.Product,
            unique=(("sku",),),
            indexes=(("category",),),
        ),
        TableSpec(
            "inventory",
            e.Inventory,
            _wh(("product_id", "products", CASCADE), ("location_id", "locations", SET_NULL)),
            unique=(("warehouse_id", "product_id", "location_id"),),
            indexes=(("warehouse_id",), ("product_id",), ("location_id",), ("warehouse_id", "product_id")),
        ),
        TableSpec(
            "movements",
            e.Movement,
            _wh(
                _PRODUCT_FK,
                ("source_location_id", "locations", SET_NULL),
                ("destination_location_id", "locations", SET_NULL),
            ),
            indexes=(("warehouse_id",), ("product_id",), ("movement_date",), ("type",)),
        ),
        TableSpec("suppliers", e.Supplier, unique=(("code",),)),
        TableSpec("customers", e.Customer, unique=(("customer_code",),)),
        TableSpec("users", e.User, _wh(), unique=(("username",),)),
        TableSpec("orders", e.Order, _wh(), indexes=(("warehouse_id",), ("status",))),
        TableSpec("order_lines", e.OrderLine, _wh(("order_id", "orders", CASCADE), _PRODUCT_FK)),
        TableSpec("pickings", e.Picking, _wh(("order_id", "orders", CASCADE))),
        TableSpec("picking_lines", e.PickingLine, _wh(("picking_id", "pickings", CASCADE), _PRODUCT_FK)),
        TableSpec("receptions", e.Reception, _wh(("supplier_id", "suppliers", ""))),
        TableSpec(
            "reception_lines", e.ReceptionLine, _wh(("reception_id", "receptions", CASCADE), _PRODUCT_FK)
        ),
        TableSpec("restockings", e.Restocking, _wh()),
        TableSpec(
            "restocking_lines",
            e.RestockingLine,
            _wh(
                ("restocking_id", "restockings", CASCADE),
                _PRODUCT_FK,
                ("source_location_id", "locations", SET_NULL),
                ("destination_location_id", "locations", SET_NULL),
            ),
        ),
        TableSpec("returns", e.Return, _wh(("order_id", "orders", SET_NULL))),
        TableSpec("return_lines", e.ReturnLine, _wh(("return_id", "returns", CASCADE), _PRODUCT_FK)),
    )
}


def table_columns(spec: TableSpec) -> list[str]:
    """Writable columns of a table: id first, then the entity fields."""
    names = e.column_names(spec.entity)
    return names if "id" in names else ["id", *names]


def create_table_sql(spec: TableSpec, dialect: Dialect) -> str:
    lines = [f"id {dialect.text} PRIMARY KEY"]
    for f in fields(spec.entity):
        if f.name == "id":
            continue
        required = f.default is MISSING and f.default_factory is MISSING
        lines.append(f"{f.name} {dialect.column_type(f.type)}{' NOT NULL' if required else ''}")
    lines.append(f"created_at {dialect.timestamp} DEFAULT CURRENT_TIMESTAMP")
    lines.append(f"updated_at {dialect.timestamp} DEFAULT CURRENT_TIMESTAMP")
    for cols in spec.unique:
        lines.append(f"UNIQUE ({', '.join(cols)})")
    for column, ref_table, on_delete in spec.foreign_keys:
        lines.append(f"FOREIGN KEY ({column}) REFERENCES {ref_table}(id) {on_delete}".rstrip())
    body = ",\n  ".join(lines)
    return f"CREATE TABLE IF NOT EXISTS {spec.name} (\n  {body}\n)"


def _import_history_sql(dialect: Dialect) -> str:
    # no FK to warehouses: failed attempts are recorded even for unknown warehouses
    return f"""CREATE TABLE IF NOT EXISTS import_history (
  id {dialect.autoincrement_pk},
  warehouse_id {dialect.text} NOT NULL,
  plugin_id {dialect.text} NOT NULL,
  plugin_version {dialect.text},
  imported_at {dialect.timestamp} DEFAULT CURRENT_TIMESTAMP,
  rows_processed {dialect.integer} NOT NULL DEFAULT 0,
  status {dialect.text} NOT NULL,
  file_name {dialect.text},
  file_size {dialect.integer},
  duration_ms {dialect.integer},
  error_message {dialect.text}
)"""


def schema_statements(dialect: Dialect) -> list[str]:
    statements = [create_table_sql(spec, dialect) for spec in TABLES.values()]
    statements.append(_import_history_sql(dialect))
    for spec in TABLES.values():
        for cols in spec.indexes:
            index_name = f"idx_{spec.name}_{'_'.join(cols)}"
            statements.append(f"CREATE INDEX IF NOT EXISTS {index_name} ON {spec.name}({', '.join(cols)})")
    statements.append(
        "CREATE INDEX IF NOT EXISTS idx_import_history_warehouse ON import_history(warehouse_id)"
    )
    return statements


def initialize_schema(cursor: Any, dialect: Dialect) -> None:
    """Create all tables and indexes. Safe to run on an existing store."""
    for statement in schema_statements(dialect):
        cursor.execute(statement)
