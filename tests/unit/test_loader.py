from __future__ import annotations

import re
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from wareflow_import.models.entities import (
    ImportMetadata,
    Inventory,
    Location,
    Movement,
    NormalizedCollections,
    Product,
    Sector,
    Zone,
)
from wareflow_import.services.loader import (
    LOAD_ORDER,
    ROW_INSERT_FAILED,
    LoadError,
    NormalizedLoader,
    movement_id,
    to_db_value,
)

WH = "WH1"


def _product(i: int, **overrides) -> Product:
    values = dict(id=f"P{i}", sku=f"SKU-{i}", name=f"Product {i}", category="Tools", unit="ea", status="in_stock")
    values.update(overrides)
    return Product(**values)


def _movement(product_id: str = "P1") -> Movement:
    return Movement(
        warehouse_id=WH,
        product_id=product_id,
        product_sku="SKU-1",
        product_name="Product 1",
        type="inbound",
        quantity=5,
        unit="ea",
        movement_date=datetime(2024, 1, 2, 8, 30, tzinfo=UTC),
    )


def _collections(**kwargs) -> NormalizedCollections:
    meta = ImportMetadata(
        warehouse_id=WH,
        import_date=datetime.now(UTC),
        plugin_id="test",
        plugin_version="0",
        wms_system="Test",
    )
    return NormalizedCollections(metadata=meta, **kwargs)


def _layout() -> dict:
    return dict(
        zones=[Zone(id="Z1", warehouse_id=WH, code="Z1", name="Zone 1", type="storage", status="active")],
        sectors=[
            Sector(id="S1", warehouse_id=WH, zone_id="Z1", code="S1", name="S1", type="picking", status="active")
        ],
        locations=[
            Location(
                id="L1", warehouse_id=WH, zone_id="Z1", sector_id="S1", code="A-01", type="shelf", status="available"
            )
        ],
    )


def _full() -> NormalizedCollections:
    return _collections(
        products=[_product(1), _product(2)],
        inventory=[
            Inventory(warehouse_id=WH, product_id="P1", location_id="L1", quantity=4, available_quantity=4, reserved_quantity=0)
        ],
        movements=[_movement(), _movement()],
        **_layout(),
    )


def test_load_order_puts_parents_first():
    order = [spec.attribute for spec in LOAD_ORDER]
    assert order[:7] == ["warehouses", "zones", "sectors", "locations", "products", "inventory", "movements"]
    assert len(order) == 20
    assert order.index("orders") < order.index("order_lines")
    assert order.index("returns") < order.index("return_lines")


def test_load_writes_everything_and_counts(sqlite_db, table_count):
    stats = NormalizedLoader(sqlite_db).load(_full())

    assert stats.inserted["products"] == 2
    assert stats.inserted["movements"] == 2
    assert stats.inserted["zones"] == 1
    assert stats.inserted["orders"] == 0
    assert stats.row_errors == []
    assert table_count("inventory") == 1


def test_target_warehouse_placeholder_is_created_once(sqlite_db, table_count):
    loader = NormalizedLoader(sqlite_db)
    stats = loader.load(_collections(products=[_product(1)]))
    loader.load(_collections(products=[_product(1)]))

    assert stats.inserted["warehouses"] == 0
    cur = sqlite_db.cursor()
    row = cur.execute("SELECT code, name, status FROM warehouses WHERE id = ?", (WH,)).fetchone()
    cur.close()
    assert row == (WH, WH, "active")
    assert table_count("warehouses") == 1


def test_reload_is_idempotent_except_movements(sqlite_db, table_count):
    loader = NormalizedLoader(sqlite_db)
    loader.load(_full())
    loader.load(_full())

    assert table_count("products") == 2
    assert table_count("inventory") == 1
    assert table_count("locations") == 1
    assert table_count("movements") == 4


def test_upsert_keeps_created_at_and_updates_values(sqlite_db):
    loader = NormalizedLoader(sqlite_db)
    loader.load(_collections(products=[_product(1)]))
    cur = sqlite_db.cursor()
    cur.execute("UPDATE products SET created_at = '2000-01-01 00:00:00' WHERE id = 'P1'")

    loader.load(_collections(products=[_product(1, name="Renamed")]))

    row = cur.execute("SELECT name, created_at FROM products WHERE id = 'P1'").fetchone()
    cur.close()
    assert row == ("Renamed", "2000-01-01 00:00:00")


def test_one_bad_row_does_not_stop_the_collection(sqlite_db, table_count):
    inventory = [
        Inventory(warehouse_id=WH, product_id="P1", quantity=1, available_quantity=1, reserved_quantity=0),
        Inventory(warehouse_id=WH, product_id="MISSING", quantity=1, available_quantity=1, reserved_quantity=0),
        Inventory(warehouse_id=WH, product_id="P2", quantity=1, available_quantity=1, reserved_quantity=0),
    ]
    loader = NormalizedLoader(sqlite_db, source_name="stock.xlsx")
    stats = loader.load(_collections(products=[_product(1), _product(2)], inventory=inventory))

    assert stats.inserted["inventory"] == 2
    (error,) = stats.row_errors
    assert error.error_type == ROW_INSERT_FAILED
    assert (error.file, error.collection, error.row) == ("stock.xlsx", "inventory", 2)
    assert error.entity_id == "WH1-MISSING-default"
    assert "FOREIGN KEY" in error.db_message
    assert table_count("inventory") == 2


def test_collection_failure_rolls_back_and_raises(sqlite_db, table_count):
    from wareflow_import.services import loader as loader_module

    real = loader_module.batch_upsert

    def failing(cursor, table, *args, **kwargs):
        if table == "products":
            # write one row first so the rollback is observable
            real(cursor, table, *args, **kwargs)
            raise RuntimeError("disk full")
        return real(cursor, table, *args, **kwargs)

    with patch("wareflow_import.services.loader.batch_upsert", side_effect=failing):
        with pytest.raises(LoadError, match="failed to load products: disk full"):
            NormalizedLoader(sqlite_db).load(_full())

    assert table_count("zones") == 1
    assert table_count("products") == 0
    assert table_count("movements") == 0


def test_load_reports_progress(sqlite_db):
    seen = []
    NormalizedLoader(sqlite_db).load(_full(), on_progress=lambda p, m: seen.append(p))
    assert len(seen) == len(LOAD_ORDER)
    assert seen == sorted(seen)
    assert seen[-1] == pytest.approx(100.0)


def test_metrics_callback_receives_batches(sqlite_db):
    seen = []
    stats = NormalizedLoader(sqlite_db, metrics_callback=seen.append).load(_full())
    assert {m.table for m in seen} >= {"products", "movements"}
    assert set(stats.batch_seconds) == {m.table for m in seen}


def test_movement_id_shape():
    first, second = movement_id(_movement()), movement_id(_movement())
    assert re.fullmatch(r"WH1-P1-\d{13}-[0-9a-f]{8}", first)
    assert first != second


def test_to_db_value():
    assert to_db_value(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05"
    assert to_db_value(3) == 3
    assert to_db_value(None) is None


def test_children_listed_before_parents_still_resolve(sqlite_db, table_count):
    cur = sqlite_db.cursor()
    assert cur.execute("PRAGMA foreign_keys").fetchone() == (1,)
    cur.close()
    layout = _layout()
    collections = _collections(
        locations=layout["locations"],
        sectors=layout["sectors"],
        inventory=[
            Inventory(warehouse_id=WH, product_id="P1", location_id="L1", quantity=2, available_quantity=2, reserved_quantity=0)
        ],
        products=[_product(1)],
        zones=layout["zones"],
    )

    stats = NormalizedLoader(sqlite_db).load(collections)

    assert stats.row_errors == []
    assert (stats.inserted["zones"], stats.inserted["sectors"], stats.inserted["locations"]) == (1, 1, 1)
    assert table_count("inventory", "WHERE location_id = ?", ("L1",)) == 1


def test_placeholders_never_overwrite_existing_layout(sqlite_db):
    loader = NormalizedLoader(sqlite_db)
    loader.load(_collections(**_layout()))

    stand_in = Zone(id="Z1", warehouse_id=WH, code="Z1", name="Z1", type="storage", status="active")
    new_zone = Zone(id="Z2", warehouse_id=WH, code="Z2", name="Z2", type="storage", status="active")
    stats = loader.load(_collections(placeholder_zones=[stand_in, new_zone]))

    assert stats.inserted["zones"] == 2
    assert stats.row_errors == []
    cur = sqlite_db.cursor()
    rows = cur.execute("SELECT id, name FROM zones ORDER BY id").fetchall()
    cur.close()
    assert rows == [("Z1", "Zone 1"), ("Z2", "Z2")]


def test_declared_rows_win_over_placeholders_in_one_load(sqlite_db):
    declared = Sector(id="S1", warehouse_id=WH, zone_id="Z1", code="S1", name="Aisle one", type="bulk", status="active")
    stand_in = Sector(id="S1", warehouse_id=WH, zone_id="Z1", code="S1", name="S1", type="picking", status="active")
    NormalizedLoader(sqlite_db).load(
        _collections(zones=_layout()["zones"], sectors=[declared], placeholder_sectors=[stand_in])
    )
    cur = sqlite_db.cursor()
    row = cur.execute("SELECT name, type FROM sectors WHERE id = 'S1'").fetchone()
    cur.close()
    assert row == ("Aisle one", "bulk")
