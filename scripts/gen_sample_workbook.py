#!/usr/bin/env python3
"""Sample workbook generator for the generic-excel plugin.

Writes an .xlsx file with one sheet per entity (Products, Locations,
Inventory, Movements) in the layout the generic-excel plugin expects:
row 1 = snake_case headers, rows 2+ = data. Useful for demos and for
timing larger imports.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

CATEGORIES = ["Electronics", "Clothing", "Books", "Food", "Sports", "Home"]
UNITS = ["ea", "kg", "box", "pallet"]
MOVEMENT_TYPES = ["inbound", "outbound", "transfer", "adjustment"]


def generate_frames(products: int, locations: int, movements: int, seed: int = 42) -> dict[str, pd.DataFrame]:
    """Build the sheet DataFrames keyed by sheet name."""
    rng = np.random.default_rng(seed)

    product_ids = [f"P{i:05d}" for i in range(1, products + 1)]
    cost = np.round(rng.uniform(1, 500, products), 2)
    products_df = pd.DataFrame(
        {
            "id": product_ids,
            "sku": [f"SKU-{i:05d}" for i in range(1, products + 1)],
            "name": [f"Item {i}" for i in range(1, products + 1)],
            "category": rng.choice(CATEGORIES, products),
            "unit": rng.choice(UNITS, products),
            "cost_price": cost,
            "selling_price": np.round(cost * rng.uniform(1.2, 2.5, products), 2),
            "min_stock": rng.integers(5, 100, products),
        }
    )

    location_ids = [f"L{i:04d}" for i in range(1, locations + 1)]
    zone_ids = [f"Z{(i % 5) + 1}" for i in range(locations)]
    locations_df = pd.DataFrame(
        {
            "id": location_ids,
            "zone_id": zone_ids,
            "sector_id": [f"{z}-S{(i % 3) + 1}" for i, z in enumerate(zone_ids)],
            "code": [f"{chr(65 + i % 26)}-{i // 26 + 1:02d}" for i in range(locations)],
            "capacity": rng.integers(50, 500, locations),
        }
    )

    quantity = rng.integers(0, 1000, products)
    inventory_df = pd.DataFrame(
        {
            "product_id": product_ids,
            "location_id": rng.choice(location_ids, products),
            "quantity": quantity,
            "reserved_quantity": (quantity * rng.uniform(0, 0.3, products)).astype(int),
        }
    )

    dates = pd.date_range("2024-01-01", "2024-12-31", periods=365)
    movements_df = pd.DataFrame(
        {
            "product_id": rng.choice(product_ids, movements),
            "type": rng.choice(MOVEMENT_TYPES, movements),
            "quantity": rng.integers(1, 100, movements),
            "date": rng.choice(dates, movements),
            "user": [f"user{n}" for n in rng.integers(1, 10, movements)],
        }
    )
    return {
        "Products": products_df,
        "Locations": locations_df,
        "Inventory": inventory_df,
        "Movements": movements_df,
    }


def create_workbook(output_path: Path, frames: dict[str, pd.DataFrame]) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        for sheet_name, df in frames.items():
            df.to_excel(writer, sheet_name=sheet_name, index=False)

    print(f"Created workbook: {output_path}")
    for sheet_name, df in frames.items():
        print(f"  {sheet_name}: {len(df):,} rows")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a sample workbook for the generic-excel import plugin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s sample.xlsx
  %(prog)s big.xlsx --products 20000 --locations 2000 --movements 100000
""",
    )
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--products", type=int, default=100)
    parser.add_argument("--locations", type=int, default=20)
    parser.add_argument("--movements", type=int, default=500)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    if args.products <= 0 or args.locations <= 0 or args.movements < 0:
        print("Error: --products and --locations must be positive, --movements non-negative", file=sys.stderr)
        return 1

    try:
        create_workbook(args.output, generate_frames(args.products, args.locations, args.movements, args.seed))
    except OSError as e:
        print(f"Error writing workbook: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
