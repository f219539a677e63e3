from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

from wareflow_import.models.diagnostic import Diagnostic
from wareflow_import.models.entities import (
    MOVEMENT_TYPES,
    ImportMetadata,
    Inventory,
    Location,
    Movement,
    NormalizedCollections,
    Product,
    Sector,
    Zone,
)
from wareflow_import.models.input_document import InputDocument
from wareflow_import.plugins.base import InputSchema, PluginMetadata, TransformContext

"""Mock data generator plugin.

Ignores its input document and synthesizes a plausible warehouse:
5 zones x 5 sector types x 2 locations, a product catalog with A/B/C
rotation classes, one inventory row per product and a 90-day movement
history. Layout ids are prefixed with the warehouse id so several mock
warehouses can live in the same store; product ids form a shared catalog.

Pass a seed for reproducible output.
"""

__all__ = ["MockDataPlugin", "ZONE_COUNT", "SECTOR_TYPES", "LOCATIONS_PER_SECTOR"]

ZONE_COUNT = 5
SECTOR_TYPES = ("picking", "storage", "reception", "shipping", "reserved")
LOCATIONS_PER_SECTOR = 2
HISTORY_DAYS = 90

CATEGORIES = (
    "Electronics",
    "Clothing",
    "Food & Beverages",
    "Home & Garden",
    "Sports & Outdoors",
    "Tools & Hardware",
    "Health & Beauty",
    "Toys & Games",
    "Automotive",
    "Office Supplies",
)
SUBCATEGORIES = {
    "Electronics": ("Computers", "Phones", "Tablets", "Accessories", "Audio"),
    "Clothing": ("Men", "Women", "Kids", "Shoes", "Accessories"),
    "Food & Beverages": ("Snacks", "Beverages", "Canned Goods", "Dairy", "Frozen"),
    "Home & Garden": ("Furniture", "Decor", "Kitchen", "Garden", "Tools"),
    "Sports & Outdoors": ("Fitness", "Outdoor", "Team Sports", "Water Sports", "Winter Sports"),
    "Tools & Hardware": ("Power Tools", "Hand Tools", "Hardware", "Safety", "Storage"),
    "Health & Beauty": ("Skincare", "Haircare", "Vitamins", "Personal Care", "Wellness"),
    "Toys & Games": ("Educational", "Outdoor", "Board Games", "Electronic", "Infant"),
    "Automotive": ("Parts", "Accessories", "Tools", "Fluids", "Electronics"),
    "Office Supplies": ("Paper", "Writing", "Desk Accessories", "Filing", "Technology"),
}
UNITS = ("ea", "kg", "lb", "m", "l", "gal", "box", "pallet")
BRANDS = (
    "TechPro", "HomeMaster", "QualityFirst", "PremiumBrand", "ValueLine",
    "EliteSeries", "Professional", "Standard", "Essential", "Ultra",
)
SUPPLIERS = (
    "Global Supplies Inc", "Quality Distributors Ltd", "Premium Wholesalers",
    "International Trading Co", "Metro Supplies", "National Distribution",
    "WorldWide Logistics", "Prime Suppliers", "Atlantic Trading", "Pacific Imports",
)
REASONS = {
    "inbound": ("Purchase receipt", "Return", "Transfer in", "Correction"),
    "outbound": ("Sale", "Transfer out", "Damage", "Expiration"),
    "transfer": ("Location transfer", "Zone transfer", "Replenishment"),
    "adjustment": ("Inventory count", "Damage correction", "System adjustment"),
}


def _money(rng: random.Random, low: float, high: float) -> float:
    return round(rng.uniform(low, high), 2)


class MockDataPlugin:
    metadata = PluginMetadata(
        id="mock-data-generator",
        name="Mock Data Generator",
        version="1.0.0",
        description="Generates realistic test data for development and testing",
        author="Wareflow",
        wms_system="Mock",
        supported_formats=(),
    )
    input_schema = InputSchema()

    def __init__(self, seed: int | None = None, products: int = 50, movements: int = 200):
        self.seed = seed
        self.product_count = products
        self.movement_count = movements

    def validate(self, document: InputDocument) -> list[Diagnostic]:
        return []

    def transform(self, document: InputDocument, context: TransformContext) -> NormalizedCollections:
        rng = random.Random(self.seed)
        wh = context.warehouse_id

        context.report(0, "Generating warehouse layout")
        zones = self._zones(rng, wh)
        sectors = self._sectors(rng, wh, zones)
        locations = self._locations(rng, wh, zones, sectors)

        context.report(30, "Generating products")
        products = self._products(rng)

        context.report(50, "Generating inventory")
        inventory = self._inventory(rng, wh, products, locations)

        context.report(70, "Generating movements")
        movements = self._movements(rng, wh, products, locations)

        context.report(100, "Mock data ready")
        return NormalizedCollections(
            metadata=ImportMetadata(
                warehouse_id=wh,
                import_date=datetime.now(UTC),
                plugin_id=self.metadata.id,
                plugin_version=self.metadata.version,
                wms_system=self.metadata.wms_system,
            ),
            products=products,
            inventory=inventory,
            movements=movements,
            zones=zones,
            sectors=sectors,
            locations=locations,
        )

    # --- generators ------------------------------------------------------

    @staticmethod
    def _zones(rng: random.Random, wh: str) -> list[Zone]:
        zones = []
        for i in range(1, ZONE_COUNT + 1):
            zones.append(
                Zone(
                    id=f"{wh}-ZONE-{i}",
                    warehouse_id=wh,
                    code=f"ZONE-{i:03d}",
                    name=f"Storage Zone {chr(64 + i)}",
                    type="storage",
                    status="active",
                    surface=float(rng.randint(500, 2000)),
                    capacity=rng.randint(1000, 5000),
                )
            )
        return zones

    @staticmethod
    def _sectors(rng: random.Random, wh: str, zones: list[Zone]) -> list[Sector]:
        sectors = []
        for zone in zones:
            for sector_type in SECTOR_TYPES:
                index = len(sectors) + 1
                sectors.append(
                    Sector(
                        id=f"{wh}-SECTOR-{index}",
                        warehouse_id=wh,
                        zone_id=zone.id,
                        code=f"{zone.code}-{sector_type[:3].upper()}",
                        name=f"{zone.name} - {sector_type.capitalize()}",
                        type=sector_type,
                        status="active",
                        capacity=rng.randint(200, 1000),
                    )
                )
        return sectors

    @staticmethod
    def _location_status(rng: random.Random, sector_type: str) -> str:
        if sector_type == "reserved":
            return "reserved"
        if sector_type == "reception":
            return "occupied" if rng.random() < 0.5 else "available"
        if sector_type == "storage":
            return "occupied" if rng.random() < 0.7 else "available"
        return "available"

    def _locations(
        self, rng: random.Random, wh: str, zones: list[Zone], sectors: list[Sector]
    ) -> list[Location]:
        locations = []
        for zone_idx, zone in enumerate(zones):
            aisle = chr(ord("A") + zone_idx)
            for sector_idx, sector in enumerate(s for s in sectors if s.zone_id == zone.id):
                level = sector_idx % 3 + 1
                for position in range(1, LOCATIONS_PER_SECTOR + 1):
                    index = len(locations) + 1
                    status = self._location_status(rng, sector.type)
                    capacity = rng.randint(50, 500)
                    occupied = status == "occupied"
                    locations.append(
                        Location(
                            id=f"{wh}-LOC-{index:02d}",
                            warehouse_id=wh,
                            zone_id=zone.id,
                            sector_id=sector.id,
                            code=f"{aisle}-{level:02d}-{position:02d}",
                            type=sector.type,
                            status=status,
                            capacity=capacity,
                            used_capacity=rng.randint(10, capacity) if occupied else 0,
                            product_count=rng.randint(1, 5) if occupied else 0,
                            picker_count=rng.randint(1, 3) if sector.type == "picking" else 0,
                            aisle=aisle,
                            level=level,
                            position=str(position),
                            barcode=f"LOC-{wh}-{index:02d}",
                        )
                    )
        return locations

    def _products(self, rng: random.Random) -> list[Product]:
        products = []
        for i in range(1, self.product_count + 1):
            category = rng.choice(CATEGORIES)
            rotation = rng.random()
            # A: high value / high rotation, B: medium, C: low
            if rotation < 0.2:
                cost, min_stock = _money(rng, 50, 500), rng.randint(50, 200)
            elif rotation < 0.5:
                cost, min_stock = _money(rng, 10, 100), rng.randint(20, 100)
            else:
                cost, min_stock = _money(rng, 1, 50), rng.randint(5, 50)
            products.append(
                Product(
                    id=f"PROD-{i:04d}",
                    sku=f"SKU-{category[:3].upper()}-{i:04d}",
                    name=f"{category} Product {i}",
                    category=category,
                    unit=rng.choice(UNITS),
                    status="in_stock",
                    description=f"High-quality {category.lower()} product for various applications",
                    subcategory=rng.choice(SUBCATEGORIES[category]),
                    brand=rng.choice(BRANDS),
                    weight=_money(rng, 0.1, 50),
                    volume=_money(rng, 0.01, 2),
                    min_stock=min_stock,
                    max_stock=min_stock * rng.randint(2, 5),
                    reorder_point=int(min_stock * 0.2),
                    reorder_quantity=min_stock,
                    cost_price=cost,
                    selling_price=round(cost * rng.uniform(1.3, 2.5), 2),
                    supplier=rng.choice(SUPPLIERS),
                )
            )
        return products

    @staticmethod
    def _inventory(
        rng: random.Random, wh: str, products: list[Product], locations: list[Location]
    ) -> list[Inventory]:
        inventory = []
        for product in products:
            quantity = rng.randint(0, (product.max_stock or 100) * 2)
            inventory.append(
                Inventory(
                    warehouse_id=wh,
                    product_id=product.id,
                    location_id=rng.choice(locations).id,
                    quantity=quantity,
                    available_quantity=int(quantity * rng.uniform(0.7, 1.0)),
                    reserved_quantity=int(quantity * rng.uniform(0.0, 0.3)),
                )
            )
        return inventory

    def _movements(
        self, rng: random.Random, wh: str, products: list[Product], locations: list[Location]
    ) -> list[Movement]:
        now = datetime.now(UTC)
        start = now - timedelta(days=HISTORY_DAYS)
        movements = []
        for _ in range(self.movement_count):
            product = rng.choice(products)
            moved_at = start + timedelta(seconds=rng.uniform(0, HISTORY_DAYS * 86400))
            age_days = (now - moved_at).days
            # recent history is mostly sales, old history mostly receipts
            if age_days < 30:
                movement_type = "outbound" if rng.random() < 0.7 else "inbound"
            elif age_days < 60:
                movement_type = rng.choice(MOVEMENT_TYPES)
            else:
                movement_type = "inbound" if rng.random() < 0.6 else "transfer"

            source = rng.choice(locations)
            destination = rng.choice(locations)
            outbound = movement_type == "outbound"
            inbound = movement_type == "inbound"
            movements.append(
                Movement(
                    warehouse_id=wh,
                    product_id=product.id,
                    product_sku=product.sku,
                    product_name=product.name,
                    type=movement_type,
                    quantity=rng.randint(1, 100),
                    unit=product.unit,
                    movement_date=moved_at,
                    source_location_id=source.id if outbound else None,
                    source_zone=source.zone_id if outbound else None,
                    source_location_code=source.code if outbound else None,
                    destination_location_id=destination.id if inbound else None,
                    destination_zone=destination.zone_id if inbound else None,
                    destination_location_code=destination.code if inbound else None,
                    user_name=f"User-{rng.randint(1, 10)}",
                    reason=rng.choice(REASONS[movement_type]),
                )
            )
        movements.sort(key=lambda m: m.movement_date)
        return movements
