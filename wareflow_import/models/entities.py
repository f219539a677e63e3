from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime

"""Normalized entity models produced by plugin transforms.

Every plugin, whatever its source layout, produces these types. Field names
match the storage column names one-to-one so the loader can derive its
column lists from the dataclass definitions. Required attributes have no
default; optional ones default to None.
"""

__all__ = [
    "MOVEMENT_TYPES",
    "Product",
    "Inventory",
    "Movement",
    "Warehouse",
    "Zone",
    "Sector",
    "Location",
    "Supplier",
    "Customer",
    "User",
    "Order",
    "OrderLine",
    "Picking",
    "PickingLine",
    "Reception",
    "ReceptionLine",
    "Restocking",
    "RestockingLine",
    "Return",
    "ReturnLine",
    "ImportMetadata",
    "NormalizedCollections",
    "column_names",
]

MOVEMENT_TYPES = ("inbound", "outbound", "transfer", "adjustment")


def column_names(entity_type: type) -> list[str]:
    """Storage column names of an entity dataclass, in declaration order."""
    return [f.name for f in fields(entity_type)]


# --- warehouse structure -------------------------------------------------

@dataclass(frozen=True)
class Warehouse:
    id: str
    code: str
    name: str
    city: str
    country: str
    status: str
    surface: float | None = None
    capacity: int | None = None
    manager: str | None = None
    email: str | None = None
    phone: str | None = None
    opening_date: datetime | None = None


@dataclass(frozen=True)
class Zone:
    id: str
    warehouse_id: str
    code: str
    name: str
    type: str
    status: str
    surface: float | None = None
    capacity: int | None = None
    temperature_min: float | None = None
    temperature_max: float | None = None


@dataclass(frozen=True)
class Sector:
    id: str
    warehouse_id: str
    zone_id: str
    code: str
    name: str
    type: str
    status: str
    capacity: int | None = None
    aisle: str | None = None
    level: int | None = None
    position: str | None = None


@dataclass(frozen=True)
class Location:
    id: str
    warehouse_id: str
    zone_id: str
    sector_id: str
    code: str
    type: str
    status: str
    capacity: int | None = None
    used_capacity: int | None = None
    product_count: int | None = None
    picker_count: int | None = None
    aisle: str | None = None
    level: int | None = None
    position: str | None = None
    barcode: str | None = None


# --- catalog & stock -----------------------------------------------------

@dataclass(frozen=True)
class Product:
    id: str
    sku: str
    name: str
    category: str
    unit: str
    status: str
    description: str | None = None
    subcategory: str | None = None
    brand: str | None = None
    weight: float | None = None
    volume: float | None = None
    min_stock: int | None = None
    max_stock: int | None = None
    reorder_point: int | None = None
    reorder_quantity: int | None = None
    cost_price: float | None = None
    selling_price: float | None = None
    supplier: str | None = None


@dataclass(frozen=True)
class Inventory:
    """Stock level of one product at one (optional) location.

    The identity key is derived, not supplied: one row per
    (warehouse, product, location) triple.
    """
    warehouse_id: str
    product_id: str
    quantity: int
    available_quantity: int
    reserved_quantity: int
    location_id: str | None = None
    last_received_at: datetime | None = None
    last_shipped_at: datetime | None = None

    @property
    def id(self) -> str:
        return f"{self.warehouse_id}-{self.product_id}-{self.location_id or 'default'}"


@dataclass(frozen=True)
class Movement:
    """Immutable stock movement. Its id is generated by the loader at insert time."""
    warehouse_id: str
    product_id: str
    product_sku: str
    product_name: str
    type: str
    quantity: int
    unit: str
    movement_date: datetime
    source_location_id: str | None = None
    source_zone: str | None = None
    source_location_code: str | None = None
    destination_location_id: str | None = None
    destination_zone: str | None = None
    destination_location_code: str | None = None
    user_name: str | None = None
    reason: str | None = None
    lot: str | None = None
    expiration_date: datetime | None = None
    reference_type: str | None = None
    reference_id: str | None = None


# --- partners & operators ------------------------------------------------

@dataclass(frozen=True)
class Supplier:
    id: str
    code: str
    name: str
    status: str = "active"
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    payment_terms: str | None = None
    lead_time_days: int | None = None


@dataclass(frozen=True)
class Customer:
    id: str
    customer_code: str
    name: str
    status: str = "active"
    email: str | None = None
    phone: str | None = None
    billing_address: str | None = None
    shipping_address: str | None = None
    city: str | None = None
    country: str | None = None
    customer_type: str | None = None
    credit_limit: float | None = None


@dataclass(frozen=True)
class User:
    id: str
    warehouse_id: str
    username: str
    full_name: str
    role: str
    status: str
    email: str | None = None


# --- operations (header + lines) -----------------------------------------

@dataclass(frozen=True)
class Order:
    id: str
    warehouse_id: str
    order_number: str
    customer_id: str
    customer_name: str
    order_date: datetime
    required_date: datetime
    status: str
    priority: str
    customer_email: str | None = None
    promised_date: datetime | None = None
    shipped_date: datetime | None = None
    delivered_date: datetime | None = None
    total_quantity: int = 0
    total_amount: float = 0.0
    shipping_address: str | None = None
    shipping_city: str | None = None
    shipping_country: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    notes: str | None = None
    picker: str | None = None
    packer: str | None = None


@dataclass(frozen=True)
class OrderLine:
    id: str
    order_id: str
    warehouse_id: str
    product_id: str
    product_sku: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    picked_quantity: int = 0


@dataclass(frozen=True)
class Picking:
    id: str
    warehouse_id: str
    order_id: str
    order_number: str
    customer_id: str
    customer_name: str
    picking_number: str
    assigned_date: datetime
    status: str
    priority: str
    started_date: datetime | None = None
    completed_date: datetime | None = None
    total_quantity: int = 0
    picked_quantity: int = 0
    remaining_quantity: int = 0
    picker: str | None = None
    picker_id: str | None = None
    equipment: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PickingLine:
    id: str
    picking_id: str
    warehouse_id: str
    product_id: str
    product_sku: str
    product_name: str
    location_code: str
    quantity: int
    unit: str
    status: str
    zone_name: str | None = None
    picked_quantity: int = 0
    processed_by_user_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None


@dataclass(frozen=True)
class Reception:
    id: str
    warehouse_id: str
    supplier_id: str
    supplier_name: str
    reception_number: str
    expected_date: datetime
    status: str
    priority: str
    purchase_order_number: str | None = None
    received_date: datetime | None = None
    total_quantity: int = 0
    received_quantity: int = 0
    rejected_quantity: int = 0
    total_amount: float = 0.0
    carrier: str | None = None
    tracking_number: str | None = None
    dock_door: str | None = None
    receiver: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ReceptionLine:
    id: str
    reception_id: str
    warehouse_id: str
    product_id: str
    product_sku: str
    product_name: str
    ordered_quantity: int
    unit_price: float
    total_price: float
    received_quantity: int = 0
    rejected_quantity: int = 0
    reason: str | None = None
    processed_by_user_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None


@dataclass(frozen=True)
class Restocking:
    id: str
    warehouse_id: str
    restocking_number: str
    status: str
    priority: str
    requester: str
    requested_date: datetime
    total_products: int = 0
    restocked_products: int = 0
    assigned_to: str | None = None
    started_date: datetime | None = None
    completed_date: datetime | None = None


@dataclass(frozen=True)
class RestockingLine:
    id: str
    restocking_id: str
    warehouse_id: str
    product_id: str
    product_sku: str
    product_name: str
    current_quantity: int
    target_quantity: int
    quantity_to_restock: int
    unit: str
    status: str
    source_location_id: str | None = None
    destination_location_id: str | None = None
    processed_by_user_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None


@dataclass(frozen=True)
class Return:
    id: str
    warehouse_id: str
    return_number: str
    customer_id: str
    customer_name: str
    return_date: datetime
    type: str
    status: str
    priority: str
    reason: str
    reason_label: str
    order_id: str | None = None
    order_number: str | None = None
    total_quantity: int = 0
    total_amount: float = 0.0
    refunded_amount: float = 0.0
    processor: str | None = None
    completed_date: datetime | None = None


@dataclass(frozen=True)
class ReturnLine:
    id: str
    return_id: str
    warehouse_id: str
    product_id: str
    product_sku: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    condition: str
    resolution: str
    processed_by_user_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None


# --- plugin output -------------------------------------------------------

@dataclass(frozen=True)
class ImportMetadata:
    warehouse_id: str
    import_date: datetime
    plugin_id: str
    plugin_version: str
    wms_system: str


@dataclass(frozen=True)
class NormalizedCollections:
    """Canonical output of Plugin.transform, independent of the source format.

    placeholder_zones / placeholder_sectors hold layout rows a plugin had to
    invent so that references resolve. They are only written when no row with
    the same id exists yet, so they never overwrite a declared zone or sector.
    """
    metadata: ImportMetadata
    products: list[Product] = field(default_factory=list)
    inventory: list[Inventory] = field(default_factory=list)
    movements: list[Movement] = field(default_factory=list)
    warehouses: list[Warehouse] = field(default_factory=list)
    zones: list[Zone] = field(default_factory=list)
    sectors: list[Sector] = field(default_factory=list)
    locations: list[Location] = field(default_factory=list)
    suppliers: list[Supplier] = field(default_factory=list)
    customers: list[Customer] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)
    order_lines: list[OrderLine] = field(default_factory=list)
    pickings: list[Picking] = field(default_factory=list)
    picking_lines: list[PickingLine] = field(default_factory=list)
    receptions: list[Reception] = field(default_factory=list)
    reception_lines: list[ReceptionLine] = field(default_factory=list)
    restockings: list[Restocking] = field(default_factory=list)
    restocking_lines: list[RestockingLine] = field(default_factory=list)
    returns: list[Return] = field(default_factory=list)
    return_lines: list[ReturnLine] = field(default_factory=list)
    placeholder_zones: list[Zone] = field(default_factory=list)
    placeholder_sectors: list[Sector] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        """Entity count per collection name (metadata and placeholders excluded)."""
        return {
            f.name: len(getattr(self, f.name))
            for f in fields(self)
            if f.name != "metadata" and not f.name.startswith("placeholder_")
        }
