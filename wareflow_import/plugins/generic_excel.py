from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from wareflow_import.models.diagnostic import Diagnostic
from wareflow_import.models.entities import (
    MOVEMENT_TYPES,
    Customer,
    ImportMetadata,
    Inventory,
    Location,
    Movement,
    NormalizedCollections,
    Product,
    Sector,
    Supplier,
    Zone,
)
from wareflow_import.models.input_document import InputDocument
from wareflow_import.plugins.base import (
    ColumnDefinition,
    ColumnType,
    InputSchema,
    PluginMetadata,
    SheetDefinition,
    TransformContext,
    as_datetime,
    as_int,
    as_number,
    as_text,
    complete_records,
    normalize_header,
    sheet_records,
    validate_against_schema,
)

"""Generic Excel plugin.

Reads a workbook laid out as one sheet per entity, with snake_case (or
human) column headers:

    Products   id, sku, name, category, unit, ...   (required sheet)
    Zones      id, code, name, type, ...
    Sectors    id, zone_id, code, name, type, ...
    Locations  id, zone_id, sector_id, code, type, ...
    Inventory  product_id, quantity, location_id, ...
    Movements  product_id, type, quantity, date, ...
    Suppliers  id, name, ...
    Customers  id, name, ...

Rows with a blank or unparsable required cell are skipped (validate reports
them as warnings). Zones and sectors referenced by Locations but not listed in
their own sheets are synthesized as placeholders so that every location
resolves.

Zone, sector and location ids are primary keys shared by all warehouses, so
they are scoped with the warehouse id ("Z1" imported into WH1 becomes
"WH1-Z1"); ids that already carry the prefix are kept. Codes keep the raw
value.
"""

__all__ = ["GenericExcelPlugin", "GENERIC_EXCEL_SCHEMA", "scoped_id"]

S, N, D = ColumnType.STRING, ColumnType.NUMBER, ColumnType.DATE

DEFAULT_UNIT = "ea"
DEFAULT_PRODUCT_STATUS = "in_stock"
DEFAULT_CATEGORY = "General"


def _col(name: str, type_: ColumnType = S, required: bool = False, description: str = "") -> ColumnDefinition:
    return ColumnDefinition(name=name, type=type_, required=required, description=description)


PRODUCTS = SheetDefinition(
    name="Products",
    required=True,
    description="Product catalog data",
    columns=(
        _col("id", required=True, description="Product unique identifier"),
        _col("sku", required=True, description="Product SKU"),
        _col("name", required=True, description="Product name"),
        _col("category", description="Product category"),
        _col("unit", description="Unit of measure"),
        _col("description"),
        _col("subcategory"),
        _col("brand"),
        _col("weight", N),
        _col("volume", N),
        _col("min_stock", N),
        _col("max_stock", N),
        _col("reorder_point", N),
        _col("reorder_quantity", N),
        _col("cost_price", N),
        _col("selling_price", N),
        _col("supplier"),
        _col("status"),
    ),
)

ZONES = SheetDefinition(
    name="Zones",
    description="Warehouse zones",
    columns=(
        _col("id", required=True, description="Zone identifier"),
        _col("code"),
        _col("name"),
        _col("type"),
        _col("status"),
        _col("surface", N),
        _col("capacity", N),
        _col("temperature_min", N),
        _col("temperature_max", N),
    ),
)

SECTORS = SheetDefinition(
    name="Sectors",
    description="Sectors within zones",
    columns=(
        _col("id", required=True, description="Sector identifier"),
        _col("zone_id", required=True, description="Parent zone"),
        _col("code"),
        _col("name"),
        _col("type"),
        _col("status"),
        _col("capacity", N),
        _col("aisle"),
        _col("level", N),
        _col("position"),
    ),
)

LOCATIONS = SheetDefinition(
    name="Locations",
    description="Storage locations",
    columns=(
        _col("id", required=True, description="Location identifier"),
        _col("zone_id", required=True, description="Zone of the location"),
        _col("sector_id", required=True, description="Sector of the location"),
        _col("code"),
        _col("type"),
        _col("status"),
        _col("capacity", N),
        _col("used_capacity", N),
        _col("aisle"),
        _col("level", N),
        _col("position"),
        _col("barcode"),
    ),
)

INVENTORY = SheetDefinition(
    name="Inventory",
    description="Current inventory levels",
    columns=(
        _col("product_id", required=True, description="Product ID"),
        _col("quantity", N, required=True, description="Stock quantity"),
        _col("location_id"),
        _col("available_quantity", N),
        _col("reserved_quantity", N),
        _col("last_received_at", D),
        _col("last_shipped_at", D),
    ),
)

MOVEMENTS = SheetDefinition(
    name="Movements",
    description="Stock movements history",
    columns=(
        _col("product_id", required=True, description="Product ID"),
        _col("type", required=True, description="Movement type (inbound/outbound/transfer/adjustment)"),
        _col("quantity", N, required=True, description="Movement quantity"),
        _col("date", D, required=True, description="Movement date"),
        _col("unit"),
        _col("source_location_id"),
        _col("source_zone"),
        _col("source_location_code"),
        _col("destination_location_id"),
        _col("destination_zone"),
        _col("destination_location_code"),
        _col("user"),
        _col("reason"),
        _col("lot"),
        _col("expiration_date", D),
        _col("reference_type"),
        _col("reference_id"),
    ),
)

SUPPLIERS = SheetDefinition(
    name="Suppliers",
    description="Supplier directory",
    columns=(
        _col("id", required=True, description="Supplier identifier"),
        _col("name", required=True, description="Supplier name"),
        _col("code"),
        _col("status"),
        _col("contact_person"),
        _col("email"),
        _col("phone"),
        _col("address"),
        _col("city"),
        _col("country"),
        _col("payment_terms"),
        _col("lead_time_days", N),
    ),
)

CUSTOMERS = SheetDefinition(
    name="Customers",
    description="Customer directory",
    columns=(
        _col("id", required=True, description="Customer identifier"),
        _col("name", required=True, description="Customer name"),
        _col("customer_code"),
        _col("status"),
        _col("email"),
        _col("phone"),
        _col("billing_address"),
        _col("shipping_address"),
        _col("city"),
        _col("country"),
        _col("customer_type"),
        _col("credit_limit", N),
    ),
)

GENERIC_EXCEL_SCHEMA = InputSchema(
    sheets=(PRODUCTS, ZONES, SECTORS, LOCATIONS, INVENTORY, MOVEMENTS, SUPPLIERS, CUSTOMERS)
)


def _complete_records(document: InputDocument, definition: SheetDefinition) -> list[dict[str, Any]]:
    return complete_records(definition.find(document), definition)


def scoped_id(warehouse_id: str, raw: str | None) -> str | None:
    """Prefix a layout id with its warehouse, once."""
    if raw is None:
        return None
    prefix = f"{warehouse_id}-"
    return raw if raw.startswith(prefix) else prefix + raw


def _movement_type(value: Any) -> str | None:
    text = as_text(value)
    if text is None:
        return None
    text = text.lower()
    return text if text in MOVEMENT_TYPES else None


class GenericExcelPlugin:
    metadata = PluginMetadata(
        id="generic-excel",
        name="Generic Excel Plugin",
        version="1.0.0",
        description="Import from a workbook with one sheet per entity (Products, Inventory, Movements, ...)",
        author="Wareflow",
        wms_system="Generic",
        supported_formats=("xlsx", "xls", "csv"),
    )
    input_schema = GENERIC_EXCEL_SCHEMA

    def validate(self, document: InputDocument) -> list[Diagnostic]:
        diagnostics = validate_against_schema(self.input_schema, document)
        sheet = MOVEMENTS.find(document)
        if sheet is None or "type" not in {normalize_header(h) for h in sheet.headers}:
            return diagnostics
        for row_no, record in enumerate(sheet_records(sheet), start=1):
            value = record.get("type")
            if value is not None and _movement_type(value) is None:
                diagnostics.append(
                    Diagnostic.warning(
                        f"Unknown movement type '{value}'",
                        sheet=sheet.name,
                        row=row_no,
                        column="type",
                        suggestion=f"Use one of: {', '.join(MOVEMENT_TYPES)}. The row will be skipped",
                    )
                )
        return diagnostics

    def transform(self, document: InputDocument, context: TransformContext) -> NormalizedCollections:
        wh = context.warehouse_id

        context.report(0, "Reading products")
        products = [self._product(r) for r in _complete_records(document, PRODUCTS)]
        catalog = {p.id: p for p in products}

        context.report(20, "Reading warehouse layout")
        zones = [self._zone(r, wh) for r in _complete_records(document, ZONES)]
        sectors = [self._sector(r, wh) for r in _complete_records(document, SECTORS)]
        locations = [self._location(r, wh) for r in _complete_records(document, LOCATIONS)]
        placeholder_zones, placeholder_sectors = self._missing_layout(wh, zones, sectors, locations)

        context.report(50, "Reading inventory")
        inventory = [self._inventory(r, wh) for r in _complete_records(document, INVENTORY)]

        context.report(70, "Reading movements")
        movements = []
        for record in _complete_records(document, MOVEMENTS):
            movement = self._movement(record, wh, catalog)
            if movement is not None:
                movements.append(movement)

        context.report(90, "Reading partners")
        suppliers = [self._supplier(r) for r in _complete_records(document, SUPPLIERS)]
        customers = [self._customer(r) for r in _complete_records(document, CUSTOMERS)]

        context.report(100, "Transform complete")
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
            suppliers=suppliers,
            customers=customers,
            placeholder_zones=placeholder_zones,
            placeholder_sectors=placeholder_sectors,
        )

    # --- row mappers -----------------------------------------------------

    @staticmethod
    def _product(r: dict[str, Any]) -> Product:
        return Product(
            id=as_text(r["id"]),
            sku=as_text(r["sku"]),
            name=as_text(r["name"]),
            category=as_text(r.get("category"), DEFAULT_CATEGORY),
            unit=as_text(r.get("unit"), DEFAULT_UNIT),
            status=as_text(r.get("status"), DEFAULT_PRODUCT_STATUS),
            description=as_text(r.get("description")),
            subcategory=as_text(r.get("subcategory")),
            brand=as_text(r.get("brand")),
            weight=as_number(r.get("weight")),
            volume=as_number(r.get("volume")),
            min_stock=as_int(r.get("min_stock")),
            max_stock=as_int(r.get("max_stock")),
            reorder_point=as_int(r.get("reorder_point")),
            reorder_quantity=as_int(r.get("reorder_quantity")),
            cost_price=as_number(r.get("cost_price")),
            selling_price=as_number(r.get("selling_price")),
            supplier=as_text(r.get("supplier")),
        )

    @staticmethod
    def _zone(r: dict[str, Any], wh: str) -> Zone:
        raw_id = as_text(r["id"])
        code = as_text(r.get("code"), raw_id)
        return Zone(
            id=scoped_id(wh, raw_id),
            warehouse_id=wh,
            code=code,
            name=as_text(r.get("name"), code),
            type=as_text(r.get("type"), "storage"),
            status=as_text(r.get("status"), "active"),
            surface=as_number(r.get("surface")),
            capacity=as_int(r.get("capacity")),
            temperature_min=as_number(r.get("temperature_min")),
            temperature_max=as_number(r.get("temperature_max")),
        )

    @staticmethod
    def _sector(r: dict[str, Any], wh: str) -> Sector:
        raw_id = as_text(r["id"])
        code = as_text(r.get("code"), raw_id)
        return Sector(
            id=scoped_id(wh, raw_id),
            warehouse_id=wh,
            zone_id=scoped_id(wh, as_text(r["zone_id"])),
            code=code,
            name=as_text(r.get("name"), code),
            type=as_text(r.get("type"), "picking"),
            status=as_text(r.get("status"), "active"),
            capacity=as_int(r.get("capacity")),
            aisle=as_text(r.get("aisle")),
            level=as_int(r.get("level")),
            position=as_text(r.get("position")),
        )

    @staticmethod
    def _location(r: dict[str, Any], wh: str) -> Location:
        raw_id = as_text(r["id"])
        return Location(
            id=scoped_id(wh, raw_id),
            warehouse_id=wh,
            zone_id=scoped_id(wh, as_text(r["zone_id"])),
            sector_id=scoped_id(wh, as_text(r["sector_id"])),
            code=as_text(r.get("code"), raw_id),
            type=as_text(r.get("type"), "shelf"),
            status=as_text(r.get("status"), "available"),
            capacity=as_int(r.get("capacity")),
            used_capacity=as_int(r.get("used_capacity")),
            aisle=as_text(r.get("aisle")),
            level=as_int(r.get("level")),
            position=as_text(r.get("position")),
            barcode=as_text(r.get("barcode")),
        )

    @staticmethod
    def _missing_layout(
        wh: str, zones: list[Zone], sectors: list[Sector], locations: list[Location]
    ) -> tuple[list[Zone], list[Sector]]:
        """Placeholder zones/sectors for ids that are referenced but never declared."""
        known_zones = {z.id for z in zones}
        known_sectors = {s.id for s in sectors}
        new_zones: list[Zone] = []
        new_sectors: list[Sector] = []
        prefix = f"{wh}-"

        def code_of(layout_id: str) -> str:
            return layout_id[len(prefix):] if layout_id.startswith(prefix) else layout_id

        def ensure_zone(zone_id: str) -> None:
            if zone_id not in known_zones:
                known_zones.add(zone_id)
                code = code_of(zone_id)
                new_zones.append(
                    Zone(id=zone_id, warehouse_id=wh, code=code, name=code, type="storage", status="active")
                )

        for sector in sectors:
            ensure_zone(sector.zone_id)
        for location in locations:
            ensure_zone(location.zone_id)
            if location.sector_id not in known_sectors:
                known_sectors.add(location.sector_id)
                code = code_of(location.sector_id)
                new_sectors.append(
                    Sector(
                        id=location.sector_id,
                        warehouse_id=wh,
                        zone_id=location.zone_id,
                        code=code,
                        name=code,
                        type="picking",
                        status="active",
                    )
                )
        return new_zones, new_sectors

    @staticmethod
    def _inventory(r: dict[str, Any], wh: str) -> Inventory:
        quantity = as_int(r["quantity"])
        available = as_int(r.get("available_quantity"))
        return Inventory(
            warehouse_id=wh,
            product_id=as_text(r["product_id"]),
            location_id=scoped_id(wh, as_text(r.get("location_id"))),
            quantity=quantity,
            available_quantity=quantity if available is None else available,
            reserved_quantity=as_int(r.get("reserved_quantity")) or 0,
            last_received_at=as_datetime(r.get("last_received_at")),
            last_shipped_at=as_datetime(r.get("last_shipped_at")),
        )

    @staticmethod
    def _movement(r: dict[str, Any], wh: str, catalog: dict[str, Product]) -> Movement | None:
        movement_type = _movement_type(r["type"])
        if movement_type is None:
            return None
        product_id = as_text(r["product_id"])
        product = catalog.get(product_id)
        return Movement(
            warehouse_id=wh,
            product_id=product_id,
            product_sku=product.sku if product else "",
            product_name=product.name if product else "",
            type=movement_type,
            quantity=as_int(r["quantity"]),
            unit=as_text(r.get("unit"), product.unit if product else DEFAULT_UNIT),
            movement_date=as_datetime(r["date"]),
            source_location_id=scoped_id(wh, as_text(r.get("source_location_id"))),
            source_zone=as_text(r.get("source_zone")),
            source_location_code=as_text(r.get("source_location_code")),
            destination_location_id=scoped_id(wh, as_text(r.get("destination_location_id"))),
            destination_zone=as_text(r.get("destination_zone")),
            destination_location_code=as_text(r.get("destination_location_code")),
            user_name=as_text(r.get("user")),
            reason=as_text(r.get("reason")),
            lot=as_text(r.get("lot")),
            expiration_date=as_datetime(r.get("expiration_date")),
            reference_type=as_text(r.get("reference_type")),
            reference_id=as_text(r.get("reference_id")),
        )

    @staticmethod
    def _supplier(r: dict[str, Any]) -> Supplier:
        supplier_id = as_text(r["id"])
        return Supplier(
            id=supplier_id,
            code=as_text(r.get("code"), supplier_id),
            name=as_text(r["name"]),
            status=as_text(r.get("status"), "active"),
            contact_person=as_text(r.get("contact_person")),
            email=as_text(r.get("email")),
            phone=as_text(r.get("phone")),
            address=as_text(r.get("address")),
            city=as_text(r.get("city")),
            country=as_text(r.get("country")),
            payment_terms=as_text(r.get("payment_terms")),
            lead_time_days=as_int(r.get("lead_time_days")),
        )

    @staticmethod
    def _customer(r: dict[str, Any]) -> Customer:
        customer_id = as_text(r["id"])
        return Customer(
            id=customer_id,
            customer_code=as_text(r.get("customer_code"), customer_id),
            name=as_text(r["name"]),
            status=as_text(r.get("status"), "active"),
            email=as_text(r.get("email")),
            phone=as_text(r.get("phone")),
            billing_address=as_text(r.get("billing_address")),
            shipping_address=as_text(r.get("shipping_address")),
            city=as_text(r.get("city")),
            country=as_text(r.get("country")),
            customer_type=as_text(r.get("customer_type")),
            credit_limit=as_number(r.get("credit_limit")),
        )
