from __future__ import annotations

import math
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import pandas as pd

from wareflow_import.models.diagnostic import Diagnostic
from wareflow_import.models.entities import NormalizedCollections
from wareflow_import.models.input_document import InputDocument, RawSheet

"""Plugin contract for source-system adapters.

A plugin is a fixed bundle of static metadata, a declared input schema and two
pure functions:

    validate(document) -> list[Diagnostic]
    transform(document, context) -> NormalizedCollections

Plugins never perform I/O beyond the InputDocument they are given, so both
functions can be unit tested with literal fixtures. Any object providing these
attributes is a plugin; no base class is required.
"""

__all__ = [
    "ProgressCallback",
    "ColumnType",
    "ColumnDefinition",
    "SheetDefinition",
    "InputSchema",
    "PluginMetadata",
    "TransformContext",
    "ImportPlugin",
    "normalize_header",
    "sheet_records",
    "complete_records",
    "as_text",
    "as_number",
    "as_int",
    "as_datetime",
    "validate_against_schema",
]

ProgressCallback = Callable[[float, str], None]

# Row-level findings reported per sheet before the rest are summarized
MAX_ROW_DIAGNOSTICS = 50


class ColumnType(Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


def normalize_header(name: str) -> str:
    """'Min Stock' / 'min-stock' / ' MIN_STOCK ' -> 'min_stock'."""
    return re.sub(r"[\s\-]+", "_", str(name).strip().lower())


@dataclass(frozen=True)
class ColumnDefinition:
    name: str
    type: ColumnType = ColumnType.STRING
    required: bool = False
    description: str = ""

    @property
    def key(self) -> str:
        return normalize_header(self.name)


@dataclass(frozen=True)
class SheetDefinition:
    name: str
    columns: tuple[ColumnDefinition, ...]
    required: bool = False
    description: str = ""

    def find(self, document: InputDocument) -> RawSheet | None:
        """Locate this sheet in a document, ignoring case and surrounding spaces."""
        wanted = normalize_header(self.name)
        for name, sheet in document.sheets.items():
            if normalize_header(name) == wanted:
                return sheet
        return None

    @property
    def required_columns(self) -> tuple[ColumnDefinition, ...]:
        return tuple(c for c in self.columns if c.required)


@dataclass(frozen=True)
class InputSchema:
    sheets: tuple[SheetDefinition, ...] = ()


@dataclass(frozen=True)
class PluginMetadata:
    id: str
    name: str
    version: str
    description: str
    author: str
    wms_system: str
    supported_formats: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "author": self.author,
            "wmsSystem": self.wms_system,
            "supportedFormats": list(self.supported_formats),
        }


@dataclass(frozen=True)
class TransformContext:
    warehouse_id: str
    plugin_id: str
    on_progress: ProgressCallback | None = field(default=None, compare=False)

    def report(self, percent: float, message: str) -> None:
        """Report transform sub-progress (0-100) if a sink is attached."""
        if self.on_progress is not None:
            self.on_progress(percent, message)


@runtime_checkable
class ImportPlugin(Protocol):
    metadata: PluginMetadata
    input_schema: InputSchema

    def validate(self, document: InputDocument) -> list[Diagnostic]: ...

    def transform(self, document: InputDocument, context: TransformContext) -> NormalizedCollections: ...


# --- helpers shared by plugins -------------------------------------------

def sheet_records(sheet: RawSheet) -> list[dict[str, Any]]:
    """Rows of a sheet as dicts keyed by normalized header name."""
    keys = [normalize_header(h) for h in sheet.headers]
    return [dict(zip(keys, row, strict=False)) for row in sheet.rows]


def as_text(value: Any, default: str | None = None) -> str | None:
    if value is None:
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or default


def as_number(value: Any) -> float | None:
    """Finite float, or None. NaN and infinities count as unparsable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            number = float(str(value).strip().replace(" ", ""))
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def as_int(value: Any) -> int | None:
    number = as_number(value)
    return None if number is None else int(number)


def as_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _check_value(column: ColumnDefinition, value: Any) -> str | None:
    if column.type is ColumnType.NUMBER and as_number(value) is None:
        return f"Value '{value}' in column '{column.name}' is not a number"
    if column.type is ColumnType.DATE and as_datetime(value) is None:
        return f"Value '{value}' in column '{column.name}' is not a date"
    return None


def complete_records(sheet: RawSheet | None, definition: SheetDefinition) -> list[dict[str, Any]]:
    """Records whose required cells are filled and parse as their declared type.

    These are exactly the rows validation does not flag as skipped.
    """
    if sheet is None:
        return []
    required = definition.required_columns
    return [
        record
        for record in sheet_records(sheet)
        if all(
            record.get(c.key) is not None and _check_value(c, record[c.key]) is None
            for c in required
        )
    ]


def _validate_rows(sheet: RawSheet, definition: SheetDefinition) -> list[Diagnostic]:
    index = {normalize_header(h): i for i, h in enumerate(sheet.headers)}
    findings: list[Diagnostic] = []
    suppressed = 0
    for row_no, row in enumerate(sheet.rows, start=1):
        for column in definition.columns:
            pos = index.get(column.key)
            value = row[pos] if pos is not None else None
            if value is None:
                message = (
                    f"Empty value in required column '{column.name}'" if column.required else None
                )
                suggestion = "The row will be skipped"
            else:
                message = _check_value(column, value)
                suggestion = "The row will be skipped" if column.required else "The value will be ignored"
            if message is None:
                continue
            if len(findings) >= MAX_ROW_DIAGNOSTICS:
                suppressed += 1
                continue
            findings.append(
                Diagnostic.warning(
                    message, sheet=sheet.name, row=row_no, column=column.name, suggestion=suggestion
                )
            )
    if suppressed:
        findings.append(Diagnostic.info(f"{suppressed} more row findings not shown", sheet=sheet.name))
    return findings


def validate_against_schema(schema: InputSchema, document: InputDocument) -> list[Diagnostic]:
    """Check a document against a declared input schema.

    - no sheets at all, missing required sheet, missing required column:
      blocking errors
    - blank required cell, unparsable number/date: warnings (row locator)
    - sheets the schema does not know: info
    """
    diagnostics: list[Diagnostic] = []
    if not document.sheets:
        diagnostics.append(
            Diagnostic.error(
                "No sheets with data found in file",
                suggestion="Ensure the file contains at least one data sheet",
            )
        )
        return diagnostics

    recognised: set[str] = set()
    for definition in schema.sheets:
        sheet = definition.find(document)
        if sheet is None:
            if definition.required:
                diagnostics.append(
                    Diagnostic.error(
                        f"Required sheet '{definition.name}' is missing",
                        sheet=definition.name,
                        suggestion=f"Add a '{definition.name}' sheet: {definition.description}",
                    )
                )
            continue
        recognised.add(sheet.name)

        present = {normalize_header(h) for h in sheet.headers}
        missing = [c for c in definition.required_columns if c.key not in present]
        for column in missing:
            diagnostics.append(
                Diagnostic.error(
                    f"Sheet '{sheet.name}' is missing required column '{column.name}'",
                    sheet=sheet.name,
                    column=column.name,
                    suggestion=f"Add a '{column.name}' column ({column.description})",
                )
            )
        if missing:
            continue
        diagnostics.extend(_validate_rows(sheet, definition))

    for name in document.sheets:
        if name not in recognised:
            diagnostics.append(
                Diagnostic.info(f"Sheet '{name}' is not recognised and will be ignored", sheet=name)
            )
    return diagnostics
