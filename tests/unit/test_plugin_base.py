from __future__ import annotations

from datetime import datetime

import pytest

from wareflow_import.models.diagnostic import Severity, is_blocking
from wareflow_import.plugins.base import (
    ColumnDefinition,
    ColumnType,
    InputSchema,
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

SCHEMA = InputSchema(
    sheets=(
        SheetDefinition(
            name="Products",
            required=True,
            description="catalog",
            columns=(
                ColumnDefinition("id", required=True),
                ColumnDefinition("price", ColumnType.NUMBER),
            ),
        ),
        SheetDefinition(
            name="Movements",
            columns=(
                ColumnDefinition("product_id", required=True),
                ColumnDefinition("date", ColumnType.DATE, required=True),
            ),
        ),
    )
)


@pytest.mark.parametrize(
    "raw, expected",
    [("Min Stock", "min_stock"), (" SKU ", "sku"), ("reorder-point", "reorder_point"), ("id", "id")],
)
def test_normalize_header(raw, expected):
    assert normalize_header(raw) == expected


def test_valid_document_has_no_findings(make_document):
    doc = make_document(
        {
            "Products": (("ID", "Price"), [("P1", 9.5), ("P2", "12")]),
            "Movements": (("Product ID", "Date"), [("P1", "2024-01-02")]),
        }
    )
    assert validate_against_schema(SCHEMA, doc) == []


def test_empty_document_is_blocking(make_document):
    diags = validate_against_schema(SCHEMA, make_document({}))
    assert len(diags) == 1
    assert is_blocking(diags)


def test_missing_required_sheet_is_blocking(make_document):
    doc = make_document({"Movements": (("product_id", "date"), [("P1", "2024-01-02")])})
    diags = validate_against_schema(SCHEMA, doc)
    assert is_blocking(diags)
    assert diags[0].sheet == "Products"
    assert "missing" in diags[0].message


def test_missing_required_column_is_blocking(make_document):
    doc = make_document({"Products": (("price",), [(1,)])})
    diags = validate_against_schema(SCHEMA, doc)
    blocking = [d for d in diags if d.blocking]
    assert len(blocking) == 1
    assert blocking[0].column == "id"


def test_row_level_problems_are_warnings_with_locators(make_document):
    doc = make_document(
        {
            "Products": (("id", "price"), [("P1", "cheap"), (None, 3)]),
            "Movements": (("product_id", "date"), [("P1", "not a date")]),
        }
    )
    diags = validate_against_schema(SCHEMA, doc)

    assert not is_blocking(diags)
    assert all(d.severity is Severity.WARNING for d in diags)
    located = {(d.sheet, d.row, d.column) for d in diags}
    assert located == {("Products", 1, "price"), ("Products", 2, "id"), ("Movements", 1, "date")}


def test_unknown_sheet_is_info(make_document):
    doc = make_document({"Products": (("id",), [("P1",)]), "Notes": (("text",), [("hi",)])})
    diags = validate_against_schema(SCHEMA, doc)
    assert [(d.severity, d.sheet) for d in diags] == [(Severity.INFO, "Notes")]


def test_row_findings_are_capped(make_document):
    rows = [(None, None)] * 80
    doc = make_document({"Products": (("id", "price"), rows)})
    diags = validate_against_schema(SCHEMA, doc)
    warnings = [d for d in diags if d.severity is Severity.WARNING]
    assert len(warnings) == 50
    assert diags[-1].severity is Severity.INFO
    assert "30 more" in diags[-1].message


def test_sheet_records_keys_are_normalized(make_document):
    doc = make_document({"Products": (("Product ID", "Min Stock"), [("P1", 4)])})
    assert sheet_records(doc.sheets["Products"]) == [{"product_id": "P1", "min_stock": 4}]


def test_coercion_helpers():
    assert as_text(None) is None
    assert as_text("  ", "dflt") == "dflt"
    assert as_text(7.0) == "7"
    assert as_number("3.25") == 3.25
    assert as_number("abc") is None
    assert as_number(True) is None
    assert as_int("12") == 12
    assert as_int(None) is None
    assert as_datetime("2024-05-06") == datetime(2024, 5, 6)
    assert as_datetime("garbage") is None


def test_transform_context_report_is_optional():
    calls = []
    TransformContext("WH1", "p").report(50, "ignored")
    TransformContext("WH1", "p", on_progress=lambda p, m: calls.append((p, m))).report(50, "half")
    assert calls == [(50, "half")]


@pytest.mark.parametrize("value", ["NaN", "nan", "inf", "-Infinity", float("nan"), float("inf"), 10**400])
def test_non_finite_numbers_are_unparsable(value):
    assert as_number(value) is None
    assert as_int(value) is None


def test_non_finite_number_is_a_row_warning(make_document):
    doc = make_document({"Products": (("id", "price"), [("P1", "NaN"), ("P2", "1e999")])})
    diags = validate_against_schema(SCHEMA, doc)
    assert [(d.row, d.column, d.suggestion) for d in diags] == [
        (1, "price", "The value will be ignored"),
        (2, "price", "The value will be ignored"),
    ]


def test_complete_records_drop_rows_with_unusable_required_values(make_document):
    doc = make_document(
        {
            "Movements": (
                ("product_id", "date"),
                [("P1", "2024-01-02"), ("P2", "not a date"), (None, "2024-01-03")],
            )
        }
    )
    movements = SCHEMA.sheets[1]
    assert complete_records(doc.sheets["Movements"], movements) == [{"product_id": "P1", "date": "2024-01-02"}]
    assert complete_records(None, movements) == []
