from __future__ import annotations

from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from wareflow_import.models.input_document import FileMetadata, InputDocument, RawSheet

"""Spreadsheet reader.

Opens a workbook (xlsx / xlsm / xls) or a delimited text file (csv) and yields
one RawSheet per sheet: first row = header, following non-blank rows = data.
No business knowledge lives here; plugins interpret the sheets.

Cell values are display values: stripped text, ints for integral numbers,
ISO dates for timestamps, and None for blank cells (never "").
"""

__all__ = [
    "SUPPORTED_FORMATS",
    "UnsupportedFormatError",
    "ParseError",
    "file_format",
    "is_supported_file",
    "read_raw_frames",
    "frame_to_sheet",
    "read_input_document",
    "list_sheet_names",
]

SUPPORTED_FORMATS = ("xlsx", "xlsm", "xls", "csv")


class UnsupportedFormatError(Exception):
    """Raised when the file extension is not a supported spreadsheet format."""


class ParseError(Exception):
    """Raised when the file exists but cannot be read as a spreadsheet."""


def file_format(path: str | Path) -> str:
    return Path(path).suffix.lower().lstrip(".")


def is_supported_file(path: str | Path) -> bool:
    return file_format(path) in SUPPORTED_FORMATS


def read_raw_frames(path: Path) -> dict[str, pd.DataFrame]:
    """Read every sheet without a header row, keyed by sheet name.

    CSV files produce a single sheet named after the file stem and are read
    as text so that codes like '007' keep their leading zeros.
    """
    try:
        if file_format(path) == "csv":
            df = pd.read_csv(
                path, header=None, dtype=str, keep_default_na=False, skip_blank_lines=True
            )
            return {path.stem: df}
        frames: dict[str, pd.DataFrame] = {}
        with pd.ExcelFile(path) as xls:
            for name in xls.sheet_names:
                # keep_default_na=False: strings such as "NA" stay strings
                frames[str(name)] = xls.parse(name, header=None, keep_default_na=False)
        return frames
    except pd.errors.EmptyDataError:
        return {}
    except Exception as e:
        raise ParseError(f"cannot read '{path.name}': {e}") from e


def _display_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return None
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        if np.isnan(value):
            return None
        if value.is_integer():
            return int(value)
    return value


def _header_name(value: Any) -> str:
    shown = _display_value(value)
    return "" if shown is None else str(shown)


def frame_to_sheet(df: pd.DataFrame, sheet_name: str) -> RawSheet | None:
    """Convert a header-less DataFrame into a RawSheet.

    Returns None when the sheet has no header or no data rows.
    """
    if df.shape[0] == 0:
        return None
    headers = [_header_name(v) for v in df.iloc[0].tolist()]
    # trailing blank header cells are formatting noise, not columns
    while headers and headers[-1] == "":
        headers.pop()
    width = len(headers)
    if width == 0:
        return None

    rows: list[tuple[Any, ...]] = []
    for raw in df.iloc[1:].itertuples(index=False, name=None):
        values = [_display_value(v) for v in raw[:width]]
        values.extend([None] * (width - len(values)))
        if all(v is None for v in values):
            continue
        rows.append(tuple(values))

    if not rows:
        return None
    return RawSheet(name=sheet_name, headers=tuple(headers), rows=tuple(rows))


def read_input_document(path: str | Path) -> InputDocument:
    """Read a spreadsheet file into an InputDocument.

    Raises:
        FileNotFoundError: path does not resolve to a file
        UnsupportedFormatError: extension not in SUPPORTED_FORMATS
        ParseError: file is corrupt or unreadable
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"file not found: {path}")
    if not is_supported_file(path):
        raise UnsupportedFormatError(
            f"unsupported file format '.{file_format(path)}' (expected one of {', '.join(SUPPORTED_FORMATS)})"
        )

    sheets: dict[str, RawSheet] = {}
    for name, df in read_raw_frames(path).items():
        sheet = frame_to_sheet(df, name)
        if sheet is not None:
            sheets[name] = sheet

    metadata = FileMetadata(
        filename=path.name,
        file_size=path.stat().st_size,
        ingested_at=datetime.now(UTC),
    )
    return InputDocument(sheets=sheets, metadata=metadata, source_path=str(path))


def list_sheet_names(path: str | Path) -> list[str]:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"file not found: {path}")
    if not is_supported_file(path):
        raise UnsupportedFormatError(f"unsupported file format '.{file_format(path)}'")
    return list(read_raw_frames(path).keys())
