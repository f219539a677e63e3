from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

"""Raw sheet / input document models produced by the sheet reader.

These carry no business knowledge: a RawSheet is a header row plus data rows
of display values, and an InputDocument groups the sheets of one file with
its file metadata.
"""

__all__ = [
    "RawSheet",
    "FileMetadata",
    "InputDocument",
]


@dataclass(frozen=True)
class RawSheet:
    """Header row + data rows of one sheet. Cell values are nullable."""
    name: str
    headers: tuple[str, ...]
    rows: tuple[tuple[Any, ...], ...]

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class FileMetadata:
    filename: str
    file_size: int
    ingested_at: datetime


@dataclass(frozen=True)
class InputDocument:
    """All non-empty sheets of one source file keyed by sheet name."""
    sheets: dict[str, RawSheet]
    metadata: FileMetadata
    source_path: str | None = field(default=None, compare=False)

    @property
    def total_rows(self) -> int:
        """Sum of data-row counts across all sheets."""
        return sum(sheet.row_count for sheet in self.sheets.values())

    def sheet(self, name: str) -> RawSheet | None:
        return self.sheets.get(name)

    @staticmethod
    def empty(filename: str = "mock-data") -> InputDocument:
        """Document with no sheets, used by generators that need no source file."""
        return InputDocument(
            sheets={},
            metadata=FileMetadata(filename=filename, file_size=0, ingested_at=datetime.now(UTC)),
        )
