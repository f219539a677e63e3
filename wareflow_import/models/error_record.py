from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for row-level load failures.

A row rejected by storage (constraint violation, missing required value, ...)
is recovered locally by the loader and captured as one ErrorRecord. Records
are written as JSON Lines with a fixed key set.

row is the 1-based position of the entity inside its collection. Use -1 when
the failure concerns the whole collection and no single row can be named.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Source file name (or 'mock-data' for generated data)
        collection: Normalized collection being loaded (e.g. 'products')
        row: 1-based index inside the collection, -1 if unknown
        entity_id: Identity key of the rejected entity, if it has one
        error_type: Error classification in UPPER_SNAKE_CASE format
        db_message: Storage error message
    """
    timestamp: str
    file: str
    collection: str
    row: int
    entity_id: str | None
    error_type: str
    db_message: str

    @staticmethod
    def create(
        file: str,
        collection: str,
        row: int,
        error_type: str,
        db_message: str,
        entity_id: str | None = None,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            collection=collection,
            row=row,
            entity_id=entity_id,
            error_type=error_type,
            db_message=db_message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
