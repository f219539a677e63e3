from __future__ import annotations

import statistics
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

from .diagnostic import Diagnostic
from .error_record import ErrorRecord

"""Result models for validation, load and end-to-end import runs.

ImportState models the per-invocation state machine:
    IDLE -> VALIDATING -> TRANSFORMING -> LOADING -> SUCCEEDED
with FAILED reachable from any non-terminal state.
"""

__all__ = [
    "ImportState",
    "ImportStatus",
    "InvalidTransitionError",
    "ImportRun",
    "ImportStats",
    "LoadStats",
    "ImportResult",
    "ValidationReport",
    "BatchStatsAccumulator",
]


class InvalidTransitionError(Exception):
    """Raised when an import run is moved along an edge the state machine does not allow."""


class ImportState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    TRANSFORMING = "transforming"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ImportState.SUCCEEDED, ImportState.FAILED)


_TRANSITIONS: dict[ImportState, tuple[ImportState, ...]] = {
    ImportState.IDLE: (ImportState.VALIDATING, ImportState.TRANSFORMING),
    ImportState.VALIDATING: (ImportState.TRANSFORMING,),
    ImportState.TRANSFORMING: (ImportState.LOADING,),
    ImportState.LOADING: (ImportState.SUCCEEDED,),
}


class ImportRun:
    """Mutable tracker for one import invocation's state.

    IDLE -> TRANSFORMING is allowed for generators that skip parsing.
    """

    def __init__(self) -> None:
        self.state = ImportState.IDLE
        self.history: list[ImportState] = [ImportState.IDLE]

    def advance(self, target: ImportState) -> None:
        if self.state.terminal:
            raise InvalidTransitionError(f"run already finished in state {self.state.value}")
        allowed = _TRANSITIONS.get(self.state, ())
        if target is not ImportState.FAILED and target not in allowed:
            raise InvalidTransitionError(f"{self.state.value} -> {target.value} is not allowed")
        self.state = target
        self.history.append(target)


class ImportStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class ImportStats:
    """Per-import counters. Each *_imported field counts rows actually written."""
    rows_processed: int = 0
    products_imported: int = 0
    inventory_imported: int = 0
    movements_imported: int = 0
    warehouses_imported: int = 0
    zones_imported: int = 0
    sectors_imported: int = 0
    locations_imported: int = 0
    suppliers_imported: int = 0
    customers_imported: int = 0
    users_imported: int = 0
    orders_imported: int = 0
    order_lines_imported: int = 0
    pickings_imported: int = 0
    picking_lines_imported: int = 0
    receptions_imported: int = 0
    reception_lines_imported: int = 0
    restockings_imported: int = 0
    restocking_lines_imported: int = 0
    returns_imported: int = 0
    return_lines_imported: int = 0

    @staticmethod
    def from_load(rows_processed: int, load_stats: LoadStats) -> ImportStats:
        known = {f.name for f in fields(ImportStats)}
        counts = {
            f"{name}_imported": count
            for name, count in load_stats.inserted.items()
            if f"{name}_imported" in known
        }
        return ImportStats(rows_processed=rows_processed, **counts)

    @property
    def total_imported(self) -> int:
        return sum(
            getattr(self, f.name) for f in fields(self) if f.name.endswith("_imported")
        )

    def to_dict(self) -> dict[str, int]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}


@dataclass
class LoadStats:
    """What the loader actually wrote, per collection, plus the rows it rejected."""
    inserted: dict[str, int] = field(default_factory=dict)
    row_errors: list[ErrorRecord] = field(default_factory=list)
    batch_seconds: dict[str, float] = field(default_factory=dict)

    def count(self, collection: str) -> int:
        return self.inserted.get(collection, 0)


@dataclass(frozen=True)
class ImportResult:
    """Outcome of execute_import / generate_mock_data. Always returned, never raised."""
    status: ImportStatus
    warehouse_id: str
    plugin_id: str
    stats: ImportStats
    duration_ms: int
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)
    file_name: str | None = None
    file_size: int | None = None
    plugin_version: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is ImportStatus.SUCCESS

    def with_duration(self, duration_ms: int) -> ImportResult:
        return replace(self, duration_ms=duration_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "warehouseId": self.warehouse_id,
            "pluginId": self.plugin_id,
            "stats": self.stats.to_dict(),
            "durationMs": self.duration_ms,
            "errors": [d.to_dict() for d in self.errors],
            "warnings": [d.to_dict() for d in self.warnings],
        }


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": [d.to_dict() for d in self.diagnostics]}


class BatchStatsAccumulator:
    """Collects per-collection write timings and summarizes them for logging."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
