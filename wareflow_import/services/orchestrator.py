from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, TypeVar

import psycopg2

from wareflow_import.config.loader import ImportSettings
from wareflow_import.db.connection import Database
from wareflow_import.db.history import HistoryEntry, list_history, record_import
from wareflow_import.excel.reader import (
    ParseError,
    UnsupportedFormatError,
    file_format,
    is_supported_file,
    read_input_document,
)
from wareflow_import.logging.error_log import ErrorLogBuffer
from wareflow_import.models.diagnostic import Diagnostic, Severity, has_errors, is_blocking
from wareflow_import.models.entities import NormalizedCollections
from wareflow_import.models.error_record import ErrorRecord
from wareflow_import.models.import_result import (
    BatchStatsAccumulator,
    ImportResult,
    ImportRun,
    ImportState,
    ImportStats,
    ImportStatus,
    LoadStats,
    ValidationReport,
)
from wareflow_import.models.input_document import InputDocument
from wareflow_import.plugins.base import ImportPlugin, TransformContext
from wareflow_import.services.loader import NormalizedLoader
from wareflow_import.services.progress import ProgressSink, SafeProgressSink, scaled

"""Import orchestrator.

Drives one import invocation through
    IDLE -> VALIDATING -> TRANSFORMING -> LOADING -> SUCCEEDED (| FAILED)

Progress weights: parse 0-10 %, validate 10-20 %, transform 20-80 %,
load 80-100 %.

execute_import / generate_mock_data never raise: every failure becomes a
failed ImportResult with zero imported counts and a single
"Import failed: ..." error. Runs on the same warehouse are serialized; parse
and transform are bounded by import.stage_timeout_seconds. Every attempt is
recorded in import_history.
"""

__all__ = [
    "ProcessingError",
    "TransformError",
    "StageTimeoutError",
    "ImportOrchestrator",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProcessingError(Exception):
    """Base exception for failures inside an import stage."""


class TransformError(ProcessingError):
    """The plugin's transform raised; wraps the original exception."""


class StageTimeoutError(ProcessingError):
    """A stage did not finish within the configured time bound."""


def _row_error_diagnostic(record: ErrorRecord) -> Diagnostic:
    label = f" ({record.entity_id})" if record.entity_id else ""
    return Diagnostic.warning(
        f"{record.collection} row {record.row}{label} was not imported: {record.db_message}",
        suggestion="Fix the source row and import again",
    )


class ImportOrchestrator:
    def __init__(self, db: Database, settings: ImportSettings | None = None) -> None:
        self._db = db
        self._settings = settings or ImportSettings()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # --- validation --------------------------------------------------------

    def validate_file(self, path: str | Path, plugin: ImportPlugin) -> ValidationReport:
        """Check that path can be imported by plugin. Never raises."""
        path = Path(path)
        diagnostics: list[Diagnostic] = []
        accepted = plugin.metadata.supported_formats

        if not path.is_file():
            diagnostics.append(Diagnostic.error(f"File not found: {path}", suggestion="Check the file path"))
        elif not is_supported_file(path):
            diagnostics.append(
                Diagnostic.error(
                    f"Unsupported file format '.{file_format(path)}'",
                    suggestion="Use an Excel (.xlsx, .xlsm, .xls) or CSV file",
                )
            )
        elif accepted and file_format(path) not in accepted:
            diagnostics.append(
                Diagnostic.error(
                    f"Plugin '{plugin.metadata.id}' does not accept .{file_format(path)} files",
                    suggestion=f"Supported formats: {', '.join(accepted)}",
                )
            )
        else:
            try:
                document = read_input_document(path)
            except (FileNotFoundError, UnsupportedFormatError, ParseError) as e:
                diagnostics.append(
                    Diagnostic.error(f"Failed to read file: {e}", suggestion="Check that the file is not corrupted")
                )
            else:
                try:
                    diagnostics.extend(plugin.validate(document))
                except Exception as e:
                    logger.warning("plugin %s validate raised", plugin.metadata.id, exc_info=True)
                    diagnostics.append(Diagnostic.error(f"Validation failed: {e}"))

        return ValidationReport(valid=not has_errors(diagnostics), diagnostics=diagnostics)

    # --- import runs ---------------------------------------------------------

    def execute_import(
        self,
        path: str | Path,
        warehouse_id: str,
        plugin: ImportPlugin,
        on_progress: ProgressSink | None = None,
    ) -> ImportResult:
        return self._run(warehouse_id, plugin, on_progress, Path(path))

    def generate_mock_data(
        self,
        warehouse_id: str,
        plugin: ImportPlugin,
        on_progress: ProgressSink | None = None,
    ) -> ImportResult:
        return self._run(warehouse_id, plugin, on_progress, None)

    def history(self, warehouse_id: str, limit: int | None = None) -> list[dict[str, Any]]:
        with self._db.lock:
            cursor = self._db.cursor()
            try:
                return list_history(cursor, self._db.dialect, warehouse_id, limit)
            finally:
                cursor.close()

    def _warehouse_lock(self, warehouse_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(warehouse_id, threading.Lock())

    def _run(
        self,
        warehouse_id: str,
        plugin: ImportPlugin,
        on_progress: ProgressSink | None,
        path: Path | None,
    ) -> ImportResult:
        started = time.monotonic()
        sink = SafeProgressSink(on_progress)
        load_stats = LoadStats()
        with self._warehouse_lock(warehouse_id):
            result = self._execute(ImportRun(), warehouse_id, plugin, sink, path, load_stats)
            result = result.with_duration(int((time.monotonic() - started) * 1000))
            self._record(result, load_stats)
        self._log_batch_timings(load_stats)
        logger.info(
            "import %s via %s: %s (%d rows processed, %d imported)",
            warehouse_id,
            plugin.metadata.id,
            result.status.value,
            result.stats.rows_processed,
            result.stats.total_imported,
        )
        return result

    def _execute(
        self,
        run: ImportRun,
        warehouse_id: str,
        plugin: ImportPlugin,
        sink: SafeProgressSink,
        path: Path | None,
        load_stats: LoadStats,
    ) -> ImportResult:
        meta = plugin.metadata
        rows_processed = 0
        document = InputDocument.empty()
        if path is not None:
            file_name: str = path.name
            file_size = path.stat().st_size if path.is_file() else None
        else:
            file_name, file_size = document.metadata.filename, document.metadata.file_size

        def result(status: ImportStatus, stats: ImportStats, errors: list, warnings: list) -> ImportResult:
            return ImportResult(
                status=status,
                warehouse_id=warehouse_id,
                plugin_id=meta.id,
                stats=stats,
                duration_ms=0,
                errors=errors,
                warnings=warnings,
                file_name=file_name,
                file_size=file_size,
                plugin_version=meta.version,
            )

        try:
            diagnostics: list[Diagnostic] = []
            if path is not None:
                run.advance(ImportState.VALIDATING)
                sink(0, f"Reading {path.name}")
                document = self._bounded("parse", read_input_document, path)
                rows_processed = document.total_rows
                sink(10, f"Read {len(document.sheets)} sheets ({rows_processed} rows)")
                diagnostics = plugin.validate(document)
                sink(20, "Validation complete")
                if is_blocking(diagnostics):
                    run.advance(ImportState.FAILED)
                    return result(
                        ImportStatus.FAILED,
                        ImportStats(rows_processed=rows_processed),
                        [d for d in diagnostics if d.severity is Severity.ERROR],
                        [d for d in diagnostics if d.severity is not Severity.ERROR],
                    )

            run.advance(ImportState.TRANSFORMING)
            context = TransformContext(
                warehouse_id=warehouse_id, plugin_id=meta.id, on_progress=scaled(sink, 20, 80)
            )
            collections = self._bounded("transform", self._transform, plugin, document, context)

            run.advance(ImportState.LOADING)
            sink(80, "Loading into database")
            loader = NormalizedLoader(self._db, source_name=document.metadata.filename)
            stats = loader.load(collections, on_progress=scaled(sink, 80, 100))
            load_stats.inserted.update(stats.inserted)
            load_stats.row_errors.extend(stats.row_errors)
            load_stats.batch_seconds.update(stats.batch_seconds)

            run.advance(ImportState.SUCCEEDED)
            sink(100, "Import complete")
            warnings = [d for d in diagnostics if not d.blocking]
            warnings.extend(_row_error_diagnostic(r) for r in stats.row_errors)
            return result(ImportStatus.SUCCESS, ImportStats.from_load(rows_processed, stats), [], warnings)

        except Exception as e:
            logger.error("import %s via %s failed: %s", warehouse_id, meta.id, e, exc_info=True)
            if not run.state.terminal:
                run.advance(ImportState.FAILED)
            return result(
                ImportStatus.FAILED,
                ImportStats(rows_processed=rows_processed),
                [Diagnostic.error(f"Import failed: {e}")],
                [],
            )

    @staticmethod
    def _log_batch_timings(load_stats: LoadStats) -> None:
        accumulator = BatchStatsAccumulator()
        for seconds in load_stats.batch_seconds.values():
            accumulator.add_batch_time(seconds)
        total, avg, p95 = accumulator.get_stats()
        if total:
            logger.debug("write batches: %d avg=%.3fs p95=%.3fs", total, avg, p95)

    @staticmethod
    def _transform(
        plugin: ImportPlugin, document: InputDocument, context: TransformContext
    ) -> NormalizedCollections:
        try:
            return plugin.transform(document, context)
        except Exception as e:
            raise TransformError(f"plugin '{plugin.metadata.id}' transform failed: {e}") from e

    def _bounded(self, stage: str, fn: Callable[..., T], *args: Any) -> T:
        """Run fn on its own worker thread, giving up after stage_timeout_seconds.

        A timed-out worker is abandoned, not joined. Each call gets a fresh
        single-thread executor, so an abandoned worker never delays later stages.
        """
        timeout = self._settings.stage_timeout_seconds
        if timeout is None:
            return fn(*args)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"wareflow-{stage}")
        future = executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            raise StageTimeoutError(f"{stage} stage timed out after {timeout:g}s") from e
        finally:
            executor.shutdown(wait=False)

    def _record(self, result: ImportResult, load_stats: LoadStats) -> None:
        if load_stats.row_errors:
            buffer = ErrorLogBuffer(Path(self._settings.error_log_dir))
            buffer.extend(load_stats.row_errors)
            try:
                log_path = buffer.flush()
            except OSError:
                logger.warning("could not write row error log", exc_info=True)
            else:
                logger.warning("%d rows were rejected, details in %s", len(load_stats.row_errors), log_path)

        with self._db.lock:
            cursor = self._db.cursor()
            try:
                record_import(cursor, self._db.dialect, HistoryEntry.from_result(result))
            except (sqlite3.Error, psycopg2.Error):
                logger.warning("could not record import history for %s", result.warehouse_id, exc_info=True)
            finally:
                cursor.close()
