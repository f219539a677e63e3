from __future__ import annotations

import json
import threading
import time
from pathlib import Path

import pytest

from wareflow_import.config.loader import ImportSettings
from wareflow_import.models.diagnostic import Diagnostic, Severity
from wareflow_import.models.import_result import ImportRun, ImportState, ImportStatus, InvalidTransitionError
from wareflow_import.plugins.base import InputSchema, PluginMetadata
from wareflow_import.plugins.generic_excel import GenericExcelPlugin
from wareflow_import.plugins.mock_data import MockDataPlugin
from wareflow_import.services.orchestrator import ImportOrchestrator


class StubPlugin:
    """Plugin whose validate/transform behaviour is injected per test."""

    input_schema = InputSchema()

    def __init__(self, transform=None, diagnostics=(), formats=("xlsx",)):
        self.metadata = PluginMetadata(
            id="stub", name="Stub", version="9.9", description="", author="tests", wms_system="Stub",
            supported_formats=formats,
        )
        self._transform = transform
        self._diagnostics = list(diagnostics)

    def validate(self, document):
        return list(self._diagnostics)

    def transform(self, document, context):
        return self._transform(document, context)


@pytest.fixture()
def orchestrator(sqlite_db, import_settings):
    return ImportOrchestrator(sqlite_db, import_settings)


# --- state machine -----------------------------------------------------------

def test_run_happy_path_states():
    run = ImportRun()
    for state in (ImportState.VALIDATING, ImportState.TRANSFORMING, ImportState.LOADING, ImportState.SUCCEEDED):
        run.advance(state)
    assert run.history[0] is ImportState.IDLE
    assert run.state.terminal


def test_generators_may_skip_validation():
    run = ImportRun()
    run.advance(ImportState.TRANSFORMING)
    run.advance(ImportState.FAILED)
    assert run.state is ImportState.FAILED


def test_invalid_transitions_are_rejected():
    run = ImportRun()
    with pytest.raises(InvalidTransitionError):
        run.advance(ImportState.LOADING)
    run.advance(ImportState.FAILED)
    with pytest.raises(InvalidTransitionError):
        run.advance(ImportState.VALIDATING)


# --- validate_file -------------------------------------------------------------

def test_validate_missing_file(orchestrator, tmp_path):
    report = orchestrator.validate_file(tmp_path / "absent.xlsx", GenericExcelPlugin())
    assert not report.valid
    assert "File not found" in report.diagnostics[0].message


def test_validate_unsupported_extension(orchestrator, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("x", encoding="utf-8")
    report = orchestrator.validate_file(path, GenericExcelPlugin())
    assert not report.valid
    assert "Unsupported file format" in report.diagnostics[0].message


def test_validate_format_not_accepted_by_plugin(orchestrator, tmp_path):
    path = tmp_path / "macro.xlsm"
    path.write_bytes(b"not read")
    report = orchestrator.validate_file(path, GenericExcelPlugin())
    assert not report.valid
    assert "does not accept .xlsm" in report.diagnostics[0].message


def test_validate_corrupt_file(orchestrator, tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"garbage")
    report = orchestrator.validate_file(path, GenericExcelPlugin())
    assert not report.valid
    assert report.diagnostics[0].message.startswith("Failed to read file")


def test_validate_good_file(orchestrator, wh1_workbook):
    report = orchestrator.validate_file(wh1_workbook, GenericExcelPlugin())
    assert report.valid
    assert report.to_dict() == {"valid": True, "errors": []}


def test_validate_plugin_exception_becomes_error(orchestrator, wh1_workbook):
    plugin = StubPlugin()
    plugin.validate = lambda document: 1 / 0
    report = orchestrator.validate_file(wh1_workbook, plugin)
    assert not report.valid
    assert report.diagnostics[0].message.startswith("Validation failed")


# --- execute_import ------------------------------------------------------------

def test_import_reports_monotonic_progress_to_100(orchestrator, wh1_workbook):
    seen = []
    result = orchestrator.execute_import(wh1_workbook, "WH1", GenericExcelPlugin(), lambda p, m: seen.append(p))

    assert result.status is ImportStatus.SUCCESS
    assert seen[0] == 0
    assert seen == sorted(seen)
    assert seen[-1] == 100
    assert result.file_name == "wh1.xlsx"
    assert result.duration_ms >= 0


def test_raising_progress_callback_does_not_fail_import(orchestrator, wh1_workbook):
    def explode(percent, message):
        raise RuntimeError("ui gone")

    result = orchestrator.execute_import(wh1_workbook, "WH1", GenericExcelPlugin(), explode)
    assert result.status is ImportStatus.SUCCESS
    assert result.stats.products_imported == 10


def test_blocking_validation_fails_without_loading(orchestrator, write_workbook, table_count):
    path = write_workbook({"Inventory": [{"product_id": "P1", "quantity": 2}]})
    result = orchestrator.execute_import(path, "WH1", GenericExcelPlugin())

    assert result.status is ImportStatus.FAILED
    assert result.stats.rows_processed == 1
    assert result.stats.total_imported == 0
    assert all(d.severity is Severity.ERROR for d in result.errors)
    assert any("Products" in d.message for d in result.errors)
    assert table_count("products") == 0


def test_non_blocking_diagnostics_become_warnings(orchestrator, wh1_workbook):
    plugin = StubPlugin(
        transform=lambda doc, ctx: GenericExcelPlugin().transform(doc, ctx),
        diagnostics=[Diagnostic.warning("odd value", sheet="Products", row=1)],
    )
    result = orchestrator.execute_import(wh1_workbook, "WH1", plugin)
    assert result.status is ImportStatus.SUCCESS
    assert [d.message for d in result.warnings] == ["odd value"]


def test_transform_exception_yields_single_error(orchestrator, wh1_workbook):
    def boom(doc, ctx):
        raise ValueError("bad layout")

    result = orchestrator.execute_import(wh1_workbook, "WH1", StubPlugin(transform=boom))

    assert result.status is ImportStatus.FAILED
    assert len(result.errors) == 1
    assert result.errors[0].message.startswith("Import failed:")
    assert "bad layout" in result.errors[0].message
    assert result.stats.rows_processed == 25
    assert result.stats.total_imported == 0


def test_missing_file_fails(orchestrator, tmp_path):
    result = orchestrator.execute_import(tmp_path / "gone.xlsx", "WH1", GenericExcelPlugin())
    assert result.status is ImportStatus.FAILED
    assert result.file_name == "gone.xlsx"
    assert result.file_size is None


def test_stage_timeout(sqlite_db, tmp_path, wh1_workbook):
    def slow(doc, ctx):
        time.sleep(2)

    orch = ImportOrchestrator(sqlite_db, ImportSettings(stage_timeout_seconds=0.2, error_log_dir=str(tmp_path)))
    started = time.monotonic()
    result = orch.execute_import(wh1_workbook, "WH1", StubPlugin(transform=slow))
    assert time.monotonic() - started < 1.5

    assert result.status is ImportStatus.FAILED
    assert "timed out" in result.errors[0].message


def test_every_attempt_is_recorded(orchestrator, wh1_workbook, tmp_path):
    orchestrator.execute_import(wh1_workbook, "WH1", GenericExcelPlugin())
    orchestrator.execute_import(tmp_path / "gone.xlsx", "WH1", GenericExcelPlugin())

    rows = orchestrator.history("WH1")
    assert [r["status"] for r in rows] == ["failed", "success"]
    assert rows[1]["rows_processed"] == 25
    assert rows[1]["file_name"] == "wh1.xlsx"
    assert rows[1]["plugin_version"] == "1.0.0"
    assert rows[0]["error_message"].startswith("Import failed:")
    assert len(orchestrator.history("WH1", limit=1)) == 1


def test_row_errors_become_warnings_and_error_log(orchestrator, write_workbook, import_settings):
    path = write_workbook(
        {
            "Products": [{"id": "P1", "sku": "DUP", "name": "One"}, {"id": "P2", "sku": "DUP", "name": "Two"}],
        }
    )
    result = orchestrator.execute_import(path, "WH1", GenericExcelPlugin())

    assert result.status is ImportStatus.SUCCESS
    assert result.stats.products_imported == 1
    assert len(result.warnings) == 1
    assert "products row 2" in result.warnings[0].message

    (log_file,) = Path(import_settings.error_log_dir).glob("errors-*.log")
    record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
    assert record["error_type"] == "ROW_INSERT_FAILED"
    assert record["file"] == "import.xlsx"
    assert record["entity_id"] == "P2"


# --- generate_mock_data ----------------------------------------------------------

def test_mock_generation(orchestrator, table_count):
    seen = []
    result = orchestrator.generate_mock_data("WH9", MockDataPlugin(seed=1), lambda p, m: seen.append(p))

    assert result.status is ImportStatus.SUCCESS
    assert result.stats.rows_processed == 0
    assert result.stats.locations_imported == 50
    assert result.stats.movements_imported == 200
    assert result.file_name == "mock-data"
    assert seen[-1] == 100
    assert table_count("zones", "WHERE warehouse_id = ?", ("WH9",)) == 5


# --- concurrency -------------------------------------------------------------------

def _in_thread(target) -> threading.Thread:
    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread


def test_same_warehouse_imports_run_one_at_a_time(orchestrator, wh1_workbook):
    first_entered = threading.Event()
    release = threading.Event()
    events = []
    results = {}

    def blocking(doc, ctx):
        first_entered.set()
        release.wait(5)
        events.append("first transform done")
        return GenericExcelPlugin().transform(doc, ctx)

    def recording(doc, ctx):
        # the first run is already in history when the second one transforms
        events.append(("second transform started", len(orchestrator.history("WH1"))))
        return GenericExcelPlugin().transform(doc, ctx)

    def run(name, plugin):
        results[name] = orchestrator.execute_import(wh1_workbook, "WH1", plugin)

    try:
        first = _in_thread(lambda: run("first", StubPlugin(transform=blocking)))
        assert first_entered.wait(5)
        second = _in_thread(lambda: run("second", StubPlugin(transform=recording)))
        time.sleep(0.3)
        assert events == []
    finally:
        release.set()
    first.join(10)
    second.join(10)

    assert events == ["first transform done", ("second transform started", 1)]
    assert results["first"].status is ImportStatus.SUCCESS
    assert results["second"].status is ImportStatus.SUCCESS


def test_different_warehouses_do_not_wait_for_each_other(orchestrator, wh1_workbook):
    first_entered = threading.Event()
    release = threading.Event()
    results = {}

    def blocking(doc, ctx):
        first_entered.set()
        release.wait(5)
        return GenericExcelPlugin().transform(doc, ctx)

    def run_first():
        results["WH1"] = orchestrator.execute_import(wh1_workbook, "WH1", StubPlugin(transform=blocking))

    try:
        first = _in_thread(run_first)
        assert first_entered.wait(5)
        other = orchestrator.execute_import(wh1_workbook, "WH2", GenericExcelPlugin())
        assert other.status is ImportStatus.SUCCESS
        assert not release.is_set()
        assert "WH1" not in results
    finally:
        release.set()
    first.join(10)

    assert results["WH1"].status is ImportStatus.SUCCESS


def test_abandoned_stages_do_not_starve_later_imports(sqlite_db, tmp_path, wh1_workbook):
    hang = threading.Event()

    def stuck(doc, ctx):
        hang.wait(10)

    orch = ImportOrchestrator(sqlite_db, ImportSettings(stage_timeout_seconds=0.5, error_log_dir=str(tmp_path)))
    try:
        for _ in range(5):
            timed_out = orch.execute_import(wh1_workbook, "WH1", StubPlugin(transform=stuck))
            assert "timed out" in timed_out.errors[0].message
        result = orch.execute_import(wh1_workbook, "WH1", GenericExcelPlugin())
    finally:
        hang.set()

    assert result.status is ImportStatus.SUCCESS
    assert result.stats.products_imported == 10
