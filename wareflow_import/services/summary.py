from __future__ import annotations

from wareflow_import.models.import_result import ImportResult

"""SUMMARY line rendering.

Format:
    SUMMARY status=<success|failed> warehouse=<id> plugin=<id> rows=<n>
    imported=<n> errors=<n> warnings=<n> elapsed_sec=<s> throughput_rps=<r>
"""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for one import result.

    >>> from wareflow_import.models.import_result import ImportStats, ImportStatus
    >>> r = ImportResult(ImportStatus.SUCCESS, "WH1", "generic-excel",
    ...                  ImportStats(rows_processed=25, products_imported=10), 2000)
    >>> render_summary_line(r)
    'SUMMARY status=success warehouse=WH1 plugin=generic-excel rows=25 imported=10 errors=0 warnings=0 elapsed_sec=2 throughput_rps=12.5'
    """
    elapsed = result.duration_ms / 1000.0
    throughput = result.stats.rows_processed / elapsed if elapsed > 0 else 0.0
    return (
        f"SUMMARY status={result.status.value} "
        f"warehouse={result.warehouse_id} "
        f"plugin={result.plugin_id} "
        f"rows={result.stats.rows_processed} "
        f"imported={result.stats.total_imported} "
        f"errors={len(result.errors)} "
        f"warnings={len(result.warnings)} "
        f"elapsed_sec={_format_number(elapsed)} "
        f"throughput_rps={_format_number(throughput)}"
    )
