from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from wareflow_import.config.loader import AppConfig, default_config
from wareflow_import.db.connection import Database, open_database
from wareflow_import.models.diagnostic import Diagnostic
from wareflow_import.models.import_result import ImportResult, ImportStats, ImportStatus
from wareflow_import.plugins.registry import PluginRegistry, create_default_registry
from wareflow_import.services.orchestrator import ImportOrchestrator
from wareflow_import.services.progress import ProgressSink

"""Host-facing import service.

Plain-dict API (camelCase keys) for a desktop shell or any other host:
plugin discovery, file validation, imports, mock generation and history.
Unknown plugin ids never raise; they produce a failed result / invalid report.
"""

__all__ = ["ImportService", "MOCK_PLUGIN_ID"]

logger = logging.getLogger(__name__)

MOCK_PLUGIN_ID = "mock-data-generator"


class ImportService:
    def __init__(
        self,
        db: Database,
        registry: PluginRegistry | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or default_config()
        self.db = db
        self.registry = registry or create_default_registry(self.config.mock_data)
        self.orchestrator = ImportOrchestrator(db, self.config.imports)

    @classmethod
    def from_config(cls, config: AppConfig) -> ImportService:
        return cls(open_database(config.database), config=config)

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> ImportService:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # --- plugins -----------------------------------------------------------

    def list_plugins(self) -> list[dict[str, Any]]:
        return [plugin.metadata.to_dict() for plugin in self.registry.list()]

    def get_plugin(self, plugin_id: str) -> dict[str, Any] | None:
        plugin = self.registry.get(plugin_id)
        return plugin.metadata.to_dict() if plugin is not None else None

    # --- imports -----------------------------------------------------------

    def validate_file(self, path: str | Path, plugin_id: str) -> dict[str, Any]:
        plugin = self.registry.get(plugin_id)
        if plugin is None:
            return {"valid": False, "errors": [_unknown_plugin(plugin_id).to_dict()]}
        return self.orchestrator.validate_file(path, plugin).to_dict()

    def execute_import(
        self,
        path: str | Path,
        warehouse_id: str,
        plugin_id: str,
        on_progress: ProgressSink | None = None,
    ) -> dict[str, Any]:
        return self.run_import(path, warehouse_id, plugin_id, on_progress).to_dict()

    def generate_mock_data(
        self,
        warehouse_id: str,
        plugin_id: str = MOCK_PLUGIN_ID,
        on_progress: ProgressSink | None = None,
    ) -> dict[str, Any]:
        return self.run_mock(warehouse_id, plugin_id, on_progress).to_dict()

    def import_history(self, warehouse_id: str, limit: int | None = None) -> list[dict[str, Any]]:
        return self.orchestrator.history(warehouse_id, limit)

    # ImportResult-returning variants, used by the CLI for the SUMMARY line

    def run_import(
        self,
        path: str | Path,
        warehouse_id: str,
        plugin_id: str,
        on_progress: ProgressSink | None = None,
    ) -> ImportResult:
        plugin = self.registry.get(plugin_id)
        if plugin is None:
            return _unknown_plugin_result(warehouse_id, plugin_id)
        return self.orchestrator.execute_import(path, warehouse_id, plugin, on_progress)

    def run_mock(
        self,
        warehouse_id: str,
        plugin_id: str = MOCK_PLUGIN_ID,
        on_progress: ProgressSink | None = None,
    ) -> ImportResult:
        plugin = self.registry.get(plugin_id)
        if plugin is None:
            return _unknown_plugin_result(warehouse_id, plugin_id)
        return self.orchestrator.generate_mock_data(warehouse_id, plugin, on_progress)


def _unknown_plugin(plugin_id: str) -> Diagnostic:
    return Diagnostic.error(f"Plugin '{plugin_id}' not found", suggestion="List available plugins first")


def _unknown_plugin_result(warehouse_id: str, plugin_id: str) -> ImportResult:
    logger.warning("unknown plugin requested: %s", plugin_id)
    return ImportResult(
        status=ImportStatus.FAILED,
        warehouse_id=warehouse_id,
        plugin_id=plugin_id,
        stats=ImportStats(),
        duration_ms=0,
        errors=[Diagnostic.error(f"Import failed: plugin '{plugin_id}' not found")],
    )
