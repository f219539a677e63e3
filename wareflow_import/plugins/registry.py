from __future__ import annotations

import logging

from wareflow_import.config.loader import MockDataSettings
from wareflow_import.plugins.base import ImportPlugin
from wareflow_import.plugins.generic_excel import GenericExcelPlugin
from wareflow_import.plugins.mock_data import MockDataPlugin

"""Plugin registry.

Holds the available plugins keyed by id, in registration order. The registry
keeps no per-import state; it is built once at startup by
create_default_registry() and handed to the orchestrator/service.
"""

__all__ = ["DuplicateIdError", "PluginRegistry", "create_default_registry"]

logger = logging.getLogger(__name__)


class DuplicateIdError(Exception):
    """Raised when registering a plugin whose id is already taken."""


class PluginRegistry:
    def __init__(self) -> None:
        self._plugins: dict[str, ImportPlugin] = {}

    def register(self, plugin: ImportPlugin) -> None:
        plugin_id = plugin.metadata.id
        if plugin_id in self._plugins:
            raise DuplicateIdError(f"plugin '{plugin_id}' is already registered")
        self._plugins[plugin_id] = plugin
        logger.debug("registered plugin %s v%s", plugin_id, plugin.metadata.version)

    def unregister(self, plugin_id: str) -> None:
        if plugin_id not in self._plugins:
            raise KeyError(plugin_id)
        del self._plugins[plugin_id]

    def get(self, plugin_id: str) -> ImportPlugin | None:
        return self._plugins.get(plugin_id)

    def list(self) -> list[ImportPlugin]:
        return list(self._plugins.values())

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)


def create_default_registry(mock_settings: MockDataSettings | None = None) -> PluginRegistry:
    """Registry with the built-in plugins (generic-excel, mock-data-generator)."""
    registry = PluginRegistry()
    registry.register(GenericExcelPlugin())
    if mock_settings is None:
        registry.register(MockDataPlugin())
    else:
        registry.register(
            MockDataPlugin(
                seed=mock_settings.seed,
                products=mock_settings.products,
                movements=mock_settings.movements,
            )
        )
    return registry
