from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load the YAML config (config/wareflow.yml by default)
- Validate it against the packaged JSON schema
- Apply defaults for every optional section
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/wareflow.yml")

DEFAULT_DB_PATH = "./data/wareflow.db"
DEFAULT_STAGE_TIMEOUT = 300.0
DEFAULT_ERROR_LOG_DIR = "./logs"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Storage location. dsn selects PostgreSQL; otherwise path is a SQLite file."""
    path: str | None = DEFAULT_DB_PATH
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    stage_timeout_seconds: float | None = DEFAULT_STAGE_TIMEOUT  # None disables the bound
    error_log_dir: str = DEFAULT_ERROR_LOG_DIR


@dataclass(frozen=True)
class MockDataSettings:
    seed: int | None = None
    products: int = 50
    movements: int = 200


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    imports: ImportSettings = field(default_factory=ImportSettings)
    mock_data: MockDataSettings = field(default_factory=MockDataSettings)
    log_level: str = "INFO"


def default_config() -> AppConfig:
    return AppConfig()


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: the schema file is missing or invalid, or the data
            fails schema validation (unknown keys, wrong types, ...).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def parse_config(data: dict[str, Any]) -> AppConfig:
    """Build an AppConfig from already-loaded mapping data."""
    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    imp_raw = data.get("import") or {}
    mock_raw = data.get("mock_data") or {}
    log_raw = data.get("logging") or {}

    database = DatabaseConfig(
        path=db_raw.get("path", DEFAULT_DB_PATH),
        dsn=db_raw.get("dsn"),
    )
    imports = ImportSettings(
        stage_timeout_seconds=imp_raw.get("stage_timeout_seconds", DEFAULT_STAGE_TIMEOUT),
        error_log_dir=imp_raw.get("error_log_dir", DEFAULT_ERROR_LOG_DIR),
    )
    mock_data = MockDataSettings(
        seed=mock_raw.get("seed"),
        products=mock_raw.get("products", 50),
        movements=mock_raw.get("movements", 200),
    )
    return AppConfig(
        database=database,
        imports=imports,
        mock_data=mock_data,
        log_level=log_raw.get("level", "INFO"),
    )


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")
    return parse_config(data)
