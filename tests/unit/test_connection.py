from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from wareflow_import.config.loader import DatabaseConfig
from wareflow_import.db import connection
from wareflow_import.db.connection import (
    DatabaseConfigError,
    connect_postgres,
    connect_sqlite,
    database_session,
    resolve_target,
)
from wareflow_import.db.schema import POSTGRES, SQLITE


def test_default_target_is_sqlite_path(clean_db_env):
    assert resolve_target(DatabaseConfig(path="./data/x.db")) == (SQLITE, "./data/x.db")


def test_env_path_overrides_config(clean_db_env, monkeypatch):
    monkeypatch.setenv("WAREFLOW_DB_PATH", "/tmp/other.db")
    assert resolve_target(DatabaseConfig(path="./data/x.db")) == (SQLITE, "/tmp/other.db")


def test_dsn_selects_postgres(clean_db_env, monkeypatch):
    assert resolve_target(DatabaseConfig(dsn="postgresql://cfg"))[0] is POSTGRES
    monkeypatch.setenv("PGDSN", "postgresql://pg")
    monkeypatch.setenv("DATABASE_URL", "postgresql://url")
    assert resolve_target(DatabaseConfig(dsn="postgresql://cfg")) == (POSTGRES, "postgresql://url")


def test_nothing_configured(clean_db_env):
    with pytest.raises(DatabaseConfigError):
        resolve_target(DatabaseConfig(path=None))


def test_sqlite_enforces_foreign_keys(tmp_path):
    db = connect_sqlite(tmp_path / "nested" / "store.db")
    try:
        assert db.connection.execute("PRAGMA foreign_keys").fetchone() == (1,)
    finally:
        db.close()


def test_sqlite_path_under_a_file_is_a_config_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(DatabaseConfigError):
        connect_sqlite(blocker / "store.db")


def test_postgres_connection_uses_autocommit():
    fake = MagicMock()
    with patch.object(connection.psycopg2, "connect", return_value=fake) as connect:
        db = connect_postgres("postgresql://u@h/db")
    connect.assert_called_once_with("postgresql://u@h/db")
    assert fake.autocommit is True
    assert db.dialect is POSTGRES


def test_postgres_connection_failure():
    with patch.object(connection.psycopg2, "connect", side_effect=psycopg2.OperationalError("refused")):
        with pytest.raises(DatabaseConfigError, match="refused"):
            connect_postgres("postgresql://u@h/db")


def test_session_initializes_schema(tmp_path, clean_db_env):
    with database_session(DatabaseConfig(path=str(tmp_path / "s.db"))) as db:
        names = {r[0] for r in db.connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"products", "movements", "import_history"} <= names
