from __future__ import annotations

import logging
import os
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import psycopg2

from wareflow_import.config.loader import DatabaseConfig
from wareflow_import.db.schema import POSTGRES, SQLITE, Dialect, initialize_schema

"""Storage connection.

Resolution order for the target store:
    1. DATABASE_URL / PGDSN environment variables (PostgreSQL DSN)
    2. database.dsn from the config file (PostgreSQL DSN)
    3. WAREFLOW_DB_PATH environment variable (SQLite file)
    4. database.path from the config file (SQLite file)

Connections run in driver autocommit mode: transaction boundaries are issued
explicitly (BEGIN / COMMIT / ROLLBACK / SAVEPOINT) by the loader.
"""

__all__ = [
    "DatabaseConfigError",
    "Database",
    "resolve_target",
    "connect_sqlite",
    "connect_postgres",
    "open_database",
    "database_session",
]

logger = logging.getLogger(__name__)


class DatabaseConfigError(Exception):
    """Raised when no usable storage target is configured or it cannot be opened."""


@dataclass
class Database:
    """An open connection, its SQL dialect and the lock serializing writes."""
    connection: Any
    dialect: Dialect
    lock: threading.RLock = field(default_factory=threading.RLock)

    def cursor(self) -> Any:
        return self.connection.cursor()

    def close(self) -> None:
        self.connection.close()


def resolve_target(db_cfg: DatabaseConfig) -> tuple[Dialect, str]:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return POSTGRES, dsn
    path = os.getenv("WAREFLOW_DB_PATH") or db_cfg.path
    if not path:
        raise DatabaseConfigError("no database configured: set database.path, database.dsn or DATABASE_URL")
    return SQLITE, path


def connect_sqlite(path: str | Path) -> Database:
    path = str(path)
    try:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None: no implicit transactions, BEGIN/COMMIT are ours
        conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
    except (OSError, sqlite3.Error) as e:
        raise DatabaseConfigError(f"cannot open sqlite database '{path}': {e}") from e
    conn.execute("PRAGMA foreign_keys = ON")
    return Database(connection=conn, dialect=SQLITE)


def connect_postgres(dsn: str) -> Database:
    try:
        conn = psycopg2.connect(dsn)
    except psycopg2.Error as e:
        raise DatabaseConfigError(f"cannot connect to postgresql: {e}") from e
    conn.autocommit = True
    return Database(connection=conn, dialect=POSTGRES)


def open_database(db_cfg: DatabaseConfig, initialize: bool = True) -> Database:
    dialect, target = resolve_target(db_cfg)
    if dialect is POSTGRES:
        db = connect_postgres(target)
        logger.debug("connected to postgresql")
    else:
        db = connect_sqlite(target)
        logger.debug("opened sqlite database %s", target)
    if initialize:
        cur = db.cursor()
        try:
            initialize_schema(cur, db.dialect)
        finally:
            cur.close()
    return db


@contextmanager
def database_session(db_cfg: DatabaseConfig, initialize: bool = True) -> Iterator[Database]:
    db = open_database(db_cfg, initialize=initialize)
    try:
        yield db
    finally:
        db.close()
