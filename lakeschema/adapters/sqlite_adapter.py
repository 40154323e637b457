"""
SQLite Database Adapter.

The default target for local runs, the CLI and tests (":memory:" works).
The connection runs in autocommit mode with foreign keys enforced;
execute_script() wraps its batch in an explicit BEGIN/COMMIT.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from lakeschema.tools.schema_graph import split_sql_statements
from .database_adapter import (
    DatabaseAdapter,
    ConnectionConfig,
    DatabaseType,
    ConnectionError,
    QueryExecutionError
)

logger = logging.getLogger("lakeschema.adapters.sqlite")


class SQLiteAdapter(DatabaseAdapter):
    """SQLite implementation of DatabaseAdapter; the file is created on connect."""

    def __init__(self, file_path: str):
        super().__init__(ConnectionConfig(db_type=DatabaseType.SQLITE, file_path=file_path))
        self._connection: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        file_path = self.config.file_path
        if not file_path:
            raise ConnectionError("No file path specified for SQLite database")

        try:
            if file_path != ":memory:":
                Path(file_path).parent.mkdir(parents=True, exist_ok=True)
            # check_same_thread=False: the execution sink calls from worker threads
            connection = sqlite3.connect(file_path, isolation_level=None, check_same_thread=False)
            connection.execute("PRAGMA foreign_keys = ON")
        except (sqlite3.Error, OSError) as e:
            raise ConnectionError(f"Cannot open SQLite database {file_path}: {e}")

        self._connection = connection
        self._connected = True
        logger.debug(f"Opened {file_path}")

    def disconnect(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self._connected = False

    def _cursor(self) -> sqlite3.Cursor:
        if self._connection is None:
            self.connect()
        return self._connection.cursor()

    def execute(self, sql: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        cursor = self._cursor()
        try:
            cursor.execute(sql, params or ())
        except sqlite3.Error as e:
            raise QueryExecutionError(f"SQLite rejected statement: {e}")
        if cursor.description is None:
            return []
        names = [column[0] for column in cursor.description]
        return [dict(zip(names, row)) for row in cursor.fetchall()]

    def execute_script(self, sql: str) -> None:
        cursor = self._cursor()
        try:
            cursor.execute("BEGIN")
            for statement in split_sql_statements(sql):
                cursor.execute(statement)
            cursor.execute("COMMIT")
        except sqlite3.Error as e:
            if self._connection.in_transaction:
                self._connection.execute("ROLLBACK")
            raise QueryExecutionError(f"SQLite rejected statement: {e}")

    def list_tables(self) -> List[str]:
        rows = self.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]
