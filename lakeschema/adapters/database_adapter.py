"""
Database Adapter Layer for LakeSchema.

Generated SQL reaches a database only through an adapter, wrapped by an
ExecutionSink. SQLite serves local runs and tests; PostgreSQL serves
deployed targets.

Contract shared by every adapter:
- connect() happens lazily on the first statement
- execute_script() is atomic: the whole batch is applied or nothing is,
  so the execution stage can retry a failed batch statement by statement
  without duplicating rows
- the database rejecting SQL raises QueryExecutionError; being unable to
  reach the database raises ConnectionError
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class DatabaseType(str, Enum):
    """Supported target databases."""
    SQLITE = "sqlite"
    POSTGRES = "postgres"


@dataclass
class ConnectionConfig:
    """Where an adapter connects: a SQLite file or a PostgreSQL server."""
    db_type: DatabaseType
    file_path: Optional[str] = None
    connection_string: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None

    @property
    def target(self) -> str:
        """Human-readable target without credentials."""
        if self.db_type == DatabaseType.SQLITE:
            return self.file_path or ""
        if self.connection_string:
            return self.connection_string.rsplit("@", 1)[-1]
        return f"{self.host}:{self.port}/{self.database}"


class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class ConnectionError(DatabaseError):
    """The target database cannot be reached."""
    pass


class QueryExecutionError(DatabaseError):
    """The database rejected a statement."""
    pass


def quote_identifier(name: str) -> str:
    """Double-quote an identifier; valid in both SQLite and PostgreSQL."""
    return '"' + name.replace('"', '""') + '"'


class DatabaseAdapter(ABC):
    """
    Base class for synchronous DB-API adapters.

    The execution sink calls adapters from a worker thread, one statement
    or batch at a time.
    """

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._connected = False

    @abstractmethod
    def connect(self) -> None:
        pass

    @abstractmethod
    def disconnect(self) -> None:
        pass

    @abstractmethod
    def execute(self, sql: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        """
        Run one statement and return its rows as dicts (empty for DDL/DML).

        Raises:
            QueryExecutionError: the database rejected the statement
        """
        pass

    @abstractmethod
    def execute_script(self, sql: str) -> None:
        """
        Run every statement of a script in one transaction.

        Raises:
            QueryExecutionError: a statement failed and the batch was rolled back
        """
        pass

    @abstractmethod
    def list_tables(self) -> List[str]:
        """User tables of the target, sorted by name."""
        pass

    def count_rows(self, table_name: str) -> int:
        rows = self.execute(f"SELECT COUNT(*) AS n FROM {quote_identifier(table_name)}")
        return int(rows[0]["n"]) if rows else 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.config.target})"
