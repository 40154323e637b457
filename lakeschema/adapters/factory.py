"""
Adapter and execution-sink factory.

Resolves the target database from configuration (DATABASE_URL for
PostgreSQL, else the SQLite file at DATABASE_PATH) or from an explicit
--database argument, which may be either a URL or a SQLite path.
"""

from typing import Optional

from configs import DATABASE_PATH, DATABASE_URL, get_db_type
from .database_adapter import DatabaseAdapter, DatabaseType
from .execution_sink import AdapterExecutionSink
from .sqlite_adapter import SQLiteAdapter
from .postgres_adapter import PostgresAdapter


def create_adapter(
    db_type: DatabaseType,
    file_path: Optional[str] = None,
    connection_string: Optional[str] = None,
    **kwargs
) -> DatabaseAdapter:
    """
    Build an unconnected adapter of the given type.

    Raises:
        ValueError: the parameters the type needs are missing
    """
    if db_type == DatabaseType.SQLITE:
        if not file_path:
            raise ValueError("file_path is required for SQLite adapter")
        return SQLiteAdapter(file_path)

    if db_type == DatabaseType.POSTGRES:
        if not connection_string and not kwargs.get("host"):
            raise ValueError("connection_string or host is required for Postgres adapter")
        return PostgresAdapter(connection_string=connection_string, **kwargs)

    raise ValueError(f"Unsupported database type: {db_type}")


def _is_postgres_url(value: str) -> bool:
    return value.startswith(("postgres://", "postgresql://"))


def create_configured_adapter(database: Optional[str] = None) -> DatabaseAdapter:
    """Adapter for an explicit target, else for the configured one."""
    if database:
        if _is_postgres_url(database):
            return create_adapter(DatabaseType.POSTGRES, connection_string=database)
        return create_adapter(DatabaseType.SQLITE, file_path=database)

    if get_db_type() == DatabaseType.POSTGRES.value:
        return create_adapter(DatabaseType.POSTGRES, connection_string=DATABASE_URL)
    return create_adapter(DatabaseType.SQLITE, file_path=DATABASE_PATH)


def create_execution_sink(database: Optional[str] = None) -> AdapterExecutionSink:
    """Execution sink over the configured (or given) target database."""
    return AdapterExecutionSink(create_configured_adapter(database))
