"""
Adapters module for LakeSchema.

Contains:
1. Database adapters (SQLite, Postgres)
2. Execution sinks used by the execution stage
"""

from .database_adapter import (
    DatabaseAdapter,
    DatabaseType,
    ConnectionConfig,
    DatabaseError,
    ConnectionError,
    QueryExecutionError
)
from .sqlite_adapter import SQLiteAdapter
from .postgres_adapter import PostgresAdapter
from .execution_sink import ExecutionSink, AdapterExecutionSink, DryRunExecutionSink, StatementResult
from .factory import create_adapter, create_configured_adapter, create_execution_sink

__all__ = [
    "DatabaseAdapter",
    "DatabaseType",
    "ConnectionConfig",
    "DatabaseError",
    "ConnectionError",
    "QueryExecutionError",
    "SQLiteAdapter",
    "PostgresAdapter",
    "ExecutionSink",
    "AdapterExecutionSink",
    "DryRunExecutionSink",
    "StatementResult",
    "create_adapter",
    "create_configured_adapter",
    "create_execution_sink",
]
