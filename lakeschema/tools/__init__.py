"""Schema dependency graph and SQL statement utilities."""
from .schema_graph import (
    FKEdge,
    SchemaGraph,
    join_statements,
    order_sql,
    order_statements,
    split_sql_statements,
    statement_table,
)

__all__ = [
    "FKEdge",
    "SchemaGraph",
    "join_statements",
    "order_sql",
    "order_statements",
    "split_sql_statements",
    "statement_table",
]
