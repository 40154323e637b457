"""
Schema Graph for Dependency-Safe DDL and DML

PURPOSE:
========
This module builds a directed graph of the foreign-key relationships
between inferred entities and uses it to:

1. find foreign keys whose target table does not exist,
2. order entities so referenced tables come before referencing ones,
3. split generated SQL into statements and put them in that order.

WHY THIS EXISTS:
================
Model-generated SQL often creates or fills a child table before its
parent:
  CREATE TABLE orders (... REFERENCES customers(id))   ❌ customers missing
  CREATE TABLE customers (...)

Ordering the statements from the graph instead of trusting the model
keeps CREATE TABLE and INSERT batches executable.

USAGE:
======
    graph = SchemaGraph.from_entities(entities)
    graph.missing_targets()          # [FKEdge(...)] pointing at unknown tables
    ordered = graph.order_entities(entities)
    sql = order_sql(sql, [e.table_name for e in ordered])
"""

from collections import defaultdict, deque
from dataclasses import dataclass
import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

from lakeschema.models import Entity


@dataclass
class FKEdge:
    """A single foreign-key relationship (directed edge)."""
    from_table: str
    from_column: str
    to_table: str
    to_column: str

    def __str__(self) -> str:
        return f"{self.from_table}.{self.from_column} → {self.to_table}.{self.to_column}"

    def __hash__(self) -> int:
        return hash((self.from_table, self.from_column, self.to_table, self.to_column))


class SchemaGraph:
    """
    Directed graph of entity foreign keys.

    Nodes: Table names
    Edges: FK relationships (from_table.from_col → to_table.to_col)
    """

    def __init__(self):
        self.edges: List[FKEdge] = []
        self.adjacency: Dict[str, List[FKEdge]] = defaultdict(list)
        self.reverse_adjacency: Dict[str, List[FKEdge]] = defaultdict(list)
        self.tables: List[str] = []

    @classmethod
    def from_entities(cls, entities: Sequence[Entity]) -> 'SchemaGraph':
        graph = cls()
        for entity in entities:
            if entity.table_name not in graph.tables:
                graph.tables.append(entity.table_name)
        for entity in entities:
            for fk in entity.foreign_keys:
                graph.add_edge(FKEdge(
                    from_table=entity.table_name,
                    from_column=fk.column,
                    to_table=fk.references_table,
                    to_column=fk.references_column,
                ))
        return graph

    def add_edge(self, edge: FKEdge):
        """Add a FK relationship to the graph."""
        self.edges.append(edge)
        self.adjacency[edge.from_table].append(edge)
        self.reverse_adjacency[edge.to_table].append(edge)

    def missing_targets(self) -> List[FKEdge]:
        """Edges whose target table is not one of the entities."""
        known = set(self.tables)
        return [edge for edge in self.edges if edge.to_table not in known]

    def dependency_order(self) -> List[str]:
        """
        Topological order of the tables (Kahn's algorithm).

        Ties keep entity order. Tables caught in a cycle, including
        self-references, are appended in entity order after the rest.
        """
        known = set(self.tables)
        position = {table: index for index, table in enumerate(self.tables)}
        parents: Dict[str, Set[str]] = {table: set() for table in self.tables}
        for edge in self.edges:
            if edge.to_table in known and edge.to_table != edge.from_table:
                parents[edge.from_table].add(edge.to_table)

        ready = deque(sorted((t for t in self.tables if not parents[t]), key=position.get))
        ordered: List[str] = []
        placed: Set[str] = set()
        while ready:
            table = ready.popleft()
            ordered.append(table)
            placed.add(table)
            unlocked = [
                edge.from_table for edge in self.reverse_adjacency[table]
                if edge.from_table not in placed
                and edge.from_table not in ready
                and parents[edge.from_table] <= placed
            ]
            for child in sorted(set(unlocked), key=position.get):
                ready.append(child)

        ordered.extend(t for t in self.tables if t not in placed)
        return ordered

    def order_entities(self, entities: Sequence[Entity]) -> List[Entity]:
        position = {name: index for index, name in enumerate(self.dependency_order())}
        return sorted(entities, key=lambda e: position.get(e.table_name, len(position)))


# ============================================================
# SQL STATEMENT HANDLING
# ============================================================

_COMMENTS = re.compile(r"--[^\n]*|/\*[\s\S]*?\*/")
_IDENT = r'(?:"[^"]+"|`[^`]+`|\[[^\]]+\]|[\w$]+)'
_QUALIFIED = rf"({_IDENT}(?:\s*\.\s*{_IDENT})*)"

_CREATE_TABLE = re.compile(rf"^\s*CREATE\s+(?:TEMP(?:ORARY)?\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?{_QUALIFIED}", re.I)
_INSERT = re.compile(rf"^\s*INSERT\s+(?:OR\s+\w+\s+)?INTO\s+{_QUALIFIED}", re.I)
_CREATE_INDEX = re.compile(rf"^\s*CREATE\s+(?:UNIQUE\s+)?INDEX\b.*?\bON\s+{_QUALIFIED}", re.I | re.S)
_DROP_TABLE = re.compile(rf"^\s*DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?{_QUALIFIED}", re.I)
_ALTER_TABLE = re.compile(r"^\s*ALTER\s+TABLE\b", re.I)
_CREATE_TRIGGER = re.compile(
    rf"^\s*CREATE\s+(?:OR\s+REPLACE\s+)?(?:TEMP(?:ORARY)?\s+)?TRIGGER\s+(?:IF\s+NOT\s+EXISTS\s+)?{_QUALIFIED}"
    rf".*?\bON\s+{_QUALIFIED}",
    re.I | re.S,
)
_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_]\w*)?\$")
_WORD = re.compile(r"\w[\w$]*")


def _code_only(statement: str) -> str:
    return _COMMENTS.sub("", statement).strip()


def split_sql_statements(sql: str) -> List[str]:
    """
    Split a script on statement-terminating semicolons.

    Semicolons do not terminate a statement inside quoted strings, quoted
    identifiers, comments, PostgreSQL dollar-quoted bodies ($$ ... $$ or
    $tag$ ... $tag$) or the BEGIN ... END body of a CREATE TRIGGER.
    Returned statements are trimmed, carry no trailing semicolon, and
    comment-only fragments are dropped.
    """
    statements: List[str] = []
    buf: List[str] = []
    quote: Optional[str] = None
    depth = 0
    i, n = 0, len(sql)

    def flush():
        statement = "".join(buf).strip()
        buf.clear()
        if _code_only(statement):
            statements.append(statement)

    while i < n:
        ch = sql[i]
        if quote:
            buf.append(ch)
            if ch == quote:
                if i + 1 < n and sql[i + 1] == quote:
                    buf.append(sql[i + 1])
                    i += 2
                    continue
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
            buf.append(ch)
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            end = n if end == -1 else end
            buf.append(sql[i:end])
            i = end
            continue
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = n if end == -1 else end + 2
            buf.append(sql[i:end])
            i = end
            continue
        elif ch == "$" and _DOLLAR_TAG.match(sql, i):
            tag = _DOLLAR_TAG.match(sql, i).group(0)
            end = sql.find(tag, i + len(tag))
            end = n if end == -1 else end + len(tag)
            buf.append(sql[i:end])
            i = end
            continue
        elif ch.isalpha() or ch == "_":
            word = _WORD.match(sql, i).group(0)
            buf.append(word)
            i += len(word)
            keyword = word.upper()
            if keyword in ("BEGIN", "CASE") and (depth or _CREATE_TRIGGER.match(_code_only("".join(buf)))):
                depth += 1
            elif keyword == "END" and depth:
                depth -= 1
            continue
        elif ch == ";" and depth == 0:
            flush()
        else:
            buf.append(ch)
        i += 1
    flush()
    return statements


def _table_key(identifier: str) -> str:
    last = re.split(r"\s*\.\s*", identifier)[-1]
    return last.strip('"`[]').lower()


def statement_table(statement: str) -> Tuple[Optional[str], Optional[str]]:
    """Return (kind, table) for the statements the ordering understands."""
    code = _code_only(statement)
    for kind, pattern in (
        ("create", _CREATE_TABLE),
        ("insert", _INSERT),
        ("index", _CREATE_INDEX),
        ("drop", _DROP_TABLE),
    ):
        match = pattern.match(code)
        if match:
            return kind, _table_key(match.group(1))
    trigger = _CREATE_TRIGGER.match(code)
    if trigger:
        return "trigger", _table_key(trigger.group(2))
    if _ALTER_TABLE.match(code):
        return "alter", None
    return None, None


def order_statements(statements: Sequence[str], table_order: Sequence[str]) -> List[str]:
    """
    Stable re-ordering of statements into dependency order.

    DROP TABLE statements come first (children before parents), then each
    table's CREATE followed by its indexes, triggers and INSERTs, then ALTER TABLE
    statements. Statements touching no table (SET, CREATE EXTENSION, ...)
    stay attached to the statement before them.
    """
    rank: Dict[str, int] = {name.lower(): index for index, name in enumerate(table_order)}
    end = len(table_order) + len(statements)
    keyed = []
    previous: Tuple[int, int] = (-2, 0)
    for index, statement in enumerate(statements):
        kind, table = statement_table(statement)
        if table is not None and table not in rank:
            rank[table] = len(rank)
        if kind == "drop":
            key = (-1, -rank[table])
        elif kind == "create":
            key = (rank[table], 0)
        elif kind in ("insert", "index", "trigger"):
            key = (rank[table], 1)
        elif kind == "alter":
            key = (end, 2)
        else:
            key = previous
        previous = key
        keyed.append((key, index, statement))
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [statement for _, _, statement in keyed]


def join_statements(statements: Sequence[str]) -> str:
    return "\n\n".join(f"{statement};" for statement in statements)


def order_sql(sql: str, table_order: Sequence[str]) -> str:
    """Split, re-order and re-join a script. Empty input stays empty."""
    statements = split_sql_statements(sql)
    if not statements:
        return sql.strip()
    return join_statements(order_statements(statements, table_order))
