"""
Prompt builders for every model-backed stage.

Each builder returns a plain string. Entities are serialized with their
camelCase aliases so the model sees the same keys it is asked to return.
"""
import json
from typing import List, Sequence

from configs import INSERT_SAMPLE_ROWS, PROMPT_SAMPLE_ROWS
from lakeschema.models import Entity, ParsedFile, ValidationIssue


# ============================================================
# DIALECT HINTS
# ============================================================

DIALECTS = {
    "postgres": {
        "name": "PostgreSQL",
        "hints": "SERIAL or BIGSERIAL for surrogate keys, TEXT, INTEGER, NUMERIC(10,2) for money, "
                 "TIMESTAMPTZ for timestamps, DATE, BOOLEAN, JSONB for nested documents",
    },
    "mysql": {
        "name": "MySQL",
        "hints": "INT AUTO_INCREMENT for surrogate keys, VARCHAR(255) or TEXT, DECIMAL(10,2) for money, "
                 "DATETIME for timestamps, DATE, TINYINT(1) for booleans, JSON for nested documents",
    },
    "sqlite": {
        "name": "SQLite",
        "hints": "INTEGER PRIMARY KEY AUTOINCREMENT for surrogate keys, TEXT, INTEGER, REAL for money, "
                 "TEXT (ISO-8601) for dates and timestamps, INTEGER (0/1) for booleans",
    },
}

_DIALECT_ALIASES = {"postgresql": "postgres", "pg": "postgres", "mariadb": "mysql", "sqlite3": "sqlite"}


def dialect_key(dialect: str) -> str:
    key = (dialect or "").strip().lower()
    return _DIALECT_ALIASES.get(key, key)


def dialect_name(dialect: str) -> str:
    """Display name used in prompts ("postgres" -> "PostgreSQL"); unknown dialects pass through."""
    info = DIALECTS.get(dialect_key(dialect))
    return info["name"] if info else dialect


def dialect_hints(dialect: str) -> str:
    info = DIALECTS.get(dialect_key(dialect))
    return info["hints"] if info else f"native {dialect} types"


# ============================================================
# SERIALIZATION HELPERS
# ============================================================

def entities_json(entities: Sequence[Entity]) -> str:
    return json.dumps([e.model_dump(by_alias=True) for e in entities])


def issues_json(issues: Sequence[ValidationIssue]) -> str:
    return json.dumps([i.model_dump(mode="json") for i in issues])


def file_summary(parsed: ParsedFile) -> str:
    return (
        f"File: {parsed.filename}\n"
        f"Headers: {','.join(parsed.headers)}\n"
        f"Sample: {json.dumps(parsed.sample_rows[:PROMPT_SAMPLE_ROWS], default=str)}"
    )


def _entity_format(dialect: str) -> str:
    return f"""{{
  "entities": [
    {{
      "tableName": "string",
      "columns": [
        {{ "name": "string", "type": "{dialect} type", "nullable": true/false, "isPrimaryKey": true/false }}
      ],
      "sourceFiles": ["filename1.csv"],
      "foreignKeys": [
        {{ "column": "string", "referencesTable": "string", "referencesColumn": "string" }}
      ]
    }}
  ]
}}"""


# ============================================================
# PROMPTS
# ============================================================

def infer_entities_prompt(files: Sequence[ParsedFile], dialect: str) -> str:
    name = dialect_name(dialect)
    summaries = "\n---\n".join(file_summary(f) for f in files)
    return f"""You are a data architect. Analyze these parsed data files from a messy data lake and identify all database entities (tables) and their relationships.

FILES:
{summaries}

TASK:
1. Identify all distinct entities (tables) that should exist in a normalized relational database.
2. For each entity, define columns with appropriate {name} types ({dialect_hints(dialect)}).
3. Identify primary keys.
4. Identify foreign key relationships ACROSS files (e.g., orders reference customers).
5. Normalize inconsistent naming ("customer_id", "customerId", "cust_id" map to the same foreign key).
6. When a file references another by name instead of id, point the foreign key at the referenced table.
7. For nested data (e.g., order items), create separate detail tables.

Respond with ONLY valid JSON in this exact format (no markdown, no explanation):
{_entity_format(name)}"""


def generate_schema_prompt(entities: Sequence[Entity], dialect: str) -> str:
    name = dialect_name(dialect)
    order = ", ".join(e.table_name for e in entities)
    return f"""You are a {name} expert. Generate CREATE TABLE statements for these entities.

ENTITIES:
{entities_json(entities)}

REQUIREMENTS:
1. Use {name} syntax.
2. Include PRIMARY KEY constraints.
3. Include FOREIGN KEY constraints with ON DELETE CASCADE.
4. Add CREATE INDEX on all foreign key columns.
5. Use appropriate types: {dialect_hints(dialect)}.
6. Create the tables in this dependency order: {order}.
7. Do NOT use CREATE SCHEMA; all tables go in the default schema.

Respond with ONLY the SQL statements. No markdown fences, no explanation. Just raw SQL."""


def validate_schema_prompt(sql: str, entities: Sequence[Entity], files: Sequence[ParsedFile], dialect: str) -> str:
    name = dialect_name(dialect)
    sources = "\n".join(
        f"- {f.filename}: {f.row_count} rows, headers: {', '.join(f.headers)}" for f in files
    )
    return f"""You are a database QA engineer. Review this {name} SQL schema against the source data and entity definitions.

SQL SCHEMA:
{sql}

ENTITY DEFINITIONS:
{entities_json(entities)}

SOURCE FILE SUMMARIES:
{sources}

CHECK FOR:
1. All FK target tables and columns exist in the schema.
2. No duplicate table names.
3. Data types are appropriate for the source data and {name}.
4. No source file is left unmapped (every file should contribute to at least one table).
5. Proper normalization (nested arrays should be separate tables).
6. Missing indexes on FK columns.

Respond with ONLY valid JSON (no markdown, no explanation):
{{
  "issues": [
    {{ "severity": "error" or "warning", "entity": "table_name", "description": "what's wrong", "suggestion": "how to fix" }}
  ]
}}

If there are no issues, respond with: {{"issues": []}}"""


def correct_schema_prompt(entities: Sequence[Entity], issues: Sequence[ValidationIssue], dialect: str) -> str:
    name = dialect_name(dialect)
    return f"""You are a data architect. Fix these issues in the entity definitions.

CURRENT ENTITIES:
{entities_json(entities)}

ISSUES TO FIX:
{issues_json(issues)}

Fix every issue and return the complete corrected entity list. Respond with ONLY valid JSON (no markdown, no explanation):
{_entity_format(name)}"""


def generate_inserts_prompt(sql: str, files: Sequence[ParsedFile], entities: Sequence[Entity], dialect: str) -> str:
    name = dialect_name(dialect)
    source_data: List[str] = [
        f"--- {f.filename} ---\n{json.dumps(f.sample_rows[:INSERT_SAMPLE_ROWS], default=str)}" for f in files
    ]
    return f"""You are a data engineer. Generate INSERT statements to populate these tables from the source data.

SQL SCHEMA:
{sql}

ENTITIES:
{entities_json(entities)}

SOURCE DATA:
{chr(10).join(source_data)}

REQUIREMENTS:
1. Generate INSERT statements that map source data to the normalized schema using {name} syntax.
2. Use integer ids starting from 1 for auto-increment columns.
3. For foreign keys: when source data references by name or email, use a sub-select or the known literal id.
4. Convert types (string dates to native date types, string numbers to numeric).
5. Only generate inserts for the SAMPLE rows shown.
6. Insert parents before children (dependency order).
7. Use NULL for missing values.

Respond with ONLY the SQL INSERT statements. No markdown fences, no explanation. Just raw SQL."""
