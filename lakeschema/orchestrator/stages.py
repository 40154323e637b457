"""
Pipeline Stages.

PURPOSE:
========
The seven units of work the orchestrator sequences:

    parse → infer entities → generate schema → validate
          → (correct → generate schema → validate)* → generate inserts → execute

Every stage is an async method that takes the current PipelineState and
returns a StateDelta. Stages never mutate state and never decide what
runs next; that is the state machine's job.

ERROR POLICY:
=============
- Per-file read/parse failures are recorded and the run continues.
- Gateway failures (LLMError) always propagate: the run fails.
- An unusable reply (InvalidModelResponse) is fatal for inference and
  schema generation, degrades validation to structural checks, and makes
  correction keep the previous entities.
"""
import asyncio
import logging
import re
from pathlib import PurePosixPath
from typing import Awaitable, Callable, Dict, List, Tuple

from configs import STATEMENT_DELAY_SECONDS, VERBOSE
from lakeschema.adapters.execution_sink import ExecutionSink
from lakeschema.models import (
    Entity,
    EntityListResponse,
    EventType,
    ExecutionReport,
    IssueSeverity,
    ParsedFile,
    PipelineState,
    PipelineStatus,
    StateDelta,
    ValidationIssue,
    ValidationReport,
)
from lakeschema.parsers import ParseError, parse_file
from lakeschema.storage.events import EventPublisher
from lakeschema.storage.file_source import FileSource
from lakeschema.tools.schema_graph import SchemaGraph, order_sql, split_sql_statements
from . import prompts
from .json_utils import InvalidModelResponse, extract_sql, parse_model_json
from .llm_client import ModelGateway

logger = logging.getLogger("lakeschema.stages")

StageFn = Callable[[PipelineState], Awaitable[StateDelta]]

_HAS_CREATE_TABLE = re.compile(r"\bCREATE\s+(?:TEMP(?:ORARY)?\s+)?TABLE\b", re.IGNORECASE)
_HAS_INSERT = re.compile(r"\bINSERT\s+(?:OR\s+\w+\s+)?INTO\b", re.IGNORECASE)


class PipelineError(Exception):
    """A run cannot continue (e.g. nothing could be parsed)."""
    pass


# ============================================================
# STRUCTURAL CHECKS
# ============================================================

def check_structure(entities: List[Entity]) -> List[ValidationIssue]:
    """
    Programmatic schema checks. Every violation is an error:
    - a foreign key targets a table that is not an entity
    - a column name repeats within an entity
    - a table name repeats across entities
    """
    issues: List[ValidationIssue] = []

    for edge in SchemaGraph.from_entities(entities).missing_targets():
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            entity=edge.from_table,
            description=f"Foreign key {edge.from_column} references non-existent table {edge.to_table}",
            suggestion=f"Create a {edge.to_table} entity or point the foreign key at an existing table",
        ))

    for entity in entities:
        seen = set()
        for column in entity.columns:
            if column.name in seen:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    entity=entity.table_name,
                    description=f"Duplicate column name: {column.name}",
                    suggestion="Rename or remove the duplicate column",
                ))
            seen.add(column.name)

    seen_tables = set()
    for entity in entities:
        if entity.table_name in seen_tables:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                entity=entity.table_name,
                description=f"Duplicate table name: {entity.table_name}",
                suggestion="Merge the duplicate entities into one table",
            ))
        seen_tables.add(entity.table_name)

    return issues


# ============================================================
# STAGES
# ============================================================

class PipelineStages:
    """
    The stage implementations, bound to their collaborators.

    One instance can serve many sessions: all per-run data lives in the
    PipelineState passed to each call.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        publisher: EventPublisher,
        file_source: FileSource,
        execution_sink: ExecutionSink,
        statement_delay: float = STATEMENT_DELAY_SECONDS,
        verbose: bool = VERBOSE,
    ):
        self.gateway = gateway
        self.publisher = publisher
        self.file_source = file_source
        self.execution_sink = execution_sink
        self.statement_delay = statement_delay
        self.verbose = verbose

    def handlers(self) -> Dict[PipelineStatus, StageFn]:
        """Stage to run for each non-terminal status."""
        return {
            PipelineStatus.PARSING: self.parse_files,
            PipelineStatus.INFERRING: self.infer_entities,
            PipelineStatus.GENERATING: self.generate_schema,
            PipelineStatus.VALIDATING: self.validate_schema,
            PipelineStatus.CORRECTING: self.correct_schema,
            PipelineStatus.INSERTING: self.generate_inserts,
            PipelineStatus.EXECUTING: self.execute_sql,
        }

    async def _emit(self, state: PipelineState, event_type: EventType, message: str, payload=None):
        await self.publisher.emit(state.session_id, event_type, message, payload)

    def _log(self, message: str):
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message)

    # --------------------------------------------------------
    # 1. Parse
    # --------------------------------------------------------

    async def parse_files(self, state: PipelineState) -> StateDelta:
        await self._emit(state, EventType.PARSING_STARTED, f"Parsing {len(state.file_keys)} file(s)...",
                         {"fileCount": len(state.file_keys)})

        parsed: List[ParsedFile] = []
        failed: List[str] = []
        for key in state.file_keys:
            filename = PurePosixPath(key.replace("\\", "/")).name or key
            try:
                raw = await self.file_source.read(key)
                result = parse_file(filename, raw)
            except (ParseError, OSError) as e:
                logger.warning(f"✗ Skipping {key}: {e}")
                failed.append(key)
                await self._emit(state, EventType.FILE_PARSED, f"Failed to parse {filename}: {e}",
                                 {"filename": filename, "error": str(e)})
                continue

            parsed.append(result)
            self._log(f"✓ Parsed {filename} as {result.format}: {result.row_count} rows")
            await self._emit(
                state, EventType.FILE_PARSED,
                f"Parsed {filename}: {result.row_count} rows, {len(result.headers)} columns ({result.format})",
                {"filename": filename, "format": result.format, "rowCount": result.row_count,
                 "headers": result.headers},
            )

        return StateDelta(parsed_files=parsed, failed_files=failed)

    # --------------------------------------------------------
    # 2. Infer entities
    # --------------------------------------------------------

    async def infer_entities(self, state: PipelineState) -> StateDelta:
        if not state.parsed_files:
            raise PipelineError("No input files could be parsed")

        await self._emit(state, EventType.INFERRING_STARTED, "Analyzing data structure and inferring entities...")

        prompt = prompts.infer_entities_prompt(state.parsed_files, state.target_dialect)
        response = await self.gateway.invoke(prompt, purpose="infer_entities")
        result = parse_model_json(response.content, EntityListResponse, stage="infer_entities", list_key="entities")
        if not result.entities:
            raise InvalidModelResponse("reply contains no entities", "schema_violation", "infer_entities")

        names = [e.table_name for e in result.entities]
        await self._emit(state, EventType.ENTITIES_INFERRED,
                         f"Identified {len(names)} entities: {', '.join(names)}",
                         {"entityCount": len(names), "entities": names})
        return StateDelta(entities=result.entities, total_cost=response.cost)

    # --------------------------------------------------------
    # 3. Generate schema
    # --------------------------------------------------------

    async def generate_schema(self, state: PipelineState) -> StateDelta:
        await self._emit(state, EventType.GENERATING_SCHEMA,
                         f"Generating {prompts.dialect_name(state.target_dialect)} schema...")

        ordered = SchemaGraph.from_entities(state.entities).order_entities(state.entities)
        prompt = prompts.generate_schema_prompt(ordered, state.target_dialect)
        response = await self.gateway.invoke(prompt, purpose="generate_schema")

        sql = extract_sql(response.content)
        if not _HAS_CREATE_TABLE.search(sql):
            raise InvalidModelResponse("reply contains no CREATE TABLE statement", "invalid_format",
                                       "generate_schema", response.content[:200])
        sql = order_sql(sql, [e.table_name for e in ordered])

        for entity in ordered:
            await self._emit(
                state, EventType.TABLE_CREATED,
                f"Table {entity.table_name} defined ({len(entity.columns)} columns)",
                {"tableName": entity.table_name, "columnCount": len(entity.columns),
                 "foreignKeys": [fk.model_dump(by_alias=True) for fk in entity.foreign_keys]},
            )
        return StateDelta(sql_schema=sql, total_cost=response.cost)

    # --------------------------------------------------------
    # 4. Validate
    # --------------------------------------------------------

    async def validate_schema(self, state: PipelineState) -> StateDelta:
        await self._emit(state, EventType.VALIDATING_SCHEMA, "Validating schema...")

        issues = check_structure(state.entities)

        prompt = prompts.validate_schema_prompt(state.sql_schema, state.entities, state.parsed_files,
                                                state.target_dialect)
        response = await self.gateway.invoke(prompt, purpose="validate_schema")
        try:
            report = parse_model_json(response.content, ValidationReport, stage="validate_schema", list_key="issues")
            issues.extend(report.issues)
        except InvalidModelResponse as e:
            logger.warning(f"⚠️ Validation reply unusable, keeping structural checks only: {e}")

        errors = [i for i in issues if i.severity == IssueSeverity.ERROR]
        await self._emit(
            state, EventType.VALIDATION_COMPLETE,
            f"Validation found {len(issues)} issue(s), {len(errors)} error(s)",
            {"issueCount": len(issues), "errorCount": len(errors),
             "issues": [i.model_dump(mode="json") for i in issues]},
        )
        for issue in errors:
            await self._emit(
                state, EventType.DRIFT_DETECTED,
                f"{issue.entity}: {issue.description}" if issue.entity else issue.description,
                {"severity": issue.severity.value, "resource": issue.entity, "recommendation": issue.suggestion},
            )
        return StateDelta(validation_issues=issues, total_cost=response.cost)

    # --------------------------------------------------------
    # 5. Correct
    # --------------------------------------------------------

    async def correct_schema(self, state: PipelineState) -> StateDelta:
        iteration = state.iteration_count + 1
        prompt = prompts.correct_schema_prompt(state.entities, state.validation_issues, state.target_dialect)
        response = await self.gateway.invoke(prompt, purpose="correct_schema")

        try:
            result = parse_model_json(response.content, EntityListResponse, stage="correct_schema",
                                      list_key="entities")
            if not result.entities:
                raise InvalidModelResponse("reply contains no entities", "schema_violation", "correct_schema")
        except InvalidModelResponse as e:
            logger.warning(f"⚠️ Correction {iteration} unusable, keeping previous entities: {e}")
            await self._emit(
                state, EventType.CORRECTION_STALLED,
                f"Correction iteration {iteration}/{state.max_iterations} produced no usable entities",
                {"iteration": iteration, "reason": str(e)},
            )
            return StateDelta(entities=state.entities, iteration_count=iteration, total_cost=response.cost)

        await self._emit(
            state, EventType.SCHEMA_CORRECTED,
            f"Schema corrected (iteration {iteration}/{state.max_iterations})",
            {"iteration": iteration, "entityCount": len(result.entities),
             "issuesAddressed": len(state.validation_issues)},
        )
        return StateDelta(entities=result.entities, iteration_count=iteration, total_cost=response.cost)

    # --------------------------------------------------------
    # 6. Generate inserts
    # --------------------------------------------------------

    async def generate_inserts(self, state: PipelineState) -> StateDelta:
        await self._emit(state, EventType.DATA_INSERTION_STARTED, "Generating sample data inserts...")

        ordered = SchemaGraph.from_entities(state.entities).order_entities(state.entities)
        prompt = prompts.generate_inserts_prompt(state.sql_schema, state.parsed_files, ordered, state.target_dialect)
        response = await self.gateway.invoke(prompt, purpose="generate_inserts")

        sql = extract_sql(response.content)
        if not _HAS_INSERT.search(sql):
            logger.warning("⚠️ Insert reply contains no INSERT statement; continuing without sample data")
            sql = ""
        else:
            sql = order_sql(sql, [e.table_name for e in ordered])
        return StateDelta(sql_inserts=sql, total_cost=response.cost)

    # --------------------------------------------------------
    # 7. Execute
    # --------------------------------------------------------

    async def _apply(self, state: PipelineState, sql: str, phase: str) -> Tuple[bool, int, int, List[str]]:
        """
        Run a script as one batch; if the batch fails, run its statements one
        at a time. Returns (batch_ok, succeeded, total, errors).
        """
        statements = split_sql_statements(sql)
        result = await self.execution_sink.execute(sql)
        if result.success:
            return True, len(statements), len(statements), []

        logger.warning(f"⚠️ {phase} batch failed ({result.error}); executing statements individually")
        succeeded = 0
        errors: List[str] = []
        for statement in statements:
            outcome = await self.execution_sink.execute(f"{statement};")
            if outcome.success:
                succeeded += 1
            else:
                errors.append(f"{statement[:80]}: {outcome.error}")
                await self._emit(state, EventType.SQL_ERROR, f"SQL error: {outcome.error}",
                                 {"phase": phase, "statement": statement[:500], "error": outcome.error})
            if self.statement_delay > 0:
                await asyncio.sleep(self.statement_delay)
        return False, succeeded, len(statements), errors

    async def execute_sql(self, state: PipelineState) -> StateDelta:
        await self._emit(state, EventType.EXECUTING_SQL, "Applying schema to the target database...")
        report = ExecutionReport()

        batch_ok, applied, total, errors = await self._apply(state, state.sql_schema, "schema")
        report.schema_batch_succeeded = batch_ok
        report.schema_errors = errors
        await self._emit(state, EventType.SCHEMA_APPLIED,
                         f"Schema applied ({applied}/{total} statements)",
                         {"statementCount": applied, "totalStatements": total, "errorCount": len(errors)})

        if state.sql_inserts.strip():
            _, inserted, total_inserts, insert_errors = await self._apply(state, state.sql_inserts, "insert")
            report.inserted_statements = inserted
            report.total_insert_statements = total_inserts
            report.insert_errors = insert_errors
            await self._emit(state, EventType.DATA_INSERTED,
                             f"Inserted sample data ({inserted}/{total_inserts} statements)",
                             {"statementCount": inserted, "totalStatements": total_inserts})

        await self._emit(state, EventType.BUILD_SUCCEEDED,
                         f"Build complete: {len(state.entities)} tables created",
                         {"tableCount": len(state.entities)})
        return StateDelta(execution=report)
