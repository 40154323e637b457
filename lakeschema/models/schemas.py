"""
Pydantic models for structured data flow between pipeline stages.

DESIGN PRINCIPLE:
================
Every stage receives the full PipelineState and returns a StateDelta.
The orchestrator merges deltas with reduce_state(), so the models here
are the only shapes that ever cross a stage boundary.

Entity-shaped models accept the camelCase keys the language model is
asked to produce (tableName, isPrimaryKey, ...) and the snake_case names
used in Python code.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PipelineStatus(str, Enum):
    """
    Status of a run. Non-terminal values name the stage that runs next,
    so a checkpoint's status is also its resume point.
    """
    PARSING = "parsing"
    INFERRING = "inferring"
    GENERATING = "generating"
    VALIDATING = "validating"
    CORRECTING = "correcting"
    INSERTING = "inserting"
    EXECUTING = "executing"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStatus.COMPLETE, PipelineStatus.FAILED)


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class EventType(str, Enum):
    """Notification types published while a run progresses."""
    PARSING_STARTED = "parsing_started"
    FILE_PARSED = "file_parsed"
    INFERRING_STARTED = "inferring_started"
    ENTITIES_INFERRED = "entities_inferred"
    GENERATING_SCHEMA = "generating_schema"
    TABLE_CREATED = "table_created"
    VALIDATING_SCHEMA = "validating_schema"
    VALIDATION_COMPLETE = "validation_complete"
    DRIFT_DETECTED = "drift_detected"
    SCHEMA_CORRECTED = "schema_corrected"
    CORRECTION_STALLED = "correction_stalled"
    DATA_INSERTION_STARTED = "data_insertion_started"
    EXECUTING_SQL = "executing_sql"
    SCHEMA_APPLIED = "schema_applied"
    SQL_ERROR = "sql_error"
    DATA_INSERTED = "data_inserted"
    BUILD_SUCCEEDED = "build_succeeded"
    BUILD_FAILED = "build_failed"


# ============================================================
# Parsed input
# ============================================================

class ParsedFile(BaseModel):
    """Normalized view of one input file. Immutable once parsed."""
    model_config = ConfigDict(frozen=True)

    filename: str = Field(description="Original file name or key")
    format: Literal["csv", "json", "xml", "text"] = Field(description="Parser that produced this view")
    headers: List[str] = Field(default_factory=list, description="Unique column names, first-seen order")
    sample_rows: List[Dict[str, Any]] = Field(default_factory=list, description="Up to 10 records")
    row_count: int = Field(default=0, ge=0, description="True total number of records")
    raw_preview: str = Field(default="", description="Leading slice of the raw content")


# ============================================================
# Inferred schema
# ============================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Column(_CamelModel):
    """A single inferred column."""
    name: str = Field(description="Column name")
    type: str = Field(default="TEXT", description="Dialect-specific SQL type")
    nullable: bool = Field(default=True, description="Whether column allows NULL")
    is_primary_key: bool = Field(default=False, alias="isPrimaryKey", description="Part of the primary key")


class ForeignKey(_CamelModel):
    """Foreign key from one entity column to another entity."""
    column: str = Field(description="Referencing column")
    references_table: str = Field(alias="referencesTable", description="Target table name")
    references_column: str = Field(default="id", alias="referencesColumn", description="Target column name")


class Entity(_CamelModel):
    """An inferred relational table."""
    table_name: str = Field(alias="tableName", description="Table name, unique among entities")
    columns: List[Column] = Field(default_factory=list)
    foreign_keys: List[ForeignKey] = Field(default_factory=list, alias="foreignKeys")
    source_files: List[str] = Field(default_factory=list, alias="sourceFiles")

    @field_validator("foreign_keys", "source_files", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class ValidationIssue(BaseModel):
    """A problem found during validation. Regenerated on every pass."""
    severity: IssueSeverity = Field(default=IssueSeverity.WARNING)
    entity: str = Field(default="", description="Entity the issue refers to")
    description: str = Field(default="")
    suggestion: str = Field(default="")

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value):
        # Models sometimes answer "Error", "critical", "info", ...
        text = str(value or "").strip().lower()
        return IssueSeverity.ERROR if text == "error" else IssueSeverity.WARNING

    @field_validator("entity", "description", "suggestion", mode="before")
    @classmethod
    def _none_as_blank(cls, value):
        return "" if value is None else str(value)


# ============================================================
# Model response shapes
# ============================================================

class EntityListResponse(BaseModel):
    """Expected reply of the inference and correction prompts."""
    entities: List[Entity]


class ValidationReport(BaseModel):
    """Expected reply of the validation prompt."""
    issues: List[ValidationIssue] = Field(default_factory=list)


# ============================================================
# Execution
# ============================================================

class ExecutionReport(BaseModel):
    """Outcome of the execution stage."""
    schema_batch_succeeded: bool = False
    schema_errors: List[str] = Field(default_factory=list)
    inserted_statements: int = 0
    total_insert_statements: int = 0
    insert_errors: List[str] = Field(default_factory=list)


# ============================================================
# Pipeline state
# ============================================================

class PipelineState(BaseModel):
    """
    Complete state of a run at any point.

    Created with empty collections and status=parsing. Stages never
    mutate it; they return a StateDelta that reduce_state() merges.
    """
    session_id: str
    file_keys: List[str] = Field(default_factory=list)
    parsed_files: List[ParsedFile] = Field(default_factory=list)
    failed_files: List[str] = Field(default_factory=list)
    entities: List[Entity] = Field(default_factory=list)
    sql_schema: str = ""
    sql_inserts: str = ""
    validation_issues: List[ValidationIssue] = Field(default_factory=list)

    # Self-correction tracking
    iteration_count: int = Field(default=0, ge=0)
    max_iterations: int = Field(default=3, ge=0)

    status: PipelineStatus = PipelineStatus.PARSING
    error: Optional[str] = None
    target_dialect: str = "postgres"
    total_cost: float = 0.0

    execution: Optional[ExecutionReport] = None
    # Last notification sequence number handed out for this session
    event_sequence: int = 0

    @property
    def error_issues(self) -> List[ValidationIssue]:
        return [i for i in self.validation_issues if i.severity == IssueSeverity.ERROR]

    def can_correct(self) -> bool:
        """Check if another correction iteration is allowed."""
        return self.iteration_count < self.max_iterations


class StateDelta(BaseModel):
    """
    Partial update returned by a stage. Only fields that were explicitly
    set are merged; see reduce_state().
    """
    file_keys: Optional[List[str]] = None
    parsed_files: Optional[List[ParsedFile]] = None
    failed_files: Optional[List[str]] = None
    entities: Optional[List[Entity]] = None
    sql_schema: Optional[str] = None
    sql_inserts: Optional[str] = None
    validation_issues: Optional[List[ValidationIssue]] = None
    iteration_count: Optional[int] = None
    max_iterations: Optional[int] = None
    status: Optional[PipelineStatus] = None
    error: Optional[str] = None
    target_dialect: Optional[str] = None
    total_cost: Optional[float] = None
    execution: Optional[ExecutionReport] = None
    event_sequence: Optional[int] = None


# ============================================================
# Notifications
# ============================================================

def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BuildEvent(BaseModel):
    """One progress notification."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    session_id: str
    sequence: int = Field(ge=1, description="Monotonic per session")
    timestamp: str = Field(default_factory=_utc_now)
    type: str = Field(description="EventType value; consumers must tolerate unknown types")
    message: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict)


# ============================================================
# Run requests
# ============================================================

class RunOptions(BaseModel):
    target_dialect: Optional[str] = None
    max_iterations: Optional[int] = Field(default=None, ge=0, le=10)


class RunRequest(BaseModel):
    session_id: str
    file_keys: List[str]
    options: RunOptions = Field(default_factory=RunOptions)
