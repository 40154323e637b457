"""Domain models shared by every layer of the pipeline."""
from .schemas import (
    PipelineStatus,
    IssueSeverity,
    EventType,
    ParsedFile,
    Column,
    ForeignKey,
    Entity,
    ValidationIssue,
    EntityListResponse,
    ValidationReport,
    ExecutionReport,
    PipelineState,
    StateDelta,
    BuildEvent,
    RunOptions,
    RunRequest,
)

__all__ = [
    "PipelineStatus",
    "IssueSeverity",
    "EventType",
    "ParsedFile",
    "Column",
    "ForeignKey",
    "Entity",
    "ValidationIssue",
    "EntityListResponse",
    "ValidationReport",
    "ExecutionReport",
    "PipelineState",
    "StateDelta",
    "BuildEvent",
    "RunOptions",
    "RunRequest",
]
