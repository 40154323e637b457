"""
Pydantic schemas for the LakeSchema API.

Request and response bodies use camelCase on the wire; the domain models
in lakeschema.models stay snake_case.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lakeschema.models import BuildEvent, PipelineState, RunOptions, RunRequest


class _APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================
# REQUEST MODELS
# ============================================================

class RunOptionsAPI(_APIModel):
    target_dialect: Optional[str] = Field(None, description="postgres, mysql or sqlite")
    max_iterations: Optional[int] = Field(None, ge=0, le=10, description="Self-correction bound")


class RunRequestAPI(_APIModel):
    """Request body for POST /run."""
    session_id: str = Field(..., min_length=1, description="Caller-chosen run identifier")
    file_keys: List[str] = Field(..., min_length=1, description="Storage keys of the input files")
    options: RunOptionsAPI = Field(default_factory=RunOptionsAPI)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"sessionId": "run-42", "fileKeys": ["uploads/customers.csv", "uploads/orders.json"]},
                {"sessionId": "run-43", "fileKeys": ["sample.xml"],
                 "options": {"targetDialect": "sqlite", "maxIterations": 2}},
            ]
        },
    )

    def to_domain(self) -> RunRequest:
        return RunRequest(
            session_id=self.session_id,
            file_keys=self.file_keys,
            options=RunOptions(
                target_dialect=self.options.target_dialect,
                max_iterations=self.options.max_iterations,
            ),
        )


# ============================================================
# RESPONSE MODELS
# ============================================================

class RunAccepted(_APIModel):
    """Response for POST /run and POST /runs/{id}/resume."""
    ok: bool = True
    session_id: str


class RunStatusResponse(_APIModel):
    """Checkpointed summary of a run."""
    session_id: str
    status: str
    target_dialect: str
    iteration_count: int
    max_iterations: int
    entities: List[str] = Field(default_factory=list)
    parsed_files: List[str] = Field(default_factory=list)
    failed_files: List[str] = Field(default_factory=list)
    error_count: int = 0
    error: Optional[str] = None
    total_cost: float = 0.0
    execution: Optional[Dict[str, Any]] = None

    @classmethod
    def from_state(cls, state: PipelineState) -> "RunStatusResponse":
        return cls(
            session_id=state.session_id,
            status=state.status.value,
            target_dialect=state.target_dialect,
            iteration_count=state.iteration_count,
            max_iterations=state.max_iterations,
            entities=[e.table_name for e in state.entities],
            parsed_files=[f.filename for f in state.parsed_files],
            failed_files=list(state.failed_files),
            error_count=len(state.error_issues),
            error=state.error,
            total_cost=state.total_cost,
            execution=state.execution.model_dump() if state.execution else None,
        )


class EventsResponse(_APIModel):
    session_id: str
    events: List[BuildEvent] = Field(default_factory=list)
    last_sequence: int = 0


class UploadResponse(_APIModel):
    key: str
    size: int


class HealthResponse(_APIModel):
    """Response for GET /health."""
    status: str = "healthy"
    version: str
    llm_models: List[str] = Field(default_factory=list)
    database_type: str
    checkpoint_backend: str
