"""
Orchestration layer: the model gateway, reply extraction, prompts,
pipeline stages and the state machine that sequences them.
"""
from .json_utils import InvalidModelResponse, extract_json, extract_sql, parse_model_json
from .llm_client import (
    LLMError,
    LLMGateway,
    LLMRequestError,
    LLMResponse,
    LLMUnavailableError,
    ModelGateway,
    RateLimitError,
    TransientLLMError,
    create_llm_gateway,
)
from .stages import PipelineError, PipelineStages, check_structure
from .state_machine import (
    TRANSITIONS,
    PipelineOrchestrator,
    Transition,
    build_orchestrator,
    decide_transition,
    next_status,
    reduce_state,
)

__all__ = [
    "InvalidModelResponse",
    "extract_json",
    "extract_sql",
    "parse_model_json",
    "LLMError",
    "LLMGateway",
    "LLMRequestError",
    "LLMResponse",
    "LLMUnavailableError",
    "ModelGateway",
    "RateLimitError",
    "TransientLLMError",
    "create_llm_gateway",
    "PipelineError",
    "PipelineStages",
    "check_structure",
    "TRANSITIONS",
    "PipelineOrchestrator",
    "Transition",
    "build_orchestrator",
    "decide_transition",
    "next_status",
    "reduce_state",
]
