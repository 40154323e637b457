"""
Shared dependencies for the LakeSchema API.

Provides:
- Structured logging for every lakeschema.* logger
- Singleton collaborators (event sink, storage, checkpoints, orchestrator)
  created once and reused per request
- reset helpers so tests can swap collaborators through FastAPI's
  dependency_overrides or by calling the setters directly
"""

import logging
from typing import Optional

from configs import LOG_LEVEL, STORAGE_DIR, VERBOSE
from lakeschema.adapters import create_execution_sink
from lakeschema.orchestrator import PipelineOrchestrator, build_orchestrator, create_llm_gateway
from lakeschema.storage import (
    CheckpointStore,
    EventPublisher,
    FanoutEventSink,
    FileSource,
    FileStorage,
    InMemoryEventSink,
    LocalDirectoryStorage,
    LoggingEventSink,
    create_checkpoint_store,
)


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

def setup_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """Configure structured logging for the pipeline and the API."""
    logger = logging.getLogger("lakeschema")

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    return logger


logger = setup_logging()


# =============================================================================
# SINGLETONS
# =============================================================================

_event_sink: Optional[InMemoryEventSink] = None
_storage: Optional[FileStorage] = None
_checkpoints: Optional[CheckpointStore] = None
_orchestrator: Optional[PipelineOrchestrator] = None


def get_event_sink() -> InMemoryEventSink:
    """Events kept in memory so GET /runs/{id}/events can replay them."""
    global _event_sink
    if _event_sink is None:
        _event_sink = InMemoryEventSink()
    return _event_sink


def get_storage() -> FileStorage:
    global _storage
    if _storage is None:
        logger.info(f"Using local file storage at {STORAGE_DIR}")
        _storage = LocalDirectoryStorage(STORAGE_DIR)
    return _storage


def get_checkpoints() -> CheckpointStore:
    global _checkpoints
    if _checkpoints is None:
        _checkpoints = create_checkpoint_store()
    return _checkpoints


def get_orchestrator() -> PipelineOrchestrator:
    """
    Get or create the singleton orchestrator.

    It shares the event sink, storage and checkpoint store above, so
    whatever a background run emits or checkpoints is visible to the
    status and events endpoints.
    """
    global _orchestrator
    if _orchestrator is None:
        logger.info("Creating singleton PipelineOrchestrator")
        publisher = EventPublisher(FanoutEventSink([get_event_sink(), LoggingEventSink()]))
        _orchestrator = build_orchestrator(
            gateway=create_llm_gateway(verbose=VERBOSE),
            publisher=publisher,
            file_source=FileSource(get_storage()),
            execution_sink=create_execution_sink(),
            checkpoints=get_checkpoints(),
            verbose=VERBOSE,
        )
    return _orchestrator


def set_orchestrator(orchestrator: PipelineOrchestrator) -> None:
    """Install a pre-built orchestrator (tests, embedding applications)."""
    global _orchestrator
    _orchestrator = orchestrator


def reset_dependencies() -> None:
    """Drop every singleton (useful for testing)."""
    global _event_sink, _storage, _checkpoints, _orchestrator
    _event_sink = None
    _storage = None
    _checkpoints = None
    _orchestrator = None
