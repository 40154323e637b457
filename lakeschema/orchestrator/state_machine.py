"""
Pipeline State Machine and Orchestrator.

DESIGN PRINCIPLE:
================
Control flow is data. The TRANSITIONS table lists every legal move as
(status, Transition) -> status, decide_transition() picks the Transition
from the merged state, and reduce_state() is the only way state changes.

    parsing → inferring → generating → validating ─┬→ inserting → executing → complete
                              ▲                    │
                              └──── correcting ◄───┘  (errors and iterations left)

    any stage raising ───────────────────────────────→ failed

The self-correction loop is bounded: correcting always increments
iteration_count, and validating only routes back while
iteration_count < max_iterations.

CHECKPOINTS:
============
After each stage the merged state (with its next status) is checkpointed.
resume() reloads it and continues from that status, so completed stages
never run twice.
"""
from enum import Enum
import logging
from typing import Dict, Optional, Tuple

from configs import DEFAULT_MAX_ITERATIONS, DEFAULT_TARGET_DIALECT, VERBOSE
from lakeschema.models import EventType, PipelineState, PipelineStatus, RunRequest, StateDelta
from lakeschema.storage.checkpoints import CheckpointStore
from .json_utils import InvalidModelResponse
from .llm_client import LLMError
from .stages import PipelineError, PipelineStages

logger = logging.getLogger("lakeschema.orchestrator")


# ============================================================
# TRANSITION TABLE
# ============================================================

class Transition(str, Enum):
    NEXT = "next"
    NEEDS_CORRECTION = "needs_correction"
    ACCEPTED = "accepted"
    FATAL = "fatal"


S = PipelineStatus

TRANSITIONS: Dict[Tuple[PipelineStatus, Transition], PipelineStatus] = {
    (S.PARSING, Transition.NEXT): S.INFERRING,
    (S.INFERRING, Transition.NEXT): S.GENERATING,
    (S.GENERATING, Transition.NEXT): S.VALIDATING,
    (S.VALIDATING, Transition.NEEDS_CORRECTION): S.CORRECTING,
    (S.VALIDATING, Transition.ACCEPTED): S.INSERTING,
    (S.CORRECTING, Transition.NEXT): S.GENERATING,
    (S.INSERTING, Transition.NEXT): S.EXECUTING,
    (S.EXECUTING, Transition.NEXT): S.COMPLETE,
}


def decide_transition(state: PipelineState) -> Transition:
    """Condition to apply once the stage named by state.status has been merged."""
    if state.status == PipelineStatus.VALIDATING:
        if state.error_issues and state.can_correct():
            return Transition.NEEDS_CORRECTION
        return Transition.ACCEPTED
    return Transition.NEXT


def next_status(status: PipelineStatus, transition: Transition) -> PipelineStatus:
    if status.is_terminal:
        raise ValueError(f"{status.value} is terminal")
    if transition == Transition.FATAL:
        return PipelineStatus.FAILED
    try:
        return TRANSITIONS[(status, transition)]
    except KeyError:
        raise ValueError(f"No transition from {status.value} on {transition.value}")


def reduce_state(state: PipelineState, delta: StateDelta) -> PipelineState:
    """
    Merge a delta into a new state. Fields explicitly set on the delta
    replace the current value, except total_cost, which accumulates.
    """
    updates = {name: getattr(delta, name) for name in delta.model_fields_set}
    if "total_cost" in updates:
        updates["total_cost"] = state.total_cost + (updates["total_cost"] or 0.0)
    return state.model_copy(update=updates)


# ============================================================
# ORCHESTRATOR
# ============================================================

class PipelineOrchestrator:
    """
    Drives a run through the state machine.

    Usage:
        orchestrator = PipelineOrchestrator(stages, checkpoints)
        state = await orchestrator.run(RunRequest(session_id="s1", file_keys=["a.csv"]))
        state = await orchestrator.resume("s1")
    """

    def __init__(self, stages: PipelineStages, checkpoints: CheckpointStore, verbose: bool = VERBOSE):
        self.stages = stages
        self.checkpoints = checkpoints
        self.publisher = stages.publisher
        self.verbose = verbose

    @staticmethod
    def new_state(request: RunRequest) -> PipelineState:
        options = request.options
        return PipelineState(
            session_id=request.session_id,
            file_keys=list(request.file_keys),
            target_dialect=options.target_dialect or DEFAULT_TARGET_DIALECT,
            max_iterations=DEFAULT_MAX_ITERATIONS if options.max_iterations is None else options.max_iterations,
        )

    async def run(self, request: RunRequest) -> PipelineState:
        """
        Start a fresh run, replacing any checkpoint of the same session.

        Event numbering continues from the session's previous run, so
        sequence numbers never repeat within a session.
        """
        previous = await self.checkpoints.load(request.session_id)
        sequence = max(self.publisher.current_sequence(request.session_id),
                       previous.event_sequence if previous else 0)
        state = reduce_state(self.new_state(request), StateDelta(event_sequence=sequence))
        self._log(f"▶ Run {state.session_id}: {len(state.file_keys)} file(s), "
                  f"dialect={state.target_dialect}, max_iterations={state.max_iterations}")
        await self._checkpoint(state)
        return await self._drive(state)

    async def resume(self, session_id: str) -> PipelineState:
        """
        Continue a run from its last checkpoint. Terminal runs are returned
        unchanged.

        Raises:
            PipelineError: no checkpoint exists for the session
        """
        state = await self.checkpoints.load(session_id)
        if state is None:
            raise PipelineError(f"No checkpoint found for session {session_id}")
        if state.status.is_terminal:
            self._log(f"Run {session_id} already {state.status.value}; nothing to resume")
            return state
        self._log(f"↻ Resuming {session_id} at {state.status.value}")
        return await self._drive(state)

    async def _drive(self, state: PipelineState) -> PipelineState:
        session_id = state.session_id
        self.publisher.seed(session_id, state.event_sequence)
        handlers = self.stages.handlers()

        while not state.status.is_terminal:
            status = state.status
            self._log(f"→ {status.value}")
            try:
                delta = await handlers[status](state)
            except Exception as e:
                state = await self._fail(state, e)
                break

            state = reduce_state(state, delta)
            state = reduce_state(state, StateDelta(
                status=next_status(status, decide_transition(state)),
                event_sequence=self.publisher.current_sequence(session_id),
            ))
            await self._checkpoint(state)

        self._log(f"■ Run {session_id} finished: {state.status.value} (cost ${state.total_cost:.4f})")
        return state

    async def _fail(self, state: PipelineState, error: Exception) -> PipelineState:
        status = state.status
        message = str(error) or type(error).__name__
        if isinstance(error, (LLMError, InvalidModelResponse, PipelineError)):
            logger.error(f"✗ {status.value} failed: {message}")
        else:
            logger.exception(f"✗ Unexpected error during {status.value}")

        state = reduce_state(state, StateDelta(error=message, status=next_status(status, Transition.FATAL)))
        await self.publisher.emit(state.session_id, EventType.BUILD_FAILED, f"Build failed: {message}",
                                  {"error": message, "stage": status.value})
        state = reduce_state(state, StateDelta(event_sequence=self.publisher.current_sequence(state.session_id)))
        await self._checkpoint(state)
        return state

    async def _checkpoint(self, state: PipelineState):
        try:
            await self.checkpoints.save(state)
        except Exception as e:
            logger.warning(f"⚠️ Checkpoint for {state.session_id} failed: {e}")

    def _log(self, message: str):
        logger.log(logging.INFO if self.verbose else logging.DEBUG, message)


def build_orchestrator(
    gateway,
    publisher,
    file_source,
    execution_sink,
    checkpoints: CheckpointStore,
    statement_delay: Optional[float] = None,
    verbose: bool = VERBOSE,
) -> PipelineOrchestrator:
    """Wire stages and orchestrator from their collaborators."""
    kwargs = {} if statement_delay is None else {"statement_delay": statement_delay}
    stages = PipelineStages(gateway, publisher, file_source, execution_sink, verbose=verbose, **kwargs)
    return PipelineOrchestrator(stages, checkpoints, verbose=verbose)
