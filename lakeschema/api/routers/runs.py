"""
Runs router — starts, resumes and inspects pipeline runs.

Endpoints:
- POST /run                       — Start a run in the background
- POST /runs/{session_id}/resume  — Continue a run from its checkpoint
- GET  /runs/{session_id}         — Checkpointed state summary
- GET  /runs/{session_id}/events  — Notifications after a sequence number
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from lakeschema.models import RunRequest
from lakeschema.orchestrator import PipelineOrchestrator
from lakeschema.storage import InMemoryEventSink

from ..deps import get_event_sink, get_orchestrator, logger
from ..schemas import EventsResponse, RunAccepted, RunRequestAPI, RunStatusResponse


router = APIRouter(tags=["Runs"])


# =============================================================================
# BACKGROUND TASKS
# =============================================================================

async def _run_pipeline(orchestrator: PipelineOrchestrator, request: RunRequest):
    # Stage failures already end as status=failed; this catches the rest.
    try:
        state = await orchestrator.run(request)
        logger.info(f"Run {request.session_id} finished with status {state.status.value}")
    except Exception:
        logger.exception(f"Run {request.session_id} crashed outside the state machine")


async def _resume_pipeline(orchestrator: PipelineOrchestrator, session_id: str):
    try:
        state = await orchestrator.resume(session_id)
        logger.info(f"Resumed run {session_id} finished with status {state.status.value}")
    except Exception:
        logger.exception(f"Resume of {session_id} crashed outside the state machine")


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/run", response_model=RunAccepted, status_code=status.HTTP_202_ACCEPTED)
async def start_run(
    request: RunRequestAPI,
    background_tasks: BackgroundTasks,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Accept a run and return immediately.

    Progress is reported through GET /runs/{session_id}/events; the final
    outcome is a build_succeeded or build_failed event.
    """
    logger.info(f"Accepted run {request.session_id} ({len(request.file_keys)} file(s))")
    background_tasks.add_task(_run_pipeline, orchestrator, request.to_domain())
    return RunAccepted(session_id=request.session_id)


@router.post("/runs/{session_id}/resume", response_model=RunAccepted, status_code=status.HTTP_202_ACCEPTED)
async def resume_run(
    session_id: str,
    background_tasks: BackgroundTasks,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    state = await orchestrator.checkpoints.load(session_id)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No checkpoint found for session '{session_id}'"
        )
    if state.status.is_terminal:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Run '{session_id}' already {state.status.value}"
        )

    background_tasks.add_task(_resume_pipeline, orchestrator, session_id)
    return RunAccepted(session_id=session_id)


@router.get("/runs/{session_id}", response_model=RunStatusResponse)
async def get_run(session_id: str, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Return the last checkpoint of a run."""
    state = await orchestrator.checkpoints.load(session_id)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Run '{session_id}' not found"
        )
    return RunStatusResponse.from_state(state)


@router.get("/runs/{session_id}/events", response_model=EventsResponse)
async def get_run_events(
    session_id: str,
    after: int = Query(0, ge=0, description="Only events with a greater sequence number"),
    sink: InMemoryEventSink = Depends(get_event_sink),
):
    events = sink.get_events(session_id, after=after)
    last_sequence = events[-1].sequence if events else after
    return EventsResponse(session_id=session_id, events=events, last_sequence=last_sequence)
