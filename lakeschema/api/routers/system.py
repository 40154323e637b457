"""
System router — health check.

Endpoints:
- GET /health — Health check (always available)
"""

from fastapi import APIRouter, Depends

from configs import LLM_MODELS, get_db_type
from lakeschema import __version__
from lakeschema.orchestrator import PipelineOrchestrator

from ..deps import get_orchestrator
from ..schemas import HealthResponse


router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthResponse)
async def health_check(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Check API health and configuration status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        llm_models=list(LLM_MODELS),
        database_type=get_db_type(),
        checkpoint_backend=type(orchestrator.checkpoints).__name__,
    )
