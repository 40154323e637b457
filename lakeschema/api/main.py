"""
LakeSchema FastAPI Application.

REST trigger layer for the data-lake-to-SQL pipeline. Runs are accepted
immediately and executed as background tasks; all pipeline logic lives in
the orchestrator, none here.

Endpoints:
- POST /run - Start a run
- POST /runs/{session_id}/resume - Resume a run from its checkpoint
- GET /runs/{session_id} - Run status
- GET /runs/{session_id}/events - Progress notifications
- POST /upload - Store an input file
- GET /health - Health check
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from configs import ALLOWED_ORIGINS, LLM_MODELS, get_db_type
from lakeschema import __version__

from .deps import logger
from .routers import runs_router, system_router, upload_router


# ============================================================
# APP LIFECYCLE
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"LakeSchema API started. Target database: {get_db_type()}, "
                f"models: {', '.join(LLM_MODELS)}")
    yield
    logger.info("LakeSchema API shutting down.")


# ============================================================
# FASTAPI APP
# ============================================================

app = FastAPI(
    title="LakeSchema API",
    description="Data lake files → relational schema pipeline",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(runs_router)
app.include_router(upload_router)


# ============================================================
# RUN DIRECTLY (for development)
# ============================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
