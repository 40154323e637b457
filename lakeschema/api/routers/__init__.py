from .runs import router as runs_router
from .system import router as system_router
from .upload import router as upload_router

__all__ = ["runs_router", "system_router", "upload_router"]
