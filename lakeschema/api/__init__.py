"""HTTP trigger surface for the pipeline (FastAPI)."""
