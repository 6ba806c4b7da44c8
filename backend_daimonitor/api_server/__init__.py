"""HTTP API over the sync pipeline (FastAPI)."""
