"""HTTP API for Edgy (FastAPI)."""
