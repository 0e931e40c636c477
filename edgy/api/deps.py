"""FastAPI dependencies for Edgy.

Shared services live on ``app.state`` and are injected via Depends().
"""

import logging

from fastapi import Request

logger = logging.getLogger(__name__)


async def get_job_store(request: Request):
    """Get JobStore from app state."""
    return request.app.state.job_store


async def get_gateway(request: Request):
    """Get LLMGateway from app state."""
    return request.app.state.gateway


async def get_orchestrator(request: Request):
    """Get PipelineOrchestrator from app state."""
    return request.app.state.orchestrator
