"""LLM usage metrics endpoints."""

from fastapi import APIRouter, Depends

from ..deps import get_gateway

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def get_metrics(gateway=Depends(get_gateway)):
    """Gateway call counts, tokens, cost estimates and cache stats."""
    return gateway.get_metrics()


@router.post("/metrics/reset")
async def reset_metrics(gateway=Depends(get_gateway)):
    gateway.reset_metrics()
    return {"success": True}
