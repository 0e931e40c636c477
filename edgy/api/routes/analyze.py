"""Analyze endpoint: runs the pipeline and streams progress as SSE."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from ...core.analysis.models import Screen
from ...core.pipeline.orchestrator import PipelineInput, PipelineOptions
from ..deps import get_orchestrator
from ..schemas.analyze import AnalyzeRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analyze"])


@router.post("/analyze")
async def analyze(data: AnalyzeRequest, orchestrator=Depends(get_orchestrator)):
    """Start an analysis job.

    Emits SSE frames in order:
      1. event=progress: zero or more stage updates
      2. event=complete: the final AnalysisOutput, or
         event=error: when the job fails
    """
    if not data.screens:
        raise HTTPException(status_code=400, detail="screens must be a non-empty list")

    try:
        screens = [Screen.from_dict(s.model_dump()) for s in data.screens]
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid screen payload: {e}")

    logger.info(f"Analyze request: {data.file_name} ({len(screens)} screens, provider={data.options.llm_provider})")

    pipeline_input = PipelineInput(
        file_name=data.file_name,
        screens=screens,
        design_tokens=data.design_tokens,
        component_library=data.component_library,
    )
    options = PipelineOptions(
        llm_provider=data.options.llm_provider,
        llm_api_key=data.options.llm_api_key,
        generate_missing_screens=data.options.generate_missing_screens,
    )

    return StreamingResponse(
        orchestrator.stream(pipeline_input, options),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
