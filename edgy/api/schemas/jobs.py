"""Job response schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JobResponse(BaseModel):
    """A single job, with its result when finished."""
    id: str = Field(..., description="Job UUID")
    file_name: str = Field(..., description="Design file name")
    status: str = Field(..., description="pending, processing, complete or error")
    created_at: str = Field(..., description="Creation timestamp")
    completed_at: Optional[str] = Field(None, description="Completion timestamp")
    error: Optional[str] = Field(None, description="Error message if failed")
    result: Optional[Dict[str, Any]] = Field(None, description="AnalysisOutput")
    generated_layouts: Optional[Dict[str, Any]] = Field(None, description="Generated screen layouts")
    prototype_url: Optional[str] = Field(None, description="Deployed prototype URL")


class JobList(BaseModel):
    """List of jobs (without results)."""
    jobs: List[Dict[str, Any]] = Field(default_factory=list, description="Jobs, newest first")
    count: int = Field(0, description="Number of jobs returned")
