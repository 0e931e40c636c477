"""Analyze request schemas."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ScreenPayload(BaseModel):
    """One screen as extracted from the design file."""
    screen_id: str = Field(..., description="Screen (frame) ID")
    name: str = Field("", description="Screen name")
    order: int = Field(0, description="Position in the flow")
    thumbnail_base64: Optional[str] = Field(None, description="Screenshot, optionally as a data URL")
    width: float = Field(0, description="Frame width")
    height: float = Field(0, description="Frame height")
    x: float = Field(0, description="Canvas x position")
    y: float = Field(0, description="Canvas y position")
    node_tree: Dict[str, Any] = Field(..., description="Root visual node")


class AnalyzeOptions(BaseModel):
    """Per-request pipeline options."""
    llm_provider: Literal["claude", "gemini"] = Field("claude", description="AI review provider")
    llm_api_key: Optional[str] = Field(None, description="Provider API key; server key when omitted")
    generate_missing_screens: bool = Field(False, description="Generate layouts for missing screens")


class AnalyzeRequest(BaseModel):
    """Start-analysis request."""
    file_name: str = Field("Untitled", description="Design file name")
    screens: Optional[List[ScreenPayload]] = Field(None, description="Screens to analyze")
    design_tokens: Optional[Dict[str, Any]] = Field(None, description="Design tokens for generation")
    component_library: Optional[Dict[str, Any]] = Field(None, description="Discovered component library")
    options: AnalyzeOptions = Field(default_factory=AnalyzeOptions)
