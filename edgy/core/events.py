"""Progress, completion and error events emitted while a job runs.

Each event serializes to one Server-Sent Events frame via ``to_sse()``:

    event: progress
    data: {"stage": "patterns", "message": "...", "progress": 0.15}
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


@dataclass
class PipelineEvent:
    """Base class for all pipeline events."""

    type: str

    def payload(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_sse(self) -> str:
        """Serialize to Server-Sent Events format."""
        return f"event: {self.type}\ndata: {json.dumps(self.payload(), default=str)}\n\n"


@dataclass
class ProgressEvent(PipelineEvent):
    """Emitted at each stage boundary, and per batch during review."""

    type: str = "progress"
    stage: str = "patterns"
    message: str = ""
    progress: float = 0.0
    screen: Optional[str] = None
    current: Optional[int] = None
    total: Optional[int] = None

    def payload(self) -> Dict[str, Any]:
        data = {"stage": self.stage, "message": self.message, "progress": round(self.progress, 4)}
        for key in ("screen", "current", "total"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class CompleteEvent(PipelineEvent):
    """Emitted once when a job finishes successfully."""

    type: str = "complete"
    analysis: Dict[str, Any] = field(default_factory=dict)
    generated_layouts: Optional[Dict[str, Any]] = None
    prototype_url: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"analysis": self.analysis}
        if self.generated_layouts is not None:
            data["generated_layouts"] = self.generated_layouts
        if self.prototype_url is not None:
            data["prototype_url"] = self.prototype_url
        return data


@dataclass
class ErrorEvent(PipelineEvent):
    """Emitted once when a job fails."""

    type: str = "error"
    code: str = "PIPELINE_ERROR"
    message: str = ""

    def payload(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


ProgressCallback = Callable[[ProgressEvent], None]
