"""Provider-neutral message content and response types for LLM calls."""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    """Base64 image without any ``data:`` URL prefix."""
    media_type: str  # "image/jpeg" | "image/png"
    data: str


ContentPart = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class LLMResponse:
    text: str
    usage: Optional[Usage] = None
