"""Exception hierarchy shared across the analysis, gateway and review layers."""

from typing import Optional


class EdgyError(Exception):
    """Base class for all errors raised by Edgy."""


class KnowledgeError(EdgyError):
    """The knowledge directory is missing or cannot be read at all."""


class LLMError(EdgyError):
    """Base class for LLM provider failures."""

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class LLMAuthenticationError(LLMError):
    """The provider rejected the API key. Never retried."""


class LLMRateLimitError(LLMError):
    """Rate-limit (429) or overload (529) response. Retried by the gateway."""


class LLMRetryExhaustedError(LLMError):
    """A transient failure persisted after the retry budget was spent."""


class LLMResponseError(LLMError):
    """Any other non-success status, or a response without text content."""


class ReviewParseError(EdgyError):
    """A review batch response could not be parsed into refinements."""
