"""LLM Gateway: provider-abstracted calls with caching, retry and metrics.

Two operations, ``review`` and ``generate``, each routed to Anthropic
(Claude) or Google (Gemini) over their REST APIs with httpx. Every call
checks the shared ResponseCache first and stores the fresh response
afterwards. Identical concurrent calls are not coalesced; the later
write simply replaces the earlier one.

Failure policy:
- authentication failures raise LLMAuthenticationError and are never retried
- rate-limit / overload responses raise LLMRateLimitError and are retried
  with exponential backoff (``backoff.expo``) up to ``max_retries`` times,
  after which LLMRetryExhaustedError is raised
- anything else raises LLMResponseError

Features:
- Cache-aware (content-addressable key over prompt + parts)
- Per-call purpose tagging (review, generation)
- Token tracking from provider usage, word-count estimate otherwise
- Thread-safe in-memory metrics

Usage:
    from edgy.core.gateway import LLMGateway
    gateway = LLMGateway()
    response = await gateway.review(api_key, "claude", system_prompt, parts)
"""

import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import backoff
import httpx

from .config import Settings, get_settings
from .content import ContentPart, ImagePart, LLMResponse, Usage
from .exceptions import (
    LLMAuthenticationError,
    LLMError,
    LLMRateLimitError,
    LLMResponseError,
    LLMRetryExhaustedError,
)
from .pipeline.response_cache import ResponseCache, get_response_cache

logger = logging.getLogger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"

PROVIDER_CLAUDE = "claude"
PROVIDER_GEMINI = "gemini"

PURPOSE_REVIEW = "review"
PURPOSE_GENERATION = "generation"

_ANTHROPIC_RETRY_STATUSES = (429, 529)
_GEMINI_RETRY_STATUSES = (429, 503)

# ── Cost table (USD per 1M tokens) ────────────────────────────────────
_COST_PER_1M_TOKENS = {
    "claude-haiku-4-5-20251001": {"input": 1.00, "output": 5.00},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "gemini-3-flash-preview": {"input": 0.50, "output": 3.00},
    "_default": {"input": 0.0, "output": 0.0},
}


# ── Metrics ────────────────────────────────────────────────────────────

@dataclass
class LLMMetrics:
    """Thread-safe in-memory LLM usage metrics."""

    total_calls: int = 0
    cache_hits: int = 0
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    total_latency_ms: float = 0.0
    errors: int = 0
    retries: int = 0
    calls_by_purpose: dict = field(default_factory=lambda: defaultdict(int))
    estimated_cost_usd: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "cache_hits": self.cache_hits,
            "total_tokens_in": self.total_tokens_in,
            "total_tokens_out": self.total_tokens_out,
            "total_latency_ms": round(self.total_latency_ms, 1),
            "avg_latency_ms": round(self.total_latency_ms / max(self.total_calls, 1), 1),
            "errors": self.errors,
            "retries": self.retries,
            "calls_by_purpose": dict(self.calls_by_purpose),
            "estimated_cost_usd": round(self.estimated_cost_usd, 4),
        }


# ── Wire formats ───────────────────────────────────────────────────────

def _anthropic_content(content: Sequence[ContentPart]) -> List[Dict[str, Any]]:
    blocks = []
    for part in content:
        if isinstance(part, ImagePart):
            blocks.append({
                "type": "image",
                "source": {"type": "base64", "media_type": part.media_type, "data": part.data},
            })
        else:
            blocks.append({"type": "text", "text": part.text})
    return blocks


def _gemini_parts(content: Sequence[ContentPart]) -> List[Dict[str, Any]]:
    parts = []
    for part in content:
        if isinstance(part, ImagePart):
            parts.append({"inline_data": {"mime_type": part.media_type, "data": part.data}})
        else:
            parts.append({"text": part.text})
    return parts


def _json_body(response: httpx.Response, provider: str) -> Dict[str, Any]:
    """Decode a 2xx body, rejecting anything that is not a JSON object."""
    try:
        data = response.json()
    except ValueError as e:
        raise LLMResponseError(f"Malformed {provider} API response: {e}", provider=provider) from e
    if not isinstance(data, dict):
        raise LLMResponseError(f"Malformed {provider} API response: expected an object", provider=provider)
    return data


# ── Gateway ────────────────────────────────────────────────────────────

class LLMGateway:
    """Cache-aware, retrying client for the review and generation models.

    Args:
        cache: Response cache. Defaults to the process-wide cache.
        settings: Model ids, token limits and retry policy.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
        max_retries: Overrides ``settings.llm_max_retries``.
        initial_retry_delay: Overrides ``settings.llm_initial_retry_delay``
            (seconds before the first retry, doubling afterwards).
    """

    def __init__(
        self,
        cache: Optional[ResponseCache] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
        initial_retry_delay: Optional[float] = None,
    ):
        self._settings = settings or get_settings()
        self._cache = cache if cache is not None else get_response_cache()
        self._transport = transport
        self._max_retries = self._settings.llm_max_retries if max_retries is None else max_retries
        self._initial_retry_delay = (
            self._settings.llm_initial_retry_delay
            if initial_retry_delay is None else initial_retry_delay
        )
        self._metrics = LLMMetrics()
        self._lock = threading.Lock()
        logger.info(
            f"LLMGateway initialized (max_retries={self._max_retries}, "
            f"initial_retry_delay={self._initial_retry_delay}s)"
        )

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    # ── Public operations ─────────────────────────────────────────────

    async def review(
        self,
        api_key: str,
        provider: str,
        system_prompt: str,
        content: Sequence[ContentPart],
    ) -> LLMResponse:
        """Call the review model (Claude Haiku or Gemini Flash)."""
        model = (
            self._settings.gemini_model if provider == PROVIDER_GEMINI
            else self._settings.claude_review_model
        )
        return await self._call(
            PURPOSE_REVIEW, api_key, provider, system_prompt, content,
            model, self._settings.review_max_tokens,
        )

    async def generate(
        self,
        api_key: str,
        provider: str,
        system_prompt: str,
        content: Sequence[ContentPart],
    ) -> LLMResponse:
        """Call the generation model (Claude Sonnet or Gemini Flash)."""
        model = (
            self._settings.gemini_model if provider == PROVIDER_GEMINI
            else self._settings.claude_generation_model
        )
        return await self._call(
            PURPOSE_GENERATION, api_key, provider, system_prompt, content,
            model, self._settings.generation_max_tokens,
        )

    # ── Core call path ────────────────────────────────────────────────

    async def _call(
        self,
        purpose: str,
        api_key: str,
        provider: str,
        system_prompt: str,
        content: Sequence[ContentPart],
        model: str,
        max_tokens: int,
    ) -> LLMResponse:
        key = self._cache.make_key(system_prompt, content)
        cached = self._cache.get(key)
        if cached is not None:
            with self._lock:
                self._metrics.cache_hits += 1
            logger.info(f"LLM cache hit for {purpose} request")
            return cached

        send = self._call_gemini if provider == PROVIDER_GEMINI else self._call_anthropic
        t0 = time.time()
        try:
            response = await self._retry_call(
                provider, send, api_key, system_prompt, content, model, max_tokens
            )
        except LLMError:
            self._record_error(purpose, model)
            raise

        latency_ms = (time.time() - t0) * 1000
        self._cache.set(key, response)
        self._record_success(system_prompt, content, response, latency_ms, purpose, model)
        return response

    # ── Retry ─────────────────────────────────────────────────────────

    async def _retry_call(self, provider: str, fn, *args):
        """Execute fn, retrying rate-limit errors with exponential backoff."""

        @backoff.on_exception(
            backoff.expo,
            LLMRateLimitError,
            max_tries=self._max_retries + 1,
            factor=self._initial_retry_delay,
            jitter=None,
            on_backoff=self._on_retry,
        )
        async def _do_call():
            return await fn(*args)

        try:
            return await _do_call()
        except LLMRateLimitError as e:
            name = "Gemini" if provider == PROVIDER_GEMINI else "Anthropic"
            raise LLMRetryExhaustedError(
                f"Rate limited by {name} API after retries. Please try again in a moment.",
                provider=provider,
                status_code=e.status_code,
            ) from e

    def _on_retry(self, details: dict):
        """Log retry events and increment counter."""
        with self._lock:
            self._metrics.retries += 1
        logger.warning(
            f"LLMGateway retry {details['tries']}/{self._max_retries} "
            f"after {details['wait']:.1f}s: {details.get('exception')}"
        )

    # ── Providers ─────────────────────────────────────────────────────

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.llm_timeout, transport=self._transport
            ) as client:
                return await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            raise LLMResponseError(f"LLM request failed: {e}") from e

    async def _call_anthropic(
        self,
        api_key: str,
        system_prompt: str,
        content: Sequence[ContentPart],
        model: str,
        max_tokens: int,
    ) -> LLMResponse:
        logger.debug(f"Calling Anthropic API with model: {model}")
        response = await self._post(
            ANTHROPIC_API_URL,
            headers={
                "content-type": "application/json",
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
            json={
                "model": model,
                "max_tokens": max_tokens,
                "temperature": 0,
                "system": system_prompt,
                "messages": [{"role": "user", "content": _anthropic_content(content)}],
            },
        )

        status = response.status_code
        if status == 401:
            raise LLMAuthenticationError("Invalid Anthropic API key", provider=PROVIDER_CLAUDE, status_code=401)
        if status in _ANTHROPIC_RETRY_STATUSES:
            raise LLMRateLimitError(
                f"Anthropic API returned {status}", provider=PROVIDER_CLAUDE, status_code=status
            )
        if status >= 400:
            raise LLMResponseError(
                f"Anthropic API error ({status}): {response.text[:500]}",
                provider=PROVIDER_CLAUDE, status_code=status,
            )

        data = _json_body(response, "Anthropic")
        blocks = data.get("content")
        text = next(
            (
                b.get("text") for b in (blocks if isinstance(blocks, list) else [])
                if isinstance(b, dict) and b.get("type") == "text"
            ),
            None,
        )
        if not isinstance(text, str) or not text:
            raise LLMResponseError("No text content in Anthropic API response", provider=PROVIDER_CLAUDE)

        usage = data.get("usage")
        return LLMResponse(
            text=text,
            usage=Usage(usage.get("input_tokens", 0), usage.get("output_tokens", 0))
            if isinstance(usage, dict) else None,
        )

    async def _call_gemini(
        self,
        api_key: str,
        system_prompt: str,
        content: Sequence[ContentPart],
        model: str,
        max_tokens: int,
    ) -> LLMResponse:
        logger.debug(f"Calling Gemini API with model: {model}")
        response = await self._post(
            f"{GEMINI_API_URL}/{model}:generateContent",
            params={"key": api_key},
            headers={"content-type": "application/json"},
            json={
                "system_instruction": {"parts": [{"text": system_prompt}]},
                "contents": [{"parts": _gemini_parts(content)}],
                "generationConfig": {"maxOutputTokens": max_tokens, "temperature": 0},
            },
        )

        status = response.status_code
        if status == 400 and "API_KEY_INVALID" in response.text:
            raise LLMAuthenticationError("Invalid Gemini API key", provider=PROVIDER_GEMINI, status_code=400)
        if status in _GEMINI_RETRY_STATUSES:
            raise LLMRateLimitError(
                f"Gemini API returned {status}", provider=PROVIDER_GEMINI, status_code=status
            )
        if status == 404:
            raise LLMResponseError(f"Model not found: {model}", provider=PROVIDER_GEMINI, status_code=404)
        if status >= 400:
            raise LLMResponseError(
                f"Gemini API error ({status}): {response.text[:500]}",
                provider=PROVIDER_GEMINI, status_code=status,
            )

        data = _json_body(response, "Gemini")
        try:
            text = data["candidates"][0]["content"]["parts"][0].get("text")
        except (KeyError, IndexError, TypeError, AttributeError):
            text = None
        if not isinstance(text, str) or not text:
            raise LLMResponseError("No text content in Gemini API response", provider=PROVIDER_GEMINI)

        usage = data.get("usageMetadata")
        return LLMResponse(
            text=text,
            usage=Usage(
                usage.get("promptTokenCount", 0) or 0,
                usage.get("candidatesTokenCount", 0) or 0,
            ) if isinstance(usage, dict) else None,
        )

    # ── Metrics recording ─────────────────────────────────────────────

    def _record_success(
        self,
        system_prompt: str,
        content: Sequence[ContentPart],
        response: LLMResponse,
        latency_ms: float,
        purpose: str,
        model: str,
    ):
        if response.usage is not None:
            tokens_in = response.usage.input_tokens
            tokens_out = response.usage.output_tokens
        else:
            prompt_text = system_prompt + " ".join(
                p.text for p in content if not isinstance(p, ImagePart)
            )
            tokens_in = int(len(prompt_text.split()) * 1.3)  # rough estimate
            tokens_out = int(len(response.text.split()) * 1.3)

        costs = _COST_PER_1M_TOKENS.get(model, _COST_PER_1M_TOKENS["_default"])
        cost = (tokens_in * costs["input"] + tokens_out * costs["output"]) / 1_000_000

        with self._lock:
            m = self._metrics
            m.total_calls += 1
            m.total_tokens_in += tokens_in
            m.total_tokens_out += tokens_out
            m.total_latency_ms += latency_ms
            m.estimated_cost_usd += cost
            m.calls_by_purpose[purpose] += 1

        logger.debug(
            f"LLM call: purpose={purpose} tokens_in={tokens_in} "
            f"tokens_out={tokens_out} latency={latency_ms:.0f}ms model={model}"
        )

    def _record_error(self, purpose: str, model: str):
        with self._lock:
            self._metrics.errors += 1
            self._metrics.calls_by_purpose[f"{purpose}_error"] += 1
        logger.error(f"LLM call failed: purpose={purpose} model={model}")

    # ── Public metrics API ────────────────────────────────────────────

    def get_metrics(self) -> dict:
        """Return a thread-safe snapshot of current metrics."""
        with self._lock:
            result = self._metrics.to_dict()
        result["cache"] = self._cache.get_stats()
        return result

    def reset_metrics(self):
        """Zero all metric counters."""
        with self._lock:
            self._metrics = LLMMetrics()
        logger.info("LLMGateway metrics reset")
