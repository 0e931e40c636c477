"""Review orchestrator: additive AI refinement of a locked heuristic report.

Screens are split into fixed-size batches. Each batch becomes one
gateway review call; calls run through a pull-based worker pool capped
at ``max_concurrent`` in-flight requests, and results land in a
pre-sized list by batch index so merge order never depends on
completion order.

A batch whose call fails (with a provider error or anything else) or
whose response cannot be parsed is dropped with a diagnostic; the
remaining batches still merge. An authentication failure aborts the
review, since every other batch would fail the same way.

Merge is additive-only. A new AnalysisOutput is built from the original
lists plus appended AI findings (``ai_generated=True``); no existing
finding is removed, reordered or modified, and the summary is recounted
from the final lists.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from ..analysis.models import (
    SEVERITIES,
    AnalysisInput,
    AnalysisOutput,
    Finding,
    IdCounters,
    Recommendation,
    Screen,
    ScreenResult,
    build_summary,
)
from ..content import LLMResponse
from ..events import ProgressCallback, ProgressEvent
from ..exceptions import LLMAuthenticationError, LLMError, ReviewParseError
from ..knowledge.models import KnowledgeBase
from .prompts import build_batch_message, build_system_prompt

logger = logging.getLogger(__name__)

SCREENS_PER_BATCH = 4
MAX_CONCURRENT_BATCHES = 3

_FENCE_START = re.compile(r"^```(?:json)?\s*")
_FENCE_END = re.compile(r"\s*```$")

T = TypeVar("T")


# ── Refinement contract ───────────────────────────────────────────────


@dataclass
class AdditionalFinding:
    category: str
    severity: str
    title: str
    description: str
    recommendation: str


@dataclass
class ScreenRefinement:
    screen_id: str
    additional_findings: List[AdditionalFinding] = field(default_factory=list)


@dataclass
class Refinement:
    screens: List[ScreenRefinement] = field(default_factory=list)
    flow_insights: List[str] = field(default_factory=list)
    suggested_flows: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ReviewResult:
    output: AnalysisOutput
    was_enhanced: bool
    error: Optional[str] = None
    diagnostics: List[str] = field(default_factory=list)
    flow_insights: List[str] = field(default_factory=list)
    suggested_flows: List[Dict[str, Any]] = field(default_factory=list)


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_END.sub("", _FENCE_START.sub("", text))
    return text


def _parse_additional(raw: Any) -> Optional[AdditionalFinding]:
    if not isinstance(raw, dict):
        return None
    title = raw.get("title")
    severity = str(raw.get("severity", "")).lower()
    if not title or severity not in SEVERITIES:
        return None
    return AdditionalFinding(
        category=str(raw.get("category") or "general"),
        severity=severity,
        title=str(title),
        description=str(raw.get("description") or ""),
        recommendation=str(raw.get("recommendation") or ""),
    )


def parse_refinement(text: str) -> Refinement:
    """Parse one batch response.

    Raises:
        ReviewParseError: If the text is not a JSON object with a
            ``screens`` array.
    """
    try:
        data = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise ReviewParseError(f"Failed to parse review response: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("screens"), list):
        raise ReviewParseError("Invalid review response: missing 'screens' array")

    screens = []
    for raw_screen in data["screens"]:
        if not isinstance(raw_screen, dict) or not raw_screen.get("screen_id"):
            continue
        additions = [_parse_additional(a) for a in raw_screen.get("additional_findings") or []]
        screens.append(
            ScreenRefinement(
                screen_id=str(raw_screen["screen_id"]),
                additional_findings=[a for a in additions if a is not None],
            )
        )

    insights = data.get("flow_insights") or []
    suggested = data.get("suggested_flows") or []
    return Refinement(
        screens=screens,
        flow_insights=[str(i) for i in insights if isinstance(i, str)],
        suggested_flows=[s for s in suggested if isinstance(s, dict)],
    )


# ── Merge ─────────────────────────────────────────────────────────────


def merge_refinements(
    original: AnalysisOutput,
    refinements: Sequence[Refinement],
    counters: IdCounters,
) -> AnalysisOutput:
    """Build a new output with AI findings appended to their screens."""
    additions: Dict[str, List[Finding]] = {}
    known = {s.screen_id for s in original.screens}

    for refinement in refinements:
        for screen_ref in refinement.screens:
            if screen_ref.screen_id not in known:
                logger.debug(f"Ignoring refinement for unknown screen {screen_ref.screen_id}")
                continue
            for extra in screen_ref.additional_findings:
                additions.setdefault(screen_ref.screen_id, []).append(
                    Finding(
                        id=counters.next_ai_finding_id(),
                        rule_id=f"ai-{extra.category}",
                        category=extra.category,
                        severity=extra.severity,
                        title=extra.title,
                        description=extra.description,
                        affected_nodes=[],
                        recommendation=Recommendation(message=extra.recommendation, components=[]),
                        ai_generated=True,
                    )
                )

    screens = [
        ScreenResult(
            screen_id=s.screen_id,
            name=s.name,
            findings=list(s.findings) + additions.get(s.screen_id, []),
        )
        for s in original.screens
    ]
    flow_findings = list(original.flow_findings)
    missing = list(original.missing_screen_findings)

    return AnalysisOutput(
        analysis_id=original.analysis_id,
        completed_at=original.completed_at,
        summary=build_summary(original.summary.screens_analyzed, screens, flow_findings, missing),
        screens=screens,
        flow_findings=flow_findings,
        missing_screen_findings=missing,
        llm_enhanced=True,
        llm_error=original.llm_error,
    )


# ── Bounded concurrency ───────────────────────────────────────────────


async def run_bounded(tasks: Sequence[Callable[[], Awaitable[T]]], limit: int) -> List[T]:
    """Run task factories with at most ``limit`` in flight, results in input order."""
    results: List[Optional[T]] = [None] * len(tasks)
    next_index = 0

    async def worker():
        nonlocal next_index
        while next_index < len(tasks):
            index = next_index
            next_index += 1
            results[index] = await tasks[index]()

    workers = [worker() for _ in range(min(limit, len(tasks)))]
    await asyncio.gather(*workers)
    return results


@dataclass
class _BatchOutcome:
    response: Optional[LLMResponse] = None
    error: Optional[Exception] = None


# ── Orchestrator ──────────────────────────────────────────────────────


class ReviewOrchestrator:
    """Batches screens, dispatches gateway calls and merges additively.

    Args:
        gateway: LLMGateway (anything with an async ``review`` method).
        knowledge: Used for category component hints in the system prompt.
        screens_per_batch: Screens per review call (default: 4).
        max_concurrent: Max in-flight review calls (default: 3).
    """

    def __init__(
        self,
        gateway,
        knowledge: Optional[KnowledgeBase] = None,
        screens_per_batch: int = SCREENS_PER_BATCH,
        max_concurrent: int = MAX_CONCURRENT_BATCHES,
    ):
        self._gateway = gateway
        self._knowledge = knowledge
        self.screens_per_batch = screens_per_batch
        self.max_concurrent = max_concurrent

    def make_batches(self, screens: List[Screen]) -> List[List[Screen]]:
        size = self.screens_per_batch
        return [screens[i:i + size] for i in range(0, len(screens), size)]

    async def review(
        self,
        output: AnalysisOutput,
        analysis_input: AnalysisInput,
        api_key: str,
        provider: str = "claude",
        on_progress: Optional[ProgressCallback] = None,
        counters: Optional[IdCounters] = None,
    ) -> ReviewResult:
        """Review a heuristic report. Never raises for provider failures."""
        if output.summary.total_findings == 0:
            return ReviewResult(output=output, was_enhanced=False)

        counters = counters or IdCounters()

        def emit(message: str, progress: float, **extra):
            if on_progress is not None:
                on_progress(ProgressEvent(stage="llm_review", message=message, progress=progress, **extra))

        emit("Preparing context for AI review...", 0.6)

        categories = {f.category for s in output.screens for f in s.findings}
        categories.update(f.category for f in output.flow_findings)
        mappings = self._knowledge.mappings if self._knowledge is not None else None
        system_prompt = build_system_prompt(categories, mappings)

        batches = self.make_batches(analysis_input.screens)
        total = len(batches)
        provider_name = "Gemini" if provider == "gemini" else "Claude"
        emit(
            f"Reviewing {len(analysis_input.screens)} screens with {provider_name} "
            f"({total} batch{'es' if total != 1 else ''})...",
            0.65,
        )
        logger.info(f"Sending {total} review batch(es): {[len(b) for b in batches]} screens each")

        completed = 0

        def make_task(index: int, batch: List[Screen]):
            async def task() -> _BatchOutcome:
                nonlocal completed
                content = build_batch_message(output, analysis_input.file_name, batch, index == 0)
                t0 = time.time()
                try:
                    response = await self._gateway.review(api_key, provider, system_prompt, content)
                    outcome = _BatchOutcome(response=response)
                    logger.info(f"Review batch {index + 1}/{total} done in {(time.time() - t0) * 1000:.0f}ms")
                except LLMError as e:
                    outcome = _BatchOutcome(error=e)
                    logger.warning(f"Review batch {index + 1}/{total} failed: {e}")
                except Exception as e:
                    outcome = _BatchOutcome(error=e)
                    logger.error(f"Review batch {index + 1}/{total} raised unexpectedly: {e}", exc_info=True)
                completed += 1
                emit(
                    f"Reviewed batch {completed}/{total}...",
                    0.65 + (completed / total) * 0.05,
                    current=completed,
                    total=total,
                )
                return outcome
            return task

        outcomes = await run_bounded(
            [make_task(i, b) for i, b in enumerate(batches)], self.max_concurrent
        )

        auth_failure = next(
            (o.error for o in outcomes if isinstance(o.error, LLMAuthenticationError)), None
        )
        if auth_failure is not None:
            logger.error(f"AI review aborted: {auth_failure}")
            return ReviewResult(output=output, was_enhanced=False, error=str(auth_failure))

        emit("Applying AI refinements...", 0.7)

        refinements: List[Refinement] = []
        diagnostics: List[str] = []
        for index, outcome in enumerate(outcomes):
            if outcome.error is not None:
                diagnostics.append(f"batch {index + 1}: {outcome.error}")
                continue
            try:
                refinements.append(parse_refinement(outcome.response.text))
            except ReviewParseError as e:
                diagnostics.append(f"batch {index + 1}: {e}")
                logger.warning(f"Review batch {index + 1} parse failed, skipping: {e}")

        if not refinements:
            message = f"AI review produced no usable batches ({'; '.join(diagnostics)})"
            logger.warning(message)
            return ReviewResult(output=output, was_enhanced=False, error=message, diagnostics=diagnostics)

        merged = merge_refinements(output, refinements, counters)
        added = merged.summary.total_findings - output.summary.total_findings
        logger.info(f"AI review merged {len(refinements)}/{total} batches, {added} findings added")

        return ReviewResult(
            output=merged,
            was_enhanced=True,
            diagnostics=diagnostics,
            flow_insights=[i for r in refinements for i in r.flow_insights],
            suggested_flows=[s for r in refinements for s in r.suggested_flows],
        )
