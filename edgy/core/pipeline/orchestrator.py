"""Pipeline orchestrator: job lifecycle around analysis and review.

State machine per job: ``pending -> processing -> complete | error``.

1. Heuristic analysis (synchronous, run in a worker thread so progress
   events keep flowing to the event loop)
2. AI review when a credential is available; a review-level error is
   folded into ``llm_error`` instead of failing the job
3. Optional missing-screen generation through a pluggable ScreenGenerator
4. Completion event, then the result is saved in a background task

Any exception escaping these steps marks the job ``error`` and emits a
single ErrorEvent.

Usage:
    orchestrator = PipelineOrchestrator(job_store, gateway)
    async for frame in orchestrator.stream(pipeline_input, options):
        ...
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol, Set

from ..analysis.engine import run_analysis
from ..analysis.models import AnalysisInput, AnalysisOutput, IdCounters, MissingScreenFinding, Screen
from ..config import Settings, get_settings
from ..events import CompleteEvent, ErrorEvent, PipelineEvent, ProgressEvent
from ..knowledge.models import KnowledgeBase
from ..review.reviewer import ReviewOrchestrator, ReviewResult
from .jobs import JobStatus, JobStore

logger = logging.getLogger(__name__)

EventSink = Callable[[PipelineEvent], None]

DEFAULT_DESIGN_TOKENS: Dict[str, Any] = {
    "primaryColor": {"r": 0.09, "g": 0.09, "b": 0.09},
    "backgroundColor": {"r": 1, "g": 1, "b": 1},
    "textColor": {"r": 0.09, "g": 0.09, "b": 0.09},
    "mutedColor": {"r": 0.45, "g": 0.45, "b": 0.45},
    "borderColor": {"r": 0.9, "g": 0.9, "b": 0.9},
    "borderRadius": 8,
    "fontFamily": "Inter",
    "baseFontSize": 14,
    "headingFontSize": 24,
}


@dataclass
class PipelineOptions:
    llm_provider: str = "claude"
    llm_api_key: Optional[str] = None
    generate_missing_screens: bool = False


@dataclass
class PipelineInput:
    file_name: str
    screens: List[Screen]
    design_tokens: Optional[Dict[str, Any]] = None
    component_library: Optional[Dict[str, Any]] = None


@dataclass
class GenerationContext:
    """Everything a ScreenGenerator needs for one run."""
    missing_findings: List[MissingScreenFinding]
    analysis_input: AnalysisInput
    design_tokens: Dict[str, Any]
    component_library: Optional[Dict[str, Any]]
    api_key: str
    provider: str
    emit: EventSink


class ScreenGenerator(Protocol):
    """Produces layouts for missing screens, keyed by missing-screen finding id."""

    async def generate(self, context: GenerationContext, gateway) -> Dict[str, Any]:
        ...


class PipelineOrchestrator:
    """Runs one analysis job end to end and reports through an event sink.

    Args:
        job_store: Where job state and results live.
        gateway: LLMGateway used for review (and handed to the generator).
        knowledge: Knowledge base; the configured one when omitted.
        settings: Runtime settings; ``get_settings()`` when omitted.
        screen_generator: Optional missing-screen generator.
    """

    def __init__(
        self,
        job_store: JobStore,
        gateway,
        knowledge: Optional[KnowledgeBase] = None,
        settings: Optional[Settings] = None,
        screen_generator: Optional[ScreenGenerator] = None,
    ):
        self._jobs = job_store
        self._gateway = gateway
        self._knowledge = knowledge
        self._settings = settings or get_settings()
        self._generator = screen_generator
        self._background: Set[asyncio.Task] = set()

    def _knowledge_base(self) -> KnowledgeBase:
        if self._knowledge is None:
            from ..knowledge.loader import load_knowledge
            self._knowledge = load_knowledge(self._settings.knowledge_dir)
        return self._knowledge

    async def run(
        self,
        pipeline_input: PipelineInput,
        options: PipelineOptions,
        emit: EventSink,
    ) -> Optional[AnalysisOutput]:
        """Run the full job. Returns the final output, or None on failure."""
        job = self._jobs.create(pipeline_input.file_name)

        try:
            t0 = time.time()
            self._jobs.set_status(job.id, JobStatus.PROCESSING)

            analysis_input = AnalysisInput(
                analysis_id=job.id,
                file_name=pipeline_input.file_name,
                screens=pipeline_input.screens,
                timestamp=datetime.now(timezone.utc).isoformat(),
            )
            counters = IdCounters()
            knowledge = self._knowledge_base()
            loop = asyncio.get_running_loop()

            def on_analysis_progress(event: ProgressEvent) -> None:
                loop.call_soon_threadsafe(emit, event)

            emit(ProgressEvent(stage="patterns", message="Starting analysis...", progress=0.1))

            output = await asyncio.to_thread(
                run_analysis, analysis_input, knowledge, on_analysis_progress, counters
            )
            logger.info(f"Heuristic analysis for job {job.id} done in {(time.time() - t0) * 1000:.0f}ms")

            provider = options.llm_provider or "claude"
            api_key = options.llm_api_key or self._settings.credential_for(provider)

            if api_key:
                reviewer = ReviewOrchestrator(
                    self._gateway,
                    knowledge=knowledge,
                    screens_per_batch=self._settings.screens_per_batch,
                    max_concurrent=self._settings.max_concurrent_batches,
                )
                t1 = time.time()
                try:
                    review = await reviewer.review(
                        output, analysis_input, api_key, provider, on_progress=emit, counters=counters
                    )
                except Exception as e:
                    logger.error(f"AI review failed for job {job.id}: {e}", exc_info=True)
                    review = ReviewResult(output=output, was_enhanced=False, error=str(e) or "AI review failed")
                logger.info(
                    f"AI review for job {job.id} done in {(time.time() - t1) * 1000:.0f}ms "
                    f"(enhanced: {review.was_enhanced})"
                )
                output = review.output
                if review.error:
                    output.llm_error = review.error
                    logger.warning(f"AI review error for job {job.id}: {review.error}")
            else:
                logger.info(f"No {provider} credential available, skipping AI review")

            generated_layouts = None
            if (
                options.generate_missing_screens
                and api_key
                and output.missing_screen_findings
                and self._generator is not None
            ):
                emit(ProgressEvent(stage="generating", message="Preparing to generate missing screens...", progress=0.75))
                context = GenerationContext(
                    missing_findings=list(output.missing_screen_findings),
                    analysis_input=analysis_input,
                    design_tokens=pipeline_input.design_tokens or dict(DEFAULT_DESIGN_TOKENS),
                    component_library=pipeline_input.component_library,
                    api_key=api_key,
                    provider=provider,
                    emit=emit,
                )
                generated_layouts = await self._generator.generate(context, self._gateway)
                emit(ProgressEvent(
                    stage="generation_complete",
                    message=f"Generated {len(generated_layouts)} screen layout(s)",
                    progress=0.9,
                ))
            elif options.generate_missing_screens and self._generator is None:
                logger.info("Missing-screen generation requested but no generator is configured")

            analysis = output.to_dict()
            emit(CompleteEvent(analysis=analysis, generated_layouts=generated_layouts))
            self._schedule_save(job.id, analysis, generated_layouts)
            return output

        except asyncio.CancelledError:
            self._jobs.set_error(job.id, "Cancelled")
            raise
        except Exception as e:
            logger.error(f"Pipeline failed for job {job.id}: {e}", exc_info=True)
            message = str(e) or "Pipeline failed"
            self._jobs.set_error(job.id, message)
            emit(ErrorEvent(code="PIPELINE_ERROR", message=message))
            return None

    def _schedule_save(self, job_id: str, analysis: Dict[str, Any], generated_layouts) -> None:
        task = asyncio.create_task(self._jobs.save_result(job_id, analysis, generated_layouts))
        self._track(task)
        task.add_done_callback(lambda t: self._on_save_done(job_id, t))

    def _track(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_save_done(self, job_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            self._jobs.set_error(job_id, "Result save cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to save result for job {job_id}: {error}")
            self._jobs.set_error(job_id, f"Failed to save result: {error}")

    async def drain(self) -> None:
        """Wait for running jobs and pending background saves."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def stream(
        self,
        pipeline_input: PipelineInput,
        options: PipelineOptions,
    ) -> AsyncIterator[str]:
        """Run a job and yield its events as SSE frames, in emission order.

        The job is not tied to the consumer: if the stream is closed early
        the run continues in the background until it completes or fails.
        """
        queue: asyncio.Queue = asyncio.Queue()
        done = object()

        async def runner():
            try:
                await self.run(pipeline_input, options, queue.put_nowait)
            finally:
                queue.put_nowait(done)

        self._track(asyncio.create_task(runner()))
        while True:
            event = await queue.get()
            if event is done:
                break
            yield event.to_sse()
