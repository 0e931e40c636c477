"""Unit tests for PipelineOrchestrator.

Tests cover:
- Job lifecycle: pending -> processing -> complete | error
- Review skipped without a credential
- Review errors folded into llm_error, job still completes
- Unexpected failures become an error event and an error job
- Failed result saves mark the job error
- SSE framing via stream(), job survives an early close
- Optional screen generator hook
"""

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import edgy
from edgy.core.config import Settings
from edgy.core.content import LLMResponse
from edgy.core.events import CompleteEvent, ErrorEvent, ProgressEvent
from edgy.core.exceptions import LLMRetryExhaustedError
from edgy.core.analysis.models import Screen, VisualNode
from edgy.core.knowledge.loader import load_knowledge
from edgy.core.pipeline.jobs import JobStatus, JobStore
from edgy.core.pipeline.orchestrator import (
    DEFAULT_DESIGN_TOKENS,
    PipelineInput,
    PipelineOptions,
    PipelineOrchestrator,
)

KNOWLEDGE_DIR = str(Path(edgy.__file__).parent / "knowledge")


# ── Fixtures ──────────────────────────────────────────────────────────────


class FakeGateway:
    """Stands in for LLMGateway.review."""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def review(self, api_key, provider, system_prompt, content):
        self.calls.append((api_key, provider))
        if self.error is not None:
            raise self.error
        return LLMResponse(text=self.text)


class FailingJobStore(JobStore):

    async def save_result(self, job_id, result, generated_layouts=None, prototype_url=None):
        raise RuntimeError("disk full")


class FakeGenerator:

    def __init__(self):
        self.contexts = []

    async def generate(self, context, gateway):
        self.contexts.append(context)
        return {f.id: {"name": f.missing_screen.name} for f in context.missing_findings}


def _node(node_id, name, children=None, **kwargs) -> VisualNode:
    return VisualNode(id=node_id, name=name, type="FRAME", children=children or [], **kwargs)


def _make_input() -> PipelineInput:
    login = _node("1:1", "Login", children=[
        _node("1:2", "Email Input", component_name="Input"),
        _node("1:3", "Password Input", component_name="Input"),
        _node("1:4", "Submit Button", component_name="Button"),
    ])
    return PipelineInput(file_name="Auth.fig", screens=[Screen(screen_id="1:1", name="Login", node_tree=login)])


def _make_orchestrator(gateway=None, settings=None, generator=None, store=None):
    store = store or JobStore()
    orchestrator = PipelineOrchestrator(
        store,
        gateway or FakeGateway(text='{"screens": []}'),
        knowledge=load_knowledge(KNOWLEDGE_DIR),
        settings=settings or Settings(),
        screen_generator=generator,
    )
    return orchestrator, store


def _run(orchestrator, options=None):
    events = []

    async def main():
        output = await orchestrator.run(_make_input(), options or PipelineOptions(), events.append)
        await orchestrator.drain()
        return output

    return asyncio.run(main()), events


REFINEMENT = json.dumps({
    "screens": [{
        "screen_id": "1:1",
        "findings": [],
        "additional_findings": [{
            "category": "loading-states",
            "severity": "info",
            "title": "No loading state on submit",
            "description": "Submit shows no progress",
            "recommendation": "Add a spinner to the button",
        }],
    }],
    "flow_insights": ["Login has no recovery path"],
})


# ── Tests: Lifecycle ──────────────────────────────────────────────────────


class TestLifecycle:

    def test_no_credential_skips_review(self):
        gateway = FakeGateway(text=REFINEMENT)
        orchestrator, store = _make_orchestrator(gateway=gateway)

        output, events = _run(orchestrator)

        assert gateway.calls == []
        assert output.llm_enhanced is None
        assert isinstance(events[0], ProgressEvent)
        assert events[0].message == "Starting analysis..."
        assert isinstance(events[-1], CompleteEvent)
        assert [type(e) for e in events].count(CompleteEvent) == 1

        job = store.list()[0]
        assert job.status == JobStatus.COMPLETE
        assert job.result == events[-1].analysis
        assert job.result["analysis_id"] == job.id

    def test_progress_is_monotonic(self):
        orchestrator, _ = _make_orchestrator()

        _, events = _run(orchestrator)

        progress = [e.progress for e in events if isinstance(e, ProgressEvent)]
        assert progress == sorted(progress)
        assert [e.stage for e in events if isinstance(e, ProgressEvent)][:2] == ["patterns", "patterns"]

    def test_unexpected_failure_marks_job_error(self):
        orchestrator, store = _make_orchestrator()

        with patch("edgy.core.pipeline.orchestrator.run_analysis", side_effect=RuntimeError("boom")):
            output, events = _run(orchestrator)

        assert output is None
        assert isinstance(events[-1], ErrorEvent)
        assert events[-1].code == "PIPELINE_ERROR"
        assert events[-1].message == "boom"
        assert not any(isinstance(e, CompleteEvent) for e in events)
        job = store.list()[0]
        assert job.status == JobStatus.ERROR
        assert job.error == "boom"

    def test_failed_save_marks_job_error(self):
        orchestrator, store = _make_orchestrator(store=FailingJobStore())

        _, events = _run(orchestrator)

        assert isinstance(events[-1], CompleteEvent)
        job = store.list()[0]
        assert job.status == JobStatus.ERROR
        assert job.error == "Failed to save result: disk full"
        assert job.result is None


# ── Tests: Review ─────────────────────────────────────────────────────────


class TestReview:

    def test_request_key_enables_review(self):
        gateway = FakeGateway(text=REFINEMENT)
        orchestrator, _ = _make_orchestrator(gateway=gateway)

        output, events = _run(orchestrator, PipelineOptions(llm_api_key="sk-test"))

        assert gateway.calls == [("sk-test", "claude")]
        assert output.llm_enhanced is True
        ai = [f for f in output.screens[0].findings if f.ai_generated]
        assert [f.id for f in ai] == ["ai-finding-1"]
        assert "llm_review" in {e.stage for e in events if isinstance(e, ProgressEvent)}

    def test_server_key_by_provider(self):
        gateway = FakeGateway(text=REFINEMENT)
        settings = Settings(anthropic_api_key="anthropic-key", gemini_api_key="gemini-key")
        orchestrator, _ = _make_orchestrator(gateway=gateway, settings=settings)

        _run(orchestrator, PipelineOptions(llm_provider="gemini"))

        assert gateway.calls == [("gemini-key", "gemini")]

    def test_retry_exhaustion_is_advisory(self):
        error = LLMRetryExhaustedError("Rate limited by Anthropic API after retries. Please try again in a moment.")
        orchestrator, store = _make_orchestrator(gateway=FakeGateway(error=error))

        output, events = _run(orchestrator, PipelineOptions(llm_api_key="sk-test"))

        assert isinstance(events[-1], CompleteEvent)
        assert "Rate limited" in events[-1].analysis["llm_error"]
        assert output.llm_enhanced is None
        assert store.list()[0].status == JobStatus.COMPLETE

    def test_unexpected_gateway_error_is_advisory(self):
        gateway = FakeGateway(error=ValueError("Expecting value: line 1 column 1"))
        orchestrator, store = _make_orchestrator(gateway=gateway)

        output, events = _run(orchestrator, PipelineOptions(llm_api_key="sk-test"))

        assert isinstance(events[-1], CompleteEvent)
        assert "Expecting value" in events[-1].analysis["llm_error"]
        assert output.llm_enhanced is None
        assert store.list()[0].status == JobStatus.COMPLETE

    def test_review_crash_is_advisory(self):
        orchestrator, store = _make_orchestrator(gateway=FakeGateway(text=REFINEMENT))

        with patch(
            "edgy.core.pipeline.orchestrator.ReviewOrchestrator.review",
            side_effect=RuntimeError("merge exploded"),
        ):
            output, events = _run(orchestrator, PipelineOptions(llm_api_key="sk-test"))

        assert isinstance(events[-1], CompleteEvent)
        assert events[-1].analysis["llm_error"] == "merge exploded"
        assert not any(isinstance(e, ErrorEvent) for e in events)
        assert output.screens[0].findings
        assert store.list()[0].status == JobStatus.COMPLETE


# ── Tests: Generation hook ────────────────────────────────────────────────


class TestGeneration:

    def test_generator_receives_missing_screens(self):
        generator = FakeGenerator()
        orchestrator, store = _make_orchestrator(generator=generator)

        _, events = _run(
            orchestrator,
            PipelineOptions(llm_api_key="sk-test", generate_missing_screens=True),
        )

        context = generator.contexts[0]
        assert context.design_tokens == DEFAULT_DESIGN_TOKENS
        assert context.missing_findings
        complete = events[-1]
        assert set(complete.generated_layouts) == {f.id for f in context.missing_findings}
        assert store.list()[0].generated_layouts == complete.generated_layouts

    def test_generator_skipped_without_flag(self):
        generator = FakeGenerator()
        orchestrator, _ = _make_orchestrator(generator=generator)

        _, events = _run(orchestrator, PipelineOptions(llm_api_key="sk-test"))

        assert generator.contexts == []
        assert events[-1].generated_layouts is None


# ── Tests: Streaming ──────────────────────────────────────────────────────


class TestStream:

    def test_sse_frames(self):
        orchestrator, _ = _make_orchestrator()

        async def collect():
            frames = [f async for f in orchestrator.stream(_make_input(), PipelineOptions())]
            await orchestrator.drain()
            return frames

        frames = asyncio.run(collect())

        assert frames[0].startswith("event: progress\ndata: ")
        assert frames[-1].startswith("event: complete\ndata: ")
        assert all(f.endswith("\n\n") for f in frames)
        payload = json.loads(frames[-1].split("data: ", 1)[1])
        assert payload["analysis"]["summary"]["screens_analyzed"] == 1

    def test_early_close_lets_job_finish(self):
        orchestrator, store = _make_orchestrator()

        async def main():
            frames = orchestrator.stream(_make_input(), PipelineOptions())
            first = await frames.__anext__()
            await frames.aclose()
            await orchestrator.drain()
            return first

        first = asyncio.run(main())

        assert first.startswith("event: progress\n")
        job = store.list()[0]
        assert job.status == JobStatus.COMPLETE
        assert job.error is None
        assert job.result["summary"]["screens_analyzed"] == 1
