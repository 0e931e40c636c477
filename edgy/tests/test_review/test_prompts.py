"""Unit tests for review prompt construction.

Tests cover:
- System prompt lists every category and the in-play component hints
- Thumbnail data-URL handling
- Batch message: context-only markers, findings, flow-level attachments
"""

from edgy.core.analysis.models import (
    AnalysisOutput,
    Finding,
    FlowFinding,
    MissingScreen,
    MissingScreenFinding,
    Placeholder,
    Recommendation,
    Screen,
    ScreenResult,
    VisualNode,
    build_summary,
)
from edgy.core.content import ImagePart, TextPart
from edgy.core.knowledge.models import ComponentMapping, MappedComponent
from edgy.core.review.prompts import CATEGORIES, build_batch_message, build_system_prompt, image_part


# ── Fixtures ──────────────────────────────────────────────────────────────


def _screen(screen_id, name, thumbnail=None) -> Screen:
    tree = VisualNode(id=screen_id, name=name, type="FRAME", children=[
        VisualNode(id=f"{screen_id}-btn", name="Delete", type="INSTANCE", component_name="Button"),
    ])
    return Screen(screen_id=screen_id, name=name, node_tree=tree, thumbnail_base64=thumbnail)


def _finding(screen_id) -> Finding:
    return Finding(
        id="finding-1",
        rule_id="destructive-confirm",
        category="destructive-actions",
        severity="critical",
        title="No delete confirmation",
        description="Delete runs immediately",
        recommendation=Recommendation(message="Add a confirmation dialog"),
        affected_nodes=[f"{screen_id}-btn"],
    )


def _make_output(with_flow=True) -> AnalysisOutput:
    screens = [
        ScreenResult(screen_id="1:1", name="Orders", findings=[_finding("1:1")]),
        ScreenResult(screen_id="2:1", name="Settings", findings=[]),
    ]
    flow = [
        FlowFinding(
            id="ff-001",
            rule_id="flow-error-recovery",
            category="error-states",
            severity="warning",
            title="No error recovery",
            description="No screen handles failures",
            recommendation=Recommendation(message="Add an error screen"),
        )
    ] if with_flow else []
    missing = [
        MissingScreenFinding(
            id="mf-1",
            flow_type="authentication",
            flow_name="Authentication",
            severity="critical",
            missing_screen=MissingScreen(id="forgot-password", name="Forgot Password", description="Reset link"),
            recommendation=Recommendation(message="Add a Forgot Password screen"),
            placeholder=Placeholder(suggested_name="Forgot Password"),
        )
    ] if with_flow else []
    return AnalysisOutput(
        analysis_id="a1",
        completed_at="2025-01-01T00:00:00Z",
        summary=build_summary(2, screens, flow, missing),
        screens=screens,
        flow_findings=flow,
        missing_screen_findings=missing,
    )


def _texts(parts):
    return "".join(p.text for p in parts if isinstance(p, TextPart))


# ── Tests: System prompt ──────────────────────────────────────────────────


class TestSystemPrompt:

    def test_lists_all_categories(self):
        prompt = build_system_prompt([])

        for name in CATEGORIES:
            assert name in prompt
        assert "additive only" in prompt
        assert '"additional_findings"' in prompt

    def test_component_hints_for_categories_in_play(self):
        mappings = {
            "destructive-actions": ComponentMapping(
                category="destructive-actions",
                primary=(MappedComponent(shadcn_id="alert-dialog", usage="Confirm"),),
                supporting=(MappedComponent(shadcn_id="toast", usage="Undo"),),
            ),
            "empty-states": ComponentMapping(
                category="empty-states",
                primary=(MappedComponent(shadcn_id="card", usage="Empty"),),
            ),
        }

        prompt = build_system_prompt(["destructive-actions"], mappings)

        assert "- destructive-actions: alert-dialog, toast" in prompt
        assert "- empty-states:" not in prompt


# ── Tests: Images ─────────────────────────────────────────────────────────


class TestImagePart:

    def test_png_prefix_stripped(self):
        assert image_part("data:image/png;base64,AAAA") == ImagePart("image/png", "AAAA")

    def test_jpeg_declared(self):
        assert image_part("data:image/jpeg;base64,BBBB") == ImagePart("image/jpeg", "BBBB")

    def test_bare_base64_defaults_to_png(self):
        assert image_part("CCCC") == ImagePart("image/png", "CCCC")


# ── Tests: Batch message ──────────────────────────────────────────────────


class TestBatchMessage:

    def test_context_only_marker(self):
        batch = [_screen("1:1", "Orders"), _screen("2:1", "Settings")]

        text = _texts(build_batch_message(_make_output(), "Shop.fig", batch, False))

        assert '--- Screen: "Orders" (ID: 1:1) ---' in text
        assert '--- Screen: "Settings" (ID: 2:1) [context only] ---' in text
        assert "2 screen(s), 1 with findings" in text

    def test_findings_and_condensed_tree(self):
        text = _texts(build_batch_message(_make_output(), "Shop.fig", [_screen("1:1", "Orders")], False))

        assert '"id": "finding-1"' in text
        assert "Node tree (condensed)" in text
        assert '"componentName": "Button"' in text

    def test_screenshots_for_every_screen(self):
        batch = [
            _screen("1:1", "Orders", thumbnail="data:image/png;base64,AAAA"),
            _screen("2:1", "Settings", thumbnail="data:image/jpeg;base64,BBBB"),
        ]

        parts = build_batch_message(_make_output(), "Shop.fig", batch, False)

        images = [p for p in parts if isinstance(p, ImagePart)]
        assert [i.media_type for i in images] == ["image/png", "image/jpeg"]

    def test_flow_findings_only_when_requested(self):
        batch = [_screen("1:1", "Orders")]

        first = _texts(build_batch_message(_make_output(), "Shop.fig", batch, True))
        later = _texts(build_batch_message(_make_output(), "Shop.fig", batch, False))

        assert "--- Flow-Level Findings ---" in first
        assert "--- Missing Screen Findings ---" in first
        assert '"name": "Forgot Password"' in first
        assert "Flow-Level Findings" not in later
        assert "Missing Screen Findings" not in later
