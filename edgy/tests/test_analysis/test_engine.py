"""Integration tests for the heuristic analysis pass over the bundled knowledge base.

Tests cover:
- Determinism (identical output apart from completed_at)
- Unique finding ids and summary consistency
- Progress callback order
- Per-run id counters
"""

from pathlib import Path

import pytest

import edgy
from edgy.core.analysis.engine import run_analysis
from edgy.core.analysis.models import AnalysisInput, IdCounters, Screen, VisualNode
from edgy.core.knowledge.loader import load_knowledge

KNOWLEDGE_DIR = str(Path(edgy.__file__).parent / "knowledge")


# ── Fixtures ──────────────────────────────────────────────────────────────


def _node(node_id, name, children=None, **kwargs) -> VisualNode:
    return VisualNode(id=node_id, name=name, type="FRAME", children=children or [], **kwargs)


def _make_input() -> AnalysisInput:
    login = _node("1:1", "Login", children=[
        _node("1:2", "Email Input", component_name="Input"),
        _node("1:3", "Password Input", component_name="Input"),
        _node("1:4", "Submit Button", component_name="Button", text_content="Sign in"),
        _node("1:5", "Footer", text_content="Sign up"),
    ])
    rows = [_node(f"2:{i}", f"Order Row {i}", component_name="Row") for i in range(10, 14)]
    order_list = _node("2:1", "Orders - List", children=[_node("2:2", "Order Table", children=rows)])
    detail = _node("3:1", "Orders - Detail", children=[
        _node("3:2", "Delete Button", component_name="Button", text_content="Delete order"),
        _node("3:3", "Search Filter"),
    ])
    return AnalysisInput(
        analysis_id="job-42",
        file_name="Shop.fig",
        screens=[
            Screen(screen_id="1:1", name="Login", node_tree=login),
            Screen(screen_id="2:1", name="Orders - List", node_tree=order_list),
            Screen(screen_id="3:1", name="Orders - Detail", node_tree=detail),
        ],
    )


@pytest.fixture
def knowledge():
    return load_knowledge(KNOWLEDGE_DIR)


def _without_timestamp(output) -> dict:
    data = output.to_dict()
    data.pop("completed_at")
    return data


# ── Tests ─────────────────────────────────────────────────────────────────


class TestRunAnalysis:

    def test_deterministic(self, knowledge):
        first = run_analysis(_make_input(), knowledge=knowledge)
        second = run_analysis(_make_input(), knowledge=knowledge)

        assert _without_timestamp(first) == _without_timestamp(second)

    def test_produces_findings(self, knowledge):
        output = run_analysis(_make_input(), knowledge=knowledge)

        assert output.summary.screens_analyzed == 3
        assert output.summary.total_findings > 0
        assert "authentication" in {f.flow_type for f in output.missing_screen_findings}

    def test_unique_ids_and_summary(self, knowledge):
        output = run_analysis(_make_input(), knowledge=knowledge)
        ids = output.finding_ids()
        summary = output.summary

        assert len(ids) == len(set(ids))
        assert summary.total_findings == len(ids)
        assert summary.critical + summary.warning + summary.info == summary.total_findings

    def test_ids_restart_per_run(self, knowledge):
        first = run_analysis(_make_input(), knowledge=knowledge)
        second = run_analysis(_make_input(), knowledge=knowledge, counters=IdCounters())

        assert first.finding_ids() == second.finding_ids()

    def test_progress_stages_in_order(self, knowledge):
        events = []

        run_analysis(_make_input(), knowledge=knowledge, on_progress=events.append)

        assert [e.stage for e in events] == ["patterns", "rules", "expectations", "flows", "findings"]
        progress = [e.progress for e in events]
        assert progress == sorted(progress)
        assert all(0.0 <= p <= 1.0 for p in progress)

    def test_analysis_id_carried(self, knowledge):
        output = run_analysis(_make_input(), knowledge=knowledge)

        assert output.analysis_id == "job-42"
        assert [s.screen_id for s in output.screens] == ["1:1", "2:1", "3:1"]
        assert output.llm_enhanced is None
