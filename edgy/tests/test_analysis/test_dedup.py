"""Unit tests for flow grouping and deduplication.

Tests cover:
- Prefix extraction on hyphen, en-dash and em-dash
- Singleton groups untouched
- First occurrence by screen id survives
- Result independent of input screen order
"""

import pytest

from edgy.core.analysis.dedup import deduplicate_findings, finding_fingerprint
from edgy.core.analysis.flow_groups import flow_context, flow_prefix, group_screens_by_flow
from edgy.core.analysis.models import Finding, Recommendation, Screen, ScreenResult, VisualNode


# ── Fixtures ──────────────────────────────────────────────────────────────


def _screen(screen_id, name) -> Screen:
    return Screen(screen_id=screen_id, name=name, node_tree=VisualNode(id=f"{screen_id}:0", name=name, type="FRAME"))


def _finding(finding_id, rule_id, nodes=()) -> Finding:
    return Finding(
        id=finding_id,
        rule_id=rule_id,
        category="empty-states",
        severity="warning",
        title=rule_id,
        description="",
        recommendation=Recommendation(message=""),
        affected_nodes=list(nodes),
    )


def _results(layout):
    """layout: [(screen_id, name, [rule_id, ...]), ...]"""
    return [
        ScreenResult(screen_id=sid, name=name, findings=[_finding(f"{sid}-{r}", r) for r in rules])
        for sid, name, rules in layout
    ]


def _kept(results):
    return {(r.screen_id, f.rule_id) for r in results for f in r.findings}


# ── Tests: Grouping ───────────────────────────────────────────────────────


class TestFlowGroups:

    @pytest.mark.parametrize("name", ["Login - Error", "Login – Success", "Login—Empty", "Login"])
    def test_prefix(self, name):
        assert flow_prefix(name) == "Login"

    def test_context_fallback(self):
        assert flow_context("- Untitled") == "this"

    def test_groups_preserve_order(self):
        screens = [_screen("3", "Cart - Empty"), _screen("1", "Home"), _screen("2", "Cart - Full")]
        groups = group_screens_by_flow(screens)

        assert list(groups) == ["Cart", "Home"]
        assert [s.screen_id for s in groups["Cart"]] == ["3", "2"]


# ── Tests: Dedup ──────────────────────────────────────────────────────────


class TestDeduplicate:

    def test_drops_repeat_within_group(self):
        layout = [
            ("2", "Cart - Full", ["list-empty", "list-loading"]),
            ("1", "Cart - Empty", ["list-empty"]),
        ]
        screens = [_screen(sid, name) for sid, name, _ in layout]
        results = _results(layout)

        deduplicate_findings(results, group_screens_by_flow(screens))

        assert _kept(results) == {("1", "list-empty"), ("2", "list-loading")}

    def test_singleton_group_untouched(self):
        layout = [("1", "Home", ["a", "a"])]
        results = _results(layout)

        deduplicate_findings(results, group_screens_by_flow([_screen("1", "Home")]))

        assert len(results[0].findings) == 2

    def test_other_groups_untouched(self):
        layout = [
            ("1", "Cart - A", ["x"]),
            ("2", "Cart - B", ["x"]),
            ("3", "Orders - A", ["x"]),
            ("4", "Orders - B", ["y"]),
        ]
        screens = [_screen(sid, name) for sid, name, _ in layout]
        results = _results(layout)

        deduplicate_findings(results, group_screens_by_flow(screens))

        assert _kept(results) == {("1", "x"), ("3", "x"), ("4", "y")}

    def test_order_independent(self):
        layout = [
            ("10", "Feed - A", ["a", "b"]),
            ("2", "Feed - B", ["b", "c"]),
            ("7", "Feed - C", ["a", "c", "d"]),
        ]
        forward = _results(layout)
        backward = list(reversed(_results(layout)))
        screens = [_screen(sid, name) for sid, name, _ in layout]

        deduplicate_findings(forward, group_screens_by_flow(screens))
        deduplicate_findings(backward, group_screens_by_flow(list(reversed(screens))))

        assert _kept(forward) == _kept(backward)
        # "10" < "2" < "7" as strings
        assert _kept(forward) == {("10", "a"), ("10", "b"), ("2", "c"), ("7", "d")}

    def test_fingerprint_sorts_nodes(self):
        a = _finding("f1", "r", nodes=["b", "a"])
        b = _finding("f2", "r", nodes=["a", "b"])

        assert finding_fingerprint(a) == finding_fingerprint(b) == "r|empty-states|warning|a,b"
