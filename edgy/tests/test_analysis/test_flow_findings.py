"""Unit tests for cross-screen flow findings."""

from edgy.core.analysis.flow_findings import generate_flow_findings
from edgy.core.analysis.models import IdCounters, Screen, VisualNode


def _screen(screen_id, *names, component_name=None) -> Screen:
    children = [
        VisualNode(id=f"{screen_id}-{i}", name=n, type="FRAME", component_name=component_name)
        for i, n in enumerate(names)
    ]
    root = VisualNode(id=screen_id, name=f"Screen {screen_id}", type="FRAME", children=children)
    return Screen(screen_id=screen_id, name=f"Screen {screen_id}", node_tree=root)


class TestFlowFindings:

    def test_offline_handling_missing(self):
        screens = [_screen("a", "Orders", component_name="DataTable"), _screen("b", "Footer")]

        findings = generate_flow_findings(screens, IdCounters())

        assert [f.rule_id for f in findings] == ["connectivity/offline-handling"]
        assert findings[0].id == "ff-001"
        assert findings[0].affected_screens == ["a"]
        assert findings[0].severity == "warning"

    def test_offline_state_on_any_screen_resolves(self):
        screens = [_screen("a", "Activity Feed"), _screen("b", "Offline Banner")]

        assert generate_flow_findings(screens, IdCounters()) == []

    def test_permission_state_missing(self):
        screens = [_screen("a", "Edit Profile"), _screen("b", "Manage Team")]

        findings = generate_flow_findings(screens, IdCounters())

        assert [f.rule_id for f in findings] == ["permissions/no-unauthorized-state"]
        assert findings[0].affected_screens == ["a", "b"]
        assert findings[0].severity == "info"

    def test_both_checks_numbered_in_order(self):
        screens = [_screen("a", "Data Grid", "Admin Menu")]

        findings = generate_flow_findings(screens, IdCounters())

        assert [f.id for f in findings] == ["ff-001", "ff-002"]
        assert findings[1].recommendation.components[1].variant == "disabled"

    def test_no_triggers(self):
        assert generate_flow_findings([_screen("a", "Hero", "Logo")], IdCounters()) == []
