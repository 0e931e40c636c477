"""Cross-screen checks that report gaps for the screen set as a whole."""

from dataclasses import dataclass
from typing import Callable, List, Tuple

from .models import (
    ComponentSuggestion,
    FlowFinding,
    IdCounters,
    Recommendation,
    Screen,
    VisualNode,
)


def _name_has(node: VisualNode, needles: Tuple[str, ...]) -> bool:
    name = node.name.lower()
    return any(n in name for n in needles)


def _component_has(node: VisualNode, needles: Tuple[str, ...]) -> bool:
    component = (node.component_name or "").lower()
    return bool(component) and any(n in component for n in needles)


def _is_data_content(node: VisualNode) -> bool:
    return _component_has(node, ("table", "card", "list")) or _name_has(node, ("data", "feed"))


def _is_offline_state(node: VisualNode) -> bool:
    return _name_has(node, ("offline", "no connection", "network error", "retry"))


def _is_restricted_action(node: VisualNode) -> bool:
    return _name_has(node, ("admin", "settings", "edit", "manage"))


def _is_permission_state(node: VisualNode) -> bool:
    return _name_has(node, ("unauthorized", "forbidden", "permission", "access denied"))


@dataclass(frozen=True)
class FlowCheck:
    """Fires when some node is a ``trigger`` and no node is a ``resolution``."""
    rule_id: str
    category: str
    severity: str
    title: str
    description: str
    message: str
    components: Tuple[ComponentSuggestion, ...]
    trigger: Callable[[VisualNode], bool]
    resolution: Callable[[VisualNode], bool]


FLOW_CHECKS: Tuple[FlowCheck, ...] = (
    FlowCheck(
        rule_id="connectivity/offline-handling",
        category="connectivity",
        severity="warning",
        title="No offline or connectivity error state in flow",
        description=(
            "This flow shows data-dependent content but no screen handles "
            "connectivity loss or network errors."
        ),
        message="Add a screen or overlay for the offline state with a retry action.",
        components=(
            ComponentSuggestion(
                name="Alert (Destructive)", shadcn_id="alert", variant="destructive",
                description="Connection error banner",
            ),
            ComponentSuggestion(name="Button", shadcn_id="button", description="Retry action"),
        ),
        trigger=_is_data_content,
        resolution=_is_offline_state,
    ),
    FlowCheck(
        rule_id="permissions/no-unauthorized-state",
        category="permissions",
        severity="info",
        title="No permission or unauthorized state in flow",
        description=(
            "This flow includes restricted actions but no screen shows a "
            "permission denied or unauthorized state."
        ),
        message="Add a state for users who lack permission to perform these actions.",
        components=(
            ComponentSuggestion(name="Alert", shadcn_id="alert", description="Permission denied message"),
            ComponentSuggestion(
                name="Button (Disabled)", shadcn_id="button", variant="disabled",
                description="Disabled state for unauthorized actions",
            ),
        ),
        trigger=_is_restricted_action,
        resolution=_is_permission_state,
    ),
)


def generate_flow_findings(
    screens: List[Screen],
    counters: IdCounters,
    checks: Tuple[FlowCheck, ...] = FLOW_CHECKS,
) -> List[FlowFinding]:
    findings: List[FlowFinding] = []
    nodes_by_screen = [(s.screen_id, list(s.node_tree.walk())) for s in screens]

    for check in checks:
        triggering = [
            screen_id for screen_id, nodes in nodes_by_screen
            if any(check.trigger(n) for n in nodes)
        ]
        if not triggering:
            continue
        resolved = any(check.resolution(n) for _, nodes in nodes_by_screen for n in nodes)
        if resolved:
            continue

        findings.append(
            FlowFinding(
                id=counters.next_flow_finding_id(),
                rule_id=check.rule_id,
                category=check.category,
                severity=check.severity,
                title=check.title,
                description=check.description,
                affected_screens=triggering,
                recommendation=Recommendation(
                    message=check.message,
                    components=[
                        ComponentSuggestion(c.name, c.shadcn_id, c.description, c.variant)
                        for c in check.components
                    ],
                ),
            )
        )

    return findings
