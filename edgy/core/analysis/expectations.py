"""Expectation checking for triggered rules.

A triggered rule is satisfied when one of its ``in_screen`` conditions
holds anywhere in the screen's tree. Failing that, the flow group is
searched: with the rule's ``in_flow`` conditions when it declares them,
otherwise with the same ``in_screen`` conditions. Rules that declare no
``in_screen`` conditions never produce unmet expectations.
"""

from typing import List, Optional, Sequence

from ..knowledge.models import ExpectCondition
from .models import TriggeredRule, UnmetExpectation, VisualNode

UNMET_REASON = "Missing expected state in screen or flow"


def _property_value(raw) -> Optional[str]:
    if isinstance(raw, dict):
        raw = raw.get("value")
    return None if raw is None else str(raw)


def _properties_match(condition: ExpectCondition, node: VisualNode) -> bool:
    for key, expected in condition.with_properties:
        actual = _property_value(node.component_properties.get(key))
        if actual is None or actual.lower() != expected.lower():
            return False
    return True


def _component_names_match(condition: ExpectCondition, node: VisualNode) -> bool:
    component = (node.component_name or "").lower()
    name = node.name.lower()
    for candidate in condition.component_names:
        needle = candidate.lower()
        if (component and needle in component) or needle in name:
            return True
    return False


def check_condition(condition: ExpectCondition, tree: VisualNode) -> bool:
    """True if any node in ``tree`` (invisible nodes included) meets the condition."""
    for node in tree.walk():
        if condition.component_names and _component_names_match(condition, node) \
                and _properties_match(condition, node):
            return True
        if any(p.search(node.name) for p in condition.layer_name_patterns):
            return True
    return False


def _any_condition(conditions: Sequence[ExpectCondition], trees: Sequence[VisualNode]) -> bool:
    return any(check_condition(c, tree) for c in conditions for tree in trees)


def check_expectations(
    triggered_rules: List[TriggeredRule],
    screen_tree: VisualNode,
    flow_group_trees: List[VisualNode],
) -> List[UnmetExpectation]:
    unmet: List[UnmetExpectation] = []

    for triggered in triggered_rules:
        expects = triggered.rule.expects
        if not expects.in_screen:
            continue

        if _any_condition(expects.in_screen, [screen_tree]):
            continue

        flow_conditions = expects.in_flow if expects.in_flow else expects.in_screen
        if _any_condition(flow_conditions, flow_group_trees):
            continue

        unmet.append(
            UnmetExpectation(
                rule=triggered.rule,
                matched_nodes=triggered.matched_nodes,
                reason=UNMET_REASON,
            )
        )

    return unmet
