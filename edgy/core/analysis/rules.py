"""Rule matching with exclusion filters and multi-signal confidence.

A rule can be triggered three ways for each detected pattern:

- pattern type: the pattern's type is listed in ``triggers.pattern_types``
  (checked against the pattern's first node; other trigger kinds are not
  evaluated for that pattern)
- component name: a trigger component name is a substring of a node's
  component name or layer name
- layer name: a trigger regex matches a node's layer name, counted only
  when the component-name check did not already match that node

Every candidate passes through the rule's exclusion filters, then must
reach the rule's confidence threshold.
"""

from typing import Dict, List, Optional

from ..knowledge.models import Rule
from .models import DetectedPattern, TriggeredRule, VisualNode

MATCH_PATTERN_TYPE = "pattern_type"
MATCH_COMPONENT_NAME = "component_name"
MATCH_LAYER_NAME = "layer_name"


def build_parent_map(root: VisualNode) -> Dict[str, VisualNode]:
    """Map each node id to its parent node."""
    parents: Dict[str, VisualNode] = {}
    for node in root.walk():
        for child in node.children:
            parents[child.id] = node
    return parents


def should_exclude(
    rule: Rule,
    node: VisualNode,
    parents: Dict[str, VisualNode],
    screen_name: str,
) -> bool:
    """True if any of the rule's exclusion filters applies to ``node``."""
    exclude = rule.exclude
    if exclude is None:
        return False

    if any(p.search(screen_name) for p in exclude.screen_name_patterns):
        return True

    parent = parents.get(node.id)
    if parent is not None:
        if any(p.search(parent.name) for p in exclude.parent_name_patterns):
            return True
        if parent.component_name:
            parent_component = parent.component_name.lower()
            if any(c.lower() in parent_component for c in exclude.parent_component_names):
                return True

    if exclude.ancestor_element_types:
        current = parent
        while current is not None:
            name = current.name.lower()
            if any(t in name for t in exclude.ancestor_element_types):
                return True
            current = parents.get(current.id)

    return False


def calculate_confidence(rule: Rule, node: VisualNode, match_type: str) -> float:
    """Weighted sum of the rule's signal weights, capped at 1.0."""
    signals = rule.confidence_signals
    score = 0.0

    if match_type == MATCH_LAYER_NAME:
        score += signals.name_match
    if match_type == MATCH_COMPONENT_NAME or node.component_name:
        score += signals.component_match
    if match_type == MATCH_PATTERN_TYPE:
        score += signals.name_match + signals.component_match
    if node.strokes or node.fills or node.children:
        score += signals.visual_match * 0.5

    return max(0.0, min(score, 1.0))


def _component_match(rule: Rule, node: VisualNode) -> bool:
    component = (node.component_name or "").lower()
    name = node.name.lower()
    for candidate in rule.triggers.component_names:
        needle = candidate.lower()
        if (component and needle in component) or needle in name:
            return True
    return False


def _layer_name_match(rule: Rule, node: VisualNode) -> bool:
    return any(p.search(node.name) for p in rule.triggers.layer_name_patterns)


def _accept(
    rule: Rule,
    node: VisualNode,
    match_type: str,
    matched_nodes: List[VisualNode],
    pattern: DetectedPattern,
) -> Optional[TriggeredRule]:
    confidence = calculate_confidence(rule, node, match_type)
    if confidence < rule.confidence_signals.threshold:
        return None
    return TriggeredRule(rule=rule, matched_nodes=matched_nodes, confidence=confidence, pattern=pattern)


def match_rules(
    patterns: List[DetectedPattern],
    rules: List[Rule],
    screen_tree: VisualNode,
    screen_name: str,
) -> List[TriggeredRule]:
    """Match every rule against every pattern of one screen."""
    triggered: List[TriggeredRule] = []
    parents = build_parent_map(screen_tree)

    for rule in rules:
        for pattern in patterns:
            if pattern.type.value in rule.triggers.pattern_types:
                node = pattern.nodes[0]
                if not should_exclude(rule, node, parents, screen_name):
                    hit = _accept(rule, node, MATCH_PATTERN_TYPE, list(pattern.nodes), pattern)
                    if hit is not None:
                        triggered.append(hit)
                continue

            for node in pattern.nodes:
                if should_exclude(rule, node, parents, screen_name):
                    continue

                component_hit = _component_match(rule, node)
                if component_hit:
                    hit = _accept(rule, node, MATCH_COMPONENT_NAME, [node], pattern)
                    if hit is not None:
                        triggered.append(hit)

                if not component_hit and _layer_name_match(rule, node):
                    hit = _accept(rule, node, MATCH_LAYER_NAME, [node], pattern)
                    if hit is not None:
                        triggered.append(hit)

    return triggered
