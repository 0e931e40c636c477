"""Pattern detection over a screen's node tree.

Walks the tree depth-first, skipping invisible subtrees. A node with an
upstream classification at confidence >= 0.7 is mapped through
``CLASSIFICATION_TO_PATTERN``; otherwise name and structure heuristics
are used. Form-container and search detection always run, since
per-node classification does not cover those composite roles.
"""

from typing import List, Optional

from .models import DetectedPattern, PatternType, VisualNode

CLASSIFICATION_THRESHOLD = 0.7
HIGH_CLASSIFICATION_CONFIDENCE = 0.9

CLASSIFICATION_TO_PATTERN = {
    "button": PatternType.BUTTON,
    "input": PatternType.FORM_FIELD,
    "textarea": PatternType.FORM_FIELD,
    "select": PatternType.FORM_FIELD,
    "checkbox": PatternType.FORM_FIELD,
    "radio": PatternType.FORM_FIELD,
    "list": PatternType.LIST,
    "list-item": PatternType.LIST,
    "table": PatternType.LIST,
    "dialog": PatternType.MODAL,
    "nav": PatternType.NAVIGATION,
    "image": PatternType.MEDIA,
}


def _contains_any(text: str, needles) -> bool:
    return any(n in text for n in needles)


def _lower_component(node: VisualNode) -> str:
    return (node.component_name or "").lower()


def is_form_field(node: VisualNode) -> bool:
    return _contains_any(node.name.lower(), ("input", "field", "textfield", "textarea")) or \
        _contains_any(_lower_component(node), ("input", "textfield"))


def is_form_container(node: VisualNode) -> bool:
    if _contains_any(node.name.lower(), ("form", "login", "signup", "register")):
        return True
    return any(is_form_field(child) for child in node.children)


def is_button(node: VisualNode) -> bool:
    return _contains_any(node.name.lower(), ("button", "btn", "cta")) or \
        "button" in _lower_component(node)


def is_destructive_action(node: VisualNode) -> bool:
    text = (node.text_content or "").lower()
    return _contains_any(node.name.lower(), ("delete", "remove", "cancel", "destructive")) or \
        _contains_any(text, ("delete", "remove"))


def _children_similar(children: List[VisualNode]) -> bool:
    if len(children) < 3:
        return False
    first = children[0]
    return all(
        c.type == first.type and c.component_name == first.component_name
        for c in children
    )


def is_list(node: VisualNode) -> bool:
    if _contains_any(node.name.lower(), ("list", "table", "grid", "items")):
        return True
    return _children_similar(node.children)


def is_search(node: VisualNode) -> bool:
    return _contains_any(node.name.lower(), ("search", "filter"))


def is_modal(node: VisualNode) -> bool:
    return _contains_any(node.name.lower(), ("modal", "dialog", "popup", "overlay"))


def _classified_pattern(node: VisualNode) -> Optional[DetectedPattern]:
    classification = node.classification
    mapped = CLASSIFICATION_TO_PATTERN.get(classification.element_type)
    if mapped is None:
        return None
    if mapped is PatternType.BUTTON and classification.variant == "destructive":
        return DetectedPattern(
            type=PatternType.DESTRUCTIVE_ACTION,
            nodes=[node],
            confidence="high",
            context=f"Classified destructive button: {node.name}",
        )
    tier = "high" if classification.confidence >= HIGH_CLASSIFICATION_CONFIDENCE else "medium"
    return DetectedPattern(
        type=mapped,
        nodes=[node],
        confidence=tier,
        context=f"Classified {classification.element_type}: {node.name}",
    )


def _heuristic_patterns(node: VisualNode) -> List[DetectedPattern]:
    found = []
    if is_form_field(node):
        found.append(DetectedPattern(PatternType.FORM_FIELD, [node], "high", f"Form field: {node.name}"))
    if is_button(node):
        kind = PatternType.DESTRUCTIVE_ACTION if is_destructive_action(node) else PatternType.BUTTON
        found.append(DetectedPattern(kind, [node], "high", f"Button: {node.name}"))
    if is_list(node):
        found.append(DetectedPattern(PatternType.LIST, [node], "medium", f"List: {node.name}"))
    if is_modal(node):
        found.append(DetectedPattern(PatternType.MODAL, [node], "high", f"Modal: {node.name}"))
    return found


def detect_patterns(root: VisualNode) -> List[DetectedPattern]:
    """Return the patterns found in a tree, in depth-first order."""
    patterns: List[DetectedPattern] = []

    def visit(node: VisualNode) -> None:
        if not node.visible:
            return

        classification = node.classification
        if classification is not None and classification.confidence >= CLASSIFICATION_THRESHOLD:
            classified = _classified_pattern(node)
            if classified is not None:
                patterns.append(classified)
        else:
            patterns.extend(_heuristic_patterns(node))

        if is_form_container(node):
            patterns.append(DetectedPattern(PatternType.FORM, [node], "high", f"Form detected: {node.name}"))
        if is_search(node):
            patterns.append(DetectedPattern(PatternType.SEARCH, [node], "high", f"Search: {node.name}"))

        for child in node.children:
            visit(child)

    visit(root)
    return patterns
