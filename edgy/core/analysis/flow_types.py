"""Multi-signal flow archetype detection.

Each archetype signature carries layer-name regexes, component-type
signatures (multisets of component types) and link-text regexes. Per
screen, three signals are scored:

    name match        0.3   screen name matches a name pattern
    components        0.4   screen patterns contain a signature multiset
    link text         0.3   any text content matches a link pattern

An archetype's score is the best single-screen score. Archetypes scoring
at least 0.3 are reported, most confident first.
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .models import DetectedFlowType, DetectedPattern, Screen

NAME_WEIGHT = 0.3
COMPONENT_WEIGHT = 0.4
LINK_WEIGHT = 0.3
DETECTION_THRESHOLD = 0.3
HIGH_CONFIDENCE = 0.7
MEDIUM_CONFIDENCE = 0.4


@dataclass(frozen=True)
class FlowSignature:
    type: str
    name_patterns: Tuple[re.Pattern, ...]
    component_signatures: Tuple[Tuple[str, ...], ...]
    link_text_patterns: Tuple[re.Pattern, ...]


def _rx(*patterns: str) -> Tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


FLOW_SIGNATURES: Tuple[FlowSignature, ...] = (
    FlowSignature(
        type="authentication",
        name_patterns=_rx(r"login", r"sign.?in", r"sign.?up", r"register", r"auth"),
        component_signatures=(("input", "input", "button"), ("input", "checkbox", "button")),
        link_text_patterns=_rx(
            r"forgot.?password", r"sign.?up", r"create.?account", r"log.?in",
            r"register", r"reset.?password",
        ),
    ),
    FlowSignature(
        type="onboarding",
        name_patterns=_rx(r"onboard", r"welcome", r"getting.?started", r"setup", r"intro", r"tour"),
        component_signatures=(("button", "button"), ("image", "heading", "button")),
        link_text_patterns=_rx(r"next", r"skip", r"get.?started", r"continue", r"let.?s.?go"),
    ),
    FlowSignature(
        type="checkout",
        name_patterns=_rx(r"checkout", r"payment", r"cart", r"order", r"billing", r"shipping"),
        component_signatures=(("input", "input", "input", "button"), ("card", "button")),
        link_text_patterns=_rx(
            r"place.?order", r"pay.?now", r"continue.?to", r"checkout",
            r"add.?to.?cart", r"proceed", r"complete.?purchase",
        ),
    ),
    FlowSignature(
        type="crud",
        name_patterns=_rx(r"detail", r"edit", r"create", r"new\b", r"add\b"),
        component_signatures=(("input", "textarea", "button"), ("list", "button")),
        link_text_patterns=_rx(r"save", r"create", r"edit", r"delete", r"add.?new", r"update"),
    ),
    FlowSignature(
        type="search",
        name_patterns=_rx(r"search", r"browse", r"explore", r"discover", r"filter"),
        component_signatures=(("input", "list"),),
        link_text_patterns=_rx(r"search", r"filter", r"sort", r"clear"),
    ),
    FlowSignature(
        type="settings",
        name_patterns=_rx(r"settings", r"preferences", r"account", r"profile", r"config"),
        component_signatures=(("switch", "switch"), ("input", "button")),
        link_text_patterns=_rx(r"save.?changes", r"update", r"notification", r"privacy", r"security"),
    ),
    FlowSignature(
        type="upload",
        name_patterns=_rx(r"upload", r"import", r"attach"),
        component_signatures=(("button", "card"),),
        link_text_patterns=_rx(r"upload", r"select.?file", r"drag", r"drop", r"browse"),
    ),
    FlowSignature(
        type="subscription",
        name_patterns=_rx(r"pricing", r"plan", r"subscribe", r"billing", r"upgrade", r"tier"),
        component_signatures=(("card", "card", "card", "button"),),
        link_text_patterns=_rx(r"subscribe", r"upgrade", r"downgrade", r"cancel", r"start.?trial"),
    ),
    FlowSignature(
        type="messaging",
        name_patterns=_rx(r"chat", r"message", r"inbox", r"conversation", r"dm"),
        component_signatures=(("list", "input", "button"),),
        link_text_patterns=_rx(r"send", r"reply", r"new.?message", r"compose"),
    ),
    FlowSignature(
        type="booking",
        name_patterns=_rx(r"book", r"reserv", r"schedule", r"appointment"),
        component_signatures=(("input", "input", "button"),),
        link_text_patterns=_rx(r"book.?now", r"confirm", r"schedule", r"select.?date", r"select.?time"),
    ),
)


def matches_component_signature(
    screen_types: Sequence[str],
    signatures: Sequence[Sequence[str]],
) -> bool:
    """True if any signature multiset is contained in ``screen_types``."""
    available = Counter(screen_types)
    for signature in signatures:
        needed = Counter(signature)
        if all(available[t] >= count for t, count in needed.items()):
            return True
    return False


# Heuristic patterns carry no element type; form fields read as inputs.
_PATTERN_COMPONENT_TYPE = {"form-field": "input"}


def component_types(patterns: Sequence[DetectedPattern]) -> List[str]:
    """Component vocabulary for signature matching.

    Classified nodes contribute their element type (input, checkbox,
    card, ...); heuristic patterns contribute their pattern type.
    """
    types = []
    for pattern in patterns:
        node = pattern.nodes[0]
        if node.classification is not None and node.classification.element_type:
            types.append(node.classification.element_type)
        else:
            value = pattern.type.value
            types.append(_PATTERN_COMPONENT_TYPE.get(value, value))
    return types


def _screen_texts(screen: Screen) -> List[str]:
    return [n.text_content for n in screen.node_tree.walk() if n.text_content]


def confidence_tier(score: float) -> str:
    if score >= HIGH_CONFIDENCE:
        return "high"
    if score >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def detect_flow_types(
    screens: List[Screen],
    patterns_by_screen: Dict[str, List[DetectedPattern]],
    signatures: Sequence[FlowSignature] = FLOW_SIGNATURES,
) -> List[DetectedFlowType]:
    detected: List[DetectedFlowType] = []
    texts_by_screen = {s.screen_id: _screen_texts(s) for s in screens}

    for signature in signatures:
        best = 0.0
        trigger_screens: List[str] = []
        trigger_patterns: List[str] = []

        for screen in screens:
            score = 0.0
            types = component_types(patterns_by_screen.get(screen.screen_id, []))

            if any(p.search(screen.name) for p in signature.name_patterns):
                score += NAME_WEIGHT
                trigger_patterns.append("name")
            if matches_component_signature(types, signature.component_signatures):
                score += COMPONENT_WEIGHT
                trigger_patterns.append("components")
            texts = texts_by_screen[screen.screen_id]
            if any(p.search(t) for p in signature.link_text_patterns for t in texts):
                score += LINK_WEIGHT
                trigger_patterns.append("links")

            if score > 0:
                best = max(best, score)
                trigger_screens.append(screen.screen_id)

        # Float sums of weights are rounded before tiering.
        best = round(best, 6)
        if best >= DETECTION_THRESHOLD and trigger_screens:
            detected.append(
                DetectedFlowType(
                    type=signature.type,
                    confidence=confidence_tier(best),
                    trigger_screens=trigger_screens,
                    trigger_patterns=list(dict.fromkeys(trigger_patterns)),
                    score=best,
                )
            )

    detected.sort(key=lambda d: d.score, reverse=True)
    return detected
