"""Missing-screen detection for detected flow archetypes."""

from typing import List

from ..knowledge.models import KnowledgeBase
from .findings import suggestion_from_ref
from .models import (
    DetectedFlowType,
    IdCounters,
    MissingScreen,
    MissingScreenFinding,
    Placeholder,
    Recommendation,
    Screen,
)

DEFAULT_SEVERITY = "warning"
PLACEHOLDER_WIDTH = 375
PLACEHOLDER_HEIGHT = 812


def detect_missing_screens(
    screens: List[Screen],
    detected_flows: List[DetectedFlowType],
    knowledge: KnowledgeBase,
    counters: IdCounters,
) -> List[MissingScreenFinding]:
    """Report required screens of each detected flow that no screen name matches."""
    findings: List[MissingScreenFinding] = []
    names = [s.name for s in screens]

    for detected in detected_flows:
        flow_rule = knowledge.flow_rule_for(detected.type)
        if flow_rule is None:
            continue

        for expected in flow_rule.expected_screens:
            if not expected.required:
                continue
            present = any(
                p.search(name) for p in expected.layer_name_patterns for name in names
            )
            if present:
                continue

            findings.append(
                MissingScreenFinding(
                    id=counters.next_missing_screen_id(),
                    flow_type=detected.type,
                    flow_name=flow_rule.name,
                    severity=expected.severity or DEFAULT_SEVERITY,
                    missing_screen=MissingScreen(
                        id=expected.id,
                        name=expected.name,
                        description=expected.description,
                    ),
                    recommendation=Recommendation(
                        message=f'Add a "{expected.name}" screen to complete the {flow_rule.name} flow.',
                        components=[suggestion_from_ref(c) for c in expected.components],
                    ),
                    placeholder=Placeholder(
                        suggested_name=expected.name,
                        width=PLACEHOLDER_WIDTH,
                        height=PLACEHOLDER_HEIGHT,
                    ),
                )
            )

    return findings
