"""Finding generation from unmet expectations.

Text comes from the rule's ``finding_template`` when present, with
``{{element_name}}``, ``{{element_text}}``, ``{{screen_name}}`` and
``{{flow_context}}`` filled from the first matched node and the screen.
Unknown placeholders render as their own key name.
"""

import re
from typing import Dict, List, Mapping, Optional

from ..knowledge.models import ComponentMapping, ComponentRef, MappedComponent
from .flow_groups import flow_context
from .models import (
    AffectedArea,
    ComponentSuggestion,
    Finding,
    IdCounters,
    Recommendation,
    Screen,
    UnmetExpectation,
    VisualNode,
)

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def interpolate(template: str, variables: Mapping[str, str]) -> str:
    return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1)) or m.group(1), template)


def compute_affected_area(nodes: List[VisualNode], screen: Screen) -> Optional[AffectedArea]:
    """Bounding box of ``nodes`` in screen-local coordinates."""
    if not nodes:
        return None
    min_x = min(n.x for n in nodes)
    min_y = min(n.y for n in nodes)
    max_x = max(n.x + n.width for n in nodes)
    max_y = max(n.y + n.height for n in nodes)
    return AffectedArea(
        x=min_x - screen.x,
        y=min_y - screen.y,
        width=max_x - min_x,
        height=max_y - min_y,
    )


def template_variables(node: Optional[VisualNode], screen: Screen) -> Dict[str, str]:
    return {
        "element_name": (node and (node.component_name or node.name)) or "element",
        "element_text": (node and (node.text_content or node.name)) or "action",
        "screen_name": screen.name,
        "flow_context": flow_context(screen.name),
    }


def suggestion_from_ref(ref: ComponentRef) -> ComponentSuggestion:
    return ComponentSuggestion(
        name=ref.label,
        shadcn_id=ref.shadcn_id,
        variant=ref.variant,
        description=ref.label,
    )


def _suggestion_from_mapping(item: MappedComponent) -> ComponentSuggestion:
    name = f"{item.shadcn_id} ({item.variant})" if item.variant else item.shadcn_id
    return ComponentSuggestion(
        name=name,
        shadcn_id=item.shadcn_id,
        variant=item.variant,
        description=item.usage,
    )


def generate_findings(
    unmet: List[UnmetExpectation],
    screen: Screen,
    counters: IdCounters,
) -> List[Finding]:
    findings: List[Finding] = []

    for expectation in unmet:
        rule = expectation.rule
        nodes = expectation.matched_nodes
        variables = template_variables(nodes[0] if nodes else None, screen)

        template = rule.finding_template
        if template is not None:
            title = interpolate(template.title, variables)
            description = interpolate(template.description, variables)
            message = interpolate(template.recommendation, variables)
        else:
            title = rule.name
            description = rule.description
            message = rule.recommendation_message

        findings.append(
            Finding(
                id=counters.next_finding_id(),
                rule_id=rule.id,
                category=rule.category,
                severity=rule.severity,
                title=title,
                description=description,
                affected_nodes=[n.id for n in nodes],
                affected_area=compute_affected_area(nodes, screen),
                annotation_target=rule.annotation_target,
                recommendation=Recommendation(
                    message=message,
                    components=[suggestion_from_ref(c) for c in rule.recommendation_components],
                ),
            )
        )

    return findings


def enrich_components(
    findings: List[Finding],
    mappings: Mapping[str, ComponentMapping],
) -> List[Finding]:
    """Append category-level component suggestions not already present.

    Suggestions are keyed on ``(shadcn_id, variant)``; rule-specified
    components keep their position ahead of mapped ones.
    """
    for finding in findings:
        mapping = mappings.get(finding.category)
        if mapping is None:
            continue

        seen = {c.key for c in finding.recommendation.components}
        for item in list(mapping.primary) + list(mapping.supporting):
            suggestion = _suggestion_from_mapping(item)
            if suggestion.key in seen:
                continue
            seen.add(suggestion.key)
            finding.recommendation.components.append(suggestion)

    return findings
