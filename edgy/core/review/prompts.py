"""Prompt construction for the AI review pass.

The reviewer is additive-only: heuristic findings are presented as
locked, and the model may only contribute ``additional_findings`` per
screen. The response must be a raw JSON object in the format below.
"""

import json
import re
from typing import Iterable, List, Mapping, Optional

from ..analysis.models import AnalysisOutput, Screen
from ..content import ContentPart, ImagePart, TextPart
from ..knowledge.models import ComponentMapping
from .condense import condense_node_tree

_DATA_URL_PREFIX = re.compile(r"^data:image/(jpeg|png);base64,")

CATEGORIES = {
    "empty-states": "Missing zero-data or first-use states for lists, tables and dashboards",
    "loading-states": "Missing skeletons, spinners or progress indicators",
    "error-states": "Missing validation, submission failure or API error states",
    "edge-inputs": "Missing handling for long text, special characters or unusual formats",
    "boundary-conditions": "Missing min/max, overflow or pagination states",
    "permissions": "Missing unauthorized, forbidden or disabled states for restricted actions",
    "connectivity": "Missing offline, network error or retry states",
    "destructive-actions": "Missing confirmation dialogs or undo for delete/remove actions",
}

RESPONSE_FORMAT = {
    "screens": [
        {
            "screen_id": "the screen ID",
            "findings": [{"id": "original finding ID", "action": "keep"}],
            "additional_findings": [
                {
                    "category": "error-states",
                    "severity": "warning",
                    "title": "concise finding title",
                    "description": "what is missing and the user impact",
                    "recommendation": "concrete action to fix it",
                    "ai_generated": True,
                }
            ],
        }
    ],
    "flow_findings": [],
    "missing_screen_findings": [{"id": "mf-1", "action": "keep"}],
    "flow_insights": ["cross-screen observation"],
    "suggested_flows": [
        {
            "flow_type": "subscription",
            "reason": "pricing table present but no plan management screens",
            "missing_screens": ["Cancel Subscription"],
        }
    ],
}


def build_system_prompt(
    categories: Iterable[str],
    mappings: Optional[Mapping[str, ComponentMapping]] = None,
) -> str:
    """System prompt listing all categories, with detail for those in play."""
    lines = [
        "You are the AI review layer of Edgy, a UX edge-case analyzer for UI design flows.",
        "",
        "Edgy detects UI patterns (forms, lists, buttons, data displays) in design screens "
        "with heuristic rules, checks whether the expected companion states exist, and "
        "reports findings when they do not.",
        "",
        "## Edge-case categories",
    ]
    for index, (name, summary) in enumerate(CATEGORIES.items(), start=1):
        lines.append(f"{index}. {name}: {summary}")

    in_play = sorted(set(categories))
    if mappings and in_play:
        lines += ["", "## Recommended components for the categories in this review"]
        for category in in_play:
            mapping = mappings.get(category)
            if mapping is None:
                continue
            ids = [m.shadcn_id for m in list(mapping.primary) + list(mapping.supporting)]
            lines.append(f"- {category}: {', '.join(ids)}")

    lines += [
        "",
        "## Your role: additive only",
        "Heuristic findings are deterministic and LOCKED. You cannot remove, reorder or modify them.",
        "You may only:",
        "1. Add findings the heuristics missed that are visually evident in the screenshots",
        "2. Add short cross-screen flow insights",
        "3. Suggest flows the heuristics did not detect",
        "",
        "## Rules",
        '- Only ever use action "keep" for existing findings',
        "- Only add findings about states that are visibly present or missing in the design",
        "- Do not report runtime concerns: i18n, sanitization, rate limiting, performance",
        "- Keep descriptions under 100 characters",
        "- For screens marked [context only], do not add findings",
        "",
        "## Response format",
        "Respond with a single raw JSON object (no markdown code fences):",
        json.dumps(RESPONSE_FORMAT, indent=2),
    ]
    return "\n".join(lines)


def image_part(thumbnail_base64: str) -> ImagePart:
    """Strip a data-URL prefix; JPEG only when declared, PNG otherwise."""
    media_type = "image/jpeg" if thumbnail_base64.startswith("data:image/jpeg") else "image/png"
    return ImagePart(media_type=media_type, data=_DATA_URL_PREFIX.sub("", thumbnail_base64))


def _finding_summary(finding) -> dict:
    return {
        "id": finding.id,
        "rule_id": finding.rule_id,
        "category": finding.category,
        "severity": finding.severity,
        "title": finding.title,
        "description": finding.description,
        "affected_nodes": list(finding.affected_nodes),
        "recommendation": finding.recommendation.message,
    }


def build_batch_message(
    output: AnalysisOutput,
    file_name: str,
    batch: List[Screen],
    include_flow_findings: bool,
) -> List[ContentPart]:
    """User message content for one batch of screens.

    Every screen contributes its screenshot. Only screens with findings add
    their findings and a condensed node tree. Flow-level and missing-screen
    findings are attached when ``include_flow_findings`` is set.
    """
    results = {r.screen_id: r for r in output.screens}
    with_findings = [s for s in batch if results.get(s.screen_id) and results[s.screen_id].findings]

    parts: List[ContentPart] = [
        TextPart(
            f'Heuristic analysis results for screens from "{file_name}". This batch has '
            f"{len(batch)} screen(s), {len(with_findings)} with findings. Use the other "
            "screenshots for visual context.\n"
        )
    ]

    for screen in batch:
        result = results.get(screen.screen_id)
        has_findings = bool(result and result.findings)
        marker = "" if has_findings else " [context only]"
        parts.append(TextPart(f'\n--- Screen: "{screen.name}" (ID: {screen.screen_id}){marker} ---\n'))

        if screen.thumbnail_base64:
            parts.append(image_part(screen.thumbnail_base64))

        if has_findings:
            findings_json = json.dumps([_finding_summary(f) for f in result.findings], indent=2)
            parts.append(TextPart(f"\nFindings:\n{findings_json}\n"))

            affected = [node_id for f in result.findings for node_id in f.affected_nodes]
            tree_json = json.dumps(condense_node_tree(screen.node_tree, affected), indent=2)
            parts.append(TextPart(f"\nNode tree (condensed):\n{tree_json}\n"))

    if include_flow_findings and output.flow_findings:
        flow_json = json.dumps(
            [
                {
                    "id": f.id,
                    "rule_id": f.rule_id,
                    "category": f.category,
                    "severity": f.severity,
                    "title": f.title,
                    "description": f.description,
                    "recommendation": f.recommendation.message,
                }
                for f in output.flow_findings
            ],
            indent=2,
        )
        parts.append(TextPart(f"\n--- Flow-Level Findings ---\n{flow_json}\n"))

    if include_flow_findings and output.missing_screen_findings:
        missing_json = json.dumps(
            [
                {
                    "id": f.id,
                    "flow_type": f.flow_type,
                    "flow_name": f.flow_name,
                    "severity": f.severity,
                    "missing_screen": {
                        "id": f.missing_screen.id,
                        "name": f.missing_screen.name,
                        "description": f.missing_screen.description,
                    },
                    "recommendation": f.recommendation.message,
                }
                for f in output.missing_screen_findings
            ],
            indent=2,
        )
        parts.append(TextPart(f"\n--- Missing Screen Findings ---\n{missing_json}\n"))

    parts.append(
        TextPart(
            "\nReview the findings and respond with your additions in the JSON format above. "
            "Do not add findings for screens marked [context only]."
        )
    )
    return parts
