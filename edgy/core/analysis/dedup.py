"""Deduplication of findings within flow groups.

Screens in a group are visited in screen-id order, so the survivor of a
duplicate does not depend on the order screens were submitted in. A
finding is dropped when a finding with the same ``rule_id`` was already
kept on an earlier screen of the same group.
"""

import logging
from typing import Dict, List

from .models import Finding, Screen, ScreenResult

logger = logging.getLogger(__name__)


def finding_fingerprint(finding: Finding) -> str:
    """Finer-grained identity: rule, category, severity and sorted nodes.

    Not used by :func:`deduplicate_findings`, which keys on ``rule_id``
    alone; kept for callers that need node-level identity.
    """
    return "|".join(
        [
            finding.rule_id,
            finding.category,
            finding.severity,
            ",".join(sorted(finding.affected_nodes)),
        ]
    )


def deduplicate_findings(
    screen_results: List[ScreenResult],
    flow_groups: Dict[str, List[Screen]],
) -> List[ScreenResult]:
    """Drop repeated rule ids inside each multi-screen flow group, in place."""
    by_id = {r.screen_id: r for r in screen_results}
    dropped = 0

    for members in flow_groups.values():
        if len(members) <= 1:
            continue

        seen = set()
        for screen_id in sorted({s.screen_id for s in members}):
            result = by_id.get(screen_id)
            if result is None:
                continue

            kept: List[Finding] = []
            for finding in result.findings:
                if finding.rule_id in seen:
                    dropped += 1
                    continue
                seen.add(finding.rule_id)
                kept.append(finding)
            result.findings = kept

    if dropped:
        logger.debug(f"Deduplicated {dropped} findings across flow groups")
    return screen_results
