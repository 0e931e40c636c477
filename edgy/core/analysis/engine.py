"""Analysis orchestrator: the deterministic heuristic pass.

Runs, for one AnalysisInput:

1. Pattern detection per screen
2. Rule matching (exclusions + confidence)
3. Expectation checking in screen, then in flow group
4. Finding generation + component enrichment
5. Deduplication inside flow groups
6. Flow-level findings
7. Flow archetype detection + missing-screen findings

Pure and synchronous over in-memory trees. Progress is reported through
an optional callback. Given the same input and knowledge base, output is
identical apart from ``completed_at``.

Usage:
    from edgy.core.analysis.engine import run_analysis
    output = run_analysis(analysis_input, knowledge=load_knowledge())
"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..events import ProgressCallback, ProgressEvent
from ..knowledge.models import KnowledgeBase
from .dedup import deduplicate_findings
from .expectations import check_expectations
from .findings import enrich_components, generate_findings
from .flow_findings import generate_flow_findings
from .flow_groups import flow_siblings, group_screens_by_flow
from .flow_types import detect_flow_types
from .missing_screens import detect_missing_screens
from .models import (
    AnalysisInput,
    AnalysisOutput,
    DetectedPattern,
    IdCounters,
    ScreenResult,
    build_summary,
)
from .patterns import detect_patterns
from .rules import match_rules

logger = logging.getLogger(__name__)


def _emit(on_progress: Optional[ProgressCallback], stage: str, message: str, progress: float) -> None:
    if on_progress is not None:
        on_progress(ProgressEvent(stage=stage, message=message, progress=progress))


def run_analysis(
    analysis_input: AnalysisInput,
    knowledge: Optional[KnowledgeBase] = None,
    on_progress: Optional[ProgressCallback] = None,
    counters: Optional[IdCounters] = None,
) -> AnalysisOutput:
    """Build the heuristic AnalysisOutput for a set of screens.

    Args:
        analysis_input: Screens to analyze.
        knowledge: Rules, flow rules and mappings. Defaults to the
            configured knowledge base.
        on_progress: Called with a ProgressEvent at each stage boundary.
        counters: Id sequences for this run. A fresh set by default.
    """
    if knowledge is None:
        from ..knowledge.loader import load_knowledge
        knowledge = load_knowledge()
    counters = counters or IdCounters()
    t0 = time.time()
    screens = analysis_input.screens
    rules = list(knowledge.rules)

    _emit(on_progress, "patterns", "Detecting UI patterns...", 0.15)

    flow_groups = group_screens_by_flow(screens)
    patterns_by_screen: Dict[str, List[DetectedPattern]] = {}
    screen_results: List[ScreenResult] = []

    for screen in screens:
        patterns = detect_patterns(screen.node_tree)
        patterns_by_screen[screen.screen_id] = patterns

        triggered = match_rules(patterns, rules, screen.node_tree, screen.name)
        group_trees = [s.node_tree for s in flow_siblings(screen, flow_groups)]
        unmet = check_expectations(triggered, screen.node_tree, group_trees)

        findings = enrich_components(generate_findings(unmet, screen, counters), knowledge.mappings)
        screen_results.append(ScreenResult(screen_id=screen.screen_id, name=screen.name, findings=findings))

        logger.debug(
            f"Screen {screen.screen_id} ({screen.name}): {len(patterns)} patterns, "
            f"{len(triggered)} triggered rules, {len(findings)} findings"
        )

    _emit(on_progress, "rules", "Matching rules against patterns...", 0.25)

    deduplicate_findings(screen_results, flow_groups)

    _emit(on_progress, "expectations", "Checking expectations...", 0.35)

    flow_findings = generate_flow_findings(screens, counters)

    _emit(on_progress, "flows", "Detecting flow types and missing screens...", 0.45)

    detected_flows = detect_flow_types(screens, patterns_by_screen)
    missing = detect_missing_screens(screens, detected_flows, knowledge, counters)

    _emit(on_progress, "findings", "Generating findings...", 0.55)

    output = AnalysisOutput(
        analysis_id=analysis_input.analysis_id,
        completed_at=datetime.now(timezone.utc).isoformat(),
        summary=build_summary(len(screens), screen_results, flow_findings, missing),
        screens=screen_results,
        flow_findings=flow_findings,
        missing_screen_findings=missing,
    )

    logger.info(
        f"Analysis {analysis_input.analysis_id}: {len(screens)} screens, "
        f"{output.summary.total_findings} findings, "
        f"flows={[d.type for d in detected_flows]} in {(time.time() - t0) * 1000:.0f}ms"
    )
    return output
