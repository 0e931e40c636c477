"""Deterministic heuristic analysis over design screen trees.

Public API:
    run_analysis      -- full heuristic pass producing an AnalysisOutput
    detect_patterns   -- structural roles in one tree
    match_rules       -- rules triggered by a screen's patterns
"""

from .engine import run_analysis
from .patterns import detect_patterns
from .rules import match_rules

__all__ = [
    "run_analysis",
    "detect_patterns",
    "match_rules",
]
