"""AI review layer: batched, additive-only refinement of heuristic findings."""

from .reviewer import ReviewOrchestrator, ReviewResult, merge_refinements, parse_refinement

__all__ = ["ReviewOrchestrator", "ReviewResult", "merge_refinements", "parse_refinement"]
