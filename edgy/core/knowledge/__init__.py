"""Declarative knowledge base: rules, flow rules and component mappings."""

from .loader import clear_knowledge_cache, load_knowledge
from .models import FlowRule, KnowledgeBase, Rule

__all__ = [
    "clear_knowledge_cache",
    "load_knowledge",
    "FlowRule",
    "KnowledgeBase",
    "Rule",
]
