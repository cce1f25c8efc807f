"""
Learning Module - Bayesian Knowledge Tracing of per-skill mastery.
"""

from companion.learning.knowledge_tracker import KnowledgeState, KnowledgeStateTracker

__all__ = [
    "KnowledgeState",
    "KnowledgeStateTracker",
]
