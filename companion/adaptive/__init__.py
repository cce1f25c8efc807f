"""
Adaptive Content Recommendation.

Components:
- TemplateCatalog: skill-domain templates and content generation
- CollaborativeFilter: Pearson similarity over learner ratings
- ContentSequencer: epsilon-greedy ordering from pair rewards
- DifficultyPersonalizer: difficulty scaled by recent performance
- RecommendationEngine: the full recommendation pipeline
"""
from companion.adaptive.collaborative import CollaborativeFilter, SimilarityCache, pearson_similarity
from companion.adaptive.difficulty import DifficultyPersonalizer, LearnerPerformance
from companion.adaptive.models import (
    ContentTemplate,
    ContentType,
    DifficultyLevel,
    LearningContent,
)
from companion.adaptive.recommendation_engine import RecommendationEngine
from companion.adaptive.sequencer import ContentSequencer, PairStats
from companion.adaptive.templates import TemplateCatalog

__all__ = [
    # Main engine
    "RecommendationEngine",
    # Component classes
    "CollaborativeFilter",
    "ContentSequencer",
    "DifficultyPersonalizer",
    "SimilarityCache",
    "TemplateCatalog",
    "pearson_similarity",
    # Data models
    "ContentTemplate",
    "ContentType",
    "DifficultyLevel",
    "LearnerPerformance",
    "LearningContent",
    "PairStats",
]
