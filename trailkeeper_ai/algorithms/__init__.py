"""
Learning Algorithms Module
Pattern keys, similarity retrieval and the feedback/weight loop
"""

from .pattern_key import encode_pattern_key, route_pattern_key, budget_bucket
from .similarity import (
    calculate_preference_similarity,
    calculate_context_similarity,
    rank_similar,
    SimilarityMatch,
    SimilarityRetriever
)
from .feedback_engine import FeedbackEngine, FeedbackOutcome, LearningConfig, calculate_updated_quality_score

__all__ = [
    "encode_pattern_key",
    "route_pattern_key",
    "budget_bucket",
    "calculate_preference_similarity",
    "calculate_context_similarity",
    "rank_similar",
    "SimilarityMatch",
    "SimilarityRetriever",
    "FeedbackEngine",
    "FeedbackOutcome",
    "LearningConfig",
    "calculate_updated_quality_score"
]
