"""Memory engines: short-term buffer, significance scoring, long-term store."""

from nousflash.memory.long_term import LongTermMemoryStore
from nousflash.memory.short_term import ShortTermMemory, cosine_similarity
from nousflash.memory.significance import (
    ScoringWeights,
    SignificanceScore,
    SignificanceScorer,
    calculate_metrics,
    combine_scores,
    validate_rating,
)

__all__ = [
    "ShortTermMemory",
    "cosine_similarity",
    "SignificanceScorer",
    "SignificanceScore",
    "ScoringWeights",
    "calculate_metrics",
    "combine_scores",
    "validate_rating",
    "LongTermMemoryStore",
]
