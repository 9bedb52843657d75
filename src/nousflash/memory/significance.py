"""Significance scoring for thoughts and memories.

Combines the completion provider's 1-10 rating with cheap local heuristics:

- novelty: distinct words / total words
- emotional impact: emotional keywords / total words
- relevance, persistence: fixed placeholders until real signals exist

The weighted sum is clamped to [0, 1].
"""

import string
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from loguru import logger

from nousflash.core.constants import (
    BASE_SCORE_WEIGHT,
    DEFAULT_PERSISTENCE,
    DEFAULT_RELEVANCE,
    EMOTIONAL_IMPACT_WEIGHT,
    EMOTIONAL_KEYWORDS,
    NOVELTY_WEIGHT,
    PERSISTENCE_WEIGHT,
    RATING_MAX,
    RATING_MIN,
    RELEVANCE_WEIGHT,
)
from nousflash.core.models import ScoringMetrics
from nousflash.providers.base import CompletionProvider
from nousflash.providers.prompts import significance_prompt
from nousflash.utils.exceptions import ParseError


@dataclass
class ScoringWeights:
    """Weights and placeholder values for combining scores."""

    base: float = BASE_SCORE_WEIGHT
    novelty: float = NOVELTY_WEIGHT
    emotional_impact: float = EMOTIONAL_IMPACT_WEIGHT
    relevance: float = RELEVANCE_WEIGHT
    persistence: float = PERSISTENCE_WEIGHT
    default_relevance: float = DEFAULT_RELEVANCE
    default_persistence: float = DEFAULT_PERSISTENCE
    emotional_keywords: FrozenSet[str] = field(
        default_factory=lambda: frozenset(EMOTIONAL_KEYWORDS)
    )

    @classmethod
    def from_settings(cls, settings) -> "ScoringWeights":
        """Build from a ScoringSettings instance."""
        return cls(
            base=settings.base_weight,
            novelty=settings.novelty_weight,
            emotional_impact=settings.emotional_weight,
            relevance=settings.relevance_weight,
            persistence=settings.persistence_weight,
            default_relevance=settings.default_relevance,
            default_persistence=settings.default_persistence,
            emotional_keywords=frozenset(w.lower() for w in settings.emotional_keywords),
        )


@dataclass
class SignificanceScore:
    """Breakdown of a significance score."""

    total: float
    base: float
    metrics: ScoringMetrics

    def format_breakdown(self) -> str:
        m = self.metrics
        return (
            f"total={self.total:.2f} (base={self.base:.2f}, novelty={m.novelty:.2f}, "
            f"impact={m.emotional_impact:.2f}, relevance={m.relevance:.2f}, "
            f"persistence={m.persistence:.2f})"
        )


def validate_rating(raw: object) -> int:
    """
    Check that a provider rating is an integer in [1, 10].

    Raises:
        ParseError: If the rating is not an integer or out of range
    """
    # bool is an int subclass but never a meaningful rating
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ParseError(f"Significance rating must be an integer, got {raw!r}")
    if not RATING_MIN <= raw <= RATING_MAX:
        raise ParseError(
            f"Significance rating {raw} outside [{RATING_MIN}, {RATING_MAX}]"
        )
    return raw


def _normalize(word: str) -> str:
    return word.strip(string.punctuation).lower()


def calculate_metrics(content: str, weights: Optional[ScoringWeights] = None) -> ScoringMetrics:
    """
    Compute local heuristics for ``content``.

    Content without words scores 0 novelty and 0 emotional impact.
    """
    weights = weights or ScoringWeights()
    words = content.split()
    word_count = len(words)

    if word_count == 0:
        novelty = 0.0
        emotional_impact = 0.0
    else:
        novelty = min(1.0, len(set(words)) / word_count)
        emotional_words = sum(
            1 for word in words if _normalize(word) in weights.emotional_keywords
        )
        emotional_impact = min(1.0, emotional_words / word_count)

    return ScoringMetrics(
        novelty=novelty,
        emotional_impact=emotional_impact,
        relevance=weights.default_relevance,
        persistence=weights.default_persistence,
    )


def combine_scores(
    base: float,
    metrics: ScoringMetrics,
    weights: Optional[ScoringWeights] = None,
) -> float:
    """Weighted combination of base rating and heuristics, clamped to [0, 1]."""
    weights = weights or ScoringWeights()
    weighted = (
        base * weights.base
        + metrics.novelty * weights.novelty
        + metrics.emotional_impact * weights.emotional_impact
        + metrics.relevance * weights.relevance
        + metrics.persistence * weights.persistence
    )
    return max(0.0, min(1.0, weighted))


class SignificanceScorer:
    """Scores content using the completion provider's rating plus heuristics."""

    def __init__(
        self,
        completion: CompletionProvider,
        weights: Optional[ScoringWeights] = None,
    ):
        self.completion = completion
        self.weights = weights or ScoringWeights()

    async def base_score(self, content: str) -> float:
        """Provider rating normalized to [0, 1]."""
        raw = await self.completion.rate(significance_prompt(content))
        return validate_rating(raw) / RATING_MAX

    async def score_detailed(self, content: str) -> SignificanceScore:
        base = await self.base_score(content)
        metrics = calculate_metrics(content, self.weights)
        total = combine_scores(base, metrics, self.weights)
        score = SignificanceScore(total=total, base=base, metrics=metrics)
        logger.debug(f"Memory significance: {score.format_breakdown()}")
        return score

    async def score(self, content: str) -> float:
        """
        Score ``content`` in [0, 1].

        Raises:
            ProviderError: The provider call failed
            ParseError: The provider rating was malformed
        """
        return (await self.score_detailed(content)).total

