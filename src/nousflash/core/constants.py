"""Memory system constants.

Defaults for every tunable threshold. Settings models import from here so a
default only ever lives in one place.
"""

# Short-term buffer
SHORT_TERM_CAPACITY = 100
"""Maximum entries kept in the short-term buffer before FIFO eviction."""

SHORT_TERM_RELEVANT_LIMIT = 5
"""Entries pulled from the short-term buffer as thought context."""

# Significance scoring weights (must sum to 1.0 to keep scores in [0, 1])
BASE_SCORE_WEIGHT = 0.4
NOVELTY_WEIGHT = 0.2
EMOTIONAL_IMPACT_WEIGHT = 0.2
RELEVANCE_WEIGHT = 0.1
PERSISTENCE_WEIGHT = 0.1

DEFAULT_RELEVANCE = 0.5
"""Placeholder relevance heuristic until a real signal exists."""

DEFAULT_PERSISTENCE = 0.5
"""Placeholder persistence heuristic until a real signal exists."""

RATING_MIN = 1
RATING_MAX = 10
"""Provider significance ratings are integers in [RATING_MIN, RATING_MAX]."""

EMOTIONAL_KEYWORDS = (
    "love",
    "hate",
    "amazing",
    "terrible",
    "excited",
    "angry",
    "sad",
    "happy",
    "worried",
    "confident",
    "afraid",
    "proud",
    "disgusted",
    "surprised",
    "peaceful",
)

# Long-term storage
MEMORY_SIGNIFICANCE_THRESHOLD = 0.5
"""Minimum significance for a memory to be persisted."""

CONSOLIDATION_DISTANCE_THRESHOLD = 0.1
"""Cosine distance below which two memories are merged."""

EMBEDDING_DIMENSION = 1536
"""Vector length produced by text-embedding-3-small."""

# Cognitive cycle
POST_SIGNIFICANCE_THRESHOLD = 0.6
"""A thought must score above this to become a post."""

MIN_THOUGHT_LENGTH = 20
"""A thought must be longer than this many characters to become a post."""

MAX_POST_LENGTH = 280

RETRIEVAL_LIMIT = 5
INTERACTION_RETRIEVAL_LIMIT = 3
RECENT_POSTS_LIMIT = 10
EXTERNAL_CONTEXT_LIMIT = 20

STAGE_TIMEOUT_SECONDS = 30.0
"""Upper bound for any single external call within a cycle."""

POOL_MAX_SIZE = 20
