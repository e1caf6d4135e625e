"""
Core constants used across the application. Keep these simple and documented.
"""

# Candidate source names, also used as merge keys and in source summaries
SOURCE_COLLABORATIVE: str = "collaborative"
SOURCE_CONTENT_BASED: str = "content-based"
SOURCE_GENERATIVE: str = "generative"
SOURCE_TRENDING: str = "trending"
SOURCE_FALLBACK: str = "fallback"

# Fold order for merging; fixed so merged output never depends on arrival order
SOURCE_ORDER: tuple[str, ...] = (
    SOURCE_COLLABORATIVE,
    SOURCE_CONTENT_BASED,
    SOURCE_GENERATIVE,
    SOURCE_TRENDING,
)

# Normalized score range
NORMALIZED_MIN: float = 0.0
NORMALIZED_MAX: float = 10.0

# Fallback list: score = FALLBACK_TOP_SCORE - FALLBACK_SCORE_STEP * index
FALLBACK_TOP_SCORE: float = 10.0
FALLBACK_SCORE_STEP: float = 0.1
FALLBACK_REASONS: tuple[str, ...] = ("Featured content", "Popular choice")

# Difficulty scale used by the content store
MIN_DIFFICULTY: int = 1
MAX_DIFFICULTY: int = 5

RECOMMENDATIONS_KEY: str = "cultura:recommendations:{user_id}"

# Interaction types that change what we should recommend
PREFERENCE_EVENT_TYPES: frozenset[str] = frozenset(
    {"LIKE", "SAVE", "COMPLETE", "PREFERENCES_UPDATED", "PROFILE_UPDATED"}
)
