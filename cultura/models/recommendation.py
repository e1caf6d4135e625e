from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CandidateScore(BaseModel):
    """A single source's opinion about one piece of content."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    raw_score: float
    reasons: tuple[str, ...] = ()
    source_name: str


class NormalizedScore(BaseModel):
    """CandidateScore with the raw score mapped onto the shared 0-10 scale."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    score: float = Field(ge=0.0, le=10.0)
    reasons: tuple[str, ...] = ()
    source_name: str


class MergedCandidate(BaseModel):
    content_id: str
    aggregate_score: float = 0.0
    contributing_sources: set[str] = Field(default_factory=set)
    reasons: list[str] = Field(default_factory=list)


class SourceSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sources: list[str] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)


class RankedRecommendation(BaseModel):
    """The externally visible unit of a recommendation list."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content_id: str
    final_score: float
    rank: int = Field(ge=1)
    source_summary: SourceSummary = Field(default_factory=SourceSummary)


class CacheEntry(BaseModel):
    user_id: str
    recommendations: list[RankedRecommendation] = Field(default_factory=list)
    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime

    @classmethod
    def build(cls, user_id: str, recommendations: list[RankedRecommendation], ttl: int) -> "CacheEntry":
        now = datetime.now(timezone.utc)
        return cls(
            user_id=user_id,
            recommendations=recommendations,
            computed_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at
