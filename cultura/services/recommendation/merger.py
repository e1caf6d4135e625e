import math

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cultura.core.config import Settings
from cultura.core.constants import (
    SOURCE_COLLABORATIVE,
    SOURCE_CONTENT_BASED,
    SOURCE_GENERATIVE,
    SOURCE_ORDER,
    SOURCE_TRENDING,
)
from cultura.models.recommendation import MergedCandidate, NormalizedScore


class SourceWeights(BaseModel):
    """
    Fixed per-source merge weights. Validated once at construction; never per call.
    """

    model_config = ConfigDict(frozen=True)

    collaborative: float = Field(default=0.30, ge=0.0)
    content_based: float = Field(default=0.25, ge=0.0)
    generative: float = Field(default=0.25, ge=0.0)
    trending: float = Field(default=0.20, ge=0.0)

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "SourceWeights":
        total = self.collaborative + self.content_based + self.generative + self.trending
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Source weights must sum to 1.0, got {total:.6f}")
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> "SourceWeights":
        return cls(
            collaborative=settings.WEIGHT_COLLABORATIVE,
            content_based=settings.WEIGHT_CONTENT_BASED,
            generative=settings.WEIGHT_GENERATIVE,
            trending=settings.WEIGHT_TRENDING,
        )

    def as_mapping(self) -> dict[str, float]:
        return {
            SOURCE_COLLABORATIVE: self.collaborative,
            SOURCE_CONTENT_BASED: self.content_based,
            SOURCE_GENERATIVE: self.generative,
            SOURCE_TRENDING: self.trending,
        }


class CandidateMerger:
    """
    Folds normalized per-source lists into one candidate per content id.
    """

    def __init__(self, weights: SourceWeights | None = None):
        self.weights = weights or SourceWeights()
        self._weight_map = self.weights.as_mapping()

    def merge(self, normalized_by_source: dict[str, list[NormalizedScore]]) -> list[MergedCandidate]:
        unknown = set(normalized_by_source) - set(self._weight_map)
        if unknown:
            raise ValueError(f"No weight configured for sources: {sorted(unknown)}")

        merged: dict[str, MergedCandidate] = {}
        for source_name in SOURCE_ORDER:
            weight = self._weight_map[source_name]
            for item in self._collapse(normalized_by_source.get(source_name, [])):
                current = merged.get(item.content_id)
                if current is None:
                    current = MergedCandidate(content_id=item.content_id)
                    merged[item.content_id] = current
                current.aggregate_score += item.score * weight
                current.contributing_sources.add(source_name)
                for reason in item.reasons:
                    if reason not in current.reasons:
                        current.reasons.append(reason)

        return list(merged.values())

    @staticmethod
    def _collapse(items: list[NormalizedScore]) -> list[NormalizedScore]:
        """A source listing the same content twice counts once, at its best score."""
        best: dict[str, NormalizedScore] = {}
        for item in items:
            seen = best.get(item.content_id)
            if seen is None:
                best[item.content_id] = item
                continue
            reasons = seen.reasons + tuple(r for r in item.reasons if r not in seen.reasons)
            best[item.content_id] = seen.model_copy(update={"score": max(seen.score, item.score), "reasons": reasons})
        return list(best.values())
