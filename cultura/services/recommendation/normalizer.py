import math

from cultura.core.constants import NORMALIZED_MAX, NORMALIZED_MIN
from cultura.models.recommendation import CandidateScore, NormalizedScore


class ScoreNormalizer:
    """
    Rescales one source's batch onto the shared 0-10 range with min-max.

    Sources report on unrelated scales (log view counts, LLM 1-100 ratings,
    interaction tallies), so each batch is rescaled against itself before merging. NaN and infinite raw scores are dropped.
    """

    @staticmethod
    def normalize(candidates: list[CandidateScore]) -> list[NormalizedScore]:
        candidates = [c for c in candidates if math.isfinite(c.raw_score)]
        if not candidates:
            return []

        raw = [c.raw_score for c in candidates]
        lo, hi = min(raw), max(raw)
        span = hi - lo

        normalized = []
        for c in candidates:
            if span == 0:
                value = NORMALIZED_MAX
            else:
                value = NORMALIZED_MAX * (c.raw_score - lo) / span
            value = max(NORMALIZED_MIN, min(NORMALIZED_MAX, value))
            normalized.append(
                NormalizedScore(content_id=c.content_id, score=value, reasons=c.reasons, source_name=c.source_name)
            )
        return normalized
