import json
import math
import re
from typing import Any

from loguru import logger

from cultura.core.constants import SOURCE_GENERATIVE
from cultura.models.content import ContentSummary, UserContext
from cultura.models.recommendation import CandidateScore
from cultura.services.content_store.base import CandidateDataStore
from cultura.services.gemini import GeminiService
from cultura.services.recommendation.sources.base import CandidateSource

CATALOG_SAMPLE_SIZE = 100
PROMPT_ITEMS = 20
PROMPT_TAGS_PER_ITEM = 3
REQUESTED_PICKS = 10

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class GenerativeSource(CandidateSource):
    """
    Asks an LLM to pick from a sample of the catalog. Scores stay on the model's 1-100 scale.
    """

    source_name = SOURCE_GENERATIVE

    def __init__(self, store: CandidateDataStore, llm: GeminiService, timeout: float = 8.0):
        super().__init__(timeout)
        self.store = store
        self.llm = llm

    async def fetch(self, user_id: str, user_context: UserContext) -> list[CandidateScore]:
        if not self.llm.enabled:
            return []

        available = await self.store.list_available_content(
            exclude_content_ids=user_context.completed_content_ids, limit=CATALOG_SAMPLE_SIZE
        )
        completed = user_context.completed
        offered = [c for c in available if c.id not in completed][:PROMPT_ITEMS]
        if not offered:
            return []

        raw = await self.llm.generate_content_async(self.build_prompt(user_context, offered))
        if not raw:
            return []

        return self.parse_response(raw, {c.id for c in offered})

    @staticmethod
    def build_prompt(user_context: UserContext, offered: list[ContentSummary]) -> str:
        summary = [
            {
                "id": c.id,
                "title": c.title,
                "category": c.category,
                "difficulty": c.difficulty,
                "tags": c.tags[:PROMPT_TAGS_PER_ITEM],
            }
            for c in offered
        ]
        return (
            "Based on a user's cultural learning preferences, recommend content from the following list.\n\n"
            "User Profile:\n"
            f"- Interests: {', '.join(user_context.interests)}\n"
            f"- Preferred Categories: {', '.join(user_context.preferred_categories)}\n"
            f"- Difficulty Level: {user_context.difficulty_level}/5\n"
            f"- Previously Liked Categories: {', '.join(user_context.liked_categories)}\n\n"
            f"Available Content:\n{json.dumps(summary, indent=2, ensure_ascii=False)}\n\n"
            f"Recommend the top {REQUESTED_PICKS} pieces of content for this user. "
            "Format as a JSON array of objects with keys: contentId, score, reason."
        )

    def parse_response(self, raw: str, allowed_ids: set[str]) -> list[CandidateScore]:
        try:
            payload: Any = json.loads(_FENCE_RE.sub("", raw.strip()))
        except json.JSONDecodeError as e:
            logger.warning(f"Unparseable generative response: {e}")
            return []

        if isinstance(payload, dict):
            payload = payload.get("recommendations", [])
        if not isinstance(payload, list):
            return []

        candidates = []
        for rec in payload:
            if not isinstance(rec, dict):
                continue
            content_id = str(rec.get("contentId") or rec.get("id") or "")
            if content_id not in allowed_ids:
                continue
            try:
                score = float(rec.get("score", 0))
            except (TypeError, ValueError):
                continue
            if not math.isfinite(score):
                continue
            reason = str(rec.get("reason") or "").strip() or "Suggested for your interests"
            candidates.append(
                CandidateScore(content_id=content_id, raw_score=score, reasons=(reason,), source_name=self.source_name)
            )
        return candidates
