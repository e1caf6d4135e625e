from abc import ABC, abstractmethod

from cultura.core.constants import MAX_DIFFICULTY, MIN_DIFFICULTY
from cultura.models.content import UserContext
from cultura.models.recommendation import CandidateScore


class CandidateSource(ABC):
    """
    Interface for a candidate generator.

    Each source scores on its own scale; the engine normalizes before merging.
    Any candidate with a positive raw score must carry at least one reason.
    """

    source_name: str = ""

    def __init__(self, timeout: float):
        self.timeout = timeout

    @abstractmethod
    async def fetch(self, user_id: str, user_context: UserContext) -> list[CandidateScore]:
        """
        Produce scored candidates for the user. May raise; the engine absorbs failures.
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source_name={self.source_name!r}, timeout={self.timeout})"


def difficulty_window(level: int, spread: int = 1) -> tuple[int, int]:
    """Difficulty range around a level, clamped to the store's 1-5 scale."""
    return max(MIN_DIFFICULTY, level - spread), min(MAX_DIFFICULTY, level + spread)
