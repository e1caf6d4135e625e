from abc import ABC, abstractmethod

from cultura.models.content import ContentMetadata, ContentSummary, SimilarUser, UserContext
from cultura.models.recommendation import RankedRecommendation


class UserProfileStore(ABC):
    @abstractmethod
    async def get_user_context(self, user_id: str) -> UserContext | None:
        """
        Return the user's preferences and history, or None when the user has no profile.
        """
        pass


class ContentMetadataStore(ABC):
    @abstractmethod
    async def get_metadata(self, content_ids: list[str]) -> dict[str, ContentMetadata]:
        """
        Batched metadata lookup. Ids of inactive or unknown content are absent from the result.
        """
        pass


class ContentPopularityStore(ABC):
    @abstractmethod
    async def get_featured_or_popular(self, limit: int) -> list[str]:
        """
        Featured content ordered by popularity, most popular first.
        """
        pass


class CandidateDataStore(ABC):
    """
    Raw inputs the candidate sources score. Filtering happens store-side.
    """

    @abstractmethod
    async def find_similar_users(
        self,
        user_id: str,
        categories: list[str],
        difficulty_range: tuple[int, int],
        exclude_content_ids: list[str],
        limit: int = 50,
    ) -> list[SimilarUser]:
        pass

    @abstractmethod
    async def search_content(
        self,
        categories: list[str],
        tags: list[str],
        difficulty_range: tuple[int, int],
        exclude_content_ids: list[str],
        limit: int = 50,
    ) -> list[ContentSummary]:
        pass

    @abstractmethod
    async def get_trending_content(
        self, since_days: int, exclude_content_ids: list[str], limit: int = 30
    ) -> list[ContentSummary]:
        pass

    @abstractmethod
    async def list_available_content(self, exclude_content_ids: list[str], limit: int = 100) -> list[ContentSummary]:
        pass


class RecommendationLog(ABC):
    @abstractmethod
    async def record_recommendations(self, user_id: str, recommendations: list[RankedRecommendation]) -> None:
        """
        Persist a served list for analytics (click-through etc).
        """
        pass
