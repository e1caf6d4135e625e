from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StoreModel(BaseModel):
    """Base for payloads exchanged with the CRUD backend (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class UserContext(StoreModel):
    """
    Everything the sources need to know about a user, fetched once per run.
    """

    interests: list[str] = Field(default_factory=list)
    preferred_categories: list[str] = Field(default_factory=list)
    difficulty_level: int = Field(default=3, ge=1, le=5)
    completed_content_ids: list[str] = Field(default_factory=list)
    liked_categories: list[str] = Field(default_factory=list)
    saved_categories: list[str] = Field(default_factory=list)

    @property
    def completed(self) -> set[str]:
        return set(self.completed_content_ids)


class ContentMetadata(StoreModel):
    estimated_time: int = Field(default=0, description="Estimated consumption time in seconds")
    difficulty: int = 1
    language: str = "es"
    category: str | None = None


class ContentSummary(StoreModel):
    """Catalog row used by the candidate sources."""

    id: str
    title: str = ""
    description: str = ""
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    difficulty: int = 1
    estimated_time: int = 0
    language: str = "es"
    view_count: int = 0
    like_count: int = 0
    share_count: int = 0


class Interaction(StoreModel):
    content_id: str
    type: str  # LIKE, SAVE, COMPLETE, VIEW, SHARE


class SimilarUser(StoreModel):
    user_id: str
    interactions: list[Interaction] = Field(default_factory=list)


class InteractionEvent(StoreModel):
    """Event emitted by the interaction-tracking side of the CRUD backend."""

    user_id: str
    type: str
    content_id: str | None = None
