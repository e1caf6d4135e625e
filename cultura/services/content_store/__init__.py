"""
Collaborators owned by the CRUD backend: profiles, content metadata, popularity
and the raw data the candidate sources score.
"""

from cultura.services.content_store.base import (
    CandidateDataStore,
    ContentMetadataStore,
    ContentPopularityStore,
    RecommendationLog,
    UserProfileStore,
)
from cultura.services.content_store.client import ContentStoreClient
from cultura.services.content_store.service import ContentStoreService, get_content_store_service

__all__ = [
    "CandidateDataStore",
    "ContentMetadataStore",
    "ContentPopularityStore",
    "ContentStoreClient",
    "ContentStoreService",
    "RecommendationLog",
    "UserProfileStore",
    "get_content_store_service",
]
