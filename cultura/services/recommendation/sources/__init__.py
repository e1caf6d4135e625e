from cultura.services.recommendation.sources.base import CandidateSource
from cultura.services.recommendation.sources.collaborative import CollaborativeSource
from cultura.services.recommendation.sources.content_based import ContentBasedSource
from cultura.services.recommendation.sources.generative import GenerativeSource
from cultura.services.recommendation.sources.trending import TrendingSource

__all__ = [
    "CandidateSource",
    "CollaborativeSource",
    "ContentBasedSource",
    "GenerativeSource",
    "TrendingSource",
]
